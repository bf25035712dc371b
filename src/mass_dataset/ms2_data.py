"""MS2 match batches and how they are stored on a dataset.

A batch is built from one run of the matcher over one set of spectrum files.
The dataset keeps batches keyed by the sorted, ``;``-joined file names: a
rerun over the same files replaces its batch, a run over a different file
set adds a new one.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Dict, Iterable, List, Mapping

import numpy as np
import pandas as pd

from .checking import ObjectKind
from .spectra import SpectrumTable


MS2_COLUMNS = ["variable_id", "ms2_spectrum_id", "ms2_mz", "ms2_rt", "ms2_file"]


@dataclass(frozen=True, eq=False)
class Ms2Data:
    """Resolved MS2 matches for one file set, with the settings that produced them."""

    object_kind: ClassVar[ObjectKind] = ObjectKind.MS2_DATA

    column: str
    polarity: str
    mz_tol: float
    rt_tol: float
    matches: pd.DataFrame = field(repr=False)  # MS2_COLUMNS, one row per variable
    ms2_spectra: Dict[str, np.ndarray] = field(repr=False, default_factory=dict)
    mz_tol_unit: str = "ppm"

    def __len__(self) -> int:
        return len(self.matches)

    @property
    def variable_id(self) -> List[str]:
        return self.matches["variable_id"].tolist()

    @property
    def ms2_spectrum_id(self) -> List[str]:
        return self.matches["ms2_spectrum_id"].tolist()

    @property
    def ms2_file(self) -> List[str]:
        return self.matches["ms2_file"].tolist()

    def spectrum_for(self, variable_id: str) -> np.ndarray:
        row = self.matches.loc[self.matches["variable_id"] == variable_id]
        if row.empty:
            raise KeyError(variable_id)
        return self.ms2_spectra[row["ms2_spectrum_id"].iloc[0]]


def ms2_group_key(file_names: Iterable[str]) -> str:
    return ";".join(sorted({str(f) for f in file_names}))


def build_ms2_data(
    resolved: pd.DataFrame,
    variable_ids: pd.Series,
    spectra: SpectrumTable,
    *,
    column: str,
    polarity: str,
    mz_tol: float,
    rt_tol: float,
    mz_tol_unit: str = "ppm",
) -> Ms2Data:
    """Turn resolver output into a batch.

    Spectrum coordinates and files are looked up by spectrum name rather than
    by row position.
    """
    info = spectra.info.set_index("name", drop=False)
    names = resolved["ms2_spectrum_id"].astype(str).tolist()
    looked_up = info.loc[names]
    matches = pd.DataFrame(
        {
            "variable_id": variable_ids.iloc[resolved["id1"].astype(int).to_numpy()].astype(str).to_numpy(),
            "ms2_spectrum_id": names,
            "ms2_mz": looked_up["mz"].to_numpy(dtype=float),
            "ms2_rt": looked_up["rt"].to_numpy(dtype=float),
            "ms2_file": looked_up["file"].astype(str).to_numpy(),
        },
        columns=MS2_COLUMNS,
    )
    all_spectra = spectra.spectra
    ms2_spectra = {name: all_spectra[name].copy() for name in dict.fromkeys(names)}
    return Ms2Data(
        column=column,
        polarity=polarity,
        mz_tol=float(mz_tol),
        rt_tol=float(rt_tol),
        matches=matches,
        ms2_spectra=ms2_spectra,
        mz_tol_unit=str(mz_tol_unit),
    )


def consolidate_ms2(store: Mapping[str, Ms2Data], key: str, batch: Ms2Data) -> Dict[str, Ms2Data]:
    """Return a new store with `batch` under `key`.

    An existing entry under the same key is replaced where it stands; a new
    key is appended after the existing entries.
    """
    out = dict(store)
    out[key] = batch
    return out
