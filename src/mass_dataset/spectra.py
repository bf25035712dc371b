"""Collect MS2 spectra from many files into one table.

The table has one row per spectrum (``name``, ``mz``, ``rt``, ``file``) and a
parallel list of peak arrays. Names are built from the precursor coordinate;
colliding names are made unique by suffixing ``_1``, ``_2``, ... onto every
repeat after the first.
"""
from __future__ import annotations

import logging
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Sequence

import numpy as np
import pandas as pd

from .spectra_io import SpectrumRecord, read_spectrum_file


logger = logging.getLogger(__name__)

INFO_COLUMNS = ["name", "mz", "rt", "file"]


def _format_number(x: float) -> str:
    return np.format_float_positional(float(x), trim="-")


def spectrum_id(mz: float, rt: float) -> str:
    """Coordinate-derived spectrum name, e.g. ``mz100.5rt50``."""
    return f"mz{_format_number(mz)}rt{_format_number(rt)}"


def dedupe_names(names: Sequence[str]) -> List[str]:
    """Keep the first occurrence of each name; suffix repeats with ``_1``, ``_2``, ..."""
    seen: Dict[str, int] = {}
    out: List[str] = []
    for name in names:
        k = seen.get(name, 0)
        out.append(name if k == 0 else f"{name}_{k}")
        seen[name] = k + 1
    return out


@dataclass
class SpectrumTable:
    info: pd.DataFrame  # columns: name, mz, rt, file
    peaks: List[np.ndarray]  # aligned with info rows

    def __len__(self) -> int:
        return len(self.info)

    @property
    def spectra(self) -> Dict[str, np.ndarray]:
        return dict(zip(self.info["name"].tolist(), self.peaks))

    @property
    def files(self) -> List[str]:
        return sorted(set(self.info["file"].astype(str)))


def build_spectrum_table(per_file: Sequence[tuple[str, Sequence[SpectrumRecord]]]) -> SpectrumTable:
    """Concatenate ``(file_name, records)`` pairs in the given order."""
    rows = []
    peaks: List[np.ndarray] = []
    for file_name, records in per_file:
        for rec in records:
            rows.append(
                {
                    "name": spectrum_id(rec.mz, rec.rt),
                    "mz": float(rec.mz),
                    "rt": float(rec.rt),
                    "file": str(file_name),
                }
            )
            peaks.append(np.asarray(rec.peaks, dtype=float).reshape(-1, 2))

    info = pd.DataFrame(rows, columns=INFO_COLUMNS)
    n_dup = int(info["name"].duplicated().sum())
    if n_dup:
        logger.debug(f"Renaming {n_dup} spectra with duplicated coordinates")
        info["name"] = dedupe_names(info["name"].tolist())
    return SpectrumTable(info=info.reset_index(drop=True), peaks=peaks)


def normalize_spectra(files: Sequence[Path | str], n_jobs: int = 1) -> SpectrumTable:
    """Read and combine spectrum files.

    Files are processed in sorted path order. With ``n_jobs > 1`` they are
    parsed in worker processes; results are still combined in that order, so
    the resulting names do not depend on which file finishes first.
    """
    paths = sorted(Path(f) for f in files)
    if n_jobs > 1 and len(paths) > 1:
        with ProcessPoolExecutor(max_workers=int(n_jobs)) as pool:
            parsed = list(pool.map(read_spectrum_file, paths))
    else:
        parsed = [read_spectrum_file(p) for p in paths]

    table = build_spectrum_table([(p.name, recs) for p, recs in zip(paths, parsed)])
    logger.info(f"Read {len(table)} MS2 spectra from {len(paths)} files")
    return table
