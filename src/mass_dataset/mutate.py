"""Operations that return an updated `MassDataset`."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence, Union

import numpy as np

from .checking import ObjectKind, check_column_name, check_object_class
from .config import Ms2MatchConfig
from .dataset import MassDataset
from .matching import mz_rt_match, resolve_matches
from .ms2_data import build_ms2_data, consolidate_ms2, ms2_group_key
from .spectra import normalize_spectra
from .spectra_io import NoSpectraFoundError, discover_spectrum_files


logger = logging.getLogger(__name__)


def mutate_ms2(
    dataset: MassDataset,
    column: str = "rp",
    polarity: str = "positive",
    mz_tol: float = 15.0,
    rt_tol: float = 30.0,
    path: Union[str, Path] = ".",
    *,
    mz_tol_unit: str = "ppm",
    n_jobs: int = 1,
) -> MassDataset:
    """Attach MS2 spectra found under `path` to the dataset's variables.

    Every mgf/mzML/mzXML file below `path` is read, each spectrum is matched
    to variables by precursor m/z (`mz_tol`, ppm by default) and RT
    (`rt_tol`, seconds), and each matched variable keeps the spectrum with
    the highest summed intensity of its top five fragments.

    The batch is stored under the sorted, ``;``-joined names of the files
    read. Rerunning on the same file set replaces that batch.

    Returns:
        The updated dataset, or `dataset` itself when no spectrum files are
        found or no variable matches a spectrum.
    """
    check_object_class(dataset, ObjectKind.MASS_DATASET)
    cfg = Ms2MatchConfig(
        column=column,
        polarity=polarity,
        mz_tol=mz_tol,
        rt_tol=rt_tol,
        mz_tol_unit=mz_tol_unit,
        path=str(path),
        n_jobs=n_jobs,
    ).validate()

    variable_info = dataset.variable_info
    missing = [c for c in ("mz", "rt") if c not in variable_info.columns]
    if missing:
        raise ValueError(f"variable_info must have columns {missing} to match MS2 spectra.")

    try:
        files = discover_spectrum_files(cfg.path)
    except NoSpectraFoundError as exc:
        logger.warning(str(exc))
        return dataset

    spectra = normalize_spectra(files, n_jobs=cfg.n_jobs)
    matches = mz_rt_match(
        variable_info[["mz", "rt"]].to_numpy(dtype=float),
        spectra.info[["mz", "rt"]].to_numpy(dtype=float),
        mz_tol=cfg.mz_tol,
        rt_tol=cfg.rt_tol,
        mz_tol_unit=cfg.mz_tol_unit,
    )
    if matches.empty:
        logger.info("No variables are matched with MS2 spectra.")
        return dataset

    logger.info(
        f"{matches['id1'].nunique()} out of {len(variable_info)} variables have MS2 spectra."
    )
    logger.info("Selecting the most intense MS2 spectrum for each variable...")
    resolved = resolve_matches(matches, spectra)

    batch = build_ms2_data(
        resolved,
        variable_info["variable_id"],
        spectra,
        column=cfg.column,
        polarity=cfg.polarity,
        mz_tol=cfg.mz_tol,
        rt_tol=cfg.rt_tol,
        mz_tol_unit=cfg.mz_tol_unit,
    )
    key = ms2_group_key(p.name for p in files)
    if key in dataset.ms2_data:
        logger.info(f"Replacing MS2 batch {key!r}")

    return dataset.with_ms2_data(consolidate_ms2(dataset.ms2_data, key, batch)).with_process_record(
        "mutate_ms2",
        {
            "column": cfg.column,
            "polarity": cfg.polarity,
            "ms1_ms2_match_mz_tol": cfg.mz_tol,
            "ms1_ms2_match_rt_tol": cfg.rt_tol,
            "mz_tol_unit": cfg.mz_tol_unit,
            "path": cfg.path,
        },
    )


def mutate_mean_intensity(
    dataset: MassDataset,
    according_to_samples: Union[str, Sequence[str]] = "all",
    na_rm: bool = True,
) -> MassDataset:
    """Add a per-variable mean intensity column to variable_info.

    `according_to_samples` selects the samples to average over ("all" for
    every sample). Unknown sample ids are ignored; the column is named
    ``mean_intensity`` or, if taken, ``mean_intensity.1``, ``.2``, ...
    """
    check_object_class(dataset, ObjectKind.MASS_DATASET)
    sample_id = dataset.get_sample_id()

    if isinstance(according_to_samples, str):
        according_to_samples = [according_to_samples]
    requested = {str(s) for s in according_to_samples}
    if "all" in requested:
        selected = sample_id
    else:
        selected = [s for s in sample_id if s in requested]
    if not selected:
        raise ValueError("None of the samples in according_to_samples are in the dataset.")

    values = dataset.expression_data.loc[:, selected].to_numpy(dtype=float)
    if na_rm:
        with np.errstate(invalid="ignore"):
            counts = np.sum(~np.isnan(values), axis=1)
            mean_intensity = np.where(counts > 0, np.nansum(values, axis=1) / np.maximum(counts, 1), np.nan)
    else:
        mean_intensity = values.mean(axis=1)

    name = check_column_name(dataset.variable_info.columns, "mean_intensity")
    return dataset.with_variable_column(name, mean_intensity).with_process_record(
        "mutate_mean_intensity",
        {"according_to_samples": list(selected), "na_rm": bool(na_rm)},
    )
