"""MS1 feature to MS2 spectrum matching.

`mz_rt_match` returns every (feature, spectrum) pair inside the m/z and RT
windows. `resolve_matches` then keeps one spectrum per feature, preferring
the spectrum whose five most intense fragments sum highest.
"""
from __future__ import annotations

from typing import List, Sequence

import numpy as np
import pandas as pd

from .lcms_utils import MzTolUnit, mz_error, mz_window
from .spectra import SpectrumTable


MATCH_COLUMNS = ["id1", "id2", "mz1", "mz2", "mz_error", "rt1", "rt2", "rt_error"]

TOP_N_PEAKS = 5


def _as_points(data) -> np.ndarray:
    arr = np.asarray(data, dtype=float)
    if arr.size == 0:
        return np.empty((0, 2), dtype=float)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise ValueError("Expected an (n, 2) array of (mz, rt) coordinates.")
    return arr


def mz_rt_match(
    data1,
    data2,
    mz_tol: float,
    rt_tol: float = 30.0,
    mz_tol_unit: MzTolUnit | str = MzTolUnit.PPM,
) -> pd.DataFrame:
    """All index pairs whose m/z and RT differences fall within tolerance.

    Args:
        data1: (n1, 2) reference coordinates (mz, rt), e.g. MS1 features.
        data2: (n2, 2) query coordinates (mz, rt), e.g. MS2 precursors.
        mz_tol: m/z tolerance in `mz_tol_unit` (ppm against data1's m/z, or Da).
        rt_tol: absolute RT tolerance, same unit as the RT values.

    Returns:
        DataFrame with columns ``id1, id2, mz1, mz2, mz_error, rt1, rt2, rt_error``
        ordered by id1 then id2. Empty (not an error) when nothing matches.
    """
    p1 = _as_points(data1)
    p2 = _as_points(data2)
    if len(p1) == 0 or len(p2) == 0:
        return pd.DataFrame(columns=MATCH_COLUMNS)

    mz2 = p2[:, 0]
    order = np.argsort(mz2, kind="stable")
    mz2_sorted = mz2[order]
    span = mz_window(p1[:, 0], mz_tol, mz_tol_unit)
    # widened slightly so boundary pairs survive rounding; exact test below
    pad = 1e-9 * np.maximum(np.abs(p1[:, 0]), 1.0)
    left = np.searchsorted(mz2_sorted, p1[:, 0] - span - pad, side="left")
    right = np.searchsorted(mz2_sorted, p1[:, 0] + span + pad, side="right")

    id1_parts: List[np.ndarray] = []
    id2_parts: List[np.ndarray] = []
    for i in range(len(p1)):
        if right[i] <= left[i]:
            continue
        js = np.sort(order[left[i]:right[i]])
        mz_err = mz_error(p1[i, 0], p2[js, 0], mz_tol_unit)
        rt_err = np.abs(p1[i, 1] - p2[js, 1])
        keep = js[(mz_err <= mz_tol) & (rt_err <= rt_tol)]
        if keep.size:
            id1_parts.append(np.full(keep.size, i, dtype=int))
            id2_parts.append(keep)

    if not id1_parts:
        return pd.DataFrame(columns=MATCH_COLUMNS)

    id1 = np.concatenate(id1_parts)
    id2 = np.concatenate(id2_parts)
    return pd.DataFrame(
        {
            "id1": id1,
            "id2": id2,
            "mz1": p1[id1, 0],
            "mz2": p2[id2, 0],
            "mz_error": mz_error(p1[id1, 0], p2[id2, 0], mz_tol_unit),
            "rt1": p1[id1, 1],
            "rt2": p2[id2, 1],
            "rt_error": np.abs(p1[id1, 1] - p2[id2, 1]),
        }
    )


def spectrum_score(peaks: np.ndarray, top_n: int = TOP_N_PEAKS) -> float:
    """Summed intensity of the `top_n` most intense peaks."""
    peaks = np.asarray(peaks, dtype=float).reshape(-1, 2)
    if peaks.shape[0] == 0:
        return 0.0
    # missing intensities never count towards the top peaks
    intensity = np.sort(np.nan_to_num(peaks[:, 1], nan=0.0))[::-1]
    return float(intensity[:top_n].sum())


def resolve_matches(matches: pd.DataFrame, spectra: SpectrumTable) -> pd.DataFrame:
    """Collapse many-to-many matches to one spectrum per feature.

    Features keep the order in which they first appear in `matches`. A
    feature with several candidate spectra gets the one with the highest
    `spectrum_score`; ties go to the candidate listed first.

    Returns:
        DataFrame with columns ``id1, id2, ms2_spectrum_id``.
    """
    if matches.empty:
        return pd.DataFrame(columns=["id1", "id2", "ms2_spectrum_id"])

    names = spectra.info["name"].tolist()
    rows = []
    for id1, group in matches.groupby("id1", sort=False):
        candidates: Sequence[int] = group["id2"].astype(int).tolist()
        if len(candidates) == 1:
            best = candidates[0]
        else:
            scores = [spectrum_score(spectra.peaks[j]) for j in candidates]
            best = candidates[int(np.argmax(scores))]
        rows.append({"id1": int(id1), "id2": int(best), "ms2_spectrum_id": names[best]})
    return pd.DataFrame(rows, columns=["id1", "id2", "ms2_spectrum_id"])
