from __future__ import annotations

import re
from enum import Enum

import numpy as np


# m/z values below this are treated as this value when converting an absolute
# m/z difference to ppm, so low-mass features get a usable window.
MZ_ERROR_FLOOR = 400.0


class MzTolUnit(str, Enum):
    PPM = "ppm"
    DA = "da"


def _normalize_str(x: object) -> str:
    return str(x or "").strip()


def canonical_column(raw: object) -> str:
    """Map a chromatography label to ``rp`` or ``hilic``."""
    s = _normalize_str(raw).lower()
    if "hilic" in s:
        return "hilic"
    if s == "rp" or ("reverse" in s) or re.search(r"\brplc\b", s) or ("c18" in s):
        return "rp"
    raise ValueError(f"Unsupported column {raw!r}; expected 'rp' or 'hilic'.")


def canonical_polarity(raw: object) -> str:
    s = _normalize_str(raw).lower()
    if s.startswith("pos") or s == "+":
        return "positive"
    if s.startswith("neg") or s == "-":
        return "negative"
    raise ValueError(f"Unsupported polarity {raw!r}; expected 'positive' or 'negative'.")


def mz_window(mz: np.ndarray, tol: float, unit: MzTolUnit | str = MzTolUnit.PPM) -> np.ndarray:
    """Half-width of the m/z window around each reference m/z, in Da."""
    mz = np.asarray(mz, dtype=float)
    if MzTolUnit(unit) is MzTolUnit.DA:
        return np.full(mz.shape, float(tol))
    return float(tol) * np.maximum(mz, MZ_ERROR_FLOOR) / 1e6


def mz_error(mz_ref: np.ndarray, mz: np.ndarray, unit: MzTolUnit | str = MzTolUnit.PPM) -> np.ndarray:
    """Absolute m/z error of `mz` against `mz_ref`, in ppm or Da."""
    mz_ref = np.asarray(mz_ref, dtype=float)
    diff = np.abs(np.asarray(mz, dtype=float) - mz_ref)
    if MzTolUnit(unit) is MzTolUnit.DA:
        return diff
    return diff * 1e6 / np.maximum(mz_ref, MZ_ERROR_FLOOR)
