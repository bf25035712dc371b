"""Readers for MS2 spectrum files.

Each supported format reads a file into the same shape: a list of
`SpectrumRecord` with the precursor coordinate (m/z, retention time in
seconds) and an ``(n, 2)`` peak array of (m/z, intensity). mzML and mzXML
files are reduced to their MS2+ scans so they look like MGF input.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import numpy as np
from pyteomics import mgf, mzml, mzxml


logger = logging.getLogger(__name__)


class NoSpectraFoundError(FileNotFoundError):
    """Raised when a directory holds no recognised spectrum files."""


@dataclass(frozen=True)
class SpectrumRecord:
    mz: float
    rt: float
    peaks: np.ndarray


def _peak_array(mz: Any, intensity: Any) -> np.ndarray:
    mz = np.asarray(mz if mz is not None else [], dtype=float)
    intensity = np.asarray(intensity if intensity is not None else [], dtype=float)
    return np.column_stack([mz, intensity]) if mz.size else np.empty((0, 2), dtype=float)


def _to_seconds(value: Any, default_unit: str = "second") -> float:
    """Convert a retention time (pyteomics unitfloat, ISO duration or number) to seconds."""
    if value is None:
        return float("nan")
    if isinstance(value, str):
        m = re.match(r"PT([\d.]+)([SM])", value.strip())
        if m:
            t = float(m.group(1))
            return t * 60.0 if m.group(2) == "M" else t
        value = float(value)
    unit = str(getattr(value, "unit_info", None) or default_unit).lower()
    t = float(value)
    if unit.startswith("min") or unit == "uo:0000031":
        return t * 60.0
    return t


def _first(x: Any) -> Any:
    if isinstance(x, (list, tuple)):
        return x[0] if x else None
    return x


def read_mgf(path: Path) -> List[SpectrumRecord]:
    records: List[SpectrumRecord] = []
    with mgf.read(str(path), use_index=False) as reader:
        for spectrum in reader:
            if spectrum is None:
                continue
            params = spectrum.get("params", {})
            precursor_mz = _first(params.get("pepmass"))
            if precursor_mz is None:
                continue
            rt_raw = params.get("rtinseconds")
            if rt_raw is None:
                rt_raw = params.get("rt", params.get("retentiontime"))
            rt = _to_seconds(_first(rt_raw))
            peaks = _peak_array(spectrum.get("m/z array"), spectrum.get("intensity array"))
            records.append(SpectrumRecord(mz=float(precursor_mz), rt=rt, peaks=peaks))
    return records


def _mzml_precursor_mz(spectrum: Dict[str, Any]) -> Optional[float]:
    precursors = spectrum.get("precursorList", {}).get("precursor", [])
    prec = _first(precursors)
    if not prec:
        return None
    ion = _first(prec.get("selectedIonList", {}).get("selectedIon", []))
    if not ion or ion.get("selected ion m/z") is None:
        return None
    return float(ion["selected ion m/z"])


def _mzml_rt(spectrum: Dict[str, Any]) -> float:
    scan = _first(spectrum.get("scanList", {}).get("scan", []))
    if scan and scan.get("scan start time") is not None:
        return _to_seconds(scan["scan start time"], default_unit="minute")
    return _to_seconds(spectrum.get("scan start time"), default_unit="minute")


def read_mzml(path: Path) -> List[SpectrumRecord]:
    records: List[SpectrumRecord] = []
    with mzml.read(str(path)) as reader:
        for spectrum in reader:
            if int(spectrum.get("ms level", 1)) < 2:
                continue
            precursor_mz = _mzml_precursor_mz(spectrum)
            if precursor_mz is None:
                continue
            peaks = _peak_array(spectrum.get("m/z array"), spectrum.get("intensity array"))
            records.append(SpectrumRecord(mz=precursor_mz, rt=_mzml_rt(spectrum), peaks=peaks))
    return records


def read_mzxml(path: Path) -> List[SpectrumRecord]:
    records: List[SpectrumRecord] = []
    with mzxml.read(str(path)) as reader:
        for spectrum in reader:
            if int(spectrum.get("msLevel", 1)) < 2:
                continue
            prec = _first(spectrum.get("precursorMz", []))
            if not prec or prec.get("precursorMz") is None:
                continue
            rt = _to_seconds(spectrum.get("retentionTime"), default_unit="minute")
            peaks = _peak_array(spectrum.get("m/z array"), spectrum.get("intensity array"))
            records.append(SpectrumRecord(mz=float(prec["precursorMz"]), rt=rt, peaks=peaks))
    return records


class SpectrumFormat(Enum):
    MGF = "mgf"
    MZML = "mzml"
    MZXML = "mzxml"

    @classmethod
    def from_path(cls, path: Path | str) -> "SpectrumFormat":
        suffix = Path(path).suffix.lower().lstrip(".")
        try:
            return cls(suffix)
        except ValueError:
            raise ValueError(f"Unsupported spectrum file type {Path(path).suffix!r}: {path}") from None

    @property
    def reader(self) -> Callable[[Path], List[SpectrumRecord]]:
        return _READERS[self]


_READERS: Dict[SpectrumFormat, Callable[[Path], List[SpectrumRecord]]] = {
    SpectrumFormat.MGF: read_mgf,
    SpectrumFormat.MZML: read_mzml,
    SpectrumFormat.MZXML: read_mzxml,
}


def is_spectrum_file(path: Path) -> bool:
    return path.is_file() and path.suffix.lower().lstrip(".") in {f.value for f in SpectrumFormat}


def discover_spectrum_files(path: Path | str = ".") -> List[Path]:
    """Recursively list spectrum files under `path`, sorted by path."""
    root = Path(path)
    files = sorted(p for p in root.rglob("*") if is_spectrum_file(p)) if root.is_dir() else []
    if not files:
        raise NoSpectraFoundError(f"No MS2 in {root}")
    logger.debug(f"Found {len(files)} spectrum files under {root}")
    return files


def read_spectrum_file(path: Path | str) -> List[SpectrumRecord]:
    """Read one spectrum file, dispatching on its format."""
    path = Path(path)
    fmt = SpectrumFormat.from_path(path)
    records = fmt.reader(path)
    logger.debug(f"Read {len(records)} spectra from {path.name}")
    return records
