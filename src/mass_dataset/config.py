from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict

import yaml

from .lcms_utils import MzTolUnit, canonical_column, canonical_polarity


@dataclass(frozen=True)
class Ms2MatchConfig:
    """Settings for attaching MS2 spectra to MS1 features."""

    column: str = "rp"  # "rp" | "hilic"
    polarity: str = "positive"  # "positive" | "negative"
    mz_tol: float = 15.0
    # RT tolerance in seconds (absolute difference).
    rt_tol: float = 30.0
    mz_tol_unit: str = "ppm"  # "ppm" | "da"
    path: str = "."
    # Worker processes used to parse spectrum files; 1 parses in-process.
    n_jobs: int = 1

    def validate(self) -> "Ms2MatchConfig":
        """Return a copy with canonical tags; raise ValueError on bad values."""
        if not (float(self.mz_tol) > 0):
            raise ValueError("mz_tol must be > 0.")
        if not (float(self.rt_tol) > 0):
            raise ValueError("rt_tol must be > 0.")
        if int(self.n_jobs) < 1:
            raise ValueError("n_jobs must be >= 1.")
        return replace(
            self,
            column=canonical_column(self.column),
            polarity=canonical_polarity(self.polarity),
            mz_tol=float(self.mz_tol),
            rt_tol=float(self.rt_tol),
            mz_tol_unit=MzTolUnit(str(self.mz_tol_unit).lower()).value,
            path=str(self.path),
            n_jobs=int(self.n_jobs),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_config(path: Path | str) -> Ms2MatchConfig:
    """Load an `Ms2MatchConfig` from YAML or JSON.

    The file holds a mapping of config fields, either at the top level or
    under an ``ms2`` key.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)

    suffix = path.suffix.lower().strip()
    if suffix in {".yaml", ".yml"}:
        with open(path, "r", encoding="utf-8") as handle:
            obj = yaml.safe_load(handle)
    elif suffix == ".json":
        obj = json.loads(path.read_text(encoding="utf-8"))
    else:
        raise ValueError(f"Unsupported config type {suffix!r}; expected .yaml/.yml or .json")

    if obj is None:
        obj = {}
    if isinstance(obj, dict) and isinstance(obj.get("ms2"), dict):
        obj = obj["ms2"]
    if not isinstance(obj, dict):
        raise ValueError("Config must be a mapping of Ms2MatchConfig fields.")

    known = {f.name for f in fields(Ms2MatchConfig)}
    unknown = sorted(set(obj) - known)
    if unknown:
        raise ValueError(f"Unknown config keys: {unknown}")
    return Ms2MatchConfig(**obj).validate()
