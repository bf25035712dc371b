"""Append-only processing history for mass datasets.

Every mutating operation records the parameters it ran with. Records are
grouped by operation name; a second invocation of the same operation adds a
new record after the first one instead of replacing it.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, Iterator, Mapping, Optional, Tuple

import pandas as pd

from .checking import ObjectKind


@dataclass(frozen=True)
class ProcessRecord:
    """One recorded invocation of a mutating operation."""

    object_kind: ClassVar[ObjectKind] = ObjectKind.PROCESS_RECORD

    function_name: str
    parameter: Dict[str, Any] = field(default_factory=dict)
    time: datetime = field(default_factory=datetime.now)
    package_name: str = "mass_dataset"


class ProcessLog:
    """Operation name -> ordered records. Value semantics: `record` returns a new log."""

    def __init__(self, records: Optional[Mapping[str, Tuple[ProcessRecord, ...]]] = None):
        self._records: Dict[str, Tuple[ProcessRecord, ...]] = {
            str(k): tuple(v) for k, v in (records or {}).items()
        }

    def record(
        self,
        operation: str,
        parameter: Optional[Mapping[str, Any]] = None,
        time: Optional[datetime] = None,
    ) -> "ProcessLog":
        entry = ProcessRecord(
            function_name=f"{operation}()",
            parameter=dict(parameter or {}),
            time=time if time is not None else datetime.now(),
        )
        records = dict(self._records)
        records[operation] = records.get(operation, ()) + (entry,)
        return ProcessLog(records)

    def __getitem__(self, operation: str) -> Tuple[ProcessRecord, ...]:
        return self._records[operation]

    def __contains__(self, operation: object) -> bool:
        return operation in self._records

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProcessLog):
            return NotImplemented
        return self._records == other._records

    def __repr__(self) -> str:
        counts = ", ".join(f"{k}: {len(v)}" for k, v in self._records.items())
        return f"ProcessLog({{{counts}}})"

    def to_frame(self) -> pd.DataFrame:
        """Flatten to one row per record, in operation then invocation order."""
        rows = []
        for operation, entries in self._records.items():
            for entry in entries:
                rows.append(
                    {
                        "operation": operation,
                        "function_name": entry.function_name,
                        "package_name": entry.package_name,
                        "time": entry.time,
                        "parameter": dict(entry.parameter),
                    }
                )
        return pd.DataFrame(rows, columns=["operation", "function_name", "package_name", "time", "parameter"])
