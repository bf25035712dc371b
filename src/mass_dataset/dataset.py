"""The mass dataset container.

A `MassDataset` couples an expression matrix (rows = variables/features,
columns = samples) with its sample and variable tables, the notes that
describe the columns of those tables, the MS2 match batches and the
processing history. Instances are built through `create_mass_dataset`, which
runs the structural checks first, and are never modified in place: every
operation returns a new instance.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, ClassVar, Dict, Iterator, List, Mapping, Optional, Sequence

import pandas as pd

from .checking import ALL_GOOD, DatasetCheckError, ObjectKind, check_mass_dataset
from .ms2_data import Ms2Data
from .provenance import ProcessLog


class ColumnNotes:
    """Ordered column name -> meaning map for a sample or variable table."""

    def __init__(self, notes: Optional[Mapping[str, str]] = None):
        self._notes: Dict[str, str] = {str(k): str(v) for k, v in (notes or {}).items()}

    @classmethod
    def from_frame(cls, note: pd.DataFrame) -> "ColumnNotes":
        return cls(dict(zip(note["name"].astype(str), note["meaning"].astype(str))))

    @classmethod
    def from_columns(cls, columns: Sequence[Any]) -> "ColumnNotes":
        return cls({str(c): str(c) for c in columns})

    def add(self, name: str, meaning: Optional[str] = None) -> "ColumnNotes":
        notes = dict(self._notes)
        notes[str(name)] = str(meaning if meaning is not None else name)
        return ColumnNotes(notes)

    @property
    def names(self) -> List[str]:
        return list(self._notes)

    def __getitem__(self, name: str) -> str:
        return self._notes[name]

    def __contains__(self, name: object) -> bool:
        return name in self._notes

    def __iter__(self) -> Iterator[str]:
        return iter(self._notes)

    def __len__(self) -> int:
        return len(self._notes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ColumnNotes):
            return NotImplemented
        return list(self._notes.items()) == list(other._notes.items())

    def __repr__(self) -> str:
        return f"ColumnNotes({self._notes!r})"

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({"name": list(self._notes), "meaning": list(self._notes.values())})


@dataclass(frozen=True, eq=False)
class MassDataset:
    object_kind: ClassVar[ObjectKind] = ObjectKind.MASS_DATASET

    expression_data: pd.DataFrame
    sample_info: pd.DataFrame
    variable_info: pd.DataFrame
    sample_info_note: ColumnNotes
    variable_info_note: ColumnNotes
    ms2_data: Dict[str, Ms2Data] = field(default_factory=dict)
    process_info: ProcessLog = field(default_factory=ProcessLog)

    def __repr__(self) -> str:
        n_var, n_sample = self.expression_data.shape
        ops = ", ".join(self.process_info) or "none"
        return (
            f"MassDataset({n_var} variables x {n_sample} samples; "
            f"ms2 batches: {len(self.ms2_data)}; processed by: {ops})"
        )

    @property
    def shape(self) -> tuple:
        return self.expression_data.shape

    def check(self) -> str:
        """Re-run the structural checks on the current tables."""
        return check_mass_dataset(
            self.expression_data,
            self.sample_info,
            self.variable_info,
            self.sample_info_note.to_frame(),
            self.variable_info_note.to_frame(),
        )

    def get_sample_id(self) -> List[str]:
        return self.sample_info["sample_id"].astype(str).tolist()

    def get_variable_id(self) -> List[str]:
        return self.variable_info["variable_id"].astype(str).tolist()

    def extract_sample_info_note(self) -> pd.DataFrame:
        return self.sample_info_note.to_frame()

    def extract_variable_info_note(self) -> pd.DataFrame:
        return self.variable_info_note.to_frame()

    def extract_ms2_data(self) -> pd.DataFrame:
        """All MS2 matches, one row per (batch, variable)."""
        frames = []
        for key, batch in self.ms2_data.items():
            frame = batch.matches.copy()
            frame.insert(0, "ms2_group", key)
            frame["column"] = batch.column
            frame["polarity"] = batch.polarity
            frames.append(frame)
        if not frames:
            return pd.DataFrame(
                columns=["ms2_group", "variable_id", "ms2_spectrum_id", "ms2_mz", "ms2_rt", "ms2_file", "column", "polarity"]
            )
        return pd.concat(frames, ignore_index=True)

    def with_variable_column(self, name: str, values: Sequence[Any], meaning: Optional[str] = None) -> "MassDataset":
        """Return a copy with a new variable_info column and its note, both appended last."""
        if name in self.variable_info.columns:
            raise ValueError(f"variable_info already has a column named {name!r}")
        variable_info = self.variable_info.copy()
        variable_info[name] = list(values)
        notes = self.variable_info_note.add(name, meaning)
        return replace(self, variable_info=variable_info[notes.names], variable_info_note=notes)

    def with_ms2_data(self, ms2_data: Mapping[str, Ms2Data]) -> "MassDataset":
        return replace(self, ms2_data=dict(ms2_data))

    def with_process_record(self, operation: str, parameter: Mapping[str, Any]) -> "MassDataset":
        return replace(self, process_info=self.process_info.record(operation, parameter))


def create_mass_dataset(
    expression_data: pd.DataFrame,
    sample_info: pd.DataFrame,
    variable_info: pd.DataFrame,
    sample_info_note: Optional[pd.DataFrame] = None,
    variable_info_note: Optional[pd.DataFrame] = None,
) -> MassDataset:
    """Build a dataset from its tables after checking them.

    Missing note tables default to ``meaning == name`` for every column.

    Raises:
        DatasetCheckError: when `check_mass_dataset` reports a problem.
    """
    msg = check_mass_dataset(expression_data, sample_info, variable_info, sample_info_note, variable_info_note)
    if msg != ALL_GOOD:
        raise DatasetCheckError(msg)

    expression_data = expression_data.copy()
    expression_data.index = expression_data.index.astype(str)
    expression_data.columns = [str(c) for c in expression_data.columns]
    sample_info = sample_info.reset_index(drop=True).copy()
    sample_info.columns = [str(c) for c in sample_info.columns]
    variable_info = variable_info.reset_index(drop=True).copy()
    variable_info.columns = [str(c) for c in variable_info.columns]

    return MassDataset(
        expression_data=expression_data,
        sample_info=sample_info,
        variable_info=variable_info,
        sample_info_note=(
            ColumnNotes.from_frame(sample_info_note)
            if sample_info_note is not None
            else ColumnNotes.from_columns(sample_info.columns)
        ),
        variable_info_note=(
            ColumnNotes.from_frame(variable_info_note)
            if variable_info_note is not None
            else ColumnNotes.from_columns(variable_info.columns)
        ),
    )
