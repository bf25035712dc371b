"""Structural checks for mass datasets.

`check_mass_dataset` inspects the raw tables and reports the first rule they
violate as a message string; it never raises. `check_object_class` is the
precondition gate used by every mutating operation and raises on mismatch.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Optional, Union

import pandas as pd


ALL_GOOD = "all good."


class ObjectKind(str, Enum):
    MASS_DATASET = "mass_dataset"
    PROCESS_RECORD = "process_record"
    DATABASE = "database"
    MET_IDENTIFY_RESULT = "met_identify_result"
    MS2_DATA = "ms2_data"


class ObjectClassError(TypeError):
    """Raised when an operation receives an object of the wrong kind."""


class DatasetCheckError(ValueError):
    """Raised when tables handed to the dataset constructor fail the structural checks."""


def _is_table(obj: Any) -> bool:
    return isinstance(obj, pd.DataFrame)


def _labels(values: Iterable[Any]) -> list:
    return [str(v) for v in values]


def _check_note(note: pd.DataFrame, label: str) -> Optional[str]:
    if not _is_table(note):
        return f"error: {label} must be a data.frame."
    if "name" not in note.columns:
        return f"error: {label} must have column: name."
    if "meaning" not in note.columns:
        return f"error: {label} must have column: meaning"
    return None


def check_mass_dataset(
    expression_data: Optional[pd.DataFrame] = None,
    sample_info: Optional[pd.DataFrame] = None,
    variable_info: Optional[pd.DataFrame] = None,
    sample_info_note: Optional[pd.DataFrame] = None,
    variable_info_note: Optional[pd.DataFrame] = None,
) -> str:
    """Validate the tables of a mass dataset.

    Rules are checked in a fixed order and the first failure is returned:

    1. expression_data, sample_info and variable_info are all provided
    2. expression_data is a table
    3. variable_info is a table with a unique, non-numeric ``variable_id``
    4. sample_info is a table with a unique ``sample_id`` and a ``class``
    5. supplied note tables have ``name`` and ``meaning`` columns
    6. expression_data columns equal ``sample_info.sample_id`` (same order)
    7. expression_data rows equal ``variable_info.variable_id`` (same order)
    8. sample_info_note ``name`` equals the sample_info columns (same order)
    9. variable_info_note ``name`` equals the variable_info columns (same order)

    Returns:
        ``"all good."`` or an ``"error: ..."`` message for the first violated rule.
    """
    if expression_data is None or sample_info is None or variable_info is None:
        return "error: expression_data, sample_info and variable_info should be provided."

    if not _is_table(expression_data):
        return "error: expression_data must be a data.frame."

    if not _is_table(variable_info):
        return "error: variable_info must be a data.frame."
    if "variable_id" not in variable_info.columns:
        return "error: variable_info must have variable_id."
    if variable_info["variable_id"].duplicated().any():
        return "error: variable_id has duplicated items."
    if pd.api.types.is_numeric_dtype(variable_info["variable_id"]):
        return "error: variable_id must be character."

    if not _is_table(sample_info):
        return "error: sample_info must be a data.frame."
    if "sample_id" not in sample_info.columns:
        return "error: sample_info must have sample_id."
    if sample_info["sample_id"].duplicated().any():
        return "error: sample_id has duplicated items."
    if "class" not in sample_info.columns:
        return "error: sample_info must have class."

    if sample_info_note is not None:
        msg = _check_note(sample_info_note, "sample_info_note")
        if msg:
            return msg
    if variable_info_note is not None:
        msg = _check_note(variable_info_note, "variable_info_note")
        if msg:
            return msg

    if expression_data.shape[1] != len(sample_info):
        return "error: expression_data's column number should be same with sample_info's row number."
    if _labels(expression_data.columns) != _labels(sample_info["sample_id"]):
        return "error: expression_data's column names must be identical with sample_info's sample_id."

    if expression_data.shape[0] != len(variable_info):
        return "error: expression_data's row number should be same with variable_info's row number."
    if _labels(expression_data.index) != _labels(variable_info["variable_id"]):
        return "error: expression_data's row names must be identical with variable_info's variable_id"

    if sample_info_note is not None:
        if sample_info.shape[1] != len(sample_info_note):
            return "error: sample_info's column number should be same with sample_info_note's row number."
        if _labels(sample_info.columns) != _labels(sample_info_note["name"]):
            return "error: sample_info's column names must be identical with sample_info_note's name."

    if variable_info_note is not None:
        if variable_info.shape[1] != len(variable_info_note):
            return "error: variable_info's column number should be same with variable_info_note's row number."
        if _labels(variable_info.columns) != _labels(variable_info_note["name"]):
            return "error: variable_info's column names must be identical with variable_info_note's name."

    return ALL_GOOD


def _kind_types(kind: ObjectKind) -> tuple:
    # Kinds implemented in this package resolve to classes; the remaining
    # kinds come from other packages and are recognised by their `object_kind`.
    from .dataset import MassDataset
    from .ms2_data import Ms2Data
    from .provenance import ProcessRecord

    return {
        ObjectKind.MASS_DATASET: (MassDataset,),
        ObjectKind.MS2_DATA: (Ms2Data,),
        ObjectKind.PROCESS_RECORD: (ProcessRecord,),
    }.get(kind, ())


def check_object_class(obj: Any, kind: Union[ObjectKind, str]) -> None:
    """Raise `ObjectClassError` unless `obj` is of the given kind."""
    try:
        kind = ObjectKind(kind)
    except ValueError:
        choices = ", ".join(k.value for k in ObjectKind)
        raise ValueError(f"Unknown object kind {kind!r}; expected one of: {choices}") from None

    types = _kind_types(kind)
    if types:
        ok = isinstance(obj, types)
    else:
        ok = getattr(obj, "object_kind", None) == kind
    if not ok:
        raise ObjectClassError(f"Only support {kind.value}")


def check_column_name(columns: Iterable[Any], column_name: str) -> str:
    """Return `column_name`, suffixed ``.1``, ``.2``, ... if already taken."""
    taken = {str(c) for c in columns}
    if column_name not in taken:
        return column_name
    i = 1
    while f"{column_name}.{i}" in taken:
        i += 1
    return f"{column_name}.{i}"
