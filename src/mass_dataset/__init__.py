"""
mass_dataset: a checked container for untargeted metabolomics data with MS1/MS2 spectrum matching.
"""

__version__ = "0.1.0"

from .checking import (
    ALL_GOOD,
    DatasetCheckError,
    ObjectClassError,
    ObjectKind,
    check_column_name,
    check_mass_dataset,
    check_object_class,
)
from .config import Ms2MatchConfig, load_config
from .dataset import ColumnNotes, MassDataset, create_mass_dataset
from .matching import mz_rt_match, resolve_matches, spectrum_score
from .ms2_data import Ms2Data, consolidate_ms2, ms2_group_key
from .mutate import mutate_mean_intensity, mutate_ms2
from .provenance import ProcessLog, ProcessRecord
from .spectra import SpectrumTable, dedupe_names, normalize_spectra, spectrum_id
from .spectra_io import NoSpectraFoundError, SpectrumFormat, discover_spectrum_files, read_spectrum_file

__all__ = [
    "ALL_GOOD",
    "ColumnNotes",
    "DatasetCheckError",
    "MassDataset",
    "Ms2Data",
    "Ms2MatchConfig",
    "NoSpectraFoundError",
    "ObjectClassError",
    "ObjectKind",
    "ProcessLog",
    "ProcessRecord",
    "SpectrumFormat",
    "SpectrumTable",
    "check_column_name",
    "check_mass_dataset",
    "check_object_class",
    "consolidate_ms2",
    "create_mass_dataset",
    "dedupe_names",
    "discover_spectrum_files",
    "load_config",
    "ms2_group_key",
    "mutate_mean_intensity",
    "mutate_ms2",
    "mz_rt_match",
    "normalize_spectra",
    "read_spectrum_file",
    "resolve_matches",
    "spectrum_id",
    "spectrum_score",
    "__version__",
]
