import logging
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from mass_dataset import (
    ALL_GOOD,
    ObjectClassError,
    create_mass_dataset,
    mutate_mean_intensity,
    mutate_ms2,
)


def _write_mgf(path: Path, spectra: list) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = []
    for i, (mz, rt, peaks) in enumerate(spectra):
        lines += ["BEGIN IONS", f"TITLE=spec{i}", f"PEPMASS={mz}", f"RTINSECONDS={rt}"]
        lines += [f"{p_mz} {p_int}" for p_mz, p_int in peaks]
        lines.append("END IONS")
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def _make_dataset():
    expression_data = pd.DataFrame(
        {"S1": [10.0, 20.0, np.nan], "S2": [30.0, 40.0, 6.0], "S3": [50.0, 60.0, 9.0]},
        index=["F1", "F2", "F3"],
    )
    sample_info = pd.DataFrame({"sample_id": ["S1", "S2", "S3"], "class": ["QC", "Subject", "Blank"]})
    variable_info = pd.DataFrame(
        {"variable_id": ["F1", "F2", "F3"], "mz": [100.0, 250.0, 500.0], "rt": [50.0, 120.0, 300.0]}
    )
    return create_mass_dataset(expression_data, sample_info, variable_info)


def test_mutate_ms2_attaches_best_spectrum_per_variable(tmp_path):
    _write_mgf(
        tmp_path / "ms2" / "QC_1.mgf",
        [
            (100.0005, 52.0, [(50.0, 40.0), (60.0, 30.0), (70.0, 25.0)]),  # 95
            (100.0008, 48.0, [(50.0, 100.0), (60.0, 20.0)]),  # 120
            (250.001, 121.0, [(80.0, 5.0)]),
            (900.0, 10.0, [(80.0, 5.0)]),
        ],
    )
    dataset = _make_dataset()
    out = mutate_ms2(dataset, column="rp", polarity="positive", path=tmp_path / "ms2")

    assert list(out.ms2_data) == ["QC_1.mgf"]
    batch = out.ms2_data["QC_1.mgf"]
    assert (batch.column, batch.polarity, batch.mz_tol, batch.rt_tol) == ("rp", "positive", 15.0, 30.0)
    assert batch.variable_id == ["F1", "F2"]
    assert batch.ms2_spectrum_id == ["mz100.0008rt48", "mz250.001rt121"]
    assert batch.matches["ms2_rt"].tolist() == [48.0, 121.0]
    assert batch.ms2_file == ["QC_1.mgf", "QC_1.mgf"]
    np.testing.assert_allclose(batch.spectrum_for("F1"), [[50.0, 100.0], [60.0, 20.0]])

    assert out.check() == ALL_GOOD
    assert dataset.ms2_data == {}
    assert "mutate_ms2" not in dataset.process_info


def test_same_file_set_replaces_and_new_file_set_appends(tmp_path):
    run1 = tmp_path / "run1"
    run2 = tmp_path / "run2"
    _write_mgf(run1 / "b.mgf", [(100.0, 50.0, [(1.0, 1.0)])])
    _write_mgf(run1 / "a.mgf", [(250.0, 120.0, [(1.0, 1.0)])])
    _write_mgf(run2 / "c.mgf", [(500.0, 300.0, [(1.0, 1.0)])])

    dataset = _make_dataset()
    once = mutate_ms2(dataset, path=run1)
    twice = mutate_ms2(once, path=run1, rt_tol=10)
    assert list(twice.ms2_data) == ["a.mgf;b.mgf"]
    assert twice.ms2_data["a.mgf;b.mgf"].rt_tol == 10.0

    third = mutate_ms2(twice, column="hilic", polarity="negative", path=run2)
    assert list(third.ms2_data) == ["a.mgf;b.mgf", "c.mgf"]
    assert third.ms2_data["c.mgf"].variable_id == ["F3"]
    assert third.ms2_data["c.mgf"].polarity == "negative"

    records = third.process_info["mutate_ms2"]
    assert len(records) == 3
    assert [r.parameter["ms1_ms2_match_rt_tol"] for r in records] == [30.0, 10.0, 30.0]
    assert records[0].function_name == "mutate_ms2()"


def test_no_matches_returns_dataset_unchanged_with_message(tmp_path, caplog):
    _write_mgf(tmp_path / "far.mgf", [(100.0, 20000.0, [(1.0, 1.0)]), (250.0, 15000.0, [(1.0, 1.0)])])
    dataset = _make_dataset()
    with caplog.at_level(logging.INFO, logger="mass_dataset"):
        out = mutate_ms2(dataset, path=tmp_path)
    assert out is dataset
    assert "No variables are matched with MS2 spectra." in caplog.text


def test_no_spectrum_files_returns_dataset_unchanged(tmp_path, caplog):
    dataset = _make_dataset()
    with caplog.at_level(logging.WARNING, logger="mass_dataset"):
        out = mutate_ms2(dataset, path=tmp_path)
    assert out is dataset
    assert "No MS2 in" in caplog.text


def test_mutate_ms2_preconditions():
    with pytest.raises(ObjectClassError):
        mutate_ms2({"not": "a dataset"})
    with pytest.raises(ValueError):
        mutate_ms2(_make_dataset(), column="gc")
    with pytest.raises(ValueError):
        mutate_ms2(_make_dataset(), mz_tol=-1)


def test_mean_intensity_adds_column_and_note_in_step():
    dataset = _make_dataset()
    out = mutate_mean_intensity(dataset)

    assert out.variable_info.columns.tolist() == ["variable_id", "mz", "rt", "mean_intensity"]
    assert out.variable_info_note.names == out.variable_info.columns.tolist()
    np.testing.assert_allclose(out.variable_info["mean_intensity"], [30.0, 40.0, 7.5])
    assert out.check() == ALL_GOOD
    assert "mean_intensity" not in dataset.variable_info.columns


def test_mean_intensity_on_selected_samples_gets_a_new_name_and_records_twice():
    dataset = mutate_mean_intensity(_make_dataset())
    out = mutate_mean_intensity(dataset, according_to_samples=["S3", "S1", "unknown"])

    assert out.variable_info.columns.tolist()[-2:] == ["mean_intensity", "mean_intensity.1"]
    np.testing.assert_allclose(out.variable_info["mean_intensity.1"], [30.0, 40.0, 9.0])

    records = out.process_info["mutate_mean_intensity"]
    assert len(records) == 2
    assert records[1].parameter["according_to_samples"] == ["S1", "S3"]


def test_mean_intensity_without_na_rm_propagates_nan():
    out = mutate_mean_intensity(_make_dataset(), na_rm=False)
    assert np.isnan(out.variable_info["mean_intensity"].iloc[2])


def test_mean_intensity_rejects_unknown_samples():
    with pytest.raises(ValueError):
        mutate_mean_intensity(_make_dataset(), according_to_samples=["nope"])


def test_mean_intensity_with_non_string_column_labels():
    expression_data = pd.DataFrame({"S1": [1.0, 3.0]}, index=["F1", "F2"])
    sample_info = pd.DataFrame({"sample_id": ["S1"], "class": ["QC"]})
    variable_info = pd.DataFrame({"variable_id": ["F1", "F2"], 0: ["x", "y"]})

    out = mutate_mean_intensity(create_mass_dataset(expression_data, sample_info, variable_info))
    assert out.variable_info.columns.tolist() == ["variable_id", "0", "mean_intensity"]
    assert out.check() == ALL_GOOD
