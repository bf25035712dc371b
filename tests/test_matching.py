import numpy as np
import pandas as pd

from mass_dataset.matching import mz_rt_match, resolve_matches, spectrum_score
from mass_dataset.spectra import SpectrumTable


def _table(names, peaks):
    info = pd.DataFrame(
        {
            "name": names,
            "mz": [100.0] * len(names),
            "rt": [50.0] * len(names),
            "file": ["a.mgf"] * len(names),
        }
    )
    return SpectrumTable(info=info, peaks=[np.asarray(p, dtype=float) for p in peaks])


def test_pair_inside_both_windows_is_matched():
    res = mz_rt_match([[100.0000, 50.0]], [[100.0010, 50.5]], mz_tol=15, rt_tol=30)
    assert res[["id1", "id2"]].values.tolist() == [[0, 0]]
    assert float(res.loc[0, "rt_error"]) == 0.5


def test_pair_outside_rt_window_is_not_matched():
    res = mz_rt_match([[100.0000, 50.0]], [[100.0010, 50.5]], mz_tol=15, rt_tol=0.1)
    assert res.empty


def test_absolute_da_tolerance():
    assert len(mz_rt_match([[100.0, 50.0]], [[100.0010, 50.0]], mz_tol=0.002, rt_tol=1, mz_tol_unit="da")) == 1
    assert mz_rt_match([[100.0, 50.0]], [[100.0030, 50.0]], mz_tol=0.002, rt_tol=1, mz_tol_unit="da").empty


def test_ppm_uses_400_floor_for_low_mz():
    # 0.005 Da at m/z 100 is 50 ppm against 100 but 12.5 ppm against the 400 floor
    assert len(mz_rt_match([[100.0, 10.0]], [[100.005, 10.0]], mz_tol=15, rt_tol=1)) == 1
    # above the floor the feature's own m/z is used: 0.01 Da at 500 is 20 ppm
    assert mz_rt_match([[500.0, 10.0]], [[500.01, 10.0]], mz_tol=15, rt_tol=1).empty


def test_many_to_many_pairs_are_ordered_by_feature_then_spectrum():
    features = [[200.0, 60.0], [100.0, 50.0]]
    spectra = [[100.0, 55.0], [200.001, 61.0], [100.0005, 45.0], [300.0, 50.0]]
    res = mz_rt_match(features, spectra, mz_tol=15, rt_tol=30)
    assert res[["id1", "id2"]].values.tolist() == [[0, 1], [1, 0], [1, 2]]


def test_empty_inputs_give_empty_result():
    assert mz_rt_match(np.empty((0, 2)), [[100.0, 50.0]], mz_tol=15, rt_tol=30).empty
    assert mz_rt_match([[100.0, 50.0]], [[100.0, 20000.0]], mz_tol=15, rt_tol=30).empty


def test_spectrum_score_sums_top_five_intensities():
    peaks = [[float(i), float(i)] for i in range(1, 8)]
    assert spectrum_score(peaks) == 7 + 6 + 5 + 4 + 3
    assert spectrum_score([[1.0, 20.0], [2.0, 5.0]]) == 25.0
    assert spectrum_score(np.empty((0, 2))) == 0.0


def test_resolver_picks_highest_top5_intensity_every_time():
    table = _table(
        ["low", "high"],
        [
            [[50.0, 40.0], [60.0, 30.0], [70.0, 25.0]],  # 95
            [[50.0, 100.0], [60.0, 20.0]],  # 120
        ],
    )
    matches = pd.DataFrame({"id1": [0, 0], "id2": [0, 1]})
    for _ in range(3):
        resolved = resolve_matches(matches, table)
        assert resolved.to_dict("records") == [{"id1": 0, "id2": 1, "ms2_spectrum_id": "high"}]


def test_resolver_ties_go_to_first_candidate_and_singletons_pass_through():
    table = _table(["a", "b", "c"], [[[1.0, 10.0]], [[1.0, 10.0]], [[1.0, 1.0]]])
    matches = pd.DataFrame({"id1": [3, 3, 1], "id2": [0, 1, 2]})
    resolved = resolve_matches(matches, table)
    assert resolved["id1"].tolist() == [3, 1]
    assert resolved["ms2_spectrum_id"].tolist() == ["a", "c"]


def test_missing_intensities_do_not_win_the_top5_score():
    assert spectrum_score([[1.0, np.nan], [2.0, 5.0]]) == 5.0

    table = _table(["gappy", "complete"], [[[1.0, np.nan], [2.0, 3.0]], [[1.0, 10.0]]])
    resolved = resolve_matches(pd.DataFrame({"id1": [0, 0], "id2": [0, 1]}), table)
    assert resolved["ms2_spectrum_id"].tolist() == ["complete"]
