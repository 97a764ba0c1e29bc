from rrofdma.components.he_ru import RuSpec, RuType
from rrofdma.utils.messages import STARTING_TEST_MSG, TEST_COMPLETED_MSG
from rrofdma.utils.statistics import SchedulerStats, get_jain_fairness_index

import pytest


def test_jain_fairness_index():
    assert get_jain_fairness_index([1, 1, 1]) == pytest.approx(1.0)
    assert get_jain_fairness_index([1, 0, 0, 0]) == pytest.approx(0.25)
    assert get_jain_fairness_index([3, 1]) == pytest.approx(16 / 20)
    assert get_jain_fairness_index([]) == 1.0
    assert get_jain_fairness_index([0, 0]) == 1.0


def test_scheduler_decisions():
    stats = SchedulerStats()

    stats.add_decision(
        10.0,
        "DL_MULTI_USER",
        {1: RuSpec(RuType.RU_106_TONE, 1), 2: RuSpec(RuType.RU_106_TONE, 2)},
    )
    stats.add_decision(20.0, "DL_MULTI_USER", {1: RuSpec(RuType.RU_242_TONE, 1)})
    stats.add_decision(30.0, "DL_MULTI_USER")  # no receivers
    stats.add_decision(40.0, "UL_MULTI_USER", {2: RuSpec(RuType.RU_106_TONE, 2)})

    assert stats.format_counts == {"DL_MULTI_USER": 3, "UL_MULTI_USER": 1, "FALLBACK": 0}
    assert stats.empty_dl_count == 1
    assert stats.sta_selections == {1: 2, 2: 2}
    # Only DL RUs count towards the tones of a STA
    assert stats.tones_per_sta == {1: 106 + 242, 2: 106}

    history = stats.decisions_history
    assert len(history) == 4
    assert list(history["n_stas"]) == [2, 1, 0, 1]
    assert list(history["tones"]) == [212, 242, 0, 106]
    assert history["stas"].iloc[0] == "1,2"

    assert stats.get_format_ratios()["DL_MULTI_USER"] == pytest.approx(0.75)
    # Empty DL decisions are left out of the average
    assert stats.get_avg_stas_per_dl_mu_ppdu() == pytest.approx(1.5)


def test_no_decisions():
    stats = SchedulerStats()

    assert stats.get_format_ratios() == {"DL_MULTI_USER": 0, "UL_MULTI_USER": 0, "FALLBACK": 0}
    assert stats.get_avg_stas_per_dl_mu_ppdu() == 0


if __name__ == "__main__":
    print(STARTING_TEST_MSG)

    test_jain_fairness_index()
    test_scheduler_decisions()
    test_no_decisions()

    print(TEST_COMPLETED_MSG)
