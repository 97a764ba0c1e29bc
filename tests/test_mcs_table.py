from tests._user_config_tests import UserConfig as cfg_module
from tests._sim_params_tests import SimParams as sparams_module

from rrofdma.components.he_ru import RuType
from rrofdma.utils.mcs_table import (
    calculate_data_rate_bps,
    calculate_ru_data_rate_bps,
    get_highest_mcs_index,
    get_min_sensitivity_dBm,
)
from rrofdma.utils.event_logger import get_logger
from rrofdma.utils.messages import STARTING_TEST_MSG, TEST_COMPLETED_MSG

import pytest


logger = get_logger("TEST", cfg_module, sparams_module)

# Each test case is a tuple: (mcs_index, channel_width, num_streams, guard_interval, expected_data_rate)
TEST_CASES = [
    (9, 80, 2, 0.8, 960.8),
    (2, 40, 1, 1.6, 48.8),
    (7, 20, 1, 0.8, 86.0),
    (10, 160, 2, 3.2, 1837.5),
    (3, 40, 2, 0.8, 137.6),
    (5, 80, 3, 1.6, 816.7),
]

# Each test case is a tuple: (mcs_index, ru_type, num_streams, guard_interval, expected_data_rate)
RU_TEST_CASES = [
    (7, RuType.RU_26_TONE, 1, 0.8, 8.8),
    (7, RuType.RU_106_TONE, 1, 0.8, 37.5),
    (7, RuType.RU_242_TONE, 1, 0.8, 86.0),
    (11, RuType.RU_52_TONE, 2, 0.8, 58.8),
]


@pytest.mark.parametrize(
    "mcs_index, channel_width, num_streams, guard_interval, expected_data_rate", TEST_CASES
)
def test_data_rate(mcs_index, channel_width, num_streams, guard_interval, expected_data_rate):
    data_rate = calculate_data_rate_bps(mcs_index, channel_width, num_streams, guard_interval)

    logger.debug(
        f"Testing with MCS {mcs_index}, {num_streams} SS, {channel_width} MHz, {guard_interval} μs GI"
    )
    logger.info(f"Calculated data rate: {round(data_rate / 1e6, 1)} Mbps")

    assert round(data_rate / 1e6, 1) == expected_data_rate


@pytest.mark.parametrize(
    "mcs_index, ru_type, num_streams, guard_interval, expected_data_rate", RU_TEST_CASES
)
def test_ru_data_rate(mcs_index, ru_type, num_streams, guard_interval, expected_data_rate):
    data_rate = calculate_ru_data_rate_bps(mcs_index, ru_type, num_streams, guard_interval)

    logger.info(f"MCS {mcs_index}, {ru_type.name}: {round(data_rate / 1e6, 1)} Mbps")

    assert round(data_rate / 1e6, 1) == expected_data_rate


def test_invalid_rate_params():
    with pytest.raises(ValueError):
        calculate_data_rate_bps(12, 20, 1, 0.8)
    with pytest.raises(ValueError):
        calculate_data_rate_bps(7, 30, 1, 0.8)
    with pytest.raises(ValueError):
        calculate_ru_data_rate_bps(7, RuType.RU_26_TONE, 4, 0.8)
    with pytest.raises(ValueError):
        calculate_ru_data_rate_bps(7, RuType.RU_26_TONE, 1, 0.4)


def test_sensitivity():
    assert get_min_sensitivity_dBm(0, 20) == -82
    assert get_min_sensitivity_dBm(11, 160) == -43

    assert get_highest_mcs_index(-60, 20) == 7
    assert get_highest_mcs_index(-40, 20) == 11
    assert get_highest_mcs_index(-60, 80) == 5
    assert get_highest_mcs_index(-90, 20) == -1


if __name__ == "__main__":
    print(STARTING_TEST_MSG)

    for case in TEST_CASES:
        test_data_rate(*case)
    for case in RU_TEST_CASES:
        test_ru_data_rate(*case)
    test_invalid_rate_params()
    test_sensitivity()

    print(TEST_COMPLETED_MSG)
