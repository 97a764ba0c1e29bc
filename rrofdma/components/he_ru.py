from dataclasses import dataclass
from enum import IntEnum


class RuType(IntEnum):
    """HE Resource Unit types, ordered by increasing size."""

    RU_26_TONE = 0
    RU_52_TONE = 1
    RU_106_TONE = 2
    RU_242_TONE = 3
    RU_484_TONE = 4
    RU_996_TONE = 5
    RU_2x996_TONE = 6


RU_TONES = {
    RuType.RU_26_TONE: 26,
    RuType.RU_52_TONE: 52,
    RuType.RU_106_TONE: 106,
    RuType.RU_242_TONE: 242,
    RuType.RU_484_TONE: 484,
    RuType.RU_996_TONE: 996,
    RuType.RU_2x996_TONE: 2 * 996,
}

# Number of RUs of each type fitting a channel of the given width (MHz).
# 160 MHz channels are handled as two 80 MHz halves, except for the 2x996-tone RU.
RU_COUNTS = {
    20: {
        RuType.RU_26_TONE: 9,
        RuType.RU_52_TONE: 4,
        RuType.RU_106_TONE: 2,
        RuType.RU_242_TONE: 1,
    },
    40: {
        RuType.RU_26_TONE: 18,
        RuType.RU_52_TONE: 8,
        RuType.RU_106_TONE: 4,
        RuType.RU_242_TONE: 2,
        RuType.RU_484_TONE: 1,
    },
    80: {
        RuType.RU_26_TONE: 37,
        RuType.RU_52_TONE: 16,
        RuType.RU_106_TONE: 8,
        RuType.RU_242_TONE: 4,
        RuType.RU_484_TONE: 2,
        RuType.RU_996_TONE: 1,
    },
}

SUPPORTED_CHANNEL_WIDTHS_MHz = (20, 40, 80, 160)

# Tones available to RUs in a channel of the given width (MHz)
TONE_BUDGET = {20: 242, 40: 484, 80: 996, 160: 2 * 996}


@dataclass(frozen=True)
class RuSpec:
    """An RU: its type, its 1-based index and whether it is in the primary 80 MHz."""

    ru_type: RuType
    index: int
    primary80: bool = True

    @property
    def tones(self) -> int:
        return RU_TONES[self.ru_type]

    def __repr__(self):
        return f"RU({RU_TONES[self.ru_type]}-tone, {self.index}, {'P80' if self.primary80 else 'S80'})"


def get_num_rus(channel_width_mhz: int, ru_type: RuType) -> int:
    """
    Returns the number of RUs of the given type fitting the channel width.

    Args:
        channel_width_mhz (int): The channel width in MHz (20, 40, 80 or 160).
        ru_type (RuType): The RU type.

    Returns:
        int: The number of RUs (0 if the RU does not fit the channel).
    """
    if channel_width_mhz not in SUPPORTED_CHANNEL_WIDTHS_MHz:
        raise ValueError(f"Invalid channel width: {channel_width_mhz}")

    if channel_width_mhz == 160:
        if ru_type == RuType.RU_2x996_TONE:
            return 1
        return 2 * RU_COUNTS[80].get(ru_type, 0)

    return RU_COUNTS[channel_width_mhz].get(ru_type, 0)


def get_ru_types(channel_width_mhz: int) -> list[RuType]:
    """Returns the RU types fitting the channel width, from the smallest to the largest."""
    return [
        ru_type for ru_type in RuType if get_num_rus(channel_width_mhz, ru_type) > 0
    ]


def get_tone_budget(channel_width_mhz: int) -> int:
    if channel_width_mhz not in TONE_BUDGET:
        raise ValueError(f"Invalid channel width: {channel_width_mhz}")
    return TONE_BUDGET[channel_width_mhz]


def get_uniform_ru_type(channel_width_mhz: int, n_stations: int) -> RuType:
    """
    Returns the largest RU type such that every one of n_stations STAs can be
    granted an RU of that type. If the channel cannot host that many RUs, the
    smallest RU type (the largest number of RUs) is returned.

    Args:
        channel_width_mhz (int): The channel width in MHz.
        n_stations (int): The number of STAs to be granted an RU (at least 1).

    Returns:
        RuType: The RU type.
    """
    if n_stations < 1:
        raise ValueError(f"Invalid number of stations: {n_stations}")

    ru_types = get_ru_types(channel_width_mhz)
    for ru_type in reversed(ru_types):
        if get_num_rus(channel_width_mhz, ru_type) >= n_stations:
            return ru_type
    return ru_types[0]


def get_uniform_rus(channel_width_mhz: int, ru_type: RuType, n_rus: int) -> list[RuSpec]:
    """
    Returns the first n_rus RUs of the given type. In 160 MHz channels, RUs of
    the primary 80 MHz are returned before those of the secondary 80 MHz.
    """
    n_available = get_num_rus(channel_width_mhz, ru_type)
    assert n_rus <= n_available, f"{n_rus} RUs of type {ru_type.name} do not fit {channel_width_mhz} MHz"

    if channel_width_mhz == 160 and ru_type != RuType.RU_2x996_TONE:
        per_half = n_available // 2
        return [
            RuSpec(ru_type, i % per_half + 1, primary80=(i < per_half))
            for i in range(n_rus)
        ]
    return [RuSpec(ru_type, i + 1) for i in range(n_rus)]
