from rrofdma.sim_params import SimParams as sparams
from rrofdma.user_config import UserConfig as cfg

from rrofdma.components.classifier import TrafficClass
from rrofdma.components.he_ru import (
    RuSpec,
    RuType,
    get_num_rus,
    get_tone_budget,
    get_uniform_ru_type,
    get_uniform_rus,
)
from rrofdma.utils.event_logger import get_logger

from dataclasses import dataclass, field

import simpy


@dataclass
class PackingResult:
    """
    Outcome of the RU packing: rus[i] is assigned to order[i], candidates in
    order[len(rus):] did not get an RU.
    """

    order: list = field(default_factory=list)
    rus: list[RuSpec] = field(default_factory=list)

    @property
    def placed(self) -> list:
        return self.order[: len(self.rus)]

    @property
    def unplaced(self) -> list:
        return self.order[len(self.rus) :]


class ResourceUnitPacker:
    """
    Partitions the channel into RUs for the candidates of a DL MU PPDU.

    If there is no bulk traffic (or a single candidate), every candidate gets an
    RU of the same size (uniform regime). Otherwise the primary 20 MHz is shared
    between streaming (26-tone RUs), bulk (106 and 52-tone RUs) and HTTP
    (26-tone RUs) candidates (mixed regime).
    """

    def __init__(self, cfg: cfg, sparams: sparams, env: simpy.Environment):
        self.cfg = cfg
        self.sparams = sparams
        self.env = env

        self.name = "PACKER"
        self.logger = get_logger(self.name, cfg, sparams, env)

    def pack(self, channel_width_mhz: int, buckets: dict[TrafficClass, list]) -> PackingResult:
        """
        Assigns RUs to the candidates grouped by traffic class.

        Args:
            channel_width_mhz (int): The channel width in MHz.
            buckets (dict[TrafficClass, list]): The candidates of each traffic class.
                Candidates must have a `size_bytes` attribute.

        Returns:
            PackingResult: The ordered candidates and the RUs assigned to them.
        """
        streaming = self._sort_by_size(buckets.get(TrafficClass.STREAMING, []))
        bulk = self._sort_by_size(buckets.get(TrafficClass.BULK, []))
        # STAs not classified are served together with the HTTP ones
        http = self._sort_by_size(buckets.get(TrafficClass.HTTP, [])) + self._sort_by_size(
            buckets.get(TrafficClass.UNCLASSIFIED, [])
        )

        n_candidates = len(streaming) + len(bulk) + len(http)

        if not bulk or n_candidates <= 1:
            self.logger.debug(f"Uniform regime for {n_candidates} candidates")
            result = self._pack_uniform(channel_width_mhz, streaming + bulk + http)
        elif len(streaming) > self.sparams.MAX_STREAMING_FANOUT:
            self.logger.debug(
                f"{len(streaming)} streaming candidates, HTTP candidates are left out"
            )
            result = self._pack_uniform(channel_width_mhz, streaming + bulk)
            result.order.extend(http)
        else:
            self.logger.debug(
                f"Mixed regime for {len(streaming)} streaming, {len(bulk)} bulk and {len(http)} HTTP candidates"
            )
            result = self._pack_mixed(streaming, bulk, http)

        self._check_result(channel_width_mhz, result, n_candidates)

        self.logger.debug(
            "RU assignment: "
            + ", ".join(
                f"{entry.party.address}->{ru}"
                for entry, ru in zip(result.placed, result.rus)
            )
        )
        if result.unplaced:
            self.logger.debug(
                f"Candidates without RU: {[entry.party.address for entry in result.unplaced]}"
            )
        return result

    @staticmethod
    def _sort_by_size(candidates: list) -> list:
        return sorted(candidates, key=lambda entry: entry.size_bytes, reverse=True)

    def _pack_uniform(self, channel_width_mhz: int, candidates: list) -> PackingResult:
        if not candidates:
            return PackingResult()

        ru_type = get_uniform_ru_type(channel_width_mhz, len(candidates))
        n_rus = min(len(candidates), get_num_rus(channel_width_mhz, ru_type))

        return PackingResult(
            order=list(candidates),
            rus=get_uniform_rus(channel_width_mhz, ru_type, n_rus),
        )

    def _pack_mixed(self, streaming: list, bulk: list, http: list) -> PackingResult:
        available_tones = self.sparams.TONE_BUDGET_20MHz - 26 * len(streaming)

        # Sizing
        n_106 = 0
        if available_tones >= 106:
            n_106 = 1
            available_tones -= 106

        n_52 = 0
        while available_tones >= 52 and n_106 + n_52 < len(bulk):
            n_52 += 1
            available_tones -= 52

        n_26_http = 0
        while available_tones >= 26 and n_26_http < len(http):
            n_26_http += 1
            available_tones -= 26

        rus_106 = bulk[:n_106]
        rus_52 = bulk[n_106 : n_106 + n_52]
        rus_26 = streaming + http[:n_26_http]

        # Placement
        assignments = []
        if rus_106:
            assignments.append((rus_106[0], RuSpec(RuType.RU_106_TONE, 1)))
        elif rus_52:
            assignments.append((rus_52.pop(0), RuSpec(RuType.RU_52_TONE, 1)))
            for index in (3, 4):
                if rus_26:
                    assignments.append((rus_26.pop(0), RuSpec(RuType.RU_26_TONE, index)))

        if len(rus_26) % 2 == 1:
            assignments.append(
                (
                    rus_26.pop(0),
                    RuSpec(RuType.RU_26_TONE, self.sparams.CENTER_26_TONE_RU_INDEX),
                )
            )

        for index, entry in zip((3, 4), rus_52):
            assignments.append((entry, RuSpec(RuType.RU_52_TONE, index)))

        first_26_index = 8 if rus_52 else 6
        for offset, entry in enumerate(rus_26):
            assignments.append((entry, RuSpec(RuType.RU_26_TONE, first_26_index + offset)))

        placed_ids = {id(entry) for entry, _ in assignments}
        unplaced = [
            entry for entry in streaming + bulk + http if id(entry) not in placed_ids
        ]

        return PackingResult(
            order=[entry for entry, _ in assignments] + unplaced,
            rus=[ru for _, ru in assignments],
        )

    def _check_result(self, channel_width_mhz: int, result: PackingResult, n_candidates: int):
        total_tones = sum(ru.tones for ru in result.rus)
        assert total_tones <= get_tone_budget(channel_width_mhz), (
            f"{total_tones} tones exceed the {channel_width_mhz} MHz budget"
        )
        assert len(set(result.rus)) == len(result.rus), f"Duplicate RUs: {result.rus}"
        assert len(result.rus) <= len(result.order), "More RUs than candidates"
        assert len(result.order) == n_candidates, "Candidates were dropped while packing"
