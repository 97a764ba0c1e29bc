from rrofdma.sim_params import SimParams as sparams


# Access Category of each TID
TID_TO_AC = {1: "BK", 2: "BK", 0: "BE", 3: "BE", 4: "VI", 5: "VI", 6: "VO", 7: "VO"}

# Access Category rank, the higher the rank the higher the priority
AC_RANK = {"BE": 0, "BK": 1, "VI": 2, "VO": 3}


class DataUnit:
    """Abstract base class for all data units in the simulation."""

    def __init__(
        self, creation_time_us: float, size_bytes: int, src_id: int, dst_id: int
    ):
        """
        Initializes a DataUnit.

        Args:
            creation_time_us (float): The time of creation in microseconds.
            size_bytes (int): The size of the data unit in bytes.
            src_id (int): The source node ID.
            dst_id (int): The destination node ID.
        """
        self.size_bytes: int = size_bytes

        self.src_id: int = src_id
        self.dst_id: int = dst_id

        self.creation_time_us: float = creation_time_us
        self.reception_time_us: float | None = None

        self.is_mgmt_ctrl_frame: bool = False

        self.type: str | None = None

    def __repr__(self):
        return f"size={self.size_bytes}, src_id={self.src_id}, dst_id={self.dst_id}"


class Packet(DataUnit):
    def __init__(
        self,
        id: int,
        size_bytes: int,
        src_id: int,
        dst_id: int,
        creation_time_us: float,
        tid: int = 0,
    ):
        """
        Initializes a Packet.

        Args:
            id (int): The ID of the packet.
            size_bytes (int): The size of the packet in bytes.
            src_id (int): The source node ID.
            dst_id (int): The destination node ID.
            creation_time_us (float): The time of creation in microseconds.
            tid (int, optional): The Traffic Identifier (0-7). Defaults to 0.
        """
        super().__init__(creation_time_us, size_bytes, src_id, dst_id)

        self.id: int = id
        self.tid: int = tid

        self.type: str = "DATA"

    def __repr__(self):
        return f"{self.__class__.__name__}(id={self.id}, tid={self.tid}, {super().__repr__()})"


class MPDU(DataUnit):
    def __init__(self, packet: Packet, creation_time_us: float):
        """
        Initializes an MPDU (MAC Protocol Data Unit).

        Args:
            packet (Packet):  The Packet object encapsulated in this MPDU.
            creation_time_us (float): The time of creation in microseconds.
        """
        super().__init__(
            creation_time_us,
            sparams.MAC_HEADER_SIZE_bytes
            + packet.size_bytes
            + sparams.FCS_SIZE_bytes
            + sparams.MDPU_DELIMITER_SIZE_bytes  # delimiter and padding surrounding each MPDU inside an A-MPDU
            + sparams.MPDU_PADDING_SIZE_bytes,
            packet.src_id,
            packet.dst_id,
        )

        self.packet: Packet = packet

        self.type: str = "MPDU"

    @property
    def tid(self) -> int:
        return self.packet.tid

    @property
    def ac(self) -> str:
        return TID_TO_AC[self.packet.tid]

    def __repr__(self):
        return f"{self.__class__.__name__}(id={self.packet.id}, tid={self.tid}, {super().__repr__()})"


class AMPDU(DataUnit):
    def __init__(self, id: int, mpdus: list[MPDU], creation_time_us: float):
        """
        Initializes an AMPDU (Aggregated MAC Protocol Data Unit).

        Args:
            id (int): The unique identifier for the AMPDU.
            mpdus (list[MPDU]): A list of MPDUs aggregated into this AMPDU.
            creation_time_us (float): The time of creation in microseconds.
        """
        super().__init__(
            creation_time_us,
            sum([mpdu.size_bytes for mpdu in mpdus]),
            mpdus[0].src_id,
            mpdus[0].dst_id,
        )

        self.id: int = id
        self.mpdus: list[MPDU] = mpdus

        self.type: str = "AMPDU"

    @property
    def tid(self) -> int:
        return self.mpdus[0].tid

    def __repr__(self):
        return f"{self.__class__.__name__}(id={self.id}, n_mpdus={len(self.mpdus)}, {super().__repr__()})"


class BAR(DataUnit):
    def __init__(self, src_id: int, dst_id: int, tid: int, creation_time_us: float):
        """Initializes a Compressed BAR (Block Ack Request) frame."""
        super().__init__(creation_time_us, sparams.BAR_SIZE_bytes, src_id, dst_id)

        self.tid: int = tid

        self.is_mgmt_ctrl_frame: bool = True

        self.type: str = "BAR"

    def __repr__(self):
        return f"{self.__class__.__name__}({super().__repr__()})"


class BACK(DataUnit):
    def __init__(
        self,
        src_id: int,
        dst_id: int,
        tid: int,
        creation_time_us: float,
        buffer_status: int | None = None,
    ):
        """
        Initializes a Compressed BACK (Block ACK) frame.

        Args:
            src_id (int): The source node ID.
            dst_id (int): The destination node ID.
            tid (int): The TID being acknowledged.
            creation_time_us (float): The time of creation in microseconds.
            buffer_status (int | None, optional): Queue size reported by the STA (in units of
                256 bytes), piggybacked on the BACK. Defaults to None.
        """
        super().__init__(creation_time_us, sparams.BACK_SIZE_bytes, src_id, dst_id)

        self.tid: int = tid
        self.buffer_status: int | None = buffer_status

        self.is_mgmt_ctrl_frame: bool = True

        self.type: str = "BACK"

    def __repr__(self):
        return f"{self.__class__.__name__}(tid={self.tid}, {super().__repr__()})"


class MultiStaBACK(DataUnit):
    def __init__(self, src_id: int, receivers: list[tuple[int, int]], creation_time_us: float):
        """
        Initializes a Multi-STA BACK frame.

        Args:
            src_id (int): The source node ID (the AP).
            receivers (list[tuple[int, int]]): The (STA ID, TID) pairs acknowledged by the frame.
            creation_time_us (float): The time of creation in microseconds.
        """
        super().__init__(
            creation_time_us,
            get_multi_sta_back_size_bytes(len(receivers)),
            src_id,
            -1,  # broadcast
        )

        self.receivers: list[tuple[int, int]] = receivers

        self.is_mgmt_ctrl_frame: bool = True

        self.type: str = "MULTI_STA_BACK"

    def __repr__(self):
        return f"{self.__class__.__name__}(n_receivers={len(self.receivers)}, {super().__repr__()})"


class Trigger(DataUnit):
    def __init__(self, src_id: int, size_bytes: int, trigger_type: str, creation_time_us: float):
        """
        Initializes a Trigger frame.

        Args:
            src_id (int): The source node ID (the AP).
            size_bytes (int): The size of the Trigger frame in bytes.
            trigger_type (str): The Trigger frame variant ("BASIC" or "MU_BAR").
            creation_time_us (float): The time of creation in microseconds.
        """
        super().__init__(creation_time_us, size_bytes, src_id, -1)

        self.trigger_type: str = trigger_type

        self.is_mgmt_ctrl_frame: bool = True

        self.type: str = "TRIGGER"

    def __repr__(self):
        return f"{self.__class__.__name__}({self.trigger_type}, {super().__repr__()})"


def get_multi_sta_back_size_bytes(n_receivers: int) -> int:
    return sparams.MULTI_STA_BACK_BASE_SIZE_bytes + n_receivers * (
        sparams.MULTI_STA_BACK_PER_STA_INFO_bytes
        + sparams.MULTI_STA_BACK_BITMAP_LEN_bytes
    )
