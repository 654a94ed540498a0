"""PTP (IEEE 1588) clock description types."""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Tuple

_ACCURACY_DESCRIPTIONS = {
    0x20: "within 25 ns",
    0x21: "within 100 ns",
    0x22: "within 250 ns",
    0x23: "within 1 µs",
    0x24: "within 2.5 µs",
    0x25: "within 10 µs",
    0x26: "within 25 µs",
    0x27: "within 100 µs",
    0x28: "within 250 µs",
    0x29: "within 1 ms",
    0x2A: "within 2.5 ms",
    0x2B: "within 10 ms",
    0x2C: "within 25 ms",
    0x2D: "within 100 ms",
    0x2E: "within 250 ms",
    0x2F: "within 1 s",
    0x30: "within 10 s",
    0x31: "> 10 s",
}

_CLASS_DESCRIPTIONS = {
    6: "Primary reference (GPS/Atomic)",
    7: "Primary reference (default)",
    13: "Application-specific time source",
    14: "Alternative PTP profile",
    52: "Degraded primary reference (holdover within spec)",
    58: "Degraded primary reference (out of holdover spec)",
    187: "Default slave-only",
    248: "Default (no external reference)",
    255: "Slave-only",
}


class TimeSource(str, Enum):
    """Origin of the time distributed by a grandmaster."""

    ATOMIC_CLOCK = "ATOMIC_CLOCK"
    GPS = "GPS"
    TERRESTRIAL_RADIO = "TERRESTRIAL_RADIO"
    PTP = "PTP"
    NTP = "NTP"
    HAND_SET = "HAND_SET"
    OTHER = "OTHER"
    INTERNAL_OSCILLATOR = "INTERNAL_OSCILLATOR"


@dataclass(frozen=True)
class ClockIdentity:
    """EUI-64 clock identity."""

    octets: Tuple[int, ...]

    def __str__(self) -> str:
        return ":".join(f"{b:02X}" for b in self.octets)


@dataclass(frozen=True)
class ClockQuality:
    clock_class: int
    clock_accuracy: int
    offset_scaled_log_variance: int

    def accuracy_description(self) -> str:
        return _ACCURACY_DESCRIPTIONS.get(self.clock_accuracy, "unknown")

    def class_description(self) -> str:
        return _CLASS_DESCRIPTIONS.get(self.clock_class, "Other")

    def to_dict(self) -> dict:
        return {
            "clock_class": self.clock_class,
            "clock_class_description": self.class_description(),
            "clock_accuracy": self.clock_accuracy,
            "clock_accuracy_description": self.accuracy_description(),
            "offset_scaled_log_variance": self.offset_scaled_log_variance,
        }


@dataclass(frozen=True)
class PacketStats:
    sync_sent: int = 0
    sync_received: int = 0
    follow_up_received: int = 0
    delay_req_sent: int = 0
    delay_resp_received: int = 0
    announce_received: int = 0


@dataclass(frozen=True)
class PtpDiagnostics:
    """Verbose-mode details of a PTP exchange."""

    master_port_identity: str
    hardware_timestamping: bool
    timestamp_mode: str
    steps_removed: int
    current_utc_offset: int
    current_utc_offset_valid: bool
    leap59: bool
    leap61: bool
    time_traceable: bool
    frequency_traceable: bool
    ptp_timescale: bool
    packet_stats: PacketStats
    measurement_duration_ms: float

    def to_dict(self) -> dict:
        return asdict(self)
