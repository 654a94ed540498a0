"""Data records produced and consumed by the probing layer."""

import ipaddress
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Union

from clockscope.protocols.nts_types import NtsKeData, NtsValidationOutcome
from clockscope.protocols.ptp_types import (
    ClockIdentity,
    ClockQuality,
    PtpDiagnostics,
    TimeSource,
)
from clockscope.probing.probe_errors import ProbeError

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


@dataclass(frozen=True)
class ParsedTarget:
    """A target string split into host, optional port and address-family hint."""

    host: str
    port: Optional[int]
    is_ipv6_literal: bool


@dataclass(frozen=True)
class Target:
    """A target as typed by the user, pinned to the address it resolved to."""

    name: str
    ip: IPAddress
    port: int

    @property
    def ip_version(self) -> str:
        return "v6" if self.ip.version == 6 else "v4"


@dataclass(frozen=True)
class NtpFields:
    """NTP-specific diagnostics."""

    stratum: int
    ref_id: str
    version: Optional[int] = None
    leap: Optional[int] = None

    def to_dict(self) -> dict:
        return {"stratum": self.stratum, "ref_id": self.ref_id, "version": self.version, "leap": self.leap}


@dataclass(frozen=True)
class NtsFields:
    """NTS diagnostics: the authenticated NTP fields plus key-exchange details."""

    stratum: int
    ref_id: str
    ke_data: Optional[NtsKeData] = None
    validation: Optional[NtsValidationOutcome] = None

    def to_dict(self) -> dict:
        return {
            "stratum": self.stratum,
            "ref_id": self.ref_id,
            "nts_ke": self.ke_data.to_dict() if self.ke_data else None,
            "nts_validation": self.validation.to_dict() if self.validation else None,
        }


@dataclass(frozen=True)
class PtpFields:
    """PTP clock-quality data; offsets and delays kept in nanoseconds."""

    offset_ns: int
    mean_path_delay_ns: int
    master_identity: ClockIdentity
    clock_quality: ClockQuality
    time_source: TimeSource
    domain: int
    event_port: int
    general_port: int
    diagnostics: Optional[PtpDiagnostics] = None

    def to_dict(self) -> dict:
        return {
            "offset_ns": self.offset_ns,
            "mean_path_delay_ns": self.mean_path_delay_ns,
            "master_identity": str(self.master_identity),
            "clock_quality": self.clock_quality.to_dict(),
            "time_source": self.time_source.value,
            "domain": self.domain,
            "event_port": self.event_port,
            "general_port": self.general_port,
            "diagnostics": self.diagnostics.to_dict() if self.diagnostics else None,
        }


ProtocolFields = Union[NtpFields, NtsFields, PtpFields]


@dataclass(frozen=True)
class Measurement:
    """One successful probe of one target."""

    target: Target
    offset_ms: float
    rtt_ms: float
    utc: datetime
    """Server time reported by the exchange (timezone-aware, UTC)."""

    authenticated: bool
    protocol_fields: ProtocolFields

    @property
    def timestamp(self) -> int:
        """Unix seconds of the server time."""
        return int(self.utc.timestamp())

    @property
    def local(self) -> datetime:
        return self.utc.astimezone()

    @property
    def protocol(self) -> str:
        if isinstance(self.protocol_fields, PtpFields):
            return "ptp"
        if isinstance(self.protocol_fields, NtsFields):
            return "nts"
        return "ntp"


@dataclass
class SampleSeries:
    """Measurements collected for one target across a sampling run.

    Failed iterations do not add a measurement; their errors are kept in
    ``failures`` so the number of attempts stays visible.
    """

    name: str
    measurements: List[Measurement] = field(default_factory=list)
    failures: List[ProbeError] = field(default_factory=list)

    def append(self, measurement: Measurement) -> None:
        self.measurements.append(measurement)

    def record_failure(self, error: ProbeError) -> None:
        self.failures.append(error)

    @property
    def attempts(self) -> int:
        return len(self.measurements) + len(self.failures)

    def __len__(self) -> int:
        return len(self.measurements)

    def __iter__(self):
        return iter(self.measurements)

    def first(self) -> Optional[Measurement]:
        return self.measurements[0] if self.measurements else None
