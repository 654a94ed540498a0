"""Abstract base class for protocol probes."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from clockscope.constants import NTS_KE_PORT, PTP_DEFAULT_DOMAIN, PTP_EVENT_PORT, PTP_GENERAL_PORT

if TYPE_CHECKING:
    from clockscope.probing.probe_models import IPAddress, ProtocolFields


class Protocol(str, Enum):
    """Supported time protocols."""

    NTP = "ntp"
    NTS = "nts"
    PTP = "ptp"


@dataclass(frozen=True)
class ProbeOptions:
    """Protocol selection plus the protocol-specific knobs."""

    protocol: Protocol = Protocol.NTP
    nts_port: int = NTS_KE_PORT
    ptp_domain: int = PTP_DEFAULT_DOMAIN
    ptp_event_port: int = PTP_EVENT_PORT
    ptp_general_port: int = PTP_GENERAL_PORT
    ptp_hw_timestamp: bool = False
    verbose: bool = False


@dataclass(frozen=True)
class RawMeasurement:
    """What a protocol probe hands back before the query service stamps the target."""

    offset_ms: float
    rtt_ms: float
    utc: datetime
    authenticated: bool
    protocol_fields: "ProtocolFields"


class AbstractProtocolProbe(ABC):
    """One measurement attempt against an already-resolved address.

    Probes never resolve names themselves and must enforce ``timeout``.
    Every failure is raised as a ``ProbeError``.
    """

    name: str  # Protocol identifier (e.g., "ntp")

    @abstractmethod
    def default_port(self, options: ProbeOptions) -> int:
        """Port used when the target string does not carry one."""
        pass

    @abstractmethod
    async def probe(
        self,
        host: str,
        ip: "IPAddress",
        port: int,
        timeout: float,
        options: ProbeOptions,
    ) -> RawMeasurement:
        """Perform exactly one exchange.

        Args:
            host: Host part of the target as typed (for TLS names and labels)
            ip: Resolved address to talk to
            port: Destination port
            timeout: Budget for the whole exchange in seconds
            options: Protocol-specific options

        Returns:
            RawMeasurement for the exchange

        Raises:
            ProbeError: for any failure, including timeouts
        """
        pass
