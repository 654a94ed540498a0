"""Registry mapping each :class:`Protocol` to its probe implementation."""

from typing import Dict, Optional

from clockscope.protocols.abstract_protocol_probe import AbstractProtocolProbe, Protocol
from clockscope.protocols.ntp_probe import NtpProbe
from clockscope.protocols.nts_probe import NtsProbe
from clockscope.protocols.ptp_probe import PtpProbe


class ProbeRegistry:
    """Holds one probe instance per protocol."""

    def __init__(self, probes: Optional[Dict[Protocol, AbstractProtocolProbe]] = None):
        # Hardcode the default probe set (simple, explicit)
        self.probes: Dict[Protocol, AbstractProtocolProbe] = {
            Protocol.NTP: NtpProbe(),
            Protocol.NTS: NtsProbe(),
            Protocol.PTP: PtpProbe(),
        }
        if probes:
            self.probes.update(probes)

    def get(self, protocol: Protocol) -> AbstractProtocolProbe:
        try:
            return self.probes[protocol]
        except KeyError:
            raise ValueError(f"No probe registered for protocol '{protocol}'") from None
