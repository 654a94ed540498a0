"""NTP probe backed by ntplib."""

import asyncio
import socket
from datetime import datetime, timezone

import ntplib

from clockscope.constants import NTP_PORT, NTP_VERSION
from clockscope.logging import CLOCKSCOPE_LOGGER
from clockscope.probing.probe_errors import ProbeError
from clockscope.probing.probe_models import NtpFields
from clockscope.protocols.abstract_protocol_probe import AbstractProtocolProbe, ProbeOptions, RawMeasurement


def format_reference_id(ref_id: int, stratum: int) -> str:
    """Render an NTP reference identifier (ASCII code for stratum 0/1, an address otherwise)."""
    if stratum in (0, 1):
        # ntplib maps these codes to long descriptions; keep the raw code ("GPS", "RATE")
        code = ref_id.to_bytes(4, "big").rstrip(b"\x00")
        if code and all(32 <= byte < 127 for byte in code):
            return code.decode("ascii").strip()
        return f"0x{ref_id:08X}"
    try:
        return ntplib.ref_id_to_text(ref_id, stratum)
    except ntplib.NTPException:
        return f"0x{ref_id:08X}"


class NtpProbe(AbstractProtocolProbe):
    """Plain (unauthenticated) NTP over UDP."""

    name = "ntp"

    def __init__(self, version: int = NTP_VERSION):
        """
        Initialize NTP probe.

        Args:
            version: NTP version number put in the request
        """
        self.version = version
        self.client = ntplib.NTPClient()

    def default_port(self, options: ProbeOptions) -> int:
        return NTP_PORT

    async def probe(self, host, ip, port, timeout, options) -> RawMeasurement:
        # ntplib is blocking; run it off the event loop so fan-out stays concurrent
        return await asyncio.to_thread(self._request, str(ip), port, timeout)

    def _request(self, address: str, port: int, timeout: float) -> RawMeasurement:
        try:
            response = self.client.request(address, version=self.version, port=port, timeout=timeout)
        except ntplib.NTPException as e:
            if "no response" in str(e).lower():
                raise ProbeError.timeout(f"no response from {address}:{port} within {timeout:g}s") from e
            raise ProbeError.protocol(str(e)) from e
        except socket.timeout as e:
            raise ProbeError.timeout(f"no response from {address}:{port} within {timeout:g}s") from e
        except OSError as e:
            raise ProbeError.network(f"{address}:{port}: {e}") from e

        if response.stratum == 0:
            raise ProbeError.protocol(
                f"kiss-o'-death or unsynchronized server (ref_id={format_reference_id(response.ref_id, 0)})"
            )

        CLOCKSCOPE_LOGGER.debug(
            f"NTP {address}:{port} offset={response.offset * 1000.0:+.3f}ms delay={response.delay * 1000.0:.3f}ms"
        )
        return RawMeasurement(
            offset_ms=response.offset * 1000.0,
            rtt_ms=response.delay * 1000.0,
            utc=datetime.fromtimestamp(response.tx_time, tz=timezone.utc),
            authenticated=False,
            protocol_fields=NtpFields(
                stratum=response.stratum,
                ref_id=format_reference_id(response.ref_id, response.stratum),
                version=response.version,
                leap=response.leap,
            ),
        )
