"""NTS probe: authenticated NTP through a pluggable NTS client backend."""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from clockscope.constants import NTP_PORT
from clockscope.logging import CLOCKSCOPE_LOGGER
from clockscope.probing.probe_errors import ProbeError
from clockscope.probing.probe_models import NtsFields
from clockscope.protocols.abstract_protocol_probe import AbstractProtocolProbe, ProbeOptions, RawMeasurement
from clockscope.protocols.nts_types import (
    NtsError,
    NtsErrorKind,
    NtsKeData,
    NtsValidationOutcome,
    classify_nts_error,
)


@dataclass(frozen=True)
class NtsTimeResult:
    """Outcome of one NTS-KE handshake plus one authenticated time exchange."""

    network_time: datetime
    offset_ms: float
    rtt_ms: float
    server: str
    validation: NtsValidationOutcome
    stratum: int = 0
    ref_id: str = ""
    ke_data: Optional[NtsKeData] = None


class NtsBackend(Protocol):
    """Interface an NTS client implementation must provide."""

    def query(self, host: str, ke_port: int, timeout: float) -> NtsTimeResult:
        """Run NTS-KE against ``host:ke_port`` then one authenticated NTP exchange."""
        ...


class UnavailableNtsBackend:
    """Backend used when no NTS client implementation has been installed."""

    def query(self, host: str, ke_port: int, timeout: float) -> NtsTimeResult:
        raise RuntimeError("NTS-KE handshake unavailable: no NTS client backend is configured")


class NtsProbe(AbstractProtocolProbe):
    """NTS-authenticated NTP.

    The backend performs its own key exchange against the host name (TLS needs
    the name, not the address); the resolved address is only reported.
    """

    name = "nts"

    def __init__(self, backend: Optional[NtsBackend] = None):
        """
        Initialize NTS probe.

        Args:
            backend: NTS client implementation; defaults to one that always fails
        """
        self.backend: NtsBackend = backend if backend is not None else UnavailableNtsBackend()

    def default_port(self, options: ProbeOptions) -> int:
        return NTP_PORT

    async def probe(self, host, ip, port, timeout, options) -> RawMeasurement:
        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(self.backend.query, host, options.nts_port, timeout),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise ProbeError.timeout(f"NTS exchange with {host} exceeded {timeout:g}s") from e
        except ProbeError:
            raise
        except Exception as e:
            raise self._map_backend_error(host, e) from e

        if not result.validation.authenticated:
            error = result.validation.error
            detail = f"{error.kind.value}: {error.message}" if error else "response not authenticated"
            raise ProbeError.authentication(f"NTS validation failed for {host}: {detail}")

        CLOCKSCOPE_LOGGER.debug(f"NTS {host} offset={result.offset_ms:+.3f}ms rtt={result.rtt_ms:.3f}ms")
        return RawMeasurement(
            offset_ms=result.offset_ms,
            rtt_ms=result.rtt_ms,
            utc=result.network_time,
            authenticated=True,
            protocol_fields=NtsFields(
                stratum=result.stratum,
                ref_id=result.ref_id or result.server,
                ke_data=result.ke_data,
                validation=result.validation,
            ),
        )

    @staticmethod
    def _map_backend_error(host: str, error: Exception) -> ProbeError:
        kind = classify_nts_error(str(error))
        nts_error = NtsError(kind=kind, message=str(error))
        message = f"{host}: {nts_error.kind.value}: {nts_error.message}"
        if kind == NtsErrorKind.TIMEOUT:
            return ProbeError.timeout(message)
        if kind == NtsErrorKind.NETWORK:
            return ProbeError.network(message)
        return ProbeError.authentication(message)
