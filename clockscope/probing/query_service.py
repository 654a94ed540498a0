"""Single-target query: parse, resolve, probe, normalize."""

import asyncio
from typing import Optional

from clockscope.constants import DEFAULT_TIMEOUT_S
from clockscope.logging import CLOCKSCOPE_LOGGER
from clockscope.probing.probe_errors import ProbeError
from clockscope.probing.probe_models import Measurement, Target
from clockscope.probing.resolver import resolve_ip
from clockscope.probing.target_parser import parse_target
from clockscope.protocols.abstract_protocol_probe import ProbeOptions
from clockscope.protocols.probe_registry import ProbeRegistry


class QueryService:
    """Probes one target string and returns a :class:`Measurement`.

    This is the unit of concurrency: the compare engine and the sampling loop
    only ever call :meth:`query_one`.
    """

    def __init__(self, registry: Optional[ProbeRegistry] = None):
        """
        Initialize the query service.

        Args:
            registry: Probe registry; a default NTP/NTS/PTP registry is built if omitted
        """
        self.registry = registry if registry is not None else ProbeRegistry()

    async def query_one(
        self,
        target: str,
        ipv6: bool = False,
        timeout: float = DEFAULT_TIMEOUT_S,
        options: Optional[ProbeOptions] = None,
    ) -> Measurement:
        """Probe ``target`` once.

        Args:
            target: Target string as typed by the user
            ipv6: Restrict resolution to IPv6 (forced on for IPv6 literals)
            timeout: Per-attempt budget in seconds, enforced by the protocol probe
            options: Protocol selection and protocol-specific options

        Returns:
            Measurement stamped with the original target string and resolved address

        Raises:
            ProbeError: on any failure; no partial measurement is returned
        """
        options = options or ProbeOptions()
        probe = self.registry.get(options.protocol)

        parsed = parse_target(target)
        if parsed.is_ipv6_literal:
            ipv6 = True

        ip = await asyncio.to_thread(resolve_ip, parsed.host, ipv6)
        port = parsed.port if parsed.port is not None else probe.default_port(options)

        CLOCKSCOPE_LOGGER.debug(f"Probing {target} via {probe.name} at {ip} port {port} (timeout {timeout:g}s)")
        try:
            raw = await probe.probe(parsed.host, ip, port, timeout, options)
        except ProbeError:
            raise
        except Exception as e:
            # A probe must map its own failures; anything else still must not escape untagged
            CLOCKSCOPE_LOGGER.error(f"Unexpected {probe.name} probe failure for {target}: {e}", exc_info=True)
            raise ProbeError.other(f"{probe.name} probe failed: {e}") from e

        return Measurement(
            target=Target(name=target, ip=ip, port=port),
            offset_ms=raw.offset_ms,
            rtt_ms=raw.rtt_ms,
            utc=raw.utc,
            authenticated=raw.authenticated,
            protocol_fields=raw.protocol_fields,
        )
