"""Simulated PTP probe.

A real IEEE 1588 exchange needs kernel and hardware timestamping support. This
probe derives every value deterministically from the target and options, so
the same inputs always produce the same clock description and offset, and the
rest of the tool can be exercised end to end.
"""

import asyncio
import hashlib
import time
from datetime import datetime, timezone

from clockscope.constants import PTP_EVENT_PORT
from clockscope.probing.probe_errors import ProbeError
from clockscope.probing.probe_models import PtpFields
from clockscope.protocols.abstract_protocol_probe import AbstractProtocolProbe, ProbeOptions, RawMeasurement
from clockscope.protocols.ptp_types import (
    ClockIdentity,
    ClockQuality,
    PacketStats,
    PtpDiagnostics,
    TimeSource,
)

_CLOCK_CLASSES = (6, 7, 13, 52, 58, 187, 248, 255)
_TIME_SOURCES = (
    TimeSource.ATOMIC_CLOCK,
    TimeSource.GPS,
    TimeSource.TERRESTRIAL_RADIO,
    TimeSource.PTP,
    TimeSource.NTP,
    TimeSource.HAND_SET,
    TimeSource.INTERNAL_OSCILLATOR,
)
_OFFSET_RANGE = 200_000  # +/- 2 ms once scaled to nanoseconds


def build_seed(name: str, ip, domain: int, event_port: int, general_port: int, hw_timestamping: bool) -> int:
    key = f"{name}|{ip}|{domain}|{event_port}|{general_port}|{int(hw_timestamping)}".encode()
    return int.from_bytes(hashlib.sha256(key).digest()[:8], "little")


def derive_clock_identity(seed: int) -> ClockIdentity:
    return ClockIdentity(tuple((seed >> (i * 8)) & 0xFF for i in range(8)))


def derive_clock_quality(seed: int) -> ClockQuality:
    return ClockQuality(
        clock_class=_CLOCK_CLASSES[seed & 0x7],
        clock_accuracy=0x20 + ((seed >> 8) & 0xFF) % 0x10,
        offset_scaled_log_variance=((seed >> 16) & 0xFFFF) | 0x0100,
    )


def derive_time_source(seed: int) -> TimeSource:
    return _TIME_SOURCES[seed % 7]


def derive_offset_ns(seed: int) -> int:
    return (seed % (_OFFSET_RANGE * 2) - _OFFSET_RANGE) * 10


def derive_path_delay_ns(seed: int) -> int:
    # up to 50 us, never zero
    return ((seed >> 11) % 50_000 + 1_000) * 10


def derive_packet_stats(seed: int) -> PacketStats:
    return PacketStats(
        sync_sent=(seed >> 5) % 3,
        sync_received=(seed >> 8) % 10 + 1,
        follow_up_received=(seed >> 10) % 8,
        delay_req_sent=(seed >> 12) % 5 + 1,
        delay_resp_received=(seed >> 14) % 5 + 1,
        announce_received=(seed >> 16) % 3,
    )


class PtpProbe(AbstractProtocolProbe):
    """Deterministic stand-in for a PTP grandmaster query."""

    name = "ptp"

    def default_port(self, options: ProbeOptions) -> int:
        return options.ptp_event_port or PTP_EVENT_PORT

    async def probe(self, host, ip, port, timeout, options) -> RawMeasurement:
        try:
            return await asyncio.wait_for(self._simulate(host, ip, port, options), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise ProbeError.timeout(f"ptp query timed out after {timeout:g}s") from e

    async def _simulate(self, host, ip, port, options: ProbeOptions) -> RawMeasurement:
        start = time.monotonic()
        seed = build_seed(host, ip, options.ptp_domain, port, options.ptp_general_port, options.ptp_hw_timestamp)
        # Yield once so concurrent probes interleave like real network I/O
        await asyncio.sleep(0)

        identity = derive_clock_identity(seed)
        offset_ns = derive_offset_ns(seed)
        delay_ns = derive_path_delay_ns(seed)

        diagnostics = None
        if options.verbose:
            diagnostics = PtpDiagnostics(
                master_port_identity=f"{identity}:1",
                hardware_timestamping=options.ptp_hw_timestamp,
                timestamp_mode=(
                    "hardware timestamping (simulated)"
                    if options.ptp_hw_timestamp
                    else "software timestamping (simulated)"
                ),
                steps_removed=(seed >> 3) % 4,
                current_utc_offset=37,
                current_utc_offset_valid=True,
                leap59=False,
                leap61=False,
                time_traceable=(seed & 0x1) == 0,
                frequency_traceable=(seed & 0x2) == 0,
                ptp_timescale=True,
                packet_stats=derive_packet_stats(seed),
                measurement_duration_ms=(time.monotonic() - start) * 1000.0,
            )

        return RawMeasurement(
            offset_ms=offset_ns / 1_000_000.0,
            rtt_ms=delay_ns / 1_000_000.0,
            utc=datetime.now(timezone.utc),
            authenticated=False,
            protocol_fields=PtpFields(
                offset_ns=offset_ns,
                mean_path_delay_ns=delay_ns,
                master_identity=identity,
                clock_quality=derive_clock_quality(seed),
                time_source=derive_time_source(seed),
                domain=options.ptp_domain,
                event_port=port,
                general_port=options.ptp_general_port,
                diagnostics=diagnostics,
            ),
        )
