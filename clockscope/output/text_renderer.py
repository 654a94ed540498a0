"""Human-readable rendering of measurements, comparisons and statistics.

Every function returns a string styled with :func:`click.style`. Whether the
ANSI codes reach the terminal is decided when the string is echoed (see
:func:`resolve_color`), so renderers never look at the environment.
"""

import os
from email.utils import format_datetime
from typing import Iterable, List, Optional, Sequence, Tuple

import click

from clockscope.probing.probe_errors import ProbeError
from clockscope.probing.probe_models import Measurement, NtsFields, PtpFields
from clockscope.probing.probe_stats import Stats

LOCAL_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

# Formats whose output is meant for a human at a terminal
COLOR_FORMATS = ("text", "simple")


def resolve_color(output_format: str, no_color: bool = False) -> Optional[bool]:
    """
    Decide the ``color`` argument for :func:`click.echo`.

    Returns:
        False when colors are disabled (``--no-color``, ``NO_COLOR`` or a
        machine-readable format); None to let click strip styles on non-tty
        streams
    """
    if no_color or "NO_COLOR" in os.environ or output_format not in COLOR_FORMATS:
        return False
    return None


def _label(text: str) -> str:
    return click.style(text, fg="cyan", bold=True)


def _value(text) -> str:
    return click.style(str(text), fg="green")


def format_ns(value: int) -> str:
    return f"{value} ns ({value / 1000.0:.3f} us)"


def render_probe(measurement: Measurement, verbose: bool = False) -> str:
    """Full multi-line block for one measurement."""
    if isinstance(measurement.protocol_fields, PtpFields):
        return _render_ptp_probe(measurement, verbose)

    target = measurement.target
    lines = [
        f"{_label('Server:')} {_value(target.name)}",
        f"{_label('IP:')} {_value(target.ip)} ({target.ip_version})",
        f"{_label('UTC Time:')} {_value(format_datetime(measurement.utc))}",
        f"{_label('Local Time:')} {_value(measurement.local.strftime(LOCAL_TIME_FORMAT))}",
        f"{_label('Clock Offset:')} {measurement.offset_ms:.3f} ms",
        f"{_label('Round Trip Delay:')} {measurement.rtt_ms:.3f} ms",
    ]

    fields = measurement.protocol_fields
    if isinstance(fields, NtsFields):
        lines.append(f"{_label('NTS Authenticated:')} {_value('Yes' if measurement.authenticated else 'No')}")

    if verbose:
        lines.append(f"{_label('Stratum:')} {fields.stratum}")
        lines.append(f"{_label('Reference ID:')} {fields.ref_id}")
        if isinstance(fields, NtsFields) and fields.ke_data is not None:
            ke = fields.ke_data
            lines.append(f"{_label('NTS-KE Duration:')} {ke.ke_duration_ms:.3f} ms")
            lines.append(f"{_label('AEAD Algorithm:')} {ke.aead_algorithm}")
            lines.append(f"{_label('Cookies:')} {ke.cookie_count}")
            lines.append(f"{_label('NTP Server:')} {ke.ntp_server}")

    return "\n".join(lines)


def _render_ptp_probe(measurement: Measurement, verbose: bool) -> str:
    fields: PtpFields = measurement.protocol_fields
    quality = fields.clock_quality
    target = measurement.target
    lines = [
        f"{_label('Server:')} {_value(target.name)}",
        f"{_label('IP:')} {_value(target.ip)}:{_value(fields.event_port)}/{_value(fields.general_port)}",
        f"{_label('Domain:')} {fields.domain}",
        f"{_label('UTC Time:')} {_value(measurement.utc.isoformat())}",
        f"{_label('Local Time:')} {_value(measurement.local.isoformat())}",
        f"{_label('Clock Offset:')} {format_ns(fields.offset_ns)}",
        f"{_label('Mean Path Delay:')} {format_ns(fields.mean_path_delay_ns)}",
        f"{_label('Master Clock:')} {_value(fields.master_identity)}",
        f"{_label('Clock Class:')} {quality.clock_class} ({quality.class_description()})",
        f"{_label('Clock Accuracy:')} 0x{quality.clock_accuracy:02X} ({quality.accuracy_description()})",
        f"{_label('Time Source:')} {_value(fields.time_source.value)}",
    ]

    diag = fields.diagnostics
    if diag is not None:
        stats = diag.packet_stats
        lines += [
            "",
            click.style("=== PTP Diagnostics ===", fg="cyan", bold=True, underline=True),
            f"{_label('Master Port:')} {_value(diag.master_port_identity)}",
            f"{_label('Timestamp Mode:')} {_value(diag.timestamp_mode)}",
            f"{_label('Hardware Timestamping:')} {_value('Yes' if diag.hardware_timestamping else 'No')}",
            f"{_label('Steps Removed:')} {diag.steps_removed}",
            f"{_label('Current UTC Offset:')} {diag.current_utc_offset}s "
            f"(valid: {str(diag.current_utc_offset_valid).lower()})",
            f"{_label('Traceable:')} time={str(diag.time_traceable).lower()}, "
            f"freq={str(diag.frequency_traceable).lower()}",
            _label("Packet Statistics:"),
            f"  Sync RX: {stats.sync_received}",
            f"  Delay Resp RX: {stats.delay_resp_received}",
            f"  Announce RX: {stats.announce_received}",
            f"  Delay Req TX: {stats.delay_req_sent}",
            f"{_label('Measurement Duration:')} {diag.measurement_duration_ms:.3f} ms",
        ]
    elif verbose:
        lines += ["", "Diagnostics unavailable."]

    return "\n".join(lines)


def render_compare(
    measurements: Sequence[Measurement],
    verbose: bool = False,
    failures: Sequence[Tuple[str, ProbeError]] = (),
) -> str:
    """
    Side-by-side view of one fan-out batch.

    Args:
        measurements: Successful measurements in input order
        verbose: Add per-target stratum, reference id and delay
        failures: ``(target, error)`` pairs printed next to the successes

    Returns:
        Multi-line text ending with the drift summary across the successes
    """
    is_ptp = bool(measurements) and isinstance(measurements[0].protocol_fields, PtpFields)
    prefix = "Comparing PTP" if is_ptp else "Comparing"
    total = len(measurements) + len(failures)

    lines = []
    if total == 2 and len(measurements) == 2:
        first, second = measurements
        lines.append(
            f"{click.style(prefix + ':' if is_ptp else prefix, bold=True)} "
            f"{_value(first.target.name)} and {_value(second.target.name)}"
        )
    else:
        noun = "masters" if is_ptp else "servers"
        lines.append(f"{click.style(prefix + ' (async):', bold=True)} {total} {noun}")

    for m in measurements:
        lines.extend(_compare_lines(m, verbose))

    for name, error in failures:
        lines.append(f"{click.style(name, fg='green', bold=True)}: {click.style(f'Error: {error}', fg='red')}")

    if measurements:
        offsets = [m.offset_ms for m in measurements]
        low, high = min(offsets), max(offsets)
        avg = sum(offsets) / len(offsets)
        lines.append(
            f"{_label('Max drift:')} {high - low:.3f} ms (min: {low:.3f}, max: {high:.3f}, avg: {avg:.3f})"
        )
    return "\n".join(lines)


def _compare_lines(m: Measurement, verbose: bool) -> List[str]:
    name = click.style(m.target.name, fg="green", bold=True)
    fields = m.protocol_fields
    if isinstance(fields, PtpFields):
        lines = [
            f"{name} [{click.style(str(m.target.ip), fg='cyan')}] -> "
            f"{click.style(format_ns(fields.offset_ns), fg='yellow')}"
        ]
        if verbose:
            lines.append(f"  {_label('Master:')} {fields.master_identity}")
            lines.append(f"  {_label('Time Source:')} {fields.time_source.value}")
        return lines

    ip_color = "cyan" if m.target.ip_version == "v6" else "blue"
    lines = [
        f"{name} [{click.style(str(m.target.ip), fg=ip_color)} {m.target.ip_version}]: "
        f"{click.style(f'{m.offset_ms:.3f} ms', fg='yellow')}"
    ]
    if verbose:
        lines.append(f"  {_label('Stratum:')} {fields.stratum}")
        lines.append(f"  {_label('Reference ID:')} {fields.ref_id}")
        lines.append(f"  {_label('Round Trip Delay:')} {m.rtt_ms:.3f} ms")
    return lines


def render_short_probe(measurement: Measurement) -> str:
    """One line per iteration of a repeated run."""
    fields = measurement.protocol_fields
    name = _value(measurement.target.name)
    if isinstance(fields, PtpFields):
        return f"{name}:{fields.domain} {click.style(f'{fields.offset_ns} ns', fg='yellow')}"
    return (
        f"{name} [{measurement.target.ip}] "
        f"{click.style(f'{measurement.offset_ms:.3f} ms', fg='yellow')} rtt {measurement.rtt_ms:.3f} ms"
    )


def render_short_compare(measurements: Iterable[Measurement]) -> str:
    """One line per iteration of a repeated comparison."""
    measurements = list(measurements)
    parts = []
    for m in measurements:
        fields = m.protocol_fields
        if isinstance(fields, PtpFields):
            parts.append(f"{_value(m.target.name)}:{fields.domain}:{click.style(f'{fields.offset_ns}ns', fg='yellow')}")
        else:
            parts.append(f"{_value(m.target.name)}: {click.style(f'{m.offset_ms:.3f} ms', fg='yellow')}")
    separator = " " if any(isinstance(m.protocol_fields, PtpFields) for m in measurements) else " | "
    return separator.join(parts)


def render_simple_probe(measurement: Measurement) -> str:
    fields = measurement.protocol_fields
    name = _value(measurement.target.name)
    if isinstance(fields, PtpFields):
        return (
            f"{name}:{_value(fields.domain)} {click.style(f'{fields.offset_ns} ns', fg='yellow')} "
            f"delay {click.style(f'{fields.mean_path_delay_ns} ns', fg='cyan')}"
        )
    return (
        f"{name} {click.style(f'{measurement.offset_ms:.3f} ms', fg='yellow')} "
        f"rtt {click.style(f'{measurement.rtt_ms:.3f} ms', fg='cyan')}"
    )


def render_simple_compare(measurements: Iterable[Measurement]) -> str:
    return "\n".join(render_simple_probe(m) for m in measurements)


def render_stats(name: str, stats: Stats, ptp: bool = False) -> str:
    """Final summary line for a target sampled more than once."""
    label = click.style(name, fg="green", bold=True)
    if ptp:
        return (
            f"\n{label}: avg {stats.offset_avg * 1e6:.0f} ns (min {stats.offset_min * 1e6:.0f}, "
            f"max {stats.offset_max * 1e6:.0f}) delay avg {stats.rtt_avg * 1e6:.0f} ns ({stats.count} samples)"
        )
    return (
        f"\n{label}: avg {stats.offset_avg:.3f} ms (min {stats.offset_min:.3f}, "
        f"max {stats.offset_max:.3f}) rtt avg {stats.rtt_avg:.3f} ms ({stats.count} samples)"
    )


def render_max_avg_drift(drift: float) -> str:
    return f"Max avg drift: {drift:.3f} ms"


def render_error(error: Exception) -> str:
    return click.style(f"Error: {error}", fg="red")
