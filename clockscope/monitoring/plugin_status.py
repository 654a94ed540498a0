"""Nagios/Centreon style threshold evaluation and status lines."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from clockscope.probing.probe_errors import UsageError
from clockscope.probing.probe_models import Measurement
from clockscope.probing.probe_stats import Stats


class Verdict(str, Enum):
    """Monitoring plugin states."""

    OK = "OK"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"
    UNKNOWN = "UNKNOWN"

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self]


_EXIT_CODES = {
    Verdict.OK: 0,
    Verdict.WARNING: 1,
    Verdict.CRITICAL: 2,
    Verdict.UNKNOWN: 3,
}


def validate_thresholds(warning: Optional[float], critical: Optional[float]) -> None:
    """
    Reject unusable thresholds before anything is probed.

    Args:
        warning: Warning threshold on the absolute offset, or None
        critical: Critical threshold on the absolute offset, or None

    Raises:
        UsageError: if a threshold is negative or warning is not below critical
    """
    if warning is not None and warning < 0:
        raise UsageError(f"--warning must be non-negative, got {format_threshold(warning)}")
    if critical is not None and critical < 0:
        raise UsageError(f"--critical must be non-negative, got {format_threshold(critical)}")
    if warning is not None and critical is not None and warning >= critical:
        raise UsageError(
            f"--warning ({format_threshold(warning)}) must be lower than --critical ({format_threshold(critical)})"
        )


def evaluate_offset(offset: float, warning: Optional[float], critical: Optional[float]) -> Verdict:
    """Classify one offset. Boundaries are inclusive and critical wins over warning."""
    magnitude = abs(offset)
    if critical is not None and magnitude >= critical:
        return Verdict.CRITICAL
    if warning is not None and magnitude >= warning:
        return Verdict.WARNING
    return Verdict.OK


def evaluate(stats: Optional[Stats], warning: Optional[float], critical: Optional[float]) -> Verdict:
    """Classify the average offset of a run; no samples at all means UNKNOWN."""
    if stats is None or stats.count == 0:
        return Verdict.UNKNOWN
    return evaluate_offset(stats.offset_avg, warning, critical)


def format_threshold(value: Optional[float]) -> str:
    """Plain decimal form of a threshold (``5``, ``0.5``, ``0.00001``); empty when unset.

    Nagios range syntax has no exponent notation, so small values are spelled out.
    """
    if value is None:
        return ""
    text = f"{float(value):.9f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


@dataclass(frozen=True)
class PluginStatus:
    """Verdict plus the single line a monitoring plugin prints."""

    verdict: Verdict
    line: str

    @property
    def exit_code(self) -> int:
        return self.verdict.exit_code

    @classmethod
    def for_ntp(
        cls,
        stats: Optional[Stats],
        first: Optional[Measurement],
        warning: Optional[float] = None,
        critical: Optional[float] = None,
    ) -> "PluginStatus":
        """
        Build the NTP/NTS status line from a run's statistics.

        Args:
            stats: Statistics over the successful samples, or None if there were none
            first: First successful measurement of the run, supplying host and address
            warning: Warning threshold in milliseconds
            critical: Critical threshold in milliseconds

        Returns:
            PluginStatus with the verdict and formatted line
        """
        warn, crit = format_threshold(warning), format_threshold(critical)
        verdict = evaluate(stats, warning, critical)
        if verdict is Verdict.UNKNOWN or first is None:
            return cls(
                Verdict.UNKNOWN,
                f"UNKNOWN - request failed | offset_ms=;{warn};{crit};0; rtt_ms=;;;0;",
            )

        o, r = stats.offset_avg, stats.rtt_avg
        host, ip = first.target.name, first.target.ip
        return cls(
            verdict,
            f"{verdict.value} - offset {o:.3f}ms rtt {r:.3f}ms from {host} ({ip}) "
            f"| offset_ms={o:.3f};{warn};{crit};0; rtt_ms={r:.3f};;;0;",
        )

    @classmethod
    def for_ptp(
        cls,
        stats: Optional[Stats],
        first: Optional[Measurement],
        warning: Optional[float] = None,
        critical: Optional[float] = None,
    ) -> "PluginStatus":
        """PTP variant: thresholds and perfdata in nanoseconds, delay instead of rtt."""
        warn, crit = format_threshold(warning), format_threshold(critical)
        if stats is None or stats.count == 0 or first is None:
            return cls(
                Verdict.UNKNOWN,
                f"UNKNOWN - PTP request failed | offset_ns=;{warn};{crit};0; delay_ns=;;;0;",
            )

        o = stats.offset_avg * 1e6
        d = stats.rtt_avg * 1e6
        verdict = evaluate_offset(o, warning, critical)
        host, ip = first.target.name, first.target.ip
        return cls(
            verdict,
            f"{verdict.value} - offset {o:.0f}ns delay {d:.0f}ns from {host} ({ip}) "
            f"| offset_ns={o:.0f};{warn};{crit};0; delay_ns={d:.0f};;;0;",
        )
