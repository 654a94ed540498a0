"""Target parsing, resolution, sampling and statistics for clockscope probes."""

from clockscope.probing.probe_errors import ProbeError, ProbeErrorKind, UsageError, exit_code_for
from clockscope.probing.probe_models import Measurement, ParsedTarget, SampleSeries, Target
from clockscope.probing.probe_stats import Stats, compute_stats, compute_stats_by_target, max_average_drift
from clockscope.probing.resolver import resolve_ip
from clockscope.probing.target_parser import format_target, parse_port, parse_target

__all__ = [
    "Measurement",
    "ParsedTarget",
    "ProbeError",
    "ProbeErrorKind",
    "SampleSeries",
    "Stats",
    "Target",
    "UsageError",
    "compute_stats",
    "compute_stats_by_target",
    "exit_code_for",
    "format_target",
    "max_average_drift",
    "parse_port",
    "parse_target",
    "resolve_ip",
]
