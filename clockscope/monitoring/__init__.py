"""Monitoring plugin verdicts for clockscope."""

from clockscope.monitoring.plugin_status import (
    PluginStatus,
    Verdict,
    evaluate,
    evaluate_offset,
    format_threshold,
    validate_thresholds,
)

__all__ = [
    "PluginStatus",
    "Verdict",
    "evaluate",
    "evaluate_offset",
    "format_threshold",
    "validate_thresholds",
]
