"""JSON documents for probe runs and sampling statistics."""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from clockscope.constants import JSON_SCHEMA_VERSION
from clockscope.output.text_renderer import LOCAL_TIME_FORMAT
from clockscope.probing.probe_errors import ProbeError
from clockscope.probing.probe_models import Measurement, PtpFields
from clockscope.probing.probe_stats import Stats


def _dumps(document: Any, pretty: bool) -> str:
    return json.dumps(document, indent=2 if pretty else None)


def measurement_to_dict(measurement: Measurement, verbose: bool = False) -> Dict[str, Any]:
    """
    Flatten a measurement into plain JSON types.

    Args:
        measurement: Measurement to serialize
        verbose: Include protocol diagnostics (stratum and reference id for
            NTP, key-exchange details for NTS, clock diagnostics for PTP)

    Returns:
        Dictionary ready for :func:`json.dumps`
    """
    target = measurement.target
    item: Dict[str, Any] = {
        "name": target.name,
        "ip": str(target.ip),
        "ip_version": target.ip_version,
        "port": target.port,
        "protocol": measurement.protocol,
        "offset_ms": measurement.offset_ms,
        "rtt_ms": measurement.rtt_ms,
        "utc": measurement.utc.isoformat(),
        "local": measurement.local.strftime(LOCAL_TIME_FORMAT),
        "timestamp": measurement.timestamp,
        "authenticated": measurement.authenticated,
    }

    fields = measurement.protocol_fields
    if isinstance(fields, PtpFields):
        ptp = fields.to_dict()
        if not verbose:
            ptp.pop("diagnostics")
        item.update(ptp)
    elif verbose:
        item.update(fields.to_dict())
    return item


def to_json(
    measurements: Sequence[Measurement],
    pretty: bool = False,
    verbose: bool = False,
    failures: Sequence[Tuple[str, ProbeError]] = (),
    run_ts: Optional[datetime] = None,
) -> str:
    """Full run document: ``schema_version``, ``run_ts`` and ``results``.

    Failed targets of a comparison are listed under ``errors`` when present.
    """
    document: Dict[str, Any] = {
        "schema_version": JSON_SCHEMA_VERSION,
        "run_ts": (run_ts or datetime.now(timezone.utc)).isoformat(),
        "results": [measurement_to_dict(m, verbose) for m in measurements],
    }
    if failures:
        document["errors"] = [
            {"name": name, "kind": error.kind.value, "message": error.message} for name, error in failures
        ]
    return _dumps(document, pretty)


def _short_item(measurement: Measurement) -> Dict[str, Any]:
    item: Dict[str, Any] = {"utc": measurement.utc.isoformat(), "name": measurement.target.name}
    fields = measurement.protocol_fields
    if isinstance(fields, PtpFields):
        item["domain"] = fields.domain
        item["offset_ns"] = fields.offset_ns
    else:
        item["offset_ms"] = measurement.offset_ms
    return item


def to_short_json(measurements: Iterable[Measurement], pretty: bool = False) -> str:
    """Compact array, one object per measurement."""
    return _dumps([_short_item(m) for m in measurements], pretty)


def probe_to_short_json(measurement: Measurement) -> str:
    """Single compact object, used for one line per iteration."""
    return json.dumps(_short_item(measurement))


def stats_to_json(name: str, stats: Stats, pretty: bool = False) -> str:
    return _dumps({"name": name, **stats.to_dict()}, pretty)


def stats_list_to_json(stats_list: Iterable[Tuple[str, Stats]], pretty: bool = False) -> str:
    items: List[Dict[str, Any]] = [{"name": name, **stats.to_dict()} for name, stats in stats_list]
    return _dumps(items, pretty)
