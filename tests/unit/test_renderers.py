"""Unit tests for text and JSON rendering."""

import json
from datetime import datetime, timezone

import click
import pytest

from clockscope.output import json_renderer, text_renderer
from clockscope.probing.probe_errors import ProbeError
from clockscope.probing.probe_models import NtsFields, PtpFields
from clockscope.probing.probe_stats import Stats
from clockscope.protocols.nts_types import NtsKeData, NtsValidationOutcome
from clockscope.protocols.ptp_types import ClockIdentity, ClockQuality, PacketStats, PtpDiagnostics, TimeSource

from .conftest import build_measurement


def _plain(text):
    return click.unstyle(text)


def _ptp_fields(offset_ns=1500, delay_ns=20000, diagnostics=None):
    return PtpFields(
        offset_ns=offset_ns,
        mean_path_delay_ns=delay_ns,
        master_identity=ClockIdentity((0, 0x1B, 0x21, 0xFF, 0xFE, 0x12, 0x34, 0x56)),
        clock_quality=ClockQuality(clock_class=6, clock_accuracy=0x21, offset_scaled_log_variance=0x4E5D),
        time_source=TimeSource.GPS,
        domain=24,
        event_port=319,
        general_port=320,
        diagnostics=diagnostics,
    )


def _diagnostics():
    return PtpDiagnostics(
        master_port_identity="00:1B:21:FF:FE:12:34:56:1",
        hardware_timestamping=False,
        timestamp_mode="software timestamping (simulated)",
        steps_removed=1,
        current_utc_offset=37,
        current_utc_offset_valid=True,
        leap59=False,
        leap61=False,
        time_traceable=True,
        frequency_traceable=False,
        ptp_timescale=True,
        packet_stats=PacketStats(sync_received=4, delay_resp_received=2),
        measurement_duration_ms=0.25,
    )


def _ptp_measurement(name="gm.example.com", **kwargs):
    fields = _ptp_fields(**kwargs)
    return build_measurement(
        name=name,
        offset_ms=fields.offset_ns / 1e6,
        rtt_ms=fields.mean_path_delay_ns / 1e6,
        port=319,
        protocol_fields=fields,
    )


# ---------------------------------------------------------------------------
# Color handling
# ---------------------------------------------------------------------------


def test_resolve_color(monkeypatch):
    monkeypatch.delenv("NO_COLOR", raising=False)
    assert text_renderer.resolve_color("text") is None
    assert text_renderer.resolve_color("simple") is None
    assert text_renderer.resolve_color("json") is False
    assert text_renderer.resolve_color("text", no_color=True) is False

    monkeypatch.setenv("NO_COLOR", "1")
    assert text_renderer.resolve_color("text") is False


# ---------------------------------------------------------------------------
# Text: single probe
# ---------------------------------------------------------------------------


def test_render_ntp_probe():
    text = _plain(text_renderer.render_probe(build_measurement(offset_ms=1.2345, rtt_ms=15.0)))

    assert "Server: time.example.com" in text
    assert "IP: 192.0.2.1 (v4)" in text
    assert "UTC Time: Fri, 01 Mar 2024 12:00:00 +0000" in text
    assert "Clock Offset: 1.234 ms" in text or "Clock Offset: 1.235 ms" in text
    assert "Round Trip Delay: 15.000 ms" in text
    assert "Stratum" not in text


def test_render_ntp_probe_verbose():
    text = _plain(text_renderer.render_probe(build_measurement(stratum=1, ref_id="PPS"), verbose=True))
    assert "Stratum: 1" in text
    assert "Reference ID: PPS" in text


def test_render_nts_probe_verbose():
    fields = NtsFields(
        stratum=1,
        ref_id="nts.example.com",
        ke_data=NtsKeData(ke_duration_ms=41.5, cookie_count=8, aead_algorithm="AEAD_AES_SIV_CMAC_256", ntp_server="x"),
        validation=NtsValidationOutcome.success(),
    )
    measurement = build_measurement(name="nts.example.com", protocol_fields=fields, authenticated=True)
    text = _plain(text_renderer.render_probe(measurement, verbose=True))

    assert "NTS Authenticated: Yes" in text
    assert "NTS-KE Duration: 41.500 ms" in text
    assert "Cookies: 8" in text


def test_render_ptp_probe():
    text = _plain(text_renderer.render_probe(_ptp_measurement()))

    assert "Domain: 24" in text
    assert "Clock Offset: 1500 ns (1.500 us)" in text
    assert "Master Clock: 00:1B:21:FF:FE:12:34:56" in text
    assert "Clock Class: 6 (Primary reference (GPS/Atomic))" in text
    assert "Clock Accuracy: 0x21 (within 100 ns)" in text
    assert "PTP Diagnostics" not in text


def test_render_ptp_probe_verbose_with_and_without_diagnostics():
    with_diag = _plain(text_renderer.render_probe(_ptp_measurement(diagnostics=_diagnostics()), verbose=True))
    assert "=== PTP Diagnostics ===" in with_diag
    assert "Current UTC Offset: 37s (valid: true)" in with_diag
    assert "Sync RX: 4" in with_diag

    without = _plain(text_renderer.render_probe(_ptp_measurement(), verbose=True))
    assert "Diagnostics unavailable." in without


# ---------------------------------------------------------------------------
# Text: compare and short forms
# ---------------------------------------------------------------------------


def test_render_compare_two_servers():
    a = build_measurement(name="a.example.com", offset_ms=1.0)
    b = build_measurement(name="b.example.com", offset_ms=-0.5, ip="2001:db8::2")
    text = _plain(text_renderer.render_compare([a, b]))

    lines = text.splitlines()
    assert lines[0] == "Comparing a.example.com and b.example.com"
    assert lines[1] == "a.example.com [192.0.2.1 v4]: 1.000 ms"
    assert lines[2] == "b.example.com [2001:db8::2 v6]: -0.500 ms"
    assert lines[-1] == "Max drift: 1.500 ms (min: -0.500, max: 1.000, avg: 0.250)"


def test_render_compare_with_failure():
    a = build_measurement(name="a.example.com", offset_ms=1.0)
    b = build_measurement(name="b.example.com", offset_ms=2.0)
    failure = ("c.example.com", ProbeError.timeout("no response"))
    text = _plain(text_renderer.render_compare([a, b], failures=[failure]))

    assert text.splitlines()[0] == "Comparing (async): 3 servers"
    assert "c.example.com: Error: timeout: no response" in text
    assert "Max drift: 1.000 ms" in text


def test_render_compare_ptp():
    text = _plain(text_renderer.render_compare([_ptp_measurement("gm1"), _ptp_measurement("gm2")]))
    assert text.splitlines()[0] == "Comparing PTP: gm1 and gm2"
    assert "gm1 [192.0.2.1] -> 1500 ns (1.500 us)" in text


def test_render_short_probe():
    assert _plain(text_renderer.render_short_probe(build_measurement(offset_ms=0.5, rtt_ms=9.0))) == (
        "time.example.com [192.0.2.1] 0.500 ms rtt 9.000 ms"
    )
    assert _plain(text_renderer.render_short_probe(_ptp_measurement())) == "gm.example.com:24 1500 ns"


def test_render_short_compare():
    a = build_measurement(name="a", offset_ms=1.0)
    b = build_measurement(name="b", offset_ms=2.0)
    assert _plain(text_renderer.render_short_compare(iter([a, b]))) == "a: 1.000 ms | b: 2.000 ms"
    assert _plain(text_renderer.render_short_compare([_ptp_measurement("g1"), _ptp_measurement("g2")])) == (
        "g1:24:1500ns g2:24:1500ns"
    )


def test_render_simple():
    assert _plain(text_renderer.render_simple_probe(build_measurement(offset_ms=1.0, rtt_ms=2.0))) == (
        "time.example.com 1.000 ms rtt 2.000 ms"
    )
    assert _plain(text_renderer.render_simple_probe(_ptp_measurement())) == "gm.example.com:24 1500 ns delay 20000 ns"


def test_render_stats():
    stats = Stats(count=3, offset_avg=1.0, offset_min=-1.0, offset_max=3.0, rtt_avg=20.0)
    assert _plain(text_renderer.render_stats("a", stats)) == (
        "\na: avg 1.000 ms (min -1.000, max 3.000) rtt avg 20.000 ms (3 samples)"
    )
    ptp = Stats(count=2, offset_avg=0.0015, offset_min=0.001, offset_max=0.002, rtt_avg=0.02)
    assert _plain(text_renderer.render_stats("gm", ptp, ptp=True)) == (
        "\ngm: avg 1500 ns (min 1000, max 2000) delay avg 20000 ns (2 samples)"
    )


def test_render_drift_and_error():
    assert text_renderer.render_max_avg_drift(2.0) == "Max avg drift: 2.000 ms"
    assert _plain(text_renderer.render_error(ProbeError.dns("no such host"))) == "Error: dns: no such host"


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


def test_to_json_document():
    run_ts = datetime(2024, 3, 1, 12, 0, 5, tzinfo=timezone.utc)
    document = json.loads(json_renderer.to_json([build_measurement(offset_ms=1.5)], run_ts=run_ts))

    assert document["schema_version"] == 1
    assert document["run_ts"] == "2024-03-01T12:00:05+00:00"
    assert "errors" not in document
    (item,) = document["results"]
    assert item["name"] == "time.example.com"
    assert item["ip"] == "192.0.2.1"
    assert item["ip_version"] == "v4"
    assert item["port"] == 123
    assert item["protocol"] == "ntp"
    assert item["offset_ms"] == 1.5
    assert item["utc"] == "2024-03-01T12:00:00+00:00"
    assert item["timestamp"] == 1709294400
    assert item["authenticated"] is False
    assert "stratum" not in item


def test_to_json_verbose_and_errors():
    failure = ("down.example.com", ProbeError.network("connection refused"))
    document = json.loads(json_renderer.to_json([build_measurement()], verbose=True, failures=[failure]))

    assert document["results"][0]["stratum"] == 2
    assert document["results"][0]["ref_id"] == "GPS"
    assert document["errors"] == [{"name": "down.example.com", "kind": "network", "message": "connection refused"}]


def test_to_json_ptp_fields():
    quiet = json.loads(json_renderer.to_json([_ptp_measurement(diagnostics=_diagnostics())]))["results"][0]
    assert quiet["protocol"] == "ptp"
    assert quiet["offset_ns"] == 1500
    assert quiet["master_identity"] == "00:1B:21:FF:FE:12:34:56"
    assert quiet["clock_quality"]["clock_class"] == 6
    assert "diagnostics" not in quiet

    verbose = json.loads(json_renderer.to_json([_ptp_measurement(diagnostics=_diagnostics())], verbose=True))
    assert verbose["results"][0]["diagnostics"]["current_utc_offset"] == 37


def test_pretty_json_is_indented():
    assert "\n  " in json_renderer.to_json([build_measurement()], pretty=True)
    assert "\n" not in json_renderer.to_json([build_measurement()])


def test_short_json():
    items = json.loads(json_renderer.to_short_json([build_measurement(offset_ms=0.5), _ptp_measurement()]))
    assert items[0] == {"utc": "2024-03-01T12:00:00+00:00", "name": "time.example.com", "offset_ms": 0.5}
    assert items[1] == {"utc": "2024-03-01T12:00:00+00:00", "name": "gm.example.com", "domain": 24, "offset_ns": 1500}
    assert json.loads(json_renderer.probe_to_short_json(build_measurement(offset_ms=0.5)))["offset_ms"] == 0.5


def test_stats_json():
    stats = Stats(count=2, offset_avg=1.0, offset_min=0.5, offset_max=1.5, rtt_avg=10.0)
    assert json.loads(json_renderer.stats_to_json("a", stats)) == {
        "name": "a",
        "count": 2,
        "offset_avg": 1.0,
        "offset_min": 0.5,
        "offset_max": 1.5,
        "rtt_avg": 10.0,
    }
    listed = json.loads(json_renderer.stats_list_to_json([("a", stats), ("b", stats)]))
    assert [item["name"] for item in listed] == ["a", "b"]


@pytest.mark.parametrize("renderer", [json_renderer.to_json, json_renderer.to_short_json])
def test_empty_results_are_valid_json(renderer):
    assert json.loads(renderer([])) is not None
