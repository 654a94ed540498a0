"""Unit tests for the single-target query service and the compare engine."""

import asyncio
import ipaddress

import pytest

from clockscope.probing.compare_engine import CompareEngine
from clockscope.probing.probe_errors import ProbeError, ProbeErrorKind
from clockscope.probing.query_service import QueryService
from clockscope.protocols.abstract_protocol_probe import ProbeOptions, Protocol
from clockscope.protocols.probe_registry import ProbeRegistry

from .conftest import FakeProbe


def _service(probe):
    return QueryService(ProbeRegistry({Protocol.NTP: probe}))


# ---------------------------------------------------------------------------
# QueryService
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_query_one_stamps_original_target_and_resolved_ip(resolve_to_test_net):
    probe = FakeProbe(default_offset=2.5)
    measurement = await _service(probe).query_one("time.example.com")

    assert measurement.target.name == "time.example.com"
    assert measurement.target.ip == ipaddress.ip_address("192.0.2.1")
    assert measurement.target.port == 123
    assert measurement.offset_ms == 2.5
    assert measurement.protocol == "ntp"


@pytest.mark.asyncio
async def test_query_one_uses_explicit_port(resolve_to_test_net):
    probe = FakeProbe()
    measurement = await _service(probe).query_one("time.example.com:1123", timeout=2.0)

    assert measurement.target.port == 1123
    assert probe.calls == [("time.example.com", ipaddress.ip_address("192.0.2.1"), 1123, 2.0)]


@pytest.mark.asyncio
async def test_ipv6_literal_forces_ipv6_resolution(resolve_to_test_net):
    probe = FakeProbe()
    measurement = await _service(probe).query_one("[2001:db8::1]:123")
    assert measurement.target.ip.version == 6


@pytest.mark.asyncio
async def test_parse_error_is_raised_before_probing(resolve_to_test_net):
    probe = FakeProbe()
    with pytest.raises(ProbeError) as exc_info:
        await _service(probe).query_one("host:0")
    assert exc_info.value.kind == ProbeErrorKind.OTHER
    assert probe.calls == []


@pytest.mark.asyncio
async def test_dns_failure_propagates(resolve_to_test_net):
    with pytest.raises(ProbeError) as exc_info:
        await _service(FakeProbe()).query_one("unresolvable.example.com")
    assert exc_info.value.kind == ProbeErrorKind.DNS


@pytest.mark.asyncio
async def test_probe_error_propagates_unchanged(resolve_to_test_net):
    probe = FakeProbe({"slow.example.com": ProbeError.timeout()})
    with pytest.raises(ProbeError) as exc_info:
        await _service(probe).query_one("slow.example.com")
    assert exc_info.value.kind == ProbeErrorKind.TIMEOUT


@pytest.mark.asyncio
async def test_unexpected_probe_exception_is_wrapped(resolve_to_test_net):
    probe = FakeProbe({"broken.example.com": KeyError("boom")})
    with pytest.raises(ProbeError) as exc_info:
        await _service(probe).query_one("broken.example.com")
    assert exc_info.value.kind == ProbeErrorKind.OTHER


@pytest.mark.asyncio
async def test_protocol_selects_probe(resolve_to_test_net):
    ntp, ptp = FakeProbe(default_offset=1.0), FakeProbe(default_offset=7.0)
    service = QueryService(ProbeRegistry({Protocol.NTP: ntp, Protocol.PTP: ptp}))

    measurement = await service.query_one("grandmaster.example.com", options=ProbeOptions(protocol=Protocol.PTP))

    assert measurement.offset_ms == 7.0
    assert ntp.calls == []


# ---------------------------------------------------------------------------
# CompareEngine
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_compare_keeps_input_order(resolve_to_test_net):
    probe = FakeProbe({"a.example.com": 1.0, "b.example.com": 2.0, "c.example.com": 3.0})
    engine = CompareEngine(_service(probe))

    result = await engine.compare(["c.example.com", "a.example.com", "b.example.com"])

    assert [m.target.name for m in result.measurements] == ["c.example.com", "a.example.com", "b.example.com"]
    assert [m.offset_ms for m in result.measurements] == [3.0, 1.0, 2.0]
    assert result.failures == []


@pytest.mark.asyncio
async def test_one_failing_target_does_not_affect_the_others(resolve_to_test_net):
    probe = FakeProbe({"down.example.com": ProbeError.network("connection refused")})
    engine = CompareEngine(_service(probe))

    result = await engine.compare(["up1.example.com", "down.example.com", "up2.example.com"])

    assert [m.target.name for m in result.measurements] == ["up1.example.com", "up2.example.com"]
    assert len(result.failures) == 1
    name, error = result.failures[0]
    assert name == "down.example.com"
    assert error.kind == ProbeErrorKind.NETWORK
    assert error.target == "down.example.com"


@pytest.mark.asyncio
async def test_dns_failure_of_one_target_is_isolated(resolve_to_test_net):
    engine = CompareEngine(_service(FakeProbe()))
    result = await engine.compare(["unresolvable.example.com", "ok.example.com"])

    assert [m.target.name for m in result.measurements] == ["ok.example.com"]
    assert result.failures[0][1].kind == ProbeErrorKind.DNS


@pytest.mark.asyncio
async def test_all_failed_raises_first_failure_in_input_order(resolve_to_test_net):
    probe = FakeProbe({"a.example.com": ProbeError.timeout(), "b.example.com": ProbeError.network("unreachable")})
    engine = CompareEngine(_service(probe))

    with pytest.raises(ProbeError) as exc_info:
        await engine.compare(["a.example.com", "b.example.com"])
    assert exc_info.value.kind == ProbeErrorKind.TIMEOUT


@pytest.mark.asyncio
async def test_gather_reports_all_failures_without_raising(resolve_to_test_net):
    probe = FakeProbe({"a.example.com": ProbeError.timeout(), "b.example.com": ProbeError.network("unreachable")})
    result = await CompareEngine(_service(probe)).gather(["a.example.com", "b.example.com"])

    assert result.all_failed
    assert [name for name, _ in result.failures] == ["a.example.com", "b.example.com"]


@pytest.mark.asyncio
async def test_empty_target_list_is_an_error():
    with pytest.raises(ProbeError) as exc_info:
        await CompareEngine(_service(FakeProbe())).compare([])
    assert exc_info.value.kind == ProbeErrorKind.OTHER


@pytest.mark.asyncio
async def test_probes_run_concurrently(resolve_to_test_net):
    running = 0
    peak = 0

    class SlowProbe(FakeProbe):
        async def probe(self, host, ip, port, timeout, options):
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            return await super().probe(host, ip, port, timeout, options)

    engine = CompareEngine(_service(SlowProbe()))
    result = await engine.compare([f"s{i}.example.com" for i in range(4)])

    assert len(result.measurements) == 4
    assert peak == 4
