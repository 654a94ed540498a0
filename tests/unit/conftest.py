"""Shared fixtures for clockscope unit tests."""

import ipaddress
from datetime import datetime, timezone

import pytest

from clockscope.probing.probe_errors import ProbeError
from clockscope.probing.probe_models import Measurement, NtpFields, Target
from clockscope.protocols.abstract_protocol_probe import AbstractProtocolProbe, RawMeasurement

UTC_NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def build_measurement(
    name="time.example.com",
    offset_ms=1.0,
    rtt_ms=10.0,
    ip="192.0.2.1",
    port=123,
    stratum=2,
    ref_id="GPS",
    protocol_fields=None,
    authenticated=False,
):
    return Measurement(
        target=Target(name=name, ip=ipaddress.ip_address(ip), port=port),
        offset_ms=offset_ms,
        rtt_ms=rtt_ms,
        utc=UTC_NOW,
        authenticated=authenticated,
        protocol_fields=protocol_fields or NtpFields(stratum=stratum, ref_id=ref_id),
    )


class FakeProbe(AbstractProtocolProbe):
    """Probe answering from a per-host table of offsets or ProbeErrors."""

    name = "ntp"

    def __init__(self, answers=None, default_offset=1.0):
        self.answers = answers or {}
        self.default_offset = default_offset
        self.calls = []

    def default_port(self, options):
        return 123

    async def probe(self, host, ip, port, timeout, options):
        self.calls.append((host, ip, port, timeout))
        answer = self.answers.get(host, self.default_offset)
        if isinstance(answer, BaseException):
            raise answer
        if callable(answer):
            answer = answer()
        return RawMeasurement(
            offset_ms=answer,
            rtt_ms=10.0,
            utc=UTC_NOW,
            authenticated=False,
            protocol_fields=NtpFields(stratum=2, ref_id="GPS"),
        )


@pytest.fixture
def make_measurement():
    """Factory for NTP measurements with sensible defaults."""
    return build_measurement


@pytest.fixture
def fake_probe():
    return FakeProbe()


@pytest.fixture
def resolve_to_test_net(monkeypatch):
    """Resolve every host name to 192.0.2.1 without touching DNS (IPv6 hosts to 2001:db8::1)."""

    def fake_resolve(host, ipv6_only=False):
        if host.startswith("unresolvable"):
            raise ProbeError.dns(f"failed to resolve '{host}'")
        return ipaddress.ip_address("2001:db8::1" if ipv6_only else "192.0.2.1")

    monkeypatch.setattr("clockscope.probing.query_service.resolve_ip", fake_resolve)
    return fake_resolve
