"""Unit tests for the ntplib-backed NTP probe."""

import ipaddress
import socket
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import ntplib
import pytest

from clockscope.probing.probe_errors import ProbeError, ProbeErrorKind
from clockscope.probing.probe_models import NtpFields
from clockscope.protocols.abstract_protocol_probe import ProbeOptions
from clockscope.protocols.ntp_probe import NtpProbe, format_reference_id

ADDRESS = ipaddress.ip_address("192.0.2.1")
TX_TIME = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc).timestamp()


def _response(offset=0.0012, delay=0.015, stratum=2, ref_id=0xC0000201):
    response = MagicMock()
    response.offset = offset
    response.delay = delay
    response.tx_time = TX_TIME
    response.stratum = stratum
    response.ref_id = ref_id
    response.version = 4
    response.leap = 0
    return response


async def _probe(probe, timeout=1.0):
    return await probe.probe("time.example.com", ADDRESS, 123, timeout, ProbeOptions())


# ---------------------------------------------------------------------------
# Successful exchanges
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_successful_exchange_converts_to_milliseconds():
    probe = NtpProbe()
    with patch.object(probe.client, "request", return_value=_response()) as request:
        raw = await _probe(probe, timeout=2.0)

    request.assert_called_once_with("192.0.2.1", version=3, port=123, timeout=2.0)
    assert raw.offset_ms == pytest.approx(1.2)
    assert raw.rtt_ms == pytest.approx(15.0)
    assert raw.utc == datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
    assert raw.authenticated is False
    assert raw.protocol_fields == NtpFields(stratum=2, ref_id="192.0.2.1", version=4, leap=0)


@pytest.mark.asyncio
async def test_stratum_one_reference_is_ascii():
    probe = NtpProbe()
    gps = int.from_bytes(b"GPS\x00", "big")
    with patch.object(probe.client, "request", return_value=_response(stratum=1, ref_id=gps)):
        raw = await _probe(probe)
    assert raw.protocol_fields.ref_id == "GPS"


@pytest.mark.parametrize(
    "code, text",
    [(b"GPS\x00", "GPS"), (b"XFOO", "XFOO"), (b"PPS\x00", "PPS"), (b"\x01\x02\x03\x04", "0x01020304")],
)
def test_reference_codes_are_kept_verbatim(code, text):
    assert format_reference_id(int.from_bytes(code, "big"), 1) == text


def test_reference_id_is_an_address_above_stratum_one():
    assert format_reference_id(0xC0000201, 3) == "192.0.2.1"


def test_default_port():
    assert NtpProbe().default_port(ProbeOptions()) == 123


def test_reference_id_falls_back_to_hex_for_invalid_stratum():
    assert format_reference_id(0xDEADBEEF, 255) == "0xDEADBEEF"


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "exception, kind",
    [
        (ntplib.NTPException("No response received from 192.0.2.1."), ProbeErrorKind.TIMEOUT),
        (ntplib.NTPException("Invalid NTP packet."), ProbeErrorKind.PROTOCOL),
        (socket.timeout("timed out"), ProbeErrorKind.TIMEOUT),
        (ConnectionRefusedError(111, "Connection refused"), ProbeErrorKind.NETWORK),
        (OSError(101, "Network is unreachable"), ProbeErrorKind.NETWORK),
    ],
)
async def test_library_errors_are_mapped(exception, kind):
    probe = NtpProbe()
    with patch.object(probe.client, "request", side_effect=exception):
        with pytest.raises(ProbeError) as exc_info:
            await _probe(probe)
    assert exc_info.value.kind == kind


@pytest.mark.asyncio
async def test_stratum_zero_is_protocol_error():
    probe = NtpProbe()
    rate = int.from_bytes(b"RATE", "big")
    with patch.object(probe.client, "request", return_value=_response(stratum=0, ref_id=rate)):
        with pytest.raises(ProbeError) as exc_info:
            await _probe(probe)
    assert exc_info.value.kind == ProbeErrorKind.PROTOCOL
    assert "RATE" in exc_info.value.message
