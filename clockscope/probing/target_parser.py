"""Target string parsing.

Accepted forms::

    hostname            hostname:123
    192.0.2.1           192.0.2.1:123
    [2001:db8::1]       [2001:db8::1]:123
    2001:db8::1         (bare IPv6, never with a port)

A bracket prefix means IPv6 with an optional port. Without brackets the
number of colons decides: none is a host, one is ``host:port``, two or more is
a bare IPv6 literal. Ports on IPv6 literals therefore require brackets.
"""

import ipaddress
from typing import Optional

from clockscope.probing.probe_errors import ProbeError
from clockscope.probing.probe_models import ParsedTarget

MIN_PORT = 1
MAX_PORT = 65535


def parse_port(text: str) -> int:
    """Parse a decimal port in ``[1, 65535]``.

    Raises:
        ProbeError: if ``text`` is not decimal digits or is out of range.
    """
    if not text or not text.isdigit() or not text.isascii():
        raise ProbeError.other(f"invalid port: '{text}'")
    value = int(text)
    if value < MIN_PORT or value > MAX_PORT:
        raise ProbeError.other(f"port out of range [{MIN_PORT}..{MAX_PORT}]: {value}")
    return value


def _is_ipv6(text: str) -> bool:
    try:
        ipaddress.IPv6Address(text)
    except ValueError:
        return False
    return True


def _parse_bracketed(text: str) -> ParsedTarget:
    close = text.find("]")
    if close == -1:
        raise ProbeError.other(f"missing closing ']' in '{text}'")
    host = text[1:close]
    tail = text[close + 1 :]
    if not host:
        raise ProbeError.other(f"empty IPv6 literal in '{text}'")

    port: Optional[int] = None
    if tail.startswith(":"):
        port = parse_port(tail[1:])
    elif tail:
        raise ProbeError.other(f"unexpected trailing characters in '{text}'")
    return ParsedTarget(host=host, port=port, is_ipv6_literal=True)


def _parse_bare_ipv6(text: str) -> ParsedTarget:
    if not _is_ipv6(text):
        raise ProbeError.other(f"'{text}' is not a valid IPv6 address (use [address]:port to give a port)")

    head, _, last_group = text.rpartition(":")
    if last_group.isdigit() and MIN_PORT <= int(last_group) <= MAX_PORT and _is_ipv6(head):
        raise ProbeError.other(
            f"ambiguous target '{text}': write [{head}]:{last_group} for a port or [{text}] for the address"
        )
    return ParsedTarget(host=text, port=None, is_ipv6_literal=True)


def parse_target(text: str) -> ParsedTarget:
    """Split a user-supplied target into host, port and IPv6 hint.

    Args:
        text: Target as typed by the user (surrounding whitespace ignored)

    Returns:
        ParsedTarget for the input

    Raises:
        ProbeError: with kind ``OTHER`` when the input cannot be parsed
    """
    s = text.strip()
    if not s:
        raise ProbeError.other("empty target")

    if s.startswith("["):
        return _parse_bracketed(s)

    colons = s.count(":")
    if colons == 0:
        return ParsedTarget(host=s, port=None, is_ipv6_literal=False)
    if colons == 1:
        host, _, port_text = s.partition(":")
        if not host:
            raise ProbeError.other(f"missing host before port in '{s}'")
        return ParsedTarget(host=host, port=parse_port(port_text), is_ipv6_literal=False)
    return _parse_bare_ipv6(s)


def format_target(parsed: ParsedTarget) -> str:
    """Inverse of :func:`parse_target` for display."""
    host = f"[{parsed.host}]" if parsed.is_ipv6_literal and parsed.port is not None else parsed.host
    if parsed.port is None:
        return host
    return f"{host}:{parsed.port}"
