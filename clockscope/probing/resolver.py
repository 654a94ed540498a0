"""Host name resolution with an IPv4-first / IPv6-only policy."""

import ipaddress
import socket
from typing import List

from clockscope.constants import NTP_PORT
from clockscope.logging import CLOCKSCOPE_LOGGER
from clockscope.probing.probe_errors import ProbeError
from clockscope.probing.probe_models import IPAddress


def _lookup(host: str) -> List[IPAddress]:
    try:
        infos = socket.getaddrinfo(host, NTP_PORT, type=socket.SOCK_DGRAM)
    except (socket.gaierror, UnicodeError) as e:
        raise ProbeError.dns(f"failed to resolve '{host}': {e}") from e

    addresses: List[IPAddress] = []
    for family, _type, _proto, _canon, sockaddr in infos:
        if family not in (socket.AF_INET, socket.AF_INET6):
            continue
        # Drop any "%scope" suffix before parsing
        ip = ipaddress.ip_address(sockaddr[0].split("%", 1)[0])
        if ip not in addresses:
            addresses.append(ip)
    return addresses


def resolve_ip(host: str, ipv6_only: bool = False) -> IPAddress:
    """Resolve ``host`` to a single IP address.

    Without ``ipv6_only`` the first IPv4 address wins over any IPv6 address;
    IPv6 is used only when the host has no IPv4 address at all.

    Args:
        host: Host name or IP literal
        ipv6_only: Restrict the answer to IPv6 addresses

    Returns:
        The selected address

    Raises:
        ProbeError: with kind ``DNS`` if resolution fails or nothing usable is left
    """
    addresses = _lookup(host)

    if ipv6_only:
        candidates = [ip for ip in addresses if ip.version == 6]
        if not candidates:
            raise ProbeError.dns(f"No IPv6 address found for '{host}'")
    else:
        v4 = [ip for ip in addresses if ip.version == 4]
        v6 = [ip for ip in addresses if ip.version == 6]
        candidates = v4 + v6
        if not candidates:
            raise ProbeError.dns(f"No IP address found for '{host}'")

    chosen = candidates[0]
    CLOCKSCOPE_LOGGER.debug(f"Resolved {host} -> {chosen} (ipv6_only={ipv6_only}, {len(addresses)} candidates)")
    return chosen
