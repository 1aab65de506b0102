"""Outbound URL policy guarding against server-side request forgery.

Every URL is checked before each network call, including every redirect hop.
Only https (and inline ``data:``) URLs on the default port are allowed, and
hosts that are, or resolve to, non-public addresses are rejected. DNS
failures are treated as unsafe.
"""

import asyncio
import ipaddress
import logging
import socket
from collections.abc import Awaitable, Callable
from urllib.parse import urlsplit

from skilltrust.exceptions import BlockedUrlError

logger = logging.getLogger(__name__)

Resolver = Callable[[str], Awaitable[list[str]]]

BLOCKED_HOSTNAMES = frozenset({"localhost", "metadata.google.internal"})
_BLOCKED_SUFFIXES = (".localhost", ".local")

_BLOCKED_V4_NETWORKS = tuple(
    ipaddress.IPv4Network(n)
    for n in (
        "0.0.0.0/8",        # "this" network
        "10.0.0.0/8",       # private
        "100.64.0.0/10",    # carrier-grade NAT
        "127.0.0.0/8",      # loopback
        "169.254.0.0/16",   # link-local, cloud metadata
        "172.16.0.0/12",    # private
        "192.0.0.0/24",     # IETF protocol assignments
        "192.0.2.0/24",     # documentation
        "192.168.0.0/16",   # private
        "198.18.0.0/15",    # benchmarking
        "198.51.100.0/24",  # documentation
        "203.0.113.0/24",   # documentation
        "224.0.0.0/3",      # multicast, reserved, broadcast
    )
)

_BLOCKED_V6_NETWORKS = tuple(
    ipaddress.IPv6Network(n)
    for n in (
        "ff00::/8",         # multicast
        "fe80::/10",        # link-local
        "fec0::/10",        # deprecated site-local
        "fc00::/7",         # unique local
        "2001::/32",        # Teredo
        "2001:db8::/32",    # documentation
        "2001:2::/48",      # benchmarking
    )
)
_NAT64 = ipaddress.IPv6Network("64:ff9b::/96")
_SIX_TO_FOUR = ipaddress.IPv6Network("2002::/16")
_V4_COMPATIBLE = ipaddress.IPv6Network("::/96")


def is_blocked_ipv4(address: ipaddress.IPv4Address) -> bool:
    return any(address in network for network in _BLOCKED_V4_NETWORKS)


def is_blocked_ipv6(address: ipaddress.IPv6Address) -> bool:
    if address.is_unspecified or address.is_loopback:
        return True
    if any(address in network for network in _BLOCKED_V6_NETWORKS):
        return True

    # Addresses that embed an IPv4 address are judged by that address.
    if address.ipv4_mapped is not None:
        return is_blocked_ipv4(address.ipv4_mapped)
    if address in _V4_COMPATIBLE or address in _NAT64:
        return is_blocked_ipv4(ipaddress.IPv4Address(int(address) & 0xFFFFFFFF))
    if address in _SIX_TO_FOUR:
        return is_blocked_ipv4(address.sixtofour)
    return False


def is_blocked_ip(raw: str) -> bool:
    """True for any address that is not safe to contact. Unparseable means blocked."""
    try:
        address = ipaddress.ip_address(raw.split("%", 1)[0])
    except ValueError:
        return True
    if isinstance(address, ipaddress.IPv4Address):
        return is_blocked_ipv4(address)
    return is_blocked_ipv6(address)


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host.split("%", 1)[0])
    except ValueError:
        return False
    return True


async def resolve_host(hostname: str) -> list[str]:
    """Resolve a hostname to all of its addresses."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(hostname, None, type=socket.SOCK_STREAM)
    return [str(info[4][0]) for info in infos]


def _reject(message: str) -> BlockedUrlError:
    logger.warning("Blocked URL: %s", message)
    return BlockedUrlError(message)


async def assert_url_allowed(url: str, resolver: Resolver = resolve_host) -> None:
    """Raise :class:`BlockedUrlError` unless ``url`` is safe to fetch."""
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError as e:
        raise _reject(f"Malformed URL: {e}") from e

    scheme = parts.scheme.lower()
    if scheme == "data":
        return
    if scheme != "https":
        raise _reject(f"Only https (or data:) URLs are allowed (got {scheme or 'unknown'}:)")

    if parts.username or parts.password:
        raise _reject("URLs with embedded credentials are not allowed")

    if port is not None and port != 443:
        raise _reject(f"Non-standard ports are not allowed (got :{port})")

    hostname = (parts.hostname or "").rstrip(".").lower()
    if not hostname:
        raise _reject("URL hostname is missing")

    if hostname in BLOCKED_HOSTNAMES or hostname.endswith(_BLOCKED_SUFFIXES):
        raise _reject(f"Blocked hostname for security reasons: {hostname}")

    if _is_ip_literal(hostname):
        if is_blocked_ip(hostname):
            raise _reject(f"Blocked IP address for security reasons: {hostname}")
        return

    try:
        addresses = await resolver(hostname)
    except OSError as e:
        raise _reject(f"Unable to resolve hostname: {hostname}") from e
    if not addresses:
        raise _reject(f"Unable to resolve hostname: {hostname}")

    for address in addresses:
        if is_blocked_ip(address):
            raise _reject(f"Blocked hostname for security reasons: {hostname} (resolves to {address})")
