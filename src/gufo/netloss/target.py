# ---------------------------------------------------------------------
# Gufo Netloss: Target resolution
# ---------------------------------------------------------------------
# Copyright (C) 2026, Gufo Labs
# ---------------------------------------------------------------------

"""
Monitored targets.

Attributes:
    IPv4: IPv4 address family.
    IPv6: IPv6 address family.
"""

# Python modules
import ipaddress
import logging
import socket
from asyncio import get_running_loop
from dataclasses import dataclass

# Gufo Labs modules
from .error import ResolveError

IPv4 = 4
IPv6 = 6

logger = logging.getLogger("gufo.netloss.target")


@dataclass(frozen=True)
class Target(object):
    """
    Resolved target.

    Args:
        host: Configured host, target's identity.
        address: Normalized IP address.
        afi: Address family, 4 or 6.
    """

    host: str
    address: str
    afi: int


def clean_ip(addr: str) -> str:
    """
    Normalize IP address to a stable form.

    Args:
        addr: IPv4/IPv6 address, optionally with IPv6 zone.

    Returns:
        Normalized address.

    Raises:
        ValueError: if `addr` is not a valid IP address.
    """
    if "%" in addr:
        addr = addr.split("%", 1)[0]
    return ipaddress.ip_address(addr).compressed


def get_afi(address: str) -> int:
    """
    Get address family (AFI) for a given address.

    Args:
        address: IP address.

    Returns:
        * `4` for IPv4
        * `6` for IPv6
    """
    if ":" in address:
        return IPv6
    return IPv4


async def resolve(host: str) -> Target:
    """
    Resolve configured host to the target.

    IP literals are used as is, names are resolved
    with the system resolver and the first address is taken.

    Args:
        host: IP address or host name.

    Returns:
        Resolved Target.

    Raises:
        ResolveError: if the host cannot be resolved.
    """
    if not host:
        msg = "empty host"
        raise ResolveError(msg)
    try:
        address = clean_ip(host)
        return Target(host=host, address=address, afi=get_afi(address))
    except ValueError:
        pass
    try:
        r = await get_running_loop().getaddrinfo(
            host, None, type=socket.SOCK_DGRAM
        )
    except (socket.gaierror, UnicodeError) as e:
        msg = f"cannot resolve {host}: {e}"
        raise ResolveError(msg) from e
    for family, _, _, _, sockaddr in r:
        if family in (socket.AF_INET, socket.AF_INET6):
            address = clean_ip(str(sockaddr[0]))
            logger.debug("%s resolved to %s", host, address)
            return Target(host=host, address=address, afi=get_afi(address))
    msg = f"cannot resolve {host}: no IP addresses"
    raise ResolveError(msg)
