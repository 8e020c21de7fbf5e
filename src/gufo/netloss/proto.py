# ---------------------------------------------------------------------
# Gufo Netloss: SocketProto
# ---------------------------------------------------------------------
# Copyright (C) 2022-26, Gufo Labs
# ---------------------------------------------------------------------

"""ICMP transport protocol definition."""

# Python modules
from typing import Protocol, Tuple


class SocketProto(Protocol):
    """
    ICMP transport protocol.

    Transport used by the Prober to send echo requests
    and to receive the datagrams. Owned exclusively
    by a single Prober. Implementations do not bound
    the operations in time, the caller applies
    the deadlines.

    Attributes:
        afi: Address family, 4 or 6.
        ip_header: Received datagrams start with IPv4 header.
        rewrites_id: Kernel replaces ICMP identifier
            of outgoing requests.
    """

    afi: int
    ip_header: bool
    rewrites_id: bool

    async def send(self: "SocketProto", addr: str, data: bytes) -> None:
        """
        Send encoded ICMP message.

        Args:
            addr: Destination address.
            data: ICMP message, without IP header.
        """
        ...

    async def recv(self: "SocketProto") -> Tuple[bytes, str]:
        """
        Receive next datagram.

        Returns:
            Tuple of (`datagram`, `source address`).
        """
        ...

    def close(self: "SocketProto") -> None:
        """Close the transport."""
        ...
