# ---------------------------------------------------------------------
# Gufo Netloss: PingSocket implementation
# ---------------------------------------------------------------------
# Copyright (C) 2022-26, Gufo Labs
# ---------------------------------------------------------------------

"""PingSocket implementation."""

# Python modules
import logging
import socket
from asyncio import get_running_loop
from typing import Optional, Tuple

# Gufo Labs modules
from .target import IPv4, IPv6

MAX_TTL = 255
MAX_TOS = 255
RECV_SIZE = 65536

logger = logging.getLogger("gufo.netloss.socket")


class PingSocket(object):
    """
    Non-blocking ICMP socket driven by the running asyncio loop.

    Args:
        afi: Address Family. Either 4 or 6
        src_addr: Optional source address of outgoing packets.
        ttl: Set outgoing packet's TTL.
            Use OS defaults when empty.
        tos: Set DSCP/TOS field to outgoing packets.
            Use OS defaults when empty.
        send_buffer_size: Send buffer size.
            Use OS defaults when empty.
        recv_buffer_size: Receive buffer size.
            Use OS defaults when empty.
        privileged: Socket kind:

            * None - try raw socket, fall back to datagram one.
            * True - raw socket only.
            * False - unprivileged datagram socket only.

    Note:
        Opening the Raw Socket may require super-user priveleges
        or additional permissions. Unprivileged ICMP datagram sockets
        are limited by `net.ipv4.ping_group_range` sysctl on Linux.
    """

    VALID_AFI = (IPv4, IPv6)

    def __init__(
        self: "PingSocket",
        afi: int = IPv4,
        src_addr: Optional[str] = None,
        ttl: Optional[int] = None,
        tos: Optional[int] = None,
        send_buffer_size: Optional[int] = None,
        recv_buffer_size: Optional[int] = None,
        privileged: Optional[bool] = None,
    ) -> None:
        if afi not in self.VALID_AFI:
            msg = f"afi must be {IPv4} or {IPv6}"
            raise ValueError(msg)
        # Check settings
        if ttl is not None and (ttl < 1 or ttl > MAX_TTL):
            msg = f"ttl must be in 1..{MAX_TTL} range"
            raise ValueError(msg)
        if tos is not None and (tos < 0 or tos > MAX_TOS):
            msg = f"tos must be in 0..{MAX_TOS} range"
            raise ValueError(msg)
        self.afi = afi
        self.__sock, raw = self._open(afi, privileged)
        # Raw IPv4 sockets pass the IP header,
        # datagram sockets have identifiers replaced by the kernel.
        self.ip_header = raw and afi == IPv4
        self.rewrites_id = not raw
        try:
            self.__sock.setblocking(False)
            if src_addr:
                self.__sock.bind((src_addr, 0))
            if afi == IPv4:
                if ttl is not None:
                    self.__sock.setsockopt(
                        socket.IPPROTO_IP, socket.IP_TTL, ttl
                    )
                if tos is not None:
                    self.__sock.setsockopt(
                        socket.IPPROTO_IP, socket.IP_TOS, tos
                    )
            if send_buffer_size is not None:
                self.__sock.setsockopt(
                    socket.SOL_SOCKET, socket.SO_SNDBUF, send_buffer_size
                )
            if recv_buffer_size is not None:
                self.__sock.setsockopt(
                    socket.SOL_SOCKET, socket.SO_RCVBUF, recv_buffer_size
                )
        except OSError:
            self.__sock.close()
            raise

    @staticmethod
    def _open(
        afi: int, privileged: Optional[bool]
    ) -> Tuple[socket.socket, bool]:
        """
        Open ICMP socket.

        Args:
            afi: Address family.
            privileged: Socket kind, see class description.

        Returns:
            Tuple of (`socket`, `is raw`)
        """
        if afi == IPv6:
            family, proto = socket.AF_INET6, socket.IPPROTO_ICMPV6
        else:
            family, proto = socket.AF_INET, socket.IPPROTO_ICMP
        if privileged is None or privileged:
            try:
                return socket.socket(family, socket.SOCK_RAW, proto), True
            except PermissionError:
                if privileged:
                    raise
                logger.debug(
                    "Raw ICMPv%d socket denied, using datagram socket", afi
                )
        return socket.socket(family, socket.SOCK_DGRAM, proto), False

    async def send(self: "PingSocket", addr: str, data: bytes) -> None:
        """
        Send ICMP message.

        Args:
            addr: Destination address.
            data: ICMP message.
        """
        await get_running_loop().sock_sendto(self.__sock, data, (addr, 0))

    async def recv(self: "PingSocket") -> Tuple[bytes, str]:
        """
        Await and receive next datagram.

        Returns:
            Tuple of (`datagram`, `source address`)
        """
        data, addr = await get_running_loop().sock_recvfrom(
            self.__sock, RECV_SIZE
        )
        return data, str(addr[0])

    def close(self: "PingSocket") -> None:
        """Close socket."""
        self.__sock.close()
