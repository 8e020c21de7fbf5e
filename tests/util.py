# ---------------------------------------------------------------------
# Gufo Netloss: Test Utilities
# ---------------------------------------------------------------------
# Copyright (C) 2022-26, Gufo Labs
# ---------------------------------------------------------------------

# Python modules
import asyncio
import socket
from functools import cached_property
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

# Third-party modules
from scapy.layers.inet import ICMP
from scapy.layers.inet6 import ICMPv6EchoReply

# Gufo Labs modules
from gufo.netloss.icmp import EchoMessage, parse_echo
from gufo.netloss.model import Outcome, OutcomeEvent
from gufo.netloss.target import Target

# (delay, datagram, source address)
Reply = Tuple[float, bytes, str]
Responder = Callable[[EchoMessage, str], Iterable[Reply]]

TARGET = Target(host="test", address="127.0.0.1", afi=4)
TARGET6 = Target(host="test6", address="::1", afi=6)


class Caps(object):
    @staticmethod
    def _can_open(family: int, proto: int, addr: str) -> bool:
        for kind in (socket.SOCK_RAW, socket.SOCK_DGRAM):
            try:
                s = socket.socket(family, kind, proto)
            except OSError:
                continue
            try:
                s.bind((addr, 0))
                return True
            except OSError:
                pass
            finally:
                s.close()
        return False

    @cached_property
    def has_ipv4(self: "Caps") -> bool:
        """
        Check system allows IPv4 ICMP sockets.

        Returns:
            * True - if raw or datagram ICMP sockets are allowed.
            * False - if ICMP sockets are denied.
        """
        return self._can_open(
            socket.AF_INET, socket.IPPROTO_ICMP, "127.0.0.1"
        )

    @cached_property
    def has_ipv6(self: "Caps") -> bool:
        """
        Check system allows IPv6 ICMP sockets.

        Returns:
            * True - if raw or datagram ICMPv6 sockets are allowed.
            * False - if ICMPv6 sockets are denied.
        """
        return self._can_open(
            socket.AF_INET6, socket.IPPROTO_ICMPV6, "::1"
        )

    @cached_property
    def is_denied(self: "Caps") -> bool:
        """Check if all ICMP sockets are denied."""
        return not (self.has_ipv4 or self.has_ipv6)

    @cached_property
    def loopbacks(self: "Caps") -> List[str]:
        """
        Get list of loopback addresses.

        Returns:
            List of IPv4/IPv6 loopbback addresses for all
            allowed protocols. Empty if ICMP sockets are
            denied.
        """
        r: List[str] = []
        if self.has_ipv4:
            r.append("127.0.0.1")
        if self.has_ipv6:
            r.append("::1")
        return r


def as_str(v: Dict[str, Any]) -> str:
    """
    Format parameters for @parametrize(..., ids).

    Args:
        v: Input parameters.

    Returns:
        String to display as test id.
    """
    return str(v)


def echo_reply(request_id: int, seq: int, afi: int = 4) -> bytes:
    """Build echo reply without IP header."""
    if afi == 6:
        return bytes(ICMPv6EchoReply(id=request_id, seq=seq, cksum=0))
    return bytes(ICMP(type=0, code=0, id=request_id, seq=seq))


def reply_after(delay: float) -> Responder:
    """Reply to every request after `delay` seconds."""

    def inner(msg: EchoMessage, addr: str) -> Iterable[Reply]:
        return [(delay, echo_reply(msg.request_id, msg.seq, msg.afi), addr)]

    return inner


def reply_pattern(delays: List[Optional[float]]) -> Responder:
    """Reply to n-th request after `delays[n]`, drop when None."""
    n = 0

    def inner(msg: EchoMessage, addr: str) -> Iterable[Reply]:
        nonlocal n
        delay = delays[n % len(delays)]
        n += 1
        if delay is None:
            return []
        return [(delay, echo_reply(msg.request_id, msg.seq, msg.afi), addr)]

    return inner


class FakeSocket(object):
    """
    In-memory ICMP transport.

    Args:
        afi: Address family.
        responder: Generates replies to sent requests.
        rewrites_id: Mimic datagram ICMP socket.
        send_delay: Block `send` for a given time.
        send_error: Raise on `send`.
    """

    ip_header = False

    def __init__(
        self: "FakeSocket",
        afi: int = 4,
        responder: Optional[Responder] = None,
        rewrites_id: bool = False,
        send_delay: float = 0.0,
        send_error: Optional[OSError] = None,
    ) -> None:
        self.afi = afi
        self.rewrites_id = rewrites_id
        self.sent: List[EchoMessage] = []
        self.closed = False
        self.__responder = responder
        self.__send_delay = send_delay
        self.__send_error = send_error
        self.__inbox: "asyncio.Queue[Tuple[bytes, str]]" = asyncio.Queue()

    async def send(self: "FakeSocket", addr: str, data: bytes) -> None:
        if self.__send_delay:
            await asyncio.sleep(self.__send_delay)
        if self.__send_error:
            raise self.__send_error
        msg = parse_echo(data, self.afi)
        assert msg is not None
        assert msg.is_request
        self.sent.append(msg)
        if self.__responder:
            loop = asyncio.get_running_loop()
            for delay, reply, src in self.__responder(msg, addr):
                loop.call_later(delay, self.__inbox.put_nowait, (reply, src))

    def inject(self: "FakeSocket", data: bytes, addr: str) -> None:
        """Put datagram to the receive queue."""
        self.__inbox.put_nowait((data, addr))

    async def recv(self: "FakeSocket") -> Tuple[bytes, str]:
        return await self.__inbox.get()

    def close(self: "FakeSocket") -> None:
        self.closed = True


class CollectSink(object):
    """Remember published snapshots."""

    def __init__(self: "CollectSink") -> None:
        self.snapshots: List[Any] = []

    def publish(self: "CollectSink", target: str, snapshot: Any) -> None:
        self.snapshots.append(snapshot)


def delivered(target: str, rtt_ms: float, seq: int = 0) -> OutcomeEvent:
    """Build DELIVERED event with round-trip time in milliseconds."""
    return OutcomeEvent(
        target=target,
        seq=seq,
        sent_at=0.0,
        outcome=Outcome.DELIVERED,
        rtt=int(rtt_ms * 1_000_000),
    )


def dropped(target: str, seq: int = 0) -> OutcomeEvent:
    """Build DROPPED event."""
    return OutcomeEvent(
        target=target, seq=seq, sent_at=0.0, outcome=Outcome.DROPPED
    )


def duplicate(target: str, seq: int = 0) -> OutcomeEvent:
    """Build DUPLICATE event."""
    return OutcomeEvent(
        target=target, seq=seq, sent_at=0.0, outcome=Outcome.DUPLICATE
    )


caps = Caps()
