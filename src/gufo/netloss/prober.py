# ---------------------------------------------------------------------
# Gufo Netloss: Prober
# ---------------------------------------------------------------------
# Copyright (C) 2022-26, Gufo Labs
# ---------------------------------------------------------------------

"""
Echo request/reply loop for the single target.

Attributes:
    SocketFactory: Callable returning new transport for address family.
"""

# Python modules
import asyncio
import itertools
import logging
import random
import time
from asyncio import get_running_loop
from contextlib import aclosing
from time import perf_counter_ns
from typing import AsyncIterator, Callable, List, Optional

# Gufo Labs modules
from .correlator import Correlation, Outstanding, correlate
from .error import SocketError
from .icmp import MAX_SIZE, MIN_SIZE, build_echo_request, parse_echo
from .model import NS, Outcome, OutcomeEvent
from .proto import SocketProto
from .socket import PingSocket
from .target import Target, clean_ip

SocketFactory = Callable[[int], SocketProto]

logger = logging.getLogger("gufo.netloss.prober")


def default_socket_factory(afi: int) -> SocketProto:
    """Open PingSocket for the address family."""
    return PingSocket(afi=afi)


class Prober(object):
    """
    Send echo requests to the target and correlate the replies.

    Only one request is outstanding at a time. Each cycle
    produces exactly one `DELIVERED` or `DROPPED` event,
    preceded by `DUPLICATE` events for late replies
    seen while awaiting the current one.

    Args:
        target: Resolved target.
        interval: Interval between cycle starts, in seconds.
            Start next cycle immediately when empty or zero.
        timeout: Attempt timeout, in seconds, measured
            from sending the request.
        size: Outgoing packet's size, including IP header.
        seq: Initial sequence number.
        socket_factory: Callable opening transport for
            the address family. PingSocket is used when empty.

    Example:
        ``` py
        async def probe(target: Target) -> None:
            prober = Prober(target, interval=1.0, timeout=1.0)
            async for event in prober.iter_events(count=5):
                print(event.outcome, event.rtt)
        ```
    """

    request_id = itertools.count(random.randint(0, 0xFFFF))

    def __init__(
        self: "Prober",
        target: Target,
        interval: Optional[float] = 1.0,
        timeout: float = 1.0,
        size: int = MIN_SIZE,
        seq: int = 0,
        socket_factory: Optional[SocketFactory] = None,
    ) -> None:
        if interval is not None and interval < 0:
            msg = "interval must not be negative"
            raise ValueError(msg)
        if timeout <= 0:
            msg = "timeout must be positive"
            raise ValueError(msg)
        if size < MIN_SIZE or size > MAX_SIZE:
            msg = f"size must be in {MIN_SIZE}..{MAX_SIZE} range"
            raise ValueError(msg)
        self.__target = target
        self.__interval = interval
        self.__timeout = timeout
        self.__max_rtt = int(timeout * NS)
        self.__size = size
        self.__seq = seq & 0xFFFF
        self.__request_id = next(self.request_id) & 0xFFFF
        self.__socket_factory = socket_factory or default_socket_factory
        self.__sock: Optional[SocketProto] = None
        self.__skip_wait = False

    @property
    def target(self: "Prober") -> Target:
        """Probed target."""
        return self.__target

    @property
    def seq(self: "Prober") -> int:
        """Sequence number of the next request."""
        return self.__seq

    def _open(self: "Prober") -> SocketProto:
        """
        Open new transport.

        Raises:
            SocketError: when the socket cannot be opened.
        """
        try:
            return self.__socket_factory(self.__target.afi)
        except OSError as e:
            msg = f"cannot open ICMPv{self.__target.afi} socket: {e}"
            raise SocketError(msg) from e

    def _reopen(self: "Prober") -> None:
        """Replace the broken transport."""
        self.close()
        self.__sock = self._open()
        logger.info("%s: socket reopened", self.__target.host)

    def close(self: "Prober") -> None:
        """Close the transport, if open."""
        if self.__sock is not None:
            self.__sock.close()
            self.__sock = None

    def _event(
        self: "Prober",
        seq: int,
        sent_at: float,
        outcome: Outcome,
        rtt: Optional[int] = None,
    ) -> OutcomeEvent:
        return OutcomeEvent(
            target=self.__target.host,
            seq=seq,
            sent_at=sent_at,
            outcome=outcome,
            rtt=rtt,
        )

    async def _probe(
        self: "Prober", sock: SocketProto, seq: int
    ) -> List[OutcomeEvent]:
        """
        Perform single send-then-await cycle.

        Args:
            sock: Transport.
            seq: Sequence number to send.

        Returns:
            List of events, the per-cycle outcome is the last one.
        """
        target = self.__target
        outstanding = Outstanding(
            address=target.address,
            request_id=None if sock.rewrites_id else self.__request_id,
            seq=seq,
        )
        request = build_echo_request(
            target.afi, self.__request_id, seq, self.__size
        )
        sent_at = time.time()
        deadline = get_running_loop().time() + self.__timeout
        t0 = perf_counter_ns()
        try:
            await asyncio.wait_for(
                sock.send(target.address, request), self.__timeout
            )
        except TimeoutError:
            # Connectionless write must never block,
            # the socket is broken.
            logger.error(
                "%s: write deadline exceeded, reopening socket", target.host
            )
            self._reopen()
            self.__skip_wait = True
            return [self._event(seq, sent_at, Outcome.DROPPED)]
        except OSError as e:
            # Network is unreachable and so on.
            logger.warning("%s: failed to send request: %s", target.host, e)
            return [self._event(seq, sent_at, Outcome.DROPPED)]
        r: List[OutcomeEvent] = []
        rtt: Optional[int] = None
        try:
            async with asyncio.timeout_at(deadline):
                while rtt is None:
                    data, addr = await sock.recv()
                    t1 = perf_counter_ns()
                    msg = parse_echo(data, target.afi, sock.ip_header)
                    verdict = correlate(msg, self._clean_ip(addr), outstanding)
                    if verdict == Correlation.MATCH:
                        rtt = t1 - t0
                    elif verdict == Correlation.STALE and msg is not None:
                        logger.debug(
                            "%s: late reply icmp_seq=%d", target.host, msg.seq
                        )
                        r.append(
                            self._event(
                                msg.seq, time.time(), Outcome.DUPLICATE
                            )
                        )
                    elif verdict == Correlation.MALFORMED:
                        logger.debug(
                            "%s: malformed datagram from %s", target.host, addr
                        )
        except TimeoutError:
            pass
        except OSError as e:
            logger.warning("%s: failed to receive: %s", target.host, e)
        if rtt is not None and 0 <= rtt <= self.__max_rtt:
            r.append(self._event(seq, sent_at, Outcome.DELIVERED, rtt))
        else:
            r.append(self._event(seq, sent_at, Outcome.DROPPED))
        return r

    @staticmethod
    def _clean_ip(addr: str) -> str:
        try:
            return clean_ip(addr)
        except ValueError:
            return addr

    async def iter_events(
        self: "Prober", count: Optional[int] = None
    ) -> AsyncIterator[OutcomeEvent]:
        """
        Do the serie of probes.

        Send echo request every `interval` seconds,
        await and yield the results.

        Args:
            count: Stop after `count` cycles, if set. Do not stop
                otherwise.

        Returns:
            Yields OutcomeEvent for each attempt and each late reply.

        Raises:
            SocketError: when the socket cannot be opened or reopened.
        """
        loop = get_running_loop()
        n = 0
        while True:
            if self.__sock is None:
                self.__sock = self._open()
            t0 = loop.time()
            for event in await self._probe(self.__sock, self.__seq):
                yield event
            # Advance only after the cycle is complete
            self.__seq = (self.__seq + 1) & 0xFFFF
            n += 1
            if count and n >= count:
                break
            if self.__skip_wait:
                self.__skip_wait = False
                continue
            if self.__interval:
                dt = loop.time() - t0
                if dt < self.__interval:
                    await asyncio.sleep(self.__interval - dt)

    async def run(
        self: "Prober", queue: "asyncio.Queue[OutcomeEvent]"
    ) -> None:
        """
        Probe forever and pass the events to the queue.

        Blocks when the queue is full.

        Args:
            queue: Aggregator's queue.

        Raises:
            SocketError: when the socket cannot be opened or reopened.
        """
        try:
            async with aclosing(self.iter_events()) as events:
                async for event in events:
                    await queue.put(event)
        finally:
            self.close()
