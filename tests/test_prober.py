# ---------------------------------------------------------------------
# Gufo Netloss: Test Prober
# ---------------------------------------------------------------------
# Copyright (C) 2026, Gufo Labs
# ---------------------------------------------------------------------

# Python modules
import asyncio
from typing import Any, Dict, List, Optional

# Third-party modules
import pytest

# Gufo Labs modules
from gufo.netloss.error import SocketError
from gufo.netloss.icmp import EchoMessage
from gufo.netloss.model import NS, Outcome, OutcomeEvent
from gufo.netloss.prober import Prober
from gufo.netloss.target import Target

from .util import (
    TARGET,
    TARGET6,
    FakeSocket,
    Reply,
    as_str,
    echo_reply,
    reply_after,
    reply_pattern,
)

TIMEOUT = 0.1


async def collect_async(
    prober: Prober, count: Optional[int] = None
) -> List[OutcomeEvent]:
    return [e async for e in prober.iter_events(count=count)]


def collect(
    prober: Prober, count: Optional[int] = None
) -> List[OutcomeEvent]:
    return asyncio.run(collect_async(prober, count))


def outcomes(events: List[OutcomeEvent]) -> List[Outcome]:
    return [e.outcome for e in events]


@pytest.mark.parametrize(
    "cfg",
    [{"interval": -1.0}, {"timeout": 0.0}, {"timeout": -1.0}, {"size": 10}],
    ids=as_str,
)
def test_invalid_settings(cfg: Dict[str, Any]) -> None:
    with pytest.raises(ValueError):
        Prober(TARGET, **cfg)


@pytest.mark.parametrize("target", [TARGET, TARGET6], ids=lambda t: t.host)
def test_delivered(target: Target) -> None:
    sock = FakeSocket(afi=target.afi, responder=reply_after(0.01))
    prober = Prober(
        target, interval=0, timeout=TIMEOUT, socket_factory=lambda afi: sock
    )
    events = collect(prober, 5)
    assert outcomes(events) == [Outcome.DELIVERED] * 5
    assert [e.seq for e in events] == [0, 1, 2, 3, 4]
    assert all(e.target == target.host for e in events)
    for e in events:
        assert e.rtt is not None
        assert 0 <= e.rtt <= TIMEOUT * NS
    # One outstanding request with the constant identifier
    assert [m.seq for m in sock.sent] == [0, 1, 2, 3, 4]
    assert len({m.request_id for m in sock.sent}) == 1


def test_dropped() -> None:
    sock = FakeSocket()
    prober = Prober(
        TARGET, interval=0, timeout=0.05, socket_factory=lambda afi: sock
    )
    events = collect(prober, 3)
    assert outcomes(events) == [Outcome.DROPPED] * 3
    assert all(e.rtt is None for e in events)


def test_accounting() -> None:
    sock = FakeSocket(responder=reply_pattern([0.01, None, 0.005, None]))
    prober = Prober(
        TARGET, interval=0, timeout=0.05, socket_factory=lambda afi: sock
    )
    events = collect(prober, 10)
    assert len(events) == 10
    delivered = [e for e in events if e.outcome == Outcome.DELIVERED]
    dropped = [e for e in events if e.outcome == Outcome.DROPPED]
    assert len(delivered) + len(dropped) == 10
    assert [e.seq for e in delivered] == [0, 2, 4, 6, 8]
    assert [e.seq for e in dropped] == [1, 3, 5, 7, 9]


def test_stale_reply_does_not_terminate() -> None:
    def responder(msg: EchoMessage, addr: str) -> List[Reply]:
        stale = (msg.seq - 1) & 0xFFFF
        return [
            (0.005, echo_reply(msg.request_id, stale), addr),
            (0.02, echo_reply(msg.request_id, msg.seq), addr),
        ]

    sock = FakeSocket(responder=responder)
    prober = Prober(
        TARGET, interval=0, timeout=TIMEOUT, socket_factory=lambda afi: sock
    )
    events = collect(prober, 1)
    assert outcomes(events) == [Outcome.DUPLICATE, Outcome.DELIVERED]
    assert events[0].seq == 0xFFFF
    assert events[1].seq == 0


def test_late_reply_is_duplicate() -> None:
    # First reply arrives after timeout, during the second attempt
    sock = FakeSocket(responder=reply_pattern([0.15, 0.07]))
    prober = Prober(
        TARGET, interval=0, timeout=TIMEOUT, socket_factory=lambda afi: sock
    )
    events = collect(prober, 2)
    assert outcomes(events) == [
        Outcome.DROPPED,
        Outcome.DUPLICATE,
        Outcome.DELIVERED,
    ]
    assert [e.seq for e in events] == [0, 0, 1]


def test_foreign_replies_ignored() -> None:
    def responder(msg: EchoMessage, addr: str) -> List[Reply]:
        return [
            # Other host
            (0.001, echo_reply(msg.request_id, msg.seq), "192.0.2.1"),
            # Other identifier
            (0.002, echo_reply(msg.request_id ^ 1, msg.seq), addr),
            # Garbage
            (0.003, b"\x00\x01", addr),
        ]

    sock = FakeSocket(responder=responder)
    prober = Prober(
        TARGET, interval=0, timeout=0.05, socket_factory=lambda afi: sock
    )
    assert outcomes(collect(prober, 1)) == [Outcome.DROPPED]


def test_malformed_then_valid() -> None:
    def responder(msg: EchoMessage, addr: str) -> List[Reply]:
        return [
            (0.001, b"\x00", addr),
            (0.01, echo_reply(msg.request_id, msg.seq), addr),
        ]

    sock = FakeSocket(responder=responder)
    prober = Prober(
        TARGET, interval=0, timeout=TIMEOUT, socket_factory=lambda afi: sock
    )
    assert outcomes(collect(prober, 1)) == [Outcome.DELIVERED]


def test_rewritten_id() -> None:
    def responder(msg: EchoMessage, addr: str) -> List[Reply]:
        return [(0.01, echo_reply(msg.request_id ^ 0xFF, msg.seq), addr)]

    sock = FakeSocket(responder=responder, rewrites_id=True)
    prober = Prober(
        TARGET, interval=0, timeout=TIMEOUT, socket_factory=lambda afi: sock
    )
    assert outcomes(collect(prober, 1)) == [Outcome.DELIVERED]


def test_seq_wrap() -> None:
    sock = FakeSocket(responder=reply_after(0.001))
    prober = Prober(
        TARGET,
        interval=0,
        timeout=TIMEOUT,
        seq=0xFFFE,
        socket_factory=lambda afi: sock,
    )
    events = collect(prober, 3)
    assert outcomes(events) == [Outcome.DELIVERED] * 3
    assert [e.seq for e in events] == [0xFFFE, 0xFFFF, 0]
    assert prober.seq == 1


def test_interval() -> None:
    async def inner() -> float:
        loop = asyncio.get_running_loop()
        t0 = loop.time()
        async for _ in prober.iter_events(count=3):
            pass
        return loop.time() - t0

    sock = FakeSocket(responder=reply_after(0.001))
    prober = Prober(
        TARGET, interval=0.05, timeout=TIMEOUT, socket_factory=lambda afi: sock
    )
    # Two waits between three cycles
    assert asyncio.run(inner()) >= 0.09


def test_send_error() -> None:
    sock = FakeSocket(send_error=OSError(101, "Network is unreachable"))
    prober = Prober(
        TARGET, interval=0, timeout=TIMEOUT, socket_factory=lambda afi: sock
    )
    assert outcomes(collect(prober, 2)) == [Outcome.DROPPED] * 2
    assert not sock.closed


def test_write_deadline_reopens() -> None:
    socks = [
        FakeSocket(send_delay=1.0),
        FakeSocket(responder=reply_after(0.001)),
    ]
    opened: List[FakeSocket] = []

    def factory(afi: int) -> FakeSocket:
        s = socks[len(opened)]
        opened.append(s)
        return s

    prober = Prober(
        TARGET, interval=10.0, timeout=0.05, socket_factory=factory
    )

    async def inner() -> List[OutcomeEvent]:
        # Next cycle starts immediately after reopening
        return await asyncio.wait_for(
            collect_async(prober, 2), timeout=1.0
        )

    events = asyncio.run(inner())
    assert outcomes(events) == [Outcome.DROPPED, Outcome.DELIVERED]
    assert [e.seq for e in events] == [0, 1]
    assert opened == socks
    assert socks[0].closed
    assert not socks[1].closed


def test_reopen_failure() -> None:
    opened: List[FakeSocket] = []

    def factory(afi: int) -> FakeSocket:
        if opened:
            msg = "Operation not permitted"
            raise PermissionError(msg)
        s = FakeSocket(send_delay=1.0)
        opened.append(s)
        return s

    prober = Prober(TARGET, interval=0, timeout=0.05, socket_factory=factory)
    with pytest.raises(SocketError):
        collect(prober, 2)
    assert opened[0].closed


def test_open_failure() -> None:
    def factory(afi: int) -> FakeSocket:
        msg = "Operation not permitted"
        raise PermissionError(msg)

    prober = Prober(TARGET, socket_factory=factory)
    with pytest.raises(SocketError):
        collect(prober, 1)


def test_run_backpressure() -> None:
    async def inner() -> List[OutcomeEvent]:
        queue: "asyncio.Queue[OutcomeEvent]" = asyncio.Queue(2)
        task = asyncio.get_running_loop().create_task(prober.run(queue))
        await asyncio.sleep(0.1)
        # Prober is blocked on the full queue
        assert queue.full()
        assert prober.seq == 2
        r = [queue.get_nowait() for _ in range(2)]
        await asyncio.sleep(0.05)
        r += [queue.get_nowait() for _ in range(2)]
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return r

    sock = FakeSocket(responder=reply_after(0.001))
    prober = Prober(
        TARGET, interval=0, timeout=TIMEOUT, socket_factory=lambda afi: sock
    )
    events = asyncio.run(inner())
    assert [e.seq for e in events] == [0, 1, 2, 3]
    assert sock.closed
