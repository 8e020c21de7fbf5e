# ---------------------------------------------------------------------
# Gufo Netloss: Aggregator
# ---------------------------------------------------------------------
# Copyright (C) 2026, Gufo Labs
# ---------------------------------------------------------------------

"""Windowed statistics over the stream of probe outcomes."""

# Python modules
import asyncio
import logging
import math
import time
from asyncio import get_running_loop
from typing import Dict, Iterable, List, Optional, Sequence

# Gufo Labs modules
from .model import NS, Outcome, OutcomeEvent, Snapshot
from .sink import MetricsSink
from .target import Target

logger = logging.getLogger("gufo.netloss.aggregator")


class StatisticsWindow(object):
    """
    Per-target statistics accumulator.

    Keeps counters, min/max and exact integer sums
    of round-trip times, so the memory is constant
    regardless of the amount of events.

    Args:
        target: Target identity.
    """

    def __init__(self: "StatisticsWindow", target: str) -> None:
        self.target = target
        self.reset()

    def reset(self: "StatisticsWindow") -> None:
        """Reset to the empty state."""
        self.sent = 0
        self.received = 0
        self.dropped = 0
        self.duplicates = 0
        self.rtt_min: Optional[int] = None
        self.rtt_max: Optional[int] = None
        self.rtt_sum = 0
        self.rtt_sum_sq = 0

    def add(self: "StatisticsWindow", event: OutcomeEvent) -> None:
        """
        Apply outcome event.

        Args:
            event: Probe outcome.
        """
        if event.outcome == Outcome.DUPLICATE:
            self.duplicates += 1
            return
        self.sent += 1
        if event.outcome == Outcome.DROPPED or event.rtt is None:
            self.dropped += 1
            return
        rtt = event.rtt
        self.received += 1
        if self.rtt_min is None or rtt < self.rtt_min:
            self.rtt_min = rtt
        if self.rtt_max is None or rtt > self.rtt_max:
            self.rtt_max = rtt
        self.rtt_sum += rtt
        self.rtt_sum_sq += rtt * rtt

    @property
    def loss(self: "StatisticsWindow") -> float:
        """Loss fraction, 0.0 for the empty window."""
        if not self.sent:
            return 0.0
        return self.dropped / self.sent

    def snapshot(
        self: "StatisticsWindow", timestamp: Optional[float] = None
    ) -> Snapshot:
        """
        Get immutable copy of the derived values.

        Args:
            timestamp: Snapshot's wall-clock time.
                Current time, when empty.

        Returns:
            Snapshot.
        """
        rtt_avg: Optional[float] = None
        rtt_stddev: Optional[float] = None
        n = self.received
        if n:
            rtt_avg = self.rtt_sum / n / NS
            # Population variance from the exact sums
            var = n * self.rtt_sum_sq - self.rtt_sum * self.rtt_sum
            rtt_stddev = math.sqrt(var) / n / NS
        return Snapshot(
            target=self.target,
            sent=self.sent,
            received=self.received,
            dropped=self.dropped,
            duplicates=self.duplicates,
            loss=self.loss,
            rtt_min=None if self.rtt_min is None else self.rtt_min / NS,
            rtt_avg=rtt_avg,
            rtt_max=None if self.rtt_max is None else self.rtt_max / NS,
            rtt_stddev=rtt_stddev,
            timestamp=time.time() if timestamp is None else timestamp,
        )

    def flush(
        self: "StatisticsWindow", timestamp: Optional[float] = None
    ) -> Snapshot:
        """
        Get snapshot and reset the window.

        Args:
            timestamp: Snapshot's wall-clock time.

        Returns:
            Snapshot of the finished window.
        """
        r = self.snapshot(timestamp)
        self.reset()
        return r


class Aggregator(object):
    """
    Single consumer of the outcome events.

    Events and the flush timer are processed by a single
    task, so the windows need no locking.

    Args:
        queue: Queue of outcome events.
        sinks: Metric sinks to publish snapshots.
        resolution: Window duration, in seconds.
        targets: Monitored targets.
    """

    def __init__(
        self: "Aggregator",
        queue: "asyncio.Queue[OutcomeEvent]",
        sinks: Sequence[MetricsSink],
        resolution: float = 30.0,
        targets: Optional[Iterable[Target]] = None,
    ) -> None:
        if resolution <= 0:
            msg = "resolution must be positive"
            raise ValueError(msg)
        self.__queue = queue
        self.__sinks = list(sinks)
        self.__resolution = resolution
        self.__windows: Dict[str, StatisticsWindow] = {}
        for t in targets or []:
            self.__windows[t.host] = StatisticsWindow(t.host)

    def get_window(self: "Aggregator", target: str) -> StatisticsWindow:
        """
        Get window for the target.

        Args:
            target: Target identity.

        Returns:
            Target's window, created when necessary.
        """
        w = self.__windows.get(target)
        if w is None:
            logger.debug("Creating window for %s", target)
            w = StatisticsWindow(target)
            self.__windows[target] = w
        return w

    def feed(self: "Aggregator", event: OutcomeEvent) -> None:
        """Apply event to the target's window."""
        self.get_window(event.target).add(event)

    def flush(self: "Aggregator") -> List[Snapshot]:
        """
        Finish current windows.

        Publish snapshots to all sinks and reset the windows.

        Returns:
            List of published snapshots.
        """
        ts = time.time()
        r = [w.flush(ts) for w in self.__windows.values()]
        for snapshot in r:
            for sink in self.__sinks:
                try:
                    sink.publish(snapshot.target, snapshot)
                except Exception:
                    logger.exception(
                        "Failed to publish %s snapshot", snapshot.target
                    )
        return r

    async def run(self: "Aggregator") -> None:
        """Consume events and flush the windows every `resolution`."""
        loop = get_running_loop()
        next_flush = loop.time() + self.__resolution
        while True:
            now = loop.time()
            if now >= next_flush:
                self.flush()
                while next_flush <= now:
                    next_flush += self.__resolution
                continue
            try:
                event = await asyncio.wait_for(
                    self.__queue.get(), next_flush - now
                )
            except TimeoutError:
                continue
            self.feed(event)
            self.__queue.task_done()
