# ---------------------------------------------------------------------
# Gufo Netloss: Data model
# ---------------------------------------------------------------------
# Copyright (C) 2026, Gufo Labs
# ---------------------------------------------------------------------

"""
Probing outcomes and statistics snapshots.

Attributes:
    NS: Nanoseconds in second.
"""

# Python modules
from dataclasses import dataclass
from enum import Enum
from typing import Optional

NS = 1_000_000_000


class Outcome(Enum):
    """
    Result of the single probe.

    Attributes:
        DELIVERED: Matching echo reply received in time.
        DROPPED: No matching reply until the attempt deadline.
        DUPLICATE: Late or duplicated reply to an earlier request.
    """

    DELIVERED = "delivered"
    DROPPED = "dropped"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class OutcomeEvent(object):
    """
    Single measurement passed from Prober to Aggregator.

    Args:
        target: Target identity (configured host).
        seq: ICMP sequence number.
        sent_at: Wall-clock time of sending, in seconds.
        outcome: Probe outcome.
        rtt: Round-trip time in nanoseconds, for `DELIVERED` only.
    """

    target: str
    seq: int
    sent_at: float
    outcome: Outcome
    rtt: Optional[int] = None


@dataclass(frozen=True)
class Snapshot(object):
    """
    Finalized window statistics for one target.

    Latency fields are in seconds and are `None`
    when no reply has been received within the window.

    Args:
        target: Target identity.
        sent: Echo requests sent.
        received: Matching replies received.
        dropped: Requests left without reply.
        duplicates: Late or duplicated replies.
        loss: Loss fraction in 0.0 .. 1.0 range.
        rtt_min: Minimal round-trip time.
        rtt_avg: Average round-trip time.
        rtt_max: Maximal round-trip time.
        rtt_stddev: Population standard deviation of round-trip time.
        timestamp: Wall-clock time of the flush.
    """

    target: str
    sent: int
    received: int
    dropped: int
    duplicates: int
    loss: float
    rtt_min: Optional[float]
    rtt_avg: Optional[float]
    rtt_max: Optional[float]
    rtt_stddev: Optional[float]
    timestamp: float = 0.0
