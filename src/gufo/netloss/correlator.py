# ---------------------------------------------------------------------
# Gufo Netloss: Reply correlation
# ---------------------------------------------------------------------
# Copyright (C) 2026, Gufo Labs
# ---------------------------------------------------------------------

"""Match received echo replies against the outstanding request."""

# Python modules
from enum import Enum
from typing import NamedTuple, Optional

# Gufo Labs modules
from .icmp import EchoMessage


class Correlation(Enum):
    """
    Correlation verdict.

    Attributes:
        MATCH: Reply to the outstanding request.
        NOT_MATCH: Foreign datagram.
        STALE: Reply to an earlier request of the same prober.
        MALFORMED: Datagram cannot be parsed.
    """

    MATCH = "match"
    NOT_MATCH = "not_match"
    STALE = "stale"
    MALFORMED = "malformed"


class Outstanding(NamedTuple):
    """
    Request awaiting for reply.

    Args:
        address: Normalized target address.
        request_id: ICMP identifier, None if the kernel rewrites it.
        seq: Sequence number actually sent.
    """

    address: str
    request_id: Optional[int]
    seq: int


def correlate(
    msg: Optional[EchoMessage], src_addr: str, outstanding: Outstanding
) -> Correlation:
    """
    Correlate received datagram with the outstanding request.

    Args:
        msg: Parsed echo message, None if parsing failed.
        src_addr: Normalized datagram's source address.
        outstanding: Current request.

    Returns:
        Correlation verdict.
    """
    if msg is None:
        return Correlation.MALFORMED
    if not msg.is_reply or src_addr != outstanding.address:
        return Correlation.NOT_MATCH
    if (
        outstanding.request_id is not None
        and msg.request_id != outstanding.request_id
    ):
        return Correlation.NOT_MATCH
    if msg.seq != outstanding.seq:
        return Correlation.STALE
    return Correlation.MATCH
