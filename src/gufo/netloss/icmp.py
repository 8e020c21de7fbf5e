# ---------------------------------------------------------------------
# Gufo Netloss: ICMP echo messages
# ---------------------------------------------------------------------
# Copyright (C) 2026, Gufo Labs
# ---------------------------------------------------------------------

"""
ICMP/ICMPv6 echo request encoder and echo reply parser.

Attributes:
    MIN_SIZE: Minimal packet size, including IP header.
    MAX_SIZE: Maximal packet size, including IP header.
"""

# Python modules
import struct
from typing import NamedTuple, Optional

# Third-party modules
from scapy.error import Scapy_Exception
from scapy.layers.inet import ICMP, IP
from scapy.layers.inet6 import ICMPv6EchoReply, ICMPv6EchoRequest
from scapy.packet import Raw

# Gufo Labs modules
from .target import IPv4, IPv6

MIN_SIZE = 64
MAX_SIZE = 65535

ICMP_HEADER_SIZE = 8
IP_HEADER_SIZE = {IPv4: 20, IPv6: 40}
ECHO_REQUEST = {IPv4: 8, IPv6: 128}
ECHO_REPLY = {IPv4: 0, IPv6: 129}


class EchoMessage(NamedTuple):
    """
    Parsed ICMP echo message.

    Args:
        afi: Address family.
        type: ICMP type.
        code: ICMP code.
        request_id: ICMP identifier.
        seq: ICMP sequence number.
    """

    afi: int
    type: int
    code: int
    request_id: int
    seq: int

    @property
    def is_reply(self: "EchoMessage") -> bool:
        """Check the message is an echo reply for its address family."""
        return self.type == ECHO_REPLY[self.afi] and self.code == 0

    @property
    def is_request(self: "EchoMessage") -> bool:
        """Check the message is an echo request for its address family."""
        return self.type == ECHO_REQUEST[self.afi] and self.code == 0


def _payload(size: int) -> bytes:
    return bytes(i & 0xFF for i in range(size))


def build_echo_request(
    afi: int, request_id: int, seq: int, size: int
) -> bytes:
    """
    Build ICMP echo request.

    Args:
        afi: Address family, 4 or 6.
        request_id: ICMP identifier.
        seq: ICMP sequence number.
        size: Packet size, including IP header.

    Returns:
        Encoded ICMP message, without IP header.

    Note:
        ICMPv6 checksum is left zero,
        kernel calculates it for ICMPv6 sockets.
    """
    if size < MIN_SIZE or size > MAX_SIZE:
        msg = f"size must be in {MIN_SIZE}..{MAX_SIZE} range"
        raise ValueError(msg)
    payload = _payload(size - IP_HEADER_SIZE[afi] - ICMP_HEADER_SIZE)
    request_id &= 0xFFFF
    seq &= 0xFFFF
    if afi == IPv6:
        return bytes(
            ICMPv6EchoRequest(id=request_id, seq=seq, cksum=0, data=payload)
        )
    return bytes(ICMP(type=8, code=0, id=request_id, seq=seq) / Raw(payload))


def parse_echo(
    data: bytes, afi: int, ip_header: bool = False
) -> Optional[EchoMessage]:
    """
    Parse received datagram.

    Args:
        data: Received datagram.
        afi: Address family, 4 or 6.
        ip_header: Datagram starts with IPv4 header.

    Returns:
        * EchoMessage - for the echo request or the echo reply.
        * None - when the datagram is malformed or not an echo message.
    """
    min_len = ICMP_HEADER_SIZE + (IP_HEADER_SIZE[afi] if ip_header else 0)
    if len(data) < min_len:
        return None
    try:
        if afi == IPv6:
            msg6 = ICMPv6EchoReply(data)
            if msg6.type not in (ECHO_REQUEST[IPv6], ECHO_REPLY[IPv6]):
                return None
            return EchoMessage(
                afi=IPv6,
                type=msg6.type,
                code=msg6.code,
                request_id=msg6.id,
                seq=msg6.seq,
            )
        pkt = IP(data) if ip_header else ICMP(data)
        msg = pkt.getlayer(ICMP)
    except (struct.error, IndexError, ValueError, Scapy_Exception):
        return None
    if msg is None or msg.type not in (ECHO_REQUEST[IPv4], ECHO_REPLY[IPv4]):
        return None
    return EchoMessage(
        afi=IPv4, type=msg.type, code=msg.code, request_id=msg.id, seq=msg.seq
    )
