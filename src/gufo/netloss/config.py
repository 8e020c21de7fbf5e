# ---------------------------------------------------------------------
# Gufo Netloss: Configuration
# ---------------------------------------------------------------------
# Copyright (C) 2026, Gufo Labs
# ---------------------------------------------------------------------

"""
Monitor configuration.

Attributes:
    DEFAULT_TARGET: Target probed when none is configured.
    DEFAULT_LISTEN: Default metrics listen address.
"""

# Python modules
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

# Gufo Labs modules
from .icmp import MAX_SIZE, MIN_SIZE

DEFAULT_TARGET = "1.0.0.1"
DEFAULT_LISTEN = "127.0.0.1:9321"
MAX_PORT = 65535

rx_duration = re.compile(r"^\s*(\d+(?:\.\d*)?|\.\d+)\s*(ms|s|m|h)?\s*$")
UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(v: str) -> float:
    """
    Parse duration.

    Args:
        v: Duration like `500ms`, `1.5s`, `1m`, `1h`.
            Seconds are assumed when the unit is omitted.

    Returns:
        Duration in seconds.

    Raises:
        ValueError: on invalid duration.
    """
    match = rx_duration.match(v)
    if not match:
        msg = f"invalid duration: {v}"
        raise ValueError(msg)
    return float(match.group(1)) * UNITS[match.group(2) or "s"]


def parse_listen(v: str) -> Tuple[str, int]:
    """
    Parse listen address.

    Args:
        v: Address in `host:port` or `[ipv6]:port` form.

    Returns:
        Tuple of (`address`, `port`).

    Raises:
        ValueError: on invalid address.
    """
    host, sep, port = v.rpartition(":")
    if not sep or not port.isdigit():
        msg = f"invalid listen address: {v}"
        raise ValueError(msg)
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    p = int(port)
    if p < 1 or p > MAX_PORT:
        msg = f"port must be in 1..{MAX_PORT} range"
        raise ValueError(msg)
    return host or "0.0.0.0", p


@dataclass
class Config(object):
    """
    Monitor settings. Fixed for the process lifetime.

    Args:
        targets: Hosts to probe.
        interval: Interval between echo requests, in seconds.
        timeout: Attempt timeout, in seconds. Same as `interval`
            when empty.
        resolution: Statistics window, in seconds.
        listen: Metrics HTTP server address. Disabled when empty.
        size: Outgoing packet's size, including IP header.
        queue_size: Capacity of the events queue.
        privileged: Socket kind, see PingSocket.
    """

    targets: List[str] = field(default_factory=lambda: [DEFAULT_TARGET])
    interval: float = 1.0
    timeout: Optional[float] = None
    resolution: float = 30.0
    listen: str = DEFAULT_LISTEN
    size: int = MIN_SIZE
    queue_size: int = 100
    privileged: Optional[bool] = None

    @property
    def attempt_timeout(self: "Config") -> float:
        """Effective attempt timeout."""
        if self.timeout is None:
            return self.interval
        return self.timeout

    def validate(self: "Config") -> None:
        """
        Check settings.

        Raises:
            ValueError: on invalid settings.
        """
        if not self.targets:
            msg = "at least one target must be set"
            raise ValueError(msg)
        if self.interval <= 0:
            msg = "interval must be positive"
            raise ValueError(msg)
        if self.attempt_timeout <= 0:
            msg = "timeout must be positive"
            raise ValueError(msg)
        if self.resolution <= 0:
            msg = "resolution must be positive"
            raise ValueError(msg)
        if self.size < MIN_SIZE or self.size > MAX_SIZE:
            msg = f"size must be in {MIN_SIZE}..{MAX_SIZE} range"
            raise ValueError(msg)
        if self.queue_size < 1:
            msg = "queue size must be positive"
            raise ValueError(msg)
        if self.listen:
            parse_listen(self.listen)
