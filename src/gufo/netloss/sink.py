# ---------------------------------------------------------------------
# Gufo Netloss: Metrics sinks
# ---------------------------------------------------------------------
# Copyright (C) 2026, Gufo Labs
# ---------------------------------------------------------------------

"""
Snapshot consumers.

Attributes:
    NAMESPACE: Default metrics namespace.
    TARGET_LABEL: Label holding target's identity.
"""

# Python modules
import logging
from typing import Dict, Optional, Protocol, Tuple

# Third-party modules
from prometheus_client import CollectorRegistry, Gauge, start_http_server

# Gufo Labs modules
from .model import Snapshot

NAMESPACE = "networkloss"
TARGET_LABEL = "monitor_target"
MS = 1000.0

logger = logging.getLogger("gufo.netloss.sink")


def _msec(v: Optional[float]) -> float:
    if v is None:
        return float("nan")
    return v * MS


class MetricsSink(Protocol):
    """Receiver of the finalized snapshots."""

    def publish(self: "MetricsSink", target: str, snapshot: Snapshot) -> None:
        """
        Publish finalized window.

        Args:
            target: Target identity.
            snapshot: Window statistics.
        """
        ...


class LogSink(object):
    """
    Write snapshots to the log.

    Args:
        level: Logging level.
    """

    def __init__(self: "LogSink", level: int = logging.INFO) -> None:
        self.__level = level

    def publish(self: "LogSink", target: str, snapshot: Snapshot) -> None:
        """Log snapshot."""
        logger.log(
            self.__level,
            "%s: dropped_packets=%d total_packets=%d duplicate_packets=%d "
            "loss=%3.2f rtt_min_msec=%4.3f rtt_avg_msec=%4.3f "
            "rtt_max_msec=%4.3f rtt_stddev_msec=%4.3f",
            target,
            snapshot.dropped,
            snapshot.sent,
            snapshot.duplicates,
            snapshot.loss,
            _msec(snapshot.rtt_min),
            _msec(snapshot.rtt_avg),
            _msec(snapshot.rtt_max),
            _msec(snapshot.rtt_stddev),
        )


class PrometheusSink(object):
    """
    Expose snapshots as Prometheus gauges.

    Each gauge is labelled with `monitor_target`.
    Undefined latencies are exported as NaN.

    Args:
        registry: Collector registry. Use new registry when empty.
        namespace: Metrics namespace.

    Example:
        ``` py
        sink = PrometheusSink()
        sink.start_server("127.0.0.1", 9321)
        ```
    """

    GAUGES: Tuple[Tuple[str, str], ...] = (
        ("total_packets", "Number of transmitted packets"),
        ("received_packets", "Number of received packets"),
        ("dropped_packets", "Number of dropped packets"),
        ("duplicate_packets", "Number of late or duplicated replies"),
        ("loss_ratio", "0.0 - 1.0 fraction of dropped packets"),
        ("rtt_min_msec", "Minimum observed round trip time"),
        ("rtt_avg_msec", "Average observed round trip time"),
        ("rtt_max_msec", "Maximum observed round trip time"),
        ("rtt_stddev_msec", "Standard deviation of round trip time"),
    )

    def __init__(
        self: "PrometheusSink",
        registry: Optional[CollectorRegistry] = None,
        namespace: str = NAMESPACE,
    ) -> None:
        self.registry = registry or CollectorRegistry()
        self.__gauges: Dict[str, Gauge] = {
            name: Gauge(
                name,
                doc,
                labelnames=[TARGET_LABEL],
                namespace=namespace,
                registry=self.registry,
            )
            for name, doc in self.GAUGES
        }

    def publish(
        self: "PrometheusSink", target: str, snapshot: Snapshot
    ) -> None:
        """Set gauges from snapshot."""
        values = {
            "total_packets": float(snapshot.sent),
            "received_packets": float(snapshot.received),
            "dropped_packets": float(snapshot.dropped),
            "duplicate_packets": float(snapshot.duplicates),
            "loss_ratio": snapshot.loss,
            "rtt_min_msec": _msec(snapshot.rtt_min),
            "rtt_avg_msec": _msec(snapshot.rtt_avg),
            "rtt_max_msec": _msec(snapshot.rtt_max),
            "rtt_stddev_msec": _msec(snapshot.rtt_stddev),
        }
        for name, value in values.items():
            self.__gauges[name].labels(**{TARGET_LABEL: target}).set(value)

    def start_server(self: "PrometheusSink", addr: str, port: int) -> None:
        """
        Serve metrics over HTTP in the background thread.

        Args:
            addr: Listen address.
            port: Listen port.
        """
        logger.info("Serving metrics on %s:%d", addr, port)
        start_http_server(port, addr=addr, registry=self.registry)
