# ---------------------------------------------------------------------
# Gufo Netloss: Network loss monitor
# ---------------------------------------------------------------------
# Copyright (C) 2026, Gufo Labs
# ---------------------------------------------------------------------

"""
Gufo Netloss is the asyncio ICMP packet loss and latency monitor.

Attributes:
    __version__: Current version.
"""

# Gufo Labs modules
from .aggregator import Aggregator, StatisticsWindow
from .config import Config
from .model import Outcome, OutcomeEvent, Snapshot
from .monitor import Monitor
from .prober import Prober

__version__: str = "0.1.0"
__all__ = [
    "Aggregator",
    "Config",
    "Monitor",
    "Outcome",
    "OutcomeEvent",
    "Prober",
    "Snapshot",
    "StatisticsWindow",
    "__version__",
]
