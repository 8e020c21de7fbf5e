# ---------------------------------------------------------------------
# Gufo Netloss: Command-line utility
# ---------------------------------------------------------------------
# Copyright (C) 2024-26, Gufo Labs
# See LICENSE.md for details
# ---------------------------------------------------------------------
"""
`gufo-netloss` command line utility.

Attributes:
    NAME: Utility's name.
"""

# Python modules
import argparse
import asyncio
import logging
import signal
import sys
from enum import IntEnum
from typing import List, NoReturn, Optional

# Third-party modules
from rich.logging import RichHandler

# Gufo Labs modules
from . import __version__
from .config import DEFAULT_LISTEN, Config, parse_duration, parse_listen
from .error import NetlossError
from .icmp import MIN_SIZE
from .monitor import Monitor
from .sink import LogSink, MetricsSink, PrometheusSink

NAME = "gufo-netloss"

logger = logging.getLogger("gufo.netloss.cli")


class ExitCode(IntEnum):
    """
    Cli exit codes.

    Attributes:
        OK: Successful exit
        ERR: Fatal error
    """

    OK = 0
    ERR = 1


def duration(v: str) -> float:
    """Argparse type for durations."""
    try:
        return parse_duration(v)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


class Cli(object):
    """`gufo-netloss` utility class."""

    def die(self: "Cli", msg: Optional[str] = None) -> NoReturn:
        """Die with message."""
        if msg:
            print(msg)
        sys.exit(1)

    @staticmethod
    def setup_logging(debug: bool = False) -> None:
        """Install console log handler."""
        logging.basicConfig(
            level=logging.DEBUG if debug else logging.INFO,
            format="%(message)s",
            datefmt="[%X]",
            handlers=[RichHandler(rich_tracebacks=True)],
        )

    def get_parser(self: "Cli") -> argparse.ArgumentParser:
        """Build command-line parser."""
        parser = argparse.ArgumentParser(
            prog=NAME, description="Network loss monitor"
        )
        parser.add_argument(
            "targets", nargs="*", metavar="TARGET", help="Hosts to probe"
        )
        parser.add_argument(
            "-i",
            "--interval",
            type=duration,
            default=1.0,
            help="Interval between echo requests (default: 1s)",
        )
        parser.add_argument(
            "-t",
            "--timeout",
            type=duration,
            help="Echo reply timeout (default: same as interval)",
        )
        parser.add_argument(
            "-r",
            "--resolution",
            type=duration,
            default=30.0,
            help="Statistics window (default: 30s)",
        )
        parser.add_argument(
            "-l",
            "--listen",
            default=DEFAULT_LISTEN,
            help="Metrics listen address, empty to disable "
            f"(default: {DEFAULT_LISTEN})",
        )
        parser.add_argument(
            "-s",
            "--size",
            type=int,
            default=MIN_SIZE,
            help="Packet size",
        )
        parser.add_argument(
            "-q",
            "--queue-size",
            type=int,
            default=100,
            help="Events queue capacity",
        )
        parser.add_argument(
            "--debug", action="store_true", help="Enable debug logging"
        )
        parser.add_argument(
            "-v",
            "--version",
            action="store_true",
            help="Print version information and exit",
        )
        return parser

    def run(self: "Cli", args: List[str]) -> ExitCode:
        """
        Parse command-line arguments and run appropriate command.

        Args:
            args: List of command-line arguments
        Returns:
            ExitCode
        """
        ns = self.get_parser().parse_args(args)
        if ns.version:
            print(f"{NAME} {__version__}")
            return ExitCode.OK
        cfg = Config(
            interval=ns.interval,
            timeout=ns.timeout,
            resolution=ns.resolution,
            listen=ns.listen,
            size=ns.size,
            queue_size=ns.queue_size,
        )
        if ns.targets:
            cfg.targets = ns.targets
        try:
            cfg.validate()
        except ValueError as e:
            self.die(str(e))
        self.setup_logging(ns.debug)
        # Setup loop
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        main_task = loop.create_task(self._run(cfg))
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, main_task.cancel)
        # Run
        try:
            return loop.run_until_complete(main_task)
        except asyncio.CancelledError:
            return ExitCode.OK
        finally:
            loop.close()

    async def _run(self: "Cli", cfg: Config) -> ExitCode:
        sinks: List[MetricsSink] = [LogSink()]
        if cfg.listen:
            addr, port = parse_listen(cfg.listen)
            prometheus = PrometheusSink()
            try:
                prometheus.start_server(addr, port)
            except OSError as e:
                logger.error("Cannot bind %s: %s. PROGRAM EXIT", cfg.listen, e)
                return ExitCode.ERR
            sinks.append(prometheus)
        try:
            await Monitor(cfg, sinks).run()
        except NetlossError as e:
            logger.error("Fatal error: %s. PROGRAM EXIT", e)
            return ExitCode.ERR
        return ExitCode.OK


def main(args: Optional[List[str]] = None) -> int:
    """Run `gufo-netloss` with command-line arguments."""
    return Cli().run(sys.argv[1:] if args is None else args).value
