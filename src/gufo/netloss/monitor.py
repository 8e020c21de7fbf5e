# ---------------------------------------------------------------------
# Gufo Netloss: Monitor
# ---------------------------------------------------------------------
# Copyright (C) 2026, Gufo Labs
# ---------------------------------------------------------------------

"""Wire probers and aggregator together."""

# Python modules
import asyncio
import logging
from typing import List, Optional, Sequence

# Gufo Labs modules
from .aggregator import Aggregator
from .config import Config
from .model import OutcomeEvent
from .prober import Prober, SocketFactory
from .proto import SocketProto
from .sink import MetricsSink
from .socket import PingSocket
from .target import Target, resolve

logger = logging.getLogger("gufo.netloss.monitor")


class Monitor(object):
    """
    Network loss monitor.

    Runs one Prober task per target and a single Aggregator task,
    connected by the bounded queue.

    Args:
        config: Monitor settings.
        sinks: Snapshot receivers.
        socket_factory: Transport factory. PingSocket is used when empty.

    Example:
        ``` py
        monitor = Monitor(Config(targets=["1.1.1.1"]), [LogSink()])
        await monitor.run()
        ```
    """

    def __init__(
        self: "Monitor",
        config: Config,
        sinks: Sequence[MetricsSink],
        socket_factory: Optional[SocketFactory] = None,
    ) -> None:
        config.validate()
        self.__config = config
        self.__sinks = list(sinks)
        self.__socket_factory = socket_factory or self._socket_factory

    def _socket_factory(self: "Monitor", afi: int) -> SocketProto:
        return PingSocket(afi=afi, privileged=self.__config.privileged)

    async def resolve(self: "Monitor") -> List[Target]:
        """
        Resolve all configured targets.

        Raises:
            ResolveError: if any target cannot be resolved.
        """
        r: List[Target] = []
        for host in self.__config.targets:
            target = await resolve(host)
            logger.info("Monitoring %s (%s)", target.host, target.address)
            r.append(target)
        return r

    async def run(self: "Monitor") -> None:
        """
        Run until cancelled or until any task fails.

        Raises:
            ResolveError: if any target cannot be resolved.
            SocketError: if any prober lost its socket.
        """
        cfg = self.__config
        targets = await self.resolve()
        queue: "asyncio.Queue[OutcomeEvent]" = asyncio.Queue(cfg.queue_size)
        aggregator = Aggregator(
            queue, self.__sinks, resolution=cfg.resolution, targets=targets
        )
        probers = [
            Prober(
                target,
                interval=cfg.interval,
                timeout=cfg.attempt_timeout,
                size=cfg.size,
                socket_factory=self.__socket_factory,
            )
            for target in targets
        ]
        loop = asyncio.get_running_loop()
        tasks = [loop.create_task(aggregator.run(), name="aggregator")]
        tasks += [
            loop.create_task(p.run(queue), name=f"prober-{p.target.host}")
            for p in probers
        ]
        try:
            done, _ = await asyncio.wait(
                tasks, return_when=asyncio.FIRST_EXCEPTION
            )
            for task in done:
                task.result()
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            for p in probers:
                p.close()
