import asyncio
import logging
import sys
from typing import List

from gufo.netloss import Config, Monitor
from gufo.netloss.sink import LogSink


async def main(hosts: List[str]) -> None:
    cfg = Config(targets=hosts, interval=0.5, resolution=5.0, listen="")
    await Monitor(cfg, [LogSink()]).run()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main(sys.argv[1:]))
