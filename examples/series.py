import asyncio
import sys

from gufo.netloss.model import Outcome
from gufo.netloss.prober import Prober
from gufo.netloss.target import resolve


async def main(host: str, count: int = 5) -> None:
    prober = Prober(await resolve(host))
    async for event in prober.iter_events(count=count):
        if event.outcome == Outcome.DELIVERED and event.rtt is not None:
            print(f"icmp_seq={event.seq} time={event.rtt / 1e6:.3f}ms")
        elif event.outcome == Outcome.DROPPED:
            print(f"Request timeout for icmp_seq {event.seq}")
        else:
            print(f"Duplicate reply for icmp_seq {event.seq}")
    prober.close()


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1]))
