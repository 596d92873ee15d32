#!/usr/bin/env python3
"""
Convergence demo for the Berkeley coordinator

Starts a coordinator and a handful of peers with random clock offsets in one
process, runs a few synchronization cycles and reports how far apart the
logical clocks are after each one. With --status-url it instead checks a
running coordinator through its diagnostics API.

Usage:
    python convergence_demo.py --peers 5 --cycles 3
    python convergence_demo.py --status-url http://127.0.0.1:8080
"""

import argparse
import asyncio
import json
import random
import statistics
from typing import Dict, List

import aiohttp

from berkeley_sync.core.coordinator import Coordinator
from berkeley_sync.core.peer_client import PeerClient


class ConvergenceDemo:
    def __init__(self, peers: int, cycles: int, max_offset: int):
        self.peer_count = peers
        self.cycles = cycles
        self.max_offset = max_offset
        self.results: Dict[str, List] = {"spread_before": [], "spread_after": [], "averages": []}

    def _spread(self, coordinator: Coordinator, clients: List[PeerClient]) -> int:
        offsets = [coordinator.clock.offset()] + [c.clock.offset() for c in clients]
        return max(offsets) - min(offsets)

    async def run(self):
        coordinator = Coordinator(host="127.0.0.1", port=0, initial_delay=3600)
        await coordinator.start()
        clients = [
            PeerClient("127.0.0.1", coordinator.port, f"demo-{i}",
                       initial_offset=random.randint(-self.max_offset, self.max_offset))
            for i in range(self.peer_count)
        ]
        tasks = [asyncio.create_task(c.run()) for c in clients]
        try:
            while len(coordinator.peers) < self.peer_count:
                await asyncio.sleep(0.01)

            for _ in range(self.cycles):
                self.results["spread_before"].append(self._spread(coordinator, clients))
                applied = sum(c.adjustments_applied for c in clients)
                record = await coordinator.synchronize_once()
                expected = applied + len(record.adjustments)
                while sum(c.adjustments_applied for c in clients) < expected:
                    await asyncio.sleep(0.01)
                self.results["averages"].append(record.average)
                self.results["spread_after"].append(self._spread(coordinator, clients))
        finally:
            await coordinator.stop()
            await asyncio.gather(*tasks, return_exceptions=True)

    def print_report(self):
        print("\n" + "=" * 60)
        print("CONVERGENCE REPORT")
        print("=" * 60)
        print(f"   Peers: {self.peer_count} | initial offsets within +/-{self.max_offset} ms")
        for i, (before, after, avg) in enumerate(zip(self.results["spread_before"],
                                                     self.results["spread_after"],
                                                     self.results["averages"]), start=1):
            print(f"   Cycle {i}: spread {before} ms -> {after} ms (average {avg} ms)")
        if self.results["spread_after"]:
            print(f"\n   Mean residual spread: {statistics.mean(self.results['spread_after']):.1f} ms")
        print("=" * 60)


async def check_coordinator(status_url: str) -> bool:
    """Print a running coordinator's status"""
    async with aiohttp.ClientSession() as session:
        try:
            async with session.get(f"{status_url}/status", timeout=aiohttp.ClientTimeout(total=2)) as resp:
                if resp.status != 200:
                    print(f"Coordinator returned HTTP {resp.status}")
                    return False
                print(json.dumps(await resp.json(), indent=2))
                return True
        except aiohttp.ClientError as e:
            print(f"Coordinator unreachable: {e}")
            return False


def main():
    parser = argparse.ArgumentParser(description="Berkeley synchronization convergence demo")
    parser.add_argument("--peers", type=int, default=4)
    parser.add_argument("--cycles", type=int, default=3)
    parser.add_argument("--max-offset", type=int, default=1000,
                        help="peers start within +/- this many milliseconds")
    parser.add_argument("--status-url", default=None,
                        help="inspect a running coordinator instead of running the demo")
    args = parser.parse_args()

    if args.status_url:
        return 0 if asyncio.run(check_coordinator(args.status_url)) else 1

    demo = ConvergenceDemo(args.peers, args.cycles, args.max_offset)
    try:
        asyncio.run(demo.run())
    except KeyboardInterrupt:
        print("\nDemo interrupted by user")
    demo.print_report()
    return 0


if __name__ == "__main__":
    exit(main())
