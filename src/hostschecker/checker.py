"""
Concurrent hosts file verification pipeline.

Pairs flow one way: the pair generator fills a bounded pair queue, a
bounded pool of probe tasks drains it, and failures are streamed back
through a bounded result queue to the caller.
"""

import asyncio
import logging
from typing import AsyncIterator, Iterable, Optional, Set

from .errors import HostsFileError, ProbeFailure
from .hosts_file import Pair, is_valid_ip, parse_line
from .prober import TLSProber

logger = logging.getLogger(__name__)

# Constants
QUEUE_CAPACITY = 3  # Capacity of both the pair and the result queue
DEFAULT_CONCURRENCY = 2  # Default number of in-flight probes

# End-of-stream marker; each queue has exactly one writer that puts it
_DONE = object()
_EOF = object()  # Returned by next() once the lines run out


class TimeoutRegistry:
    """
    Run-scoped set of IPs whose connection attempt already timed out.

    Entries are only ever added.
    """

    def __init__(self) -> None:
        self._ips: Set[str] = set()
        self._lock = asyncio.Lock()

    async def add(self, ip: str) -> None:
        async with self._lock:
            self._ips.add(ip)

    async def contains(self, ip: str) -> bool:
        async with self._lock:
            return ip in self._ips

    def __len__(self) -> int:
        return len(self._ips)


async def generate_pairs(lines: Iterable[str], queue: asyncio.Queue) -> int:
    """
    Parse lines into validated pairs and put them on ``queue``.

    Lines with a malformed address are skipped. Lines are read in a worker
    thread, off the event loop. The end-of-stream marker is put after the
    last pair, including when reading fails.

    Args:
        lines: Hosts file lines
        queue: Bounded pair queue; ``put`` blocks while it is full

    Returns:
        Number of pairs produced

    Raises:
        HostsFileError: If reading ``lines`` fails
    """
    count = 0
    line_num = 0
    try:
        remaining = iter(lines)
        while True:
            line = await asyncio.to_thread(next, remaining, _EOF)
            if line is _EOF:
                break
            line_num += 1

            parsed = parse_line(line)
            if parsed is None:
                continue

            ip, hostnames = parsed
            if not is_valid_ip(ip):
                logger.info(f"Invalid IP at line {line_num}: {ip}")
                continue
            logger.debug(f"Scanned {ip} {hostnames}")

            for hostname in hostnames:
                await queue.put(Pair(ip, hostname))
                count += 1
    except Exception as e:
        await queue.put(_DONE)
        if isinstance(e, (OSError, UnicodeDecodeError)):
            raise HostsFileError(f"Failed to read hosts file: {e}") from e
        raise

    await queue.put(_DONE)
    logger.debug(f"Pair generator finished, {count} pair(s)")
    return count


class HostsChecker:
    """
    Probes every pair of a hosts file with bounded concurrency.

    Pairs whose IP already timed out during this run are skipped without
    being reported again.
    """

    def __init__(
        self,
        prober: Optional[TLSProber] = None,
        concurrency: int = DEFAULT_CONCURRENCY,
        queue_capacity: int = QUEUE_CAPACITY,
        known_timeouts: Optional[TimeoutRegistry] = None,
    ):
        """
        Initialize hosts checker.

        Args:
            prober: Object with an async ``hello(pair)`` returning a failure or None
            concurrency: Maximum number of probes in flight
            queue_capacity: Capacity of the pair and result queues
            known_timeouts: Registry shared across runs, fresh if not given
        """
        if concurrency < 1:
            raise ValueError("Concurrency must be at least 1")

        self.prober = prober or TLSProber()
        self.concurrency = concurrency
        self.queue_capacity = queue_capacity
        self.known_timeouts = known_timeouts if known_timeouts is not None else TimeoutRegistry()

    async def _probe(
        self,
        pair: Pair,
        results: asyncio.Queue,
        slots: asyncio.Semaphore,
    ) -> None:
        """Probe one pair while holding a slot acquired by the dispatcher."""
        try:
            if await self.known_timeouts.contains(pair.ip):
                logger.debug(f"Skipping {pair}, {pair.ip} already timed out")
                return

            failure = await self.prober.hello(pair)
            if failure is None:
                return

            if failure.remember_ip:
                await self.known_timeouts.add(failure.pair.ip)
            await results.put(failure)
        finally:
            slots.release()

    async def _consume_pairs(self, pairs: asyncio.Queue, results: asyncio.Queue) -> None:
        """
        Dispatch pairs to probe tasks until the generator is done.

        Puts the end-of-stream marker on ``results`` once every probe has
        finished.
        """
        slots = asyncio.Semaphore(self.concurrency)
        in_flight: Set[asyncio.Task] = set()

        try:
            while True:
                # Hold off dequeuing while all slots are busy
                await slots.acquire()
                pair = await pairs.get()
                if pair is _DONE:
                    slots.release()
                    break

                task = asyncio.create_task(self._probe(pair, results, slots))
                in_flight.add(task)
                task.add_done_callback(in_flight.discard)

            if in_flight:
                await asyncio.gather(*in_flight)
        except asyncio.CancelledError:
            await self._cancel_all(in_flight)
            raise
        except Exception:
            await self._cancel_all(in_flight)
            await results.put(_DONE)
            raise

        await results.put(_DONE)

    @staticmethod
    async def _cancel_all(tasks: Set[asyncio.Task]) -> None:
        pending = list(tasks)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    async def check(self, lines: Iterable[str]) -> AsyncIterator[ProbeFailure]:
        """
        Check every pair in ``lines`` and yield the failures as they occur.

        Failures arrive in completion order, not file order. Closing or
        cancelling the iterator cancels all in-flight probes.

        Args:
            lines: Hosts file lines

        Yields:
            One ProbeFailure per pair that did not complete a handshake

        Raises:
            HostsFileError: If reading ``lines`` failed, after all probes finished
        """
        pairs: asyncio.Queue = asyncio.Queue(self.queue_capacity)
        results: asyncio.Queue = asyncio.Queue(self.queue_capacity)

        producer = asyncio.create_task(generate_pairs(lines, pairs))
        consumer = asyncio.create_task(self._consume_pairs(pairs, results))

        try:
            while True:
                failure = await results.get()
                if failure is _DONE:
                    break
                yield failure

            await consumer
            pair_count = await producer
            logger.debug(f"Checked {pair_count} pair(s)")
        finally:
            for task in (producer, consumer):
                if not task.done():
                    task.cancel()
            await asyncio.gather(producer, consumer, return_exceptions=True)
