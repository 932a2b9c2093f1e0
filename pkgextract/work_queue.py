"""Bounded worker pool over a queue that grows while it is drained."""

import asyncio
from collections.abc import Awaitable, Callable, Iterable


async def drain_queue(
    initial_items: Iterable[str],
    process: Callable[[str], Awaitable[Iterable[str]]],
    concurrency: int,
) -> None:
    """Process items with ``concurrency`` workers until the queue is empty.

    Args:
        initial_items: Items to seed the queue with
        process: Handles one item and returns the items to push next
        concurrency: Number of workers

    The first exception raised by ``process`` cancels the remaining workers
    and is re-raised.
    """
    queue: asyncio.Queue[str] = asyncio.Queue()
    for item in initial_items:
        queue.put_nowait(item)

    async def worker() -> None:
        while True:
            item = await queue.get()
            try:
                for next_item in await process(item):
                    queue.put_nowait(next_item)
            finally:
                queue.task_done()

    workers = [asyncio.create_task(worker()) for _ in range(concurrency)]
    join_task = asyncio.create_task(queue.join())
    try:
        await asyncio.wait([join_task, *workers], return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in [join_task, *workers]:
            task.cancel()
        results = await asyncio.gather(join_task, *workers, return_exceptions=True)

    for result in results:
        if isinstance(result, Exception):
            raise result


async def for_each_limited(
    items: Iterable,
    action: Callable[..., Awaitable[None]],
    concurrency: int,
) -> None:
    """Run ``action`` on every item, at most ``concurrency`` at a time."""
    semaphore = asyncio.Semaphore(concurrency)

    async def run(item) -> None:
        async with semaphore:
            await action(item)

    await asyncio.gather(*(run(item) for item in items))
