import asyncio
from typing import Any, Awaitable, Callable, List, Optional, Sequence, TypeVar

T = TypeVar('T')


def chunk(items: Sequence[T], size: int) -> List[Sequence[T]]:
    """Split items into consecutive groups of at most ``size``"""
    if size < 1:
        raise ValueError("batch size must be at least 1")
    return [items[i:i + size] for i in range(0, len(items), size)]


async def run_in_batches(items: Sequence[T], worker: Callable[[T], Awaitable[Any]],
                         batch_size: int, pause: float = 0.0,
                         stop_requested: Optional[Callable[[], bool]] = None) -> List[Any]:
    """Run ``worker`` over items, one batch at a time.

    Calls inside a batch run concurrently; batches run one after another with
    ``pause`` seconds between them. Results keep the input order and failed
    calls are returned as their exception instead of being raised.

    Once ``stop_requested`` returns True no further batch is started, so the
    result list only covers the leading items that actually ran.
    """
    def stopping() -> bool:
        return stop_requested is not None and stop_requested()

    results: List[Any] = []
    for index, batch in enumerate(chunk(items, batch_size)):
        if index and pause and not stopping():
            await asyncio.sleep(pause)
        if stopping():
            break
        results.extend(await asyncio.gather(*(worker(item) for item in batch), return_exceptions=True))
    return results
