import logging
import threading
import concurrent.futures
from typing import Callable, List, Optional, Sequence, TypeVar
from hbc.config.models import clamp_threads

T = TypeVar("T")
R = TypeVar("R")

logger = logging.getLogger(__name__)


def run_bounded(
    items: Sequence[T],
    worker: Callable[[T], R],
    limit: int,
    shutdown_event: Optional[threading.Event] = None,
) -> List[Optional[R]]:
    """Runs ``worker`` over ``items`` in consecutive chunks of ``limit``.

    Each chunk runs concurrently and is awaited in full before the next one
    starts. A failing worker is logged and yields None; its siblings keep
    running. Results come back in submission order.
    """
    limit = clamp_threads(limit)
    items = list(items)
    results: List[Optional[R]] = []
    if not items:
        return results

    with concurrent.futures.ThreadPoolExecutor(max_workers=min(limit, len(items))) as executor:
        futures: List[concurrent.futures.Future] = []
        try:
            for start in range(0, len(items), limit):
                if shutdown_event and shutdown_event.is_set():
                    logger.info(f"Shutdown requested, {len(items) - start} item(s) not scheduled")
                    break
                chunk = items[start:start + limit]
                futures = [executor.submit(worker, item) for item in chunk]
                concurrent.futures.wait(futures)
                for item, future in zip(chunk, futures):
                    try:
                        results.append(future.result())
                    except Exception as e:
                        logger.error(f"Worker failed for {item}: {e}")
                        results.append(None)
        except KeyboardInterrupt:
            # Running workers must observe the event before the executor joins them
            if shutdown_event:
                shutdown_event.set()
            for future in futures:
                future.cancel()
            raise
    return results
