"""Run independent backend calls side by side and join them."""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List

logger = logging.getLogger('mcu_rankings.concurrency')

_MAX_WORKERS = 8


def gather(*calls: Callable[[], Any]) -> List[Any]:
    """Call every zero-argument callable concurrently.

    Results come back in argument order.  All calls are awaited before
    returning; if any of them raised, the first failure (in argument order)
    is re-raised.
    """
    if not calls:
        return []
    if len(calls) == 1:
        return [calls[0]()]

    max_workers = min(len(calls), _MAX_WORKERS)
    with ThreadPoolExecutor(max_workers=max_workers,
                            thread_name_prefix='mcu_fetch') as executor:
        futures = [executor.submit(call) for call in calls]

    results: List[Any] = []
    first_error = None
    for future in futures:
        exc = future.exception()
        if exc is not None:
            logger.debug("Concurrent call failed: %s", exc)
            if first_error is None:
                first_error = exc
            results.append(None)
        else:
            results.append(future.result())
    if first_error is not None:
        raise first_error
    return results
