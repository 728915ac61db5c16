"""Fan-out/fan-in execution of bulk proteoform edits.

Each task touches a disjoint proteoform, so tasks can run on a thread pool
without coordination. :func:`run_batch` only returns once every future has
completed; callers recompute dependent summaries after it returns.
"""

import logging
from concurrent import futures
from os import cpu_count
from typing import Callable, Iterable, List, Optional, TypeVar

T = TypeVar("T")
R = TypeVar("R")

logger = logging.getLogger(__name__)


def unique_by_identity(items: Iterable[T]) -> List[T]:
    """Drop repeated objects, first occurrence kept."""
    seen = set()
    unique = []
    for item in items:
        if id(item) in seen:
            continue
        seen.add(id(item))
        unique.append(item)
    return unique


def run_batch(
    items: Iterable[T],
    fn: Callable[[T], R],
    max_workers: Optional[int] = None,
) -> List[R]:
    """Apply fn to every item on a thread pool and wait for all of them.

    Parameters
    ----------
    items : Iterable
        Work items; must not share mutable state with each other
    fn : Callable
        Applied once per item
    max_workers : int, optional
        Pool size, defaults to ``min(cpu_count(), 8)``

    Returns
    -------
    List
        Results in input order

    Raises
    ------
    Exception
        The first exception raised by a task, after every task finished
    """
    items = list(items)
    if not items:
        return []
    if max_workers is None:
        max_workers = min(cpu_count() or 1, 8)

    with futures.ThreadPoolExecutor(max_workers, thread_name_prefix="ProteoformBatch") as executor:
        tasks = [executor.submit(fn, item) for item in items]
        futures.wait(tasks)

    logger.debug(f"Applied bulk edit to {len(items):,} items")
    return [task.result() for task in tasks]
