"""Order-preserving parallel map over frames with cooperative cancellation."""

import logging
import threading
from concurrent.futures import (
    Executor,
    ProcessPoolExecutor,
    ThreadPoolExecutor,
    as_completed,
)
from typing import Callable, List, Optional, Sequence, TypeVar

from tqdm import tqdm

from swingflow.errors import PipelineCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class CancellationToken:
    """Cooperative cancellation flag shared between a caller and a batch job."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation; running work stops at the next frame boundary."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str = "") -> None:
        """Raise PipelineCancelledError if cancellation was requested."""
        if self._event.is_set():
            reason = f"cancelled during {stage}" if stage else "cancelled"
            raise PipelineCancelledError(reason, stage=stage or None)


def map_frames(
    fn: Callable[[T], R],
    items: Sequence[T],
    max_workers: int = 1,
    use_processes: bool = False,
    cancel_token: Optional[CancellationToken] = None,
    desc: str = "Processing frames",
    show_progress: bool = False,
) -> List[R]:
    """
    Apply ``fn`` to every item, in parallel when ``max_workers > 1``.

    Results come back in input order regardless of completion order.
    Cancellation is checked between items; pending work is dropped and
    PipelineCancelledError is raised.

    Args:
        fn: Per-item function. Must be picklable when ``use_processes`` is set.
        items: Work items, ordered by frame.
        max_workers: Worker count; 1 or less runs inline.
        use_processes: Use a process pool instead of threads.
        cancel_token: Optional cancellation token.
        desc: Progress bar label.
        show_progress: Show a tqdm progress bar.

    Returns:
        List of results aligned with ``items``.
    """
    total = len(items)
    if total == 0:
        return []

    if max_workers <= 1:
        results = []
        for item in tqdm(items, total=total, desc=desc, disable=not show_progress):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled(desc)
            results.append(fn(item))
        return results

    if cancel_token is not None:
        cancel_token.raise_if_cancelled(desc)

    executor_cls = ProcessPoolExecutor if use_processes else ThreadPoolExecutor
    results: List[Optional[R]] = [None] * total

    executor: Executor = executor_cls(max_workers=max_workers)
    try:
        futures = {executor.submit(fn, item): position for position, item in enumerate(items)}
        with tqdm(total=total, desc=desc, disable=not show_progress) as pbar:
            for future in as_completed(futures):
                results[futures[future]] = future.result()
                pbar.update(1)
                if cancel_token is not None and cancel_token.cancelled:
                    logger.info(f"{desc}: cancellation requested, dropping pending work")
                    cancel_token.raise_if_cancelled(desc)
    finally:
        executor.shutdown(wait=True, cancel_futures=True)

    logger.debug(f"{desc}: {total} items with {max_workers} {executor_cls.__name__} workers")
    return results
