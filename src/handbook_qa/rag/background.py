"""Fire-and-forget execution of best-effort writes off the request path."""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait

logger = logging.getLogger(__name__)


class BackgroundWriter:
    """Runs write jobs on a single worker thread.

    Jobs run in submission order. A failing job is logged and dropped; the
    submitter never sees the exception.
    """

    def __init__(self, name: str = "cache-writer") -> None:
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)
        self._pending: set[Future] = set()

    def submit(self, job: Callable[[], object], label: str = "background job") -> None:
        future = self._executor.submit(self._run, job, label)
        self._pending.add(future)
        future.add_done_callback(self._pending.discard)

    def flush(self, timeout: float | None = None) -> None:
        """Block until every job submitted so far has finished."""
        wait(list(self._pending), timeout=timeout)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

    @staticmethod
    def _run(job: Callable[[], object], label: str) -> None:
        try:
            job()
        except Exception:
            logger.warning("%s failed", label, exc_info=True)
