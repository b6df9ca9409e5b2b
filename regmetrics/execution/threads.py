"""Fixed worker pool: one piece of the extent per thread."""

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Tuple

from regmetrics.execution.base import ExecutionStrategy, RunContext
from regmetrics.histogram.reduction import JointHistogramResult
from regmetrics.histogram.storage import WorkerSlotStorage

log = logging.getLogger(__name__)


class ThreadPoolStrategy(ExecutionStrategy):
    """Start `number_of_workers` threads running the same routine, join all, then reduce."""

    name = "threads"

    def create_storage(self, shape: Tuple[int, int]) -> WorkerSlotStorage:
        return WorkerSlotStorage(shape, self.number_of_workers)

    def _worker(self, context: RunContext, index: int) -> int:
        return context.accumulate_piece(index, self.number_of_workers, key=index)

    def execute(self, context: RunContext) -> JointHistogramResult:
        with ThreadPoolExecutor(max_workers=self.number_of_workers, thread_name_prefix="regmetrics") as pool:
            futures = [pool.submit(self._worker, context, index) for index in range(self.number_of_workers)]
            wait(futures)

        try:
            counts = [future.result() for future in futures]
        except Exception:
            context.storage.release()
            raise

        log.debug(f"{self.number_of_workers} workers joined")
        return context.reduce(counts)
