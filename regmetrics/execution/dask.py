"""Dask task strategy: pieces scheduled on the threaded scheduler, reduction as the final task."""

import logging
from typing import Optional, Tuple

from dask.base import compute
from dask.delayed import delayed

from regmetrics.execution.base import ExecutionStrategy, RunContext
from regmetrics.histogram.extent import count_pieces
from regmetrics.histogram.reduction import JointHistogramResult
from regmetrics.histogram.storage import WorkerSlotStorage

log = logging.getLogger(__name__)


class DaskTaskStrategy(ExecutionStrategy):
    """Split the extent into independent pieces and let dask spread them over threads.

    Slots are keyed by the executing thread, so a thread that runs several
    pieces keeps adding to the same histogram.
    """

    name = "tasks"

    def __init__(self, number_of_workers: int, number_of_pieces: Optional[int] = None) -> None:
        super().__init__(number_of_workers)
        self.number_of_pieces = number_of_pieces or number_of_workers

    def create_storage(self, shape: Tuple[int, int]) -> WorkerSlotStorage:
        return WorkerSlotStorage(shape)

    def execute(self, context: RunContext) -> JointHistogramResult:
        total = count_pieces(context.extent, self.number_of_pieces)
        pieces = [delayed(context.accumulate_piece, pure=False)(piece, total) for piece in range(total)]
        # depends on every piece, so it runs once, after all of them
        reduction = delayed(context.reduce, pure=False)(pieces)

        try:
            (result,) = compute(reduction, scheduler="threads", num_workers=self.number_of_workers)
        except Exception:
            context.storage.release()
            raise

        log.debug(f"{total} pieces computed on {self.number_of_workers} dask workers")
        return result
