"""Execution strategy interface and the per-run context handed to workers."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Hashable, Optional, Sequence, Tuple

from regmetrics.config import HistogramConfig
from regmetrics.histogram.binning import BinningKernel, accumulate_extent
from regmetrics.histogram.extent import Extent, split_extent
from regmetrics.histogram.image import ImageData
from regmetrics.histogram.reduction import JointHistogramResult, reduce_storage
from regmetrics.histogram.stencil import ImageStencil
from regmetrics.histogram.storage import WorkerSlotStorage

log = logging.getLogger(__name__)


@dataclass
class RunContext:
    """Everything one run needs, shared read-only by all of its workers."""

    image_a: ImageData
    image_b: ImageData
    stencil: Optional[ImageStencil]
    extent: Extent
    kernel: BinningKernel
    config: HistogramConfig
    storage: WorkerSlotStorage
    output_extent: Optional[Extent] = None

    def accumulate_piece(self, piece: int, num_pieces: int, key: Optional[Hashable] = None) -> int:
        """Count the voxel pairs of one piece of the extent into the caller's slot."""
        sub_extent, _ = split_extent(self.extent, piece, num_pieces)
        if sub_extent is None:
            return 0
        slot = self.storage.local(key)
        return accumulate_extent(self.kernel, self.image_a, self.image_b, sub_extent, slot, self.stencil)

    def reduce(self, counts: Sequence[int] = ()) -> JointHistogramResult:
        log.debug(f"Reducing after {len(counts)} pieces counted {sum(counts)} voxel pairs")
        return reduce_storage(
            self.storage,
            self.config.number_of_bins,
            self.config.bin_origin,
            self.config.bin_spacing,
            self.config.output_scalar_type,
            self.output_extent,
        )


class ExecutionStrategy(ABC):
    """Strategy contract for spreading accumulation over workers."""

    name: str = "abstract"

    def __init__(self, number_of_workers: int) -> None:
        assert number_of_workers >= 1
        self.number_of_workers = number_of_workers

    @abstractmethod
    def create_storage(self, shape: Tuple[int, int]) -> WorkerSlotStorage:
        """Per-worker storage addressed the way this strategy's workers address it."""

    @abstractmethod
    def execute(self, context: RunContext) -> JointHistogramResult:
        """Accumulate every piece of the context's extent, then reduce exactly once."""
