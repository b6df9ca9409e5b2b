import logging
from typing import Any, Optional, Sequence, Union

import numpy as np

from regmetrics.config import ExecutionMode, HistogramConfig
from regmetrics.errors import RegMetricsError
from regmetrics.execution.base import ExecutionStrategy, RunContext
from regmetrics.execution.dask import DaskTaskStrategy
from regmetrics.execution.threads import ThreadPoolStrategy
from regmetrics.histogram.binning import select_kernel
from regmetrics.histogram.extent import Extent
from regmetrics.histogram.image import ImageData, as_image
from regmetrics.histogram.reduction import JointHistogramResult
from regmetrics.histogram.scalars import input_kind
from regmetrics.histogram.stencil import ImageStencil, as_stencil

log = logging.getLogger(__name__)


def create_strategy(config: HistogramConfig) -> ExecutionStrategy:
    if config.execution_strategy == ExecutionMode.TASKS:
        return DaskTaskStrategy(config.number_of_workers, config.pieces)
    return ThreadPoolStrategy(config.number_of_workers)


class ImageMutualInformation:
    """Joint histogram, mutual information and normalized mutual information of two images.

    Image A is binned along x and image B along y. Settings come from a
    `HistogramConfig`, or from keyword arguments with the same names:

        engine = ImageMutualInformation(number_of_bins=(32, 32), execution_strategy="tasks")
        result = engine.compute(fixed, moving, stencil=mask)
        engine.normalized_mutual_information

    The two metric attributes hold the values of the last successful run.

    Parameters:
    -----------
    config:
        run settings, combined with any keyword settings given
    logger:
        sink for diagnostics of aborted runs, defaults to this module's logger
    """

    def __init__(
        self, config: Optional[HistogramConfig] = None, logger: Optional[logging.Logger] = None, **settings: Any
    ) -> None:
        if config is None:
            config = HistogramConfig(**settings)
        elif settings:
            config = HistogramConfig(**{**config.model_dump(), **settings})
        self.config = config
        self.logger = logger or log

        self.mutual_information = 0.0
        self.normalized_mutual_information = 0.0
        self.result: Optional[JointHistogramResult] = None

    def active_extent(self, image_a: ImageData, image_b: ImageData, extent: Optional[Sequence[int]] = None) -> Extent:
        """Intersection of both image extents and the requested extent."""
        active = image_a.extent.intersect(image_b.extent)
        if extent is not None:
            active = active.intersect(extent)
        return active

    def compute(
        self,
        image_a: Union[ImageData, np.ndarray],
        image_b: Union[ImageData, np.ndarray],
        stencil: Union[ImageStencil, np.ndarray, None] = None,
        extent: Optional[Sequence[int]] = None,
        output_extent: Optional[Sequence[int]] = None,
    ) -> JointHistogramResult:
        """Run accumulation and reduction over the voxels both images share.

        Parameters:
        -----------
        image_a, image_b:
            arrays laid out (z, y, x), or ImageData with an index offset
        stencil:
            optional inclusion mask in the index space of image_a
        extent:
            optional (xmin, xmax, ymin, ymax, zmin, zmax) restricting the input region
        output_extent:
            optional window of the histogram image to emit, in bin indices
        """
        image_a = as_image(image_a)
        image_b = as_image(image_b)
        config = self.config

        try:
            kind_a = input_kind(image_a.data)
            kind_b = input_kind(image_b.data)
        except RegMetricsError as e:
            self.logger.error(f"Aborting joint histogram run: {e}")
            raise

        active = self.active_extent(image_a, image_b, extent)
        if active.is_empty():
            self.logger.warning(f"Input extents {tuple(image_a.extent)} and {tuple(image_b.extent)} do not overlap")

        kernel = select_kernel(kind_a, kind_b, config.number_of_bins, config.bin_origin, config.bin_spacing)
        strategy = create_strategy(config)
        log.debug(
            f"Binning {active.number_of_voxels()} voxels of extent {tuple(active)} "
            f"with the {kernel.name} kernel and {strategy.name} strategy"
        )
        nx, ny = config.number_of_bins

        context = RunContext(
            image_a=image_a,
            image_b=image_b,
            stencil=as_stencil(stencil),
            extent=active,
            kernel=kernel,
            config=config,
            storage=strategy.create_storage((ny, nx)),
            output_extent=None if output_extent is None else Extent(*output_extent),
        )

        try:
            result = strategy.execute(context)
        except RegMetricsError as e:
            self.logger.error(f"Aborting joint histogram run: {e}")
            raise

        self.result = result
        self.mutual_information = result.mutual_information
        self.normalized_mutual_information = result.normalized_mutual_information
        return result
