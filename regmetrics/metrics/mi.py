from typing import Any, Optional

import numpy as np

from regmetrics.base import FullRefMetric
from regmetrics.histogram.engine import ImageMutualInformation
from regmetrics.histogram.reduction import JointHistogramResult
from regmetrics.utils.prescale import auto_bin_geometry, intensity_range


def joint_histogram(
    image_true: np.ndarray,
    image_test: np.ndarray,
    bins: int = 64,
    mask: Optional[np.ndarray] = None,
    workers: int = 1,
    strategy: str = "threads",
) -> JointHistogramResult:
    """Joint histogram of two images with bins spread over each image's own intensity range."""
    image_true = np.asarray(image_true)
    image_test = np.asarray(image_test)
    if mask is not None:
        mask = np.asarray(mask) > 0

    origin_x, spacing_x = auto_bin_geometry(*intensity_range(image_true, mask), bins)
    origin_y, spacing_y = auto_bin_geometry(*intensity_range(image_test, mask), bins)

    engine = ImageMutualInformation(
        number_of_bins=(bins, bins),
        bin_origin=(origin_x, origin_y),
        bin_spacing=(spacing_x, spacing_y),
        number_of_workers=workers,
        execution_strategy=strategy,
    )
    return engine.compute(image_true, image_test, stencil=mask)


class MI(FullRefMetric):
    def __init__(self) -> None:
        pass

    """
    Parameters:
    -----------
    image_true: np.array (H, W) or (D, H, W)
        Reference image
    image_test: np.array (H, W) or (D, H, W)
        Image to be evaluated against the reference image

    """

    def compute(
        self,
        image_true: np.ndarray,
        image_test: np.ndarray,
        bins: int = 64,
        mask: Optional[np.ndarray] = None,
        workers: int = 1,
        strategy: str = "threads",
        **kwargs: Any
    ) -> float:
        """Mutual Information in nats.

        Parameters:
        -----------
        bins:
            number of histogram bins per image
        mask:
            only voxels where mask > 0 are counted
        workers:
            number of threads accumulating the joint histogram
        strategy:
            "threads" or "tasks"
        """
        return joint_histogram(image_true, image_test, bins, mask, workers, strategy).mutual_information
