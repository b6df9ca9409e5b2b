from typing import Any, Optional

import numpy as np

from regmetrics.base import FullRefMetric
from regmetrics.metrics.mi import joint_histogram


class NMI(FullRefMetric):
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
        """Normalized Mutual Information, see:

        C. Studholme, D.L.G. Hill & D.J. Hawkes (1999). An overlap invariant
        entropy measure of 3D medical image alignment. Pattern Recognition 32(1):71-86

        Ranges from 1 (independent images) to 2 (identical images).
        """
        return joint_histogram(image_true, image_test, bins, mask, workers, strategy).normalized_mutual_information
