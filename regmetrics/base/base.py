from abc import ABC, abstractmethod
from typing import Any, Optional

import numpy as np


class FullRefMetric(ABC):
    @abstractmethod
    def __init__(self) -> None:
        pass

    """
    Parameters:
    -----------
    image_true: np.ndarray (H, W) or (D, H, W)
        Reference (fixed) image, drives the x axis of the joint histogram
    image_test: np.ndarray (H, W) or (D, H, W)
        Image to be evaluated against the reference image, drives the y axis
    bins: int
        Number of joint histogram bins per image
    mask: np.ndarray, optional
        Only voxels where mask > 0 enter the histogram
    kwargs**:
        Execution settings such as the number of workers
    """

    @abstractmethod
    def compute(
        self,
        image_true: np.ndarray,
        image_test: np.ndarray,
        bins: int = 64,
        mask: Optional[np.ndarray] = None,
        **kwargs: Any
    ) -> float:
        pass
