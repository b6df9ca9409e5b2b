"""Minimizer contract used to drive registration with the similarity metrics."""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence, Union

import numpy as np
from scipy.optimize import minimize

from regmetrics.histogram.engine import ImageMutualInformation
from regmetrics.histogram.image import ImageData
from regmetrics.histogram.stencil import ImageStencil

log = logging.getLogger(__name__)

Objective = Callable[[np.ndarray], float]


class Minimizer(ABC):
    def __init__(self, tolerance: float = 1e-4, max_iterations: int = 1000) -> None:
        """
        Parameters:
        -----------
        tolerance:
            convergence tolerance on both parameters and function value
        max_iterations:
            maximum number of iterations of the method
        """
        self.tolerance = tolerance
        self.max_iterations = max_iterations
        self.function_value = np.nan
        self.iterations = 0
        self.function_evaluations = 0

    @abstractmethod
    def minimize(self, objective: Objective, initial: Sequence[float]) -> np.ndarray:
        """Return the parameters minimizing `objective`, starting from `initial`."""
        pass


class PowellMinimizer(Minimizer):
    """Powell's conjugate direction method.

    `scales` gives the expected magnitude of each parameter, the search runs
    on parameters divided by their scale.
    """

    def __init__(
        self, tolerance: float = 1e-4, max_iterations: int = 1000, scales: Optional[Sequence[float]] = None
    ) -> None:
        super().__init__(tolerance, max_iterations)
        self.scales = scales

    def minimize(self, objective: Objective, initial: Sequence[float]) -> np.ndarray:
        x0 = np.asarray(initial, dtype=np.float64)
        scales = np.ones_like(x0) if self.scales is None else np.asarray(self.scales, dtype=np.float64)
        assert scales.shape == x0.shape and np.all(scales > 0)

        result = minimize(
            lambda u: objective(u * scales),
            x0 / scales,
            method="Powell",
            options={"xtol": self.tolerance, "ftol": self.tolerance, "maxiter": self.max_iterations},
        )

        self.function_value = float(result.fun)
        self.iterations = int(result.nit)
        self.function_evaluations = int(result.nfev)
        log.debug(f"Powell stopped after {self.iterations} iterations: {result.message}")
        return result.x * scales


class SimilarityObjective:
    """Negated similarity between a fixed image and a moving image warped by the parameters.

    Parameters:
    -----------
    engine:
        histogram engine with the bin geometry and execution settings to use
    fixed:
        fixed image, binned along x
    warp:
        callable returning the moving image resampled for a parameter vector
    metric:
        "nmi" or "mi"
    stencil:
        optional inclusion mask in the fixed image's index space
    """

    def __init__(
        self,
        engine: ImageMutualInformation,
        fixed: Union[ImageData, np.ndarray],
        warp: Callable[[np.ndarray], Union[ImageData, np.ndarray]],
        metric: str = "nmi",
        stencil: Union[ImageStencil, np.ndarray, None] = None,
    ) -> None:
        if metric not in ("nmi", "mi"):
            raise ValueError(f"Unknown similarity metric {metric!r}, expected 'nmi' or 'mi'")
        self.engine = engine
        self.fixed = fixed
        self.warp = warp
        self.metric = metric
        self.stencil = stencil

    def __call__(self, parameters: np.ndarray) -> float:
        result = self.engine.compute(self.fixed, self.warp(np.asarray(parameters)), stencil=self.stencil)
        if self.metric == "mi":
            return -result.mutual_information
        return -result.normalized_mutual_information
