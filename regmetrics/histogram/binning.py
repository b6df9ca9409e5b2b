import logging
import math
from abc import ABC, abstractmethod
from itertools import groupby
from typing import Optional, Sequence, Tuple

import numpy as np

from regmetrics.histogram.extent import Extent
from regmetrics.histogram.image import ImageData
from regmetrics.histogram.scalars import ScalarKind
from regmetrics.histogram.stencil import ImageStencil, iter_spans

log = logging.getLogger(__name__)


class BinningKernel(ABC):
    """Maps intensity pairs to joint-histogram cells and counts them."""

    name: str = "abstract"

    def __init__(self, number_of_bins: Sequence[int]) -> None:
        self.number_of_bins = (int(number_of_bins[0]), int(number_of_bins[1]))

    @abstractmethod
    def bin_coordinates(self, values_a: np.ndarray, values_b: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Return (xi, yi) bin indices, already clamped into the histogram."""
        pass

    def accumulate(self, histogram: np.ndarray, values_a: np.ndarray, values_b: np.ndarray) -> None:
        nx, ny = self.number_of_bins
        xi, yi = self.bin_coordinates(values_a, values_b)
        histogram += np.bincount(yi * nx + xi, minlength=nx * ny).reshape(ny, nx)


class AffineKernel(BinningKernel):
    """Generic kernel: x' = (x - origin) / spacing, clamped, rounded half up."""

    name = "affine"

    def __init__(
        self, number_of_bins: Sequence[int], bin_origin: Sequence[float], bin_spacing: Sequence[float]
    ) -> None:
        super().__init__(number_of_bins)
        self.shift = (-float(bin_origin[0]), -float(bin_origin[1]))
        self.scale = (1.0 / bin_spacing[0], 1.0 / bin_spacing[1])

    def _to_bins(self, values: np.ndarray, axis: int) -> np.ndarray:
        upper = float(self.number_of_bins[axis] - 1)
        x = values.astype(np.float64)
        x += self.shift[axis]
        x *= self.scale[axis]
        # clamp in real space; the `>` comparison sends NaN to bin 0
        x = np.where(x > 0.0, x, 0.0)
        x = np.where(x < upper, x, upper)
        return (x + 0.5).astype(np.intp)

    def bin_coordinates(self, values_a: np.ndarray, values_b: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        return self._to_bins(values_a, 0), self._to_bins(values_b, 1)


class PreScaledKernel(BinningKernel):
    """Fast kernel for byte images whose values already are bin indices."""

    name = "prescaled"

    def bin_coordinates(self, values_a: np.ndarray, values_b: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        nx, ny = self.number_of_bins
        xi = np.minimum(values_a.astype(np.intp), nx - 1)
        yi = np.minimum(values_b.astype(np.intp), ny - 1)
        return xi, yi


def is_identity_mapping(
    number_of_bins: Sequence[int], bin_origin: Sequence[float], bin_spacing: Sequence[float]
) -> bool:
    """True if the affine mapping sends every byte v to bin min(v, n-1) on both axes.

    Matching endpoints are not enough: an origin of -0.5 passes the endpoint
    rounding test but shifts every byte up by one bin.
    """
    for axis in range(2):
        upper = number_of_bins[axis] - 1
        if math.floor(bin_origin[axis] + 0.5) != 0:
            return False
        if math.floor(bin_origin[axis] + bin_spacing[axis] * upper + 0.5) != upper:
            return False

    byte_values = np.arange(256)
    kernel = AffineKernel(number_of_bins, bin_origin, bin_spacing)
    for axis in range(2):
        expected = np.minimum(byte_values, number_of_bins[axis] - 1)
        if not np.array_equal(kernel._to_bins(byte_values, axis), expected):
            return False
    return True


def select_kernel(
    kind_a: ScalarKind,
    kind_b: ScalarKind,
    number_of_bins: Sequence[int],
    bin_origin: Sequence[float],
    bin_spacing: Sequence[float],
) -> BinningKernel:
    kernel: BinningKernel
    if (
        kind_a is ScalarKind.UINT8
        and kind_b is ScalarKind.UINT8
        and is_identity_mapping(number_of_bins, bin_origin, bin_spacing)
    ):
        kernel = PreScaledKernel(number_of_bins)
    else:
        kernel = AffineKernel(number_of_bins, bin_origin, bin_spacing)
    log.debug(f"Selected {kernel.name} kernel for {kind_a.value} x {kind_b.value} input")
    return kernel


def accumulate_extent(
    kernel: BinningKernel,
    image_a: ImageData,
    image_b: ImageData,
    extent: Extent,
    histogram: np.ndarray,
    stencil: Optional[ImageStencil] = None,
) -> int:
    """Stream the in-stencil spans of `extent` through `kernel` into `histogram`.

    Spans are gathered one slice at a time and counted in a single pass.
    Returns the number of voxel pairs counted.
    """
    counted = 0
    for _, spans in groupby(iter_spans(extent, stencil), key=lambda span: span[0]):
        spans = list(spans)
        values_a = np.concatenate([image_a.row(z, y, x0, x1) for z, y, x0, x1 in spans])
        values_b = np.concatenate([image_b.row(z, y, x0, x1) for z, y, x0, x1 in spans])
        kernel.accumulate(histogram, values_a, values_b)
        counted += values_a.size
    return counted
