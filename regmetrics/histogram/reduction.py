import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence, Tuple

import numpy as np

from regmetrics.histogram.extent import Extent
from regmetrics.histogram.scalars import output_kind
from regmetrics.histogram.storage import WorkerSlotStorage

log = logging.getLogger(__name__)


@dataclass
class JointHistogramResult:
    """Outcome of one run.

    histogram: np.ndarray (ny, nx)
        Joint histogram image indexed [yi, xi], cast to the output type and
        restricted to the requested output extent
    origin, spacing:
        Geometry of the histogram image, equal to the bin origin and spacing
    """

    histogram: np.ndarray
    mutual_information: float
    normalized_mutual_information: float
    count: int
    origin: Tuple[float, float]
    spacing: Tuple[float, float]


def _xlogx_sum(values: np.ndarray) -> float:
    nonzero = values[values > 0].astype(np.float64)
    return float(np.sum(nonzero * np.log(nonzero)))


def entropy_from_sum(xlogx: float, count: int) -> float:
    """Turn sum(c * log(c)) over the cells of a histogram with `count` entries into entropy in nats."""
    return -xlogx / count + math.log(count)


def mutual_information_from_entropies(
    x_entropy: float, y_entropy: float, xy_entropy: float
) -> Tuple[float, float]:
    mutual_information = x_entropy + y_entropy - xy_entropy
    # Studholme 1999
    normalized_mutual_information = (x_entropy + y_entropy) / xy_entropy
    return mutual_information, normalized_mutual_information


def reduce_histograms(
    slots: Iterable[np.ndarray],
    number_of_bins: Sequence[int],
    output_type: Any = np.float32,
    output_extent: Optional[Extent] = None,
) -> Tuple[np.ndarray, float, float, int]:
    """Merge per-worker histograms row by row and compute MI and NMI.

    Each merged row is written to the output image with an unchecked cast to
    `output_type` (integer targets wrap around). All rows enter the entropy
    sums, including rows outside `output_extent`.

    Returns (histogram image, mutual information, normalized mutual information, count).
    """
    out_dtype = output_kind(output_type).dtype

    nx, ny = int(number_of_bins[0]), int(number_of_bins[1])
    window = Extent(0, nx - 1, 0, ny - 1, 0, 0)
    if output_extent is not None:
        window = window.intersect(output_extent)
    out_nx = max(window.xmax - window.xmin + 1, 0)
    out_ny = max(window.ymax - window.ymin + 1, 0)
    output = np.zeros((out_ny, out_nx), dtype=out_dtype)

    slots = list(slots)
    xy_hist = np.zeros(nx, dtype=np.int64)
    x_hist = np.zeros(nx, dtype=np.int64)

    y_sum = 0.0
    xy_sum = 0.0
    occupied = 0

    for iy in range(ny):
        xy_hist[:] = 0
        for slot in slots:
            xy_hist += slot[iy]
        a = int(xy_hist.sum())

        if window.ymin <= iy <= window.ymax and out_nx > 0:
            output[iy - window.ymin] = xy_hist[window.xmin : window.xmax + 1].astype(out_dtype, casting="unsafe")

        if a > 0:
            y_sum += a * math.log(a)

        xy_sum += _xlogx_sum(xy_hist)
        occupied += int(np.count_nonzero(xy_hist))
        x_hist += xy_hist

    count = int(x_hist.sum())
    x_sum = _xlogx_sum(x_hist)

    # minimum possible values
    mutual_information = 0.0
    normalized_mutual_information = 1.0

    if count == 0:
        log.warning("Joint histogram is empty, reporting MI = 0 and NMI = 1")
    elif occupied > 1:
        x_entropy = entropy_from_sum(x_sum, count)
        y_entropy = entropy_from_sum(y_sum, count)
        xy_entropy = entropy_from_sum(xy_sum, count)
        mutual_information, normalized_mutual_information = mutual_information_from_entropies(
            x_entropy, y_entropy, xy_entropy
        )
    # a single occupied cell has zero entropy everywhere, the floor values apply

    log.debug(f"Reduced {len(slots)} histograms, count={count}, MI={mutual_information}")
    return output, mutual_information, normalized_mutual_information, count


def reduce_storage(
    storage: WorkerSlotStorage,
    number_of_bins: Sequence[int],
    bin_origin: Sequence[float],
    bin_spacing: Sequence[float],
    output_type: Any = np.float32,
    output_extent: Optional[Extent] = None,
) -> JointHistogramResult:
    """Reduce all slots of `storage` and release them, whatever the outcome."""
    try:
        histogram, mi, nmi, count = reduce_histograms(storage, number_of_bins, output_type, output_extent)
    finally:
        storage.release()
    return JointHistogramResult(
        histogram=histogram,
        mutual_information=mi,
        normalized_mutual_information=nmi,
        count=count,
        origin=(float(bin_origin[0]), float(bin_origin[1])),
        spacing=(float(bin_spacing[0]), float(bin_spacing[1])),
    )
