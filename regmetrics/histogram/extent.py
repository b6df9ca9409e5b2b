import logging
import math
from typing import NamedTuple, Optional, Sequence, Tuple

log = logging.getLogger(__name__)


class Extent(NamedTuple):
    """Inclusive voxel index box (xmin, xmax, ymin, ymax, zmin, zmax)."""

    xmin: int
    xmax: int
    ymin: int
    ymax: int
    zmin: int
    zmax: int

    @classmethod
    def from_shape(cls, shape: Sequence[int], offset: Sequence[int] = (0, 0, 0)) -> "Extent":
        """Extent of a (z, y, x) array whose first voxel sits at index `offset` (x, y, z)."""
        nz, ny, nx = shape[:3]
        x0, y0, z0 = offset
        return cls(x0, x0 + nx - 1, y0, y0 + ny - 1, z0, z0 + nz - 1)

    @classmethod
    def empty(cls) -> "Extent":
        return cls(0, -1, 0, -1, 0, -1)

    def is_empty(self) -> bool:
        return self.xmin > self.xmax or self.ymin > self.ymax or self.zmin > self.zmax

    def intersect(self, other: Sequence[int]) -> "Extent":
        values = []
        for axis in range(3):
            values.append(max(self[2 * axis], other[2 * axis]))
            values.append(min(self[2 * axis + 1], other[2 * axis + 1]))
        return Extent(*values)

    def axis_range(self, axis: int) -> Tuple[int, int]:
        return self[2 * axis], self[2 * axis + 1]

    def number_of_voxels(self) -> int:
        if self.is_empty():
            return 0
        return (self.xmax - self.xmin + 1) * (self.ymax - self.ymin + 1) * (self.zmax - self.zmin + 1)


def split_extent(extent: Extent, piece: int, num_pieces: int) -> Tuple[Optional[Extent], int]:
    """Return the sub-extent owned by `piece` and the number of pieces actually produced.

    The extent is cut into slabs along the slowest-varying axis that spans more
    than one index (z, then y, then x). Fewer than `num_pieces` slabs are made
    when that axis is too short; pieces at or beyond the returned total get None.
    """
    assert num_pieces >= 1

    split_axis = 2
    lo, hi = extent.axis_range(split_axis)
    while lo >= hi:
        if split_axis == 0:
            # cannot split at all, the whole extent is a single piece
            return (extent if piece == 0 else None), 1
        split_axis -= 1
        lo, hi = extent.axis_range(split_axis)

    size = hi - lo + 1
    values_per_piece = math.ceil(size / num_pieces)
    total = math.ceil(size / values_per_piece)

    if piece >= total:
        return None, total

    bounds = list(extent)
    bounds[2 * split_axis] = lo + piece * values_per_piece
    bounds[2 * split_axis + 1] = min(hi, lo + (piece + 1) * values_per_piece - 1)
    return Extent(*bounds), total


def count_pieces(extent: Extent, num_pieces: int) -> int:
    _, total = split_extent(extent, 0, num_pieces)
    log.debug(f"Extent {tuple(extent)} splits into {total} of {num_pieces} requested pieces")
    return total
