from typing import Iterator, Optional, Sequence, Tuple, Union

import numpy as np

from regmetrics.histogram.extent import Extent

# (z, y, x_begin, x_end) with x_end exclusive
Span = Tuple[int, int, int, int]


class ImageStencil:
    """Inclusion mask over voxel index space.

    Voxels outside the stencil's own extent are never included.
    """

    def __init__(self, mask: np.ndarray, offset: Sequence[int] = (0, 0, 0)) -> None:
        mask = np.asarray(mask)
        if mask.ndim == 2:
            mask = mask[np.newaxis]
        if mask.ndim != 3:
            raise ValueError(f"Expected a 2D or 3D stencil mask, got shape {mask.shape}")
        self.mask = mask.astype(bool, copy=False)
        self.offset = tuple(int(v) for v in offset)

    @property
    def extent(self) -> Extent:
        return Extent.from_shape(self.mask.shape, self.offset)

    def spans(self, extent: Extent) -> Iterator[Span]:
        clipped = self.extent.intersect(extent)
        if clipped.is_empty():
            return
        x0, y0, z0 = self.offset
        xs = slice(clipped.xmin - x0, clipped.xmax - x0 + 1)
        ys = slice(clipped.ymin - y0, clipped.ymax - y0 + 1)
        for z in range(clipped.zmin, clipped.zmax + 1):
            plane = self.mask[z - z0, ys, xs]
            padded = np.zeros((plane.shape[0], plane.shape[1] + 2), dtype=bool)
            padded[:, 1:-1] = plane
            # every row has an even number of edges, so starts and ends pair up
            rows, cols = np.nonzero(padded[:, 1:] != padded[:, :-1])
            for row, begin, end in zip(rows[0::2], cols[0::2], cols[1::2]):
                yield z, clipped.ymin + int(row), clipped.xmin + int(begin), clipped.xmin + int(end)


def iter_spans(extent: Extent, stencil: Optional[ImageStencil] = None) -> Iterator[Span]:
    """Ordered runs of included voxels in `extent`, slice by slice and row by row."""
    if extent.is_empty():
        return
    if stencil is not None:
        yield from stencil.spans(extent)
        return
    for z in range(extent.zmin, extent.zmax + 1):
        for y in range(extent.ymin, extent.ymax + 1):
            yield z, y, extent.xmin, extent.xmax + 1


def as_stencil(stencil: Union[ImageStencil, np.ndarray, None]) -> Optional[ImageStencil]:
    if stencil is None or isinstance(stencil, ImageStencil):
        return stencil
    return ImageStencil(stencil)
