from dataclasses import dataclass
from typing import Any, Tuple, Union

import numpy as np

from regmetrics.histogram.extent import Extent


@dataclass(frozen=True, eq=False)
class ImageData:
    """Scalar image buffer placed in voxel index space.

    Parameters:
    -----------
    data: np.ndarray (H, W), (D, H, W) or (D, H, W, C)
        Pixel buffer. 2D arrays are treated as a single slice, and only the
        first component of a multi-component image is used.
    offset: (x, y, z)
        Index of the first voxel, so that the image extent need not start at 0
    """

    data: np.ndarray
    offset: Tuple[int, int, int] = (0, 0, 0)

    def __post_init__(self) -> None:
        data = np.asarray(self.data)
        if data.ndim == 2:
            data = data[np.newaxis]
        elif data.ndim == 4:
            data = data[..., 0]
        elif data.ndim != 3:
            raise ValueError(f"Expected a 2D, 3D or 4D image, got shape {data.shape}")
        object.__setattr__(self, "data", data)
        object.__setattr__(self, "offset", tuple(int(v) for v in self.offset))

    @property
    def dtype(self) -> np.dtype:
        return self.data.dtype

    @property
    def extent(self) -> Extent:
        return Extent.from_shape(self.data.shape, self.offset)

    def row(self, z: int, y: int, x_begin: int, x_end: int) -> np.ndarray:
        """Pixels of row (z, y) for indices x_begin <= x < x_end, in index space."""
        x0, y0, z0 = self.offset
        return self.data[z - z0, y - y0, x_begin - x0 : x_end - x0]


def as_image(image: Union[ImageData, np.ndarray, Any]) -> ImageData:
    if isinstance(image, ImageData):
        return image
    return ImageData(np.asarray(image))
