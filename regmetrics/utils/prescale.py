import logging
from typing import Any, Dict, Optional, Tuple

import numpy as np

log = logging.getLogger(__name__)


def intensity_range(
    image: np.ndarray, mask: Optional[np.ndarray] = None, lower_p: float = None, upper_p: float = None
) -> Tuple[float, float]:
    """Min and max (or the given percentiles) of the image, inside the mask if one is given."""
    if mask is None:
        image_values = image
    elif mask.sum() > 0:
        image_values = image[mask > 0]
    else:
        log.warning("Ignoring all-zero mask when computing the intensity range!")
        image_values = image

    if image_values.size == 0:
        return 0.0, 0.0

    vmin = image_values.min() if lower_p is None else np.percentile(image_values, lower_p)
    vmax = image_values.max() if upper_p is None else np.percentile(image_values, upper_p)
    return float(vmin), float(vmax)


def auto_bin_geometry(vmin: float, vmax: float, nbins: int) -> Tuple[float, float]:
    """Bin origin and spacing that put vmin at the center of bin 0 and vmax at bin nbins-1."""
    assert nbins >= 1
    if nbins == 1 or vmax <= vmin:
        return vmin, 1.0
    return vmin, (vmax - vmin) / (nbins - 1)


def prescale_to_bytes(
    image: np.ndarray,
    nbins: int = 256,
    mask: Optional[np.ndarray] = None,
    lower_p: float = None,
    upper_p: float = None,
) -> Tuple[np.ndarray, Dict[str, Any]]:
    r"""Rescale intensities to bin indices stored as bytes.

    Two images prescaled this way can be histogrammed with the default bin
    origin 0 and spacing 1, which selects the byte fast path.

    Parameters:
    -----------
    image:
        numpy image of 2 or 3 dimensions

    nbins:
        number of bins, at most 256

    mask:
        calculate the intensity range only from the unmasked image region

    lower_p
        lower percentile mapped to bin 0, values below are clipped. If None, min is used

    upper_p:
        upper percentile mapped to bin nbins-1, values above are clipped. If None, max is used

    Returns the byte image and a dict with "nbins", "min", "max", "origin"
    and "spacing", where origin + spacing * bin is the intensity at the
    center of each bin.
    """
    assert 1 <= nbins <= 256

    vmin, vmax = intensity_range(image, mask, lower_p, upper_p)
    origin, spacing = auto_bin_geometry(vmin, vmax, nbins)
    params: Dict[str, Any] = {"nbins": nbins, "min": vmin, "max": vmax, "origin": origin, "spacing": spacing}

    scaled = (np.asarray(image, dtype=np.float64) - origin) / spacing
    scaled = np.clip(np.floor(scaled + 0.5), 0, nbins - 1)

    return scaled.astype(np.uint8), params


def bins_to_intensity(bins: np.ndarray, params: Dict[str, Any]) -> np.ndarray:
    """Center intensity of each bin index, inverting prescale_to_bytes as close as possible."""
    return np.asarray(bins, dtype=np.float64) * params["spacing"] + params["origin"]
