from __future__ import annotations

"""
Raster decoding for feature work: read an orthoimage band with rasterio and
rescale it to 8-bit grayscale for the OpenCV detectors.
"""

from pathlib import Path
from typing import Union

import numpy as np
import rasterio
from rasterio.errors import RasterioError

from common.errors import SourceUnreadable


def to_gray_u8(band: np.ndarray, valid: np.ndarray | None = None) -> np.ndarray:
    """
    Linear min/max rescale of a single band to uint8. Invalid (nodata) pixels
    become 0 and do not take part in the min/max.
    """
    a = np.asarray(band, dtype=np.float64)
    if valid is None:
        valid = np.isfinite(a)
    else:
        valid = valid & np.isfinite(a)
    out = np.zeros(a.shape, dtype=np.uint8)
    if not valid.any():
        return out
    lo = float(a[valid].min())
    hi = float(a[valid].max())
    if hi <= lo:
        out[valid] = 0
        return out
    scaled = (a[valid] - lo) * (255.0 / (hi - lo))
    out[valid] = np.clip(np.rint(scaled), 0, 255).astype(np.uint8)
    return out


def read_gray_u8(path: Union[str, Path]) -> np.ndarray:
    """
    Decode an orthoimage to (H, W) uint8. Multi-band images are averaged.

    Raises SourceUnreadable if rasterio cannot open or read the file.
    """
    try:
        with rasterio.open(path) as ds:
            data = ds.read(masked=True).astype(np.float64)
    except (RasterioError, OSError) as e:
        raise SourceUnreadable(str(path), str(e)) from e

    band = data.mean(axis=0) if data.shape[0] > 1 else data[0]
    mask = np.ma.getmaskarray(band)
    return to_gray_u8(np.ma.getdata(band), valid=~mask)
