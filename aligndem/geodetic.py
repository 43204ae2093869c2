from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
import rasterio
from rasterio.transform import Affine
from rasterio.crs import CRS
from rasterio.errors import CRSError, RasterioError
from rasterio.warp import transform as warp_transform

from common.errors import SourceUnreadable


WGS84 = CRS.from_epsg(4326)


@dataclass(frozen=True)
class GeoReference:
    """
    Pixel -> map -> lon/lat for one orthoimage.

    `transform` is the raster's affine geotransform (pixel corner convention,
    as rasterio reports it); `crs` is the map projection it lands in.
    Interest-point coordinates put pixel centres on integers, hence the +0.5
    before applying the geotransform.
    """
    transform: Affine
    crs: CRS

    @classmethod
    def from_raster(cls, path: Union[str, Path]) -> "GeoReference":
        try:
            with rasterio.open(path) as ds:
                crs = ds.crs
                tf = ds.transform
        except (RasterioError, OSError) as e:
            raise SourceUnreadable(str(path), str(e)) from e
        if not crs:
            raise SourceUnreadable(str(path), "image carries no coordinate reference system")
        return cls(transform=tf, crs=crs)

    @classmethod
    def build(cls, transform: Affine, crs: Union[str, int, CRS]) -> "GeoReference":
        try:
            c = crs if isinstance(crs, CRS) else CRS.from_user_input(crs)
        except CRSError as e:
            raise ValueError(f"Invalid CRS {crs!r}: {e}") from e
        return cls(transform=transform, crs=c)

    # -------- vectorised --------

    def pixels_to_points(self, xy: np.ndarray) -> np.ndarray:
        xy = np.asarray(xy, dtype=float).reshape(-1, 2)
        t = self.transform
        px = xy[:, 0] + 0.5
        py = xy[:, 1] + 0.5
        mx = t.a * px + t.b * py + t.c
        my = t.d * px + t.e * py + t.f
        return np.column_stack([mx, my])

    def points_to_lonlat(self, pts: np.ndarray) -> np.ndarray:
        pts = np.asarray(pts, dtype=float).reshape(-1, 2)
        if self.crs.is_geographic or len(pts) == 0:
            return pts.copy()
        lon, lat = warp_transform(self.crs, WGS84, pts[:, 0].tolist(), pts[:, 1].tolist())
        return np.column_stack([np.asarray(lon, dtype=float), np.asarray(lat, dtype=float)])

    def pixels_to_lonlat(self, xy: np.ndarray) -> np.ndarray:
        return self.points_to_lonlat(self.pixels_to_points(xy))

    # -------- single point --------

    def pixel_to_point(self, x: float, y: float) -> Tuple[float, float]:
        mx, my = self.pixels_to_points(np.array([[x, y]]))[0]
        return float(mx), float(my)

    def point_to_lonlat(self, mx: float, my: float) -> Tuple[float, float]:
        lon, lat = self.points_to_lonlat(np.array([[mx, my]]))[0]
        return float(lon), float(lat)


def to_geodetic(pixel: Tuple[float, float], georef: GeoReference) -> Tuple[float, float]:
    """Pixel (x, y) -> (lon, lat) in degrees through the image's own georeference."""
    mx, my = georef.pixel_to_point(float(pixel[0]), float(pixel[1]))
    return georef.point_to_lonlat(mx, my)


def homogeneous(lonlat: np.ndarray) -> np.ndarray:
    """(N,2) -> (N,3) with a trailing column of ones."""
    lonlat = np.asarray(lonlat, dtype=float).reshape(-1, 2)
    return np.hstack([lonlat, np.ones((len(lonlat), 1))])


def geodetic_pairs(
    left_xy: np.ndarray,
    right_xy: np.ndarray,
    georef_left: GeoReference,
    georef_right: Optional[GeoReference] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """Project both sides of a match list, each with its own georeference."""
    georef_right = georef_right or georef_left
    return (
        homogeneous(georef_left.pixels_to_lonlat(left_xy)),
        homogeneous(georef_right.pixels_to_lonlat(right_xy)),
    )
