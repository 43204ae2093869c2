#!/usr/bin/env python3
"""
Build a synthetic ortho/DEM pair for trying out aligndem.

Both orthoimages are crops of one textured scene, georeferenced so that the
same ground feature has the same lon/lat in each (optionally the second one
is misregistered by --shift-lon/--shift-lat degrees). The DEMs are simple
gradients on the same grids; aligndem only checks they exist.

Examples:
  python scripts/make_synthetic_pair.py --out data/pair
  python scripts/make_synthetic_pair.py --out data/pair --shift-lon 0.00003
  aligndem data/pair/ortho1.tif data/pair/dem1.tif data/pair/ortho2.tif data/pair/dem2.tif data/pair/run
"""
from __future__ import annotations

import argparse
from pathlib import Path
from typing import Tuple

import cv2
import numpy as np
import rasterio
from rasterio.transform import Affine, from_origin


def synthesize_scene(size: Tuple[int, int], seed: int = 1234) -> np.ndarray:
    """Feature-rich grayscale scene: smoothed noise plus shapes."""
    w, h = size
    rng = np.random.default_rng(seed)
    base = rng.normal(128, 40, size=(h, w)).clip(0, 255).astype(np.uint8)
    base = cv2.GaussianBlur(base, (0, 0), 1.5)

    for _ in range(80):
        x1, y1 = int(rng.integers(0, w)), int(rng.integers(0, h))
        x2, y2 = int(rng.integers(0, w)), int(rng.integers(0, h))
        cv2.rectangle(base, (min(x1, x2), min(y1, y2)), (max(x1, x2), max(y1, y2)), int(rng.integers(0, 255)), 2)
    for _ in range(50):
        c = (int(rng.integers(0, w)), int(rng.integers(0, h)))
        r = int(rng.integers(6, max(7, min(w, h) // 12)))
        cv2.circle(base, c, r, int(rng.integers(0, 255)), -1)
    return base


def write_geotiff(path: Path, data: np.ndarray, transform: Affine, crs: str) -> None:
    arr = np.ascontiguousarray(data if data.ndim == 3 else data[None, ...])
    profile = {
        "driver": "GTiff",
        "height": arr.shape[1],
        "width": arr.shape[2],
        "count": arr.shape[0],
        "dtype": arr.dtype.name,
        "crs": crs,
        "transform": transform,
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    with rasterio.open(path, "w", **profile) as dst:
        dst.write(arr)


def gradient_dem(shape: Tuple[int, int]) -> np.ndarray:
    h, w = shape
    y = np.linspace(60, 40, h, dtype=np.float32)[..., None]
    x = np.linspace(40, 60, w, dtype=np.float32)[None, ...]
    return (0.5 * (x + y)).astype(np.float32)


def write_pair(
    out_dir: Path,
    *,
    scene_size: Tuple[int, int] = (520, 520),
    crop: int = 440,
    offset: Tuple[int, int] = (37, 23),
    origin: Tuple[float, float] = (-77.0, 38.9),
    pixel_deg: float = 1e-5,
    shift: Tuple[float, float] = (0.0, 0.0),
    seed: int = 1234,
) -> dict:
    """
    Write ortho1/dem1 (scene[0:crop, 0:crop]) and ortho2/dem2
    (scene shifted by `offset` pixels) in EPSG:4326. Returns the file paths.
    """
    scene = synthesize_scene(scene_size, seed=seed)
    dx, dy = offset
    lon0, lat0 = origin
    img1 = scene[0:crop, 0:crop]
    img2 = scene[dy : dy + crop, dx : dx + crop]
    tf1 = from_origin(lon0, lat0, pixel_deg, pixel_deg)
    tf2 = from_origin(lon0 + dx * pixel_deg + shift[0], lat0 - dy * pixel_deg + shift[1], pixel_deg, pixel_deg)

    paths = {
        "ortho1": out_dir / "ortho1.tif",
        "dem1": out_dir / "dem1.tif",
        "ortho2": out_dir / "ortho2.tif",
        "dem2": out_dir / "dem2.tif",
    }
    write_geotiff(paths["ortho1"], img1, tf1, "EPSG:4326")
    write_geotiff(paths["ortho2"], img2, tf2, "EPSG:4326")
    write_geotiff(paths["dem1"], gradient_dem(img1.shape), tf1, "EPSG:4326")
    write_geotiff(paths["dem2"], gradient_dem(img2.shape), tf2, "EPSG:4326")
    return paths


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--out", default="data/pair", help="Output directory")
    ap.add_argument("--size", type=int, default=520, help="Scene width/height in pixels")
    ap.add_argument("--crop", type=int, default=440, help="Orthoimage width/height in pixels")
    ap.add_argument("--offset", default="37,23", help="Second crop offset dx,dy (pixels)")
    ap.add_argument("--shift-lon", type=float, default=0.0, help="Misregistration of ortho2 (deg)")
    ap.add_argument("--shift-lat", type=float, default=0.0, help="Misregistration of ortho2 (deg)")
    ap.add_argument("--seed", type=int, default=1234, help="Scene seed")
    args = ap.parse_args()

    dx, dy = [int(v) for v in args.offset.split(",")]
    paths = write_pair(
        Path(args.out),
        scene_size=(args.size, args.size),
        crop=args.crop,
        offset=(dx, dy),
        shift=(args.shift_lon, args.shift_lat),
        seed=args.seed,
    )
    for name, p in paths.items():
        print(f"[ok] wrote {name}: {p}")
    print("Run:")
    print(f"  aligndem {paths['ortho1']} {paths['dem1']} {paths['ortho2']} {paths['dem2']} {Path(args.out) / 'run'}")


if __name__ == "__main__":
    main()
