from __future__ import annotations

"""
Side-by-side match rendering for eyeballing a run. Not part of the result.
"""

from pathlib import Path
from typing import Optional, Sequence, Union

import cv2
import numpy as np

from common.types import CorrespondenceSet
from matching.raster import read_gray_u8


def side_by_side(
    img1: np.ndarray,
    img2: np.ndarray,
    corr: CorrespondenceSet,
    inliers: Optional[Sequence[int]] = None,
) -> np.ndarray:
    """
    BGR composite, img2 to the right of img1, one line per correspondence:
    green for inliers, red otherwise (all red when `inliers` is None).
    """
    h = max(img1.shape[0], img2.shape[0])
    w1 = img1.shape[1]
    canvas = np.zeros((h, w1 + img2.shape[1], 3), dtype=np.uint8)
    canvas[: img1.shape[0], :w1] = cv2.cvtColor(img1, cv2.COLOR_GRAY2BGR)
    canvas[: img2.shape[0], w1:] = cv2.cvtColor(img2, cv2.COLOR_GRAY2BGR)

    keep = set(int(i) for i in inliers) if inliers is not None else set()
    for i, (p1, p2) in enumerate(corr):
        color = (0, 255, 0) if i in keep else (0, 0, 255)
        start = (int(round(p1.x)), int(round(p1.y)))
        end = (int(round(p2.x)) + w1, int(round(p2.y)))
        cv2.line(canvas, start, end, color, 1, cv2.LINE_AA)
    return canvas


def write_match_image(
    out_path: Union[str, Path],
    ortho1: Union[str, Path],
    ortho2: Union[str, Path],
    corr: CorrespondenceSet,
    inliers: Optional[Sequence[int]] = None,
) -> Optional[Path]:
    """Render and save; pairs without matches write nothing and return None."""
    if len(corr) == 0:
        return None
    img = side_by_side(read_gray_u8(ortho1), read_gray_u8(ortho2), corr, inliers)
    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    if not cv2.imwrite(str(out), img):
        raise OSError(f"Failed to write debug image {out}")
    return out
