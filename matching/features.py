from __future__ import annotations
"""
Interest-point detection & matching for orthoimage alignment.

- FeatureExtractor(method='orb'|'akaze') with .detect(gray) -> [InterestPoint]
- DescriptorMatcher: brute-force KNN (k=2) + Lowe ratio, Hamming for binary
  descriptors and L2 for float ones. Many-to-one matches are kept; the
  duplicate filter decides what to drop.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

import cv2
import numpy as np

from common.types import CorrespondenceSet, InterestPoint


# -----------------------------
# Extractors
# -----------------------------

@dataclass
class FeatureExtractor:
    method: str = "orb"
    nfeatures: int = 500
    fast_threshold: int = 12
    nlevels: int = 8
    scale_factor: float = 1.2

    def __post_init__(self):
        m = self.method.lower()
        if m == "orb":
            self._det = cv2.ORB_create(
                nfeatures=int(self.nfeatures),
                scaleFactor=float(self.scale_factor),
                nlevels=int(self.nlevels),
                edgeThreshold=19,
                firstLevel=0,
                WTA_K=2,
                scoreType=cv2.ORB_HARRIS_SCORE,
                patchSize=31,
                fastThreshold=int(self.fast_threshold),
            )
        elif m == "akaze":
            self._det = cv2.AKAZE_create(
                descriptor_type=cv2.AKAZE_DESCRIPTOR_MLDB,
                threshold=0.001,
                nOctaves=4,
                nOctaveLayers=4,
                diffusivity=cv2.KAZE_DIFF_PM_G2,
            )
        else:
            raise ValueError(f"Unsupported method: {self.method}")

    def detect(self, gray_u8: np.ndarray, mask: Optional[np.ndarray] = None) -> List[InterestPoint]:
        if gray_u8.ndim != 2 or gray_u8.dtype != np.uint8:
            raise ValueError("detector expects a 2-D uint8 image")
        kps, des = self._det.detectAndCompute(gray_u8, mask)
        if des is None or not kps:
            return []
        if len(kps) > self.nfeatures:
            # AKAZE has no point budget of its own; keep the strongest
            order = sorted(range(len(kps)), key=lambda i: kps[i].response, reverse=True)[: self.nfeatures]
            kps = [kps[i] for i in order]
            des = des[order]
        return keypoints_to_interest_points(kps, des)

    # callable form used by the caches
    __call__ = detect


def keypoints_to_interest_points(kps: Sequence[cv2.KeyPoint], des: np.ndarray) -> List[InterestPoint]:
    out: List[InterestPoint] = []
    for kp, d in zip(kps, des):
        out.append(
            InterestPoint(
                x=float(kp.pt[0]),
                y=float(kp.pt[1]),
                scale=float(kp.size),
                orientation=float(kp.angle),
                response=float(kp.response),
                octave=int(kp.octave),
                descriptor=np.array(d, copy=True),
            )
        )
    return out


def _stack(points: Sequence[InterestPoint]) -> np.ndarray:
    return np.vstack([p.descriptor for p in points])


# -----------------------------
# Matching
# -----------------------------

@dataclass
class DescriptorMatcher:
    """
    Accept a match when best_distance < ratio * second_best_distance.
    """
    ratio: float = 0.8

    def match(self, left: Sequence[InterestPoint], right: Sequence[InterestPoint]) -> CorrespondenceSet:
        if len(left) == 0 or len(right) < 2:
            return CorrespondenceSet()
        des1 = _stack(left)
        des2 = _stack(right)
        if des1.dtype != des2.dtype or des1.shape[1] != des2.shape[1]:
            raise ValueError("descriptor layouts differ between images")

        if des1.dtype == np.uint8:
            bf = cv2.BFMatcher(cv2.NORM_HAMMING, crossCheck=False)
        else:
            bf = cv2.BFMatcher(cv2.NORM_L2, crossCheck=False)
            des1 = des1.astype(np.float32, copy=False)
            des2 = des2.astype(np.float32, copy=False)

        knn = bf.knnMatch(des1, des2, k=2)
        lhs: List[InterestPoint] = []
        rhs: List[InterestPoint] = []
        for pair in knn:
            if len(pair) < 2:
                continue
            m, n = pair
            if m.distance < self.ratio * n.distance:
                lhs.append(left[m.queryIdx])
                rhs.append(right[m.trainIdx])
        return CorrespondenceSet(tuple(lhs), tuple(rhs))

    __call__ = match
