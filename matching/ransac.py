from __future__ import annotations
"""
RANSAC affine estimation between two 2-D point sets.

- fit_affine(src, dst): least-squares affine (exact for 3 points), fitted on
  centroid/scale normalised coordinates so geodetic inputs stay conditioned
- estimate_affine(a, b, threshold): minimal 3-point samples, consensus
  counting, adaptive stopping on a confidence target, final refit on all
  inliers of the best sample
- Sampler protocol so tests can drive the random draws
"""

import math
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Union

import numpy as np

from common.config import RansacConfig
from common.errors import InsufficientCorrespondences, NoConsensus
from common.logging_setup import get_logger


log = get_logger("matching.ransac")

MIN_SAMPLE = 3
_COLLINEAR_EPS = 1e-9

PointsLike = Union[np.ndarray, Sequence[Sequence[float]]]


class Sampler(Protocol):
    def sample(self, population: int, k: int) -> np.ndarray:
        """Return k distinct indices in [0, population)."""
        ...


class RandomSampler:
    """numpy Generator backed sampler; pass a seed for reproducible runs."""

    def __init__(self, seed: Optional[int] = None):
        self._rng = np.random.default_rng(seed)

    def sample(self, population: int, k: int) -> np.ndarray:
        return self._rng.choice(population, size=k, replace=False)


@dataclass(frozen=True)
class AffineFit:
    transform: np.ndarray   # 3x3, last row [0, 0, 1]
    inliers: np.ndarray     # sorted indices into the input point sets
    iterations: int

    @property
    def num_inliers(self) -> int:
        return int(self.inliers.size)


# -----------------------------
# Geometry helpers
# -----------------------------

def as_xy(points: PointsLike) -> np.ndarray:
    """(N,2) float array from (N,2) or homogeneous (N,3) input."""
    a = np.asarray(points, dtype=float)
    if a.ndim == 1 and a.size == 0:
        return np.zeros((0, 2), dtype=float)
    if a.ndim != 2 or a.shape[1] not in (2, 3):
        raise ValueError(f"expected (N,2) or (N,3) points, got shape {a.shape}")
    if a.shape[1] == 3:
        w = a[:, 2:3]
        if np.any(w == 0):
            raise ValueError("homogeneous points at infinity")
        a = a[:, :2] / w
    return a


def apply_affine(T: np.ndarray, pts: np.ndarray) -> np.ndarray:
    return pts @ T[:2, :2].T + T[:2, 2]


def residuals(T: np.ndarray, a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Euclidean distance between T(a_i) and b_i."""
    return np.linalg.norm(apply_affine(T, a) - b, axis=1)


def inlier_indices(T: np.ndarray, a: PointsLike, b: PointsLike, threshold: float) -> np.ndarray:
    return np.flatnonzero(residuals(T, as_xy(a), as_xy(b)) < threshold)


def _normalizer(pts: np.ndarray) -> np.ndarray:
    c = pts.mean(axis=0)
    d = float(np.mean(np.linalg.norm(pts - c, axis=1)))
    s = math.sqrt(2.0) / d if d > 0 else 1.0
    return np.array([[s, 0.0, -s * c[0]], [0.0, s, -s * c[1]], [0.0, 0.0, 1.0]])


def fit_affine(src: np.ndarray, dst: np.ndarray) -> np.ndarray:
    """
    Affine T (3x3) minimising sum ||T(src_i) - dst_i||^2. Needs >= 3 points.
    """
    if len(src) != len(dst):
        raise ValueError("src/dst length mismatch")
    if len(src) < MIN_SAMPLE:
        raise ValueError(f"need >= {MIN_SAMPLE} points for an affine fit")
    Ts = _normalizer(src)
    Td = _normalizer(dst)
    sn = apply_affine(Ts, src)
    dn = apply_affine(Td, dst)
    A = np.hstack([sn, np.ones((len(sn), 1))])
    P, *_ = np.linalg.lstsq(A, dn, rcond=None)  # (3,2)
    M = np.eye(3)
    M[:2, :] = P.T
    T = np.linalg.inv(Td) @ M @ Ts
    T[2] = (0.0, 0.0, 1.0)
    return T


def is_degenerate(sample: np.ndarray) -> bool:
    """True when the three sample points are (nearly) collinear."""
    d1 = sample[1] - sample[0]
    d2 = sample[2] - sample[0]
    d3 = sample[2] - sample[1]
    span = max(float(d1 @ d1), float(d2 @ d2), float(d3 @ d3))
    if span == 0.0:
        return True
    area2 = abs(float(d1[0] * d2[1] - d1[1] * d2[0]))
    return area2 <= _COLLINEAR_EPS * span


def required_iterations(inlier_ratio: float, confidence: float, cap: int) -> int:
    """
    Samples needed so that, with probability `confidence`, at least one was
    outlier-free: log(1 - p) / log(1 - w^3).
    """
    if inlier_ratio >= 1.0:
        return 1
    p_good = inlier_ratio ** MIN_SAMPLE
    if p_good <= 0.0:
        return cap
    den = math.log1p(-p_good)
    if den >= 0.0:
        return cap
    return int(min(cap, math.ceil(math.log(1.0 - confidence) / den)))


# -----------------------------
# RANSAC
# -----------------------------

def consensus_floor(n: int, min_inliers: int) -> int:
    """Minimum support for a fit; shrinks to half the data when points are scarce."""
    return max(MIN_SAMPLE, min(int(min_inliers), n // 2))


def estimate_affine(
    points_a: PointsLike,
    points_b: PointsLike,
    threshold: Optional[float] = None,
    *,
    config: Optional[RansacConfig] = None,
    sampler: Optional[Sampler] = None,
) -> AffineFit:
    """
    Robust affine fit mapping points_a onto points_b.

    Args:
        points_a, points_b: (N,2) or homogeneous (N,3) arrays, row i paired.
        threshold: inlier distance; defaults to config.threshold.
        config: iteration cap, confidence target, consensus floor, seed.
        sampler: source of random samples; defaults to RandomSampler(config.seed).

    Raises:
        InsufficientCorrespondences: fewer than 3 pairs.
        NoConsensus: no candidate reached the consensus floor.
    """
    cfg = config or RansacConfig()
    thr = float(cfg.threshold if threshold is None else threshold)
    if thr <= 0:
        raise ValueError("threshold must be > 0")
    a = as_xy(points_a)
    b = as_xy(points_b)
    if len(a) != len(b):
        raise ValueError(f"point set length mismatch: {len(a)} != {len(b)}")
    n = len(a)
    if n < MIN_SAMPLE:
        raise InsufficientCorrespondences(n, MIN_SAMPLE)

    floor = consensus_floor(n, cfg.min_inliers)
    sampler = sampler or RandomSampler(cfg.seed)

    best_mask: Optional[np.ndarray] = None
    best_count = 0
    needed = int(cfg.max_iterations)
    it = 0
    while it < needed:
        it += 1
        idx = np.asarray(sampler.sample(n, MIN_SAMPLE), dtype=int)
        if is_degenerate(a[idx]):
            continue
        T = fit_affine(a[idx], b[idx])
        mask = residuals(T, a, b) < thr
        count = int(mask.sum())
        if count > best_count:
            best_count, best_mask = count, mask
            needed = max(it, required_iterations(count / n, cfg.confidence, int(cfg.max_iterations)))

    if best_mask is None or best_count < floor:
        log.warning(
            "RANSAC found no consensus",
            extra={"extra": {"best": best_count, "floor": floor, "n": n, "iterations": it}},
        )
        raise NoConsensus(best_count, floor, n)

    T = fit_affine(a[best_mask], b[best_mask])
    inliers = np.flatnonzero(residuals(T, a, b) < thr)
    if inliers.size < floor:
        raise NoConsensus(int(inliers.size), floor, n)

    log.debug(
        "RANSAC converged",
        extra={"extra": {"inliers": int(inliers.size), "n": n, "iterations": it, "threshold": thr}},
    )
    return AffineFit(transform=T, inliers=inliers, iterations=it)
