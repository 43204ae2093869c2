from __future__ import annotations

"""
Orthoimage alignment: cached matches -> geodetic points -> RANSAC affine.

Nothing is retried here; any failure propagates to the caller.
"""

import os
from dataclasses import dataclass
from typing import Optional

import numpy as np

from artifacts.caches import CorrespondenceCache, InterestPointCache
from artifacts.store import ArtifactStore, FileStore, PathLike
from aligndem.geodetic import GeoReference, geodetic_pairs
from common.config import AlignConfig
from common.errors import InsufficientCorrespondences
from common.logging_setup import get_logger
from common.types import CorrespondenceSet
from matching.dedup import dedup
from matching.features import DescriptorMatcher, FeatureExtractor
from matching.ransac import MIN_SAMPLE, Sampler, estimate_affine


log = get_logger("aligndem.pipeline")


@dataclass(frozen=True)
class AlignmentResult:
    transform: np.ndarray           # 3x3, maps (lon1, lat1, 1) -> (lon2, lat2, 1)
    inliers: np.ndarray             # indices into `correspondences`
    correspondences: CorrespondenceSet

    @property
    def num_matches(self) -> int:
        return len(self.correspondences)

    @property
    def num_inliers(self) -> int:
        return int(self.inliers.size)


def build_correspondence_cache(config: AlignConfig, store: Optional[ArtifactStore] = None) -> CorrespondenceCache:
    """Wire detector, matcher and caches from config."""
    if store is None:
        store = FileStore(config.cache_dir)
    det = FeatureExtractor(
        method=config.detection.method,
        nfeatures=config.detection.nfeatures,
        fast_threshold=config.detection.fast_threshold,
    )
    ip_cache = InterestPointCache(store, detector=det)
    return CorrespondenceCache(store, ip_cache=ip_cache, matcher=DescriptorMatcher(ratio=config.matching.ratio))


def align_correspondences(
    corr: CorrespondenceSet,
    georef1: GeoReference,
    georef2: GeoReference,
    *,
    config: Optional[AlignConfig] = None,
    sampler: Optional[Sampler] = None,
) -> AlignmentResult:
    """
    Robust affine between two orthoimages given their matched points.
    """
    cfg = config or AlignConfig()
    corr = dedup(corr)
    if len(corr) < MIN_SAMPLE:
        raise InsufficientCorrespondences(len(corr), MIN_SAMPLE)

    pts1, pts2 = geodetic_pairs(corr.left_xy(), corr.right_xy(), georef1, georef2)

    log.info("Rejecting outliers using RANSAC",
             extra={"extra": {"matches": len(corr), "threshold": cfg.ransac.threshold}})
    fit = estimate_affine(pts1, pts2, config=cfg.ransac, sampler=sampler)
    log.info("RANSAC result",
             extra={"extra": {"transform": fit.transform.tolist(), "inliers": fit.num_inliers,
                              "iterations": fit.iterations}})
    return AlignmentResult(transform=fit.transform, inliers=fit.inliers, correspondences=corr)


def align_orthoimages(
    ortho1: PathLike,
    ortho2: PathLike,
    *,
    config: Optional[AlignConfig] = None,
    store: Optional[ArtifactStore] = None,
    cache: Optional[CorrespondenceCache] = None,
    sampler: Optional[Sampler] = None,
) -> AlignmentResult:
    """
    Full run: georeferences, cached matching, projection, RANSAC.

    Args:
        ortho1, ortho2: orthoimage rasters; the result maps 1 onto 2.
        config: detection/matching/RANSAC settings.
        store: artifact store (default: FileStore(config.cache_dir)).
        cache: prebuilt correspondence cache; overrides `store`.
        sampler: RANSAC sample source.
    """
    cfg = config or AlignConfig()
    georef1 = GeoReference.from_raster(ortho1)
    georef2 = GeoReference.from_raster(ortho2)

    log.info("Finding interest points for the orthoimages",
             extra={"extra": {"ortho1": os.fspath(ortho1), "ortho2": os.fspath(ortho2)}})
    cache = cache or build_correspondence_cache(cfg, store)
    corr = cache.get_or_match(ortho1, ortho2)
    return align_correspondences(corr, georef1, georef2, config=cfg, sampler=sampler)


def format_transform(T: np.ndarray) -> str:
    rows = ["[" + ", ".join(f"{v: .10g}" for v in row) + "]" for row in np.asarray(T)]
    return "[" + ",\n ".join(rows) + "]"
