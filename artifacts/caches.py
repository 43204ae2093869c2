from __future__ import annotations

import os
from typing import Callable, List, Optional, Sequence

import numpy as np

from artifacts.codec import (
    ArtifactDecodeError,
    decode_correspondences,
    decode_interest_points,
    encode_correspondences,
    encode_interest_points,
)
from artifacts.store import ArtifactKey, ArtifactStore, PathLike
from common.errors import SourceUnreadable
from common.logging_setup import get_logger
from common.types import CorrespondenceSet, InterestPoint
from matching.dedup import dedup
from matching.features import DescriptorMatcher, FeatureExtractor
from matching.raster import read_gray_u8


log = get_logger("artifacts.caches")

ImageLoader = Callable[[PathLike], np.ndarray]
Detector = Callable[[np.ndarray], List[InterestPoint]]
Matcher = Callable[[Sequence[InterestPoint], Sequence[InterestPoint]], CorrespondenceSet]


class InterestPointCache:
    """
    Interest points per image, computed once and kept in an ArtifactStore.

    A stored artifact is returned as-is, without looking at the image again.
    """

    def __init__(
        self,
        store: ArtifactStore,
        detector: Optional[Detector] = None,
        loader: ImageLoader = read_gray_u8,
    ):
        self.store = store
        self.detector = detector if detector is not None else FeatureExtractor()
        self.loader = loader

    def get_or_detect(self, image_path: PathLike) -> List[InterestPoint]:
        key = ArtifactKey.for_image(image_path)
        if self.store.exists(key):
            pts = _decode(self.store, key, decode_interest_points)
            log.info("Using cached interest points",
                     extra={"extra": {"image": os.fspath(image_path), "points": len(pts)}})
            return pts

        log.info("Locating interest points", extra={"extra": {"image": os.fspath(image_path)}})
        gray = self.loader(image_path)
        pts = list(self.detector(gray))
        self.store.write(key, encode_interest_points(pts))
        log.info("Cached interest points",
                 extra={"extra": {"image": os.fspath(image_path), "points": len(pts),
                                  "artifact": self.store.describe(key)}})
        return pts


class CorrespondenceCache:
    """
    Deduplicated matches per ordered image pair.

    A stored pair artifact short-circuits everything, including the per-image
    interest-point lookups, and is trusted even if those were regenerated
    with different detector settings since.
    """

    def __init__(
        self,
        store: ArtifactStore,
        ip_cache: Optional[InterestPointCache] = None,
        matcher: Optional[Matcher] = None,
    ):
        self.store = store
        self.ip_cache = ip_cache if ip_cache is not None else InterestPointCache(store)
        self.matcher = matcher if matcher is not None else DescriptorMatcher(ratio=0.8)

    def get_or_match(self, left_path: PathLike, right_path: PathLike) -> CorrespondenceSet:
        key = ArtifactKey.for_pair(left_path, right_path)
        if self.store.exists(key):
            corr = _decode(self.store, key, decode_correspondences)
            log.info("Using cached match file",
                     extra={"extra": {"artifact": self.store.describe(key), "matches": len(corr)}})
            return corr

        left_ips = self.ip_cache.get_or_detect(left_path)
        right_ips = self.ip_cache.get_or_detect(right_path)

        raw = self.matcher(left_ips, right_ips)
        corr = dedup(raw)
        log.info("Matched interest points",
                 extra={"extra": {"raw": len(raw), "putative": len(corr),
                                  "dropped_duplicates": len(raw) - len(corr)}})

        self.store.write(key, encode_correspondences(corr))
        log.info("Cached matches", extra={"extra": {"artifact": self.store.describe(key)}})
        return corr


def _decode(store: ArtifactStore, key: ArtifactKey, decode):
    where = store.describe(key)
    try:
        return decode(store.read(key))
    except (ArtifactDecodeError, KeyError, OSError) as e:
        raise SourceUnreadable(where, f"corrupt artifact ({e})") from e
