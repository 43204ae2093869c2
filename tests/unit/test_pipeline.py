"""
Unit tests for the alignment orchestrator (correspondences fed directly)
"""

import os
import sys

import numpy as np
import pytest
import rasterio
from rasterio.transform import from_origin

project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from aligndem.geodetic import GeoReference
from aligndem.pipeline import align_correspondences, align_orthoimages, format_transform
from artifacts.caches import CorrespondenceCache
from artifacts.codec import encode_correspondences
from artifacts.store import ArtifactKey, MemoryStore
from common.config import AlignConfig, RansacConfig
from common.errors import InsufficientCorrespondences, NoConsensus, SourceUnreadable
from common.types import CorrespondenceSet, InterestPoint


G1 = GeoReference.build(from_origin(-77.0, 38.9, 1e-5, 1e-5), "EPSG:4326")
G2 = GeoReference.build(from_origin(-76.9990, 38.8995, 2e-5, 2e-5), "EPSG:4326")


def ip(x, y):
    return InterestPoint(x=x, y=y, descriptor=np.zeros(32, dtype=np.uint8))


def lonlat_to_pixel(lonlat, g):
    """Inverse of GeoReference.pixels_to_lonlat for a north-up geographic raster."""
    t = g.transform
    x = (lonlat[:, 0] - t.c) / t.a - 0.5
    y = (lonlat[:, 1] - t.f) / t.e - 0.5
    return np.column_stack([x, y])


def scenario(n_true=50, n_false=10, seed=0):
    """
    n_true features with identical lon/lat in both images, then n_false
    matches whose right side is pushed well away from the true location.
    """
    rng = np.random.default_rng(seed)
    left = rng.uniform(100, 900, (n_true + n_false, 2))
    right = lonlat_to_pixel(G1.pixels_to_lonlat(left), G2)
    ang = rng.uniform(0, 2 * np.pi, n_false)
    mag = rng.uniform(30, 200, n_false)
    right[n_true:] += np.column_stack([np.cos(ang), np.sin(ang)]) * mag[:, None]
    return CorrespondenceSet(tuple(ip(*p) for p in left), tuple(ip(*p) for p in right))


def write_tif(path, transform, shape=(20, 30)):
    h, w = shape
    profile = {"driver": "GTiff", "height": h, "width": w, "count": 1, "dtype": "uint8",
               "crs": "EPSG:4326", "transform": transform}
    with rasterio.open(path, "w", **profile) as dst:
        dst.write(np.zeros((1, h, w), dtype=np.uint8))


def config(seed=0):
    return AlignConfig(ransac=RansacConfig(threshold=1e-4, seed=seed, confidence=0.99999))


class TestAlignCorrespondences:

    def test_true_features_give_identity(self):
        corr = scenario()
        res = align_correspondences(corr, G1, G2, config=config())
        assert res.num_matches == 60
        assert res.num_inliers == 50
        assert list(res.inliers) == list(range(50))
        assert np.allclose(res.transform, np.eye(3), atol=1e-8)

    @pytest.mark.parametrize("seed", [1, 2, 3])
    def test_true_features_any_seed(self, seed):
        res = align_correspondences(scenario(seed=seed), G1, G2, config=config(seed))
        assert res.num_inliers == 50

    def test_three_non_collinear(self):
        corr = CorrespondenceSet(
            (ip(10, 10), ip(200, 15), ip(40, 300)),
            (ip(1, 2), ip(90, 3), ip(25, 150)),
        )
        res = align_correspondences(corr, G1, G1, config=config())
        assert res.num_inliers == 3
        assert res.transform.shape == (3, 3)

    def test_duplicates_removed_before_counting(self):
        corr = CorrespondenceSet(
            (ip(10, 10), ip(10, 10), ip(40, 300), ip(70, 5)),
            (ip(1, 2), ip(3, 4), ip(25, 150), ip(6, 6)),
        )
        with pytest.raises(InsufficientCorrespondences) as exc:
            align_correspondences(corr, G1, G1, config=config())
        assert exc.value.found == 2

    def test_too_few(self):
        corr = CorrespondenceSet((ip(1, 1), ip(2, 5)), (ip(1, 1), ip(2, 5)))
        with pytest.raises(InsufficientCorrespondences):
            align_correspondences(corr, G1, G1)

    def test_noise_reports_no_consensus(self):
        rng = np.random.default_rng(4)
        left = rng.uniform(0, 1000, (30, 2))
        right = rng.uniform(0, 1000, (30, 2))
        corr = CorrespondenceSet(tuple(ip(*p) for p in left), tuple(ip(*p) for p in right))
        cfg = AlignConfig(ransac=RansacConfig(threshold=1e-4, max_iterations=200, seed=0))
        with pytest.raises(NoConsensus):
            align_correspondences(corr, G1, G1, config=cfg)


class TestAlignOrthoimages:

    def test_uses_cached_pair(self, tmp_path):
        o1 = tmp_path / "o1.tif"
        o2 = tmp_path / "o2.tif"
        write_tif(o1, G1.transform)
        write_tif(o2, G2.transform)
        corr = scenario(seed=5)
        store = MemoryStore({ArtifactKey.for_pair(o1, o2): encode_correspondences(corr)})
        cache = CorrespondenceCache(store, ip_cache=None, matcher=None)

        res = align_orthoimages(o1, o2, config=config(), cache=cache)
        assert res.num_inliers == 50
        assert store.writes == 0

    def test_unreadable_ortho(self, tmp_path):
        with pytest.raises(SourceUnreadable):
            align_orthoimages(tmp_path / "a.tif", tmp_path / "b.tif", store=MemoryStore())


def test_format_transform():
    text = format_transform(np.eye(3))
    assert text.count("\n") == 2
    assert text.startswith("[[") and text.endswith("]]")
