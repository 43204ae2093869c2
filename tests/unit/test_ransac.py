"""
Unit tests for RANSAC affine estimation
"""

import os
import sys

import numpy as np
import pytest

project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.config import RansacConfig
from common.errors import InsufficientCorrespondences, NoConsensus
from matching.ransac import (
    RandomSampler,
    apply_affine,
    consensus_floor,
    estimate_affine,
    fit_affine,
    inlier_indices,
    is_degenerate,
    required_iterations,
    residuals,
)


THRESHOLD = 1e-4


def known_transform(center=(-77.0, 38.9)):
    """Small rotation + anisotropic scale + shift, applied about `center`."""
    th = np.radians(2.0)
    A = np.array([[1.01 * np.cos(th), -np.sin(th)], [np.sin(th), 0.995 * np.cos(th)]])
    c = np.asarray(center)
    T = np.eye(3)
    T[:2, :2] = A
    T[:2, 2] = c - A @ c + np.array([3e-4, -2e-4])
    return T


def synthetic(n=40, n_out=10, seed=0):
    rng = np.random.default_rng(seed)
    a = np.column_stack([rng.uniform(-77.005, -76.995, n), rng.uniform(38.895, 38.905, n)])
    T = known_transform()
    b = apply_affine(T, a)
    ang = rng.uniform(0, 2 * np.pi, n_out)
    mag = rng.uniform(2e-3, 1e-2, n_out)
    b[:n_out] += np.column_stack([np.cos(ang), np.sin(ang)]) * mag[:, None]
    return a, b, T


class FixedSampler:
    """Replays the same sample forever and counts draws."""

    def __init__(self, idx):
        self.idx = np.asarray(idx)
        self.calls = 0

    def sample(self, population, k):
        self.calls += 1
        return self.idx[:k]


class TestFitAffine:

    def test_exact_recovery(self):
        a, b, T = synthetic(n=10, n_out=0)
        assert np.allclose(fit_affine(a, b), T, atol=1e-9)

    def test_three_points_exact(self):
        a = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])
        b = np.array([[2.0, 3.0], [4.0, 3.0], [2.0, 6.0]])
        T = fit_affine(a, b)
        assert np.allclose(apply_affine(T, a), b, atol=1e-12)
        assert np.allclose(T[2], [0, 0, 1])

    def test_needs_three(self):
        with pytest.raises(ValueError):
            fit_affine(np.zeros((2, 2)), np.zeros((2, 2)))


class TestHelpers:

    def test_degenerate(self):
        assert is_degenerate(np.array([[0.0, 0.0], [1.0, 1.0], [2.0, 2.0]]))
        assert is_degenerate(np.array([[1.0, 1.0], [1.0, 1.0], [1.0, 1.0]]))
        assert not is_degenerate(np.array([[-77.0, 38.9], [-76.999, 38.9], [-77.0, 38.901]]))

    def test_required_iterations(self):
        assert required_iterations(1.0, 0.99, 2000) == 1
        assert required_iterations(0.0, 0.99, 2000) == 2000
        assert required_iterations(0.5, 0.99, 2000) == 35
        assert required_iterations(0.01, 0.999, 500) == 500

    def test_consensus_floor(self):
        assert consensus_floor(3, 10) == 3
        assert consensus_floor(8, 10) == 4
        assert consensus_floor(60, 10) == 10

    def test_inlier_indices_accepts_homogeneous(self):
        a, b, T = synthetic(n=20, n_out=5)
        ha = np.hstack([a, np.ones((20, 1))])
        hb = np.hstack([b, np.ones((20, 1))])
        assert list(inlier_indices(T, ha, hb, THRESHOLD)) == list(range(5, 20))


class TestEstimateAffine:

    def test_recovers_transform_and_inliers(self):
        a, b, T = synthetic(n=40, n_out=10, seed=0)
        fit = estimate_affine(a, b, THRESHOLD, config=RansacConfig(seed=3, confidence=0.99999))

        assert list(fit.inliers) == list(range(10, 40))
        assert np.all(residuals(fit.transform, a[10:], b[10:]) < THRESHOLD)
        assert np.allclose(fit.transform[:2, :2], T[:2, :2], atol=1e-8)

    @pytest.mark.parametrize("seed", [1, 2, 5])
    def test_outlier_fractions(self, seed):
        a, b, _ = synthetic(n=30, n_out=8, seed=seed)
        fit = estimate_affine(a, b, THRESHOLD, config=RansacConfig(seed=seed, confidence=0.99999))
        assert set(fit.inliers.tolist()) == set(range(8, 30))

    def test_homogeneous_input(self):
        a, b, _ = synthetic(n=25, n_out=5, seed=4)
        ha = np.hstack([a, np.ones((25, 1))])
        hb = np.hstack([b, np.ones((25, 1))])
        fit = estimate_affine(ha, hb, THRESHOLD, config=RansacConfig(seed=0, confidence=0.99999))
        assert fit.num_inliers == 20

    def test_threshold_from_config(self):
        a, b, _ = synthetic(n=25, n_out=5, seed=6)
        fit = estimate_affine(a, b, config=RansacConfig(threshold=THRESHOLD, seed=0, confidence=0.99999))
        assert fit.num_inliers == 20

    @pytest.mark.parametrize("n", [0, 1, 2])
    def test_too_few_points(self, n):
        a = np.zeros((n, 2))
        with pytest.raises(InsufficientCorrespondences) as exc:
            estimate_affine(a, a, THRESHOLD)
        assert exc.value.found == n

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            estimate_affine(np.zeros((5, 2)), np.zeros((4, 2)), THRESHOLD)

    def test_three_points_all_inliers(self):
        a = np.array([[-77.0, 38.9], [-76.998, 38.9], [-77.0, 38.902]])
        b = a + np.array([1e-3, -5e-4])
        fit = estimate_affine(a, b, THRESHOLD, config=RansacConfig(seed=0))
        assert list(fit.inliers) == [0, 1, 2]
        assert np.allclose(apply_affine(fit.transform, a), b, atol=1e-9)

    def test_collinear_has_no_consensus(self):
        a = np.array([[0.0, 0.0], [1.0, 1.0], [2.0, 2.0], [3.0, 3.0]])
        with pytest.raises(NoConsensus):
            estimate_affine(a, a, THRESHOLD, config=RansacConfig(max_iterations=50, seed=0))

    def test_pure_noise_has_no_consensus(self):
        rng = np.random.default_rng(9)
        a = rng.uniform(0, 1, (30, 2))
        b = rng.uniform(0, 1, (30, 2))
        with pytest.raises(NoConsensus) as exc:
            estimate_affine(a, b, THRESHOLD, config=RansacConfig(max_iterations=200, seed=0))
        assert exc.value.required == 10

    def test_injected_sampler_drives_the_search(self):
        a, b, T = synthetic(n=30, n_out=6, seed=7)
        sampler = FixedSampler([10, 20, 29])
        fit = estimate_affine(a, b, THRESHOLD, config=RansacConfig(confidence=0.99), sampler=sampler)
        assert sampler.calls == fit.iterations
        assert fit.iterations < 2000
        assert list(fit.inliers) == list(range(6, 30))

    def test_iteration_cap(self):
        rng = np.random.default_rng(11)
        a = rng.uniform(0, 1, (20, 2))
        b = rng.uniform(0, 1, (20, 2))
        sampler = FixedSampler([0, 1, 2])
        with pytest.raises(NoConsensus):
            estimate_affine(a, b, THRESHOLD, config=RansacConfig(max_iterations=25), sampler=sampler)
        assert sampler.calls == 25

    def test_seeded_runs_repeat(self):
        a, b, _ = synthetic(n=40, n_out=10, seed=8)
        cfg = RansacConfig(seed=42)
        f1 = estimate_affine(a, b, THRESHOLD, config=cfg)
        f2 = estimate_affine(a, b, THRESHOLD, config=cfg)
        assert np.array_equal(f1.inliers, f2.inliers)
        assert np.array_equal(f1.transform, f2.transform)


class TestRandomSampler:

    def test_distinct_indices(self):
        s = RandomSampler(seed=0)
        for _ in range(50):
            idx = s.sample(5, 3)
            assert len(set(idx.tolist())) == 3
            assert all(0 <= i < 5 for i in idx)
