# FILE: matching/__init__.py
"""
Feature matching & robust estimation

This package provides:
- rasterio-backed orthoimage decoding to 8-bit grayscale
- ORB/AKAZE interest points and ratio-test descriptor matching (OpenCV)
- the duplicate-correspondence filter
- RANSAC affine estimation with an injectable sampler
"""
from .dedup import dedup
from .features import DescriptorMatcher, FeatureExtractor
from .ransac import AffineFit, RandomSampler, estimate_affine, fit_affine

__all__ = [
    "AffineFit",
    "DescriptorMatcher",
    "FeatureExtractor",
    "RandomSampler",
    "dedup",
    "estimate_affine",
    "fit_affine",
]
