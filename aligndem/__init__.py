"""
aligndem: orthoimage-driven DEM co-registration

- GeoReference / to_geodetic: pixel -> map -> lon/lat per orthoimage
- align_orthoimages: cached matching, duplicate filtering, RANSAC affine
- CLI: python -m aligndem ortho1 dem1 ortho2 dem2 output_prefix
"""
from .geodetic import GeoReference, to_geodetic
from .pipeline import AlignmentResult, align_correspondences, align_orthoimages

__all__ = [
    "AlignmentResult",
    "GeoReference",
    "align_correspondences",
    "align_orthoimages",
    "to_geodetic",
]
