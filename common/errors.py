from __future__ import annotations

"""
Failure taxonomy for the alignment pipeline.

Every error is fatal for the run: nothing here is retried, the CLI reports
the message and exits non-zero. A cache miss is not an error.
"""

from typing import Optional


class AlignError(Exception):
    """Base class for pipeline failures."""


class SourceUnreadable(AlignError):
    """An image, its georeference or a cached artifact could not be decoded."""

    def __init__(self, path: str, reason: Optional[str] = None):
        self.path = str(path)
        self.reason = reason
        msg = f"Cannot read {self.path}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class InsufficientCorrespondences(AlignError):
    """Fewer usable matches than an affine fit needs."""

    def __init__(self, found: int, required: int = 3):
        self.found = int(found)
        self.required = int(required)
        super().__init__(
            f"Need at least {self.required} correspondences for an affine fit, got {self.found}"
        )


class NoConsensus(AlignError):
    """RANSAC never found a transform with enough support."""

    def __init__(self, best: int, required: int, total: int):
        self.best = int(best)
        self.required = int(required)
        self.total = int(total)
        super().__init__(
            f"Images could not be aligned: best consensus {self.best}/{self.total} "
            f"inliers, need {self.required}"
        )
