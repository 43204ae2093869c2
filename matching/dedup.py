from __future__ import annotations

from typing import List

from common.types import CorrespondenceSet


def duplicate_mask(corr: CorrespondenceSet) -> List[bool]:
    """
    True for every index whose left point or right point shares its exact
    (x, y) with another correspondence on the same side.
    """
    n = len(corr)
    left = [p.coord for p in corr.left]
    right = [p.coord for p in corr.right]
    bad = [False] * n
    for i in range(n):
        for j in range(n):
            if i != j and (left[i] == left[j] or right[i] == right[j]):
                bad[i] = True
                break
    return bad


def dedup(corr: CorrespondenceSet) -> CorrespondenceSet:
    """
    Drop every correspondence involved in a one-to-many match.

    A feature that matched several counterparts is not trusted, so all copies
    go rather than picking one. Surviving entries keep their order.
    Quadratic in len(corr); match counts are bounded by the detector budget.
    """
    bad = duplicate_mask(corr)
    return corr.subset([i for i, b in enumerate(bad) if not b])
