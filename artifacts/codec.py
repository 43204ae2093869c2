from __future__ import annotations

"""
Binary encoding of interest points and correspondence sets.

Both use an uncompressed numpy .npz archive (no pickles):

    kind, version
    <prefix>xy            (N,2) float64
    <prefix>scale         (N,)  float64
    <prefix>orientation   (N,)  float64
    <prefix>response      (N,)  float64
    <prefix>octave        (N,)  int64
    <prefix>descriptors   (N,D) extractor dtype

Interest-point archives use an empty prefix; correspondence archives store
the two sides under "left_" and "right_". Float64 keeps the round trip exact.
"""

import io
import zipfile
from typing import Dict, List, Sequence

import numpy as np

from common.types import CorrespondenceSet, InterestPoint


FORMAT_VERSION = 1


class ArtifactDecodeError(ValueError):
    """Bytes are not a valid artifact of the expected kind."""


def _pack(points: Sequence[InterestPoint], prefix: str = "") -> Dict[str, np.ndarray]:
    n = len(points)
    if n:
        dtypes = {p.descriptor.dtype for p in points}
        sizes = {p.descriptor.size for p in points}
        if len(dtypes) != 1 or len(sizes) != 1:
            raise ValueError("all descriptors must share dtype and length")
        des = np.vstack([p.descriptor for p in points])
    else:
        des = np.zeros((0, 0), dtype=np.uint8)
    return {
        prefix + "xy": np.array([p.coord for p in points], dtype=np.float64).reshape(n, 2),
        prefix + "scale": np.array([p.scale for p in points], dtype=np.float64),
        prefix + "orientation": np.array([p.orientation for p in points], dtype=np.float64),
        prefix + "response": np.array([p.response for p in points], dtype=np.float64),
        prefix + "octave": np.array([p.octave for p in points], dtype=np.int64),
        prefix + "descriptors": des,
    }


def _unpack(z, prefix: str = "") -> List[InterestPoint]:
    xy = z[prefix + "xy"]
    scale = z[prefix + "scale"]
    ori = z[prefix + "orientation"]
    resp = z[prefix + "response"]
    octave = z[prefix + "octave"]
    des = z[prefix + "descriptors"]
    n = len(xy)
    if not (len(scale) == len(ori) == len(resp) == len(octave) == n) or (n and len(des) != n):
        raise ArtifactDecodeError("inconsistent array lengths")
    return [
        InterestPoint(
            x=xy[i, 0],
            y=xy[i, 1],
            scale=scale[i],
            orientation=ori[i],
            response=resp[i],
            octave=octave[i],
            descriptor=des[i].copy(),
        )
        for i in range(n)
    ]


def _dump(kind: str, arrays: Dict[str, np.ndarray]) -> bytes:
    buf = io.BytesIO()
    np.savez(buf, kind=np.array(kind), version=np.array(FORMAT_VERSION), **arrays)
    return buf.getvalue()


def _load(kind: str, data: bytes):
    try:
        z = np.load(io.BytesIO(data), allow_pickle=False)
    except (ValueError, OSError, EOFError, zipfile.BadZipFile) as e:
        raise ArtifactDecodeError(f"not an npz archive: {e}") from e
    if not isinstance(z, np.lib.npyio.NpzFile):
        raise ArtifactDecodeError("not an npz archive")
    try:
        found = str(z["kind"])
        version = int(z["version"])
    except (KeyError, ValueError) as e:
        raise ArtifactDecodeError("missing header") from e
    if found != kind:
        raise ArtifactDecodeError(f"expected a {kind!r} artifact, found {found!r}")
    if version != FORMAT_VERSION:
        raise ArtifactDecodeError(f"unsupported artifact version {version}")
    return z


def encode_interest_points(points: Sequence[InterestPoint]) -> bytes:
    return _dump("ip", _pack(points))


def decode_interest_points(data: bytes) -> List[InterestPoint]:
    z = _load("ip", data)
    try:
        return _unpack(z)
    except (KeyError, ValueError, zipfile.BadZipFile) as e:
        raise ArtifactDecodeError(str(e)) from e


def encode_correspondences(corr: CorrespondenceSet) -> bytes:
    arrays = _pack(corr.left, "left_")
    arrays.update(_pack(corr.right, "right_"))
    return _dump("match", arrays)


def decode_correspondences(data: bytes) -> CorrespondenceSet:
    z = _load("match", data)
    try:
        left = _unpack(z, "left_")
        right = _unpack(z, "right_")
        return CorrespondenceSet(tuple(left), tuple(right))
    except (KeyError, ValueError, zipfile.BadZipFile) as e:
        raise ArtifactDecodeError(str(e)) from e
