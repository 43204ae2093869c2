from __future__ import annotations

"""
Key/value stores for cached pipeline artifacts.

Artifacts are keyed by what produced them, never by a path string:

    ArtifactKey("ip", (image,))              interest points of one image
    ArtifactKey("match", (left, right))      deduplicated matches of an ordered pair

FileStore turns a key into a file name (next to the image, or under a cache
directory); MemoryStore keeps bytes in a dict for tests. Presence of an
entry is the only validity signal.
"""

import hashlib
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from common.logging_setup import get_logger


log = get_logger("artifacts.store")

IP_SUFFIX = ".ip.npz"
MATCH_SUFFIX = ".match.npz"

PathLike = Union[str, os.PathLike]


@dataclass(frozen=True)
class ArtifactKey:
    kind: str
    sources: Tuple[str, ...]

    def __post_init__(self) -> None:
        expected = {"ip": 1, "match": 2}
        if self.kind not in expected:
            raise ValueError(f"Unknown artifact kind: {self.kind}")
        if len(self.sources) != expected[self.kind]:
            raise ValueError(f"{self.kind} artifacts take {expected[self.kind]} source path(s)")

    @classmethod
    def for_image(cls, image_path: PathLike) -> "ArtifactKey":
        return cls("ip", (os.fspath(image_path),))

    @classmethod
    def for_pair(cls, left_path: PathLike, right_path: PathLike) -> "ArtifactKey":
        return cls("match", (os.fspath(left_path), os.fspath(right_path)))


class ArtifactStore(ABC):
    @abstractmethod
    def exists(self, key: ArtifactKey) -> bool: ...

    @abstractmethod
    def read(self, key: ArtifactKey) -> bytes:
        """Raise KeyError if the artifact is absent."""

    @abstractmethod
    def write(self, key: ArtifactKey, data: bytes) -> None:
        """Create the artifact; raise FileExistsError if it is already there."""

    def describe(self, key: ArtifactKey) -> str:
        return f"{key.kind}:{'|'.join(key.sources)}"


class FileStore(ArtifactStore):
    """
    Filesystem-backed store.

        <dir>/<stem>.ip.npz                     (key "ip", image <dir>/<stem>.<ext>)
        <dir>/<left_stem>__<right_stem>.match.npz   (key "match", dir of the left image)

    A right image outside the left image's directory is named as under `root`.

    If `root` is given, every artifact goes directly into that directory
    instead of beside its image. Images from different directories can share
    a stem there, so each stem is suffixed with a digest of the resolved
    image path: <root>/ortho-3fa1c2d9e0.ip.npz.
    """

    def __init__(self, root: Optional[PathLike] = None):
        self.root = Path(root) if root is not None else None

    def path_for(self, key: ArtifactKey) -> Path:
        first = Path(key.sources[0])
        if self.root is None:
            # a right image from another directory gets the digest too
            base, names = first.parent, [
                Path(s).stem if Path(s).parent == first.parent else _rooted_name(s) for s in key.sources
            ]
        else:
            base, names = self.root, [_rooted_name(s) for s in key.sources]
        if key.kind == "ip":
            return base / (names[0] + IP_SUFFIX)
        return base / f"{names[0]}__{names[1]}{MATCH_SUFFIX}"

    def describe(self, key: ArtifactKey) -> str:
        return str(self.path_for(key))

    def exists(self, key: ArtifactKey) -> bool:
        return self.path_for(key).is_file()

    def read(self, key: ArtifactKey) -> bytes:
        p = self.path_for(key)
        try:
            return p.read_bytes()
        except FileNotFoundError as e:
            raise KeyError(str(p)) from e

    def write(self, key: ArtifactKey, data: bytes) -> None:
        p = self.path_for(key)
        p.parent.mkdir(parents=True, exist_ok=True)
        # "x": never clobber an artifact another run already produced
        with p.open("xb") as f:
            f.write(data)
        log.debug("Wrote artifact", extra={"extra": {"path": str(p), "bytes": len(data)}})


class MemoryStore(ArtifactStore):
    """In-process store; `writes` counts successful writes for tests."""

    def __init__(self, initial: Optional[Dict[ArtifactKey, bytes]] = None):
        self._data: Dict[ArtifactKey, bytes] = dict(initial or {})
        self.writes = 0

    def exists(self, key: ArtifactKey) -> bool:
        return key in self._data

    def read(self, key: ArtifactKey) -> bytes:
        return self._data[key]

    def write(self, key: ArtifactKey, data: bytes) -> None:
        if key in self._data:
            raise FileExistsError(self.describe(key))
        self._data[key] = bytes(data)
        self.writes += 1

    def __len__(self) -> int:
        return len(self._data)


def _rooted_name(source: str) -> str:
    p = Path(source)
    digest = hashlib.sha1(os.fspath(p.resolve()).encode("utf-8")).hexdigest()[:10]
    return f"{p.stem}-{digest}"
