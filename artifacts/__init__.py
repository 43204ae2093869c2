"""
Artifact cache for the alignment pipeline

- ArtifactKey / ArtifactStore with filesystem and in-memory backends
- .npz codec for interest points and correspondence sets
- InterestPointCache.get_or_detect / CorrespondenceCache.get_or_match
"""
from .caches import CorrespondenceCache, InterestPointCache
from .store import ArtifactKey, ArtifactStore, FileStore, MemoryStore

__all__ = [
    "ArtifactKey",
    "ArtifactStore",
    "CorrespondenceCache",
    "FileStore",
    "InterestPointCache",
    "MemoryStore",
]
