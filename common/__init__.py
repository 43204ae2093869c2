"""
Shared pieces for the orthoimage aligner: data model, error taxonomy,
JSON logging and YAML configuration.
"""
from .errors import AlignError, InsufficientCorrespondences, NoConsensus, SourceUnreadable
from .types import CorrespondenceSet, InterestPoint

__all__ = [
    "AlignError",
    "CorrespondenceSet",
    "InsufficientCorrespondences",
    "InterestPoint",
    "NoConsensus",
    "SourceUnreadable",
]
