"""
Search modules for Confessio.

Provides hybrid search (vector + full-text + topic tags) with additive
fusion, document-trust boosting and direct citation detection.
"""

from .direct_reference import DirectReferenceDetector
from .filters import MetadataFilterExtractor
from .fusion import BoostEngine, ResultFuser, TopKSelector
from .hybrid_search import HybridSearcher

__all__ = [
    "DirectReferenceDetector",
    "MetadataFilterExtractor",
    "BoostEngine",
    "ResultFuser",
    "TopKSelector",
    "HybridSearcher",
]
