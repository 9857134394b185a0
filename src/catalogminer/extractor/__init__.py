"""
Page understanding: structural classification, the adapter cascade and
identifier extraction.
"""

from .cascade import AdapterCascade, CascadeOutcome
from .classifier import PlatformMatch, StructuralClassifier, detect_platform
from .identifiers import IdentifierExtractor, best_identifier, extract_eans, rank_skus, validate_ean8, validate_ean13
from .lexicon import Lexicon
from .root_locator import RootLocator

__all__ = [
    "AdapterCascade",
    "CascadeOutcome",
    "StructuralClassifier",
    "PlatformMatch",
    "detect_platform",
    "RootLocator",
    "IdentifierExtractor",
    "best_identifier",
    "extract_eans",
    "rank_skus",
    "validate_ean13",
    "validate_ean8",
    "Lexicon",
]
