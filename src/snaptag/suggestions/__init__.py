"""Tag suggestions for under-tagged images."""

from snaptag.suggestions.engine import (
    Suggestion,
    SuggestionConfig,
    SuggestionEngine,
    consolidate,
)
from snaptag.suggestions.oracle import VisualOracle
from snaptag.suggestions.signals import Candidate
from snaptag.suggestions.vocabulary import Vocabulary, default_vocabulary, load_vocabulary

__all__ = [
    "Candidate",
    "Suggestion",
    "SuggestionConfig",
    "SuggestionEngine",
    "VisualOracle",
    "Vocabulary",
    "consolidate",
    "default_vocabulary",
    "load_vocabulary",
]
