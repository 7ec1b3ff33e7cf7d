"""Lead scoring and duplicate detection."""

from .scorer import LeadScorer, ScoringResult, ScoreFactors, AutoAction, classify_temperature
from .duplicates import DuplicateDetector, levenshtein_distance, similarity
from .config import ScoringConfig, ScoringConfigManager

__all__ = [
    "LeadScorer",
    "ScoringResult",
    "ScoreFactors",
    "AutoAction",
    "classify_temperature",
    "DuplicateDetector",
    "levenshtein_distance",
    "similarity",
    "ScoringConfig",
    "ScoringConfigManager",
]
