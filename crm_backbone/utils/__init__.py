"""Utility functions for the HubSpot backbone."""

from crm_backbone.utils.fuzzy import (
    CONFIDENT_SCORE,
    MIN_SCORE,
    FuzzyMatch,
    fuzzy_match,
    fuzzy_score,
    levenshtein,
)

__all__ = [
    "CONFIDENT_SCORE",
    "MIN_SCORE",
    "FuzzyMatch",
    "fuzzy_match",
    "fuzzy_score",
    "levenshtein",
]
