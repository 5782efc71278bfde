"""
Analysis module for credit spread opportunities.

This module pairs, scores, and ranks credit spreads.
"""

from .spreads import SpreadPairingEngine
from .probability import ProbabilityModel
from .ranker import RecommendationRanker
from .scanner import CreditSpreadScanner

__all__ = [
    "SpreadPairingEngine",
    "ProbabilityModel",
    "RecommendationRanker",
    "CreditSpreadScanner",
]
