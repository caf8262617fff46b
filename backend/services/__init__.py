"""
Bridge Eligibility Services
Transformation, scoring, benchmarking and recommendations for bridge activity
"""

from .errors import AnalysisError
from .score_normalizer import ScoreNormalizer, get_score_normalizer
from .historical_benchmark import HistoricalBenchmarkComparator, get_benchmark_comparator
from .recommendation_engine import RecommendationEngine, get_recommendation_engine

__all__ = [
    "AnalysisError",

    # Scoring
    "ScoreNormalizer",
    "get_score_normalizer",

    # Benchmarks
    "HistoricalBenchmarkComparator",
    "get_benchmark_comparator",

    # Recommendations
    "RecommendationEngine",
    "get_recommendation_engine",
]
