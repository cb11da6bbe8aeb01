"""
Wagering strategy: deterministic tip selection and slip aggregation.

Usage:
    from sportsim.strategy import recommend, score, evaluate_batch

    rec = recommend(55, 25, 20, RiskTier.MODERATE, zebra_level=3)
    hit = score(rec, 1, 1)
"""

from sportsim.strategy.aggregator import (
    apply_tips,
    compute_accuracy,
    compute_bet_cost,
    compute_tier_hits,
    evaluate_batch,
)
from sportsim.strategy.engine import (
    actual_outcome,
    apply_zebra,
    covered_outcomes,
    recommend,
    score,
)

__all__ = [
    "actual_outcome",
    "apply_tips",
    "apply_zebra",
    "compute_accuracy",
    "compute_bet_cost",
    "compute_tier_hits",
    "covered_outcomes",
    "evaluate_batch",
    "recommend",
    "score",
]
