"""
Batch (lottery slip) aggregation over already-fetched oracle data.

Everything here is a pure recomputation: changing the risk tier or the
zebra level re-runs these functions locally and never re-queries the oracle.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from sportsim.schemas import (
    Accuracy,
    BatchEvaluation,
    BatchMatch,
    BatchResultItem,
    BetCost,
    RiskTier,
)
from sportsim.strategy.engine import is_double_chance, is_full_cover, recommend, score

logger = logging.getLogger(__name__)

DEFAULT_BASE_PRICE = 1.50
DEFAULT_MIN_TOTAL = 3.00


def apply_tips(
    items: Iterable[BatchResultItem],
    risk_tier: RiskTier,
    zebra_level: int = 0,
) -> list[BatchResultItem]:
    """Return copies of `items` with tip fields derived by the strategy engine."""
    tipped = []
    for item in items:
        rec = recommend(item.home_win_prob, item.draw_prob, item.away_win_prob, risk_tier, zebra_level)
        tipped.append(item.model_copy(update={"betting_tip": rec.label, "betting_tip_code": rec.code}))
    return tipped


def _known_pairs(
    items: Sequence[BatchResultItem],
    matches: Sequence[BatchMatch],
) -> list[tuple[BatchResultItem, tuple[int, int]]]:
    """Items paired with the final score of their match, where one is known."""
    results = {m.id: m.known_result for m in matches}
    return [(item, results[item.id]) for item in items if results.get(item.id) is not None]


def compute_accuracy(
    items: Sequence[BatchResultItem],
    matches: Sequence[BatchMatch],
    risk_tier: RiskTier,
    zebra_level: int = 0,
) -> Accuracy:
    """Hit/miss over matches with a known final score only."""
    hits = 0
    pairs = _known_pairs(items, matches)
    for item, (home_goals, away_goals) in pairs:
        rec = recommend(item.home_win_prob, item.draw_prob, item.away_win_prob, risk_tier, zebra_level)
        if score(rec, home_goals, away_goals):
            hits += 1

    total = len(pairs)
    percentage = round(hits / total * 100, 1) if total > 0 else 0.0
    return Accuracy(hits=hits, misses=total - hits, total=total, percentage=percentage)


def compute_tier_hits(
    items: Sequence[BatchResultItem],
    matches: Sequence[BatchMatch],
    zebra_level: int = 0,
) -> Optional[dict[RiskTier, int]]:
    """Hits per risk tier on the same data, or None when no result is known yet."""
    if not _known_pairs(items, matches):
        return None
    return {
        tier: compute_accuracy(items, matches, tier, zebra_level).hits
        for tier in RiskTier
    }


def compute_bet_cost(
    codes: Iterable[str],
    base_price: float = DEFAULT_BASE_PRICE,
    minimum: float = DEFAULT_MIN_TOTAL,
) -> BetCost:
    """
    Ticket price: base * 2^(double-chance tips) * 3^(full-cover tips).

    Flags totals under the minimum accepted ticket price.
    """
    codes = list(codes)
    doubles = sum(1 for code in codes if is_double_chance(code))
    triples = sum(1 for code in codes if is_full_cover(code))
    combinations = (2 ** doubles) * (3 ** triples)
    total = round(base_price * combinations, 2)
    return BetCost(
        doubles=doubles,
        triples=triples,
        combinations=combinations,
        total=total,
        is_below_minimum=total < minimum,
    )


def evaluate_batch(
    items: Sequence[BatchResultItem],
    matches: Sequence[BatchMatch],
    risk_tier: RiskTier,
    zebra_level: int = 0,
    *,
    base_price: float = DEFAULT_BASE_PRICE,
    minimum: float = DEFAULT_MIN_TOTAL,
) -> BatchEvaluation:
    """Entry point: tips, accuracy, per-tier comparison and ticket cost."""
    tipped = apply_tips(items, risk_tier, zebra_level)
    accuracy = compute_accuracy(items, matches, risk_tier, zebra_level)
    evaluation = BatchEvaluation(
        risk_tier=risk_tier,
        zebra_level=zebra_level,
        items=tipped,
        accuracy=accuracy,
        tier_hits=compute_tier_hits(items, matches, zebra_level),
        bet_cost=compute_bet_cost((item.betting_tip_code for item in tipped), base_price, minimum),
    )
    logger.info(
        f"[BATCH] Evaluated {len(tipped)} items tier={risk_tier.value} zebra={zebra_level}: "
        f"{accuracy.hits}/{accuracy.total} hits, ticket={evaluation.bet_cost.total:.2f}"
    )
    return evaluation
