"""
Deterministic wagering strategy: pure math functions.

Functions:
- apply_zebra: "zebra" chaos model, pulls the favorite towards the underdog/draw
- recommend: risk-tier decision table -> (tip code, rationale label)
- actual_outcome / covered_outcomes / score: grade a tip against a final score

No I/O, no randomness: identical inputs always produce identical tips.
"""

from __future__ import annotations

from typing import Union

from sportsim.schemas import RiskTier, Recommendation

HOME = "HOME"
AWAY = "AWAY"

# Share of the home/away gap handed back to the underdog side at full chaos
ZEBRA_EQUALIZATION = 0.9
# From this level upward the draw gets an extra flat boost
ZEBRA_DRAW_BOOST_LEVEL = 8
ZEBRA_DRAW_BOOST_STEP = 5.0

_COVERAGE = {
    "1": frozenset({"1"}),
    "X": frozenset({"X"}),
    "2": frozenset({"2"}),
    "1X": frozenset({"1", "X"}),
    "X2": frozenset({"X", "2"}),
    "12": frozenset({"1", "2"}),
    "ALL": frozenset({"1", "X", "2"}),
    "1X2": frozenset({"1", "X", "2"}),
}


def apply_zebra(home: float, draw: float, away: float, zebra_level: int) -> tuple[float, float, float]:
    """
    Distort a probability triple towards an upset.

    The leader gives up gap * level/10 * 0.9; the trailing side and the draw
    each receive half of it. Levels 8+ also move (level-7)*5 points into the
    draw, half from each side. The result is NOT renormalized.
    """
    if zebra_level <= 0:
        return home, draw, away

    gap = abs(home - away)
    equalization = gap * (zebra_level / 10) * ZEBRA_EQUALIZATION

    if home > away:
        home -= equalization
        away += equalization / 2
        draw += equalization / 2
    elif away > home:
        away -= equalization
        home += equalization / 2
        draw += equalization / 2

    if zebra_level >= ZEBRA_DRAW_BOOST_LEVEL:
        boost = (zebra_level - (ZEBRA_DRAW_BOOST_LEVEL - 1)) * ZEBRA_DRAW_BOOST_STEP
        draw += boost
        home -= boost / 2
        away -= boost / 2

    return home, draw, away


def _double_toward(side: str) -> str:
    return "1X" if side == HOME else "X2"


def _single(side: str) -> str:
    return "1" if side == HOME else "2"


def recommend(
    home: float,
    draw: float,
    away: float,
    risk_tier: Union[RiskTier, str],
    zebra_level: int = 0,
) -> Recommendation:
    """
    Derive a tip from an outcome triple, a risk tier and a chaos level.

    Args:
        home, draw, away: Outcome probabilities (0-100 scale).
        risk_tier: RiskTier or its value. Unknown tiers get full coverage.
        zebra_level: Chaos intensity 0-10 (0 = no distortion).

    Returns:
        Recommendation(code, label).
    """
    home, draw, away = apply_zebra(home, draw, away, zebra_level)

    favorite = HOME if home > away else AWAY
    fav_prob = max(home, away)
    diff = home - away
    abs_diff = abs(diff)

    try:
        tier = RiskTier(risk_tier)
    except ValueError:
        return Recommendation(code="ALL", label="Full coverage (unknown risk profile)")

    if tier == RiskTier.CONSERVATIVE:
        if fav_prob > 65:
            return Recommendation(code=_single(favorite), label="Clear favorite")
        return Recommendation(code=_double_toward(favorite), label="Double chance on the favorite")

    if tier == RiskTier.CALCULATED:
        if fav_prob > 55:
            return Recommendation(code=_single(favorite), label="Favorite above 55%")
        return Recommendation(
            code="1X" if diff > 0 else "X2",
            label="Double chance, edge-weighted",
        )

    if tier == RiskTier.MODERATE:
        if abs_diff < 10 and draw > 30:
            return Recommendation(code="X", label="Balanced match, draw likely")
        if fav_prob > 45:
            return Recommendation(code=_single(favorite), label="Moderate favorite")
        return Recommendation(code=_double_toward(favorite), label="Double chance on the favorite")

    if tier == RiskTier.AGGRESSIVE:
        if favorite == AWAY and fav_prob > 35:
            return Recommendation(code="2", label="Away value")
        if favorite == HOME and fav_prob > 50:
            return Recommendation(code="1", label="Home favorite")
        return Recommendation(code="12", label="No draw")

    if tier == RiskTier.BOLD:
        if abs_diff < 15:
            return Recommendation(code="X", label="Draw hunt")
        if favorite == HOME and away > 20:
            return Recommendation(code="X2", label="Upset cover against the home side")
        if favorite == AWAY and home > 20:
            return Recommendation(code="1X", label="Upset cover against the away side")
        return Recommendation(code=_single(favorite), label="Overwhelming favorite")

    return Recommendation(code="ALL", label="Full coverage")


def actual_outcome(actual_home: int, actual_away: int) -> str:
    """'1' home win, '2' away win, 'X' draw."""
    if actual_home > actual_away:
        return "1"
    if actual_away > actual_home:
        return "2"
    return "X"


def covered_outcomes(code: str) -> frozenset:
    """Outcomes a tip code pays out on (empty for unknown codes)."""
    return _COVERAGE.get((code or "").upper(), frozenset())


def is_double_chance(code: str) -> bool:
    return len(covered_outcomes(code)) == 2


def is_full_cover(code: str) -> bool:
    return len(covered_outcomes(code)) == 3


def score(recommendation: Union[Recommendation, str], actual_home: int, actual_away: int) -> bool:
    """True when the tip covers the actual final result."""
    code = recommendation.code if isinstance(recommendation, Recommendation) else recommendation
    return actual_outcome(actual_home, actual_away) in covered_outcomes(code)
