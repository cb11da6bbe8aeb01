"""Domain records shared by the oracle layer, the strategy engine and the API."""

import math
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TeamMood(str, Enum):
    EXCITED = "EXCITED"
    REGULAR = "REGULAR"
    DEMOTIVATED = "DEMOTIVATED"


class RiskTier(str, Enum):
    """Risk profile, ordered from safest to riskiest."""

    CONSERVATIVE = "CONSERVATIVE"
    CALCULATED = "CALCULATED"
    MODERATE = "MODERATE"
    AGGRESSIVE = "AGGRESSIVE"
    BOLD = "BOLD"


class VarVerdict(str, Enum):
    CORRECT = "CORRECT"
    ERROR = "ERROR"
    CONTROVERSIAL = "CONTROVERSIAL"


TIP_CODES = ("1", "X", "2", "1X", "X2", "12", "ALL", "1X2")
DOUBLE_CHANCE_CODES = ("1X", "X2", "12")
FULL_COVER_CODES = ("ALL", "1X2")


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ═══════════════════════════════════════════════════════════════
# Requests
# ═══════════════════════════════════════════════════════════════


class MatchRequest(_Frozen):
    home_team: str = Field(min_length=1)
    away_team: str = Field(min_length=1)
    date: str
    home_mood: TeamMood = TeamMood.REGULAR
    away_mood: TeamMood = TeamMood.REGULAR
    observations: str = ""
    risk_tier: RiskTier = RiskTier.MODERATE

    @field_validator("home_team", "away_team")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("team name must not be blank")
        return value


def coerce_score(value: Any) -> Optional[int]:
    """Numeric-coercible values become ints; anything else becomes None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(number) or number < 0:
        return None
    return int(number)


class BatchMatch(_Frozen):
    id: str
    home_team: str
    away_team: str
    date: str = ""
    actual_home_score: Optional[int] = None
    actual_away_score: Optional[int] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, value: Any) -> str:
        return str(value)

    @field_validator("actual_home_score", "actual_away_score", mode="before")
    @classmethod
    def _coerce_score(cls, value: Any) -> Optional[int]:
        return coerce_score(value)

    @property
    def known_result(self) -> Optional[tuple[int, int]]:
        """(home, away) only when both sides are populated."""
        if self.actual_home_score is None or self.actual_away_score is None:
            return None
        return self.actual_home_score, self.actual_away_score


# ═══════════════════════════════════════════════════════════════
# Single simulation
# ═══════════════════════════════════════════════════════════════


class OutcomeProbabilities(_Frozen):
    home: int
    draw: int
    away: int


class PlayerStats(_Frozen):
    name: str
    position: str
    rating: float
    condition: Optional[str] = None


class TeamAnalysis(_Frozen):
    name: str
    win_probability: int
    mood: TeamMood
    attack_rating: float
    defense_rating: float
    possession_est: float
    aerial_attack_rating: Optional[float] = None
    aerial_defense_rating: Optional[float] = None
    key_players: list[PlayerStats] = []
    recent_form: list[str] = []
    stats_text: str
    rest_days: Optional[int] = None


class Score(_Frozen):
    home: int
    away: int


class ExactScore(_Frozen):
    score: str
    probability: float


class Lineups(_Frozen):
    home: list[str] = []
    away: list[str] = []


class WeatherInfo(_Frozen):
    condition: str
    temp: str
    probability: str
    location: str
    pitch_type: Optional[str] = None


class RefereeInfo(_Frozen):
    name: str
    style: str
    avg_cards: float


class Source(_Frozen):
    uri: str
    title: str


class SimulationResult(_Frozen):
    home_team: TeamAnalysis
    away_team: TeamAnalysis
    predicted_score: Score
    probabilities: OutcomeProbabilities
    exact_scores: list[ExactScore] = []
    lineups: Lineups
    analysis_text: str
    betting_tip: str
    betting_tip_code: str
    weather: WeatherInfo
    referee: RefereeInfo
    market_consensus: str
    match_date: str
    sources: list[Source] = []
    offline: bool = False


# ═══════════════════════════════════════════════════════════════
# Batch (lottery slip)
# ═══════════════════════════════════════════════════════════════


class BatchResultItem(_Frozen):
    id: str
    home_team: str
    away_team: str
    home_win_prob: float
    draw_prob: float
    away_win_prob: float
    summary: str
    weather_text: str = ""
    stats_summary: str = ""
    betting_tip: str = ""
    betting_tip_code: str = ""
    error: bool = False


class Recommendation(_Frozen):
    code: str
    label: str


class Accuracy(_Frozen):
    hits: int
    misses: int
    total: int
    percentage: float


class BetCost(_Frozen):
    doubles: int
    triples: int
    combinations: int
    total: float
    is_below_minimum: bool


class BatchEvaluation(_Frozen):
    risk_tier: RiskTier
    zebra_level: int
    items: list[BatchResultItem]
    accuracy: Accuracy
    tier_hits: Optional[dict[RiskTier, int]] = None
    bet_cost: BetCost


# ═══════════════════════════════════════════════════════════════
# VAR mode
# ═══════════════════════════════════════════════════════════════


class VarIncident(_Frozen):
    minute: str
    description: str
    expert_opinion: str
    verdict: VarVerdict


class VarAnalysisResult(_Frozen):
    match: str
    date: str
    referee: str
    referee_grade: float
    summary: str
    incidents: list[VarIncident] = []
    sources: list[Source] = []


class MatchCandidate(_Frozen):
    date: str
    home_team: str
    away_team: str
    score: str
    competition: str
