"""
Sanitization boundary between untrusted oracle JSON and typed domain records.

Everything the model returns is treated as hostile: any field may be
missing, mistyped or absurd. Functions here never raise on bad payloads;
they substitute defaults and always produce structurally valid records.

Identity data (team names, moods, match dates) always comes from the
request, never from the model's echo.
"""

import logging
import math
from typing import Any, Iterable, Optional, Sequence

from sportsim.schemas import (
    TIP_CODES,
    BatchMatch,
    BatchResultItem,
    ExactScore,
    Lineups,
    MatchCandidate,
    MatchRequest,
    OutcomeProbabilities,
    PlayerStats,
    RefereeInfo,
    Score,
    SimulationResult,
    Source,
    TeamAnalysis,
    TeamMood,
    VarAnalysisResult,
    VarIncident,
    VarVerdict,
    WeatherInfo,
    coerce_score,
)
from sportsim.strategy.engine import recommend

logger = logging.getLogger(__name__)

PLACEHOLDER = "Data unavailable"
OFFLINE_ESTIMATE = "Offline estimate"
ANALYSIS_ERROR = "Analysis error"

DEFAULT_HOME_PROB = 33.0
DEFAULT_DRAW_PROB = 33.0
DEFAULT_AWAY_PROB = 34.0

# Placeholder split for batch entries the oracle never produced
PLACEHOLDER_SPLIT = (33.0, 34.0, 33.0)


# ═══════════════════════════════════════════════════════════════
# Coercion helpers
# ═══════════════════════════════════════════════════════════════


def _num(value: Any, default: float) -> float:
    """Finite number from int/float/numeric string ("45", "45%"), else default."""
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, str):
        value = value.strip().rstrip("%").strip()
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return number if math.isfinite(number) else default


def _opt_num(value: Any) -> Optional[float]:
    number = _num(value, math.nan)
    return None if math.isnan(number) else number


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _text(value: Any, default: str = PLACEHOLDER) -> str:
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _str_list(value: Any) -> list[str]:
    return [item.strip() for item in _list(value) if isinstance(item, str) and item.strip()]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# ═══════════════════════════════════════════════════════════════
# Probabilities
# ═══════════════════════════════════════════════════════════════


def normalize_probabilities(home: Any, draw: Any, away: Any) -> OutcomeProbabilities:
    """
    Scale a raw home/draw/away triple to integers summing to exactly 100.

    Home and away are scaled and rounded; draw absorbs the remainder.
    """
    h = max(0.0, _num(home, DEFAULT_HOME_PROB))
    d = max(0.0, _num(draw, DEFAULT_DRAW_PROB))
    a = max(0.0, _num(away, DEFAULT_AWAY_PROB))

    total = h + d + a
    if not math.isfinite(total):
        # Near-max floats overflow when summed
        peak = max(h, d, a)
        h, d, a = h / peak, d / peak, a / peak
        total = h + d + a
    if total <= 0:
        total = 1.0

    home_pct = round_half_up(h / total * 100)
    away_pct = round_half_up(a / total * 100)

    # Two half-up roundings can overshoot by one point (e.g. 50.5 / 49.5)
    excess = home_pct + away_pct - 100
    if excess > 0:
        if home_pct >= away_pct:
            home_pct -= excess
        else:
            away_pct -= excess

    return OutcomeProbabilities(home=home_pct, draw=100 - home_pct - away_pct, away=away_pct)


# ═══════════════════════════════════════════════════════════════
# Single simulation
# ═══════════════════════════════════════════════════════════════


def sanitize_sources(raw: Any) -> list[Source]:
    sources = []
    for entry in _list(raw):
        entry = _dict(entry)
        uri = entry.get("uri")
        if not isinstance(uri, str) or not uri.strip():
            continue
        sources.append(Source(uri=uri.strip(), title=_text(entry.get("title"), default=uri.strip())))
    return sources


def _sanitize_players(raw: Any) -> list[PlayerStats]:
    players = []
    for entry in _list(raw):
        entry = _dict(entry)
        name = _text(entry.get("name"), default="")
        if not name:
            continue
        condition = entry.get("condition")
        players.append(PlayerStats(
            name=name,
            position=_text(entry.get("position")),
            rating=_num(entry.get("rating"), 0.0),
            condition=condition.strip() if isinstance(condition, str) and condition.strip() else None,
        ))
    return players


def _sanitize_team(raw: Any, name: str, mood: TeamMood, win_probability: int) -> TeamAnalysis:
    raw = _dict(raw)
    aerial_attack = _opt_num(raw.get("aerialAttackRating"))
    aerial_defense = _opt_num(raw.get("aerialDefenseRating"))
    rest_days = _opt_num(raw.get("restDays"))
    return TeamAnalysis(
        name=name,
        win_probability=win_probability,
        mood=mood,
        attack_rating=_clamp(_num(raw.get("attackRating"), 50.0), 0, 100),
        defense_rating=_clamp(_num(raw.get("defenseRating"), 50.0), 0, 100),
        possession_est=_clamp(_num(raw.get("possessionEst"), 50.0), 0, 100),
        aerial_attack_rating=_clamp(aerial_attack, 0, 100) if aerial_attack is not None else None,
        aerial_defense_rating=_clamp(aerial_defense, 0, 100) if aerial_defense is not None else None,
        key_players=_sanitize_players(raw.get("keyPlayers")),
        recent_form=_str_list(raw.get("recentForm")),
        stats_text=_text(raw.get("statsText")),
        rest_days=max(0, int(rest_days)) if rest_days is not None else None,
    )


def _sanitize_exact_scores(raw: Any) -> list[ExactScore]:
    scores = []
    for entry in _list(raw):
        entry = _dict(entry)
        score = _text(entry.get("score"), default="")
        if not score:
            continue
        scores.append(ExactScore(score=score, probability=_clamp(_num(entry.get("probability"), 0.0), 0, 100)))
    return scores


def sanitize_simulation(
    raw: Any,
    request: MatchRequest,
    sources: Iterable[Any] = (),
    offline: bool = False,
) -> SimulationResult:
    """
    Coerce a parsed oracle payload into a SimulationResult.

    Args:
        raw: Parsed JSON (anything; non-dicts are treated as empty).
        request: The request that produced the payload.
        sources: Citation chunks returned alongside the content.
        offline: True when the payload came from the ungrounded fallback.
    """
    if isinstance(raw, list):
        raw = next((entry for entry in raw if isinstance(entry, dict)), {})
    raw = _dict(raw)
    home_raw = _dict(raw.get("homeTeam"))
    away_raw = _dict(raw.get("awayTeam"))

    probabilities = normalize_probabilities(
        home_raw.get("winProbability"),
        raw.get("drawProbability"),
        away_raw.get("winProbability"),
    )

    predicted = _dict(raw.get("predictedScore"))
    lineups = _dict(raw.get("lineups"))
    weather = _dict(raw.get("weather"))
    referee = _dict(raw.get("referee"))

    tip_code = _text(raw.get("bettingTipCode"), default="").upper()
    tip_label = _text(raw.get("bettingTip"))
    if tip_code not in TIP_CODES:
        # Model skipped or garbled the code: derive it from the normalized split
        derived = recommend(probabilities.home, probabilities.draw, probabilities.away, request.risk_tier)
        logger.info(f"[SANITIZER] Invalid tip code {tip_code!r}, derived {derived.code}")
        tip_code = derived.code
        if tip_label == PLACEHOLDER:
            tip_label = derived.label

    pitch_type = weather.get("pitchType")

    return SimulationResult(
        home_team=_sanitize_team(home_raw, request.home_team, request.home_mood, probabilities.home),
        away_team=_sanitize_team(away_raw, request.away_team, request.away_mood, probabilities.away),
        predicted_score=Score(
            home=max(0, int(_num(predicted.get("home"), 0))),
            away=max(0, int(_num(predicted.get("away"), 0))),
        ),
        probabilities=probabilities,
        exact_scores=_sanitize_exact_scores(raw.get("exactScores")),
        lineups=Lineups(home=_str_list(lineups.get("home")), away=_str_list(lineups.get("away"))),
        analysis_text=_text(raw.get("analysisText")),
        betting_tip=tip_label,
        betting_tip_code=tip_code,
        weather=WeatherInfo(
            condition=OFFLINE_ESTIMATE if offline else _text(weather.get("condition")),
            temp=_text(weather.get("temp")),
            probability=_text(weather.get("probability")),
            location=_text(weather.get("location")),
            pitch_type=pitch_type.strip() if isinstance(pitch_type, str) and pitch_type.strip() else None,
        ),
        referee=RefereeInfo(
            name=_text(referee.get("name")),
            style=_text(referee.get("style")),
            avg_cards=max(0.0, _num(referee.get("avgCards"), 0.0)),
        ),
        market_consensus=OFFLINE_ESTIMATE if offline else _text(raw.get("marketConsensus")),
        match_date=request.date,
        sources=[] if offline else sanitize_sources(list(sources)),
        offline=offline,
    )


# ═══════════════════════════════════════════════════════════════
# Batch
# ═══════════════════════════════════════════════════════════════


def unwrap_entries(raw: Any) -> list[dict]:
    """Accept a bare array, {"matches": [...]} or a single object."""
    if isinstance(raw, list):
        entries = raw
    elif isinstance(raw, dict) and isinstance(raw.get("matches"), list):
        entries = raw["matches"]
    elif isinstance(raw, dict):
        entries = [raw]
    else:
        entries = []
    return [entry for entry in entries if isinstance(entry, dict)]


def placeholder_item(match: BatchMatch) -> BatchResultItem:
    home, draw, away = PLACEHOLDER_SPLIT
    return BatchResultItem(
        id=match.id,
        home_team=match.home_team,
        away_team=match.away_team,
        home_win_prob=home,
        draw_prob=draw,
        away_win_prob=away,
        summary=ANALYSIS_ERROR,
        error=True,
    )


def _pair_entries(entries: list[dict], chunk: Sequence[BatchMatch]) -> list[Optional[dict]]:
    """Correlate entries to matches by id, then by position for id-less entries."""
    chunk_ids = {m.id for m in chunk}
    by_id = {}
    for entry in entries:
        entry_id = entry.get("id")
        if entry_id is not None and str(entry_id) in chunk_ids:
            by_id.setdefault(str(entry_id), entry)

    paired = []
    for i, match in enumerate(chunk):
        entry = by_id.get(match.id)
        if entry is None and i < len(entries) and str(entries[i].get("id")) not in chunk_ids:
            entry = entries[i]
        paired.append(entry)
    return paired


def sanitize_batch_items(raw: Any, chunk: Sequence[BatchMatch]) -> list[BatchResultItem]:
    """One BatchResultItem per chunk match, in chunk order."""
    items = []
    for match, entry in zip(chunk, _pair_entries(unwrap_entries(raw), chunk)):
        if entry is None:
            logger.warning(f"[SANITIZER] No oracle entry for batch match id={match.id}")
            items.append(placeholder_item(match))
            continue
        items.append(BatchResultItem(
            id=match.id,
            home_team=match.home_team,
            away_team=match.away_team,
            home_win_prob=max(0.0, _num(entry.get("homeWinProb"), PLACEHOLDER_SPLIT[0])),
            draw_prob=max(0.0, _num(entry.get("drawProb"), PLACEHOLDER_SPLIT[1])),
            away_win_prob=max(0.0, _num(entry.get("awayWinProb"), PLACEHOLDER_SPLIT[2])),
            summary=_text(entry.get("summary")),
            weather_text=_text(entry.get("weatherText"), default=""),
            stats_summary=_text(entry.get("statsSummary"), default=""),
        ))
    return items


def sanitize_slip_matches(raw: Any) -> list[BatchMatch]:
    matches = []
    for entry in unwrap_entries(raw):
        home = _text(entry.get("homeTeam"), default="")
        away = _text(entry.get("awayTeam"), default="")
        if not home or not away:
            continue
        matches.append(BatchMatch(
            id=str(len(matches) + 1),
            home_team=home,
            away_team=away,
            date=_text(entry.get("date"), default=""),
        ))
    return matches


def _same_home_team(entry: dict, match: BatchMatch) -> bool:
    returned = _text(entry.get("homeTeam"), default="").lower()
    asked = match.home_team.strip().lower()
    if not returned or not asked:
        return False
    return asked in returned or returned in asked


def merge_actual_scores(matches: Sequence[BatchMatch], raw: Any) -> list[BatchMatch]:
    """
    Apply returned final scores to matches.

    Entries match by id first, then by home-team substring. Entries without
    a complete numeric score, and matches nothing pointed at, stay unchanged.
    """
    entries = unwrap_entries(raw)
    by_id = {str(e["id"]): e for e in entries if e.get("id") is not None}

    updated = []
    for match in matches:
        entry = by_id.get(match.id)
        if entry is None:
            entry = next((e for e in entries if _same_home_team(e, match)), None)
        if entry is None:
            updated.append(match)
            continue

        home = coerce_score(entry.get("actualHomeScore"))
        away = coerce_score(entry.get("actualAwayScore"))
        if home is None or away is None:
            updated.append(match)
            continue
        updated.append(match.model_copy(update={"actual_home_score": home, "actual_away_score": away}))
    return updated


# ═══════════════════════════════════════════════════════════════
# VAR mode
# ═══════════════════════════════════════════════════════════════


def _verdict(value: Any) -> VarVerdict:
    try:
        return VarVerdict(_text(value, default="").upper())
    except ValueError:
        return VarVerdict.CONTROVERSIAL


def sanitize_var(raw: Any, home: str, away: str, date: str, sources: Iterable[Any] = ()) -> VarAnalysisResult:
    raw = _dict(raw)
    incidents = []
    for entry in _list(raw.get("incidents")):
        entry = _dict(entry)
        if not entry:
            continue
        incidents.append(VarIncident(
            minute=_text(entry.get("minute"), default="?"),
            description=_text(entry.get("description")),
            expert_opinion=_text(entry.get("expertOpinion")),
            verdict=_verdict(entry.get("verdict")),
        ))
    return VarAnalysisResult(
        match=f"{home} x {away}",
        date=date,
        referee=_text(raw.get("referee")),
        referee_grade=_clamp(_num(raw.get("refereeGrade"), 0.0), 0, 10),
        summary=_text(raw.get("summary")),
        incidents=incidents,
        sources=sanitize_sources(list(sources)),
    )


def sanitize_candidates(raw: Any) -> list[MatchCandidate]:
    # Only a bare array counts: the search prompt asks for [] when nothing is found
    if not isinstance(raw, list):
        return []
    candidates = []
    for entry in unwrap_entries(raw):
        home = _text(entry.get("homeTeam"), default="")
        away = _text(entry.get("awayTeam"), default="")
        if not home or not away:
            continue
        candidates.append(MatchCandidate(
            date=_text(entry.get("date")),
            home_team=home,
            away_team=away,
            score=_text(entry.get("score"), default="-"),
            competition=_text(entry.get("competition")),
        ))
    return candidates
