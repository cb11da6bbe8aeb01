"""
Prompt templates, one per simulation mode.

Templates only embed request fields and describe the JSON shape expected
back; transport, retry and parsing live elsewhere. Every template has an
offline variant used when the grounded (web search) attempt fails.
"""

import json
from typing import Sequence

from sportsim.schemas import BatchMatch, MatchRequest, RiskTier

OFFLINE_INSTRUCTION = (
    "Web search is unavailable. Rely ONLY on your prior knowledge of the teams, "
    "do not invent live data, and still answer with the JSON below."
)

JSON_ONLY = "Return ONLY the JSON, no explanations, no Markdown."

MOOD_HINTS = {
    "EXCITED": "excited (winning streak, high morale)",
    "REGULAR": "regular",
    "DEMOTIVATED": "demotivated (poor run, internal crisis)",
}

SIMULATION_SCHEMA = """{
  "homeTeam": {"winProbability": 0-100, "attackRating": 0-100, "defenseRating": 0-100,
               "possessionEst": 0-100, "aerialAttackRating": 0-100, "aerialDefenseRating": 0-100,
               "keyPlayers": [{"name": "", "position": "", "rating": 0-10, "condition": ""}],
               "recentForm": ["W", "D", "L"], "statsText": "", "restDays": 0},
  "awayTeam": { same fields as homeTeam },
  "drawProbability": 0-100,
  "predictedScore": {"home": 0, "away": 0},
  "exactScores": [{"score": "1-0", "probability": 0-100}],
  "lineups": {"home": ["11 player names"], "away": ["11 player names"]},
  "analysisText": "tactical narrative",
  "bettingTip": "short tip description",
  "bettingTipCode": "1 | X | 2 | 1X | X2 | 12",
  "weather": {"condition": "", "temp": "", "probability": "", "location": "", "pitchType": ""},
  "referee": {"name": "", "style": "", "avgCards": 0.0},
  "marketConsensus": "what the betting market expects"
}"""


def _offline_block(offline: bool) -> str:
    return f"\n{OFFLINE_INSTRUCTION}" if offline else ""


def build_simulation_prompt(request: MatchRequest, offline: bool = False) -> str:
    search = "" if offline else "\nUse Google Search to check real lineups, recent injuries, weather and referee."
    observations = request.observations.strip() or "none"
    return f"""Analyze the football match {request.home_team} (home) vs {request.away_team} (away) on {request.date}.
Home mood: {MOOD_HINTS[request.home_mood.value]}. Away mood: {MOOD_HINTS[request.away_mood.value]}.
Bettor risk profile: {request.risk_tier.value}. Observations: {observations}.{search}{_offline_block(offline)}

{JSON_ONLY} Format:
{SIMULATION_SCHEMA}"""


def _matches_json(matches: Sequence[BatchMatch]) -> str:
    return json.dumps(
        [{"id": m.id, "homeTeam": m.home_team, "awayTeam": m.away_team, "date": m.date} for m in matches],
        ensure_ascii=False,
    )


def build_batch_prompt(
    matches: Sequence[BatchMatch],
    risk_tier: RiskTier,
    observations: str = "",
    offline: bool = False,
) -> str:
    search = "" if offline else "\nUse Google Search for recent form, injuries and weather of each match."
    observations = observations.strip() or "none"
    return f"""Simulate each football match of this lottery slip:
{_matches_json(matches)}
Risk profile: {risk_tier.value}. General observations: {observations}.{search}{_offline_block(offline)}

{JSON_ONLY} Answer with a JSON array, one entry per match, keeping each "id":
[{{"id": "", "homeWinProb": 0-100, "drawProb": 0-100, "awayWinProb": 0-100,
  "summary": "one-line analysis", "weatherText": "", "statsSummary": ""}}]"""


def build_results_prompt(matches: Sequence[BatchMatch], offline: bool = False) -> str:
    search = "" if offline else "\nUse Google Search to find the official final scores."
    return f"""Find the final scores of these football matches:
{_matches_json(matches)}{search}{_offline_block(offline)}
Leave a match out if it has not been played yet.

{JSON_ONLY} Answer with a JSON array:
[{{"id": "", "homeTeam": "", "awayTeam": "", "actualHomeScore": 0, "actualAwayScore": 0}}]"""


def build_slip_prompt(contest: str, offline: bool = False) -> str:
    search = "" if offline else "\nSearch Google for the official Loteca fixture list."
    return f"""List the 14 matches of Loteca (Brazilian football lottery) contest number {contest}.
If this exact contest cannot be found, return the matches of the most recent official contest.{search}{_offline_block(offline)}

{JSON_ONLY} Answer with a JSON array:
[{{"homeTeam": "", "awayTeam": "", "date": ""}}]"""


def build_candidates_prompt(team_a: str, team_b: str, year: str, offline: bool = False) -> str:
    search = "" if offline else "\nSearch Google in official competition tables (leagues, national cups, continental cups, state championships)."
    return f"""Find REAL football matches between "{team_a}" and "{team_b}" played in {year}.{search}{_offline_block(offline)}
IMPORTANT: if no official match is found, return an empty array [].

{JSON_ONLY} Answer with a JSON array:
[{{"date": "", "homeTeam": "", "awayTeam": "", "score": "", "competition": ""}}]"""


def build_var_prompt(home: str, away: str, date: str, offline: bool = False) -> str:
    search = "" if offline else (
        "\nUse Google Search for refereeing analysis, controversial calls and VAR reviews "
        "of this match in sports media, including quotes from refereeing commentators."
    )
    return f"""Analyze the refereeing of the football match {home} x {away} played on {date}.{search}{_offline_block(offline)}

{JSON_ONLY} Format:
{{
  "referee": "referee name",
  "refereeGrade": 0.0-10.0,
  "summary": "summary of expert opinion on the overall refereeing",
  "incidents": [
    {{"minute": "", "description": "what happened", "expertOpinion": "what experts said",
      "verdict": "CORRECT | ERROR | CONTROVERSIAL"}}
  ]
}}"""
