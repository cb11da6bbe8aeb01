"""
Tests for the sanitization boundary between oracle JSON and domain records.
"""

import json

import pytest

from sportsim.llm.sanitizer import (
    ANALYSIS_ERROR,
    OFFLINE_ESTIMATE,
    PLACEHOLDER,
    merge_actual_scores,
    normalize_probabilities,
    placeholder_item,
    sanitize_batch_items,
    sanitize_candidates,
    sanitize_simulation,
    sanitize_slip_matches,
    sanitize_var,
    unwrap_entries,
)
from sportsim.schemas import BatchMatch, MatchRequest, RiskTier, TeamMood, VarVerdict


@pytest.fixture
def request_():
    return MatchRequest(
        home_team="Flamengo",
        away_team="Palmeiras",
        date="2026-05-10",
        home_mood=TeamMood.EXCITED,
        away_mood=TeamMood.DEMOTIVATED,
        risk_tier=RiskTier.MODERATE,
    )


@pytest.fixture
def chunk():
    return [
        BatchMatch(id="a", home_team="Corinthians", away_team="Santos"),
        BatchMatch(id="b", home_team="Gremio", away_team="Inter"),
        BatchMatch(id="c", home_team="Bahia", away_team="Vitoria"),
    ]


class TestNormalizeProbabilities:
    """Integer split summing to exactly 100."""

    def test_overweight_triple_scales_proportionally(self):
        # 70/120 -> 58.3, 30/120 -> 25.0, draw takes the rest
        result = normalize_probabilities(70, 20, 30)
        assert (result.home, result.draw, result.away) == (58, 17, 25)

    def test_already_normalized_is_unchanged(self):
        result = normalize_probabilities(45, 30, 25)
        assert (result.home, result.draw, result.away) == (45, 30, 25)

    def test_missing_values_use_defaults(self):
        result = normalize_probabilities(None, None, None)
        assert (result.home, result.draw, result.away) == (33, 33, 34)

    def test_percent_strings(self):
        result = normalize_probabilities("50%", "25", " 25 % ")
        assert (result.home, result.draw, result.away) == (50, 25, 25)

    def test_negative_values_are_clamped(self):
        result = normalize_probabilities(-10, 50, 50)
        assert result.home == 0
        assert result.home + result.draw + result.away == 100

    def test_all_zero_does_not_divide_by_zero(self):
        result = normalize_probabilities(0, 0, 0)
        assert result.home + result.draw + result.away == 100

    def test_rounding_overshoot_is_absorbed(self):
        result = normalize_probabilities(50.5, 0, 49.5)
        assert result.home + result.away <= 100
        assert result.draw >= 0
        assert result.home + result.draw + result.away == 100

    def test_integer_too_large_for_float_uses_default(self):
        result = normalize_probabilities(10 ** 400, 33, 34)
        assert (result.home, result.draw, result.away) == (33, 33, 34)

    def test_near_max_floats_do_not_overflow(self):
        result = normalize_probabilities(1e308, 1e308, 0)
        assert (result.home, result.draw, result.away) == (50, 50, 0)

    def test_sums_to_hundred(self):
        cases = [(1, 1, 1), (33.3, 33.3, 33.4), (99, 0.4, 0.6), (12.5, 75, 12.5), ("abc", [], {})]
        for triple in cases:
            result = normalize_probabilities(*triple)
            assert result.home + result.draw + result.away == 100
            assert min(result.home, result.draw, result.away) >= 0


class TestSanitizeSimulation:
    """Any payload produces a complete, valid SimulationResult."""

    def test_empty_payload_gets_defaults(self, request_):
        result = sanitize_simulation({}, request_)
        assert result.probabilities.home + result.probabilities.draw + result.probabilities.away == 100
        assert result.analysis_text == PLACEHOLDER
        assert result.referee.name == PLACEHOLDER
        assert result.predicted_score.home == 0
        assert result.exact_scores == []

    def test_non_dict_payload(self, request_):
        result = sanitize_simulation("not json at all", request_)
        assert result.home_team.name == "Flamengo"

    def test_list_payload_uses_first_object(self, request_):
        result = sanitize_simulation([{"analysisText": "first"}, {"analysisText": "second"}], request_)
        assert result.analysis_text == "first"

    def test_identity_comes_from_request(self, request_):
        raw = {
            "homeTeam": {"name": "Fla (echo)", "winProbability": 50},
            "awayTeam": {"name": "Palmeiras (echo)", "winProbability": 25},
            "drawProbability": 25,
        }
        result = sanitize_simulation(raw, request_)
        assert result.home_team.name == "Flamengo"
        assert result.away_team.name == "Palmeiras"
        assert result.home_team.mood == TeamMood.EXCITED
        assert result.away_team.mood == TeamMood.DEMOTIVATED
        assert result.match_date == "2026-05-10"

    def test_team_win_probability_matches_normalized_split(self, request_):
        raw = {
            "homeTeam": {"winProbability": 70},
            "awayTeam": {"winProbability": 30},
            "drawProbability": 20,
        }
        result = sanitize_simulation(raw, request_)
        assert result.home_team.win_probability == result.probabilities.home == 58
        assert result.away_team.win_probability == result.probabilities.away == 25

    def test_huge_json_integer_probability(self, request_):
        raw = json.loads('{"homeTeam": {"winProbability": 1' + "0" * 400 + '}}')
        result = sanitize_simulation(raw, request_)
        assert result.probabilities.home + result.probabilities.draw + result.probabilities.away == 100

    def test_ratings_are_clamped(self, request_):
        raw = {"homeTeam": {"attackRating": 140, "defenseRating": -3, "possessionEst": "55"}}
        team = sanitize_simulation(raw, request_).home_team
        assert team.attack_rating == 100
        assert team.defense_rating == 0
        assert team.possession_est == 55

    def test_valid_tip_code_is_kept(self, request_):
        raw = {"bettingTip": "Home double chance", "bettingTipCode": "1x"}
        result = sanitize_simulation(raw, request_)
        assert result.betting_tip_code == "1X"
        assert result.betting_tip == "Home double chance"

    def test_invalid_tip_code_is_derived(self, request_):
        raw = {
            "homeTeam": {"winProbability": 70},
            "awayTeam": {"winProbability": 10},
            "drawProbability": 20,
            "bettingTipCode": "HOME WIN",
        }
        result = sanitize_simulation(raw, request_)
        assert result.betting_tip_code == "1"
        assert result.betting_tip == "Moderate favorite"

    def test_sources_attached_when_grounded(self, request_):
        sources = [{"uri": "https://ge.globo.com/a", "title": "GE"}, {"uri": ""}, {"title": "no uri"}]
        result = sanitize_simulation({}, request_, sources=sources)
        assert [s.uri for s in result.sources] == ["https://ge.globo.com/a"]
        assert result.offline is False

    def test_offline_marking(self, request_):
        raw = {"weather": {"condition": "Sunny"}, "marketConsensus": "Home favored"}
        sources = [{"uri": "https://ge.globo.com/a", "title": "GE"}]
        result = sanitize_simulation(raw, request_, sources=sources, offline=True)
        assert result.offline is True
        assert result.weather.condition == OFFLINE_ESTIMATE
        assert result.market_consensus == OFFLINE_ESTIMATE
        assert result.sources == []

    def test_malformed_nested_entries_are_dropped(self, request_):
        raw = {
            "homeTeam": {"keyPlayers": [{"name": "Pedro", "rating": "8.1"}, "junk", {"rating": 7}]},
            "exactScores": [{"score": "2-1", "probability": 18}, {"probability": 5}, None],
            "lineups": {"home": ["Rossi", 12, ""], "away": "not a list"},
        }
        result = sanitize_simulation(raw, request_)
        assert [p.name for p in result.home_team.key_players] == ["Pedro"]
        assert result.home_team.key_players[0].rating == 8.1
        assert [s.score for s in result.exact_scores] == ["2-1"]
        assert result.lineups.home == ["Rossi"]
        assert result.lineups.away == []


class TestUnwrapEntries:
    def test_bare_array(self):
        assert unwrap_entries([{"id": 1}, "x"]) == [{"id": 1}]

    def test_matches_wrapper(self):
        assert unwrap_entries({"matches": [{"id": 1}]}) == [{"id": 1}]

    def test_single_object(self):
        assert unwrap_entries({"id": 1}) == [{"id": 1}]

    def test_garbage(self):
        assert unwrap_entries(None) == []
        assert unwrap_entries("text") == []


class TestSanitizeBatchItems:
    """One item per chunk match, paired by id, then by position."""

    def test_pairs_by_id_regardless_of_order(self, chunk):
        raw = {"matches": [
            {"id": "c", "homeWinProb": 40, "drawProb": 30, "awayWinProb": 30, "summary": "derby"},
            {"id": "a", "homeWinProb": 60, "drawProb": 25, "awayWinProb": 15, "summary": "classic"},
        ]}
        items = sanitize_batch_items(raw, chunk)

        assert [i.id for i in items] == ["a", "b", "c"]
        assert items[0].home_win_prob == 60
        assert items[0].summary == "classic"
        assert items[1].error is True
        assert items[1].summary == ANALYSIS_ERROR
        assert items[2].summary == "derby"

    def test_pairs_by_position_without_ids(self, chunk):
        raw = [
            {"homeWinProb": 50, "drawProb": 30, "awayWinProb": 20},
            {"homeWinProb": 20, "drawProb": 30, "awayWinProb": 50},
        ]
        items = sanitize_batch_items(raw, chunk)

        assert items[0].home_win_prob == 50
        assert items[1].away_win_prob == 50
        assert items[2].error is True

    def test_names_come_from_the_chunk(self, chunk):
        raw = [{"id": "a", "homeTeam": "Someone else", "homeWinProb": 50}]
        items = sanitize_batch_items(raw, chunk)
        assert items[0].home_team == "Corinthians"
        assert items[0].away_team == "Santos"

    def test_tip_fields_stay_empty(self, chunk):
        raw = [{"id": "a", "homeWinProb": 50, "bettingTipCode": "1"}]
        assert sanitize_batch_items(raw, chunk)[0].betting_tip_code == ""

    def test_placeholder_item(self, chunk):
        item = placeholder_item(chunk[0])
        assert (item.home_win_prob, item.draw_prob, item.away_win_prob) == (33, 34, 33)
        assert item.error is True


class TestSanitizeSlipMatches:
    def test_sequential_ids_and_skips_incomplete(self):
        raw = {"matches": [
            {"homeTeam": "Flamengo", "awayTeam": "Vasco", "date": "2026-05-10"},
            {"homeTeam": "Sport"},
            {"homeTeam": "Ceara", "awayTeam": "Fortaleza"},
        ]}
        matches = sanitize_slip_matches(raw)
        assert [m.id for m in matches] == ["1", "2"]
        assert matches[1].home_team == "Ceara"
        assert matches[0].date == "2026-05-10"


class TestMergeActualScores:
    """Scores attach by id, then by home-team substring; gaps stay unchanged."""

    def test_merge_by_id_and_team_name(self):
        matches = [
            BatchMatch(id="1", home_team="Flamengo", away_team="Vasco"),
            BatchMatch(id="2", home_team="Palmeiras", away_team="Santos"),
            BatchMatch(id="3", home_team="Bahia", away_team="Sport"),
        ]
        raw = [
            {"id": "1", "actualHomeScore": 2, "actualAwayScore": "1"},
            {"homeTeam": "SE Palmeiras", "actualHomeScore": 0, "actualAwayScore": 0},
        ]
        updated = merge_actual_scores(matches, raw)

        assert updated[0].known_result == (2, 1)
        assert updated[1].known_result == (0, 0)
        assert updated[2] == matches[2]

    def test_incomplete_score_leaves_match_unchanged(self):
        matches = [BatchMatch(id="1", home_team="Flamengo", away_team="Vasco")]
        raw = [{"id": "1", "actualHomeScore": 2, "actualAwayScore": None}]
        assert merge_actual_scores(matches, raw) == matches

    def test_garbage_payload(self):
        matches = [BatchMatch(id="1", home_team="Flamengo", away_team="Vasco")]
        assert merge_actual_scores(matches, "no idea") == matches

    def test_huge_integer_score_leaves_match_unchanged(self):
        matches = [BatchMatch(id="1", home_team="Flamengo", away_team="Vasco")]
        raw = [{"id": "1", "actualHomeScore": 10 ** 400, "actualAwayScore": 1}]
        assert merge_actual_scores(matches, raw) == matches


class TestSanitizeVar:
    def test_clamps_grade_and_defaults_verdict(self):
        raw = {
            "referee": "Anderson Daronco",
            "refereeGrade": 14,
            "summary": "Busy afternoon",
            "incidents": [
                {"minute": "34'", "description": "Penalty", "expertOpinion": "Soft", "verdict": "error"},
                {"minute": 80, "verdict": "maybe"},
                "junk",
            ],
        }
        result = sanitize_var(raw, "Flamengo", "Vasco", "2026-05-10")

        assert result.match == "Flamengo x Vasco"
        assert result.referee_grade == 10
        assert [i.verdict for i in result.incidents] == [VarVerdict.ERROR, VarVerdict.CONTROVERSIAL]
        assert result.incidents[1].minute == "80"


class TestSanitizeCandidates:
    def test_only_bare_arrays_count(self):
        assert sanitize_candidates({"matches": [{"homeTeam": "A", "awayTeam": "B"}]}) == []

    def test_list_entries(self):
        raw = [
            {"date": "2024-03-02", "homeTeam": "Flamengo", "awayTeam": "Vasco", "score": "2-0",
             "competition": "Carioca"},
            {"homeTeam": "Only home"},
        ]
        candidates = sanitize_candidates(raw)
        assert len(candidates) == 1
        assert candidates[0].score == "2-0"
