"""
HTTP API tests.

Services are wired for real (queue, simulation client, in-memory store)
with the Gemini client on an httpx.MockTransport, so each request runs the
full prompt -> oracle -> parse -> sanitize -> strategy path.
"""

import asyncio
import json
import re
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from sportsim.config import Settings
from sportsim.llm.gemini_client import GeminiClient
from sportsim.main import app
from sportsim.schemas import BatchMatch, MatchCandidate
from sportsim.security import limiter
from sportsim.state import build_services, get_simulation_client
from sportsim.storage import InMemoryCredentialStore

ID_RE = re.compile(r'"id": "([^"]+)"')

SIMULATION_JSON = {
    "homeTeam": {"winProbability": 70, "attackRating": 80},
    "awayTeam": {"winProbability": 30},
    "drawProbability": 20,
    "bettingTip": "Home win",
    "bettingTipCode": "1",
}


def _envelope(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}, "finishReason": "STOP"}]}


def _prompt(request: httpx.Request) -> str:
    return json.loads(request.content)["contents"][0]["parts"][0]["text"]


def default_handler(request: httpx.Request) -> httpx.Response:
    prompt = _prompt(request)
    if "lottery slip" in prompt:
        entries = [
            {"id": match_id, "homeWinProb": 60, "drawProb": 25, "awayWinProb": 15, "summary": "ok"}
            for match_id in ID_RE.findall(prompt)
        ]
        return httpx.Response(200, json=_envelope(json.dumps(entries)))
    return httpx.Response(200, json=_envelope("```json\n" + json.dumps(SIMULATION_JSON) + "\n```"))


def _install_services(handler=default_handler, api_key="test-key"):
    settings = Settings(
        GEMINI_API_KEY=api_key,
        SCHEDULER_DELAY_SECONDS=0,
        RETRY_ATTEMPTS=1,
        BATCH_CHUNK_PAUSE_SECONDS=0,
        RESULTS_CHUNK_PAUSE_SECONDS=0,
        ALLOWED_INVITE_CODES="VIP1",
    )
    oracle = GeminiClient(api_key=api_key, transport=httpx.MockTransport(handler))
    services = asyncio.run(build_services(InMemoryCredentialStore(), settings=settings, oracle=oracle))
    app.state.services = services
    return services


@pytest.fixture
def client():
    limiter.reset()
    return TestClient(app)


class TestCoreRoutes:
    def test_health(self, client):
        _install_services()
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "oracle_configured": True,
            "queue_pending": 0,
            "error_reporting": False,
        }

    def test_metrics(self, client):
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "sportsim_oracle_requests_total" in response.text


class TestSimulationRoutes:
    def test_single_simulation(self, client):
        _install_services()
        response = client.post("/simulations", json={
            "home_team": "Flamengo",
            "away_team": "Vasco",
            "date": "2026-05-10",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["probabilities"] == {"home": 58, "draw": 17, "away": 25}
        assert body["home_team"]["name"] == "Flamengo"
        assert body["betting_tip_code"] == "1"
        assert body["offline"] is False

    def test_blank_team_is_rejected(self, client):
        _install_services()
        response = client.post("/simulations", json={"home_team": "  ", "away_team": "Vasco", "date": "2026-05-10"})
        assert response.status_code == 422

    def test_batch_simulation_evaluates_locally(self, client):
        _install_services()
        matches = [
            {"id": str(n), "home_team": f"Home {n}", "away_team": f"Away {n}"} for n in range(1, 5)
        ]
        matches[0].update(actual_home_score=2, actual_away_score=0)

        response = client.post("/batch/simulations", json={
            "matches": matches,
            "risk_tier": "CONSERVATIVE",
        })

        assert response.status_code == 200
        body = response.json()
        assert [i["id"] for i in body["items"]] == ["1", "2", "3", "4"]
        # 60/25/15 is below the conservative single-tip threshold
        assert {i["betting_tip_code"] for i in body["items"]} == {"1X"}
        assert body["accuracy"] == {"hits": 1, "misses": 0, "total": 1, "percentage": 100.0}
        assert body["bet_cost"]["combinations"] == 16
        assert body["bet_cost"]["total"] == 24.0

    def test_duplicate_ids_rejected(self, client):
        _install_services()
        matches = [
            {"id": "1", "home_team": "A", "away_team": "B"},
            {"id": "1", "home_team": "C", "away_team": "D"},
        ]
        response = client.post("/batch/simulations", json={"matches": matches})
        assert response.status_code == 422

    def test_evaluate_never_calls_oracle(self, client):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        _install_services(handler)
        items = [{
            "id": "1", "home_team": "A", "away_team": "B",
            "home_win_prob": 70, "draw_prob": 20, "away_win_prob": 10, "summary": "",
        }]
        matches = [{"id": "1", "home_team": "A", "away_team": "B", "actual_home_score": 0, "actual_away_score": 0}]

        response = client.post("/batch/evaluate", json={
            "items": items,
            "matches": matches,
            "risk_tier": "MODERATE",
            "zebra_level": 10,
        })

        assert response.status_code == 200
        assert calls == []
        body = response.json()
        assert body["zebra_level"] == 10
        assert body["tier_hits"] is not None

    def test_backtest_is_empty(self, client):
        _install_services()
        response = client.post("/backtest", json={"start": 1100, "end": 1110})
        assert response.status_code == 200
        assert response.json() == []


class TestErrorMapping:
    def test_missing_credential_is_401(self, client):
        _install_services(api_key="")
        response = client.post("/simulations", json={"home_team": "A", "away_team": "B", "date": "2026-05-10"})
        assert response.status_code == 401
        assert response.json()["action"] == "configure_api_key"

    def test_rate_limited_is_429(self, client):
        _install_services(lambda request: httpx.Response(429, text="RESOURCE_EXHAUSTED"))
        response = client.post("/simulations", json={"home_team": "A", "away_team": "B", "date": "2026-05-10"})
        assert response.status_code == 429

    def test_unparseable_answer_is_502(self, client):
        _install_services(lambda request: httpx.Response(200, json=_envelope("no json here")))
        response = client.post("/simulations", json={"home_team": "A", "away_team": "B", "date": "2026-05-10"})
        assert response.status_code == 502

    @pytest.mark.parametrize("body", [
        [{"error": "x"}],
        {"candidates": [{"content": None, "finishReason": "SAFETY"}]},
    ])
    def test_unexpected_envelope_is_502(self, client, body):
        _install_services(lambda request: httpx.Response(200, json=body))
        response = client.post("/simulations", json={"home_team": "A", "away_team": "B", "date": "2026-05-10"})
        assert response.status_code == 502

    def test_server_error_is_502(self, client):
        _install_services(lambda request: httpx.Response(500, text="boom"))
        response = client.post(
            "/var/analysis", json={"home_team": "A", "away_team": "B", "date": "2024-03-02"},
        )
        assert response.status_code == 502


class TestCredentialAndAuthRoutes:
    def test_set_and_remove_api_key(self, client):
        services = _install_services(api_key="")
        assert client.get("/health").json()["oracle_configured"] is False

        response = client.put("/credentials/api-key", json={"api_key": "new-key"})
        assert response.status_code == 200
        assert services.oracle.api_key == "new-key"
        assert client.get("/health").json()["oracle_configured"] is True

        response = client.delete("/credentials/api-key")
        assert response.json() == {"configured": False}

    def test_register_login_session(self, client):
        _install_services()

        response = client.post("/auth/register", json={"username": "Ana", "password": "secret", "invite_code": "VIP1"})
        assert response.status_code == 200
        assert client.get("/auth/session").json() == {"username": "Ana"}

        assert client.post("/auth/logout").json() == {"username": None}

        response = client.post("/auth/login", json={"username": "ana", "password": "wrong"})
        assert response.status_code == 401
        response = client.post("/auth/login", json={"username": "ana", "password": "secret"})
        assert response.status_code == 200

    def test_register_bad_invite(self, client):
        _install_services()
        response = client.post("/auth/register", json={"username": "Ana", "password": "secret", "invite_code": "X"})
        assert response.status_code == 400


class TestDependencyOverrides:
    """Routes that only forward to the simulation client."""

    @pytest.fixture
    def fake_client(self):
        fake = MagicMock()
        fake.fetch_slip_matches = AsyncMock(return_value=[
            BatchMatch(id="1", home_team="Flamengo", away_team="Vasco", date="2026-05-10"),
        ])
        fake.find_matches_by_year = AsyncMock(return_value=[
            MatchCandidate(date="2024-03-02", home_team="Flamengo", away_team="Vasco", score="2-0",
                           competition="Carioca"),
        ])
        fake.refresh_actual_scores = AsyncMock(side_effect=lambda matches: [
            m.model_copy(update={"actual_home_score": 1, "actual_away_score": 1}) for m in matches
        ])
        app.dependency_overrides[get_simulation_client] = lambda: fake
        yield fake
        app.dependency_overrides.clear()

    def test_slip_import(self, client, fake_client):
        response = client.get("/batch/slip/1210")
        assert response.status_code == 200
        assert response.json()[0]["home_team"] == "Flamengo"
        fake_client.fetch_slip_matches.assert_awaited_once_with("1210")

    def test_var_candidates(self, client, fake_client):
        response = client.get("/var/candidates", params={"team_a": "Flamengo", "team_b": "Vasco", "year": "2024"})
        assert response.status_code == 200
        assert response.json()[0]["competition"] == "Carioca"
        fake_client.find_matches_by_year.assert_awaited_once_with("Flamengo", "Vasco", "2024")

    def test_var_candidates_year_validation(self, client, fake_client):
        response = client.get("/var/candidates", params={"team_a": "Flamengo", "team_b": "Vasco", "year": "24"})
        assert response.status_code == 422
        fake_client.find_matches_by_year.assert_not_awaited()

    def test_results_refresh(self, client, fake_client):
        response = client.post("/batch/results", json={"matches": [
            {"id": "1", "home_team": "Flamengo", "away_team": "Vasco"},
        ]})
        assert response.status_code == 200
        assert response.json()[0]["actual_home_score"] == 1
