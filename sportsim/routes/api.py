"""Simulation routes: single match, lottery slip, VAR analysis, backtest.

Oracle-backed endpoints are rate limited per client IP; the oracle queue
behind them is shared by every caller.
"""

import logging

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field, field_validator

from sportsim.config import get_settings
from sportsim.llm.simulation import SimulationClient
from sportsim.schemas import (
    BatchEvaluation,
    BatchMatch,
    BatchResultItem,
    MatchCandidate,
    MatchRequest,
    RiskTier,
    SimulationResult,
    VarAnalysisResult,
)
from sportsim.security import limiter
from sportsim.state import get_simulation_client
from sportsim.strategy import evaluate_batch

logger = logging.getLogger(__name__)

router = APIRouter(tags=["simulation"])
settings = get_settings()


def _unique_ids(matches: list[BatchMatch]) -> list[BatchMatch]:
    ids = [m.id for m in matches]
    if len(ids) != len(set(ids)):
        raise ValueError("match ids must be unique within a batch")
    return matches


class BatchSimulationRequest(BaseModel):
    matches: list[BatchMatch] = Field(min_length=1)
    risk_tier: RiskTier = RiskTier.MODERATE
    zebra_level: int = Field(default=0, ge=0, le=10)
    observations: str = ""

    @field_validator("matches")
    @classmethod
    def _check_ids(cls, value: list[BatchMatch]) -> list[BatchMatch]:
        return _unique_ids(value)


class BatchEvaluateRequest(BaseModel):
    items: list[BatchResultItem]
    matches: list[BatchMatch]
    risk_tier: RiskTier = RiskTier.MODERATE
    zebra_level: int = Field(default=0, ge=0, le=10)

    @field_validator("matches")
    @classmethod
    def _check_ids(cls, value: list[BatchMatch]) -> list[BatchMatch]:
        return _unique_ids(value)


class ResultsRefreshRequest(BaseModel):
    matches: list[BatchMatch] = Field(min_length=1)

    @field_validator("matches")
    @classmethod
    def _check_ids(cls, value: list[BatchMatch]) -> list[BatchMatch]:
        return _unique_ids(value)


class VarAnalysisRequest(BaseModel):
    home_team: str = Field(min_length=1)
    away_team: str = Field(min_length=1)
    date: str = Field(min_length=1)


class BacktestRequest(BaseModel):
    start: int = Field(ge=1)
    end: int = Field(ge=1)
    params: dict = {}


def _evaluate(items, matches, risk_tier: RiskTier, zebra_level: int) -> BatchEvaluation:
    return evaluate_batch(
        items,
        matches,
        risk_tier,
        zebra_level,
        base_price=settings.SLIP_BASE_PRICE,
        minimum=settings.SLIP_MIN_TOTAL,
    )


@router.post("/simulations", response_model=SimulationResult)
@limiter.limit(settings.RATE_LIMIT_PER_MINUTE)
async def create_simulation(
    request: Request,
    body: MatchRequest,
    client: SimulationClient = Depends(get_simulation_client),
):
    """Simulate a single match."""
    return await client.run_simulation(body)


@router.post("/batch/simulations", response_model=BatchEvaluation)
@limiter.limit(settings.RATE_LIMIT_PER_MINUTE)
async def create_batch_simulation(
    request: Request,
    body: BatchSimulationRequest,
    client: SimulationClient = Depends(get_simulation_client),
):
    """Simulate a slip, then derive tips, accuracy and ticket cost locally."""
    items = await client.run_batch_simulation(body.matches, body.risk_tier, body.observations)
    return _evaluate(items, body.matches, body.risk_tier, body.zebra_level)


@router.post("/batch/evaluate", response_model=BatchEvaluation)
async def evaluate_batch_items(request: Request, body: BatchEvaluateRequest):
    """Recompute tips for another tier/zebra level. Never calls the oracle."""
    return _evaluate(body.items, body.matches, body.risk_tier, body.zebra_level)


@router.post("/batch/results", response_model=list[BatchMatch])
@limiter.limit(settings.RATE_LIMIT_PER_MINUTE)
async def refresh_batch_results(
    request: Request,
    body: ResultsRefreshRequest,
    client: SimulationClient = Depends(get_simulation_client),
):
    """Fill in actual final scores where the oracle knows them."""
    return await client.refresh_actual_scores(body.matches)


@router.get("/batch/slip/{contest}", response_model=list[BatchMatch])
@limiter.limit(settings.RATE_LIMIT_PER_MINUTE)
async def get_slip_matches(
    request: Request,
    contest: str,
    client: SimulationClient = Depends(get_simulation_client),
):
    """Import the fixtures of a Loteca contest."""
    return await client.fetch_slip_matches(contest)


@router.get("/var/candidates", response_model=list[MatchCandidate])
@limiter.limit(settings.RATE_LIMIT_PER_MINUTE)
async def get_var_candidates(
    request: Request,
    team_a: str = Query(..., min_length=1),
    team_b: str = Query(..., min_length=1),
    year: str = Query(..., min_length=4, max_length=4),
    client: SimulationClient = Depends(get_simulation_client),
):
    """Real fixtures between two teams in a given year."""
    return await client.find_matches_by_year(team_a, team_b, year)


@router.post("/var/analysis", response_model=VarAnalysisResult)
@limiter.limit(settings.RATE_LIMIT_PER_MINUTE)
async def create_var_analysis(
    request: Request,
    body: VarAnalysisRequest,
    client: SimulationClient = Depends(get_simulation_client),
):
    """Refereeing incident analysis for one played match."""
    return await client.run_var_analysis(body.home_team, body.away_team, body.date)


@router.post("/backtest")
async def run_backtest(
    request: Request,
    body: BacktestRequest,
    client: SimulationClient = Depends(get_simulation_client),
):
    return await client.run_historical_backtest(body.start, body.end, body.params)
