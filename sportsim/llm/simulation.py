"""
Simulation client: prompt -> queued oracle call -> parse -> sanitize, per mode.

Every mode tries two strategies in order:
1. GROUNDED: live Google Search grounding, citations attached to the result
2. OFFLINE: no grounding, prompt tells the model to use prior knowledge only

The first strategy that yields parseable JSON wins. A missing/rejected
credential aborts immediately (an offline retry would fail the same way).
If both strategies fail, the last error reaches the caller.

Batch modes are a sequential loop of chunks on top of the shared queue.
A chunk that fails both strategies degrades (placeholders / unchanged
matches) instead of aborting its siblings.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Any, Awaitable, Callable, Optional, Protocol, Sequence, TypeVar

from sportsim.config import Settings, get_settings
from sportsim.llm.errors import MalformedResponse, MissingCredential, RateLimited
from sportsim.llm.gemini_client import GeminiResult
from sportsim.llm.parser import parse_json_response
from sportsim.llm.prompts import (
    build_batch_prompt,
    build_candidates_prompt,
    build_results_prompt,
    build_simulation_prompt,
    build_slip_prompt,
    build_var_prompt,
)
from sportsim.llm.sanitizer import (
    merge_actual_scores,
    placeholder_item,
    sanitize_batch_items,
    sanitize_candidates,
    sanitize_simulation,
    sanitize_slip_matches,
    sanitize_var,
)
from sportsim.llm.scheduler import RequestScheduler, call_with_retry
from sportsim.schemas import (
    BatchMatch,
    BatchResultItem,
    MatchCandidate,
    MatchRequest,
    RiskTier,
    SimulationResult,
    VarAnalysisResult,
)
from sportsim.telemetry import record_fallback, record_oracle_attempt, record_placeholder_chunk

logger = logging.getLogger(__name__)

T = TypeVar("T")
ProgressCallback = Callable[[int, int, str], None]


class Oracle(Protocol):
    async def generate(
        self,
        prompt: str,
        *,
        grounded: bool = True,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> GeminiResult:
        ...


class Strategy(str, Enum):
    GROUNDED = "grounded"
    OFFLINE = "offline"


STRATEGIES = (Strategy.GROUNDED, Strategy.OFFLINE)


@dataclass
class AttemptResult:
    """Parsed payload plus where it came from."""

    data: Any
    strategy: Strategy
    sources: list[dict] = field(default_factory=list)

    @property
    def offline(self) -> bool:
        return self.strategy is Strategy.OFFLINE


def chunked(items: Sequence[T], size: int) -> list[list[T]]:
    """Split into consecutive chunks of `size` (last one may be shorter)."""
    size = max(1, size)
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def _attempt_status(error: BaseException) -> str:
    if isinstance(error, MalformedResponse):
        return "malformed"
    if isinstance(error, RateLimited):
        return "rate_limited"
    if isinstance(error, MissingCredential):
        return "auth"
    return "error"


class SimulationClient:
    """Orchestrates oracle calls for every simulation mode."""

    def __init__(
        self,
        oracle: Oracle,
        scheduler: RequestScheduler,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.oracle = oracle
        self.scheduler = scheduler
        self.settings = settings or get_settings()
        self._sleep = sleep

    # ─── transport ────────────────────────────────────────────────

    async def _call(
        self,
        prompt: str,
        grounded: bool,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> GeminiResult:
        """One queued oracle call, retried on rate limits inside its queue slot."""

        async def attempt():
            return await self.oracle.generate(prompt, grounded=grounded, model=model, temperature=temperature)

        async def with_retry():
            return await call_with_retry(
                attempt,
                retries=self.settings.RETRY_ATTEMPTS,
                initial_backoff=self.settings.RETRY_INITIAL_BACKOFF_SECONDS,
                penalty=self.settings.RETRY_RATE_LIMIT_PENALTY_SECONDS,
                sleep=self._sleep,
            )

        return await self.scheduler.schedule(with_retry)

    async def _run_strategies(
        self,
        mode: str,
        build_prompt: Callable[..., str],
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> AttemptResult:
        """
        Try each strategy in order, returning the first parseable payload.

        Args:
            mode: Metric/log label ("single", "batch", ...).
            build_prompt: Called as build_prompt(offline=bool).

        Raises:
            MissingCredential: Immediately, without fallback.
            Exception: The last strategy's error when all strategies fail.
        """
        last_error: Optional[Exception] = None

        for strategy in STRATEGIES:
            offline = strategy is Strategy.OFFLINE
            if offline:
                record_fallback(mode)
                logger.warning(f"[ORACLE] {mode}: grounded attempt failed ({last_error}), falling back to offline")

            start_time = time.time()
            try:
                response = await self._call(
                    build_prompt(offline=offline),
                    grounded=not offline,
                    model=model,
                    temperature=temperature,
                )
                data = parse_json_response(response.text)
            except MissingCredential as e:
                record_oracle_attempt(mode, strategy.value, _attempt_status(e), 0)
                logger.error(f"[ORACLE] {mode}: credential problem, aborting: {e}")
                raise
            except Exception as e:
                elapsed_ms = (time.time() - start_time) * 1000
                record_oracle_attempt(mode, strategy.value, _attempt_status(e), elapsed_ms)
                last_error = e
                continue

            elapsed_ms = (time.time() - start_time) * 1000
            record_oracle_attempt(mode, strategy.value, "ok", elapsed_ms)
            logger.info(
                f"[ORACLE] {mode}: {strategy.value} ok in {elapsed_ms:.0f}ms "
                f"(model={response.model_version or '-'}, tokens_in={response.tokens_in}, "
                f"tokens_out={response.tokens_out}, oracle_ms={response.exec_ms})"
            )
            return AttemptResult(
                data=data,
                strategy=strategy,
                sources=list(response.sources) if not offline else [],
            )

        logger.error(f"[ORACLE] {mode}: all strategies failed: {last_error}")
        raise last_error

    # ─── single match ─────────────────────────────────────────────

    async def run_simulation(self, request: MatchRequest) -> SimulationResult:
        """Simulate one match."""
        logger.info(f"[ORACLE] single: {request.home_team} vs {request.away_team} ({request.date})")
        attempt = await self._run_strategies("single", partial(build_simulation_prompt, request))
        return sanitize_simulation(attempt.data, request, sources=attempt.sources, offline=attempt.offline)

    # ─── lottery slip ─────────────────────────────────────────────

    async def run_batch_simulation(
        self,
        matches: Sequence[BatchMatch],
        risk_tier: RiskTier,
        observations: str = "",
        on_progress: Optional[ProgressCallback] = None,
    ) -> list[BatchResultItem]:
        """
        Simulate a slip chunk by chunk, strictly in submission order.

        Tip fields stay empty: the strategy engine fills them locally.
        """
        chunks = chunked(matches, self.settings.BATCH_CHUNK_SIZE)
        items: list[BatchResultItem] = []

        for index, chunk in enumerate(chunks):
            if index > 0:
                await self._sleep(self.settings.BATCH_CHUNK_PAUSE_SECONDS)
            if on_progress:
                label = ", ".join(f"{m.home_team} x {m.away_team}" for m in chunk)
                on_progress(len(items) + len(chunk), len(matches), f"Analyzing: {label}")

            try:
                attempt = await self._run_strategies(
                    "batch", partial(build_batch_prompt, chunk, risk_tier, observations)
                )
            except MissingCredential:
                raise
            except Exception as e:
                logger.error(f"[BATCH] Chunk {index + 1}/{len(chunks)} failed, using placeholders: {e}")
                record_placeholder_chunk()
                items.extend(placeholder_item(m) for m in chunk)
                continue

            items.extend(sanitize_batch_items(attempt.data, chunk))

        logger.info(f"[BATCH] Simulated {len(items)} matches in {len(chunks)} chunks")
        return items

    async def refresh_actual_scores(self, matches: Sequence[BatchMatch]) -> list[BatchMatch]:
        """Look up final scores; matches the oracle says nothing about stay unchanged."""
        chunks = chunked(matches, self.settings.RESULTS_CHUNK_SIZE)
        updated: list[BatchMatch] = []

        for index, chunk in enumerate(chunks):
            if index > 0:
                await self._sleep(self.settings.RESULTS_CHUNK_PAUSE_SECONDS)
            try:
                attempt = await self._run_strategies("results", partial(build_results_prompt, chunk))
            except MissingCredential:
                raise
            except Exception as e:
                logger.error(f"[BATCH] Results chunk {index + 1}/{len(chunks)} failed, keeping matches: {e}")
                updated.extend(chunk)
                continue
            updated.extend(merge_actual_scores(chunk, attempt.data))

        return updated

    async def fetch_slip_matches(self, contest: str) -> list[BatchMatch]:
        """Fixtures of a Loteca contest, with ids "1".."n"."""
        attempt = await self._run_strategies("slip", partial(build_slip_prompt, contest))
        matches = sanitize_slip_matches(attempt.data)
        logger.info(f"[BATCH] Contest {contest}: {len(matches)} matches")
        return matches

    # ─── VAR mode ─────────────────────────────────────────────────

    async def find_matches_by_year(self, team_a: str, team_b: str, year: str) -> list[MatchCandidate]:
        attempt = await self._run_strategies("candidates", partial(build_candidates_prompt, team_a, team_b, year))
        return sanitize_candidates(attempt.data)

    async def run_var_analysis(self, home: str, away: str, date: str) -> VarAnalysisResult:
        attempt = await self._run_strategies(
            "var",
            partial(build_var_prompt, home, away, date),
            model=self.settings.GEMINI_VAR_MODEL,
            temperature=self.settings.VAR_TEMPERATURE,
        )
        return sanitize_var(attempt.data, home, away, date, sources=attempt.sources)

    # ─── backtest ─────────────────────────────────────────────────

    async def run_historical_backtest(self, start: int, end: int, params: Optional[dict] = None) -> list:
        """Historical draw backtest. No data source is wired in yet, always empty."""
        logger.info(f"[BACKTEST] Requested draws {start}-{end}: no historical source, returning empty")
        return []
