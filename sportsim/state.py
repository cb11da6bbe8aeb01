"""Shared services for the SportSim application.

One container per app, built in the lifespan and stored on `app.state`.
Routers reach it through the dependency getters below, which tests
override with fakes.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine

from sportsim.config import Settings, get_settings
from sportsim.llm.errors import MissingCredential
from sportsim.llm.gemini_client import GeminiClient
from sportsim.llm.scheduler import RequestScheduler
from sportsim.llm.simulation import SimulationClient
from sportsim.storage import CredentialStore, UserDirectory, resolve_api_key

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    store: CredentialStore
    oracle: GeminiClient
    scheduler: RequestScheduler
    simulation: SimulationClient
    users: UserDirectory
    engine: Optional[AsyncEngine] = None

    async def close(self) -> None:
        await self.oracle.close()


async def build_services(
    store: CredentialStore,
    settings: Optional[Settings] = None,
    oracle: Optional[GeminiClient] = None,
    engine: Optional[AsyncEngine] = None,
) -> Services:
    """Wire the oracle, the queue and the stores together."""
    settings = settings or get_settings()
    oracle = oracle or GeminiClient(api_key="")

    try:
        oracle.set_api_key(await resolve_api_key(store, settings))
    except MissingCredential as e:
        # Not fatal at startup: oracle calls will raise until a key is configured
        logger.warning(f"Starting without oracle credentials: {e}")

    scheduler = RequestScheduler(delay_seconds=settings.SCHEDULER_DELAY_SECONDS)
    return Services(
        settings=settings,
        store=store,
        oracle=oracle,
        scheduler=scheduler,
        simulation=SimulationClient(oracle, scheduler, settings=settings),
        users=UserDirectory(store, settings=settings),
        engine=engine,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_simulation_client(request: Request) -> SimulationClient:
    return get_services(request).simulation


def get_user_directory(request: Request) -> UserDirectory:
    return get_services(request).users
