"""FastAPI application for SportSim."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from sportsim.config import get_settings
from sportsim.database import close_db, create_engine, create_session_factory, init_db
from sportsim.llm.errors import MalformedResponse, MissingCredential, OracleError, RateLimited
from sportsim.routes.api import router as api_router
from sportsim.routes.auth import router as auth_router
from sportsim.routes.core import router as core_router
from sportsim.security import limiter
from sportsim.state import build_services
from sportsim.storage import SQLCredentialStore
from sportsim.telemetry.sentry import init_sentry

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
# httpx logs every request URL at INFO
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

# Only activates if SENTRY_DSN is set
init_sentry()

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: database, credential store, oracle queue."""
    engine = create_engine()
    await init_db(engine)
    store = SQLCredentialStore(create_session_factory(engine))
    services = await build_services(store, settings=settings, engine=engine)
    app.state.services = services
    logger.info(
        f"SportSim started: model={settings.GEMINI_MODEL}, "
        f"oracle_configured={services.oracle.has_api_key}"
    )
    try:
        yield
    finally:
        await services.close()
        await close_db(engine)
        logger.info("SportSim stopped")


app = FastAPI(
    title="SportSim",
    description="AI-backed match simulation, lottery slip strategy and VAR analysis",
    version="1.0.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(MissingCredential)
async def missing_credential_handler(request: Request, exc: MissingCredential):
    return JSONResponse(
        status_code=401,
        content={
            "detail": str(exc),
            "action": "configure_api_key",
        },
    )


@app.exception_handler(RateLimited)
async def oracle_rate_limited_handler(request: Request, exc: RateLimited):
    return JSONResponse(
        status_code=429,
        content={"detail": "The AI service is rate limiting requests. Try again in a few minutes."},
    )


@app.exception_handler(MalformedResponse)
async def malformed_response_handler(request: Request, exc: MalformedResponse):
    return JSONResponse(
        status_code=502,
        content={"detail": "The AI service returned an unreadable answer. Try again."},
    )


@app.exception_handler(OracleError)
async def oracle_error_handler(request: Request, exc: OracleError):
    logger.error(f"Oracle failure on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=502,
        content={"detail": "The AI service could not process the request right now."},
    )


app.include_router(core_router)
app.include_router(api_router)
app.include_router(auth_router)
