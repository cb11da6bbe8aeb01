"""
Sentry error reporting, enabled only when SENTRY_DSN is set.

Events leave the process without credentials: the Gemini key header, the
admin key header, cookies and key-like query parameters are redacted, and
request bodies (observations, passwords) are dropped entirely.
"""

import logging
import re
from typing import Optional

from sportsim.config import get_settings

logger = logging.getLogger(__name__)

_enabled = False

REDACTED = "[REDACTED]"

SENSITIVE_HEADERS = frozenset({
    "x-api-key",
    "x-goog-api-key",
    "authorization",
    "cookie",
    "set-cookie",
    "x-forwarded-for",
})

_SECRET_PARAM_RE = re.compile(r"(?i)(token|api_key|key|secret|password)=([^&]*)")


def scrub_sensitive_data(event: dict, hint: dict) -> Optional[dict]:
    """before_send hook: strip credentials and bodies from the event."""
    request = event.get("request")
    if not isinstance(request, dict):
        return event

    try:
        headers = request.get("headers") or {}
        request["headers"] = {
            name: REDACTED if name.lower() in SENSITIVE_HEADERS else value
            for name, value in headers.items()
        }

        query_string = request.get("query_string")
        if isinstance(query_string, str) and query_string:
            request["query_string"] = _SECRET_PARAM_RE.sub(rf"\1={REDACTED}", query_string)

        if "data" in request:
            request["data"] = "[SCRUBBED]"
    except Exception as e:
        # A scrubbing bug must not turn into a crash inside error reporting
        logger.warning(f"[SENTRY] Scrubbing failed, sending event as is: {e}")

    return event


def init_sentry() -> bool:
    """Initialize the SDK once. Returns whether reporting is active."""
    global _enabled

    if _enabled:
        return True

    settings = get_settings()
    if not settings.SENTRY_DSN:
        logger.info("[SENTRY] Disabled (SENTRY_DSN not set)")
        return False

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.logging import LoggingIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            # Oracle failures are logged at ERROR; that is what should page
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        send_default_pii=False,
        before_send=scrub_sensitive_data,
    )

    _enabled = True
    logger.info(f"[SENTRY] Enabled: env={settings.ENVIRONMENT}, traces={settings.SENTRY_TRACES_SAMPLE_RATE}")
    return True


def is_sentry_enabled() -> bool:
    return _enabled
