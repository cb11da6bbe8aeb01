"""
Credential store: opaque async key-value persistence.

Holds the oracle access token plus the user directory and session marker.
The store does not interpret values; callers serialize what they need.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sportsim.config import Settings, get_settings
from sportsim.llm.errors import MissingCredential
from sportsim.models import KeyValueEntry

logger = logging.getLogger(__name__)

API_KEY_STORE_KEY = "gemini_api_key"


class CredentialStore(Protocol):
    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str) -> None:
        ...

    async def remove(self, key: str) -> None:
        ...


class InMemoryCredentialStore:
    """Process-local store (tests, ephemeral deployments)."""

    def __init__(self, initial: Optional[dict] = None):
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)


class SQLCredentialStore:
    """Store backed by the kv_entries table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self, key: str) -> Optional[str]:
        async with self._session_factory() as session:
            entry = await session.get(KeyValueEntry, key)
            return entry.value if entry else None

    async def set(self, key: str, value: str) -> None:
        async with self._session_factory() as session:
            entry = await session.get(KeyValueEntry, key)
            if entry is None:
                session.add(KeyValueEntry(key=key, value=value))
            else:
                entry.value = value
                entry.updated_at = datetime.now(timezone.utc)
            await session.commit()

    async def remove(self, key: str) -> None:
        async with self._session_factory() as session:
            entry = await session.get(KeyValueEntry, key)
            if entry is not None:
                await session.delete(entry)
                await session.commit()


async def resolve_api_key(store: CredentialStore, settings: Optional[Settings] = None) -> str:
    """
    Oracle access token: the stored one wins, the environment is the fallback.

    Raises:
        MissingCredential: Neither source has a non-empty key.
    """
    settings = settings or get_settings()
    stored = await store.get(API_KEY_STORE_KEY)
    if stored and stored.strip():
        return stored.strip()
    if settings.GEMINI_API_KEY.strip():
        return settings.GEMINI_API_KEY.strip()
    raise MissingCredential("No Gemini API key configured. Set GEMINI_API_KEY or PUT /credentials/api-key.")
