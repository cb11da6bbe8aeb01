"""
Persistence behind an opaque key-value store.

Usage:
    from sportsim.storage import SQLCredentialStore, resolve_api_key

    store = SQLCredentialStore(session_factory)
    api_key = await resolve_api_key(store)
"""

from sportsim.storage.credentials import (
    API_KEY_STORE_KEY,
    CredentialStore,
    InMemoryCredentialStore,
    SQLCredentialStore,
    resolve_api_key,
)
from sportsim.storage.users import AuthResult, UserDirectory

__all__ = [
    "API_KEY_STORE_KEY",
    "AuthResult",
    "CredentialStore",
    "InMemoryCredentialStore",
    "SQLCredentialStore",
    "UserDirectory",
    "resolve_api_key",
]
