"""
Local user directory gated by invite codes.

Users live as one JSON document in the credential store; the active session
is a single marker holding the logged-in username. Passwords are stored as
salted PBKDF2 hashes.
"""

import asyncio
import hashlib
import hmac
import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sportsim.config import Settings, get_settings, parse_invite_codes
from sportsim.storage.credentials import CredentialStore

logger = logging.getLogger(__name__)

USERS_KEY = "sportsim_users"
SESSION_KEY = "sportsim_session"

PBKDF2_ITERATIONS = 200_000


@dataclass
class AuthResult:
    success: bool
    message: str


def hash_password(password: str, salt: Optional[bytes] = None) -> tuple[str, str]:
    """Return (salt_hex, hash_hex)."""
    salt = salt or os.urandom(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return salt.hex(), digest.hex()


def verify_password(password: str, salt_hex: str, hash_hex: str) -> bool:
    _, candidate = hash_password(password, bytes.fromhex(salt_hex))
    return hmac.compare_digest(candidate, hash_hex)


class UserDirectory:
    """Register/login/logout against the credential store."""

    def __init__(self, store: CredentialStore, settings: Optional[Settings] = None):
        self.store = store
        settings = settings or get_settings()
        self.invite_codes = parse_invite_codes(settings.ALLOWED_INVITE_CODES)
        self.min_password_length = settings.USER_MIN_PASSWORD_LENGTH
        # Created on first use so it binds to the serving event loop
        self._write_lock: Optional[asyncio.Lock] = None

    @property
    def write_lock(self) -> asyncio.Lock:
        if self._write_lock is None:
            self._write_lock = asyncio.Lock()
        return self._write_lock

    async def get_users(self) -> list[dict]:
        raw = await self.store.get(USERS_KEY)
        if not raw:
            return []
        try:
            users = json.loads(raw)
        except json.JSONDecodeError:
            logger.error("[USERS] Stored user directory is corrupt, treating as empty")
            return []
        return users if isinstance(users, list) else []

    def validate_invite(self, code: str) -> bool:
        """Empty invite list = open registration."""
        if not self.invite_codes:
            return True
        return (code or "").strip() in self.invite_codes

    async def register(self, username: str, password: str, invite_code: str = "") -> AuthResult:
        username = (username or "").strip()
        if not self.validate_invite(invite_code):
            return AuthResult(False, "Invalid or expired invite code.")
        if not username:
            return AuthResult(False, "Username is required.")
        if len(password or "") < self.min_password_length:
            return AuthResult(False, f"Password must have at least {self.min_password_length} characters.")

        salt, digest = hash_password(password)

        # Read-modify-write of the whole directory: one registration at a time
        async with self.write_lock:
            users = await self.get_users()
            if any(u.get("username", "").lower() == username.lower() for u in users):
                return AuthResult(False, "User already exists.")

            users.append({
                "username": username,
                "password_salt": salt,
                "password_hash": digest,
                "access_code": (invite_code or "").strip(),
                "created_at": datetime.now(timezone.utc).isoformat(),
            })
            await self.store.set(USERS_KEY, json.dumps(users))
        logger.info(f"[USERS] Registered {username}")

        # Auto-login after registration
        await self.store.set(SESSION_KEY, username)
        return AuthResult(True, "Account created.")

    async def login(self, username: str, password: str) -> AuthResult:
        username = (username or "").strip()
        for user in await self.get_users():
            if user.get("username", "").lower() != username.lower():
                continue
            if verify_password(password or "", user.get("password_salt", ""), user.get("password_hash", "")):
                await self.store.set(SESSION_KEY, user["username"])
                return AuthResult(True, f"Welcome back, {user['username']}.")
            break
        return AuthResult(False, "Wrong username or password.")

    async def check_session(self) -> Optional[str]:
        return await self.store.get(SESSION_KEY)

    async def logout(self) -> None:
        await self.store.remove(SESSION_KEY)
