"""Credential and user-directory routes.

- /credentials/api-key: admin only (X-API-Key), stores or clears the oracle key
- /auth/*: invite-gated local accounts and the active session marker
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from sportsim.llm.errors import MissingCredential
from sportsim.security import limiter, verify_api_key
from sportsim.state import Services, get_services, get_user_directory
from sportsim.storage import API_KEY_STORE_KEY, UserDirectory, resolve_api_key

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


class ApiKeyRequest(BaseModel):
    api_key: str = Field(min_length=1)


class RegisterRequest(BaseModel):
    username: str
    password: str
    invite_code: str = ""


class LoginRequest(BaseModel):
    username: str
    password: str


class AuthResponse(BaseModel):
    success: bool
    message: str


class SessionResponse(BaseModel):
    username: Optional[str] = None


@router.put("/credentials/api-key", dependencies=[Depends(verify_api_key)])
async def set_api_key(body: ApiKeyRequest, services: Services = Depends(get_services)):
    """Persist the oracle access token and refresh the cached copy."""
    await services.store.set(API_KEY_STORE_KEY, body.api_key.strip())
    services.oracle.set_api_key(body.api_key)
    logger.info("Oracle API key updated")
    return {"configured": True}


@router.delete("/credentials/api-key", dependencies=[Depends(verify_api_key)])
async def remove_api_key(services: Services = Depends(get_services)):
    """Forget the stored token; the environment key (if any) takes over."""
    await services.store.remove(API_KEY_STORE_KEY)
    try:
        services.oracle.set_api_key(await resolve_api_key(services.store, services.settings))
    except MissingCredential:
        services.oracle.set_api_key(None)
    logger.info("Oracle API key removed")
    return {"configured": services.oracle.has_api_key}


@router.post("/auth/register", response_model=AuthResponse)
@limiter.limit("10/minute")
async def register(request: Request, body: RegisterRequest, users: UserDirectory = Depends(get_user_directory)):
    result = await users.register(body.username, body.password, body.invite_code)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.message)
    return AuthResponse(success=True, message=result.message)


@router.post("/auth/login", response_model=AuthResponse)
@limiter.limit("10/minute")
async def login(request: Request, body: LoginRequest, users: UserDirectory = Depends(get_user_directory)):
    result = await users.login(body.username, body.password)
    if not result.success:
        raise HTTPException(status_code=401, detail=result.message)
    return AuthResponse(success=True, message=result.message)


@router.get("/auth/session", response_model=SessionResponse)
async def session(users: UserDirectory = Depends(get_user_directory)):
    return SessionResponse(username=await users.check_session())


@router.post("/auth/logout", response_model=SessionResponse)
async def logout(users: UserDirectory = Depends(get_user_directory)):
    await users.logout()
    return SessionResponse(username=None)
