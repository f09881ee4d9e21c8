from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from recuerdos.core.config import Settings
from recuerdos.core.database import get_db
from recuerdos.core.errors import Forbidden, Unauthenticated
from recuerdos.core.rate_limit import auth_rate_limit, limiter
from recuerdos.core.security import CallerIdentity, decode_access_token
from recuerdos.schemas import Credentials
from recuerdos.services.auth_service import authenticate, delete_account, register_user
from recuerdos.services.storage import ObjectStorage

router = APIRouter(prefix="/api/auth", tags=["auth"])
bearer_scheme = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> ObjectStorage | None:
    return request.app.state.storage


async def require_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: Settings = Depends(get_app_settings),
) -> CallerIdentity:
    if credentials is None or not credentials.credentials:
        raise Unauthenticated()

    identity = decode_access_token(settings, credentials.credentials)
    if identity is None:
        raise Forbidden()
    return identity


@router.post("/register", status_code=201)
@limiter.limit(auth_rate_limit)
async def register(
    request: Request,
    payload: Credentials,
    db: AsyncSession = Depends(get_db),
):
    await register_user(db, payload)
    return {"message": "Usuario registrado exitosamente"}


@router.post("/login")
@limiter.limit(auth_rate_limit)
async def login(
    request: Request,
    payload: Credentials,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    token, user = await authenticate(db, settings, payload)
    return {"token": token, "username": user.username}


@router.get("/me")
async def get_me(caller: CallerIdentity = Depends(require_current_user)):
    return {"id": caller.user_id, "username": caller.username}


@router.delete("/me")
async def delete_me(
    caller: CallerIdentity = Depends(require_current_user),
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorage | None = Depends(get_storage),
):
    await delete_account(db, storage, caller)
    return {"message": "Cuenta eliminada exitosamente"}
