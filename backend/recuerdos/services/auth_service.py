from __future__ import annotations

import logging
from functools import lru_cache

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from recuerdos.core.config import Settings
from recuerdos.core.errors import Conflict, DatabaseUnavailable, InvalidCredentials, NotFound
from recuerdos.core.security import CallerIdentity, create_access_token, hash_password, verify_password
from recuerdos.models.user import User
from recuerdos.schemas import Credentials
from recuerdos.services.memory_store import MemoryStore
from recuerdos.services.storage import ObjectStorage, discard_blob

logger = logging.getLogger(__name__)


@lru_cache
def _dummy_password_hash() -> str:
    return hash_password("recuerdos-dummy-password")


def _check_password(password: str, password_hash: str | None) -> bool:
    # unknown users are checked against a dummy hash so both failures cost the same
    if password_hash is None:
        verify_password(password, _dummy_password_hash())
        return False
    return verify_password(password, password_hash)


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    try:
        result = await db.execute(select(User).where(User.username == username))
    except SQLAlchemyError as exc:
        logger.exception("auth event=user_lookup_failed")
        raise DatabaseUnavailable() from exc
    return result.scalar_one_or_none()


async def register_user(db: AsyncSession, credentials: Credentials) -> User:
    if await get_user_by_username(db, credentials.username) is not None:
        raise Conflict()

    # bcrypt is CPU bound; keep it off the event loop
    password_hash = await run_in_threadpool(hash_password, credentials.password)
    user = User(username=credentials.username, password_hash=password_hash)
    db.add(user)
    try:
        await db.commit()
    except IntegrityError as exc:
        # lost a race with a concurrent registration of the same name
        await db.rollback()
        raise Conflict() from exc
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("auth event=register_failed")
        raise DatabaseUnavailable() from exc

    logger.info("auth event=registered user_id=%s", user.id)
    return user


async def authenticate(db: AsyncSession, settings: Settings, credentials: Credentials) -> tuple[str, User]:
    user = await get_user_by_username(db, credentials.username)
    password_hash = user.password_hash if user is not None else None
    # unknown user and wrong password are reported identically
    if not await run_in_threadpool(_check_password, credentials.password, password_hash):
        logger.info("auth event=login_rejected")
        raise InvalidCredentials()

    token = create_access_token(settings, user_id=user.id, username=user.username)
    logger.info("auth event=login user_id=%s", user.id)
    return token, user


async def delete_account(db: AsyncSession, storage: ObjectStorage | None, caller: CallerIdentity) -> None:
    keys = await MemoryStore(db).storage_keys(caller.user_id)

    try:
        result = await db.execute(delete(User).where(User.id == caller.user_id))
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("auth event=account_delete_failed user_id=%s", caller.user_id)
        raise DatabaseUnavailable() from exc
    if result.rowcount == 0:
        raise NotFound("Usuario no encontrado")

    for key in keys:
        await discard_blob(storage, key, "account_deleted")
    logger.info("auth event=account_deleted user_id=%s memories=%s", caller.user_id, len(keys))
