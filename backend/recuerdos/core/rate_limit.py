from __future__ import annotations

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from recuerdos.core.config import get_settings
from recuerdos.core.security import decode_access_token


def user_rate_limit_key(request: Request) -> str:
    authorization = request.headers.get("authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token:
        settings = getattr(request.app.state, "settings", None) or get_settings()
        identity = decode_access_token(settings, token)
        if identity is not None:
            return f"user:{identity.user_id}"
    return f"anon:{get_remote_address(request)}"


def auth_rate_limit() -> str:
    return get_settings().AUTH_RATE_LIMIT


limiter = Limiter(key_func=user_rate_limit_key, enabled=get_settings().RATE_LIMIT_ENABLED)
