from __future__ import annotations

import json
from typing import Optional

from itsdangerous import BadData, URLSafeTimedSerializer

from portal.auth.config import AuthConfig
from portal.auth.models import DiscordUser

SESSION_COOKIE_NAME = "discord_user"
SESSION_SALT = "discord-user-session-v1"


def _serializer(cfg: AuthConfig) -> Optional[URLSafeTimedSerializer]:
    if not cfg.session_secret:
        return None
    return URLSafeTimedSerializer(secret_key=cfg.session_secret, salt=SESSION_SALT)


def encode_session(cfg: AuthConfig, user: DiscordUser) -> Optional[str]:
    s = _serializer(cfg)
    if s is None:
        return None
    # Identity only; the Discord access token is never stored.
    raw = json.dumps(user.to_dict(), separators=(",", ":"), sort_keys=True)
    return s.dumps(raw)


def decode_session(cfg: AuthConfig, value: str | None) -> Optional[DiscordUser]:
    if not value:
        return None
    s = _serializer(cfg)
    if s is None:
        return None
    try:
        raw = s.loads(value, max_age=cfg.session_ttl_seconds)
        data = json.loads(raw)
    except (BadData, TypeError, ValueError):
        return None
    return DiscordUser.from_dict(data)


def clear_session_cookie_kwargs(cfg: AuthConfig) -> dict:
    return {
        "key": SESSION_COOKIE_NAME,
        "value": "",
        "max_age": 0,
        "httponly": True,
        "secure": cfg.cookie_secure,
        "samesite": "lax",
        "path": "/",
    }


def session_cookie_kwargs(cfg: AuthConfig, value: str) -> dict:
    return {
        "key": SESSION_COOKIE_NAME,
        "value": value,
        "max_age": cfg.session_ttl_seconds,
        "httponly": True,
        "secure": cfg.cookie_secure,
        "samesite": "lax",
        "path": "/",
    }
