from __future__ import annotations

from typing import Optional

from fastapi import Request

from portal.auth.config import load_auth_config
from portal.auth.models import DiscordUser
from portal.auth.session import SESSION_COOKIE_NAME, decode_session


def has_session_cookie(request: Request) -> bool:
    return bool(request.cookies.get(SESSION_COOKIE_NAME))


def authenticate_request(request: Request) -> Optional[DiscordUser]:
    """
    Authenticate a request and return the Discord identity if present/valid.

    A missing, tampered, expired or malformed cookie all yield None.
    """
    cfg = load_auth_config()
    return decode_session(cfg, request.cookies.get(SESSION_COOKIE_NAME))
