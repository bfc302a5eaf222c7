"""
Discord OAuth2 authorization-code flow.

Three calls, each a single attempt:
- build the authorize URL the browser is redirected to,
- exchange the returned code for an access token,
- fetch the `/users/@me` profile with that token.
"""

from __future__ import annotations

from typing import Any, Dict
from urllib.parse import urlencode

import requests

from portal.auth.config import AuthConfig
from portal.auth.models import DiscordUser
from portal.core.errors import ConfigurationError

DISCORD_API_URL = "https://discord.com/api"
AUTHORIZE_URL = f"{DISCORD_API_URL}/oauth2/authorize"
TOKEN_URL = f"{DISCORD_API_URL}/oauth2/token"
PROFILE_URL = f"{DISCORD_API_URL}/users/@me"
SCOPE = "identify email"


class DiscordAuthError(Exception):
    """Discord rejected the code or returned something we cannot use."""


def build_authorize_url(cfg: AuthConfig) -> str:
    if not cfg.redirect_enabled:
        raise ConfigurationError("Missing Discord configuration")

    params = {
        "client_id": cfg.discord_client_id,
        "redirect_uri": cfg.discord_redirect_uri,
        "response_type": "code",
        "scope": SCOPE,
    }
    return f"{AUTHORIZE_URL}?{urlencode(params)}"


def exchange_code_for_token(cfg: AuthConfig, *, code: str) -> str:
    """
    Exchange an authorization code for an access token.

    Raises:
        ConfigurationError: client id/secret/redirect URI not configured
        DiscordAuthError: Discord refused the exchange or answered without a token
    """
    if not cfg.redirect_enabled or not cfg.discord_client_secret:
        raise ConfigurationError("Missing Discord configuration")

    payload = {
        "client_id": cfg.discord_client_id,
        "client_secret": cfg.discord_client_secret,
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": cfg.discord_redirect_uri,
    }
    try:
        r = requests.post(
            TOKEN_URL,
            data=payload,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            timeout=10,
        )
    except requests.RequestException as e:
        raise DiscordAuthError(f"Token exchange failed ({type(e).__name__})") from e
    if r.status_code >= 400:
        # Avoid leaking the code or secret; include minimal context.
        raise DiscordAuthError(f"Token exchange failed (status={r.status_code})")
    try:
        data: Dict[str, Any] = r.json()
    except ValueError as e:
        raise DiscordAuthError("Invalid token response") from e
    token = data.get("access_token") if isinstance(data, dict) else None
    if not token:
        raise DiscordAuthError("Token response missing access_token")
    return str(token)


def fetch_profile(access_token: str) -> DiscordUser:
    try:
        r = requests.get(PROFILE_URL, headers={"Authorization": f"Bearer {access_token}"}, timeout=10)
    except requests.RequestException as e:
        raise DiscordAuthError(f"Profile fetch failed ({type(e).__name__})") from e
    if r.status_code >= 400:
        raise DiscordAuthError(f"Profile fetch failed (status={r.status_code})")
    try:
        data = r.json()
    except ValueError as e:
        raise DiscordAuthError("Invalid profile response") from e
    user = DiscordUser.from_dict(data)
    if user is None:
        raise DiscordAuthError("Profile response missing id/username")
    return user
