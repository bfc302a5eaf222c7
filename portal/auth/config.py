from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional

DEFAULT_SESSION_TTL_SECONDS = 24 * 3600


@dataclass(frozen=True)
class AuthConfig:
    # Discord OAuth application
    discord_client_id: Optional[str]
    discord_client_secret: Optional[str]
    discord_redirect_uri: Optional[str]

    # Session configuration
    session_secret: Optional[str]  # Required for cookie signing
    session_ttl_seconds: int
    cookie_secure: bool

    @property
    def redirect_enabled(self) -> bool:
        """The authorize redirect only needs the public client id and redirect URI."""
        return bool(self.discord_client_id and self.discord_redirect_uri)

    @property
    def callback_enabled(self) -> bool:
        """The callback additionally needs the client secret and a signing key."""
        return bool(self.redirect_enabled and self.discord_client_secret and self.session_secret)

    def missing_settings(self) -> List[str]:
        missing = []
        if not self.discord_client_id:
            missing.append("DISCORD_CLIENT_ID")
        if not self.discord_client_secret:
            missing.append("DISCORD_CLIENT_SECRET")
        if not self.discord_redirect_uri:
            missing.append("DISCORD_REDIRECT_URI")
        if not self.session_secret:
            missing.append("SESSION_SECRET")
        return missing


def _env_str(name: str) -> Optional[str]:
    return (os.getenv(name, "") or "").strip() or None


@lru_cache(maxsize=1)
def load_auth_config() -> AuthConfig:
    """
    Load Discord OAuth and session configuration from environment variables.

    Loaded once per process; tests call `load_auth_config.cache_clear()` after
    changing the environment.
    """
    redirect_uri = _env_str("DISCORD_REDIRECT_URI")
    cookie_secure_env = (os.getenv("COOKIE_SECURE", "") or "").strip().lower()
    if cookie_secure_env in ("1", "true", "yes", "on"):
        cookie_secure = True
    elif cookie_secure_env in ("0", "false", "no", "off"):
        cookie_secure = False
    else:
        # Default: secure cookies when the callback is served over https; otherwise allow local dev.
        cookie_secure = True if (redirect_uri or "").startswith("https://") else False

    raw_ttl = (os.getenv("SESSION_TTL_SECONDS", "") or "").strip() or str(DEFAULT_SESSION_TTL_SECONDS)
    try:
        ttl = int(float(raw_ttl))
    except (ValueError, OverflowError):
        ttl = DEFAULT_SESSION_TTL_SECONDS
    if ttl <= 60:
        ttl = 60

    return AuthConfig(
        discord_client_id=_env_str("DISCORD_CLIENT_ID"),
        discord_client_secret=_env_str("DISCORD_CLIENT_SECRET"),
        discord_redirect_uri=redirect_uri,
        session_secret=_env_str("SESSION_SECRET"),
        session_ttl_seconds=ttl,
        cookie_secure=cookie_secure,
    )
