from __future__ import annotations

from fastapi.testclient import TestClient

import portal.api.app as web
from portal.auth.config import load_auth_config
from portal.auth.models import DiscordUser
from portal.auth.session import encode_session

USER = DiscordUser(id="42", username="tester", email="tester@example.com", avatar=None)


def _client_with_session(user: DiscordUser = USER) -> TestClient:
    c = TestClient(web.app)
    value = encode_session(load_auth_config(), user)
    assert value
    c.cookies.set("discord_user", value)
    return c


def test_healthz_is_public() -> None:
    c = TestClient(web.app)
    r = c.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_user_requires_cookie(discord_env) -> None:
    c = TestClient(web.app)
    r = c.get("/api/user")
    assert r.status_code == 401
    # No browser auth popup.
    assert "www-authenticate" not in {k.lower() for k in r.headers.keys()}


def test_user_rejects_malformed_cookie(discord_env) -> None:
    c = TestClient(web.app)
    c.cookies.set("discord_user", "not-a-signed-value")
    r = c.get("/api/user")
    assert r.status_code == 400
    assert r.text == "Invalid user data"


def test_user_returns_identity(discord_env) -> None:
    c = _client_with_session()
    r = c.get("/api/user")
    assert r.status_code == 200
    assert r.json() == {"id": "42", "username": "tester", "email": "tester@example.com", "avatar": None}
    assert r.headers.get("cache-control") == "no-store"


def test_logout_clears_session(discord_env) -> None:
    c = _client_with_session()
    r = c.post("/api/auth/logout")
    assert r.status_code == 200
    assert r.json() == {"ok": True}

    cookies = r.headers.get("set-cookie", "").lower()
    assert cookies.startswith("discord_user=")
    assert "max-age=0" in cookies


def test_landing_page_shows_error() -> None:
    c = TestClient(web.app)
    r = c.get("/?error=auth_failed")
    assert r.status_code == 200
    assert "Discord login failed" in r.text
    assert 'href="/api/auth/discord"' in r.text


def test_landing_page_escapes_unknown_error() -> None:
    c = TestClient(web.app)
    r = c.get("/", params={"error": "<script>x</script>"})
    assert r.status_code == 200
    assert "<script>x</script>" not in r.text
    assert "&lt;script&gt;" in r.text


def test_dashboard_page_posts_fixed_request() -> None:
    c = TestClient(web.app)
    r = c.get("/dashboard")
    assert r.status_code == 200
    assert "/api/create-server" in r.text
    assert 'extraPackages: "discord.py"' in r.text
    assert "/api/auth/logout" in r.text
