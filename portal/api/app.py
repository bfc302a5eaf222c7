"""
Hosting portal web server.

Discord login (OAuth2 code flow), a signed identity cookie, and a single
provisioning endpoint that creates a bot server on the hosting panel.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse

from portal.api.pages import render_dashboard_page, render_landing_page
from portal.auth.config import load_auth_config
from portal.auth.deps import authenticate_request, has_session_cookie
from portal.auth.discord import DiscordAuthError, build_authorize_url, exchange_code_for_token, fetch_profile
from portal.auth.session import clear_session_cookie_kwargs, encode_session, session_cookie_kwargs
from portal.core.errors import ConfigurationError
from portal.panel.client import PanelAPIError, get_panel_client
from portal.panel.config import load_panel_config
from portal.panel.provision import (
    NoAllocationAvailable,
    ValidationFailure,
    parse_provision_request,
    provision_server,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Bot hosting portal")


def _is_public_path(path: str) -> bool:
    # Only API handlers read the identity; pages and the OAuth flow never do.
    if not path.startswith("/api/"):
        return True
    if path.startswith("/api/auth/"):
        return True
    return False


@app.on_event("startup")
def _startup_validate_config() -> None:
    """
    Load configuration once and report what is missing.

    Never prevents the server from starting; handlers that need a missing
    setting answer with a configuration error instead.
    """
    auth_cfg = load_auth_config()
    panel_cfg = load_panel_config()
    missing = auth_cfg.missing_settings() + panel_cfg.missing_settings()
    if missing:
        logger.warning("Configuration incomplete, missing: %s", ", ".join(missing))
    # Avoid logging secrets; flags and the panel host are fine.
    logger.info(
        "Config: discord_redirect=%s discord_callback=%s cookie_secure=%s session_ttl=%ss panel=%s egg=%s",
        auth_cfg.redirect_enabled,
        auth_cfg.callback_enabled,
        auth_cfg.cookie_secure,
        auth_cfg.session_ttl_seconds,
        panel_cfg.panel_url or "-",
        panel_cfg.egg_id,
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming HTTP requests and attach the session identity to API calls."""
    start_time = time.time()
    logger.debug("%s %s", request.method, request.url.path)
    try:
        path = request.url.path or ""
        request.state.user = None
        if request.method != "OPTIONS" and not _is_public_path(path):
            request.state.user = authenticate_request(request)

        response = await call_next(request)
        process_time = time.time() - start_time
        logger.debug("%s %s - %d (%.3fs)", request.method, request.url.path, response.status_code, process_time)
        return response
    except Exception as e:
        process_time = time.time() - start_time
        logger.exception("%s %s - ERROR after %.3fs: %s", request.method, request.url.path, process_time, str(e))
        raise


@app.get("/healthz")
def healthz() -> Dict[str, Any]:
    return {"ok": True}


@app.get("/", response_class=HTMLResponse)
def landing(error: Optional[str] = Query(None)) -> HTMLResponse:
    return HTMLResponse(render_landing_page(error))


@app.get("/dashboard", response_class=HTMLResponse)
def dashboard() -> HTMLResponse:
    resp = HTMLResponse(render_dashboard_page())
    resp.headers["Cache-Control"] = "no-store"
    return resp


@app.get("/api/auth/discord")
def auth_login_discord():
    """Redirect the browser to Discord's authorization page."""
    cfg = load_auth_config()
    try:
        url = build_authorize_url(cfg)
    except ConfigurationError as e:
        logger.error("Discord login unavailable: %s", str(e))
        return PlainTextResponse(str(e), status_code=500)
    return RedirectResponse(url=url, status_code=302)


@app.get("/api/auth/discord/callback")
def auth_callback_discord(code: Optional[str] = Query(None)):
    """Handle Discord's redirect: exchange the code, fetch the profile, set the identity cookie."""
    if not code:
        return RedirectResponse(url="/?error=no_code", status_code=302)

    cfg = load_auth_config()
    if not cfg.callback_enabled:
        logger.error("Discord callback unavailable, missing: %s", ", ".join(cfg.missing_settings()))
        return PlainTextResponse("Missing Discord configuration", status_code=500)

    try:
        access_token = exchange_code_for_token(cfg, code=code)
        user = fetch_profile(access_token)
    except DiscordAuthError as e:
        logger.error("Discord OAuth error: %s", str(e))
        return RedirectResponse(url="/?error=auth_failed", status_code=302)

    session_value = encode_session(cfg, user)
    if not session_value:
        return PlainTextResponse("Session signing is not configured (SESSION_SECRET)", status_code=500)

    logger.info("Discord login discord_id=%s", user.id)
    resp = RedirectResponse(url="/dashboard", status_code=302)
    resp.headers["Cache-Control"] = "no-store"
    resp.set_cookie(**session_cookie_kwargs(cfg, session_value))
    return resp


@app.post("/api/auth/logout")
def auth_logout() -> JSONResponse:
    # The cookie is HttpOnly, so only the server can clear it.
    cfg = load_auth_config()
    resp = JSONResponse(content={"ok": True})
    resp.headers["Cache-Control"] = "no-store"
    resp.set_cookie(**clear_session_cookie_kwargs(cfg))
    return resp


@app.get("/api/user")
def current_user(request: Request):
    user = getattr(request.state, "user", None)
    if user is None:
        if has_session_cookie(request):
            return PlainTextResponse("Invalid user data", status_code=400)
        return PlainTextResponse("Unauthorized", status_code=401)
    return JSONResponse(content=user.to_dict(), headers={"Cache-Control": "no-store"})


@app.post("/api/create-server")
async def create_server(request: Request) -> JSONResponse:
    """
    Provision a bot server for the logged-in Discord user.

    Status codes: 401 no session, 400 bad JSON, 500 config/upstream failure,
    422 missing field, 503 no free allocation.
    """
    user = getattr(request.state, "user", None)
    if user is None:
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})

    try:
        body = await request.json()
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Invalid JSON input"})
    if not isinstance(body, dict):
        return JSONResponse(status_code=400, content={"error": "Invalid JSON input"})

    panel_cfg = load_panel_config()
    if not panel_cfg.enabled:
        logger.error("Panel unavailable, missing: %s", ", ".join(panel_cfg.missing_settings()))
        return JSONResponse(status_code=500, content={"error": "Server configuration error"})

    try:
        req = parse_provision_request(body)
    except ValidationFailure as e:
        return JSONResponse(status_code=422, content=e.to_body())

    try:
        client = get_panel_client(panel_cfg)
        server = provision_server(panel_cfg, client, user=user, req=req)
    except NoAllocationAvailable as e:
        logger.warning("No free allocation for discord_id=%s", user.id)
        return JSONResponse(status_code=503, content={"error": str(e)})
    except ConfigurationError as e:
        return JSONResponse(status_code=500, content={"error": str(e)})
    except PanelAPIError as e:
        logger.error("Pterodactyl API error: %s details=%s", str(e), e.details)
        return JSONResponse(status_code=500, content={"error": "Failed to create server", "details": e.details})

    return JSONResponse(content={"success": True, "server": server})


def run(host: str = "0.0.0.0", port: int = 8080) -> None:
    import uvicorn

    # Configure logging for the application
    log_level = os.getenv("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    # Map Python logging levels to uvicorn log levels
    uvicorn_log_level = (
        log_level.lower() if log_level.lower() in ["critical", "error", "warning", "info", "debug", "trace"] else "info"
    )

    logger.info("Starting portal server on %s:%d (log_level=%s)", host, port, log_level)
    uvicorn.run(app, host=host, port=port, log_level=uvicorn_log_level)
