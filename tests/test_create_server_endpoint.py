from __future__ import annotations

from typing import Any, Dict, List, Optional
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

import portal.api.app as web
from portal.auth.config import load_auth_config
from portal.auth.models import DiscordUser
from portal.auth.session import encode_session
from portal.panel.client import PanelAPIError

USER = DiscordUser(id="42", username="tester", email="tester@example.com")
BODY = {"user_uploaded_files": False, "auto_update": False, "mainFile": "main.py", "extraPackages": "discord.py"}


class RecordingPanel:
    def __init__(self, *, free: bool = True, user_error: Optional[PanelAPIError] = None) -> None:
        self.free = free
        self.user_error = user_error
        self.calls: List[str] = []
        self.server_payload: Optional[Dict[str, Any]] = None

    def find_user_by_external_id(self, external_id: str) -> Optional[Dict[str, Any]]:
        self.calls.append("find_user")
        return None

    def create_user(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append("create_user")
        if self.user_error is not None:
            raise self.user_error
        return {"id": 7}

    def list_nodes(self) -> List[Dict[str, Any]]:
        self.calls.append("list_nodes")
        return [{"id": 1}]

    def list_allocations(self, node_id: int) -> List[Dict[str, Any]]:
        self.calls.append("list_allocations")
        return [{"id": 10, "assigned": not self.free}]

    def create_server(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append("create_server")
        self.server_payload = payload
        return {"id": 555, "name": payload["name"]}


@pytest.fixture
def session_client(discord_env, panel_env) -> TestClient:
    c = TestClient(web.app)
    value = encode_session(load_auth_config(), USER)
    assert value
    c.cookies.set("discord_user", value)
    return c


def test_requires_session(discord_env, panel_env) -> None:
    c = TestClient(web.app)
    r = c.post("/api/create-server", json=BODY)
    assert r.status_code == 401
    assert r.json() == {"error": "Unauthorized"}


def test_tampered_session_is_unauthorized(discord_env, panel_env) -> None:
    c = TestClient(web.app)
    c.cookies.set("discord_user", "eyJpZCI6IjQyIn0.forged.signature")
    r = c.post("/api/create-server", json=BODY)
    assert r.status_code == 401


def test_invalid_json_is_400(session_client) -> None:
    r = session_client.post(
        "/api/create-server", content=b"{not json", headers={"Content-Type": "application/json"}
    )
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid JSON input"}


def test_missing_panel_config_is_500(discord_env) -> None:
    c = TestClient(web.app)
    value = encode_session(load_auth_config(), USER)
    c.cookies.set("discord_user", value)
    r = c.post("/api/create-server", json=BODY)
    assert r.status_code == 500
    assert r.json() == {"error": "Server configuration error"}


@pytest.mark.parametrize(
    "missing,detail",
    [
        ("user_uploaded_files", "The User Uploaded Files variable field is required."),
        ("auto_update", "The Auto Update variable field is required."),
        ("mainFile", "The App py file variable field is required."),
    ],
)
def test_missing_field_is_422(session_client, missing: str, detail: str) -> None:
    body = {k: v for k, v in BODY.items() if k != missing}
    panel = RecordingPanel()
    with patch("portal.api.app.get_panel_client", return_value=panel):
        r = session_client.post("/api/create-server", json=body)

    assert r.status_code == 422
    assert r.json() == {"errors": [{"code": "ValidationException", "status": "422", "detail": detail}]}
    assert panel.calls == []


def test_success_returns_server_and_normalizes_flags(session_client) -> None:
    panel = RecordingPanel()
    body = dict(BODY, auto_update="1", user_uploaded_files="false")
    with patch("portal.api.app.get_panel_client", return_value=panel):
        r = session_client.post("/api/create-server", json=body)

    assert r.status_code == 200
    assert r.json() == {"success": True, "server": {"id": 555, "name": "tester-bot"}}
    assert panel.server_payload is not None
    assert panel.server_payload["environment"]["AUTO_UPDATE"] == "1"
    assert panel.server_payload["environment"]["USER_UPLOAD"] == "0"
    assert '[[ "1" == "1" ]]' in panel.server_payload["startup"]


def test_no_allocation_is_503_without_server_creation(session_client) -> None:
    panel = RecordingPanel(free=False)
    with patch("portal.api.app.get_panel_client", return_value=panel):
        r = session_client.post("/api/create-server", json=BODY)

    assert r.status_code == 503
    assert r.json() == {"error": "No available server allocation found"}
    assert "create_server" not in panel.calls


def test_upstream_failure_is_500_with_details(session_client) -> None:
    upstream = {"errors": [{"code": "ValidationException", "status": "422", "detail": "The email has already been taken."}]}
    panel = RecordingPanel(user_error=PanelAPIError("POST /users failed (status=422)", status_code=422, payload=upstream))
    with patch("portal.api.app.get_panel_client", return_value=panel):
        r = session_client.post("/api/create-server", json=BODY)

    assert r.status_code == 500
    assert r.json() == {"error": "Failed to create server", "details": upstream}
    assert panel.calls == ["find_user", "create_user"]
