"""
Server provisioning workflow.

One sequential pass per request:
1. find (or create) the panel user whose external_id is the Discord id,
2. pick the first unassigned allocation, scanning nodes in panel order,
3. render the startup script,
4. create the server with fixed resource limits.

There is no compensation: if a later step fails, a panel user created in step 1
stays on the panel (it is reused on the next attempt via external_id).
"""

from __future__ import annotations

import logging
import re
import secrets
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from portal.auth.models import DiscordUser
from portal.panel.client import PanelAPIError, PanelClient
from portal.panel.config import PanelConfig

logger = logging.getLogger(__name__)

REQUIREMENTS_FILE = "requirements.txt"

SERVER_LIMITS: Dict[str, int] = {
    "memory": 200,  # MB
    "swap": 0,
    "disk": 500,  # MB
    "io": 500,
    "cpu": 20,  # percent of one core
}
SERVER_FEATURE_LIMITS: Dict[str, int] = {"databases": 0, "allocations": 1, "backups": 0}


class ValidationFailure(Exception):
    """A required provisioning field is missing (rendered as a 422)."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def to_body(self) -> Dict[str, Any]:
        return {"errors": [{"code": "ValidationException", "status": "422", "detail": self.detail}]}


class NoAllocationAvailable(Exception):
    """Every allocation on every node is assigned (or there are no nodes)."""


def normalize_flag(value: Any) -> bool:
    # Form-style strings: only "1" and "true" are truthy.
    if isinstance(value, str):
        return value == "1" or value == "true"
    return bool(value)


def _flag(value: bool) -> str:
    return "1" if value else "0"


class ProvisionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    main_file: str = Field(alias="mainFile")
    extra_packages: str = Field(default="", alias="extraPackages")
    user_uploaded_files: bool
    auto_update: bool

    @field_validator("user_uploaded_files", "auto_update", mode="before")
    @classmethod
    def _normalize_flags(cls, v: Any) -> bool:
        return normalize_flag(v)

    @field_validator("main_file", "extra_packages", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        if v is None:
            return ""
        return str(v)


def parse_provision_request(body: Dict[str, Any]) -> ProvisionRequest:
    """
    Validate a create-server body in a fixed order and normalize its flags.

    Raises:
        ValidationFailure naming the first missing field
    """
    if "user_uploaded_files" not in body:
        raise ValidationFailure("The User Uploaded Files variable field is required.")
    if "auto_update" not in body:
        raise ValidationFailure("The Auto Update variable field is required.")
    if not body.get("mainFile"):
        raise ValidationFailure("The App py file variable field is required.")

    return ProvisionRequest(
        mainFile=body.get("mainFile"),
        extraPackages=body.get("extraPackages") or "",
        user_uploaded_files=body.get("user_uploaded_files"),
        auto_update=body.get("auto_update"),
    )


def derive_panel_username(user: DiscordUser) -> str:
    """Lowercase Discord username with anything outside [a-z0-9] removed."""
    name = re.sub(r"[^a-z0-9]", "", user.username.lower())
    return name or f"user{user.id}"


def find_or_create_panel_user(client: PanelClient, user: DiscordUser) -> Tuple[int, bool]:
    """
    Return (panel user id, created) for a Discord identity.

    A failed lookup is logged and treated as "no such user".
    """
    existing: Optional[Dict[str, Any]] = None
    try:
        existing = client.find_user_by_external_id(user.id)
    except PanelAPIError as e:
        logger.error("Error finding panel user for discord_id=%s: %s", user.id, str(e))

    if existing and existing.get("id") is not None:
        return int(existing["id"]), False

    created = client.create_user(
        {
            "username": derive_panel_username(user),
            "email": user.email,
            "first_name": user.username,
            "last_name": "Bot",
            "external_id": user.id,
            "password": secrets.token_urlsafe(12),
        }
    )
    if created.get("id") is None:
        raise PanelAPIError("Panel user creation returned no id", payload=created or None)
    logger.info("Created panel user id=%s for discord_id=%s", created["id"], user.id)
    return int(created["id"]), True


def find_free_allocation(client: PanelClient) -> Tuple[int, int]:
    """
    Return (node id, allocation id) of the first unassigned allocation.

    Nodes are scanned in panel order and allocations in listing order; the scan
    stops at the first match, so later allocation pages are never fetched.
    """
    for node in client.list_nodes():
        node_id = node.get("id")
        if node_id is None:
            continue
        for allocation in client.list_allocations(int(node_id)):
            if not allocation.get("assigned") and allocation.get("id") is not None:
                return int(node_id), int(allocation["id"])
    raise NoAllocationAvailable("No available server allocation found")


def build_startup_script(*, auto_update: bool, extra_packages: str) -> str:
    # Values are substituted verbatim; ${...} placeholders are expanded by the panel.
    lines = [
        f'if [[ -d .git ]] && [[ "{_flag(auto_update)}" == "1" ]]; then git pull; fi;',
        f'if [[ -n "{extra_packages}" ]]; then pip install -U --prefix .local {extra_packages}; fi;',
        "if [[ -f /home/container/${REQUIREMENTS_FILE} ]]; then "
        "pip install -U --prefix .local -r /home/container/${REQUIREMENTS_FILE}; fi;",
        "/usr/local/bin/python /home/container/${PY_FILE}",
    ]
    return " ".join(lines)


def build_server_payload(
    cfg: PanelConfig,
    *,
    user: DiscordUser,
    panel_user_id: int,
    allocation_id: int,
    req: ProvisionRequest,
) -> Dict[str, Any]:
    return {
        "name": f"{user.username}-bot",
        "user": panel_user_id,
        "egg": cfg.egg_id,
        "docker_image": cfg.docker_image,
        "startup": build_startup_script(auto_update=req.auto_update, extra_packages=req.extra_packages),
        "environment": {
            "PY_FILE": req.main_file,
            "REQUIREMENTS_FILE": REQUIREMENTS_FILE,
            "USER_UPLOAD": _flag(req.user_uploaded_files),
            "AUTO_UPDATE": _flag(req.auto_update),
            "PY_PACKAGES": req.extra_packages,
        },
        "limits": dict(SERVER_LIMITS),
        "feature_limits": dict(SERVER_FEATURE_LIMITS),
        "allocation": {"default": allocation_id},
    }


def provision_server(
    cfg: PanelConfig,
    client: PanelClient,
    *,
    user: DiscordUser,
    req: ProvisionRequest,
) -> Dict[str, Any]:
    """
    Run the provisioning workflow and return the created server's attributes.

    Raises:
        NoAllocationAvailable: no free allocation (no server creation attempted)
        PanelAPIError: any other panel call failed
    """
    panel_user_id, created = find_or_create_panel_user(client, user)
    try:
        node_id, allocation_id = find_free_allocation(client)
        logger.info("Selected allocation id=%s on node id=%s", allocation_id, node_id)
        payload = build_server_payload(
            cfg, user=user, panel_user_id=panel_user_id, allocation_id=allocation_id, req=req
        )
        server = client.create_server(payload)
    except (NoAllocationAvailable, PanelAPIError):
        if created:
            logger.warning(
                "Provisioning failed after creating panel user id=%s (discord_id=%s); user left in place",
                panel_user_id,
                user.id,
            )
        raise

    logger.info("Created server id=%s for discord_id=%s", server.get("id"), user.id)
    return server
