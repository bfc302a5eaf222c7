"""
Pterodactyl Application API client.

Only the calls the provisioning workflow needs: user lookup/creation, node and
allocation listing, server creation. All calls are synchronous and sequential.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol

import requests

from portal.core.errors import ConfigurationError
from portal.panel.config import PanelConfig

logger = logging.getLogger(__name__)

APPLICATION_API_PATH = "/api/application"


class PanelAPIError(Exception):
    """An Application API call failed (HTTP error status or transport error)."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, payload: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload

    @property
    def details(self) -> Any:
        """Upstream error body when the panel sent one, else the error message."""
        if self.payload is not None:
            return self.payload
        return str(self)


class PanelClient(Protocol):
    """Protocol for the subset of the panel API used by provisioning."""

    def find_user_by_external_id(self, external_id: str) -> Optional[Dict[str, Any]]:
        """
        Look up a panel user by `external_id`.

        Returns:
            The user's `attributes` dict, or None when no user matches
        """
        ...

    def create_user(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create a panel user and return its `attributes`."""
        ...

    def list_nodes(self) -> List[Dict[str, Any]]:
        """List node `attributes` in panel order."""
        ...

    def list_allocations(self, node_id: int) -> Iterable[Dict[str, Any]]:
        """List allocation `attributes` of a node in panel order (may be fetched lazily)."""
        ...

    def create_server(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create a server and return its `attributes`."""
        ...


class DefaultPanelClient:
    """
    Panel client using `requests` with a Bearer application API key.

    Errors are raised as PanelAPIError carrying the panel's JSON error body.
    """

    def __init__(self, cfg: PanelConfig) -> None:
        if not cfg.enabled:
            raise ConfigurationError("Server configuration error")
        self.base_url = f"{(cfg.panel_url or '').rstrip('/')}{APPLICATION_API_PATH}"
        self.api_key = cfg.api_key or ""

    def _make_request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        """
        Make an authenticated request to the Application API.

        Args:
            method: HTTP method (GET, POST, ...)
            path: Path below /api/application (e.g. "/nodes")
            **kwargs: Additional arguments for requests

        Returns:
            Decoded JSON body ({} for empty bodies)

        Raises:
            PanelAPIError on transport errors or HTTP error statuses
        """
        headers = kwargs.pop("headers", {})
        headers.update(
            {
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
        )
        kwargs["headers"] = headers
        kwargs.setdefault("timeout", 10)

        url = f"{self.base_url}{path}"
        try:
            response = requests.request(method, url, **kwargs)
        except requests.RequestException as e:
            raise PanelAPIError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = (response.text or "")[:500] or None
            raise PanelAPIError(
                f"{method} {path} failed (status={response.status_code})",
                status_code=response.status_code,
                payload=payload,
            )

        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as e:
            raise PanelAPIError(f"{method} {path} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise PanelAPIError(f"{method} {path} returned unexpected JSON")
        return data

    def _iter_list(self, path: str, params: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
        """
        Yield `attributes` of every item of a paginated list endpoint, in order.

        Pages are fetched lazily, so a consumer that stops early never requests the
        remaining pages. Follows `meta.pagination.total_pages`; responses without
        pagination metadata are a single page, and an empty page ends the listing.
        """
        page = 1
        while True:
            query = dict(params or {})
            query["page"] = page
            body = self._make_request("GET", path, params=query)
            data = body.get("data") or []
            if not isinstance(data, list):
                raise PanelAPIError(f"GET {path} returned unexpected list body")
            if not data:
                return
            for item in data:
                if isinstance(item, dict):
                    yield item.get("attributes") or {}

            pagination = (body.get("meta") or {}).get("pagination") or {}
            try:
                total_pages = int(pagination.get("total_pages") or 1)
            except (TypeError, ValueError, OverflowError):
                total_pages = 1
            if page >= total_pages:
                return
            page += 1

    def find_user_by_external_id(self, external_id: str) -> Optional[Dict[str, Any]]:
        body = self._make_request("GET", "/users", params={"filter[external_id]": external_id})
        data = body.get("data") or []
        if not isinstance(data, list):
            raise PanelAPIError("GET /users returned unexpected list body", payload=body)
        if not data:
            return None
        first = data[0]
        if not isinstance(first, dict) or not isinstance(first.get("attributes"), dict):
            raise PanelAPIError("GET /users returned unexpected user object", payload=body)
        return first["attributes"]

    def create_user(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        body = self._make_request("POST", "/users", json=payload)
        return body.get("attributes") or {}

    def list_nodes(self) -> List[Dict[str, Any]]:
        return list(self._iter_list("/nodes"))

    def list_allocations(self, node_id: int) -> Iterator[Dict[str, Any]]:
        return self._iter_list(f"/nodes/{node_id}/allocations")

    def create_server(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        body = self._make_request("POST", "/servers", json=payload)
        return body.get("attributes") or {}


def get_panel_client(cfg: PanelConfig) -> PanelClient:
    """Get the panel client for a configuration (raises ConfigurationError if incomplete)."""
    return DefaultPanelClient(cfg)
