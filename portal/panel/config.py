from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional

DEFAULT_EGG_ID = 16
DEFAULT_DOCKER_IMAGE = "ghcr.io/parkervcp/yolks:python_3.12"


@dataclass(frozen=True)
class PanelConfig:
    api_key: Optional[str]  # Application API key (ptla_...)
    panel_url: Optional[str]  # Base URL, no trailing slash
    egg_id: int
    docker_image: str

    @property
    def enabled(self) -> bool:
        return bool(self.api_key and self.panel_url)

    def missing_settings(self) -> List[str]:
        missing = []
        if not self.api_key:
            missing.append("PTERO_API_KEY")
        if not self.panel_url:
            missing.append("PTERO_PANEL_URL")
        return missing


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@lru_cache(maxsize=1)
def load_panel_config() -> PanelConfig:
    """Load hosting panel configuration from environment variables (once per process)."""
    panel_url = (os.getenv("PTERO_PANEL_URL", "") or "").strip().rstrip("/") or None
    return PanelConfig(
        api_key=(os.getenv("PTERO_API_KEY", "") or "").strip() or None,
        panel_url=panel_url,
        egg_id=_env_int("PTERO_EGG_ID", DEFAULT_EGG_ID),
        docker_image=(os.getenv("PTERO_DOCKER_IMAGE", "") or "").strip() or DEFAULT_DOCKER_IMAGE,
    )
