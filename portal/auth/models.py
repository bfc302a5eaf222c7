from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class DiscordUser:
    """Identity of the logged-in Discord account, as held in the session cookie."""

    id: str
    username: str
    email: Optional[str] = None
    avatar: Optional[str] = None  # Avatar hash, not a URL

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "username": self.username, "email": self.email, "avatar": self.avatar}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["DiscordUser"]:
        """
        Build a user from a decoded cookie or a Discord `/users/@me` payload.

        Returns None when the shape is wrong (missing id or username).
        """
        if not isinstance(data, dict):
            return None
        user_id = data.get("id")
        username = data.get("username")
        if user_id is None or not username:
            return None
        email = data.get("email")
        avatar = data.get("avatar")
        return cls(
            id=str(user_id),
            username=str(username),
            email=str(email) if email else None,
            avatar=str(avatar) if avatar else None,
        )
