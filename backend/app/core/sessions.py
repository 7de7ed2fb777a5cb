from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from app.core.time import from_unix, to_unix, utcnow

OAUTH_STATE_KEY = "oauth_state"


@dataclass(frozen=True)
class SessionData:
    """Authenticated identity carried in the signed cookie."""

    user_id: str
    email: str
    name: str
    picture: str
    expires_at: datetime

    def is_expired(self, now: datetime | None = None) -> bool:
        if now is None:
            now = utcnow()
        return now >= self.expires_at

    def to_values(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "email": self.email,
            "name": self.name,
            "picture": self.picture,
            "expires_at": to_unix(self.expires_at),
        }

    @classmethod
    def from_values(cls, values: dict[str, Any]) -> SessionData | None:
        """Rebuild a session from decoded cookie values.

        Returns None when there is no user id or the fields have the wrong
        shape. A session without a usable expiry is treated as absent.
        """

        user_id = values.get("user_id")
        expires_at = values.get("expires_at")
        if not isinstance(user_id, str) or not user_id:
            return None
        if isinstance(expires_at, bool) or not isinstance(expires_at, int):
            return None
        try:
            expires = from_unix(expires_at)
        except (OverflowError, OSError, ValueError):
            return None
        return cls(
            user_id=user_id,
            email=_str(values.get("email")),
            name=_str(values.get("name")),
            picture=_str(values.get("picture")),
            expires_at=expires,
        )


def _str(v: Any) -> str:
    return v if isinstance(v, str) else ""
