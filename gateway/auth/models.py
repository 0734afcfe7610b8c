from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Session:
    """Server-side session record (the browser only sees the signed id)."""

    session_id: str
    email: str
    bearer_token: str = field(repr=False)  # never leaves the server
    is_verified: bool
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def to_status(self) -> dict:
        return {"email": self.email, "isVerified": bool(self.is_verified)}
