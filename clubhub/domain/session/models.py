"""Domain models for the signed-in identity and its session."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"


class Identity(BaseModel):
    """Profile row of the current user."""

    id: str
    email: str
    name: str
    avatar_url: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True, from_attributes=True, extra="ignore")


class RemoteSession(BaseModel):
    """Session handle issued by the remote auth service."""

    user_id: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True, extra="ignore")

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.now(timezone.utc)) >= self.expires_at


class ProfileUpdate(BaseModel):
    """Partial profile update; only fields explicitly set are sent."""

    name: Optional[str] = None
    avatar_url: Optional[str] = None
    phone: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)
