"""Domain models for clubs and memberships."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from clubhub.domain.session.models import Identity


class MemberRole(str, Enum):
    ADMIN = "admin"
    COMMITTEE = "committee"
    MEMBER = "member"


class Club(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    logo_url: Optional[str] = None
    invite_code: str
    created_by: str
    created_at: Optional[datetime] = None

    # Server computed (clubs_with_member_count view); 0 on plain table rows
    member_count: int = 0

    model_config = ConfigDict(frozen=True, from_attributes=True, extra="ignore")


class Membership(BaseModel):
    user_id: str
    club_id: str
    role: MemberRole
    joined_at: datetime
    user: Optional[Identity] = None

    model_config = ConfigDict(frozen=True, from_attributes=True, extra="ignore")
