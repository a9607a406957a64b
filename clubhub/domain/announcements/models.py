"""Domain models for club announcements."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class AnnouncementAuthor(BaseModel):
	id: str
	name: str
	avatar_url: Optional[str] = None

	model_config = ConfigDict(frozen=True, extra="ignore")


class Announcement(BaseModel):
	id: str
	club_id: str
	title: str
	content: str
	created_by: str
	created_at: datetime
	author: Optional[AnnouncementAuthor] = None

	model_config = ConfigDict(frozen=True, from_attributes=True, extra="ignore")
