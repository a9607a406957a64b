"""Input schemas for announcement mutations."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AnnouncementCreate(BaseModel):
	club_id: str
	title: str = Field(..., min_length=1, max_length=200)
	content: str = Field(..., min_length=1)

	model_config = ConfigDict(extra="forbid")


class AnnouncementUpdate(BaseModel):
	title: Optional[str] = Field(default=None, min_length=1, max_length=200)
	content: Optional[str] = Field(default=None, min_length=1)

	model_config = ConfigDict(extra="forbid")

	def changes(self) -> dict:
		return self.model_dump(exclude_unset=True)
