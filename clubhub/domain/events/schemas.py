"""Input schemas for event mutations."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class EventCreate(BaseModel):
	club_id: str
	title: str = Field(..., min_length=1, max_length=200)
	description: Optional[str] = None
	location: Optional[str] = None
	location_lat: Optional[float] = Field(default=None, ge=-90, le=90)
	location_lng: Optional[float] = Field(default=None, ge=-180, le=180)
	start_time: datetime
	end_time: Optional[datetime] = None

	model_config = ConfigDict(extra="forbid")

	@model_validator(mode="after")
	def _check_window(self) -> "EventCreate":
		if self.end_time is not None and self.end_time < self.start_time:
			raise ValueError("end_time must not precede start_time")
		return self


class EventUpdate(BaseModel):
	title: Optional[str] = Field(default=None, min_length=1, max_length=200)
	description: Optional[str] = None
	location: Optional[str] = None
	location_lat: Optional[float] = Field(default=None, ge=-90, le=90)
	location_lng: Optional[float] = Field(default=None, ge=-180, le=180)
	start_time: Optional[datetime] = None
	end_time: Optional[datetime] = None

	model_config = ConfigDict(extra="forbid")

	def changes(self) -> dict:
		return self.model_dump(mode="json", exclude_unset=True)
