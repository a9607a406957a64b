"""Input schemas for club mutations."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ClubUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    logo_url: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)
