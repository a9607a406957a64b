"""Domain models for club events and RSVPs."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict

from clubhub.domain.session.models import Identity


class RsvpStatus(str, Enum):
	GOING = "going"
	MAYBE = "maybe"
	NOT_GOING = "not_going"


class RsvpCounts(BaseModel):
	"""Per-status totals as computed by the events_with_rsvp_counts view."""

	going: int = 0
	maybe: int = 0
	not_going: int = 0

	model_config = ConfigDict(frozen=True)


class Event(BaseModel):
	"""A club event joined with its server-side RSVP aggregate."""

	id: str
	club_id: str
	title: str
	description: Optional[str] = None
	location: Optional[str] = None
	location_lat: Optional[float] = None
	location_lng: Optional[float] = None
	start_time: datetime
	end_time: Optional[datetime] = None
	created_by: str
	created_at: Optional[datetime] = None
	rsvp_counts: RsvpCounts = RsvpCounts()
	user_rsvp: Optional[RsvpStatus] = None

	model_config = ConfigDict(frozen=True, from_attributes=True, extra="ignore")

	def is_past(self, now: Optional[datetime] = None) -> bool:
		"""True iff the event started strictly before ``now``."""
		return self.start_time < (now or datetime.now(timezone.utc))


class Rsvp(BaseModel):
	event_id: str
	user_id: str
	status: RsvpStatus
	responded_at: datetime
	user: Optional[Identity] = None

	model_config = ConfigDict(frozen=True, from_attributes=True, extra="ignore")


def partition_events(events: Iterable[Event], now: Optional[datetime] = None) -> tuple[list[Event], list[Event]]:
	"""Split events into (upcoming, past) relative to ``now``.

	Evaluated on every call; nothing about "past" is ever stored.
	"""
	instant = now or datetime.now(timezone.utc)
	upcoming: list[Event] = []
	past: list[Event] = []
	for event in events:
		(past if event.is_past(instant) else upcoming).append(event)
	return upcoming, past
