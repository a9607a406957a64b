"""Event catalog: per-club event lists, event details and RSVPs."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from clubhub.domain.clubs.service import ClubDirectory
from clubhub.domain.events.models import Event, Rsvp, RsvpStatus
from clubhub.domain.events.schemas import EventCreate, EventUpdate
from clubhub.domain.exceptions import NotFoundError
from clubhub.domain.session.service import SessionStore
from clubhub.infra.keyed_cache import KeyedCollectionCache
from clubhub.infra.remote import RemoteRepository
from clubhub.obs import metrics as obs_metrics
from clubhub.settings import settings

_LOG = logging.getLogger(__name__)


class EventCatalog:
	"""Business logic for event reads, mutations and RSVPs.

	RSVP totals come from the events_with_rsvp_counts view and are never
	derived from RSVP rows on the client; every mutation refetches the views it
	touched instead of patching them.
	"""

	def __init__(self, remote: RemoteRepository, session: SessionStore, directory: ClubDirectory) -> None:
		self.remote = remote
		self.session = session
		self.directory = directory
		self._events: KeyedCollectionCache[str, Event] = KeyedCollectionCache("club_events")
		self._details: KeyedCollectionCache[str, Event] = KeyedCollectionCache("event_details")
		self._rsvps: KeyedCollectionCache[str, Rsvp] = KeyedCollectionCache("event_rsvps")
		self._upcoming: KeyedCollectionCache[str, Event] = KeyedCollectionCache("upcoming_events")
		self._current_event: Optional[Event] = None

	# --- Read accessors --------------------------------------------------------

	@property
	def current_event(self) -> Optional[Event]:
		return self._current_event

	def set_current_event(self, event: Optional[Event]) -> None:
		self._current_event = event

	def get_club_events(self, club_id: str) -> Optional[List[Event]]:
		return self._events.get(club_id)

	def get_event(self, event_id: str) -> Optional[Event]:
		cached = self._details.get(event_id)
		return cached[0] if cached else None

	def get_event_rsvps(self, event_id: str) -> Optional[List[Rsvp]]:
		return self._rsvps.get(event_id)

	def is_loading(self, club_id: str) -> bool:
		return self._events.is_loading(club_id)

	def can_manage_events(self, club_id: str) -> bool:
		return self.directory.can_publish(club_id)

	# --- Fetches ---------------------------------------------------------------

	async def fetch_club_events(self, club_id: str) -> List[Event]:
		async def _load() -> List[Event]:
			events = await self.remote.list_events_with_counts(club_id)
			return await self._with_own_status(events)

		return await self._events.load(club_id, _load)

	async def fetch_event_by_id(self, event_id: str) -> Event:
		async def _load() -> List[Event]:
			event = await self.remote.get_event_with_counts(event_id)
			if event is None:
				raise NotFoundError("event_not_found")
			return await self._with_own_status([event])

		loaded = await self._details.load(event_id, _load)
		self._sync_current(event_id)
		return loaded[0]

	async def fetch_event_rsvps(self, event_id: str) -> List[Rsvp]:
		return await self._rsvps.load(event_id, lambda: self.remote.list_event_rsvps(event_id))

	async def fetch_upcoming_events(self, limit: Optional[int] = None) -> List[Event]:
		"""Upcoming events across every club of the identity, soonest first."""
		identity = self.session.identity
		if identity is None:
			return []

		async def _load() -> List[Event]:
			memberships = await self.remote.list_memberships_for_user(identity.id)
			club_ids = [m.club_id for m in memberships]
			if not club_ids:
				return []
			events = await self.remote.list_upcoming_events_with_counts(
				club_ids,
				since=datetime.now(timezone.utc),
				limit=limit or settings.upcoming_events_limit,
			)
			return await self._with_own_status(events)

		return await self._upcoming.load(identity.id, _load)

	# --- Mutations -------------------------------------------------------------

	async def submit_rsvp(self, event_id: str, status: RsvpStatus) -> Event:
		"""Upsert the identity's RSVP, then refetch the event's aggregates."""
		identity = self.session.require_identity()
		await self.remote.upsert_rsvp(
			event_id=event_id,
			user_id=identity.id,
			status=RsvpStatus(status),
			responded_at=datetime.now(timezone.utc),
		)
		obs_metrics.inc_store_mutation("events", "rsvp")
		_LOG.info("rsvp submitted", extra={"event_id": event_id, "status": RsvpStatus(status).value})
		event = await self.fetch_event_by_id(event_id)
		await self._refresh_related(event.club_id, event_id)
		return event

	async def create_event(self, payload: EventCreate) -> Event:
		identity = self.session.require_identity()
		created = await self.remote.insert_event(payload.model_dump(mode="json"), created_by=identity.id)
		obs_metrics.inc_store_mutation("events", "create")
		_LOG.info("event created", extra={"event_id": created.id, "club_id": created.club_id})
		events = await self.fetch_club_events(created.club_id)
		self._upcoming.clear()
		return next((event for event in events if event.id == created.id), created)

	async def update_event(self, event_id: str, changes: EventUpdate) -> Event:
		updated = await self.remote.update_event(event_id, changes.changes())
		if updated is None:
			raise NotFoundError("event_not_found")
		obs_metrics.inc_store_mutation("events", "update")
		event = await self.fetch_event_by_id(event_id)
		await self._refresh_related(event.club_id, event_id)
		self._upcoming.clear()
		return event

	async def delete_event(self, event_id: str) -> None:
		deleted = await self.remote.delete_event(event_id)
		if deleted is None:
			raise NotFoundError("event_not_found")
		obs_metrics.inc_store_mutation("events", "delete")
		_LOG.info("event deleted", extra={"event_id": event_id, "club_id": deleted.club_id})
		self._details.invalidate(event_id)
		self._rsvps.invalidate(event_id)
		self._upcoming.clear()
		if self._current_event is not None and self._current_event.id == event_id:
			self._current_event = None
		await self.fetch_club_events(deleted.club_id)

	def forget_club(self, club_id: str) -> None:
		"""Drop everything cached for a club the identity no longer belongs to."""
		self._events.invalidate(club_id)
		for event_id in self._details.keys():
			event = self.get_event(event_id)
			if event is not None and event.club_id == club_id:
				self._details.invalidate(event_id)
				self._rsvps.invalidate(event_id)
		self._upcoming.clear()
		if self._current_event is not None and self._current_event.club_id == club_id:
			self._current_event = None

	def reset(self) -> None:
		self._events.clear()
		self._details.clear()
		self._rsvps.clear()
		self._upcoming.clear()
		self._current_event = None

	# --- Helpers ---------------------------------------------------------------

	def _sync_current(self, event_id: str) -> None:
		# Fetching an event selects it, using the newest committed copy
		event = self.get_event(event_id)
		if event is not None:
			self._current_event = event

	async def _with_own_status(self, events: Sequence[Event]) -> List[Event]:
		identity = self.session.identity
		statuses: dict[str, RsvpStatus] = {}
		if identity is not None and events:
			rsvps = await self.remote.list_user_rsvps(identity.id, [event.id for event in events])
			statuses = {rsvp.event_id: RsvpStatus(rsvp.status) for rsvp in rsvps}
		return [event.model_copy(update={"user_rsvp": statuses.get(event.id)}) for event in events]

	async def _refresh_related(self, club_id: str, event_id: str) -> None:
		if club_id in self._events:
			await self.fetch_club_events(club_id)
		if event_id in self._rsvps:
			await self.fetch_event_rsvps(event_id)
