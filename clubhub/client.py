"""Wires the session and domain stores around one remote repository."""

from __future__ import annotations

import logging
from typing import Optional

from clubhub import obs
from clubhub.domain.announcements.service import AnnouncementFeed
from clubhub.domain.clubs.service import ClubDirectory
from clubhub.domain.events.service import EventCatalog
from clubhub.domain.payments.service import PaymentLedger
from clubhub.domain.session.models import Identity, SessionState
from clubhub.domain.session.service import SessionStore
from clubhub.infra.postgrest import PostgrestRepository
from clubhub.infra.remote import RemoteRepository

_LOG = logging.getLogger(__name__)


class ClubHubClient:
	"""Explicitly constructed store graph; no process-wide singletons.

	Every cached collection belongs to one identity, so all domain stores are
	reset whenever the session leaves AUTHENTICATED or switches user.
	"""

	def __init__(self, remote: RemoteRepository) -> None:
		self.remote = remote
		self.session = SessionStore(remote)
		self.clubs = ClubDirectory(remote, self.session)
		self.events = EventCatalog(remote, self.session, self.clubs)
		self.payments = PaymentLedger(remote, self.session, self.clubs)
		self.announcements = AnnouncementFeed(remote, self.session, self.clubs)
		self.clubs.on_club_removed(self._forget_club)
		self._owner_id: Optional[str] = None
		self._unsubscribe = self.session.subscribe(self._on_session_state)

	@classmethod
	def from_settings(cls) -> "ClubHubClient":
		obs.init()
		return cls(PostgrestRepository())

	async def start(self) -> SessionState:
		return await self.session.initialize()

	def reset_stores(self) -> None:
		self.clubs.reset()
		self.events.reset()
		self.payments.reset()
		self.announcements.reset()

	def _forget_club(self, club_id: str) -> None:
		self.events.forget_club(club_id)
		self.payments.forget_club(club_id)
		self.announcements.forget_club(club_id)

	async def aclose(self) -> None:
		self._unsubscribe()
		await self.session.close()
		await self.remote.aclose()

	async def _on_session_state(self, state: SessionState, identity: Optional[Identity]) -> None:
		owner_id = identity.id if state == SessionState.AUTHENTICATED and identity else None
		if owner_id != self._owner_id:
			_LOG.info("session owner changed; resetting stores", extra={"state": state.value})
			self.reset_stores()
			self._owner_id = owner_id
