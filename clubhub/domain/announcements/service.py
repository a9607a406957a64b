"""Announcement feed: newest-first announcements per club."""

from __future__ import annotations

import logging
from typing import List, Optional

from clubhub.domain.announcements.models import Announcement
from clubhub.domain.announcements.schemas import AnnouncementCreate, AnnouncementUpdate
from clubhub.domain.clubs.service import ClubDirectory
from clubhub.domain.exceptions import NotFoundError
from clubhub.domain.session.service import SessionStore
from clubhub.infra.keyed_cache import KeyedCollectionCache
from clubhub.infra.remote import RemoteRepository
from clubhub.obs import metrics as obs_metrics

_LOG = logging.getLogger(__name__)


class AnnouncementFeed:
	"""Announcements carry no derived aggregate, so mutations patch the cached
	list with the server-confirmed row instead of refetching it."""

	def __init__(self, remote: RemoteRepository, session: SessionStore, directory: ClubDirectory) -> None:
		self.remote = remote
		self.session = session
		self.directory = directory
		self._announcements: KeyedCollectionCache[str, Announcement] = KeyedCollectionCache("club_announcements")

	def get_club_announcements(self, club_id: str) -> Optional[List[Announcement]]:
		return self._announcements.get(club_id)

	def can_publish(self, club_id: str) -> bool:
		return self.directory.can_publish(club_id)

	async def fetch_club_announcements(self, club_id: str) -> List[Announcement]:
		return await self._announcements.load(club_id, lambda: self.remote.list_announcements(club_id))

	async def create_announcement(self, payload: AnnouncementCreate) -> Announcement:
		identity = self.session.require_identity()
		created = await self.remote.insert_announcement(
			club_id=payload.club_id,
			title=payload.title,
			content=payload.content,
			created_by=identity.id,
		)
		obs_metrics.inc_store_mutation("announcements", "create")
		_LOG.info("announcement created", extra={"announcement_id": created.id, "club_id": created.club_id})
		self._announcements.patch(payload.club_id, lambda items: [created, *items])
		return created

	async def update_announcement(self, announcement_id: str, club_id: str, changes: AnnouncementUpdate) -> Announcement:
		updated = await self.remote.update_announcement(announcement_id, changes.changes())
		if updated is None:
			raise NotFoundError("announcement_not_found")
		obs_metrics.inc_store_mutation("announcements", "update")
		self._announcements.patch(
			club_id,
			lambda items: [updated if item.id == announcement_id else item for item in items],
		)
		return updated

	async def delete_announcement(self, announcement_id: str, club_id: str) -> None:
		deleted = await self.remote.delete_announcement(announcement_id)
		if deleted is None:
			raise NotFoundError("announcement_not_found")
		obs_metrics.inc_store_mutation("announcements", "delete")
		_LOG.info("announcement deleted", extra={"announcement_id": announcement_id, "club_id": club_id})
		self._announcements.patch(club_id, lambda items: [item for item in items if item.id != announcement_id])

	def forget_club(self, club_id: str) -> None:
		self._announcements.invalidate(club_id)

	def reset(self) -> None:
		self._announcements.clear()
