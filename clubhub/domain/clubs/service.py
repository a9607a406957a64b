"""Club directory: the identity's clubs, its roles, and club membership lists."""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from clubhub.domain.clubs import policy
from clubhub.domain.clubs.models import Club, MemberRole, Membership
from clubhub.domain.clubs.schemas import ClubUpdate
from clubhub.domain.exceptions import NotFoundError, ValidationError
from clubhub.domain.session.service import SessionStore
from clubhub.infra.keyed_cache import KeyedCollectionCache
from clubhub.infra.remote import RemoteRepository
from clubhub.obs import logging as obs_logging
from clubhub.obs import metrics as obs_metrics

_LOG = logging.getLogger(__name__)

ClubRemovedListener = Callable[[str], None]


class ClubDirectory:
	"""Caches the current identity's clubs (keyed by user id) and member lists (keyed by club id).

	The role table is derived from the same membership rows the club list was
	fetched for, and is only replaced when that club list commit wins.
	"""

	def __init__(self, remote: RemoteRepository, session: SessionStore) -> None:
		self.remote = remote
		self.session = session
		self._clubs: KeyedCollectionCache[str, Club] = KeyedCollectionCache("user_clubs")
		self._members: KeyedCollectionCache[str, Membership] = KeyedCollectionCache("club_members")
		self._roles: Dict[str, MemberRole] = {}
		self._roles_loaded_for: Optional[str] = None
		self._current_club: Optional[Club] = None
		self._removed_listeners: List[ClubRemovedListener] = []

	# --- Read accessors --------------------------------------------------------

	@property
	def clubs(self) -> List[Club]:
		identity = self.session.identity
		if identity is None:
			return []
		return self._clubs.get(identity.id) or []

	@property
	def current_club(self) -> Optional[Club]:
		return self._current_club

	@property
	def has_fetched(self) -> bool:
		identity = self.session.identity
		return identity is not None and self._roles_loaded_for == identity.id

	@property
	def is_loading(self) -> bool:
		identity = self.session.identity
		return identity is not None and self._clubs.is_loading(identity.id)

	def set_current_club(self, club: Optional[Club]) -> None:
		self._current_club = club

	def on_club_removed(self, listener: ClubRemovedListener) -> None:
		"""Call ``listener(club_id)`` after the identity deletes or leaves a club."""
		self._removed_listeners.append(listener)

	def get_user_role(self, club_id: str) -> Optional[MemberRole]:
		"""Role of the identity in ``club_id``; None means unknown unless ``has_fetched``."""
		if not self.has_fetched:
			return None
		return self._roles.get(club_id)

	def get_members(self, club_id: str) -> Optional[List[Membership]]:
		return self._members.get(club_id)

	def sorted_members(self, club_id: str) -> List[Membership]:
		return policy.sort_members(self._members.get(club_id) or [])

	def can_publish(self, club_id: str) -> bool:
		return policy.can_publish(self.get_user_role(club_id))

	def can_manage_club(self, club_id: str) -> bool:
		return policy.can_manage_club(self.get_user_role(club_id))

	def can_manage_member(self, club_id: str, user_id: str) -> bool:
		identity = self.session.identity
		return policy.can_manage_member(self.get_user_role(club_id), identity.id if identity else None, user_id)

	# --- Fetches ---------------------------------------------------------------

	async def fetch_user_clubs(self) -> List[Club]:
		identity = self.session.require_identity()
		token = self._clubs.begin_fetch(identity.id)
		try:
			memberships = await self.remote.list_memberships_for_user(identity.id)
			roles = {m.club_id: MemberRole(m.role) for m in memberships}
			clubs = await self.remote.list_clubs_with_member_count(list(roles)) if roles else []
		except BaseException:
			self._clubs.abandon(token)
			raise
		if self._clubs.commit(identity.id, token, clubs):
			self._roles = roles
			self._roles_loaded_for = identity.id
		return list(clubs)

	async def fetch_club_by_id(self, club_id: str) -> Club:
		club = await self.remote.get_club_with_member_count(club_id)
		if club is None:
			raise NotFoundError("club_not_found")
		self._current_club = club
		return club

	async def fetch_club_by_invite_code(self, invite_code: str) -> Optional[Club]:
		code = invite_code.strip().upper()
		if not code:
			return None
		return await self.remote.get_club_by_invite_code(code)

	async def fetch_club_members(self, club_id: str) -> List[Membership]:
		return await self._members.load(club_id, lambda: self.remote.list_club_members(club_id))

	# --- Mutations -------------------------------------------------------------

	async def create_club(self, name: str, description: Optional[str] = None) -> Club:
		identity = self.session.require_identity()
		clean_name = (name or "").strip()
		if not clean_name:
			raise ValidationError("club_name_required")
		club = await self.remote.insert_club(name=clean_name, description=description, created_by=identity.id)
		obs_metrics.inc_store_mutation("clubs", "create")
		self._log("club created", club_id=club.id)
		await self.fetch_user_clubs()
		return club

	async def update_club(self, club_id: str, changes: ClubUpdate) -> Club:
		updated = await self.remote.update_club(club_id, changes.changes())
		if updated is None:
			raise NotFoundError("club_not_found")
		obs_metrics.inc_store_mutation("clubs", "update")
		await self.fetch_user_clubs()
		if self._current_club is not None and self._current_club.id == club_id:
			return await self.fetch_club_by_id(club_id)
		return updated

	async def delete_club(self, club_id: str) -> None:
		deleted = await self.remote.delete_club(club_id)
		if deleted is None:
			raise NotFoundError("club_not_found")
		obs_metrics.inc_store_mutation("clubs", "delete")
		self._forget_club(club_id)
		self._members.invalidate(club_id)

	async def join_club(self, club_id: str) -> Membership:
		"""Join as ``member``; raises ``DuplicateError`` when already a member."""
		identity = self.session.require_identity()
		membership = await self.remote.insert_membership(
			club_id=club_id,
			user_id=identity.id,
			role=MemberRole.MEMBER,
		)
		obs_metrics.inc_store_mutation("clubs", "join")
		self._log("club joined", club_id=club_id)
		await self.fetch_user_clubs()
		return membership

	async def leave_club(self, club_id: str) -> None:
		identity = self.session.require_identity()
		removed = await self.remote.delete_membership(club_id, identity.id)
		if removed == 0:
			raise NotFoundError("membership_not_found")
		obs_metrics.inc_store_mutation("clubs", "leave")
		self._log("club left", club_id=club_id)
		self._forget_club(club_id)
		self._members.invalidate(club_id)

	async def update_member_role(self, club_id: str, user_id: str, role: MemberRole) -> bool:
		"""Ask the service to change a member's role; True if a row changed.

		Authorization is enforced remotely, so an unauthorized call simply
		reports False. The member list is refetched either way.
		"""
		updated = await self.remote.update_membership_role(club_id, user_id, MemberRole(role))
		obs_metrics.inc_store_mutation("clubs", "update_role")
		await self._refresh_after_member_change(club_id, user_id)
		return updated > 0

	async def remove_member(self, club_id: str, user_id: str) -> bool:
		removed = await self.remote.delete_membership(club_id, user_id)
		obs_metrics.inc_store_mutation("clubs", "remove_member")
		await self._refresh_after_member_change(club_id, user_id)
		return removed > 0

	def reset(self) -> None:
		self._clubs.clear()
		self._members.clear()
		self._roles = {}
		self._roles_loaded_for = None
		self._current_club = None

	# --- Helpers ---------------------------------------------------------------

	async def _refresh_after_member_change(self, club_id: str, user_id: str) -> None:
		await self.fetch_club_members(club_id)
		identity = self.session.identity
		if identity is not None and identity.id == user_id:
			await self.fetch_user_clubs()

	def _forget_club(self, club_id: str) -> None:
		identity = self.session.identity
		if identity is not None:
			self._clubs.patch(identity.id, lambda clubs: [c for c in clubs if c.id != club_id])
		self._roles.pop(club_id, None)
		if self._current_club is not None and self._current_club.id == club_id:
			self._current_club = None
		for listener in list(self._removed_listeners):
			listener(club_id)

	def _log(self, message: str, **fields: str) -> None:
		identity = self.session.identity
		tokens = obs_logging.bind_context(user_id=identity.id if identity else None, store="clubs")
		try:
			_LOG.info(message, extra=fields)
		finally:
			obs_logging.reset_context(tokens)
