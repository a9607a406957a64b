"""Role ordering and client-side authorization hints for clubs.

These only decide which actions the presentation layer offers; the remote
service enforces the real authorization.
"""

from __future__ import annotations

from typing import Iterable, Optional

from clubhub.domain.clubs.models import MemberRole, Membership

# Authority-first display order: admin < committee < member
ROLE_ORDER = {MemberRole.ADMIN: 0, MemberRole.COMMITTEE: 1, MemberRole.MEMBER: 2}
PUBLISHING_ROLES = frozenset({MemberRole.ADMIN, MemberRole.COMMITTEE})


def role_rank(role: MemberRole | str) -> int:
	return ROLE_ORDER[MemberRole(role)]


def sort_members(members: Iterable[Membership]) -> list[Membership]:
	"""Order members by role, then by joined time (oldest first)."""
	return sorted(members, key=lambda m: (role_rank(m.role), m.joined_at))


def can_publish(role: Optional[MemberRole]) -> bool:
	"""Events and announcements may be created by admins and committee."""
	return role in PUBLISHING_ROLES


def can_manage_club(role: Optional[MemberRole]) -> bool:
	return role == MemberRole.ADMIN


def can_manage_payments(role: Optional[MemberRole]) -> bool:
	return role == MemberRole.ADMIN


def can_manage_member(actor_role: Optional[MemberRole], actor_id: Optional[str], target_user_id: str) -> bool:
	if actor_role != MemberRole.ADMIN or actor_id is None:
		return False
	return actor_id != target_user_id
