from __future__ import annotations

from datetime import datetime, timedelta, timezone

from clubhub.domain.clubs import policy
from clubhub.domain.clubs.models import MemberRole, Membership


def _member(user_id: str, role: MemberRole, minutes: int) -> Membership:
	joined = datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=minutes)
	return Membership(user_id=user_id, club_id="c1", role=role, joined_at=joined)


def test_sort_members_puts_authority_first():
	members = [
		_member("late-member", MemberRole.MEMBER, 30),
		_member("committee", MemberRole.COMMITTEE, 20),
		_member("early-member", MemberRole.MEMBER, 5),
		_member("admin", MemberRole.ADMIN, 40),
	]

	ordered = policy.sort_members(members)

	assert [m.user_id for m in ordered] == ["admin", "committee", "early-member", "late-member"]


def test_publishing_roles():
	assert policy.can_publish(MemberRole.ADMIN)
	assert policy.can_publish(MemberRole.COMMITTEE)
	assert not policy.can_publish(MemberRole.MEMBER)
	assert not policy.can_publish(None)


def test_only_admins_manage_club_and_payments():
	assert policy.can_manage_club(MemberRole.ADMIN)
	assert not policy.can_manage_club(MemberRole.COMMITTEE)
	assert policy.can_manage_payments(MemberRole.ADMIN)
	assert not policy.can_manage_payments(MemberRole.MEMBER)


def test_admin_cannot_manage_self():
	assert policy.can_manage_member(MemberRole.ADMIN, "u1", "u2")
	assert not policy.can_manage_member(MemberRole.ADMIN, "u1", "u1")
	assert not policy.can_manage_member(MemberRole.COMMITTEE, "u1", "u2")
	assert not policy.can_manage_member(MemberRole.ADMIN, None, "u2")
