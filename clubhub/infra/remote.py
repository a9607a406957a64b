"""Contract of the remote relational data service consumed by the stores.

The stores never talk HTTP themselves; they call these named operations and
receive validated domain models. Implementations map transport failures onto
``clubhub.domain.exceptions`` (duplicates → ``DuplicateError``, rejected
credentials → ``AuthenticationError``, anything else → ``RemoteOperationError``).
Rows that are missing or not visible come back as ``None`` or empty lists.
"""

from __future__ import annotations

import abc
from datetime import datetime
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence

from clubhub.domain.announcements.models import Announcement
from clubhub.domain.clubs.models import Club, MemberRole, Membership
from clubhub.domain.events.models import Event, Rsvp, RsvpStatus
from clubhub.domain.payments.models import PaymentRecord, PaymentRequest
from clubhub.domain.session.models import Identity, RemoteSession

SessionListener = Callable[[Optional[RemoteSession]], Awaitable[None]]
Unsubscribe = Callable[[], None]


class RemoteRepository(abc.ABC):
	"""Data-access surface of the remote service, one method per call."""

	# --- Auth ----------------------------------------------------------------

	@abc.abstractmethod
	async def get_session(self) -> Optional[RemoteSession]: ...

	@abc.abstractmethod
	async def sign_up(self, *, email: str, password: str, name: str) -> Optional[RemoteSession]:
		"""Return the new session, or None when email confirmation is pending."""

	@abc.abstractmethod
	async def sign_in(self, *, email: str, password: str) -> RemoteSession: ...

	@abc.abstractmethod
	async def sign_out(self) -> None: ...

	@abc.abstractmethod
	async def reset_password_for_email(self, email: str, *, redirect_to: Optional[str] = None) -> None:
		"""Ask the service to mail a password reset link; silent for unknown addresses."""

	@abc.abstractmethod
	def on_session_change(self, listener: SessionListener) -> Unsubscribe:
		"""Register ``listener`` for out-of-band session changes."""

	# --- Profiles ------------------------------------------------------------

	@abc.abstractmethod
	async def get_profile(self, user_id: str) -> Optional[Identity]: ...

	@abc.abstractmethod
	async def update_profile(self, user_id: str, changes: Mapping[str, Any]) -> Optional[Identity]: ...

	# --- Clubs and memberships -------------------------------------------------

	@abc.abstractmethod
	async def list_memberships_for_user(self, user_id: str) -> list[Membership]: ...

	@abc.abstractmethod
	async def list_clubs_with_member_count(self, club_ids: Sequence[str]) -> list[Club]:
		"""Clubs for exactly ``club_ids``, newest first."""

	@abc.abstractmethod
	async def get_club_with_member_count(self, club_id: str) -> Optional[Club]: ...

	@abc.abstractmethod
	async def get_club_by_invite_code(self, invite_code: str) -> Optional[Club]: ...

	@abc.abstractmethod
	async def insert_club(self, *, name: str, description: Optional[str], created_by: str) -> Club:
		"""Create a club; the service also makes ``created_by`` its admin."""

	@abc.abstractmethod
	async def update_club(self, club_id: str, changes: Mapping[str, Any]) -> Optional[Club]: ...

	@abc.abstractmethod
	async def delete_club(self, club_id: str) -> Optional[Club]: ...

	@abc.abstractmethod
	async def insert_membership(self, *, club_id: str, user_id: str, role: MemberRole) -> Membership: ...

	@abc.abstractmethod
	async def delete_membership(self, club_id: str, user_id: str) -> int:
		"""Return the number of rows removed."""

	@abc.abstractmethod
	async def update_membership_role(self, club_id: str, user_id: str, role: MemberRole) -> int:
		"""Return the number of rows updated."""

	@abc.abstractmethod
	async def list_club_members(self, club_id: str) -> list[Membership]:
		"""Members with embedded profiles, oldest membership first."""

	# --- Events and RSVPs ------------------------------------------------------

	@abc.abstractmethod
	async def list_events_with_counts(self, club_id: str) -> list[Event]:
		"""Events of a club with view counts, by start time ascending."""

	@abc.abstractmethod
	async def list_upcoming_events_with_counts(
		self,
		club_ids: Sequence[str],
		*,
		since: datetime,
		limit: int,
	) -> list[Event]: ...

	@abc.abstractmethod
	async def get_event_with_counts(self, event_id: str) -> Optional[Event]: ...

	@abc.abstractmethod
	async def list_user_rsvps(self, user_id: str, event_ids: Sequence[str]) -> list[Rsvp]: ...

	@abc.abstractmethod
	async def list_event_rsvps(self, event_id: str) -> list[Rsvp]:
		"""RSVPs with embedded profiles, newest response first."""

	@abc.abstractmethod
	async def upsert_rsvp(
		self,
		*,
		event_id: str,
		user_id: str,
		status: RsvpStatus,
		responded_at: datetime,
	) -> Rsvp: ...

	@abc.abstractmethod
	async def insert_event(self, values: Mapping[str, Any], *, created_by: str) -> Event: ...

	@abc.abstractmethod
	async def update_event(self, event_id: str, changes: Mapping[str, Any]) -> Optional[Event]: ...

	@abc.abstractmethod
	async def delete_event(self, event_id: str) -> Optional[Event]: ...

	# --- Payments --------------------------------------------------------------

	@abc.abstractmethod
	async def list_payment_requests_with_status(self, club_id: str) -> list[PaymentRequest]:
		"""Requests of a club with paid/total counts, newest first."""

	@abc.abstractmethod
	async def get_payment_request_with_status(self, request_id: str) -> Optional[PaymentRequest]: ...

	@abc.abstractmethod
	async def insert_payment_request(self, values: Mapping[str, Any], *, created_by: str) -> PaymentRequest:
		"""Create a request; the service issues one pending record per member."""

	@abc.abstractmethod
	async def update_payment_request(self, request_id: str, changes: Mapping[str, Any]) -> Optional[PaymentRequest]: ...

	@abc.abstractmethod
	async def delete_payment_request(self, request_id: str) -> Optional[PaymentRequest]: ...

	@abc.abstractmethod
	async def list_payment_records(self, request_id: str) -> list[PaymentRecord]:
		"""Records with embedded profiles, pending before paid."""

	@abc.abstractmethod
	async def list_outstanding_records(self, user_id: str) -> list[PaymentRecord]:
		"""Pending records of a user across clubs, with their request embedded."""

	@abc.abstractmethod
	async def update_payment_record(self, record_id: str, changes: Mapping[str, Any]) -> Optional[PaymentRecord]: ...

	# --- Announcements ---------------------------------------------------------

	@abc.abstractmethod
	async def list_announcements(self, club_id: str) -> list[Announcement]:
		"""Announcements with embedded author, newest first."""

	@abc.abstractmethod
	async def insert_announcement(
		self,
		*,
		club_id: str,
		title: str,
		content: str,
		created_by: str,
	) -> Announcement: ...

	@abc.abstractmethod
	async def update_announcement(self, announcement_id: str, changes: Mapping[str, Any]) -> Optional[Announcement]: ...

	@abc.abstractmethod
	async def delete_announcement(self, announcement_id: str) -> Optional[Announcement]: ...

	async def aclose(self) -> None:
		return None
