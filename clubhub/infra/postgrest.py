"""Remote repository backed by a Supabase-style GoTrue + PostgREST service."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional, Sequence

import httpx

from clubhub.domain.announcements.models import Announcement
from clubhub.domain.clubs.models import Club, MemberRole, Membership
from clubhub.domain.events.models import Event, Rsvp, RsvpCounts, RsvpStatus
from clubhub.domain.exceptions import AuthenticationError, DuplicateError, RemoteOperationError
from clubhub.domain.payments.models import PaymentRecord, PaymentRequest
from clubhub.domain.session.models import Identity, RemoteSession
from clubhub.infra.remote import RemoteRepository, SessionListener, Unsubscribe
from clubhub.obs import metrics as obs_metrics
from clubhub.settings import settings

_LOG = logging.getLogger(__name__)

_UNIQUE_VIOLATION = "23505"
_INVALID_CREDENTIALS = {"invalid_grant", "invalid_credentials", "user_already_exists", "weak_password"}

_MEMBER_SELECT = "*,user:profiles(*)"
_RSVP_SELECT = "*,user:profiles(*)"
_RECORD_SELECT = "*,user:profiles!payment_records_user_id_fkey(*)"
_OUTSTANDING_SELECT = "*,payment_request:payment_requests(*)"
_ANNOUNCEMENT_SELECT = "*,author:profiles(id,name,avatar_url)"


def _eq(value: Any) -> str:
	return f"eq.{value}"


def _in(values: Sequence[str]) -> str:
	quoted = ",".join(f'"{value}"' for value in values)
	return f"in.({quoted})"


def _event_from_view(row: Mapping[str, Any]) -> Event:
	data = dict(row)
	data["rsvp_counts"] = RsvpCounts(
		going=data.pop("going_count", None) or 0,
		maybe=data.pop("maybe_count", None) or 0,
		not_going=data.pop("not_going_count", None) or 0,
	)
	return Event.model_validate(data)


def _session_from_payload(payload: Mapping[str, Any]) -> Optional[RemoteSession]:
	access_token = payload.get("access_token")
	user = payload.get("user") or {}
	if not access_token or not user.get("id"):
		return None
	expires_at = None
	if payload.get("expires_at"):
		expires_at = datetime.fromtimestamp(int(payload["expires_at"]), tz=timezone.utc)
	elif payload.get("expires_in"):
		expires_at = datetime.now(timezone.utc) + timedelta(seconds=int(payload["expires_in"]))
	return RemoteSession(
		user_id=user["id"],
		access_token=access_token,
		refresh_token=payload.get("refresh_token"),
		expires_at=expires_at,
	)


class PostgrestRepository(RemoteRepository):
	"""Thin data-access layer around httpx."""

	def __init__(
		self,
		*,
		base_url: Optional[str] = None,
		anon_key: Optional[str] = None,
		http: Optional[httpx.AsyncClient] = None,
	) -> None:
		self._anon_key = anon_key if anon_key is not None else settings.remote_anon_key
		self._http = http or httpx.AsyncClient(
			base_url=base_url or settings.remote_url,
			timeout=settings.remote_timeout_seconds,
		)
		self._session: Optional[RemoteSession] = None
		self._listeners: list[SessionListener] = []

	# --- Plumbing --------------------------------------------------------------

	def _headers(self, *, prefer: Optional[str] = None) -> dict[str, str]:
		token = self._session.access_token if self._session else self._anon_key
		headers = {"apikey": self._anon_key, "Authorization": f"Bearer {token}"}
		if prefer:
			headers["Prefer"] = prefer
		return headers

	async def _send(
		self,
		operation: str,
		method: str,
		path: str,
		*,
		params: Optional[Mapping[str, str]] = None,
		json: Any = None,
		prefer: Optional[str] = None,
	) -> Any:
		try:
			response = await self._http.request(
				method,
				path,
				params=params,
				json=json,
				headers=self._headers(prefer=prefer),
			)
		except httpx.HTTPError as exc:
			obs_metrics.inc_remote_failure(operation, "transport")
			_LOG.warning("remote transport failure", extra={"operation": operation, "error": str(exc)})
			raise RemoteOperationError("transport_error") from exc
		if response.is_error:
			raise self._map_error(operation, response)
		if response.status_code == 204 or not response.content:
			return None
		return response.json()

	def _map_error(self, operation: str, response: httpx.Response) -> Exception:
		try:
			body = response.json()
		except ValueError:
			body = {}
		if not isinstance(body, dict):
			body = {}
		code = str(body.get("code") or body.get("error_code") or body.get("error") or "")
		message = body.get("message") or body.get("msg") or body.get("error_description") or response.reason_phrase
		# A bare 409 without a code is a conflict on the unique key; other
		# coded 409s (foreign key 23503, ...) are not duplicates.
		if code == _UNIQUE_VIOLATION or (response.status_code == 409 and not code):
			obs_metrics.inc_remote_failure(operation, "duplicate")
			return DuplicateError(code or "duplicate")
		if operation in {"sign_in", "sign_up"} and (code in _INVALID_CREDENTIALS or response.status_code in (400, 422)):
			obs_metrics.inc_remote_failure(operation, "authentication")
			return AuthenticationError(code or "invalid_credentials")
		obs_metrics.inc_remote_failure(operation, "remote")
		_LOG.warning(
			"remote call failed",
			extra={"operation": operation, "status": response.status_code, "code": code, "remote_message": message},
		)
		return RemoteOperationError(str(message or "remote_operation_failed"), status_code=response.status_code, code=code or None)

	async def _select(self, operation: str, resource: str, params: Mapping[str, str]) -> list[dict]:
		query = {"select": "*", **params}
		rows = await self._send(operation, "GET", f"/rest/v1/{resource}", params=query)
		return list(rows or [])

	async def _first(self, operation: str, resource: str, params: Mapping[str, str]) -> Optional[dict]:
		rows = await self._select(operation, resource, {**params, "limit": "1"})
		return rows[0] if rows else None

	async def _insert(self, operation: str, resource: str, values: Mapping[str, Any], *, select: str = "*") -> dict:
		rows = await self._send(
			operation,
			"POST",
			f"/rest/v1/{resource}",
			params={"select": select},
			json=dict(values),
			prefer="return=representation",
		)
		if not rows:
			raise RemoteOperationError("empty_insert_result")
		return rows[0]

	async def _update(self, operation: str, resource: str, filters: Mapping[str, str], changes: Mapping[str, Any], *, select: str = "*") -> list[dict]:
		rows = await self._send(
			operation,
			"PATCH",
			f"/rest/v1/{resource}",
			params={**filters, "select": select},
			json=dict(changes),
			prefer="return=representation",
		)
		return list(rows or [])

	async def _delete(self, operation: str, resource: str, filters: Mapping[str, str]) -> list[dict]:
		rows = await self._send(
			operation,
			"DELETE",
			f"/rest/v1/{resource}",
			params=filters,
			prefer="return=representation",
		)
		return list(rows or [])

	async def _set_session(self, session: Optional[RemoteSession]) -> None:
		self._session = session
		for listener in list(self._listeners):
			await listener(session)

	# --- Auth ------------------------------------------------------------------

	async def get_session(self) -> Optional[RemoteSession]:
		session = self._session
		if session is None or not session.is_expired():
			return session
		if not session.refresh_token:
			await self._set_session(None)
			return None
		try:
			payload = await self._send(
				"refresh_session",
				"POST",
				"/auth/v1/token",
				params={"grant_type": "refresh_token"},
				json={"refresh_token": session.refresh_token},
			)
		except RemoteOperationError:
			await self._set_session(None)
			raise
		refreshed = _session_from_payload(payload or {})
		await self._set_session(refreshed)
		return refreshed

	async def sign_up(self, *, email: str, password: str, name: str) -> Optional[RemoteSession]:
		payload = await self._send(
			"sign_up",
			"POST",
			"/auth/v1/signup",
			json={"email": email, "password": password, "data": {"name": name}},
		)
		session = _session_from_payload(payload or {})
		if session is not None:
			self._session = session
		return session

	async def sign_in(self, *, email: str, password: str) -> RemoteSession:
		payload = await self._send(
			"sign_in",
			"POST",
			"/auth/v1/token",
			params={"grant_type": "password"},
			json={"email": email, "password": password},
		)
		session = _session_from_payload(payload or {})
		if session is None:
			raise AuthenticationError("session_missing")
		self._session = session
		return session

	async def sign_out(self) -> None:
		if self._session is None:
			return
		try:
			await self._send("sign_out", "POST", "/auth/v1/logout")
		finally:
			self._session = None

	async def reset_password_for_email(self, email: str, *, redirect_to: Optional[str] = None) -> None:
		await self._send(
			"reset_password",
			"POST",
			"/auth/v1/recover",
			params={"redirect_to": redirect_to} if redirect_to else None,
			json={"email": email},
		)

	def on_session_change(self, listener: SessionListener) -> Unsubscribe:
		self._listeners.append(listener)

		def _unsubscribe() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return _unsubscribe

	# --- Profiles ----------------------------------------------------------------

	async def get_profile(self, user_id: str) -> Optional[Identity]:
		row = await self._first("get_profile", "profiles", {"id": _eq(user_id)})
		return Identity.model_validate(row) if row else None

	async def update_profile(self, user_id: str, changes: Mapping[str, Any]) -> Optional[Identity]:
		rows = await self._update("update_profile", "profiles", {"id": _eq(user_id)}, changes)
		return Identity.model_validate(rows[0]) if rows else None

	# --- Clubs and memberships -----------------------------------------------------

	async def list_memberships_for_user(self, user_id: str) -> list[Membership]:
		rows = await self._select("list_memberships_for_user", "memberships", {"user_id": _eq(user_id)})
		return [Membership.model_validate(row) for row in rows]

	async def list_clubs_with_member_count(self, club_ids: Sequence[str]) -> list[Club]:
		if not club_ids:
			return []
		rows = await self._select(
			"list_clubs_with_member_count",
			"clubs_with_member_count",
			{"id": _in(club_ids), "order": "created_at.desc"},
		)
		return [Club.model_validate(row) for row in rows]

	async def get_club_with_member_count(self, club_id: str) -> Optional[Club]:
		row = await self._first("get_club_with_member_count", "clubs_with_member_count", {"id": _eq(club_id)})
		return Club.model_validate(row) if row else None

	async def get_club_by_invite_code(self, invite_code: str) -> Optional[Club]:
		row = await self._first("get_club_by_invite_code", "clubs", {"invite_code": _eq(invite_code)})
		return Club.model_validate(row) if row else None

	async def insert_club(self, *, name: str, description: Optional[str], created_by: str) -> Club:
		row = await self._insert(
			"insert_club",
			"clubs",
			{"name": name, "description": description, "created_by": created_by},
		)
		return Club.model_validate(row)

	async def update_club(self, club_id: str, changes: Mapping[str, Any]) -> Optional[Club]:
		rows = await self._update("update_club", "clubs", {"id": _eq(club_id)}, changes)
		return Club.model_validate(rows[0]) if rows else None

	async def delete_club(self, club_id: str) -> Optional[Club]:
		rows = await self._delete("delete_club", "clubs", {"id": _eq(club_id)})
		return Club.model_validate(rows[0]) if rows else None

	async def insert_membership(self, *, club_id: str, user_id: str, role: MemberRole) -> Membership:
		row = await self._insert(
			"insert_membership",
			"memberships",
			{"club_id": club_id, "user_id": user_id, "role": MemberRole(role).value},
		)
		return Membership.model_validate(row)

	async def delete_membership(self, club_id: str, user_id: str) -> int:
		rows = await self._delete(
			"delete_membership",
			"memberships",
			{"club_id": _eq(club_id), "user_id": _eq(user_id)},
		)
		return len(rows)

	async def update_membership_role(self, club_id: str, user_id: str, role: MemberRole) -> int:
		rows = await self._update(
			"update_membership_role",
			"memberships",
			{"club_id": _eq(club_id), "user_id": _eq(user_id)},
			{"role": MemberRole(role).value},
		)
		return len(rows)

	async def list_club_members(self, club_id: str) -> list[Membership]:
		rows = await self._select(
			"list_club_members",
			"memberships",
			{"select": _MEMBER_SELECT, "club_id": _eq(club_id), "order": "joined_at.asc"},
		)
		return [Membership.model_validate(row) for row in rows]

	# --- Events and RSVPs ------------------------------------------------------------

	async def list_events_with_counts(self, club_id: str) -> list[Event]:
		rows = await self._select(
			"list_events_with_counts",
			"events_with_rsvp_counts",
			{"club_id": _eq(club_id), "order": "start_time.asc"},
		)
		return [_event_from_view(row) for row in rows]

	async def list_upcoming_events_with_counts(
		self,
		club_ids: Sequence[str],
		*,
		since: datetime,
		limit: int,
	) -> list[Event]:
		if not club_ids:
			return []
		rows = await self._select(
			"list_upcoming_events_with_counts",
			"events_with_rsvp_counts",
			{
				"club_id": _in(club_ids),
				"start_time": f"gte.{since.isoformat()}",
				"order": "start_time.asc",
				"limit": str(limit),
			},
		)
		return [_event_from_view(row) for row in rows]

	async def get_event_with_counts(self, event_id: str) -> Optional[Event]:
		row = await self._first("get_event_with_counts", "events_with_rsvp_counts", {"id": _eq(event_id)})
		return _event_from_view(row) if row else None

	async def list_user_rsvps(self, user_id: str, event_ids: Sequence[str]) -> list[Rsvp]:
		if not event_ids:
			return []
		rows = await self._select(
			"list_user_rsvps",
			"rsvps",
			{"user_id": _eq(user_id), "event_id": _in(event_ids)},
		)
		return [Rsvp.model_validate(row) for row in rows]

	async def list_event_rsvps(self, event_id: str) -> list[Rsvp]:
		rows = await self._select(
			"list_event_rsvps",
			"rsvps",
			{"select": _RSVP_SELECT, "event_id": _eq(event_id), "order": "responded_at.desc"},
		)
		return [Rsvp.model_validate(row) for row in rows]

	async def upsert_rsvp(
		self,
		*,
		event_id: str,
		user_id: str,
		status: RsvpStatus,
		responded_at: datetime,
	) -> Rsvp:
		rows = await self._send(
			"upsert_rsvp",
			"POST",
			"/rest/v1/rsvps",
			params={"on_conflict": "event_id,user_id", "select": "*"},
			json={
				"event_id": event_id,
				"user_id": user_id,
				"status": RsvpStatus(status).value,
				"responded_at": responded_at.isoformat(),
			},
			prefer="resolution=merge-duplicates,return=representation",
		)
		if not rows:
			raise RemoteOperationError("empty_upsert_result")
		return Rsvp.model_validate(rows[0])

	async def insert_event(self, values: Mapping[str, Any], *, created_by: str) -> Event:
		row = await self._insert("insert_event", "events", {**values, "created_by": created_by})
		return Event.model_validate(row)

	async def update_event(self, event_id: str, changes: Mapping[str, Any]) -> Optional[Event]:
		rows = await self._update("update_event", "events", {"id": _eq(event_id)}, changes)
		return Event.model_validate(rows[0]) if rows else None

	async def delete_event(self, event_id: str) -> Optional[Event]:
		rows = await self._delete("delete_event", "events", {"id": _eq(event_id)})
		return Event.model_validate(rows[0]) if rows else None

	# --- Payments ----------------------------------------------------------------------

	async def list_payment_requests_with_status(self, club_id: str) -> list[PaymentRequest]:
		rows = await self._select(
			"list_payment_requests_with_status",
			"payment_requests_with_status",
			{"club_id": _eq(club_id), "order": "created_at.desc"},
		)
		return [PaymentRequest.model_validate(row) for row in rows]

	async def get_payment_request_with_status(self, request_id: str) -> Optional[PaymentRequest]:
		row = await self._first(
			"get_payment_request_with_status",
			"payment_requests_with_status",
			{"id": _eq(request_id)},
		)
		return PaymentRequest.model_validate(row) if row else None

	async def insert_payment_request(self, values: Mapping[str, Any], *, created_by: str) -> PaymentRequest:
		row = await self._insert("insert_payment_request", "payment_requests", {**values, "created_by": created_by})
		return PaymentRequest.model_validate(row)

	async def update_payment_request(self, request_id: str, changes: Mapping[str, Any]) -> Optional[PaymentRequest]:
		rows = await self._update("update_payment_request", "payment_requests", {"id": _eq(request_id)}, changes)
		return PaymentRequest.model_validate(rows[0]) if rows else None

	async def delete_payment_request(self, request_id: str) -> Optional[PaymentRequest]:
		rows = await self._delete("delete_payment_request", "payment_requests", {"id": _eq(request_id)})
		return PaymentRequest.model_validate(rows[0]) if rows else None

	async def list_payment_records(self, request_id: str) -> list[PaymentRecord]:
		rows = await self._select(
			"list_payment_records",
			"payment_records",
			{"select": _RECORD_SELECT, "request_id": _eq(request_id), "order": "status.asc"},
		)
		return [PaymentRecord.model_validate(row) for row in rows]

	async def list_outstanding_records(self, user_id: str) -> list[PaymentRecord]:
		rows = await self._select(
			"list_outstanding_records",
			"payment_records",
			{
				"select": _OUTSTANDING_SELECT,
				"user_id": _eq(user_id),
				"status": _eq("pending"),
				"order": "created_at.desc",
			},
		)
		return [PaymentRecord.model_validate(row) for row in rows]

	async def update_payment_record(self, record_id: str, changes: Mapping[str, Any]) -> Optional[PaymentRecord]:
		rows = await self._update("update_payment_record", "payment_records", {"id": _eq(record_id)}, changes)
		return PaymentRecord.model_validate(rows[0]) if rows else None

	# --- Announcements -------------------------------------------------------------------

	async def list_announcements(self, club_id: str) -> list[Announcement]:
		rows = await self._select(
			"list_announcements",
			"announcements",
			{"select": _ANNOUNCEMENT_SELECT, "club_id": _eq(club_id), "order": "created_at.desc"},
		)
		return [Announcement.model_validate(row) for row in rows]

	async def insert_announcement(
		self,
		*,
		club_id: str,
		title: str,
		content: str,
		created_by: str,
	) -> Announcement:
		row = await self._insert(
			"insert_announcement",
			"announcements",
			{"club_id": club_id, "title": title, "content": content, "created_by": created_by},
			select=_ANNOUNCEMENT_SELECT,
		)
		return Announcement.model_validate(row)

	async def update_announcement(self, announcement_id: str, changes: Mapping[str, Any]) -> Optional[Announcement]:
		rows = await self._update(
			"update_announcement",
			"announcements",
			{"id": _eq(announcement_id)},
			changes,
			select=_ANNOUNCEMENT_SELECT,
		)
		return Announcement.model_validate(rows[0]) if rows else None

	async def delete_announcement(self, announcement_id: str) -> Optional[Announcement]:
		rows = await self._delete("delete_announcement", "announcements", {"id": _eq(announcement_id)})
		return Announcement.model_validate(rows[0]) if rows else None

	async def aclose(self) -> None:
		await self._http.aclose()
