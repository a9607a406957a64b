from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from clubhub.domain.clubs.models import MemberRole
from clubhub.domain.exceptions import AuthenticationError, DuplicateError, RemoteOperationError
from clubhub.domain.session.models import RemoteSession
from clubhub.infra.postgrest import PostgrestRepository

ANON_KEY = "anon-key"


class _Recorder:
	def __init__(self, *responses: httpx.Response) -> None:
		self.responses = list(responses)
		self.requests: list[httpx.Request] = []

	def __call__(self, request: httpx.Request) -> httpx.Response:
		self.requests.append(request)
		return self.responses.pop(0)


def _repo(recorder: _Recorder) -> PostgrestRepository:
	http = httpx.AsyncClient(transport=httpx.MockTransport(recorder), base_url="http://remote.test")
	return PostgrestRepository(anon_key=ANON_KEY, http=http)


def _session_payload(user_id: str = "u1", token: str = "access-1") -> dict:
	return {"access_token": token, "refresh_token": "refresh-1", "expires_in": 3600, "user": {"id": user_id}}


@pytest.mark.asyncio
async def test_sign_in_stores_session_and_authorizes_requests():
	recorder = _Recorder(
		httpx.Response(200, json=_session_payload()),
		httpx.Response(200, json=[{"id": "u1", "email": "a@example.com", "name": "Alice"}]),
	)
	repo = _repo(recorder)

	session = await repo.sign_in(email="a@example.com", password="pw")
	profile = await repo.get_profile("u1")

	assert session.user_id == "u1"
	assert profile.name == "Alice"
	auth_request, profile_request = recorder.requests
	assert auth_request.url.path == "/auth/v1/token"
	assert auth_request.url.params["grant_type"] == "password"
	assert profile_request.url.params["id"] == "eq.u1"
	assert profile_request.headers["Authorization"] == "Bearer access-1"
	assert profile_request.headers["apikey"] == ANON_KEY
	await repo.aclose()


@pytest.mark.asyncio
async def test_rejected_credentials_map_to_authentication_error():
	recorder = _Recorder(httpx.Response(400, json={"error": "invalid_grant", "error_description": "Invalid login"}))
	repo = _repo(recorder)

	with pytest.raises(AuthenticationError) as excinfo:
		await repo.sign_in(email="a@example.com", password="nope")
	assert excinfo.value.detail == "invalid_grant"
	await repo.aclose()


@pytest.mark.asyncio
async def test_sign_up_pending_confirmation_returns_none():
	recorder = _Recorder(httpx.Response(200, json={"id": "u9", "email": "new@example.com"}))
	repo = _repo(recorder)

	assert await repo.sign_up(email="new@example.com", password="pw", name="New") is None
	body = json.loads(recorder.requests[0].content)
	assert body["data"] == {"name": "New"}
	await repo.aclose()


@pytest.mark.asyncio
async def test_unique_violation_maps_to_duplicate():
	recorder = _Recorder(httpx.Response(409, json={"code": "23505", "message": "duplicate key value"}))
	repo = _repo(recorder)

	with pytest.raises(DuplicateError):
		await repo.insert_membership(club_id="c1", user_id="u1", role=MemberRole.MEMBER)
	request = recorder.requests[0]
	assert request.headers["Prefer"] == "return=representation"
	assert json.loads(request.content) == {"club_id": "c1", "user_id": "u1", "role": "member"}
	await repo.aclose()


@pytest.mark.asyncio
async def test_foreign_key_conflict_is_not_a_duplicate():
	recorder = _Recorder(httpx.Response(409, json={"code": "23503", "message": "violates foreign key constraint"}))
	repo = _repo(recorder)

	with pytest.raises(RemoteOperationError) as excinfo:
		await repo.insert_membership(club_id="gone", user_id="u1", role=MemberRole.MEMBER)
	assert not isinstance(excinfo.value, DuplicateError)
	assert excinfo.value.status_code == 409
	assert excinfo.value.code == "23503"
	await repo.aclose()


@pytest.mark.asyncio
async def test_bare_conflict_status_maps_to_duplicate():
	recorder = _Recorder(httpx.Response(409, content=b""))
	repo = _repo(recorder)

	with pytest.raises(DuplicateError):
		await repo.insert_membership(club_id="c1", user_id="u1", role=MemberRole.MEMBER)
	await repo.aclose()


@pytest.mark.asyncio
async def test_other_failures_map_to_remote_operation_error():
	recorder = _Recorder(httpx.Response(500, json={"code": "XX000", "message": "internal"}))
	repo = _repo(recorder)

	with pytest.raises(RemoteOperationError) as excinfo:
		await repo.list_announcements("c1")
	assert excinfo.value.status_code == 500
	assert excinfo.value.code == "XX000"
	await repo.aclose()


@pytest.mark.asyncio
async def test_transport_failure_maps_to_remote_operation_error():
	def _fail(request: httpx.Request) -> httpx.Response:
		raise httpx.ConnectError("connection refused", request=request)

	http = httpx.AsyncClient(transport=httpx.MockTransport(_fail), base_url="http://remote.test")
	repo = PostgrestRepository(anon_key=ANON_KEY, http=http)

	with pytest.raises(RemoteOperationError) as excinfo:
		await repo.get_club_with_member_count("c1")
	assert excinfo.value.detail == "transport_error"
	await repo.aclose()


@pytest.mark.asyncio
async def test_event_view_counts_are_nested():
	row = {
		"id": "e1",
		"club_id": "c1",
		"title": "Blitz",
		"start_time": "2026-05-01T18:00:00+00:00",
		"created_by": "u1",
		"going_count": 3,
		"maybe_count": 1,
		"not_going_count": None,
	}
	recorder = _Recorder(httpx.Response(200, json=[row]))
	repo = _repo(recorder)

	events = await repo.list_events_with_counts("c1")

	assert events[0].rsvp_counts.going == 3
	assert events[0].rsvp_counts.maybe == 1
	assert events[0].rsvp_counts.not_going == 0
	params = recorder.requests[0].url.params
	assert recorder.requests[0].url.path == "/rest/v1/events_with_rsvp_counts"
	assert params["club_id"] == "eq.c1"
	assert params["order"] == "start_time.asc"
	await repo.aclose()


@pytest.mark.asyncio
async def test_membership_role_update_reports_affected_rows():
	recorder = _Recorder(httpx.Response(200, json=[]))
	repo = _repo(recorder)

	assert await repo.update_membership_role("c1", "u2", MemberRole.ADMIN) == 0
	request = recorder.requests[0]
	assert request.method == "PATCH"
	assert request.url.params["club_id"] == "eq.c1"
	assert request.url.params["user_id"] == "eq.u2"
	await repo.aclose()


@pytest.mark.asyncio
async def test_clubs_view_skips_request_for_no_ids():
	recorder = _Recorder()
	repo = _repo(recorder)

	assert await repo.list_clubs_with_member_count([]) == []
	assert recorder.requests == []
	await repo.aclose()


@pytest.mark.asyncio
async def test_expired_session_is_refreshed_and_announced():
	recorder = _Recorder(httpx.Response(200, json=_session_payload(token="access-2")))
	repo = _repo(recorder)
	repo._session = RemoteSession(
		user_id="u1",
		access_token="access-1",
		refresh_token="refresh-1",
		expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
	)
	seen = []

	async def listener(session):
		seen.append(session.access_token if session else None)

	repo.on_session_change(listener)
	session = await repo.get_session()

	assert session.access_token == "access-2"
	assert seen == ["access-2"]
	assert recorder.requests[0].url.params["grant_type"] == "refresh_token"
	await repo.aclose()


@pytest.mark.asyncio
async def test_sign_out_drops_session_even_on_failure():
	recorder = _Recorder(
		httpx.Response(200, json=_session_payload()),
		httpx.Response(503, json={"message": "unavailable"}),
	)
	repo = _repo(recorder)
	await repo.sign_in(email="a@example.com", password="pw")

	with pytest.raises(RemoteOperationError):
		await repo.sign_out()
	assert await repo.get_session() is None
	await repo.aclose()


@pytest.mark.asyncio
async def test_password_reset_posts_recover_request():
	recorder = _Recorder(httpx.Response(200, json={}))
	repo = _repo(recorder)

	await repo.reset_password_for_email("a@example.com", redirect_to="clubhub://reset-password")

	request = recorder.requests[0]
	assert request.url.path == "/auth/v1/recover"
	assert request.url.params["redirect_to"] == "clubhub://reset-password"
	assert json.loads(request.content) == {"email": "a@example.com"}
	await repo.aclose()
