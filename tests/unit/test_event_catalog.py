from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pydantic
import pytest

from clubhub.domain.events.models import RsvpStatus, partition_events
from clubhub.domain.events.schemas import EventCreate, EventUpdate
from clubhub.domain.exceptions import NotFoundError, RemoteOperationError

from tests.conftest import PASSWORD


def _soon(days: int = 1) -> datetime:
	return datetime.now(timezone.utc) + timedelta(days=days)


@pytest.mark.asyncio
async def test_rsvp_going_updates_server_counts(signed_in, remote, alice):
	club = remote.add_club("Chess", alice)
	event = remote.add_event(club, "Blitz night", start=_soon(), creator=alice)
	await signed_in.events.fetch_club_events(club.id)

	refreshed = await signed_in.events.submit_rsvp(event.id, RsvpStatus.GOING)

	assert refreshed.rsvp_counts.going >= 1
	assert refreshed.user_rsvp == RsvpStatus.GOING
	listed = signed_in.events.get_club_events(club.id)[0]
	assert listed.rsvp_counts.going == 1
	assert listed.user_rsvp == RsvpStatus.GOING


@pytest.mark.asyncio
async def test_changing_rsvp_moves_the_count(signed_in, remote, alice, bob):
	club = remote.add_club("Chess", alice)
	event = remote.add_event(club, "Blitz night", start=_soon(), creator=alice)
	remote.set_rsvp(event, bob, RsvpStatus.GOING)

	await signed_in.events.submit_rsvp(event.id, RsvpStatus.GOING)
	changed = await signed_in.events.submit_rsvp(event.id, RsvpStatus.MAYBE)

	assert changed.rsvp_counts.going == 1
	assert changed.rsvp_counts.maybe == 1
	assert changed.user_rsvp == RsvpStatus.MAYBE


@pytest.mark.asyncio
async def test_other_users_rsvp_is_not_reported_as_own(signed_in, remote, alice, bob):
	club = remote.add_club("Chess", alice)
	event = remote.add_event(club, "Blitz night", start=_soon(), creator=alice)
	remote.set_rsvp(event, bob, RsvpStatus.NOT_GOING)

	events = await signed_in.events.fetch_club_events(club.id)

	assert events[0].user_rsvp is None
	assert events[0].rsvp_counts.not_going == 1


@pytest.mark.asyncio
async def test_anonymous_fetch_skips_own_status_lookup(client, remote, alice, bob):
	club = remote.add_club("Chess", alice)
	event = remote.add_event(club, "Blitz night", start=_soon(), creator=alice)
	remote.set_rsvp(event, bob, RsvpStatus.GOING)
	remote.set_rsvp(event, alice, RsvpStatus.MAYBE)
	await client.start()

	events = await client.events.fetch_club_events(club.id)

	assert "list_user_rsvps" not in remote.calls
	assert events[0].rsvp_counts.going == 1
	assert events[0].rsvp_counts.maybe == 1
	assert events[0].user_rsvp is None


@pytest.mark.asyncio
async def test_stale_event_fetch_is_discarded(signed_in, remote, alice, monkeypatch):
	club = remote.add_club("Chess", alice)
	remote.add_event(club, "Blitz night", start=_soon(), creator=alice)
	original = remote.list_events_with_counts
	gate = asyncio.Event()
	calls = 0

	async def snapshot_then_wait(club_id):
		nonlocal calls
		calls += 1
		first_call = calls == 1
		rows = await original(club_id)
		if first_call:
			await gate.wait()
		return rows

	monkeypatch.setattr(remote, "list_events_with_counts", snapshot_then_wait)

	older = asyncio.create_task(signed_in.events.fetch_club_events(club.id))
	for _ in range(3):
		await asyncio.sleep(0)
	remote.add_event(club, "Simul", start=_soon(2), creator=alice)
	newer = await signed_in.events.fetch_club_events(club.id)
	gate.set()
	stale = await older

	assert [e.title for e in stale] == ["Blitz night"]
	assert [e.title for e in newer] == ["Blitz night", "Simul"]
	assert [e.title for e in signed_in.events.get_club_events(club.id)] == ["Blitz night", "Simul"]
	assert not signed_in.events.is_loading(club.id)


@pytest.mark.asyncio
async def test_fetch_event_by_id_missing(signed_in):
	with pytest.raises(NotFoundError):
		await signed_in.events.fetch_event_by_id("missing")
	assert signed_in.events.get_event("missing") is None


@pytest.mark.asyncio
async def test_failed_refetch_leaves_cache_untouched(signed_in, remote, alice):
	club = remote.add_club("Chess", alice)
	event = remote.add_event(club, "Blitz night", start=_soon(), creator=alice)
	before = await signed_in.events.fetch_club_events(club.id)
	remote.fail_next("get_event_with_counts", RemoteOperationError("transport_error"))

	with pytest.raises(RemoteOperationError):
		await signed_in.events.submit_rsvp(event.id, RsvpStatus.GOING)

	assert signed_in.events.get_club_events(club.id) == before
	assert (event.id, signed_in.session.identity.id) in remote.rsvps


@pytest.mark.asyncio
async def test_create_update_delete_event(signed_in, remote, alice):
	club = remote.add_club("Chess", alice)
	await signed_in.clubs.fetch_user_clubs()
	assert signed_in.events.can_manage_events(club.id)

	created = await signed_in.events.create_event(
		EventCreate(club_id=club.id, title="Blitz night", start_time=_soon())
	)
	assert created.created_by == alice.id
	assert [e.id for e in signed_in.events.get_club_events(club.id)] == [created.id]

	updated = await signed_in.events.update_event(created.id, EventUpdate(title="Rapid night"))
	assert updated.title == "Rapid night"
	assert signed_in.events.get_club_events(club.id)[0].title == "Rapid night"

	await signed_in.events.delete_event(created.id)
	assert signed_in.events.get_club_events(club.id) == []
	assert signed_in.events.get_event(created.id) is None

	with pytest.raises(NotFoundError):
		await signed_in.events.delete_event(created.id)


def test_event_window_is_validated():
	start = _soon()
	with pytest.raises(pydantic.ValidationError):
		EventCreate(club_id="c1", title="Backwards", start_time=start, end_time=start - timedelta(hours=1))


@pytest.mark.asyncio
async def test_event_rsvps_include_profiles(signed_in, remote, alice, bob):
	club = remote.add_club("Chess", alice)
	event = remote.add_event(club, "Blitz night", start=_soon(), creator=alice)
	remote.set_rsvp(event, bob, RsvpStatus.GOING)
	await signed_in.events.fetch_event_rsvps(event.id)

	await signed_in.events.submit_rsvp(event.id, RsvpStatus.MAYBE)

	rsvps = signed_in.events.get_event_rsvps(event.id)
	assert {r.user.name: r.status for r in rsvps} == {"Alice": RsvpStatus.MAYBE, "Bob": RsvpStatus.GOING}


@pytest.mark.asyncio
async def test_upcoming_events_across_clubs(signed_in, remote, alice, bob):
	chess = remote.add_club("Chess", alice)
	go = remote.add_club("Go", bob)
	remote.add_member(go, alice)
	other = remote.add_club("Bridge", bob)
	remote.add_event(chess, "Past", start=_soon(-3), creator=alice)
	remote.add_event(go, "Later", start=_soon(5), creator=bob)
	remote.add_event(chess, "Sooner", start=_soon(1), creator=alice)
	remote.add_event(other, "Not mine", start=_soon(2), creator=bob)

	upcoming = await signed_in.events.fetch_upcoming_events()

	assert [e.title for e in upcoming] == ["Sooner", "Later"]


@pytest.mark.asyncio
async def test_upcoming_events_need_identity(client):
	await client.start()
	assert await client.events.fetch_upcoming_events() == []


@pytest.mark.asyncio
async def test_past_is_derived_at_read_time(signed_in, remote, alice):
	club = remote.add_club("Chess", alice)
	start = _soon()
	remote.add_event(club, "Blitz night", start=start, creator=alice)
	events = await signed_in.events.fetch_club_events(club.id)

	upcoming, past = partition_events(events, now=start - timedelta(minutes=1))
	assert (len(upcoming), len(past)) == (1, 0)

	# Starting exactly now is still upcoming
	upcoming, past = partition_events(events, now=start)
	assert (len(upcoming), len(past)) == (1, 0)

	upcoming, past = partition_events(events, now=start + timedelta(seconds=1))
	assert (len(upcoming), len(past)) == (0, 1)


@pytest.mark.asyncio
async def test_switching_user_drops_cached_events(client, remote, alice, bob):
	club = remote.add_club("Chess", alice)
	remote.add_event(club, "Blitz night", start=_soon(), creator=alice)
	await client.start()
	await client.session.sign_in(alice.email, PASSWORD)
	await client.events.fetch_club_events(club.id)

	await client.session.sign_in(bob.email, PASSWORD)

	assert client.events.get_club_events(club.id) is None


@pytest.mark.asyncio
async def test_fetched_event_becomes_current(signed_in, remote, alice):
	club = remote.add_club("Chess", alice)
	event = remote.add_event(club, "Blitz night", start=_soon(), creator=alice)

	await signed_in.events.fetch_event_by_id(event.id)
	assert signed_in.events.current_event.id == event.id

	await signed_in.events.submit_rsvp(event.id, RsvpStatus.GOING)
	assert signed_in.events.current_event.rsvp_counts.going == 1

	await signed_in.events.delete_event(event.id)
	assert signed_in.events.current_event is None


@pytest.mark.asyncio
async def test_loading_flag_tracks_in_flight_fetch(signed_in, remote, alice):
	club = remote.add_club("Chess", alice)
	gate = remote.hold_next("list_events_with_counts")

	pending = asyncio.create_task(signed_in.events.fetch_club_events(club.id))
	await asyncio.sleep(0)
	assert signed_in.events.is_loading(club.id)

	gate.set()
	await pending
	assert not signed_in.events.is_loading(club.id)
	assert signed_in.events.get_club_events(club.id) == []
