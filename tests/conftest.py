from __future__ import annotations

import pytest
import pytest_asyncio

from clubhub.client import ClubHubClient
from clubhub.domain.session.models import Identity

from tests.fakes import FakeRemote

PASSWORD = "correct horse"


@pytest.fixture
def remote() -> FakeRemote:
	return FakeRemote()


@pytest.fixture
def alice(remote: FakeRemote) -> Identity:
	return remote.add_user("alice@example.com", PASSWORD, "Alice")


@pytest.fixture
def bob(remote: FakeRemote) -> Identity:
	return remote.add_user("bob@example.com", PASSWORD, "Bob")


@pytest.fixture
def client(remote: FakeRemote) -> ClubHubClient:
	return ClubHubClient(remote)


@pytest_asyncio.fixture
async def signed_in(client: ClubHubClient, alice: Identity) -> ClubHubClient:
	"""Client initialized and signed in as alice."""
	await client.start()
	await client.session.sign_in(alice.email, PASSWORD)
	return client
