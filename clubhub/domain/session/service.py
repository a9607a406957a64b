"""Session store: who is signed in, and the state machine around it."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from clubhub.domain.exceptions import ClubHubError, NotAuthenticatedError, RemoteOperationError, ValidationError
from clubhub.domain.session.models import Identity, ProfileUpdate, RemoteSession, SessionState
from clubhub.infra.remote import RemoteRepository, Unsubscribe
from clubhub.obs import metrics as obs_metrics
from clubhub.settings import settings

_LOG = logging.getLogger(__name__)

StateListener = Callable[[SessionState, Optional[Identity]], Awaitable[None]]


class SessionStore:
	"""Holds the current identity and session.

	``UNINITIALIZED → INITIALIZING → AUTHENTICATED | ANONYMOUS``; afterwards the
	store moves between AUTHENTICATED and ANONYMOUS on sign-in/out and on
	session changes reported by the remote service.
	"""

	def __init__(self, remote: RemoteRepository) -> None:
		self.remote = remote
		self._state = SessionState.UNINITIALIZED
		self._identity: Optional[Identity] = None
		self._session: Optional[RemoteSession] = None
		self._unsubscribe: Optional[Unsubscribe] = None
		self._listeners: list[StateListener] = []

	@property
	def state(self) -> SessionState:
		return self._state

	@property
	def identity(self) -> Optional[Identity]:
		return self._identity

	@property
	def session(self) -> Optional[RemoteSession]:
		return self._session

	@property
	def is_authenticated(self) -> bool:
		return self._state == SessionState.AUTHENTICATED and self._identity is not None

	@property
	def is_initialized(self) -> bool:
		return self._state in (SessionState.AUTHENTICATED, SessionState.ANONYMOUS)

	def require_identity(self) -> Identity:
		if self._identity is None:
			raise NotAuthenticatedError()
		return self._identity

	def subscribe(self, listener: StateListener) -> Callable[[], None]:
		"""Call ``listener`` after every state transition."""
		self._listeners.append(listener)

		def _unsubscribe() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return _unsubscribe

	async def initialize(self) -> SessionState:
		if self._unsubscribe is not None or self._state == SessionState.INITIALIZING:
			return self._state
		await self._transition(SessionState.INITIALIZING)
		try:
			session = await self.remote.get_session()
			await self._apply_session(session)
		except Exception:
			_LOG.exception("session initialization failed")
			self._identity = None
			self._session = None
			await self._transition(SessionState.ANONYMOUS)
		if self._unsubscribe is None:
			self._unsubscribe = self.remote.on_session_change(self._on_remote_change)
		return self._state

	async def sign_up(self, email: str, password: str, name: str) -> Optional[Identity]:
		session = await self.remote.sign_up(email=email, password=password, name=name)
		if session is None:
			_LOG.info("sign-up pending confirmation")
			return None
		await self._apply_session(session)
		return self._identity

	async def sign_in(self, email: str, password: str) -> Identity:
		session = await self.remote.sign_in(email=email, password=password)
		await self._apply_session(session)
		return self.require_identity()

	async def sign_out(self) -> None:
		"""Clear local state even when the remote sign-out fails."""
		try:
			await self.remote.sign_out()
		except ClubHubError:
			await self._clear()
			raise
		except Exception as exc:
			await self._clear()
			raise RemoteOperationError("sign_out_failed") from exc
		await self._clear()

	async def request_password_reset(self, email: str) -> None:
		"""Send a reset link; the address is normalised and never logged."""
		address = (email or "").strip().lower()
		if not address:
			raise ValidationError("email_required")
		await self.remote.reset_password_for_email(address, redirect_to=settings.password_reset_redirect_url or None)
		obs_metrics.inc_store_mutation("session", "password_reset")
		_LOG.info("password reset requested")

	async def update_profile(self, changes: ProfileUpdate) -> Identity:
		identity = self.require_identity()
		updated = await self.remote.update_profile(identity.id, changes.changes())
		if updated is None:
			raise RemoteOperationError("profile_update_rejected")
		self._identity = updated
		obs_metrics.inc_store_mutation("session", "update_profile")
		await self._transition(SessionState.AUTHENTICATED)
		return updated

	async def close(self) -> None:
		if self._unsubscribe is not None:
			self._unsubscribe()
			self._unsubscribe = None

	async def _on_remote_change(self, session: Optional[RemoteSession]) -> None:
		try:
			await self._apply_session(session)
		except Exception:
			_LOG.exception("failed to apply remote session change")
			await self._clear()

	async def _apply_session(self, session: Optional[RemoteSession]) -> None:
		if session is None:
			await self._clear()
			return
		identity = await self.remote.get_profile(session.user_id)
		if identity is None:
			_LOG.warning("session without profile", extra={"user_id": session.user_id})
			await self._clear()
			return
		self._session = session
		self._identity = identity
		await self._transition(SessionState.AUTHENTICATED)

	async def _clear(self) -> None:
		self._session = None
		self._identity = None
		await self._transition(SessionState.ANONYMOUS)

	async def _transition(self, state: SessionState) -> None:
		self._state = state
		obs_metrics.inc_session_transition(state.value)
		if state == SessionState.INITIALIZING:
			return
		for listener in list(self._listeners):
			await listener(state, self._identity)
