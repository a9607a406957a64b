"""Error taxonomy shared by the domain stores and the remote adapter."""

from __future__ import annotations


class ClubHubError(Exception):
	"""Base class for store and remote errors."""

	detail: str = "clubhub_error"

	def __init__(self, detail: str | None = None) -> None:
		super().__init__(detail or self.detail)
		if detail:
			self.detail = detail


class NotAuthenticatedError(ClubHubError):
	"""Raised when an operation needs an identity and none is loaded."""

	detail = "not_authenticated"


class AuthenticationError(ClubHubError):
	"""Raised when sign-in or sign-up credentials are rejected."""

	detail = "invalid_credentials"


class NotFoundError(ClubHubError):
	"""Thrown when a requested entity is missing or not visible."""

	detail = "not_found"


class DuplicateError(ClubHubError):
	"""Raised for uniqueness violations (e.g., joining a club twice)."""

	detail = "duplicate"


class ValidationError(ClubHubError):
	"""Raised for arguments rejected before any remote call is made."""

	detail = "validation_error"


class RemoteOperationError(ClubHubError):
	"""Wraps any other transport or service failure."""

	detail = "remote_operation_failed"

	def __init__(
		self,
		detail: str | None = None,
		*,
		status_code: int | None = None,
		code: str | None = None,
	) -> None:
		super().__init__(detail)
		self.status_code = status_code
		self.code = code
