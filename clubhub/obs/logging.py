"""Structured logging helpers for the client core."""

from __future__ import annotations

import json
import logging
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from clubhub.settings import settings

_USER_ID: ContextVar[Optional[str]] = ContextVar("obs_user_id", default=None)
_STORE: ContextVar[Optional[str]] = ContextVar("obs_store", default=None)

_LOGGER_NAME = "clubhub"

_SENSITIVE_KEYWORDS = (
	"token",
	"secret",
	"authorization",
	"password",
	"email",
	"phone",
	"apikey",
)

_MAX_STRING_LENGTH = 256
_MAX_COLLECTION_ITEMS = 10

_RESERVED_ATTRS = frozenset(
	{
		"args",
		"msg",
		"levelname",
		"levelno",
		"pathname",
		"filename",
		"module",
		"exc_info",
		"exc_text",
		"stack_info",
		"lineno",
		"funcName",
		"created",
		"msecs",
		"relativeCreated",
		"thread",
		"threadName",
		"process",
		"processName",
		"message",
		"name",
		"taskName",
	}
)


def bind_context(*, user_id: Optional[str] = None, store: Optional[str] = None) -> Dict[str, Token]:
	"""Bind contextual fields for the current task and return reset tokens."""
	tokens: Dict[str, Token] = {}
	if user_id is not None:
		tokens["user_id"] = _USER_ID.set(user_id)
	if store is not None:
		tokens["store"] = _STORE.set(store)
	return tokens


def reset_context(tokens: Dict[str, Token]) -> None:
	for key, token in tokens.items():
		if key == "user_id":
			_USER_ID.reset(token)
		elif key == "store":
			_STORE.reset(token)


def _truncate_collection(values: list[Any]) -> list[Any]:
	if len(values) <= _MAX_COLLECTION_ITEMS:
		return values
	trimmed = values[:_MAX_COLLECTION_ITEMS]
	trimmed.append("…")
	return trimmed


def _sanitize_value(value: Any) -> Any:
	if isinstance(value, str):
		return value if len(value) <= _MAX_STRING_LENGTH else f"{value[:_MAX_STRING_LENGTH]}…"
	if isinstance(value, dict):
		result: Dict[str, Any] = {}
		for idx, (key, nested) in enumerate(value.items()):
			if idx >= _MAX_COLLECTION_ITEMS:
				result["…"] = f"+{len(value) - _MAX_COLLECTION_ITEMS} keys"
				break
			result[str(key)] = sanitize_field(str(key), nested)
		return result
	if isinstance(value, (list, tuple, set)):
		items = [_sanitize_value(item) for item in list(value)]
		return _truncate_collection(items)
	if isinstance(value, (int, float, bool)) or value is None:
		return value
	return str(value)


def sanitize_field(key: str, value: Any) -> Any:
	lowered = key.lower()
	if any(keyword in lowered for keyword in _SENSITIVE_KEYWORDS):
		return "[redacted]"
	return _sanitize_value(value)


class JSONLogFormatter(logging.Formatter):
	"""Emit logs as JSON objects with structured fields."""

	def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (match logging api)
		timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
		payload: Dict[str, object] = {
			"ts": timestamp,
			"level": record.levelname.lower(),
			"msg": record.getMessage(),
			"logger": record.name,
			"service": settings.service_name,
			"env": settings.environment,
			"commit": settings.git_commit,
		}
		user_id = _USER_ID.get()
		if user_id:
			payload["user_id"] = user_id
		store = _STORE.get()
		if store:
			payload["store"] = store
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		for key, value in record.__dict__.items():
			if key in _RESERVED_ATTRS or key.startswith("_"):
				continue
			payload[key] = sanitize_field(key, value)
		return json.dumps(payload, separators=(",", ":"))


def configure_logging() -> logging.Logger:
	"""Configure the root logger from settings (JSON or plain text)."""
	root = logging.getLogger()
	root.handlers.clear()
	handler = logging.StreamHandler()
	if settings.obs_log_json:
		handler.setFormatter(JSONLogFormatter())
	else:
		handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
	root.addHandler(handler)
	root.setLevel(settings.obs_log_level)
	return logging.getLogger(_LOGGER_NAME)
