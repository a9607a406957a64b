"""Observability package bootstrap."""

from __future__ import annotations

from clubhub.obs import logging as obs_logging

_initialised = False


def init() -> None:
	global _initialised
	if _initialised:
		return
	obs_logging.configure_logging()
	_initialised = True


__all__ = ["init"]
