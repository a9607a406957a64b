"""Keyed collection cache with per-key request sequencing.

Every domain store keeps its denormalised collections (events per club,
records per payment request, ...) in one of these. A fetch takes a token from
``begin_fetch`` before suspending on the remote call and hands it back to
``commit``; only the most recently issued token for a key may write, so two
overlapping fetches can never leave the older response visible.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Generic, Hashable, Iterable, List, Optional, Set, TypeVar

from clubhub.obs import metrics as obs_metrics

_LOG = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(frozen=True, slots=True)
class FetchToken(Generic[K]):
	key: K
	seq: int


class KeyedCollectionCache(Generic[K, V]):
	"""Dictionary from a key to an ordered list of records."""

	def __init__(self, name: str) -> None:
		self.name = name
		self._items: Dict[K, List[V]] = {}
		self._issued: Dict[K, int] = {}
		self._pending: Dict[K, Set[int]] = {}

	def get(self, key: K) -> Optional[List[V]]:
		items = self._items.get(key)
		if items is None:
			return None
		return list(items)

	def __contains__(self, key: object) -> bool:
		return key in self._items

	def keys(self) -> list[K]:
		return list(self._items.keys())

	def is_loading(self, key: K) -> bool:
		return bool(self._pending.get(key))

	def begin_fetch(self, key: K) -> FetchToken[K]:
		seq = self._issued.get(key, 0) + 1
		self._issued[key] = seq
		self._pending.setdefault(key, set()).add(seq)
		return FetchToken(key=key, seq=seq)

	def abandon(self, token: FetchToken[K]) -> None:
		"""Forget an in-flight token whose fetch failed; nothing is written."""
		self._settle(token)

	def commit(self, key: K, token: FetchToken[K], items: Iterable[V]) -> bool:
		if token.key != key:
			raise ValueError(f"token for {token.key!r} cannot commit {key!r}")
		self._settle(token)
		if token.seq != self._issued.get(key, 0):
			_LOG.debug(
				"stale commit discarded",
				extra={"cache": self.name, "cache_key": str(key), "seq": token.seq, "latest": self._issued.get(key, 0)},
			)
			obs_metrics.inc_cache_commit(self.name, applied=False)
			return False
		self._items[key] = list(items)
		obs_metrics.inc_cache_commit(self.name, applied=True)
		return True

	async def load(self, key: K, loader: Callable[[], Awaitable[List[V]]]) -> List[V]:
		"""Run ``loader`` under a fresh token and commit its result.

		The loader's result is returned to the caller even when a newer fetch for
		the same key has since been issued and the commit is discarded.
		"""
		token = self.begin_fetch(key)
		try:
			items = await loader()
		except BaseException:
			self.abandon(token)
			raise
		self.commit(key, token, items)
		return list(items)

	def patch(self, key: K, transform: Callable[[List[V]], List[V]]) -> bool:
		"""Apply a local edit as the newest write for ``key``.

		Fetches issued before the patch can no longer commit. A key that was
		never fetched is left untouched.
		"""
		current = self._items.get(key)
		if current is None:
			return False
		token = self.begin_fetch(key)
		return self.commit(key, token, transform(list(current)))

	def invalidate(self, key: K) -> None:
		self._items.pop(key, None)
		if key in self._issued:
			# Outstanding fetches were issued before the drop and must not refill it.
			self._issued[key] += 1

	def clear(self) -> None:
		for key in list(self._issued):
			self.invalidate(key)
		self._items.clear()

	def _settle(self, token: FetchToken[K]) -> None:
		pending = self._pending.get(token.key)
		if pending is None:
			return
		pending.discard(token.seq)
		if not pending:
			del self._pending[token.key]
