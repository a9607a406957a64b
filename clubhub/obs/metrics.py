"""Prometheus counters for the store layer."""

from __future__ import annotations

from prometheus_client import Counter

CACHE_COMMITS = Counter(
	"clubhub_cache_commits_total",
	"Keyed cache commits by outcome",
	["cache", "outcome"],
)

REMOTE_FAILURES = Counter(
	"clubhub_remote_failures_total",
	"Remote data service calls that failed, by error kind",
	["operation", "kind"],
)

STORE_MUTATIONS = Counter(
	"clubhub_store_mutations_total",
	"Mutations issued through the domain stores",
	["store", "action"],
)

SESSION_TRANSITIONS = Counter(
	"clubhub_session_transitions_total",
	"Session state machine transitions",
	["state"],
)


def inc_cache_commit(cache: str, applied: bool) -> None:
	CACHE_COMMITS.labels(cache=cache, outcome="applied" if applied else "stale").inc()


def inc_remote_failure(operation: str, kind: str) -> None:
	REMOTE_FAILURES.labels(operation=operation, kind=kind).inc()


def inc_store_mutation(store: str, action: str) -> None:
	STORE_MUTATIONS.labels(store=store, action=action).inc()


def inc_session_transition(state: str) -> None:
	SESSION_TRANSITIONS.labels(state=state).inc()
