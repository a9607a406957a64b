"""ClubHub client core: session and domain stores over a remote data service."""

from __future__ import annotations

__version__ = "0.1.0"
