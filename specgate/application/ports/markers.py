"""Marker-store port consumed by the session use cases.

Use cases depend on this protocol only, so tests can hand them a store rooted
in a temporary directory with a fixed clock.
"""

from __future__ import annotations

from datetime import datetime
from typing import Final, Protocol

BLOCK_ACTIVE: Final[str] = "block-active"
PREPARATION_PREFIX: Final[str] = "preparation-used"


def preparation_kind(tag: str) -> str:
    token = "".join(ch if ch.isalnum() or ch in "-_" else "-" for ch in tag.strip().lower())
    return f"{PREPARATION_PREFIX}.{token or 'unspecified'}"


class MarkerStore(Protocol):
    def set_marker(self, kind: str, scope: str) -> None: ...
    def clear_marker(self, kind: str, scope: str) -> None: ...
    def created_at(self, kind: str, scope: str) -> datetime | None: ...
    def is_fresh(self, kind: str, scope: str, ttl_seconds: int) -> bool: ...
    def kinds(self, scope: str) -> tuple[str, ...]: ...
    def now_utc(self) -> datetime: ...
