"""Filesystem marker store.

Layout: `<markers_dir>/<scope>/<kind>`, file content is the ISO-8601 UTC
creation timestamp. One directory per session root, so independent roots
never share state. There is no locking: writes are atomic replaces and every
read failure degrades to "marker missing".
"""

from __future__ import annotations

from datetime import datetime
import hashlib
from pathlib import Path
import re
from typing import Callable

from specgate.domain.freshness import format_created_at, is_fresh, parse_created_at, utc_now
from specgate.infrastructure.fs_atomic import atomic_write_text

DEFAULT_SCOPE = "default"

_SAFE_TOKEN = re.compile(r"[A-Za-z0-9._-]{1,128}")


def normalize_scope(scope: str | None) -> str:
    token = str(scope or "").strip()
    if not token:
        return DEFAULT_SCOPE
    if _SAFE_TOKEN.fullmatch(token) and token not in {".", ".."}:
        return token
    return "sha256-" + hashlib.sha256(token.encode("utf-8")).hexdigest()[:32]


def _validate_kind(kind: str) -> str:
    token = kind.strip()
    if not _SAFE_TOKEN.fullmatch(token) or token in {".", ".."}:
        raise ValueError(f"marker kind must match [A-Za-z0-9._-]{{1,128}}: {kind!r}")
    return token


class FileMarkerStore:
    def __init__(self, markers_dir: Path, *, clock: Callable[[], datetime] = utc_now):
        self._markers_dir = markers_dir
        self._clock = clock

    @property
    def markers_dir(self) -> Path:
        return self._markers_dir

    def marker_path(self, kind: str, scope: str) -> Path:
        return self._markers_dir / normalize_scope(scope) / _validate_kind(kind)

    def now_utc(self) -> datetime:
        return self._clock()

    def set_marker(self, kind: str, scope: str) -> None:
        atomic_write_text(self.marker_path(kind, scope), format_created_at(self._clock()) + "\n")

    def clear_marker(self, kind: str, scope: str) -> None:
        self.marker_path(kind, scope).unlink(missing_ok=True)

    def created_at(self, kind: str, scope: str) -> datetime | None:
        path = self.marker_path(kind, scope)
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError:
            return None
        return parse_created_at(raw)

    def is_fresh(self, kind: str, scope: str, ttl_seconds: int) -> bool:
        return is_fresh(
            created_at=self.created_at(kind, scope),
            ttl_seconds=ttl_seconds,
            now_utc=self._clock(),
        )

    def kinds(self, scope: str) -> tuple[str, ...]:
        scope_dir = self._markers_dir / normalize_scope(scope)
        if not scope_dir.is_dir():
            return ()
        return tuple(
            sorted(
                p.name
                for p in scope_dir.iterdir()
                if p.is_file() and not p.name.endswith(".tmp") and _SAFE_TOKEN.fullmatch(p.name)
            )
        )
