#!/usr/bin/env python3
"""Structured diagnostics events for specgate hook decisions.

One JSON file per event under `<session_root>/<paths.log_dir>/` plus a
same-directory `events-index.json` summary. Writing is opt-in
(`SPECGATE_DIAGNOSTICS_ALLOW_WRITE=1`) and always disabled in CI.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
import json
import os
from pathlib import Path
import re
from typing import Any, Mapping
import uuid

from specgate.infrastructure.fs_atomic import atomic_write_text

DEFAULT_RETENTION_DAYS = 30
EVENT_INDEX_FILE_NAME = "events-index.json"
EVENT_SCHEMA = "specgate.event-log.v1"
INDEX_SCHEMA = "specgate.event-index.v1"
ALLOW_WRITE_ENV = "SPECGATE_DIAGNOSTICS_ALLOW_WRITE"

_EVENT_FILE = re.compile(r"^events-(\d{4}-\d{2}-\d{2})-[A-Fa-f0-9]{8,64}\.json$")


def writes_enabled(env: Mapping[str, str] | None = None) -> bool:
    environment = os.environ if env is None else env
    in_pipeline = str(environment.get("CI", "")).strip().lower() not in {"", "0", "false", "no", "off"}
    return not in_pipeline and str(environment.get(ALLOW_WRITE_ENV, "0")).strip() == "1"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _normalize_value(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Mapping):
        return {str(k): _normalize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize_value(v) for v in value]
    return str(value)


def _extract_event_date(name: str) -> date | None:
    match = _EVENT_FILE.match(name)
    if match is None:
        return None
    try:
        return datetime.strptime(match.group(1), "%Y-%m-%d").date()
    except ValueError:
        return None


def prune_old_events(log_dir: Path, keep_days: int) -> int:
    if keep_days <= 0 or not log_dir.is_dir():
        return 0
    cutoff = datetime.now(timezone.utc).date() - timedelta(days=keep_days)
    removed = 0
    for path in log_dir.glob("events-*.json"):
        event_date = _extract_event_date(path.name)
        if event_date is None or event_date >= cutoff:
            continue
        try:
            path.unlink()
            removed += 1
        except OSError:
            continue
    return removed


def _load_index(index_path: Path) -> dict[str, Any]:
    try:
        existing = json.loads(index_path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        existing = None
    if not isinstance(existing, dict) or existing.get("schema") != INDEX_SCHEMA:
        return {"schema": INDEX_SCHEMA, "updatedAt": _utc_now(), "totalEvents": 0, "byReason": {}, "lastEvent": {}}
    if not isinstance(existing.get("byReason"), dict):
        existing["byReason"] = {}
    if not isinstance(existing.get("totalEvents"), int):
        existing["totalEvents"] = 0
    return existing


def _update_index(index_path: Path, event_file: Path, record: Mapping[str, Any]) -> None:
    idx = _load_index(index_path)
    reason = str(record.get("reasonCode", "unknown"))
    by_reason = idx["byReason"]
    by_reason[reason] = int(by_reason.get(reason, 0)) + 1
    idx["totalEvents"] = int(idx["totalEvents"]) + 1
    idx["updatedAt"] = _utc_now()
    idx["latestEventFile"] = event_file.name
    idx["lastEvent"] = {
        "timestamp": record.get("timestamp"),
        "reasonCode": reason,
        "hook": record.get("hook"),
        "status": record.get("status"),
        "tool": record.get("tool"),
    }
    atomic_write_text(index_path, json.dumps(idx, indent=2, ensure_ascii=True) + "\n")


def write_gate_event(
    *,
    log_dir: Path,
    hook: str,
    status: str,
    reason_code: str,
    message: str,
    session_id: str | None = None,
    tool: str | None = None,
    details: Any = None,
    retention_days: int = DEFAULT_RETENTION_DAYS,
) -> Path:
    if not writes_enabled():
        raise RuntimeError("diagnostics-read-only")
    today = datetime.now(timezone.utc).date().isoformat()
    target = log_dir / f"events-{today}-{uuid.uuid4().hex}.json"
    record = {
        "schema": EVENT_SCHEMA,
        "eventId": uuid.uuid4().hex,
        "timestamp": _utc_now(),
        "hook": str(hook),
        "status": str(status),
        "reasonCode": str(reason_code),
        "sessionId": session_id or "unknown",
        "tool": tool or "",
        "message": str(message),
        "details": _normalize_value(details),
    }
    # One file per event; no appends.
    atomic_write_text(target, json.dumps(record, ensure_ascii=True) + "\n")
    _update_index(log_dir / EVENT_INDEX_FILE_NAME, target, record)
    prune_old_events(log_dir, retention_days)
    return target


def safe_log_event(**kwargs: Any) -> dict[str, str]:
    """Best-effort wrapper: a diagnostics failure never changes a hook decision."""

    if not writes_enabled():
        return {"status": "read-only"}
    try:
        path = write_gate_event(**kwargs)
    except (OSError, RuntimeError, ValueError) as exc:
        return {"status": "log-failed", "error": str(exc)}
    return {"status": "logged", "path": str(path)}
