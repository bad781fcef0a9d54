"""Hook invocation contract.

One JSON object arrives on stdin; one of three classifications leaves through
the exit code. Non-pass decisions carry a self-contained message for stderr.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from typing import Any, Literal, Mapping

from specgate.engine.reason_codes import REASON_CODE_NONE

DecisionStatus = Literal["pass", "warn", "block"]
ActionKind = Literal["edit", "execute", "read", "other"]

EXIT_CODES: Mapping[DecisionStatus, int] = {"pass": 0, "warn": 1, "block": 2}

_TARGET_KEYS = ("file_path", "notebook_path", "path")
_SUBJECT_KEYS = ("task_subject", "subject")


class HookPayloadError(ValueError):
    pass


@dataclass(frozen=True)
class ActionRequest:
    event: str
    tool: str
    target_path: str | None = None
    command: str | None = None
    subject: str | None = None
    cwd: str | None = None
    session_id: str | None = None


@dataclass(frozen=True)
class GateDecision:
    status: DecisionStatus
    reason_code: str = REASON_CODE_NONE
    message: str = ""
    details: Mapping[str, Any] = field(default_factory=dict)

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.status]

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "reason_code": self.reason_code,
            "message": self.message,
            "details": dict(self.details),
        }


PASS = GateDecision(status="pass")


def _text(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _subject(payload: Mapping[str, Any], tool_input: Mapping[str, Any]) -> str | None:
    for source in (payload, tool_input):
        for key in _SUBJECT_KEYS:
            found = _text(source.get(key))
            if found:
                return found
    task = payload.get("task")
    if isinstance(task, dict):
        return _text(task.get("subject")) or _text(task.get("title"))
    return None


def parse_hook_payload(raw: str) -> ActionRequest:
    try:
        payload = json.loads(raw) if raw.strip() else {}
    except json.JSONDecodeError as exc:
        raise HookPayloadError(f"hook payload is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise HookPayloadError("hook payload must be a JSON object")

    tool_input = payload.get("tool_input")
    if not isinstance(tool_input, dict):
        tool_input = {}

    target = None
    for key in _TARGET_KEYS:
        target = _text(tool_input.get(key))
        if target:
            break

    return ActionRequest(
        event=_text(payload.get("hook_event_name")) or "unknown",
        tool=_text(payload.get("tool_name")) or "",
        target_path=target,
        command=_text(tool_input.get("command")),
        subject=_subject(payload, tool_input),
        cwd=_text(payload.get("cwd")),
        session_id=_text(payload.get("session_id")),
    )
