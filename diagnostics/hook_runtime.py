"""Shared plumbing for specgate hook entry points.

Every hook follows the same single-shot contract:
stdin JSON payload -> decision -> exit code 0 (pass) / 1 (warn) / 2 (block),
with the decision message on stderr (pass messages go to stdout as context).

Environment:
    SPECGATE_SESSION_ROOT             - session root override
    SPECGATE_POLICY_FILE              - explicit policy file (fail-closed)
    SPECGATE_DIAGNOSTICS_ALLOW_WRITE  - set to 1 to record diagnostics events
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from datetime import datetime
import json
from pathlib import Path
import sys
from typing import Callable, Sequence, TextIO

from diagnostics.event_log import safe_log_event
from specgate.domain.freshness import utc_now
from specgate.engine.hook_contract import ActionRequest, GateDecision, HookPayloadError, parse_hook_payload
from specgate.engine.reason_codes import BLOCKED_POLICY_INVALID, REASON_CODE_NONE, WARN_PAYLOAD_UNREADABLE
from specgate.infrastructure.marker_store import FileMarkerStore, normalize_scope
from specgate.infrastructure.policy_config import PolicyConfigError, SpecgatePolicy, load_policy
from specgate.infrastructure.session_paths import SessionPaths, resolve_session_root, session_paths


@dataclass(frozen=True)
class HookContext:
    request: ActionRequest
    paths: SessionPaths
    policy: SpecgatePolicy
    store: FileMarkerStore
    scope: str


HookHandler = Callable[[HookContext], GateDecision]


def build_parser(description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument("--session-root", type=Path, default=None, help="Project root holding specs and markers.")
    parser.add_argument("--policy-file", type=Path, default=None, help="Explicit specgate policy YAML.")
    parser.add_argument("--json", action="store_true", help="Print the decision object as JSON on stdout.")
    return parser


def emit_decision(decision: GateDecision, *, as_json: bool, stdout: TextIO, stderr: TextIO) -> int:
    if as_json:
        print(json.dumps(decision.to_dict(), ensure_ascii=True, default=str), file=stdout)
    if decision.message:
        print(decision.message, file=stderr if decision.status != "pass" else stdout)
    return decision.exit_code


def _log(hook: str, decision: GateDecision, *, paths: SessionPaths | None, policy: SpecgatePolicy, request: ActionRequest | None) -> None:
    if paths is None or (decision.status == "pass" and decision.reason_code == REASON_CODE_NONE):
        return
    safe_log_event(
        log_dir=paths.log_dir,
        hook=hook,
        status=decision.status,
        reason_code=decision.reason_code,
        message=decision.message,
        session_id=request.session_id if request else None,
        tool=request.tool if request else None,
        details=decision.details,
        retention_days=policy.diagnostics.retention_days,
    )


def run_hook(
    *,
    hook: str,
    description: str,
    handler: HookHandler,
    argv: Sequence[str] | None = None,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> int:
    args = build_parser(description).parse_args(argv)
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    stderr = stderr or sys.stderr

    try:
        policy = load_policy(args.policy_file)
    except PolicyConfigError as exc:
        decision = GateDecision(
            status="block",
            reason_code=BLOCKED_POLICY_INVALID,
            message=f"BLOCKED: specgate policy is invalid: {exc}. Fix or remove the policy file and retry.",
        )
        return emit_decision(decision, as_json=args.json, stdout=stdout, stderr=stderr)

    try:
        request = parse_hook_payload(stdin.read())
    except HookPayloadError as exc:
        # A gate never crashes its host; an unreadable payload proceeds unchecked.
        decision = GateDecision(status="pass", reason_code=WARN_PAYLOAD_UNREADABLE, details={"error": str(exc)})
        paths = session_paths(resolve_session_root(explicit=args.session_root), policy)
        _log(hook, decision, paths=paths, policy=policy, request=None)
        return emit_decision(decision, as_json=args.json, stdout=stdout, stderr=stderr)

    paths = session_paths(resolve_session_root(explicit=args.session_root, payload_cwd=request.cwd), policy)
    context = HookContext(
        request=request,
        paths=paths,
        policy=policy,
        store=FileMarkerStore(paths.markers_dir, clock=clock),
        scope=normalize_scope(request.session_id),
    )
    decision = handler(context)
    _log(hook, decision, paths=paths, policy=policy, request=request)
    return emit_decision(decision, as_json=args.json, stdout=stdout, stderr=stderr)
