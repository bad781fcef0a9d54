"""Post-action use case.

Two follow-ups run after a tool call completes:
- preparation tools (documentation lookups, pattern searches) refresh their
  advisory marker;
- writes inside the specification directory are audited and the verdict
  updates BlockActive (cleared on pass/warn, armed on block).
"""

from __future__ import annotations

import fnmatch
from pathlib import Path

from specgate.application.ports.markers import BLOCK_ACTIVE, MarkerStore, preparation_kind
from specgate.domain.spec_audit import AuditReport, audit_spec_text, format_audit_report
from specgate.engine.gate_evaluator import is_write, targets_spec_dir
from specgate.engine.hook_contract import PASS, ActionRequest, GateDecision
from specgate.engine.reason_codes import BLOCKED_SPEC_AUDIT_FAILED, WARN_SPEC_AUDIT
from specgate.infrastructure.policy_config import SpecgatePolicy
from specgate.infrastructure.session_paths import SessionPaths, resolve_target


def record_preparation(*, request: ActionRequest, policy: SpecgatePolicy, store: MarkerStore, scope: str) -> str | None:
    tag = policy.advisory.preparation_tools.get(request.tool)
    if not policy.advisory.enabled or tag is None:
        return None
    kind = preparation_kind(tag)
    store.set_marker(kind, scope)
    return kind


def apply_audit_verdict(*, report: AuditReport, store: MarkerStore, scope: str) -> None:
    if report.is_blocking:
        store.set_marker(BLOCK_ACTIVE, scope)
    else:
        store.clear_marker(BLOCK_ACTIVE, scope)


def audit_written_spec(
    *,
    request: ActionRequest,
    paths: SessionPaths,
    policy: SpecgatePolicy,
    store: MarkerStore,
    scope: str,
) -> GateDecision:
    cwd = Path(request.cwd) if request.cwd else paths.root
    if not is_write(request, policy.gate) or not request.target_path:
        return PASS
    if not targets_spec_dir(request, spec_dir=paths.spec_dir, cwd=cwd):
        return PASS
    target = resolve_target(request.target_path, cwd=cwd)
    if not fnmatch.fnmatch(target.name, policy.paths.spec_glob) or not target.is_file():
        return PASS

    report = audit_spec_text(target.read_text(encoding="utf-8", errors="replace"))
    apply_audit_verdict(report=report, store=store, scope=scope)
    details = {"artifact": str(target), "report": report.to_dict()}
    if report.severity == "block":
        return GateDecision(
            status="block",
            reason_code=BLOCKED_SPEC_AUDIT_FAILED,
            message=format_audit_report(report, source=str(target))
            + f"\nImplementation stays blocked until {target} passes the critical checks.",
            details=details,
        )
    if report.severity == "warn":
        return GateDecision(
            status="warn",
            reason_code=WARN_SPEC_AUDIT,
            message=format_audit_report(report, source=str(target))
            + "\nImplementation is unblocked; consider resolving the warnings.",
            details=details,
        )
    return GateDecision(status="pass", details=details)


def handle_post_action(
    *,
    request: ActionRequest,
    paths: SessionPaths,
    policy: SpecgatePolicy,
    store: MarkerStore,
    scope: str,
) -> GateDecision:
    record_preparation(request=request, policy=policy, store=store, scope=scope)
    return audit_written_spec(request=request, paths=paths, policy=policy, store=store, scope=scope)
