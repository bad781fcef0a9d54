"""Pre-action use case: gate controller plus the advisory preparation check."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from specgate.application.ports.markers import BLOCK_ACTIVE, PREPARATION_PREFIX, MarkerStore
from specgate.domain.spec_audit import audit_spec_text
from specgate.engine.gate_evaluator import (
    evaluate_action_gate,
    evaluate_advisory_gate,
    render_spec_remediation,
    targets_spec_dir,
)
from specgate.engine.hook_contract import ActionRequest, GateDecision
from specgate.infrastructure.policy_config import SpecgatePolicy
from specgate.infrastructure.session_paths import SessionPaths, list_spec_artifacts


@dataclass(frozen=True)
class SpecReaudit:
    passing: Path | None
    failures: tuple[tuple[Path, tuple[str, ...]], ...]


def reaudit_specs_since(*, paths: SessionPaths, policy: SpecgatePolicy, since: datetime | None) -> SpecReaudit:
    """Audit every artifact in the specification directory.

    Only an artifact modified at or after `since` can lift the block; older
    ones belong to earlier work. Every blocking artifact, old or new, is
    reported so the remediation text can name its critical failures.
    """

    failures: list[tuple[Path, tuple[str, ...]]] = []
    threshold = since.timestamp() if since is not None else None
    for artifact in list_spec_artifacts(paths, pattern=policy.paths.spec_glob):
        try:
            mtime = artifact.stat().st_mtime
            text = artifact.read_text(encoding="utf-8", errors="replace")
        except OSError:
            continue
        report = audit_spec_text(text)
        if report.is_blocking:
            failures.append((artifact, report.critical_failures))
        elif threshold is None or mtime >= threshold:
            return SpecReaudit(passing=artifact, failures=())
    return SpecReaudit(passing=None, failures=tuple(failures))


def preparation_is_fresh(*, store: MarkerStore, scope: str, ttl_seconds: int) -> bool:
    return any(
        store.is_fresh(kind, scope, ttl_seconds)
        for kind in store.kinds(scope)
        if kind.startswith(PREPARATION_PREFIX + ".")
    )


def evaluate_pre_action(
    *,
    request: ActionRequest,
    paths: SessionPaths,
    policy: SpecgatePolicy,
    store: MarkerStore,
    scope: str,
) -> GateDecision:
    block_active = store.is_fresh(BLOCK_ACTIVE, scope, policy.freshness.block_ttl_seconds)
    reaudit = SpecReaudit(passing=None, failures=())
    if block_active:
        reaudit = reaudit_specs_since(paths=paths, policy=policy, since=store.created_at(BLOCK_ACTIVE, scope))
        if reaudit.passing is not None:
            store.clear_marker(BLOCK_ACTIVE, scope)
            block_active = False

    cwd = Path(request.cwd) if request.cwd else paths.root
    decision = evaluate_action_gate(
        request=request,
        block_active=block_active,
        spec_dir=paths.spec_dir,
        cwd=cwd,
        gate=policy.gate,
        remediation=render_spec_remediation(
            spec_file=paths.default_spec_file,
            spec_dir=paths.spec_dir,
            audited=reaudit.failures,
        ),
        spec_audit_failed=bool(reaudit.failures),
    )
    if decision.status == "block" or not policy.advisory.enabled:
        return decision
    if targets_spec_dir(request, spec_dir=paths.spec_dir, cwd=cwd):
        return decision

    return evaluate_advisory_gate(
        request=request,
        preparation_fresh=preparation_is_fresh(store=store, scope=scope, ttl_seconds=policy.freshness.read_ttl_seconds),
        gate=policy.gate,
        preparation_tools=tuple(policy.advisory.preparation_tools),
    )
