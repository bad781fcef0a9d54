"""Pre-action gate decision table.

The evaluator is deterministic and side-effect free; marker lookups and
spec re-audits happen in the use case and arrive here as plain booleans.

Decision table (first match wins):
1. no fresh BlockActive marker            -> pass
2. write targeting the specification dir  -> pass
3. read-only command / read-only tool     -> pass
4. everything else                        -> block with remediation text

Tools are classified by policy lists; a tool in none of them is "other" and
counts as a write.
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from specgate.domain.spec_audit import REQUIRED_STRUCTURE_LINES
from specgate.engine.hook_contract import PASS, ActionKind, ActionRequest, GateDecision
from specgate.engine.reason_codes import (
    BLOCKED_SPEC_AUDIT_FAILED,
    BLOCKED_SPEC_REQUIRED,
    WARN_PREPARATION_MISSING,
)
from specgate.infrastructure.policy_config import GateConfig
from specgate.infrastructure.session_paths import is_inside, resolve_target


def classify_action(request: ActionRequest, gate: GateConfig) -> ActionKind:
    if request.tool in gate.edit_tools:
        return "edit"
    if request.tool in gate.execute_tools:
        return "execute"
    if request.tool in gate.read_only_tools:
        return "read"
    return "other"


def is_read_only_command(
    command: str | None,
    *,
    allow_list: Sequence[str],
    disqualifying_tokens: Sequence[str],
) -> bool:
    text = (command or "").strip()
    if not text or "\n" in text:
        return False
    if any(token in text for token in disqualifying_tokens):
        return False
    return any(text == prefix or text.startswith(prefix + " ") for prefix in allow_list)


def targets_spec_dir(request: ActionRequest, *, spec_dir: Path, cwd: Path) -> bool:
    if not request.target_path:
        return False
    return is_inside(resolve_target(request.target_path, cwd=cwd), spec_dir)


def is_mutating(request: ActionRequest, gate: GateConfig) -> bool:
    kind = classify_action(request, gate)
    if kind == "read":
        return False
    if kind == "execute":
        return not is_read_only_command(
            request.command,
            allow_list=gate.read_only_commands,
            disqualifying_tokens=gate.disqualifying_tokens,
        )
    return True


def is_write(request: ActionRequest, gate: GateConfig) -> bool:
    return classify_action(request, gate) in ("edit", "other")


def render_spec_remediation(
    *,
    spec_file: Path,
    spec_dir: Path,
    audited: Sequence[tuple[Path, Sequence[str]]] = (),
) -> str:
    """Self-contained remediation text; never relies on earlier messages."""

    lines = [
        "BLOCKED: a specification is required before implementation.",
        f"Write the specification to {spec_file} (any *.md file under {spec_dir} is accepted).",
        "It must contain:",
    ]
    lines.extend(f"  - {item}" for item in REQUIRED_STRUCTURE_LINES)
    for path, failures in audited:
        lines.append(f"Existing specification {path} fails the audit:")
        lines.extend(f"  - {failure}" for failure in failures)
    lines.append(
        f"Writes inside {spec_dir} and read-only commands (status, listing, search) stay allowed while blocked."
    )
    return "\n".join(lines)


def evaluate_action_gate(
    *,
    request: ActionRequest,
    block_active: bool,
    spec_dir: Path,
    cwd: Path,
    gate: GateConfig,
    remediation: str,
    spec_audit_failed: bool = False,
) -> GateDecision:
    if not block_active:
        return PASS
    if is_write(request, gate) and targets_spec_dir(request, spec_dir=spec_dir, cwd=cwd):
        return PASS
    if not is_mutating(request, gate):
        return PASS
    return GateDecision(
        status="block",
        reason_code=BLOCKED_SPEC_AUDIT_FAILED if spec_audit_failed else BLOCKED_SPEC_REQUIRED,
        message=remediation,
        details={"tool": request.tool, "target": request.target_path, "command": request.command},
    )


def evaluate_advisory_gate(
    *,
    request: ActionRequest,
    preparation_fresh: bool,
    gate: GateConfig,
    preparation_tools: Sequence[str],
) -> GateDecision:
    """Warn-only counterpart of the action gate; never blocks."""

    if preparation_fresh or not is_mutating(request, gate):
        return PASS
    suggestions = ", ".join(sorted(preparation_tools)) or "a documentation lookup"
    return GateDecision(
        status="warn",
        reason_code=WARN_PREPARATION_MISSING,
        message=(
            f"WARNING: {request.tool} changes code without recent preparation. "
            f"Look up documentation or existing patterns first ({suggestions}); proceeding anyway."
        ),
        details={"tool": request.tool},
    )
