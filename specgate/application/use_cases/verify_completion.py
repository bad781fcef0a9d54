"""Task-completion use case: requirement-to-test traceability.

Conservative on purpose: tasks without a requirement id and projects whose
runtime cannot be detected (or whose test runner is not installed) are never
blocked.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import shlex
from typing import Sequence

from specgate.domain.freshness import UNKNOWN_MEANS_SKIP, CheckOutcome
from specgate.domain.spec_audit import extract_requirement_id
from specgate.engine.hook_contract import GateDecision
from specgate.engine.reason_codes import (
    BLOCKED_REQ_TEST_FAILED,
    BLOCKED_REQ_TEST_MISSING,
    NOT_VERIFIED_RUNTIME_UNKNOWN,
    REASON_CODE_NONE,
)
from specgate.infrastructure.policy_config import CompletionConfig
from specgate.infrastructure.test_evidence import describe_test_convention, find_test_files_referencing
from specgate.infrastructure.test_runtimes import (
    PROJECT_RUNTIMES,
    CommandRunner,
    ProjectRuntime,
    detect_test_runtime,
    run_test_command,
    tail_excerpt,
)


@dataclass(frozen=True)
class CompletionVerification:
    decision: GateDecision
    req_id: str | None
    evidence: tuple[Path, ...]
    runtime: str | None
    suite_check: CheckOutcome


def _relative(path: Path, root: Path) -> str:
    try:
        return str(path.relative_to(root))
    except ValueError:
        return str(path)


def verify_task_completion(
    *,
    subject: str | None,
    root: Path,
    config: CompletionConfig,
    spec_dir: Path | None = None,
    runtimes: Sequence[ProjectRuntime] = PROJECT_RUNTIMES,
    runner: CommandRunner = run_test_command,
) -> CompletionVerification:
    req_id = extract_requirement_id(subject or "")
    if req_id is None:
        return CompletionVerification(
            decision=GateDecision(status="pass", details={"reason": "no-requirement-id"}),
            req_id=None,
            evidence=(),
            runtime=None,
            suite_check="skipped",
        )

    evidence = find_test_files_referencing(
        req_id,
        root=root,
        config=config,
        exclude_dirs=(spec_dir,) if spec_dir is not None else (),
    )
    if not evidence:
        return CompletionVerification(
            decision=GateDecision(
                status="block",
                reason_code=BLOCKED_REQ_TEST_MISSING,
                message=f"BLOCKED: task '{subject}' claims {req_id} but nothing traces it to a test.\n"
                + describe_test_convention(req_id, config),
                details={"req_id": req_id, "root": str(root)},
            ),
            req_id=req_id,
            evidence=(),
            runtime=None,
            suite_check="unmet",
        )

    evidence_names = [_relative(path, root) for path in evidence]
    runtime = detect_test_runtime(root, runtimes)
    if runtime is None:
        return CompletionVerification(
            decision=GateDecision(
                status="pass",
                reason_code=NOT_VERIFIED_RUNTIME_UNKNOWN,
                details={"req_id": req_id, "evidence": evidence_names, "runtime": None},
            ),
            req_id=req_id,
            evidence=evidence,
            runtime=None,
            suite_check=UNKNOWN_MEANS_SKIP.resolve(None),
        )

    argv = runtime.command(root)
    result = runner(argv, root, config.test_timeout_seconds)
    observed = None if result.outcome == "unavailable" else result.outcome == "passed"
    suite_check = UNKNOWN_MEANS_SKIP.resolve(observed)
    details = {
        "req_id": req_id,
        "evidence": evidence_names,
        "runtime": runtime.name,
        "command": argv,
        "returncode": result.returncode,
    }

    if suite_check == "unmet":
        command_text = " ".join(shlex.quote(part) for part in argv)
        status_text = "timed out" if result.timed_out else f"exited with {result.returncode}"
        return CompletionVerification(
            decision=GateDecision(
                status="block",
                reason_code=BLOCKED_REQ_TEST_FAILED,
                message=(
                    f"BLOCKED: {req_id} is traced by {', '.join(evidence_names)}, but the {runtime.name} "
                    f"test suite failed (`{command_text}` {status_text}). Fix the failing tests and complete "
                    f"the task again.\nOutput (tail):\n{tail_excerpt(result.output, config.excerpt_chars)}"
                ),
                details=details,
            ),
            req_id=req_id,
            evidence=evidence,
            runtime=runtime.name,
            suite_check=suite_check,
        )

    reason_code = NOT_VERIFIED_RUNTIME_UNKNOWN if suite_check == "skipped" else REASON_CODE_NONE
    return CompletionVerification(
        decision=GateDecision(status="pass", reason_code=reason_code, details=details),
        req_id=req_id,
        evidence=evidence,
        runtime=runtime.name,
        suite_check=suite_check,
    )
