#!/usr/bin/env python3
"""TaskCompleted hook: require traceable, passing tests for REQ-tagged tasks."""

from __future__ import annotations

import os
from pathlib import Path
import sys
from typing import Sequence

SCRIPT_DIR = Path(os.path.abspath(__file__)).parent
if str(SCRIPT_DIR.parent) not in sys.path:
    sys.path.insert(0, str(SCRIPT_DIR.parent))

from diagnostics.hook_runtime import HookContext, run_hook  # noqa: E402
from specgate.application.use_cases.verify_completion import verify_task_completion  # noqa: E402
from specgate.engine.hook_contract import GateDecision  # noqa: E402


def handle_task_completed(context: HookContext) -> GateDecision:
    verification = verify_task_completion(
        subject=context.request.subject,
        root=context.paths.root,
        config=context.policy.completion,
        spec_dir=context.paths.spec_dir,
    )
    return verification.decision


def main(argv: Sequence[str] | None = None) -> int:
    return run_hook(
        hook="task-completed",
        description="Verify requirement traceability for a completed task.",
        handler=handle_task_completed,
        argv=argv,
    )


if __name__ == "__main__":
    raise SystemExit(main())
