#!/usr/bin/env python3
"""SessionStart hook: arm BlockActive unless a spec changed recently."""

from __future__ import annotations

import os
from pathlib import Path
import sys
from typing import Sequence

SCRIPT_DIR = Path(os.path.abspath(__file__)).parent
if str(SCRIPT_DIR.parent) not in sys.path:
    sys.path.insert(0, str(SCRIPT_DIR.parent))

from diagnostics.hook_runtime import HookContext, run_hook  # noqa: E402
from specgate.application.use_cases.bootstrap_session import bootstrap_session  # noqa: E402
from specgate.domain.spec_audit import REQUIRED_STRUCTURE_LINES  # noqa: E402
from specgate.engine.hook_contract import GateDecision  # noqa: E402


def handle_session_start(context: HookContext) -> GateDecision:
    result = bootstrap_session(
        paths=context.paths,
        policy=context.policy,
        store=context.store,
        scope=context.scope,
    )
    details = {
        "block_armed": result.block_armed,
        "reason": result.reason,
        "recent_specs": [str(p) for p in result.recent_specs],
    }
    if not result.block_armed:
        return GateDecision(status="pass", details=details)
    lines = [
        f"specgate: code changes are blocked until a specification exists at {context.paths.default_spec_file}.",
        "Required structure:",
        *(f"  - {item}" for item in REQUIRED_STRUCTURE_LINES),
    ]
    return GateDecision(status="pass", message="\n".join(lines), details=details)


def main(argv: Sequence[str] | None = None) -> int:
    return run_hook(
        hook="session-start",
        description="Seed specgate session markers.",
        handler=handle_session_start,
        argv=argv,
    )


if __name__ == "__main__":
    raise SystemExit(main())
