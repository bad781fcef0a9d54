#!/usr/bin/env python3
"""PreToolUse hook: block mutating actions while no audited spec exists."""

from __future__ import annotations

import os
from pathlib import Path
import sys
from typing import Sequence

SCRIPT_DIR = Path(os.path.abspath(__file__)).parent
if str(SCRIPT_DIR.parent) not in sys.path:
    sys.path.insert(0, str(SCRIPT_DIR.parent))

from diagnostics.hook_runtime import HookContext, run_hook  # noqa: E402
from specgate.application.use_cases.gate_action import evaluate_pre_action  # noqa: E402
from specgate.engine.hook_contract import GateDecision  # noqa: E402


def handle_pre_action(context: HookContext) -> GateDecision:
    return evaluate_pre_action(
        request=context.request,
        paths=context.paths,
        policy=context.policy,
        store=context.store,
        scope=context.scope,
    )


def main(argv: Sequence[str] | None = None) -> int:
    return run_hook(
        hook="pre-action",
        description="Gate a pending tool call on the specification requirement.",
        handler=handle_pre_action,
        argv=argv,
    )


if __name__ == "__main__":
    raise SystemExit(main())
