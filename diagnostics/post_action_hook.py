#!/usr/bin/env python3
"""PostToolUse hook: track preparation and audit freshly written specs."""

from __future__ import annotations

import os
from pathlib import Path
import sys
from typing import Sequence

SCRIPT_DIR = Path(os.path.abspath(__file__)).parent
if str(SCRIPT_DIR.parent) not in sys.path:
    sys.path.insert(0, str(SCRIPT_DIR.parent))

from diagnostics.hook_runtime import HookContext, run_hook  # noqa: E402
from specgate.application.use_cases.record_action import handle_post_action  # noqa: E402
from specgate.engine.hook_contract import GateDecision  # noqa: E402


def handle_post(context: HookContext) -> GateDecision:
    return handle_post_action(
        request=context.request,
        paths=context.paths,
        policy=context.policy,
        store=context.store,
        scope=context.scope,
    )


def main(argv: Sequence[str] | None = None) -> int:
    return run_hook(
        hook="post-action",
        description="Record preparation activity and audit specification writes.",
        handler=handle_post,
        argv=argv,
    )


if __name__ == "__main__":
    raise SystemExit(main())
