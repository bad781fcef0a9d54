from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]

_STRIPPED_ENV = (
    "SPECGATE_SESSION_ROOT",
    "SPECGATE_POLICY_FILE",
    "SPECGATE_DIAGNOSTICS_ALLOW_WRITE",
    "CLAUDE_PROJECT_DIR",
)


def run(
    cmd: list[str],
    *,
    env: dict[str, str] | None = None,
    cwd: Path | None = None,
    stdin: str | None = None,
) -> subprocess.CompletedProcess:
    e = {k: v for k, v in os.environ.items() if k not in _STRIPPED_ENV}
    if env:
        e.update(env)
    return subprocess.run(
        cmd,
        cwd=str(cwd or REPO_ROOT),
        env=e,
        input=stdin if stdin is not None else "",
        text=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        check=False,
    )


def run_hook(
    script: str,
    payload: dict | str,
    *,
    session_root: Path,
    extra_args: list[str] | None = None,
    env: dict[str, str] | None = None,
) -> subprocess.CompletedProcess:
    raw = payload if isinstance(payload, str) else json.dumps(payload)
    cmd = [
        sys.executable,
        str(REPO_ROOT / "diagnostics" / script),
        "--session-root",
        str(session_root),
        *(extra_args or []),
    ]
    return run(cmd, env=env, stdin=raw)


def write_spec(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


VALID_SPEC = """\
# Checkout service

### REQ-001: Accept card payments
**Verification**: Test
**Priority**: Must

The service charges the card on submit.

### REQ-002: Show a receipt page
**Verification**: Browser
**Priority**: Should

## Traceability Matrix

| Requirement | Verification | Evidence |
|-------------|--------------|----------|
| REQ-001     | Test         | tests/test_checkout.py |
| REQ-002     | Browser      | receipt walkthrough |
"""
