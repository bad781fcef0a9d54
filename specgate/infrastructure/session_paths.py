"""Canonical paths for one session root.

All session artifacts live under the session root:
<root>/<paths.spec_dir>/      specification artifacts
<root>/<paths.marker_dir>/    marker files, one per (scope, kind)
<root>/<paths.log_dir>/       diagnostics events
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Mapping

from specgate.infrastructure.policy_config import SpecgatePolicy

SESSION_ROOT_ENV = "SPECGATE_SESSION_ROOT"
PROJECT_DIR_ENV = "CLAUDE_PROJECT_DIR"


@dataclass(frozen=True)
class SessionPaths:
    root: Path
    spec_dir: Path
    default_spec_file: Path
    markers_dir: Path
    log_dir: Path


def _absolute(raw: str | Path) -> Path:
    return Path(os.path.normpath(os.path.abspath(str(Path(raw).expanduser()))))


def resolve_session_root(
    *,
    explicit: Path | None = None,
    payload_cwd: str | None = None,
    env: Mapping[str, str] | None = None,
) -> Path:
    environment = os.environ if env is None else env
    if explicit is not None:
        return _absolute(explicit)
    for key in (SESSION_ROOT_ENV, PROJECT_DIR_ENV):
        raw = str(environment.get(key, "")).strip()
        if raw:
            return _absolute(raw)
    if payload_cwd and payload_cwd.strip():
        return _absolute(payload_cwd.strip())
    return _absolute(Path.cwd())


def session_paths(root: Path, policy: SpecgatePolicy) -> SessionPaths:
    base = _absolute(root)
    spec_dir = base / policy.paths.spec_dir
    return SessionPaths(
        root=base,
        spec_dir=spec_dir,
        default_spec_file=spec_dir / policy.paths.default_spec_file,
        markers_dir=base / policy.paths.marker_dir,
        log_dir=base / policy.paths.log_dir,
    )


def resolve_target(target: str, *, cwd: Path) -> Path:
    candidate = Path(target).expanduser()
    if not candidate.is_absolute():
        candidate = cwd / candidate
    return _absolute(candidate)


def is_inside(path: Path, directory: Path) -> bool:
    """True when `path` is `directory` itself or lies beneath it (no `..` escapes)."""

    try:
        _absolute(path).relative_to(_absolute(directory))
    except ValueError:
        return False
    return True


def list_spec_artifacts(paths: SessionPaths, *, pattern: str) -> tuple[Path, ...]:
    if not paths.spec_dir.is_dir():
        return ()
    return tuple(sorted(p for p in paths.spec_dir.rglob(pattern) if p.is_file()))
