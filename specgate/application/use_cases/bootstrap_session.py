"""Session-start use case: decide whether this session starts blocked."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from specgate.application.ports.markers import BLOCK_ACTIVE, MarkerStore
from specgate.domain.freshness import is_recent_mtime
from specgate.infrastructure.policy_config import SpecgatePolicy
from specgate.infrastructure.session_paths import SessionPaths, list_spec_artifacts


@dataclass(frozen=True)
class BootstrapResult:
    block_armed: bool
    reason: str
    recent_specs: tuple[Path, ...]


def find_recent_specs(*, paths: SessionPaths, policy: SpecgatePolicy, store: MarkerStore) -> tuple[Path, ...]:
    now = store.now_utc()
    recent: list[Path] = []
    for artifact in list_spec_artifacts(paths, pattern=policy.paths.spec_glob):
        try:
            mtime = artifact.stat().st_mtime
        except OSError:
            continue
        if is_recent_mtime(mtime=mtime, ttl_seconds=policy.freshness.spec_ttl_seconds, now_utc=now):
            recent.append(artifact)
    return tuple(recent)


def bootstrap_session(
    *,
    paths: SessionPaths,
    policy: SpecgatePolicy,
    store: MarkerStore,
    scope: str,
) -> BootstrapResult:
    """Arm BlockActive unless a spec artifact changed within the spec TTL.

    A continuing session (recent spec activity) is not re-blocked; a fresh
    session defaults to "specification required before coding".
    """

    recent = find_recent_specs(paths=paths, policy=policy, store=store)
    if recent:
        store.clear_marker(BLOCK_ACTIVE, scope)
        return BootstrapResult(block_armed=False, reason="recent-spec-activity", recent_specs=recent)
    store.set_marker(BLOCK_ACTIVE, scope)
    return BootstrapResult(block_armed=True, reason="no-recent-spec-activity", recent_specs=())
