from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Literal


CheckOutcome = Literal["met", "unmet", "skipped"]

DEFAULT_BLOCK_TTL_SECONDS = 12 * 60 * 60
DEFAULT_READ_TTL_SECONDS = 5 * 60
DEFAULT_SPEC_TTL_SECONDS = 60 * 60


@dataclass(frozen=True)
class UnresolvedConditionPolicy:
    """Maps an unobservable condition to a fixed outcome.

    Markers use `MISSING_MEANS_UNMET`: a marker that cannot be read never counts
    as evidence. Runtime detection uses `UNKNOWN_MEANS_SKIP`: a precondition that
    cannot be verified is not allowed to produce a block.
    """

    name: str
    on_unknown: CheckOutcome

    def resolve(self, observed: bool | None) -> CheckOutcome:
        if observed is None:
            return self.on_unknown
        return "met" if observed else "unmet"


MISSING_MEANS_UNMET = UnresolvedConditionPolicy(name="MissingMeansUnmet", on_unknown="unmet")
UNKNOWN_MEANS_SKIP = UnresolvedConditionPolicy(name="UnknownMeansSkip", on_unknown="skipped")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_created_at(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat()


def parse_created_at(raw: object) -> datetime | None:
    if not isinstance(raw, str) or not raw.strip():
        return None
    value = raw.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def is_fresh(*, created_at: datetime | None, ttl_seconds: int, now_utc: datetime) -> bool:
    """Return True when `now - created_at < ttl`; an unknown timestamp is never fresh."""

    outcome = MISSING_MEANS_UNMET.resolve(
        None if created_at is None else (now_utc - created_at) < timedelta(seconds=ttl_seconds)
    )
    return outcome == "met"


def is_recent_mtime(*, mtime: float, ttl_seconds: int, now_utc: datetime) -> bool:
    modified = datetime.fromtimestamp(mtime, tz=timezone.utc)
    return is_fresh(created_at=modified, ttl_seconds=ttl_seconds, now_utc=now_utc)
