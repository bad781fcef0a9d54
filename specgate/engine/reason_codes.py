"""Canonical specgate reason-code registry.

Every Block/Warn decision emitted by a hook carries one of these codes so that
diagnostics events and tests can assert on stable identifiers instead of
message text.
"""

from __future__ import annotations

from typing import Final

# Sentinel used when a gate has no blocking/warning reason.
REASON_CODE_NONE: Final[str] = "none"

# Blocking reason codes.
BLOCKED_SPEC_REQUIRED: Final[str] = "BLOCKED-SPEC-REQUIRED"
BLOCKED_SPEC_AUDIT_FAILED: Final[str] = "BLOCKED-SPEC-AUDIT-FAILED"
BLOCKED_REQ_TEST_MISSING: Final[str] = "BLOCKED-REQ-TEST-MISSING"
BLOCKED_REQ_TEST_FAILED: Final[str] = "BLOCKED-REQ-TEST-FAILED"
BLOCKED_POLICY_INVALID: Final[str] = "BLOCKED-POLICY-INVALID"

# Warning reason codes.
WARN_SPEC_AUDIT: Final[str] = "WARN-SPEC-AUDIT"
WARN_PREPARATION_MISSING: Final[str] = "WARN-PREPARATION-MISSING"
WARN_PAYLOAD_UNREADABLE: Final[str] = "WARN-PAYLOAD-UNREADABLE"

# Tooling gaps are skipped silently; the code only shows up in diagnostics.
NOT_VERIFIED_RUNTIME_UNKNOWN: Final[str] = "NOT_VERIFIED-RUNTIME-UNKNOWN"

CANONICAL_REASON_CODES: Final[tuple[str, ...]] = (
    BLOCKED_SPEC_REQUIRED,
    BLOCKED_SPEC_AUDIT_FAILED,
    BLOCKED_REQ_TEST_MISSING,
    BLOCKED_REQ_TEST_FAILED,
    BLOCKED_POLICY_INVALID,
    WARN_SPEC_AUDIT,
    WARN_PREPARATION_MISSING,
    WARN_PAYLOAD_UNREADABLE,
    NOT_VERIFIED_RUNTIME_UNKNOWN,
)


def is_registered_reason_code(reason_code: str, *, allow_none: bool = True) -> bool:
    """Return True when a reason code belongs to the canonical registry."""

    code = reason_code.strip()
    if allow_none and code == REASON_CODE_NONE:
        return True
    return code in CANONICAL_REASON_CODES
