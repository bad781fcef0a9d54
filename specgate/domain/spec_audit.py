"""Specification document auditor.

The auditor is a deterministic, side-effect free pipeline over the raw text of
one specification artifact. Each check is an independent function that
receives the parsed document and returns zero or more findings; the report
severity is the maximum over all findings:

- critical finding (requirements-defined, duplicate-definitions,
  verification-tags) -> block
- any warning -> warn
- otherwise -> pass

Only `requirements-defined` short-circuits the pipeline: with no requirement
headings there is nothing for later checks to inspect.
"""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Callable, Literal

AuditSeverity = Literal["pass", "warn", "block"]
FindingLevel = Literal["critical", "warning"]

VERIFICATION_MODES: tuple[str, ...] = ("Test", "Browser", "Manual")
PRIORITIES: tuple[str, ...] = ("Must", "Should", "Could")
VERIFICATION_WINDOW_LINES = 3

REQ_ID_PATTERN = re.compile(r"\bREQ-(\d{3})\b")

_REQ_HEADING = re.compile(r"^###\s+(REQ-\d{3})\b\s*:?\s*(.*?)\s*$")
_ANY_HEADING = re.compile(r"^(#{1,6})\s+(.*?)\s*$")
_VERIFICATION_LINE = re.compile(
    r"\*\*Verification\s*:?\s*\*\*\s*:?\s*(Test|Browser|Manual)\b",
    re.IGNORECASE,
)
_PRIORITY_LINE = re.compile(
    r"\*\*Priority\s*:?\s*\*\*\s*:?\s*(Must|Should|Could)\b",
    re.IGNORECASE,
)
_TABLE_SEPARATOR = re.compile(r"^\|?\s*:?-{3,}:?\s*(\|\s*:?-{3,}:?\s*)*\|?\s*$")
_ID_COLUMN = re.compile(r"^(req(uirement)?(\s*[-_ ]?id)?|id)$", re.IGNORECASE)
_VERIFICATION_COLUMN = re.compile(r"verif|test", re.IGNORECASE)

_MATRIX_HEADING_PHRASES: tuple[str, ...] = (
    "traceability matrix",
    "requirements traceability",
    "traceability",
    "verification matrix",
    "test matrix",
    "requirement coverage",
)

_PLACEHOLDER_WORDS = re.compile(r"\b(TODO|TBD|FIXME|XXX)\b")
_PLACEHOLDER_MARKUP = re.compile(
    r"\{\{[^{}\n]*\}\}|\[(?:PLACEHOLDER|TBD|TODO)[^\]\n]*\]|<placeholder[^>\n]*>",
    re.IGNORECASE,
)
_MAX_REPORTED_LINES = 5


@dataclass(frozen=True)
class RequirementHeading:
    req_id: str
    title: str
    line_index: int
    verification_mode: str | None
    priority: str | None


@dataclass(frozen=True)
class RequirementRecord:
    req_id: str
    title: str
    priority: str | None
    verification_mode: str | None

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.req_id,
            "title": self.title,
            "priority": self.priority,
            "verification": self.verification_mode,
        }


@dataclass(frozen=True)
class MatrixSection:
    start_line: int
    end_line: int
    text: str


@dataclass(frozen=True)
class SpecDocument:
    text: str
    lines: tuple[str, ...]
    headings: tuple[RequirementHeading, ...]
    matrix: MatrixSection | None

    @property
    def defined_ids(self) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for heading in self.headings:
            seen.setdefault(heading.req_id, None)
        return tuple(seen)


@dataclass(frozen=True)
class AuditFinding:
    check: str
    level: FindingLevel
    message: str
    requirement_ids: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "check": self.check,
            "level": self.level,
            "message": self.message,
            "requirement_ids": list(self.requirement_ids),
        }


@dataclass(frozen=True)
class AuditCheck:
    key: str
    run: Callable[[SpecDocument], tuple[AuditFinding, ...]]
    short_circuit: bool = False


@dataclass(frozen=True)
class AuditReport:
    """Result contract for one audit run. Never persisted."""

    severity: AuditSeverity
    critical_failures: tuple[str, ...]
    warnings: tuple[str, ...]
    findings: tuple[AuditFinding, ...]
    requirements: tuple[RequirementRecord, ...]
    checks_run: tuple[str, ...]

    @property
    def is_blocking(self) -> bool:
        return self.severity == "block"

    def to_dict(self) -> dict[str, object]:
        return {
            "severity": self.severity,
            "critical_failures": list(self.critical_failures),
            "warnings": list(self.warnings),
            "findings": [finding.to_dict() for finding in self.findings],
            "requirements": [record.to_dict() for record in self.requirements],
            "checks_run": list(self.checks_run),
        }


def _normalize_choice(raw: str, choices: tuple[str, ...]) -> str:
    lowered = raw.strip().lower()
    for choice in choices:
        if choice.lower() == lowered:
            return choice
    return raw.strip()


def _block_end(lines: tuple[str, ...], start: int) -> int:
    """Index of the next markdown heading after `start`, or EOF."""

    for index in range(start + 1, len(lines)):
        if _ANY_HEADING.match(lines[index]):
            return index
    return len(lines)


def _parse_headings(lines: tuple[str, ...]) -> tuple[RequirementHeading, ...]:
    headings: list[RequirementHeading] = []
    for index, line in enumerate(lines):
        match = _REQ_HEADING.match(line)
        if match is None:
            continue
        verification: str | None = None
        for following in lines[index + 1 : index + 1 + VERIFICATION_WINDOW_LINES]:
            found = _VERIFICATION_LINE.search(following)
            if found:
                verification = _normalize_choice(found.group(1), VERIFICATION_MODES)
                break
        priority: str | None = None
        for following in lines[index + 1 : _block_end(lines, index)]:
            found = _PRIORITY_LINE.search(following)
            if found:
                priority = _normalize_choice(found.group(1), PRIORITIES)
                break
        headings.append(
            RequirementHeading(
                req_id=match.group(1),
                title=match.group(2),
                line_index=index,
                verification_mode=verification,
                priority=priority,
            )
        )
    return tuple(headings)


def _is_matrix_table_header(lines: tuple[str, ...], index: int) -> bool:
    line = lines[index].strip()
    if not line.startswith("|") or index + 1 >= len(lines):
        return False
    if not _TABLE_SEPARATOR.match(lines[index + 1].strip()):
        return False
    cells = [cell.strip().strip("*").strip() for cell in line.strip("|").split("|")]
    has_id_column = any(_ID_COLUMN.match(cell) for cell in cells)
    has_verification_column = any(_VERIFICATION_COLUMN.search(cell) for cell in cells)
    return has_id_column and has_verification_column


def _find_matrix(lines: tuple[str, ...]) -> MatrixSection | None:
    for index, line in enumerate(lines):
        heading = _ANY_HEADING.match(line)
        if heading is not None and _REQ_HEADING.match(line) is None:
            title = heading.group(2).lower()
            if any(phrase in title for phrase in _MATRIX_HEADING_PHRASES):
                level = len(heading.group(1))
                end = len(lines)
                for later in range(index + 1, len(lines)):
                    nested = _ANY_HEADING.match(lines[later])
                    if nested is not None and len(nested.group(1)) <= level:
                        end = later
                        break
                return MatrixSection(start_line=index, end_line=end, text="\n".join(lines[index:end]))
        if _is_matrix_table_header(lines, index):
            end = index + 2
            while end < len(lines) and lines[end].strip().startswith("|"):
                end += 1
            return MatrixSection(start_line=index, end_line=end, text="\n".join(lines[index:end]))
    return None


def parse_spec_document(text: str) -> SpecDocument:
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    lines = tuple(normalized.split("\n"))
    return SpecDocument(
        text=normalized,
        lines=lines,
        headings=_parse_headings(lines),
        matrix=_find_matrix(lines),
    )


def extract_requirement_id(text: str) -> str | None:
    """Return the first requirement-id shaped substring, if any."""

    match = REQ_ID_PATTERN.search(text or "")
    return match.group(0) if match else None


def _id_number(req_id: str) -> int:
    return int(req_id.split("-", 1)[1])


def check_requirements_defined(document: SpecDocument) -> tuple[AuditFinding, ...]:
    if document.defined_ids:
        return ()
    return (
        AuditFinding(
            check="requirements-defined",
            level="critical",
            message="No requirements defined: add at least one heading of the form '### REQ-001: <title>'.",
        ),
    )


def check_duplicate_definitions(document: SpecDocument) -> tuple[AuditFinding, ...]:
    counts: dict[str, int] = {}
    for heading in document.headings:
        counts[heading.req_id] = counts.get(heading.req_id, 0) + 1
    duplicates = tuple(sorted(req_id for req_id, count in counts.items() if count > 1))
    if not duplicates:
        return ()
    return (
        AuditFinding(
            check="duplicate-definitions",
            level="critical",
            message=(
                "Duplicate requirement headings: "
                + ", ".join(duplicates)
                + " (each id may be defined by exactly one heading; references elsewhere are fine)."
            ),
            requirement_ids=duplicates,
        ),
    )


def check_sequence_gaps(document: SpecDocument) -> tuple[AuditFinding, ...]:
    numbers = sorted({_id_number(req_id) for req_id in document.defined_ids})
    if len(numbers) < 2:
        return ()
    present = set(numbers)
    missing = tuple(f"REQ-{n:03d}" for n in range(numbers[0], numbers[-1] + 1) if n not in present)
    if not missing:
        return ()
    return (
        AuditFinding(
            check="sequence-gaps",
            level="warning",
            message="Requirement numbering has gaps: " + ", ".join(missing) + " (check for id typos).",
            requirement_ids=missing,
        ),
    )


def check_verification_tags(document: SpecDocument) -> tuple[AuditFinding, ...]:
    findings: list[AuditFinding] = []
    reported: set[str] = set()
    for heading in document.headings:
        if heading.verification_mode is not None or heading.req_id in reported:
            continue
        reported.add(heading.req_id)
        findings.append(
            AuditFinding(
                check="verification-tags",
                level="critical",
                message=(
                    f"{heading.req_id} has no '**Verification**: Test|Browser|Manual' line "
                    f"within {VERIFICATION_WINDOW_LINES} lines of its heading (line {heading.line_index + 1})."
                ),
                requirement_ids=(heading.req_id,),
            )
        )
    return tuple(findings)


def check_test_coverage(document: SpecDocument) -> tuple[AuditFinding, ...]:
    if any(heading.verification_mode == "Test" for heading in document.headings):
        return ()
    return (
        AuditFinding(
            check="test-coverage",
            level="warning",
            message="No requirement uses '**Verification**: Test'; nothing is protected by automated regression tests.",
        ),
    )


def check_matrix_present(document: SpecDocument) -> tuple[AuditFinding, ...]:
    if document.matrix is not None:
        return ()
    return (
        AuditFinding(
            check="matrix-present",
            level="warning",
            message=(
                "No traceability matrix found: add a '## Traceability Matrix' section with a "
                "'| Requirement | Verification | Evidence |' table."
            ),
        ),
    )


def check_matrix_coverage(document: SpecDocument) -> tuple[AuditFinding, ...]:
    matrix = document.matrix
    if matrix is None:
        return ()
    missing: list[str] = []
    for heading in document.headings:
        if heading.line_index >= matrix.start_line or heading.req_id in missing:
            continue
        if re.search(rf"\b{re.escape(heading.req_id)}\b", matrix.text) is None:
            missing.append(heading.req_id)
    if not missing:
        return ()
    return (
        AuditFinding(
            check="matrix-coverage",
            level="warning",
            message="Traceability matrix does not reference: " + ", ".join(missing) + ".",
            requirement_ids=tuple(missing),
        ),
    )


def check_placeholders(document: SpecDocument) -> tuple[AuditFinding, ...]:
    tokens: list[str] = []
    line_numbers: list[int] = []
    for index, line in enumerate(document.lines):
        found = [m.group(0) for m in _PLACEHOLDER_WORDS.finditer(line)]
        found += [m.group(0) for m in _PLACEHOLDER_MARKUP.finditer(line)]
        if not found:
            continue
        line_numbers.append(index + 1)
        for token in found:
            if token not in tokens:
                tokens.append(token)
    if not line_numbers:
        return ()
    shown = ", ".join(str(n) for n in line_numbers[:_MAX_REPORTED_LINES])
    if len(line_numbers) > _MAX_REPORTED_LINES:
        shown += f" (+{len(line_numbers) - _MAX_REPORTED_LINES} more)"
    return (
        AuditFinding(
            check="placeholders",
            level="warning",
            message=f"Unresolved placeholders ({', '.join(tokens)}) on line(s) {shown}.",
        ),
    )


def check_must_priority(document: SpecDocument) -> tuple[AuditFinding, ...]:
    if any(heading.priority == "Must" for heading in document.headings):
        return ()
    return (
        AuditFinding(
            check="must-priority",
            level="warning",
            message="No requirement has '**Priority**: Must'; mark the requirements the change cannot ship without.",
        ),
    )


AUDIT_PIPELINE: tuple[AuditCheck, ...] = (
    AuditCheck("requirements-defined", check_requirements_defined, short_circuit=True),
    AuditCheck("duplicate-definitions", check_duplicate_definitions),
    AuditCheck("sequence-gaps", check_sequence_gaps),
    AuditCheck("verification-tags", check_verification_tags),
    AuditCheck("test-coverage", check_test_coverage),
    AuditCheck("matrix-present", check_matrix_present),
    AuditCheck("matrix-coverage", check_matrix_coverage),
    AuditCheck("placeholders", check_placeholders),
    AuditCheck("must-priority", check_must_priority),
)


def _requirement_records(document: SpecDocument) -> tuple[RequirementRecord, ...]:
    first: dict[str, RequirementHeading] = {}
    for heading in document.headings:
        first.setdefault(heading.req_id, heading)
    return tuple(
        RequirementRecord(
            req_id=heading.req_id,
            title=heading.title,
            priority=heading.priority,
            verification_mode=heading.verification_mode,
        )
        for heading in first.values()
    )


def audit_spec_text(
    text: str,
    *,
    pipeline: tuple[AuditCheck, ...] = AUDIT_PIPELINE,
) -> AuditReport:
    """Run the ordered check pipeline over one specification text."""

    document = parse_spec_document(text)
    findings: list[AuditFinding] = []
    checks_run: list[str] = []
    for check in pipeline:
        checks_run.append(check.key)
        produced = check.run(document)
        findings.extend(produced)
        if check.short_circuit and any(f.level == "critical" for f in produced):
            break

    critical = tuple(f.message for f in findings if f.level == "critical")
    warnings = tuple(f.message for f in findings if f.level == "warning")
    severity: AuditSeverity = "block" if critical else ("warn" if warnings else "pass")
    return AuditReport(
        severity=severity,
        critical_failures=critical,
        warnings=warnings,
        findings=tuple(findings),
        requirements=_requirement_records(document),
        checks_run=tuple(checks_run),
    )


REQUIRED_STRUCTURE_LINES: tuple[str, ...] = (
    "one '### REQ-001: <title>' heading per requirement (ids unique, numbered consecutively)",
    "a '**Verification**: Test|Browser|Manual' line within 3 lines below each heading",
    "a '**Priority**: Must|Should|Could' line per requirement (at least one Must)",
    "a '## Traceability Matrix' table listing every REQ id with its verification evidence",
)


def format_audit_report(report: AuditReport, *, source: str) -> str:
    """Render a self-contained, human-readable audit summary."""

    lines = [f"Specification audit of {source}: {report.severity.upper()}"]
    if report.critical_failures:
        lines.append("Critical (must fix before implementation):")
        lines.extend(f"  - {message}" for message in report.critical_failures)
    if report.warnings:
        lines.append("Warnings:")
        lines.extend(f"  - {message}" for message in report.warnings)
    return "\n".join(lines)

