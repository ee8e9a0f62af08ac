"""
grpg_library/report.py -- Findings and the validation report.

A :class:`Finding` is one defect or warning.  A :class:`Report` is the
ordered list of findings from one validation pass plus a few views over it
(errors, warnings, per-record grouping, human and dict renderings).

The report never decides what is fatal.  Callers gate on
``report.has_errors`` (or on warnings too, if they are strict).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Iterable, Iterator


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class FindingKind(str, Enum):
    SCHEMA_ERROR = "SchemaError"
    REFERENCE_ERROR = "ReferenceError"
    TAG_ERROR = "TagError"
    CONSISTENCY_WARNING = "ConsistencyWarning"
    DUPLICATE_ID = "DuplicateId"

    @property
    def default_severity(self) -> Severity:
        if self is FindingKind.CONSISTENCY_WARNING:
            return Severity.WARNING
        return Severity.ERROR


@dataclass(frozen=True)
class Finding:
    """A single validation finding."""
    severity: Severity
    kind: FindingKind
    record_type: str
    record_id: str
    field: str
    message: str
    referenced_id: str = ""

    @classmethod
    def of(cls, kind: FindingKind, record_type: str, record_id: str, field: str,
           message: str, referenced_id: str = "", severity: Severity | None = None) -> "Finding":
        return cls(
            severity=severity or kind.default_severity,
            kind=kind,
            record_type=record_type,
            record_id=record_id,
            field=field,
            message=message,
            referenced_id=referenced_id,
        )

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["severity"] = self.severity.value
        data["kind"] = self.kind.value
        return data

    def __str__(self) -> str:
        where = f"{self.record_type} '{self.record_id}'" if self.record_id else self.record_type
        prefix = f"[{self.field}] " if self.field else ""
        return f"{self.severity.value.upper()} {self.kind.value} {where}: {prefix}{self.message}"


class Report:
    """Ordered, immutable collection of findings."""

    def __init__(self, findings: Iterable[Finding] = ()):
        self._findings = tuple(findings)

    @property
    def findings(self) -> tuple[Finding, ...]:
        return self._findings

    @property
    def errors(self) -> list[Finding]:
        return [f for f in self._findings if f.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[Finding]:
        return [f for f in self._findings if f.severity == Severity.WARNING]

    @property
    def has_errors(self) -> bool:
        return any(f.is_error for f in self._findings)

    @property
    def passed(self) -> bool:
        return not self.has_errors

    def of_kind(self, kind: FindingKind) -> list[Finding]:
        return [f for f in self._findings if f.kind == kind]

    def for_record(self, record_id: str) -> list[Finding]:
        return [f for f in self._findings if f.record_id == record_id]

    @property
    def error_fields(self) -> set[tuple[str, str]]:
        """``(record_id, field)`` pairs that carry an error."""
        return {(f.record_id, f.field) for f in self.errors if f.field}

    def merge(self, other: "Report | Iterable[Finding]") -> "Report":
        """Return a new report with *other*'s findings appended."""
        extra = other.findings if isinstance(other, Report) else tuple(other)
        return Report(self._findings + extra)

    def summary(self) -> str:
        return f"{len(self.errors)} error(s), {len(self.warnings)} warning(s)"

    def format_human(self) -> str:
        """Multi-line rendering for terminals and logs."""
        if not self._findings:
            return "Validation passed."
        parts = []
        if self.errors:
            parts.append(f"{len(self.errors)} error(s):")
            parts.extend(f"  {f}" for f in self.errors)
        if self.warnings:
            parts.append(f"{len(self.warnings)} warning(s):")
            parts.extend(f"  {f}" for f in self.warnings)
        return "\n".join(parts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "error_count": len(self.errors),
            "warning_count": len(self.warnings),
            "findings": [f.to_dict() for f in self._findings],
        }

    def __iter__(self) -> Iterator[Finding]:
        return iter(self._findings)

    def __len__(self) -> int:
        return len(self._findings)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Report):
            return NotImplemented
        return self._findings == other._findings

    def __hash__(self) -> int:
        return hash(self._findings)

    def __repr__(self) -> str:
        return f"Report({self.summary()})"
