"""Validation result models"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass
class ValidationIssue:
    """
    One problem found in a manifest document.

    Attributes:
        path: Dotted path to the offending value (e.g. "scenes.2.duration_seconds")
        message: Human readable reason
        code: Machine readable code (e.g. "dependency_cycle")
        severity: error blocks the manifest, warning does not
    """
    path: str
    message: str
    code: str
    severity: Severity = Severity.ERROR

    def format(self) -> str:
        return f"{self.path}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "message": self.message,
            "code": self.code,
            "severity": self.severity.value,
        }


@dataclass
class ValidationResult:
    """
    Outcome of validating a document.

    Either Valid (`valid` is True and `data` holds the parsed object) or
    Invalid (`errors` is non-empty and `data` is None). Warnings can be
    present in both cases.
    """
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)
    data: Optional[Any] = None

    @property
    def valid(self) -> bool:
        return not self.errors

    @classmethod
    def ok(cls, data: Any, warnings: Optional[List[ValidationIssue]] = None) -> "ValidationResult":
        return cls(errors=[], warnings=list(warnings or []), data=data)

    @classmethod
    def invalid(
        cls,
        errors: List[ValidationIssue],
        warnings: Optional[List[ValidationIssue]] = None,
    ) -> "ValidationResult":
        return cls(errors=list(errors), warnings=list(warnings or []), data=None)

    def codes(self) -> List[str]:
        return [issue.code for issue in self.errors]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }


def format_issues(issues: List[ValidationIssue]) -> List[str]:
    """Flatten issues to the "path: message" strings persisted on a manifest"""
    return [issue.format() for issue in issues]
