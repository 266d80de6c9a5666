"""
Validation result value objects.

Validation problems are values, not exceptions: section and document
validation return these, and only the lifecycle service decides whether
they reject an operation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ValidationError:
    """
    A single blocking validation problem.

    Contract:
        Carries the field path it concerns, a human-readable message, a
        machine-readable code, and the section key (or ``cross-section``).

    Non-goals:
        - Does NOT raise -- it IS the error representation.
    """

    field: str
    message: str
    code: str
    section: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "field": self.field,
            "message": self.message,
            "code": self.code,
        }
        if self.section is not None:
            data["section"] = self.section
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]):
        return cls(
            field=data.get("field", ""),
            message=data.get("message", ""),
            code=data.get("code", ""),
            section=data.get("section"),
        )


@dataclass(frozen=True)
class ValidationWarning(ValidationError):
    """A non-blocking validation problem.  Same shape as ValidationError."""


@dataclass(frozen=True)
class SectionValidation:
    """Errors and warnings from validating one section."""

    errors: tuple[ValidationError, ...] = ()
    warnings: tuple[ValidationWarning, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class DocumentValidation:
    """
    Result of validating a whole document.

    ``is_balanced`` always reflects the balance check itself, independent of
    whether an imbalance error is present in ``errors``.
    """

    errors: tuple[ValidationError, ...] = field(default_factory=tuple)
    warnings: tuple[ValidationWarning, ...] = field(default_factory=tuple)
    is_balanced: bool = False

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "isBalanced": self.is_balanced,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> DocumentValidation:
        if not data:
            return cls()
        return cls(
            errors=tuple(ValidationError.from_dict(e) for e in data.get("errors", [])),
            warnings=tuple(
                ValidationWarning.from_dict(w) for w in data.get("warnings", [])
            ),
            is_balanced=bool(data.get("isBalanced", False)),
        )
