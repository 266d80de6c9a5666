"""
Pure domain layer.

Value objects and pure functions with NO dependencies on the ORM, the
database, the wall clock, or any other I/O.
"""

from practice_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from practice_kernel.domain.dtos import (
    DocumentValidation,
    SectionValidation,
    ValidationError,
    ValidationWarning,
)
from practice_kernel.domain.schema import FieldSchema, FieldType, validate_against_schema
from practice_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "ValidationError",
    "ValidationWarning",
    "SectionValidation",
    "DocumentValidation",
    "FieldSchema",
    "FieldType",
    "validate_against_schema",
    "Guard",
    "Transition",
    "Workflow",
]
