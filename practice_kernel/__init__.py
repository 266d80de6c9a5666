"""
Practice Kernel

Shared infrastructure for practice-management modules:
- Typed exceptions with machine-readable codes
- Structured JSON logging with request-scoped context
- SQLAlchemy declarative base and session management
- Pure domain value objects (clock, workflow, validation results, schemas)
"""

__version__ = "0.1.0"
