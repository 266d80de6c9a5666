"""
BaseService -- abstract base for all session-holding services.

Responsibility:
    Provides the common constructor and session-handling contract for every
    service and store.  Subclasses receive a SQLAlchemy ``Session`` that they
    use via ``session.flush()`` -- never ``session.commit()``.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or roll back the outer transaction themselves.  The
    caller (``session_scope()``, an HTTP request handler, or the test
    harness) owns commit/rollback.  SAVEPOINTs (``session.begin_nested()``)
    may be used for best-effort side writes.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for all services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
    """

    def __init__(self, session: Session):
        """
        Args:
            session: SQLAlchemy session for database operations.
        """
        self.session = session
