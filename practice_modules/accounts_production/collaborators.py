"""
External collaborator contracts (``practice_modules.accounts_production.collaborators``).

Responsibility
--------------
``typing.Protocol`` interfaces for everything the accounts production core
consumes but does not own: the client directory, the company registry
(Companies House), the statement renderer and PDF engine, the audit sink,
and output file storage.  Also provides two concrete implementations that
need nothing outside this package: ``LoggingAuditSink`` and
``LocalOutputStorage``.

Architecture position
---------------------
**Modules layer** -- seams.  The lifecycle service and the output
coordinator depend only on these protocols; applications inject real
implementations, tests inject in-memory fakes.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from practice_kernel.exceptions import OutputFileNotFoundError
from practice_kernel.logging_config import get_logger

logger = get_logger("modules.accounts_production.collaborators")


class AuditSeverity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class OutputKind(str, Enum):
    HTML = "html"
    PDF = "pdf"


# -----------------------------------------------------------------------------
# Protocols
# -----------------------------------------------------------------------------


class ClientDirectory(Protocol):
    """Lookup of practice clients."""

    def find_one(self, client_id: str) -> dict[str, Any] | None:
        """Return ``{id, name, type, registeredNumber?, address?, ref?}`` or None."""
        ...


class CompanyRegistry(Protocol):
    """Company registry lookups.  Either call may raise."""

    def get_company_details(self, company_number: str) -> dict[str, Any] | None:
        """Company profile: ``company_name``, ``registered_office_address``."""
        ...

    def get_company_officers(self, company_number: str) -> list[dict[str, Any]]:
        """Officers, each with ``name`` and ``officer_role``."""
        ...


class Renderer(Protocol):
    """Named-template renderer.  Raises ``TemplateNotFoundError`` for unknown names."""

    def render(self, template_name: str, context: dict[str, Any]) -> str:
        ...


class PdfEngine(Protocol):
    """Converts rendered markup to PDF bytes."""

    def render_to_pdf(self, markup: str) -> bytes:
        ...


class AuditSink(Protocol):
    """Fire-and-forget audit trail."""

    def log_event(
        self,
        *,
        actor: str,
        action: str,
        entity: str,
        entity_id: str,
        entity_ref: str,
        metadata: dict[str, Any],
        severity: AuditSeverity,
    ) -> None:
        ...

    def log_data_change(
        self,
        *,
        actor: str,
        entity_type: str,
        action: str,
        entity_id: str,
        entity_ref: str,
        before: Any,
        after: Any,
        metadata: dict[str, Any],
    ) -> None:
        ...


class OutputStorage(Protocol):
    """Storage for generated statement files."""

    def write(self, kind: OutputKind, filename: str, content: bytes) -> None:
        ...

    def read(self, kind: OutputKind, filename: str) -> bytes:
        """Raises ``OutputFileNotFoundError`` when absent."""
        ...

    def delete(self, kind: OutputKind, filename: str) -> None:
        """Remove a file if present."""
        ...


# -----------------------------------------------------------------------------
# Implementations
# -----------------------------------------------------------------------------


class LoggingAuditSink:
    """Audit sink that writes audit records to the structured log."""

    def __init__(self, logger_name: str = "audit"):
        self._logger = get_logger(logger_name)

    def log_event(
        self,
        *,
        actor: str,
        action: str,
        entity: str,
        entity_id: str,
        entity_ref: str,
        metadata: dict[str, Any],
        severity: AuditSeverity,
    ) -> None:
        self._logger.info(
            "audit_event",
            extra={
                "audit_actor": actor,
                "audit_action": action,
                "audit_entity": entity,
                "audit_entity_id": entity_id,
                "audit_entity_ref": entity_ref,
                "audit_metadata": metadata,
                "audit_severity": AuditSeverity(severity).value,
            },
        )

    def log_data_change(
        self,
        *,
        actor: str,
        entity_type: str,
        action: str,
        entity_id: str,
        entity_ref: str,
        before: Any,
        after: Any,
        metadata: dict[str, Any],
    ) -> None:
        self._logger.info(
            "audit_data_change",
            extra={
                "audit_actor": actor,
                "audit_action": action,
                "audit_entity": entity_type,
                "audit_entity_id": entity_id,
                "audit_entity_ref": entity_ref,
                "audit_before": before,
                "audit_after": after,
                "audit_metadata": metadata,
            },
        )


class LocalOutputStorage:
    """
    Filesystem output storage under ``<root>/html`` and ``<root>/pdf``.

    Only the basename of a requested filename is used, so callers cannot
    address files outside the kind directory.
    """

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def _path(self, kind: OutputKind, filename: str) -> Path:
        return self.root / OutputKind(kind).value / Path(filename).name

    def write(self, kind: OutputKind, filename: str, content: bytes) -> None:
        path = self._path(kind, filename)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        logger.debug(
            "output_file_written",
            extra={"kind": OutputKind(kind).value, "output_file": path.name, "bytes": len(content)},
        )

    def read(self, kind: OutputKind, filename: str) -> bytes:
        path = self._path(kind, filename)
        if not path.is_file():
            raise OutputFileNotFoundError(OutputKind(kind).value, path.name)
        return path.read_bytes()

    def delete(self, kind: OutputKind, filename: str) -> None:
        self._path(kind, filename).unlink(missing_ok=True)
