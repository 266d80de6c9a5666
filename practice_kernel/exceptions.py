"""
Typed Exception Hierarchy for the Practice Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Accounts production must report failures precisely.  Callers (HTTP layer,
batch jobs, tests) catch by type and read structured attributes, never by
parsing message strings:

    try:
        service.update_section(set_id, "profitAndLoss", data, actor_id)
    except SectionValidationFailedError as e:
        return {"code": e.code, "errors": [err.to_dict() for err in e.errors]}
    except AccountsSetLockedError as e:
        return {"code": e.code, "id": e.accounts_set_id}

Every exception has:
  1. A TYPED class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PracticeKernelError (base)
    |
    +-- NotFoundError
    |   +-- AccountsSetNotFoundError
    |   +-- ClientNotFoundError
    |   +-- OutputFileNotFoundError
    |
    +-- DomainRuleViolation
    |   +-- AccountsSetLockedError
    |   +-- InvalidStatusTransitionError
    |   +-- OutputsNotGeneratedError
    |   +-- CalculatedFieldEditError
    |   +-- SectionValidationFailedError
    |   +-- UnknownSectionError
    |   +-- InvalidPeriodError
    |   +-- FrameworkImmutableError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- CollaboratorFailure
        +-- StorageError
        +-- RegistryLookupError
        +-- RenderError
            +-- TemplateNotFoundError
            +-- RenderTimeoutError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Not found       | ACCOUNTS_SET_NOT_FOUND      | Accounts set ID doesn't exist
                | CLIENT_NOT_FOUND            | Client directory has no such client
                | OUTPUT_FILE_NOT_FOUND       | Generated file missing from storage
----------------|-----------------------------|-----------------------------------------
Domain rule     | ACCOUNTS_SET_LOCKED         | Editing or deleting a LOCKED set
                | INVALID_STATUS_TRANSITION   | Transition not in the workflow
                | OUTPUTS_NOT_GENERATED       | Locking before HTML/PDF exist
                | CALCULATED_FIELD_EDIT       | Manual value for a derived total
                | SECTION_VALIDATION_FAILED   | Section data has validation errors
                | UNKNOWN_SECTION             | Section key not one of the seven
                | INVALID_PERIOD              | Period start is not before end
                | FRAMEWORK_IMMUTABLE         | Framework change after outputs exist
----------------|-----------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Stored version differs from version read
----------------|-----------------------------|-----------------------------------------
Collaborator    | STORAGE_FAILURE             | Persistence I/O failed on a write path
                | REGISTRY_LOOKUP_FAILED      | Company registry unavailable
                | RENDER_FAILED               | Template or PDF rendering failed
                | TEMPLATE_NOT_FOUND          | Renderer has no such template
                | RENDER_TIMEOUT              | PDF rendering exceeded its time limit

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Validation errors are VALUES.  ``validate_section`` and
   ``validate_document`` return lists of ``ValidationError``; only the
   lifecycle manager raises ``SectionValidationFailedError``, carrying every
   violated rule at once.

2. CollaboratorFailure messages are generic on purpose.  The underlying
   cause is chained (``raise ... from exc``) and logged with ``exc_info``;
   API layers return ``e.code`` and the message only.

3. ConcurrencyError is retryable: re-read the accounts set and re-apply.
"""


class PracticeKernelError(Exception):
    """
    Base exception for all practice kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PRACTICE_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(PracticeKernelError):
    """Base exception for unknown identifiers."""

    code: str = "NOT_FOUND"


class AccountsSetNotFoundError(NotFoundError):
    """Accounts set with given ID was not found."""

    code: str = "ACCOUNTS_SET_NOT_FOUND"

    def __init__(self, accounts_set_id: str):
        self.accounts_set_id = str(accounts_set_id)
        super().__init__(f"Accounts set not found: {accounts_set_id}")


class ClientNotFoundError(NotFoundError):
    """Client directory has no client with the given ID."""

    code: str = "CLIENT_NOT_FOUND"

    def __init__(self, client_id: str):
        self.client_id = client_id
        super().__init__(f"Client not found: {client_id}")


class OutputFileNotFoundError(NotFoundError):
    """A generated output file is not present in storage."""

    code: str = "OUTPUT_FILE_NOT_FOUND"

    def __init__(self, kind: str, filename: str):
        self.kind = kind
        self.filename = filename
        super().__init__(f"Output file not found: {kind}/{filename}")


# Domain rule violations


class DomainRuleViolation(PracticeKernelError):
    """Base exception for rejected operations.  No write is attempted."""

    code: str = "DOMAIN_RULE_VIOLATION"


class AccountsSetLockedError(DomainRuleViolation):
    """Attempted to modify or delete a LOCKED accounts set."""

    code: str = "ACCOUNTS_SET_LOCKED"

    def __init__(self, accounts_set_id: str, operation: str):
        self.accounts_set_id = str(accounts_set_id)
        self.operation = operation
        super().__init__(
            f"Accounts set {accounts_set_id} is locked; cannot {operation}"
        )


class InvalidStatusTransitionError(DomainRuleViolation):
    """Requested status change is not permitted from the current status."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(
        self,
        accounts_set_id: str,
        current_status: str,
        action: str,
        required_status: str | None = None,
    ):
        self.accounts_set_id = str(accounts_set_id)
        self.current_status = current_status
        self.action = action
        self.required_status = required_status
        if required_status:
            message = (
                f"Cannot {action} accounts set {accounts_set_id}: status is "
                f"{current_status}, must be {required_status}"
            )
        else:
            message = (
                f"Cannot {action} accounts set {accounts_set_id} "
                f"from status {current_status}"
            )
        super().__init__(message)


class OutputsNotGeneratedError(DomainRuleViolation):
    """Locking requires both HTML and PDF outputs to exist."""

    code: str = "OUTPUTS_NOT_GENERATED"

    def __init__(self, accounts_set_id: str):
        self.accounts_set_id = str(accounts_set_id)
        super().__init__(
            f"Accounts set {accounts_set_id} must have generated HTML and PDF "
            "outputs before it can be locked"
        )


class CalculatedFieldEditError(DomainRuleViolation):
    """Section data supplied a value for a calculated total."""

    code: str = "CALCULATED_FIELD_EDIT"

    def __init__(self, section_key: str, fields: list[str]):
        self.section_key = section_key
        self.fields = fields
        super().__init__(
            f"Cannot manually set calculated fields in {section_key}: "
            f"{', '.join(fields)}"
        )


class SectionValidationFailedError(DomainRuleViolation):
    """Section data failed validation.  Carries every violated rule."""

    code: str = "SECTION_VALIDATION_FAILED"

    def __init__(self, section_key: str, errors: tuple):
        self.section_key = section_key
        self.errors = tuple(errors)
        super().__init__(
            f"Validation failed for {section_key}: "
            + "; ".join(e.message for e in self.errors)
        )


class UnknownSectionError(DomainRuleViolation):
    """Section key is not one of the recognised section kinds."""

    code: str = "UNKNOWN_SECTION"

    def __init__(self, section_key: str):
        self.section_key = section_key
        super().__init__(f"Unknown section: {section_key}")


class InvalidPeriodError(DomainRuleViolation):
    """Accounting period start date is not before its end date."""

    code: str = "INVALID_PERIOD"

    def __init__(self, start_date: str, end_date: str):
        self.start_date = str(start_date)
        self.end_date = str(end_date)
        super().__init__(
            f"Period end date must be after start date "
            f"(start {start_date}, end {end_date})"
        )


class FrameworkImmutableError(DomainRuleViolation):
    """Framework cannot change once outputs have been generated."""

    code: str = "FRAMEWORK_IMMUTABLE"

    def __init__(self, accounts_set_id: str, current: str, requested: str):
        self.accounts_set_id = str(accounts_set_id)
        self.current = current
        self.requested = requested
        super().__init__(
            f"Framework of accounts set {accounts_set_id} cannot change from "
            f"{current} to {requested} after outputs have been generated"
        )


# Concurrency exceptions


class ConcurrencyError(PracticeKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, expected_version: int):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.expected_version = expected_version
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            f"version {expected_version} was modified by another writer"
        )


# Collaborator failures


class CollaboratorFailure(PracticeKernelError):
    """Base exception for failures of external collaborators."""

    code: str = "COLLABORATOR_FAILURE"


class StorageError(CollaboratorFailure):
    """Persistence failed on a required write or read."""

    code: str = "STORAGE_FAILURE"

    def __init__(self, operation: str, accounts_set_id: str | None, cause: str):
        self.operation = operation
        self.accounts_set_id = str(accounts_set_id) if accounts_set_id else None
        self.cause = cause
        super().__init__(f"Storage failure during {operation}: {cause}")


class RegistryLookupError(CollaboratorFailure):
    """Company registry lookup failed."""

    code: str = "REGISTRY_LOOKUP_FAILED"

    def __init__(self, company_number: str, cause: str):
        self.company_number = company_number
        self.cause = cause
        super().__init__(
            f"Company registry lookup failed for {company_number}: {cause}"
        )


class RenderError(CollaboratorFailure):
    """Template or PDF rendering failed."""

    code: str = "RENDER_FAILED"

    def __init__(self, template_name: str, cause: str):
        self.template_name = template_name
        self.cause = cause
        super().__init__(f"Failed to render {template_name}: {cause}")


class TemplateNotFoundError(RenderError):
    """Renderer has no template with the given name."""

    code: str = "TEMPLATE_NOT_FOUND"

    def __init__(self, template_name: str):
        super().__init__(template_name, "template not found")


class RenderTimeoutError(RenderError):
    """PDF rendering exceeded its time limit."""

    code: str = "RENDER_TIMEOUT"

    def __init__(self, template_name: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            template_name, f"PDF rendering timed out after {timeout_seconds}s"
        )
