"""
Accounts Production Workflows (``practice_modules.accounts_production.workflows``).

Responsibility
--------------
Declares the accounts set lifecycle: DRAFT -> IN_REVIEW -> READY -> LOCKED,
plus the explicit LOCKED -> READY unlock.  No other transition exists.
Guards name the preconditions the lifecycle service checks.

Architecture position
---------------------
**Modules layer** -- declarative workflow definition.  Imports canonical
Guard, Transition, Workflow from ``practice_kernel.domain.workflow``.

Invariants enforced
-------------------
* Automatic transitions only move forward; no automatic transition leaves
  READY or LOCKED, so status never regresses without an explicit action.
* Locking requires generated outputs; unlocking returns exactly to READY.
"""

from practice_kernel.domain.workflow import Guard, Transition, Workflow
from practice_kernel.logging_config import get_logger

from practice_modules.accounts_production.models import AccountsSetStatus

logger = get_logger("modules.accounts_production.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

ALL_SECTIONS_VALID = Guard(
    name="all_sections_valid",
    description="All seven sections populated and document validation has no errors",
)

DIRECTORS_APPROVED = Guard(
    name="directors_approved",
    description="directorsApproval.approved is true",
)

OUTPUTS_GENERATED = Guard(
    name="outputs_generated",
    description="Both HTML and PDF outputs have been generated",
)


# -----------------------------------------------------------------------------
# Accounts Set Workflow
# -----------------------------------------------------------------------------

_DRAFT = AccountsSetStatus.DRAFT.value
_IN_REVIEW = AccountsSetStatus.IN_REVIEW.value
_READY = AccountsSetStatus.READY.value
_LOCKED = AccountsSetStatus.LOCKED.value

SUBMIT = "submit"
APPROVE = "approve"
LOCK = "lock"
UNLOCK = "unlock"

ACCOUNTS_SET_WORKFLOW = Workflow(
    name="accounts_set",
    description="Statutory accounts set lifecycle",
    initial_state=_DRAFT,
    states=(_DRAFT, _IN_REVIEW, _READY, _LOCKED),
    transitions=(
        Transition(_DRAFT, _IN_REVIEW, action=SUBMIT, guard=ALL_SECTIONS_VALID, automatic=True),
        Transition(_IN_REVIEW, _READY, action=APPROVE, guard=DIRECTORS_APPROVED, automatic=True),
        Transition(_READY, _LOCKED, action=LOCK, guard=OUTPUTS_GENERATED),
        Transition(_LOCKED, _READY, action=UNLOCK),
    ),
)

_ORDER = {state: i for i, state in enumerate(ACCOUNTS_SET_WORKFLOW.states)}

logger.info(
    "accounts_set_workflow_defined",
    extra={
        "workflow": ACCOUNTS_SET_WORKFLOW.name,
        "states": len(ACCOUNTS_SET_WORKFLOW.states),
        "transitions": len(ACCOUNTS_SET_WORKFLOW.transitions),
    },
)


def advance_towards(
    current: AccountsSetStatus,
    target: AccountsSetStatus,
) -> AccountsSetStatus:
    """
    Follow automatic transitions from ``current`` towards ``target``.

    Stops at ``target`` or when no further automatic transition moves
    forward.  Never returns a status earlier in the lifecycle than
    ``current``.
    """
    state = current.value
    while _ORDER[state] < _ORDER[target.value]:
        step = next(
            (
                t
                for t in ACCOUNTS_SET_WORKFLOW.transitions_from(state)
                if t.automatic and _ORDER[t.to_state] > _ORDER[state]
            ),
            None,
        )
        if step is None:
            break
        state = step.to_state
    return AccountsSetStatus(state)


def explicit_transition(
    current: AccountsSetStatus,
    action: str,
) -> AccountsSetStatus | None:
    """Target status of an explicit ``action`` from ``current``, or None if not permitted."""
    transition = ACCOUNTS_SET_WORKFLOW.find(current.value, action)
    if transition is None or transition.automatic:
        return None
    return AccountsSetStatus(transition.to_state)
