"""Exception taxonomy for the Contract Wizard.

Validation and compliance problems are returned as values
(:class:`~contract_wizard.models.GateResult`), not raised. Exceptions are
reserved for invariant violations, which indicate a caller bypassed the
controller's mutation path, and for failures of external collaborators.
"""

from __future__ import annotations


class WizardError(Exception):
    """Base class for all Contract Wizard errors."""


# ---------------------------------------------------------------------------
# Invariant violations (programming errors)
# ---------------------------------------------------------------------------


class InvariantViolation(WizardError):
    """The caller attempted something the workflow state forbids."""


class MalformedStateError(InvariantViolation):
    """A serialized draft could not be hydrated."""

    def __init__(self, message: str, missing_keys: list[str] | None = None) -> None:
        self.missing_keys = missing_keys or []
        super().__init__(message)


class MandatoryClauseToggleError(InvariantViolation):
    """Mandatory clauses cannot be activated or deactivated."""

    def __init__(self, clause_key: str) -> None:
        self.clause_key = clause_key
        super().__init__(f"Clause '{clause_key}' is mandatory and cannot be toggled")


class UnknownClauseError(InvariantViolation):
    """The clause key is not part of the active policy."""

    def __init__(self, clause_key: str) -> None:
        self.clause_key = clause_key
        super().__init__(f"Unknown clause '{clause_key}'")


class UnknownFieldError(InvariantViolation):
    """The field path does not address a workflow field."""

    def __init__(self, field: str, message: str | None = None) -> None:
        self.field = field
        super().__init__(message or f"Unknown field '{field}'")


class ReadOnlyFieldError(UnknownFieldError):
    """The field is owned by identity lookup and cannot be edited by path."""

    def __init__(self, field: str) -> None:
        super().__init__(field, f"Field '{field}' is set by identity lookup only")


# ---------------------------------------------------------------------------
# Recoverable rejections
# ---------------------------------------------------------------------------


class AssistanceInFlight(WizardError):
    """An AI request for the same context is already outstanding."""

    def __init__(self, context: str) -> None:
        self.context = context
        super().__init__(f"An assistance request for '{context}' is already in progress")


# ---------------------------------------------------------------------------
# External dependency failures
# ---------------------------------------------------------------------------


class ExternalDependencyError(WizardError):
    """An external collaborator failed. Retry or fall back to manual entry."""


class AssistanceUnavailable(ExternalDependencyError):
    """The AI assistance service failed or returned an unusable response."""


class PersistenceFailure(ExternalDependencyError):
    """The draft store could not save or load a draft."""


class DraftNotFound(PersistenceFailure):
    """The draft store holds no draft with the requested id."""

    def __init__(self, draft_id: str) -> None:
        self.draft_id = draft_id
        super().__init__(f"Draft {draft_id} not found")


class PartyNotFound(ExternalDependencyError):
    """No registered user matches the supplied app id."""

    def __init__(self, app_id: str) -> None:
        self.app_id = app_id
        super().__init__(f"No registered user found for app id '{app_id}'")


class IdentityLookupFailed(ExternalDependencyError):
    """The identity service could not be reached."""
