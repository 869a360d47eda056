"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input, or a record that cannot be made canonical."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as a receipt that already left the pending set."""


class CorruptRecordError(DomainError):
    """A stored record is missing a payload it is required to have."""


class ExternalDependencyError(DomainError):
    """A collaborator outside the engine (rate provider, ledger sink) failed."""


class RateProviderError(ExternalDependencyError):
    """The exchange rate provider could not supply a rate."""


class LedgerWriteError(ExternalDependencyError):
    """A ledger sink rejected or timed out on a write."""


class LedgerTimeoutError(LedgerWriteError):
    """A ledger write did not finish in time; it may still land later."""


class ConfigurationAmbiguityWarning(UserWarning):
    """Configuration admits more than one answer; one was picked deterministically."""


def pending_receipt_not_found(receipt_id: int) -> str:
    """Return message for missing pending receipt."""
    return f"Pending receipt {receipt_id} not found"


def corrupt_pending_receipt(receipt_id: int) -> str:
    """Return message for a pending receipt without extraction data."""
    return (
        f"Pending receipt {receipt_id} has no extraction data. "
        "Re-upload the receipt or reject it."
    )


def receipt_already_resolved(receipt_id: int, status: str) -> str:
    """Return message for a receipt that is no longer pending."""
    return f"Receipt {receipt_id} is already {status} and cannot be changed"


def sheet_config_not_found(config_id: int) -> str:
    """Return message for missing sheet configuration."""
    return f"Sheet configuration {config_id} not found"


def entity_not_found(entity_id: str) -> str:
    """Return message for missing entity."""
    return f"Entity '{entity_id}' not found"


def user_not_found(user_id: str) -> str:
    """Return message for missing user."""
    return f"User '{user_id}' not found"


def category_not_found(name: str) -> str:
    """Return message for missing category."""
    return f"Category '{name}' not found"


def duplicate_category(name: str) -> str:
    """Return message for an existing category name."""
    return f"Category '{name}' already exists"


def unknown_correction_field(field: str, allowed: list[str]) -> str:
    """Return message for a correction key outside the extraction shape."""
    return f"Unknown correction field '{field}'. Allowed fields: {', '.join(allowed)}"
