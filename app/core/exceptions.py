"""Custom exceptions for the billing ledger service."""


class LedgerServiceError(Exception):
    """Base exception for the billing ledger service."""

    pass


class InvalidInputError(LedgerServiceError):
    """Raised when amounts, rates or identifiers are malformed."""

    pass


class InvalidTransitionError(LedgerServiceError):
    """Raised when a disallowed status transition is attempted."""

    pass


class StaleStateError(LedgerServiceError):
    """Raised when the stored status no longer matches the caller's expectation."""

    pass


class AlreadyResolvedError(LedgerServiceError):
    """Raised when resolving a dispute that is already resolved."""

    pass


class NoEligibleEntriesError(LedgerServiceError):
    """Raised when a supplier has nothing pending for a billing period."""

    pass


class LockTimeoutError(LedgerServiceError):
    """Raised when a supplier lock cannot be acquired in time. Safe to retry."""

    pass


class NotFoundError(LedgerServiceError):
    """Raised when a resource is not found."""

    pass


class ConfigurationError(LedgerServiceError):
    """Raised when configuration is invalid."""

    pass


class AuthenticationError(LedgerServiceError):
    """Raised when authentication fails."""

    pass


class AuthorizationError(LedgerServiceError):
    """Raised when an authenticated principal lacks permission."""

    pass
