"""Custom exception hierarchy for rent-ledger."""


class RentLedgerError(Exception):
    """Base exception for all rent-ledger errors."""


class InvalidInputError(RentLedgerError):
    """Raised when an argument violates a precondition (amounts, dates, rates)."""


class EntityNotFoundError(RentLedgerError):
    """Raised when a requested record id is unknown."""


class ReferentialIntegrityError(EntityNotFoundError):
    """Raised when a record points at a contract or payment that is not stored."""


class InvalidStateTransitionError(RentLedgerError):
    """Raised when a record cannot move to the requested status."""


class ConfigurationError(RentLedgerError):
    """Raised when an environment setting cannot be parsed or is out of range."""


class StoreError(RentLedgerError):
    """Raised when a single data store operation fails."""


class StoreUnavailableError(StoreError):
    """Raised when the data store cannot be reached at all."""


class DeliveryError(RentLedgerError):
    """Raised when a delivery channel fails to hand off a notification."""
