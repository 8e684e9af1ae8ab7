"""Domain-specific exceptions"""

from typing import Optional


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Transaction data is missing or unusable; needs an operator data fix"""

    pass


class CalendarCoverageError(ValidationError):
    """A date falls outside the range covered by the holiday calendar"""

    pass


class StoreError(DomainException):
    """Transaction store returned an error or an unreadable payload"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransientStoreError(StoreError):
    """Store is temporarily unavailable (5xx, 429, 409, timeout); retried next tick"""

    pass


class AuthorizationError(StoreError):
    """Credentials lack the privilege required for the operation"""

    pass


class NotFoundError(StoreError):
    """Transaction or listing does not exist"""

    pass


class UnexpectedScenarioError(DomainException):
    """State/scan combination that no charge or reminder rule models"""

    pass


class DispatchError(DomainException):
    """SMS provider rejected the message or is unavailable"""

    pass


class ChargeError(DomainException):
    """Late-fee application failed for one transaction"""

    def __init__(self, tx_id: str, timestamp: str, cause: Exception):
        super().__init__(f"Failed to apply late fees for transaction {tx_id}: {cause}")
        self.tx_id = tx_id
        self.timestamp = timestamp
        self.cause = cause
