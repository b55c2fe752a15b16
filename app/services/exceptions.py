"""
LEDGER EXCEPTIONS
=================

Every failure a caller can act on has its own type, a machine-readable
`code` and the HTTP status the API answers with. Extra keyword
arguments are kept in `details` and returned to the client.
"""


class LedgerError(Exception):
    """Base exception for ledger operations"""
    code = 'ledger_error'
    status_code = 500

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        payload = {'success': False, 'error': self.code, 'message': self.message}
        if self.details:
            payload['details'] = self.details
        return payload


class ValidationError(LedgerError):
    """Raised when an amount, reason or reference is invalid or missing"""
    code = 'validation_error'
    status_code = 400


class NotFoundError(LedgerError):
    """Raised when a vendor, settlement or withdrawal does not exist"""
    code = 'not_found'
    status_code = 404


class AuthorizationError(LedgerError):
    """Raised when the caller may not perform the operation"""
    code = 'forbidden'
    status_code = 403


class InvalidStateError(LedgerError):
    """Raised when a transition is attempted on a non-pending record"""
    code = 'invalid_state'
    status_code = 409


class InsufficientBalanceError(LedgerError):
    """Raised when wallet earnings cannot cover a debit or withdrawal"""
    code = 'insufficient_balance'
    status_code = 409


class ConcurrencyConflictError(LedgerError):
    """Raised when a balance row kept changing underneath us; safe to retry"""
    code = 'concurrency_conflict'
    status_code = 409


class DuplicateEventError(LedgerError):
    """Raised when an idempotency key was already recorded"""
    code = 'duplicate_event'
    status_code = 409
