"""
Typed exceptions for ledger operations.

Every error carries a machine-readable ``code`` and the HTTP status the API
layer answers with:

    PawnLedgerError (base)
    |
    +-- NotFoundError              404
    |   +-- ParticularNotFoundError
    |   +-- TransactionNotFoundError
    |
    +-- ValidationError            400
    |
    +-- UnauthorizedError          401

Missing records and records owned by another user raise the same
``NotFoundError``; ownership is a query scope, not a permission check.
"""

from typing import Optional


class PawnLedgerError(Exception):
    """Base class for all ledger errors"""

    code: str = "LEDGER_ERROR"
    status_code: int = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(PawnLedgerError):
    """Referenced record is missing or not visible to the caller"""

    code = "NOT_FOUND"
    status_code = 404


class ParticularNotFoundError(NotFoundError):

    code = "PARTICULAR_NOT_FOUND"

    def __init__(self, particular_id: str):
        self.particular_id = particular_id
        super().__init__("Particular not found")


class TransactionNotFoundError(NotFoundError):

    code = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__("Transaction not found")


class ValidationError(PawnLedgerError):
    """A required field is missing or a value is unusable"""

    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class UnauthorizedError(PawnLedgerError):
    """Missing, invalid or expired credential"""

    code = "UNAUTHORIZED"
    status_code = 401
