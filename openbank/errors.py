"""
Error Taxonomy Module

Every failure the core can report carries a stable machine-checkable code
plus a human-readable message. Validation errors also subclass ValueError so
callers that only care about "bad input" can catch them generically.
"""

from typing import Dict


class BankingError(Exception):
    """Base class for all OpenBank core errors"""

    code = "BANKING_ERROR"
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, str]:
        """Serialize to the error body returned to callers"""
        return {"error": self.code, "message": self.message}


class ValidationError(BankingError, ValueError):
    """Deterministic, caller-caused failure detected before any write"""

    code = "VALIDATION_ERROR"


class InvalidAmount(ValidationError):
    code = "INVALID_AMOUNT"


class UnknownAccount(ValidationError):
    code = "UNKNOWN_ACCOUNT"


class SameAccountTransfer(ValidationError):
    code = "SAME_ACCOUNT_TRANSFER"


class InsufficientFunds(ValidationError):
    code = "INSUFFICIENT_FUNDS"


class InvalidTransactionType(ValidationError):
    code = "INVALID_TRANSACTION_TYPE"


class InvalidIdentity(ValidationError):
    code = "INVALID_IDENTITY"


class InvalidLimit(ValidationError):
    code = "INVALID_LIMIT"


class DuplicateIdentity(BankingError):
    code = "DUPLICATE_IDENTITY"


class InvalidCredentials(BankingError):
    code = "INVALID_CREDENTIALS"


class UserNotFound(BankingError):
    code = "USER_NOT_FOUND"


class StoreUnavailable(BankingError):
    """Transient storage failure; the atomic unit left no partial effect"""

    code = "STORE_UNAVAILABLE"
    retryable = True


class IdentifierExhausted(BankingError):
    """Could not draw a non-colliding account number"""

    code = "IDENTIFIER_EXHAUSTED"
    retryable = True
