"""
Error Taxonomy Module

Every expected failure of a ledger operation is raised as a LedgerError
subclass carrying an ErrorKind. The system facade converts these into
OperationResult values for message-passing callers; PersistenceError is the
only kind callers are expected to retry.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(Enum):
    """Kinds of ledger failures"""
    NOT_FOUND = "not_found"
    INVALID_AMOUNT = "invalid_amount"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    INACTIVE_ACCOUNT = "inactive_account"
    NOT_CONVERTIBLE = "not_convertible"
    CONFLICT = "conflict"
    PERSISTENCE_FAILURE = "persistence_failure"


class LedgerError(Exception):
    """Base class for all ledger errors"""
    
    kind = ErrorKind.CONFLICT
    
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
    
    def to_dict(self) -> Dict[str, str]:
        return {"error_kind": self.kind.value, "detail": self.message}


class NotFoundError(LedgerError):
    """An economy, currency, bank, account or transaction id is unknown"""
    kind = ErrorKind.NOT_FOUND
    
    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(f"{entity_type.capitalize()} {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class InvalidAmountError(LedgerError):
    """Amount is not positive or otherwise unusable"""
    kind = ErrorKind.INVALID_AMOUNT


class InsufficientFundsError(InvalidAmountError):
    """Amount exceeds the available balance"""
    kind = ErrorKind.INSUFFICIENT_FUNDS


class InactiveAccountError(LedgerError):
    kind = ErrorKind.INACTIVE_ACCOUNT


class NotConvertibleError(LedgerError):
    """No exchange path between two currencies"""
    kind = ErrorKind.NOT_CONVERTIBLE


class ConflictError(LedgerError):
    """Operation conflicts with existing records, e.g. live dependents"""
    kind = ErrorKind.CONFLICT


class WalletError(ConflictError):
    """The external wallet refused a credit or debit"""


class PersistenceError(LedgerError):
    """Store I/O failed; the update did not land"""
    kind = ErrorKind.PERSISTENCE_FAILURE


@dataclass
class OperationResult:
    """Success payload or structured failure returned to host-side callers"""
    success: bool
    data: Any = None
    error_kind: Optional[ErrorKind] = None
    error: Optional[str] = None
    
    @classmethod
    def ok(cls, data: Any = None) -> 'OperationResult':
        return cls(success=True, data=data)
    
    @classmethod
    def fail(cls, error: LedgerError) -> 'OperationResult':
        return cls(success=False, error_kind=error.kind, error=error.message)
    
    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success}
        if self.success:
            result["data"] = self.data
        else:
            result["error_kind"] = self.error_kind.value if self.error_kind else None
            result["error"] = self.error
        return result
