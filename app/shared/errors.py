from typing import Optional


class LedgerError(Exception):
    """Base class for errors surfaced to API clients."""
    code = "ledger_error"
    status_code = 500
    retryable = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        body = {"error": self.code, "message": self.message}
        if self.retryable:
            body["retryable"] = True
        return body


class ValidationError(LedgerError):
    """Missing required field, bad enum value or inconsistent totals."""
    code = "validation_error"
    status_code = 400


class InvalidArgument(ValidationError):
    """A query argument (date, transaction type) could not be understood."""
    code = "invalid_argument"


class NotFound(LedgerError):
    code = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: Optional[str] = None):
        self.entity = entity
        self.entity_id = entity_id
        if entity_id is None:
            super().__init__(f"{entity} not found")
        else:
            super().__init__(f"{entity} {entity_id} not found")


class StorageError(LedgerError):
    code = "storage_error"
    status_code = 503
    retryable = True

    def __init__(self, operation: str, collection: str, detail: str = ""):
        self.operation = operation
        self.collection = collection
        message = f"{operation} on '{collection}' failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class StorageTimeout(StorageError):
    code = "storage_timeout"


class StorageUnavailable(StorageError):
    code = "storage_unavailable"


class ReconciliationFailure(LedgerError):
    """
    The transaction write succeeded but the nominee balance was not updated.

    The cached balance is stale until a repair recomputes it from the ledger.
    """
    code = "reconciliation_failure"
    status_code = 500

    def __init__(self, nominee_id: str, cause: Exception):
        self.nominee_id = nominee_id
        self.cause = cause
        super().__init__(
            f"Balance of nominee {nominee_id} was not reconciled after a successful write: {cause}"
        )

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["nomineeId"] = self.nominee_id
        return body
