"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Lookup (unknown record / asset)
  2xxx: Lifecycle (illegal transition, expiry)
  3xxx: Authorization (caller is not the seller / bidder / owner)
  4xxx: Validation (rejected before any ledger submission)
  5xxx: Settlement / store consistency
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Lookup ---

class NotFoundError(AppError):
    def __init__(self, kind: str, record_id: str) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(1001, f"{kind} not found: {record_id}", 404)


# --- 2xxx: Lifecycle ---

class InvalidStateError(AppError):
    def __init__(self, kind: str, record_id: str, status: str, action: str) -> None:
        self.status = status
        self.action = action
        super().__init__(
            2001,
            f"{kind} {record_id} in status {status} does not allow {action}",
            409,
        )


class ExpiredError(AppError):
    def __init__(self, kind: str, record_id: str) -> None:
        super().__init__(2002, f"{kind} {record_id} has expired", 410)


# --- 3xxx: Authorization ---

class UnauthorizedError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(3001, f"Unauthorized: {detail}", 403)


# --- 4xxx: Validation ---

class ValidationError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4001, f"Validation failed: {detail}", 422)


# --- 5xxx: Settlement / store ---

class SettlementFailureError(AppError):
    """The atomic ledger operation was rejected; the store was not touched."""

    def __init__(self, action: str, detail: str) -> None:
        self.action = action
        super().__init__(5001, f"Settlement failed during {action}: {detail}", 502)


class StoreConsistencyError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(5002, f"Store consistency error: {detail}", 500)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
