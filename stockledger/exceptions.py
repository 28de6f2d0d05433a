"""Error taxonomy for the stock ledger.

Every error the services raise on purpose derives from ``LedgerError`` so the API
layer can translate it into the ``{ok: false, error: {...}}`` envelope in one place.

Codes:
- VAL: malformed or missing input, rejected before the store is touched
- CON: uniqueness violations (pre-check or store constraint)
- NF:  target missing or already soft-deleted
- AUD: audit trail write failures (never propagated to callers)
"""

from __future__ import annotations

from typing import Any


class LedgerError(Exception):
    """Base exception for stock ledger errors."""

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": False,
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            },
        }


class ValidationError(LedgerError):
    """Input failed validation."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message=message, code="VAL001", status_code=400, details=details)


class ConflictError(LedgerError):
    """A uniqueness rule would be violated."""

    def __init__(self, message: str, details: dict[str, Any] | None = None, code: str = "CON001"):
        super().__init__(message=message, code=code, status_code=409, details=details)

    @classmethod
    def from_integrity_error(cls, entity_type: str, exc: Exception) -> "ConflictError":
        # The store caught a race the pre-check missed; the remedy is a retry with fresh data.
        return cls(
            f"{entity_type} conflicts with a concurrent write, retry with fresh data",
            details={"entity": entity_type, "reason": str(getattr(exc, "orig", exc))},
            code="CON002",
        )


class NotFoundError(LedgerError):
    """Target does not exist or has been soft-deleted."""

    def __init__(self, entity_type: str, entity_id: str | None = None):
        message = f"{entity_type} not found" if not entity_id else f"{entity_type} {entity_id} not found"
        super().__init__(
            message=message,
            code="NF001",
            status_code=404,
            details={"entity": entity_type, "id": entity_id} if entity_id else {"entity": entity_type},
        )


class AuditWriteFailure(LedgerError):
    """The audit row could not be written; the business change stands."""

    def __init__(self, entity_type: str, entity_id: str, action: str, reason: str):
        super().__init__(
            message=f"Audit write failed for {action} {entity_type} {entity_id}",
            code="AUD001",
            status_code=500,
            details={"entity": entity_type, "id": entity_id, "action": action, "reason": reason},
        )
