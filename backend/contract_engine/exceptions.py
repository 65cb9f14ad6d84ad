"""Typed engine errors.

Every error carries enough context (current status, attempted operation) for the
caller to retry or show an actionable message. The API layer turns them into
JSON responses via ``ContractError.to_detail()``.
"""
from typing import Any, Optional


class ContractError(Exception):
    """Base class for all contract engine errors."""

    status_code = 400
    code = "contract_error"
    retryable = False

    def __init__(
        self,
        message: str,
        *,
        current_status: Optional[str] = None,
        operation: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.current_status = current_status
        self.operation = operation

    def to_detail(self) -> dict[str, Any]:
        detail: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.current_status is not None:
            detail["current_status"] = self.current_status
        if self.operation is not None:
            detail["operation"] = self.operation
        if self.retryable:
            detail["retryable"] = True
        return detail


class InvalidTransition(ContractError):
    """Operation is not legal for the document's current status."""

    code = "invalid_transition"

    def __init__(self, current_status: str, operation: str, message: Optional[str] = None) -> None:
        super().__init__(
            message or f"Cannot {operation} a contract in status {current_status}",
            current_status=current_status,
            operation=operation,
        )


class ActorNotAllowed(InvalidTransition):
    """Right state, wrong party."""

    status_code = 403
    code = "actor_not_allowed"


class AlreadyRequested(ContractError):
    status_code = 409
    code = "already_requested"


class SelfConfirmationForbidden(ContractError):
    status_code = 403
    code = "self_confirmation_forbidden"


class ConcurrentVersionConflict(ContractError):
    """Optimistic check failed. Re-read the contract and re-apply."""

    status_code = 409
    code = "concurrent_version_conflict"
    retryable = True


class ValidationError(ContractError):
    status_code = 422
    code = "validation_error"


class NotFound(ContractError):
    status_code = 404
    code = "not_found"


class ActiveDocumentExists(ContractError):
    status_code = 409
    code = "active_document_exists"
