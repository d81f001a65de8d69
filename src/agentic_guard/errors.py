"""Error types for the command safety engine and approval gate.

Provides:
- GuardError: Base error with structured details
- ErrorCode: Machine-readable error codes
- InvalidCommandError, CommandBlockedError: Classification errors
- AlreadyPendingError, UnknownRequestError: Approval gate errors
- PolicyError: Invalid policy configuration
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from agentic_guard.shell.models import ClassificationVerdict


class ErrorCode:
    """Standard error codes for guard failures."""

    INVALID_COMMAND = "INVALID_COMMAND"
    COMMAND_BLOCKED = "COMMAND_BLOCKED"
    ALREADY_PENDING = "ALREADY_PENDING"
    UNKNOWN_REQUEST = "UNKNOWN_REQUEST"
    INVALID_POLICY = "INVALID_POLICY"


class GuardError(Exception):
    """Base error for the guard package.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Additional error details
    """

    error_code: str = "GUARD_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "success": False,
            "error": {
                "message": self.message,
                "code": self.error_code,
                "details": self.details,
            },
        }


class InvalidCommandError(GuardError, ValueError):
    """Raised for empty or whitespace-only command text."""

    error_code = ErrorCode.INVALID_COMMAND


class CommandBlockedError(GuardError):
    """Raised when a RED verdict reaches an execution path."""

    error_code = ErrorCode.COMMAND_BLOCKED

    def __init__(
        self,
        command: str,
        verdict: "ClassificationVerdict",
    ):
        reasons = [r for r in verdict.reasons if r.startswith("RED")]
        summary = "; ".join(reasons) or "Command blocked for security reasons"
        super().__init__(
            f"Command blocked: {summary}",
            details={"command": command, "reasons": list(verdict.reasons)},
        )
        self.command = command
        self.verdict = verdict


class AlreadyPendingError(GuardError):
    """Raised when an approval is requested while another is outstanding."""

    error_code = ErrorCode.ALREADY_PENDING

    def __init__(self, pending_id: str):
        super().__init__(
            f"Approval request '{pending_id}' is still awaiting a decision",
            details={"pending_id": pending_id},
        )
        self.pending_id = pending_id


class UnknownRequestError(GuardError):
    """Raised when a decision references a request that is not pending."""

    error_code = ErrorCode.UNKNOWN_REQUEST

    def __init__(self, request_id: str, pending_id: str | None = None):
        super().__init__(
            f"No pending approval request with id '{request_id}'",
            details={"request_id": request_id, "pending_id": pending_id},
        )
        self.request_id = request_id
        self.pending_id = pending_id


class PolicyError(GuardError):
    """Raised when a shell safety policy cannot be loaded."""

    error_code = ErrorCode.INVALID_POLICY
