"""Approval gate for commands that need human confirmation.

The gate holds at most one pending request. RED commands are refused
before a request is ever created; YELLOW commands wait for a decision;
GREEN commands pass straight through.

Example:
    gate = ApprovalGate()
    request = gate.submit("shell", "rm build.log", "call_1", verdict)
    if request is not None:
        # Prompt the user, then:
        gate.approve(request.id)
"""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable

from agentic_guard.errors import (
    AlreadyPendingError,
    CommandBlockedError,
    UnknownRequestError,
)
from agentic_guard.logging import Loggers, log_context
from agentic_guard.shell.models import ClassificationVerdict, SafetyStatus

logger = Loggers.hitl()


class ApprovalStatus(Enum):
    """Status of an approval request."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class GateState(Enum):
    """State of the approval gate."""

    IDLE = "idle"
    AWAITING_DECISION = "awaiting_decision"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalAction(Enum):
    """What the caller must do with a classified command."""

    ALLOW = "allow"
    CONFIRM = "confirm"
    BLOCK = "block"


@dataclass
class ApprovalRequest:
    """Request for user approval."""

    id: str
    tool_name: str
    command_text: str
    call_id: str | None = None
    status: ApprovalStatus = ApprovalStatus.PENDING
    verdict: ClassificationVerdict | None = None
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class ApprovalResult:
    """Result of an approval decision."""

    request_id: str
    status: ApprovalStatus
    reason: str | None = None
    decided_at: datetime = field(default_factory=datetime.now)

    @property
    def approved(self) -> bool:
        return self.status == ApprovalStatus.APPROVED


ApprovalListener = Callable[[ApprovalRequest, ApprovalResult], None]

_ACTIONS = {
    SafetyStatus.GREEN: ApprovalAction.ALLOW,
    SafetyStatus.YELLOW: ApprovalAction.CONFIRM,
    SafetyStatus.RED: ApprovalAction.BLOCK,
}


def action_for(verdict: ClassificationVerdict) -> ApprovalAction:
    """Map a verdict to the gate action. RED always maps to BLOCK."""
    return _ACTIONS[verdict.status]


class ApprovalGate:
    """Serializes approval requests so only one is pending at a time.

    States: IDLE -> AWAITING_DECISION -> APPROVED | REJECTED -> IDLE.
    Listeners are notified while the gate reports the decided state and
    run outside the gate's lock, so they may call back into the gate.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._state = GateState.IDLE
        self._pending: ApprovalRequest | None = None
        self._history: list[ApprovalResult] = []
        self._listeners: list[ApprovalListener] = []

    @property
    def state(self) -> GateState:
        with self._lock:
            return self._state

    @property
    def pending(self) -> ApprovalRequest | None:
        """The request awaiting a decision, if any."""
        with self._lock:
            return self._pending

    @property
    def history(self) -> list[ApprovalResult]:
        """Decisions made so far, oldest first."""
        with self._lock:
            return list(self._history)

    def add_listener(self, listener: ApprovalListener) -> None:
        """Register a callback invoked with (request, result) after each decision."""
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: ApprovalListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def submit(
        self,
        tool_name: str,
        command_text: str,
        call_id: str | None,
        verdict: ClassificationVerdict,
    ) -> ApprovalRequest | None:
        """Route a classified command through the gate.

        Returns:
            None when the command may run unattended, otherwise the pending
            ApprovalRequest.

        Raises:
            CommandBlockedError: If the verdict is RED.
            AlreadyPendingError: If confirmation is needed while another
                request is pending.
        """
        action = action_for(verdict)
        if action == ApprovalAction.BLOCK:
            logger.warning(
                "command_refused",
                tool_name=tool_name,
                call_id=call_id,
                reasons=list(verdict.reasons),
            )
            raise CommandBlockedError(command_text, verdict)
        if action == ApprovalAction.ALLOW:
            return None
        return self.request(tool_name, command_text, call_id, verdict)

    def request(
        self,
        tool_name: str,
        command_text: str,
        call_id: str | None = None,
        verdict: ClassificationVerdict | None = None,
    ) -> ApprovalRequest:
        """Create the pending request and enter AWAITING_DECISION.

        Args:
            tool_name: Tool whose invocation needs approval
            command_text: Command shown to the user
            call_id: Identity of the tool invocation; generated if None
            verdict: Classification that triggered the request

        Raises:
            AlreadyPendingError: If a request is already pending.
            CommandBlockedError: If the verdict is RED.
        """
        if verdict is not None and verdict.is_blocked:
            raise CommandBlockedError(command_text, verdict)

        with self._lock:
            if self._pending is not None:
                raise AlreadyPendingError(self._pending.id)
            request = ApprovalRequest(
                id=call_id or uuid.uuid4().hex[:8],
                tool_name=tool_name,
                command_text=command_text,
                call_id=call_id,
                verdict=verdict,
            )
            self._pending = request
            self._state = GateState.AWAITING_DECISION

        with log_context(request_id=request.id, call_id=call_id):
            logger.info(
                "approval_requested",
                tool_name=tool_name,
                status=verdict.status.name if verdict else None,
            )
        return request

    def decide(
        self,
        request_id: str,
        decision: ApprovalStatus,
        reason: str | None = None,
    ) -> ApprovalResult:
        """Record a decision for the pending request.

        Raises:
            ValueError: If the decision is PENDING.
            UnknownRequestError: If request_id is not the pending request.
        """
        if decision == ApprovalStatus.PENDING:
            raise ValueError("Decision must be APPROVED or REJECTED")

        with self._lock:
            request = self._pending
            if request is None or request.id != request_id:
                raise UnknownRequestError(
                    request_id, pending_id=request.id if request else None
                )
            request.status = decision
            result = ApprovalResult(request_id=request_id, status=decision, reason=reason)
            self._history.append(result)
            self._pending = None
            self._state = (
                GateState.APPROVED
                if decision == ApprovalStatus.APPROVED
                else GateState.REJECTED
            )
            listeners = list(self._listeners)

        with log_context(request_id=request_id, call_id=request.call_id):
            logger.info("approval_decided", status=decision.value, reason=reason)
            try:
                for listener in listeners:
                    listener(request, result)
            finally:
                with self._lock:
                    # A new request may already have been made by a listener
                    if self._pending is None:
                        self._state = GateState.IDLE

        return result

    def approve(self, request_id: str, reason: str | None = None) -> ApprovalResult:
        """Approve the pending request."""
        return self.decide(request_id, ApprovalStatus.APPROVED, reason)

    def reject(self, request_id: str, reason: str | None = None) -> ApprovalResult:
        """Reject the pending request."""
        return self.decide(request_id, ApprovalStatus.REJECTED, reason)

    def cancel(self, reason: str = "cancelled") -> bool:
        """Reject whatever request is pending.

        Returns:
            True if a pending request was rejected, False if the gate was idle.
        """
        with self._lock:
            pending = self._pending
        if pending is None:
            return False
        try:
            self.decide(pending.id, ApprovalStatus.REJECTED, reason)
        except UnknownRequestError:
            # Decided concurrently
            return False
        logger.info("approval_cancelled", request_id=pending.id, reason=reason)
        return True
