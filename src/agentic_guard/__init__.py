"""Agentic Guard - shell command risk classification and approval gating.

Before an agent runs a shell command, the engine decides whether it may
run unattended (GREEN), needs the user's confirmation (YELLOW), or must be
refused (RED). The approval gate then holds at most one pending
confirmation at a time.

Example:
    from agentic_guard import ApprovalGate, classify

    verdict = classify("rm -r build/")
    gate = ApprovalGate()
    request = gate.submit("shell", "rm -r build/", "call_1", verdict)
"""

from agentic_guard.config import (
    GuardSettings,
    SettingsContext,
    get_settings,
    reload_settings,
    set_settings,
)
from agentic_guard.errors import (
    AlreadyPendingError,
    CommandBlockedError,
    ErrorCode,
    GuardError,
    InvalidCommandError,
    PolicyError,
    UnknownRequestError,
)
from agentic_guard.shell import (
    ClassificationVerdict,
    CommandSafetyEngine,
    SafetyStatus,
    ShellSafetyPolicy,
    analyze_path_risk,
    classify,
    is_blocked,
    parse,
    requires_approval,
    should_auto_approve,
    validate_command_safety,
)
from agentic_guard.hitl import (
    ApprovalGate,
    ApprovalRequest,
    ApprovalResult,
    ApprovalStatus,
    PendingUIAction,
    annotate_on_approval,
    filter_pending_for_approval,
)

__version__ = "0.1.0"

__all__ = [
    # Settings
    "GuardSettings",
    "SettingsContext",
    "get_settings",
    "set_settings",
    "reload_settings",
    # Errors
    "GuardError",
    "ErrorCode",
    "InvalidCommandError",
    "CommandBlockedError",
    "AlreadyPendingError",
    "UnknownRequestError",
    "PolicyError",
    # Classification
    "SafetyStatus",
    "ClassificationVerdict",
    "CommandSafetyEngine",
    "ShellSafetyPolicy",
    "classify",
    "requires_approval",
    "is_blocked",
    "should_auto_approve",
    "validate_command_safety",
    "analyze_path_risk",
    "parse",
    # Approval
    "ApprovalGate",
    "ApprovalRequest",
    "ApprovalResult",
    "ApprovalStatus",
    "PendingUIAction",
    "filter_pending_for_approval",
    "annotate_on_approval",
]
