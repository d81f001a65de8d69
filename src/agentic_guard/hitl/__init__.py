"""Human-in-the-Loop approval gating.

Provides the approval gate that holds at most one pending confirmation,
and pure helpers a UI layer uses to present it.
"""

from agentic_guard.hitl.config import (
    ApprovalPresentationCapability,
    HITLConfig,
    get_approval_presentation_capability,
)
from agentic_guard.hitl.approval import (
    ApprovalAction,
    ApprovalGate,
    ApprovalRequest,
    ApprovalResult,
    ApprovalStatus,
    GateState,
    action_for,
)
from agentic_guard.hitl.presentation import (
    ApprovalContext,
    PendingUIAction,
    annotate_on_approval,
    filter_pending_for_approval,
)

__all__ = [
    # Config
    "HITLConfig",
    "ApprovalPresentationCapability",
    "get_approval_presentation_capability",
    # Approval
    "ApprovalGate",
    "ApprovalRequest",
    "ApprovalResult",
    "ApprovalStatus",
    "ApprovalAction",
    "GateState",
    "action_for",
    # Presentation
    "ApprovalContext",
    "PendingUIAction",
    "filter_pending_for_approval",
    "annotate_on_approval",
]
