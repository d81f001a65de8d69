"""Presentation helpers for approval prompts.

Pure functions used by a UI layer: hide stale in-flight entries while a
prompt is shown, and mark completed entries that went through approval.
Both take an injectable capability lookup so tools can opt in or out.
"""

from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable

from agentic_guard.hitl.approval import ApprovalRequest
from agentic_guard.hitl.config import (
    ApprovalPresentationCapability,
    get_approval_presentation_capability,
)

CapabilityResolver = Callable[[str | None], ApprovalPresentationCapability]

PENDING_STATUSES = ("pending", "running", "completed", "failed", "cancelled")
ACTIVE_STATUSES = frozenset({"pending", "running"})


@dataclass(frozen=True)
class PendingUIAction:
    """A tool invocation as shown in the UI."""

    call_id: str | None
    tool_name: str | None
    status: str = "pending"
    command: str = ""
    had_approval: bool = False

    def __post_init__(self):
        if self.status not in PENDING_STATUSES:
            raise ValueError(f"Unknown UI action status: {self.status!r}")


@dataclass(frozen=True)
class ApprovalContext:
    """Identity of the tool invocation an approval refers to."""

    call_id: str | None = None
    tool_name: str | None = None

    @classmethod
    def from_request(cls, request: ApprovalRequest) -> "ApprovalContext":
        return cls(call_id=request.call_id, tool_name=request.tool_name)


def _as_context(
    value: "ApprovalContext | ApprovalRequest | None",
) -> ApprovalContext | None:
    if isinstance(value, ApprovalRequest):
        return ApprovalContext.from_request(value)
    return value


def _matches(item: PendingUIAction, context: ApprovalContext) -> bool:
    """Match by call_id first; by tool_name only when the context has no call_id."""
    if context.call_id:
        return item.call_id is not None and str(item.call_id) == str(context.call_id)
    return bool(context.tool_name) and item.tool_name == context.tool_name


def filter_pending_for_approval(
    items: Iterable[Any],
    request: "ApprovalContext | ApprovalRequest | None",
    get_capability: CapabilityResolver = get_approval_presentation_capability,
) -> list[Any]:
    """Drop in-flight UI actions that duplicate the approval being prompted.

    Items that are not PendingUIActions, actions that are no longer
    pending or running, and actions unrelated to the request are kept.

    Args:
        items: UI items in display order
        request: The approval being shown
        get_capability: Presentation flags lookup by tool name

    Returns:
        A new list with matching entries removed
    """
    items = list(items)
    context = _as_context(request)
    if not items or context is None or not (context.call_id or context.tool_name):
        return items

    kept = []
    for item in items:
        if (
            isinstance(item, PendingUIAction)
            and item.status in ACTIVE_STATUSES
            and get_capability(item.tool_name).hide_pending_during_prompt
            and _matches(item, context)
        ):
            continue
        kept.append(item)
    return kept


def annotate_on_approval(
    item: PendingUIAction,
    context: "ApprovalContext | ApprovalRequest | None",
    get_capability: CapabilityResolver = get_approval_presentation_capability,
) -> PendingUIAction:
    """Return a copy of ``item`` marked as approved, when it matches ``context``.

    Only tools whose capability enables annotate_command_message are marked;
    anything else is returned unchanged.
    """
    context = _as_context(context)
    if context is None:
        return item
    if not get_capability(item.tool_name).annotate_command_message:
        return item
    if not _matches(item, context):
        return item
    return replace(item, had_approval=True)
