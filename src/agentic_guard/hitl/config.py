"""Configuration for Human-in-the-Loop presentation."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ApprovalPresentationCapability:
    """Per-tool flags controlling how approvals are presented.

    Attributes:
        annotate_command_message: Mark the tool's completed UI entry as
            having passed through human approval
        hide_pending_during_prompt: Hide the tool's in-flight UI entries
            while its approval prompt is shown
    """

    annotate_command_message: bool = False
    hide_pending_during_prompt: bool = True


DEFAULT_CAPABILITY = ApprovalPresentationCapability()


def _default_tool_capabilities() -> dict[str, ApprovalPresentationCapability]:
    return {
        "search_replace": ApprovalPresentationCapability(
            annotate_command_message=True,
            hide_pending_during_prompt=True,
        ),
    }


@dataclass
class HITLConfig:
    """Configuration for Human-in-the-Loop features.

    Attributes:
        tool_capabilities: Presentation flags keyed by tool name; tools
            not listed use DEFAULT_CAPABILITY
    """

    tool_capabilities: dict[str, ApprovalPresentationCapability] = field(
        default_factory=_default_tool_capabilities
    )

    def get_capability(self, tool_name: str | None) -> ApprovalPresentationCapability:
        """Look up the presentation flags for a tool."""
        if not tool_name:
            return DEFAULT_CAPABILITY
        return self.tool_capabilities.get(tool_name, DEFAULT_CAPABILITY)


_default_config = HITLConfig()


def get_approval_presentation_capability(
    tool_name: str | None,
) -> ApprovalPresentationCapability:
    """Look up presentation flags in the default configuration."""
    return _default_config.get_capability(tool_name)
