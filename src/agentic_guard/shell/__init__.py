"""Shell command risk classification.

Layers, leaves first:
- parser: Structure a command line into a CommandNode tree
- path_analyzer: Classify path arguments and redirection targets
- classifier: Forbidden, risky and safe pattern tables
- handlers: Flag-aware classification for find, sed and git
- engine: Worst-of aggregation over the whole tree
"""

from agentic_guard.shell.models import (
    ClassificationVerdict,
    CommandList,
    CommandNode,
    CompoundCommand,
    ParseResult,
    Pipeline,
    Redirection,
    SafetyStatus,
    SimpleCommand,
    Subshell,
    Word,
)
from agentic_guard.shell.parser import CommandParser, parse
from agentic_guard.shell.path_analyzer import (
    PathRisk,
    PathRiskAnalyzer,
    analyze_path_risk,
)
from agentic_guard.shell.classifier import (
    PatternClassifier,
    PatternRule,
    PatternTables,
)
from agentic_guard.shell.config import ShellSafetyPolicy
from agentic_guard.shell.handlers import (
    CommandHandler,
    HandlerContext,
    HandlerRegistry,
    get_default_registry,
)
from agentic_guard.shell.engine import (
    CommandSafetyEngine,
    classify,
    get_default_engine,
    is_blocked,
    requires_approval,
    reset_default_engine,
    should_auto_approve,
    validate_command_safety,
)

__all__ = [
    # Models
    "SafetyStatus",
    "ClassificationVerdict",
    "Word",
    "Redirection",
    "SimpleCommand",
    "Pipeline",
    "CommandList",
    "CompoundCommand",
    "Subshell",
    "CommandNode",
    "ParseResult",
    # Parser
    "CommandParser",
    "parse",
    # Paths
    "PathRisk",
    "PathRiskAnalyzer",
    "analyze_path_risk",
    # Patterns
    "PatternRule",
    "PatternTables",
    "PatternClassifier",
    # Policy
    "ShellSafetyPolicy",
    # Handlers
    "CommandHandler",
    "HandlerContext",
    "HandlerRegistry",
    "get_default_registry",
    # Engine
    "CommandSafetyEngine",
    "classify",
    "requires_approval",
    "is_blocked",
    "should_auto_approve",
    "validate_command_safety",
    "get_default_engine",
    "reset_default_engine",
]
