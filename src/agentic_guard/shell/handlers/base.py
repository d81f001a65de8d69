"""Shared interface for command-specific handlers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from agentic_guard.shell.models import ClassificationVerdict, SimpleCommand
from agentic_guard.shell.path_analyzer import PathRiskAnalyzer


@dataclass(frozen=True)
class HandlerContext:
    """Helpers available to handlers while classifying a command."""

    path_analyzer: PathRiskAnalyzer


class CommandHandler(ABC):
    """Classifies one command name with knowledge of its flags.

    A handler replaces the pattern classifier for its command; the engine
    still audits redirection targets unless ``owns_redirections`` is set.
    """

    name: str = ""
    owns_redirections: bool = False

    @abstractmethod
    def handle(self, node: SimpleCommand, context: HandlerContext) -> ClassificationVerdict:
        """Classify ``node``."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
