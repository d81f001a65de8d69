"""Data models for the shell safety module.

Provides the safety tiers, the parsed command tree, and the verdict
value returned by every classification step.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Union


class SafetyStatus(IntEnum):
    """Risk tier for a command, ordered so that ``max()`` is worst-of."""

    GREEN = 0  # Auto-execute
    YELLOW = 1  # Needs confirmation
    RED = 2  # Forbidden

    @property
    def description(self) -> str:
        """User-facing description of the tier."""
        return _STATUS_DESCRIPTIONS[self]


_STATUS_DESCRIPTIONS = {
    SafetyStatus.GREEN: "Safe - will auto-execute",
    SafetyStatus.YELLOW: "Needs confirmation",
    SafetyStatus.RED: "Blocked - potentially dangerous",
}


@dataclass
class Word:
    """A single shell word.

    ``raw`` keeps the source text (quotes included) and ``text`` the
    unquoted value. Variables, tildes and globs are never expanded.
    ``substitutions`` holds every command the word runs when expanded.
    """

    raw: str
    text: str
    substitutions: list["CommandNode"] = field(default_factory=list)

    @property
    def is_quoted(self) -> bool:
        return self.raw != self.text and any(q in self.raw for q in "'\"\\")


# Operators that write to a file (as opposed to reading or duplicating fds)
OUTPUT_OPERATORS = {">", ">>", ">|", "&>", "&>>"}


@dataclass
class Redirection:
    """Represents a shell redirection."""

    operator: str  # e.g. ">", ">>", "<", ">&"
    target: Word
    fd: str = ""  # Explicit descriptor prefix, e.g. "2" in "2>"

    @property
    def is_output(self) -> bool:
        """True when the redirection writes to a file."""
        if self.operator == ">&":
            # 2>&1 duplicates a descriptor, >&file writes to a file
            return not self.target.text.isdigit() and self.target.text != "-"
        return self.operator in OUTPUT_OPERATORS

    def render(self) -> str:
        return f"{self.fd}{self.operator}{self.target.raw}"


@dataclass
class SimpleCommand:
    """One executable invocation with its words and redirections."""

    name: str
    words: list[Word] = field(default_factory=list)  # Arguments after the name
    redirections: list[Redirection] = field(default_factory=list)
    assignments: list[Word] = field(default_factory=list)  # FOO=bar prefixes
    name_word: Word | None = None
    opaque: bool = False  # Unparseable input wrapped verbatim

    @property
    def args(self) -> list[str]:
        """Unquoted argument values."""
        return [w.text for w in self.words]

    @property
    def base_name(self) -> str:
        """Lower-cased command name without any directory prefix."""
        return self.name.rsplit("/", 1)[-1].lower()

    def render(self) -> str:
        """Reconstruct the command text from its raw words."""
        parts = [w.raw for w in self.assignments]
        if self.name_word is not None:
            parts.append(self.name_word.raw)
        parts.extend(w.raw for w in self.words)
        parts.extend(r.render() for r in self.redirections)
        return " ".join(parts)


@dataclass
class Pipeline:
    """Commands connected by ``|``."""

    stages: list["CommandNode"]
    negated: bool = False


@dataclass
class CommandList:
    """Pipelines joined by ``;``, ``&&``, ``||`` or ``&``.

    ``operators[i]`` joins ``members[i]`` and ``members[i + 1]``; a trailing
    ``&`` or ``;`` is kept as an extra operator.
    """

    members: list["CommandNode"]
    operators: list[str] = field(default_factory=list)


@dataclass
class Subshell:
    """A parenthesised command list."""

    body: "CommandNode"
    redirections: list[Redirection] = field(default_factory=list)


@dataclass
class CompoundCommand:
    """A brace group, function definition or if/for/while/until statement.

    ``bodies`` holds every command inside the statement, conditions
    included, since any of them may run. ``words`` holds non-command words
    such as a for loop's variable and items.
    """

    keyword: str  # "{", "if", "for", "while", "until" or "function"
    bodies: list["CommandNode"] = field(default_factory=list)
    words: list[Word] = field(default_factory=list)
    redirections: list[Redirection] = field(default_factory=list)


CommandNode = Union[SimpleCommand, Pipeline, CommandList, Subshell, CompoundCommand]


@dataclass
class ParseResult:
    """Result of parsing a shell command."""

    node: CommandNode
    diagnostics: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.diagnostics


@dataclass(frozen=True)
class ClassificationVerdict:
    """Immutable classification outcome with an accumulated audit trail."""

    status: SafetyStatus
    reasons: tuple[str, ...] = ()

    @classmethod
    def green(cls) -> "ClassificationVerdict":
        return cls(SafetyStatus.GREEN)

    @classmethod
    def of(cls, status: SafetyStatus, reason: str | None = None) -> "ClassificationVerdict":
        """Create a verdict with a single tier-prefixed reason."""
        reasons = (f"{status.name}: {reason}",) if reason else ()
        return cls(status, reasons)

    @classmethod
    def combine(cls, *verdicts: "ClassificationVerdict") -> "ClassificationVerdict":
        """Fold verdicts worst-of, concatenating reasons in order."""
        if not verdicts:
            return cls.green()
        status = max(v.status for v in verdicts)
        reasons: tuple[str, ...] = ()
        for verdict in verdicts:
            reasons += verdict.reasons
        return cls(status, reasons)

    def escalate(self, status: SafetyStatus, reason: str | None = None) -> "ClassificationVerdict":
        """Return a new verdict raised to at least ``status``."""
        return ClassificationVerdict.combine(self, ClassificationVerdict.of(status, reason))

    @property
    def is_blocked(self) -> bool:
        return self.status == SafetyStatus.RED

    @property
    def requires_approval(self) -> bool:
        return self.status >= SafetyStatus.YELLOW
