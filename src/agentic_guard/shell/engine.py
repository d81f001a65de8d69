"""Command safety engine.

Combines the parser, handlers, pattern classifier and path analyzer into
one verdict per command line. Every node of the tree is classified,
including commands hidden in substitutions and the scripts passed to
``sh -c`` or ``eval``, and the results are folded worst-of so no
sub-command can lower the aggregate.

Example:
    from agentic_guard.shell.engine import classify, is_blocked

    verdict = classify("echo hi; rm -rf /")
    assert is_blocked(verdict)
"""

from agentic_guard.config import GuardSettings, get_settings
from agentic_guard.errors import CommandBlockedError, InvalidCommandError
from agentic_guard.logging import Loggers, log_context
from agentic_guard.shell.classifier import PatternClassifier
from agentic_guard.shell.config import ShellSafetyPolicy
from agentic_guard.shell.handlers import (
    HandlerContext,
    HandlerRegistry,
    get_default_registry,
)
from agentic_guard.shell.models import (
    ClassificationVerdict,
    CommandList,
    CommandNode,
    CompoundCommand,
    Pipeline,
    Redirection,
    SafetyStatus,
    SimpleCommand,
    Subshell,
    Word,
)
from agentic_guard.shell.parser import CommandParser
from agentic_guard.shell.path_analyzer import PathRiskAnalyzer, looks_like_path

logger = Loggers.shell()

# Redirections whose target is not a file path
_NON_FILE_OPERATORS = frozenset({"<<", "<<-", "<<<"})
_DUPLICATION_OPERATORS = frozenset({">&", "<&"})

# Shells whose -c option runs its operand as a command line
INLINE_SHELLS = frozenset({"sh", "bash", "zsh", "dash", "ksh"})
_SHELL_VALUE_OPTIONS = frozenset({"-o", "+o", "-O", "+O"})


def _is_opaque_word(word: Word) -> bool:
    """True when a word's whole value comes from command substitution."""
    text = word.text
    return bool(word.substitutions) and (
        (text.startswith("$(") and text.endswith(")"))
        or (text.startswith("`") and text.endswith("`"))
    )


def _argument_values(text: str) -> list[str]:
    """Return the parts of an argument that may name a path."""
    if text.startswith("-"):
        # --output=/etc/passwd
        _, eq, value = text.partition("=")
        return [value] if eq and value else []
    key, eq, value = text.partition("=")
    if eq and key.isidentifier():
        # dd-style key=value operands
        return [value] if value else []
    return [text]


def inline_script(node: SimpleCommand) -> str | None:
    """Return the command string run by ``bash -c '...'`` or ``eval``.

    Returns:
        The script text, or None when the command runs no inline script.
    """
    if node.base_name == "eval":
        return " ".join(node.args) or None
    if node.base_name not in INLINE_SHELLS:
        return None

    args = node.args
    inline = False
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in _SHELL_VALUE_OPTIONS:
            i += 2
            continue
        if arg == "--":
            i += 1
            break
        if arg == "-" or not arg.startswith(("-", "+")):
            break
        if not arg.startswith("--") and "c" in arg[1:]:
            inline = True
        i += 1

    if inline and i < len(args):
        return args[i]
    return None


class CommandSafetyEngine:
    """Classifies shell command lines into GREEN, YELLOW or RED.

    The engine is immutable after construction and safe to share between
    threads.
    """

    def __init__(
        self,
        parser: CommandParser | None = None,
        classifier: PatternClassifier | None = None,
        path_analyzer: PathRiskAnalyzer | None = None,
        handlers: HandlerRegistry | None = None,
        preview_length: int = 200,
    ):
        self.parser = parser or CommandParser()
        self.classifier = classifier or PatternClassifier()
        self.path_analyzer = path_analyzer or PathRiskAnalyzer()
        self.handlers = handlers if handlers is not None else get_default_registry()
        self.preview_length = preview_length
        self._context = HandlerContext(path_analyzer=self.path_analyzer)

    @classmethod
    def from_policy(
        cls,
        policy: ShellSafetyPolicy | None = None,
        preview_length: int = 200,
    ) -> "CommandSafetyEngine":
        """Create an engine whose rules and paths follow ``policy``."""
        return cls(
            classifier=PatternClassifier.from_policy(policy),
            path_analyzer=PathRiskAnalyzer(policy=policy),
            preview_length=preview_length,
        )

    @classmethod
    def from_settings(cls, settings: GuardSettings | None = None) -> "CommandSafetyEngine":
        """Create an engine from settings and the default policy files."""
        settings = settings or get_settings()
        policy = ShellSafetyPolicy.load_default(settings)
        return cls.from_policy(policy, preview_length=settings.command_preview_length)

    def classify(self, text: str) -> ClassificationVerdict:
        """Classify a command line.

        Args:
            text: The shell command string.

        Returns:
            ClassificationVerdict with the worst tier and all reasons.

        Raises:
            InvalidCommandError: If the command is empty or whitespace-only.
        """
        if not text or not text.strip():
            raise InvalidCommandError("Command cannot be empty")

        with log_context(command=text[: self.preview_length]):
            logger.debug("classifying_command")

            result = self.parser.parse(text)
            verdicts = []
            if not result.ok:
                logger.info("command_parse_failed", diagnostics=result.diagnostics)
                verdicts.append(ClassificationVerdict.of(
                    SafetyStatus.YELLOW,
                    f"command could not be parsed: {'; '.join(result.diagnostics)}",
                ))

            full_text = self.classifier.check_full_command(text)
            if full_text is not None:
                verdicts.append(full_text)

            verdicts.append(self.classify_node(result.node))
            combined = ClassificationVerdict.combine(*verdicts)
            verdict = ClassificationVerdict(
                combined.status, tuple(dict.fromkeys(combined.reasons))
            )

            logger.info(
                "command_classified",
                status=verdict.status.name,
                reasons=list(verdict.reasons),
            )
        return verdict

    def classify_node(self, node: CommandNode) -> ClassificationVerdict:
        """Classify a parsed command tree."""
        if isinstance(node, SimpleCommand):
            return self._classify_simple(node)
        if isinstance(node, Pipeline):
            return ClassificationVerdict.combine(
                *(self.classify_node(stage) for stage in node.stages)
            )
        if isinstance(node, CommandList):
            return ClassificationVerdict.combine(
                *(self.classify_node(member) for member in node.members)
            )
        if isinstance(node, Subshell):
            return ClassificationVerdict.combine(
                self.classify_node(node.body),
                self._audit_redirections(node.redirections),
                *self._classify_substitutions(r.target for r in node.redirections),
            )
        if isinstance(node, CompoundCommand):
            return ClassificationVerdict.combine(
                *(self.classify_node(body) for body in node.bodies),
                self._audit_redirections(node.redirections),
                *self._classify_substitutions(node.words),
                *self._classify_substitutions(r.target for r in node.redirections),
            )
        raise TypeError(f"Unsupported command node: {type(node).__name__}")

    def _classify_simple(self, node: SimpleCommand) -> ClassificationVerdict:
        if node.opaque:
            return ClassificationVerdict.combine(
                self.classifier.classify_simple(node),
                *self._classify_substitutions(node.words),
            )

        verdicts = []
        handler = self.handlers.get(node.name) if node.name else None
        if handler is not None:
            verdicts.append(handler.handle(node, self._context))
        else:
            verdicts.append(self.classifier.classify_simple(node))
            verdicts.append(self._audit_arguments(node.words))

        if handler is None or not handler.owns_redirections:
            verdicts.append(self._audit_redirections(node.redirections))

        script = inline_script(node)
        if script is not None and script.strip():
            verdicts.append(self._classify_script(script))

        words = list(node.assignments)
        if node.name_word is not None:
            words.append(node.name_word)
        words.extend(node.words)
        words.extend(r.target for r in node.redirections)
        verdicts.extend(self._classify_substitutions(words))

        return ClassificationVerdict.combine(*verdicts)

    def _classify_script(self, script: str) -> ClassificationVerdict:
        """Classify the command line run by ``sh -c`` or ``eval``."""
        result = self.parser.parse(script)
        verdicts = [self.classify_node(result.node)]
        if not result.ok:
            verdicts.append(ClassificationVerdict.of(
                SafetyStatus.YELLOW, "inline script could not be parsed"
            ))
        blocked = self.classifier.check_full_command(script)
        if blocked is not None:
            verdicts.append(blocked)
        return ClassificationVerdict.combine(*verdicts)

    def _audit_arguments(self, words: list[Word]) -> ClassificationVerdict:
        """Run path-looking arguments through the path analyzer."""
        verdicts = []
        for word in words:
            if _is_opaque_word(word):
                verdicts.append(ClassificationVerdict.of(
                    SafetyStatus.YELLOW, f"opaque or unparseable argument {word.raw}"
                ))
                continue
            for value in _argument_values(word.text):
                if not looks_like_path(value):
                    continue
                risk = self.path_analyzer.assess(value)
                if risk.status > SafetyStatus.GREEN:
                    verdicts.append(ClassificationVerdict.of(
                        risk.status, f"path argument: {risk.reason}"
                    ))
        return ClassificationVerdict.combine(*verdicts)

    def _audit_redirections(self, redirections: list[Redirection]) -> ClassificationVerdict:
        """Run redirection targets through the path analyzer."""
        verdicts = []
        for redirection in redirections:
            target = redirection.target
            if redirection.operator in _NON_FILE_OPERATORS:
                continue
            if redirection.operator in _DUPLICATION_OPERATORS and not redirection.is_output:
                continue
            if _is_opaque_word(target):
                verdicts.append(ClassificationVerdict.of(
                    SafetyStatus.YELLOW, f"redirect to opaque target {target.raw}"
                ))
                continue
            risk = self.path_analyzer.assess(target.text)
            if risk.status > SafetyStatus.GREEN:
                verdicts.append(ClassificationVerdict.of(
                    risk.status, f"redirect to {risk.reason}"
                ))
        return ClassificationVerdict.combine(*verdicts)

    def _classify_substitutions(self, words) -> list[ClassificationVerdict]:
        return [
            self.classify_node(sub)
            for word in words
            for sub in word.substitutions
        ]


_default_engine: CommandSafetyEngine | None = None


def get_default_engine() -> CommandSafetyEngine:
    """Get the shared engine, built from settings on first use."""
    global _default_engine
    if _default_engine is None:
        _default_engine = CommandSafetyEngine.from_settings()
    return _default_engine


def reset_default_engine() -> None:
    """Drop the shared engine so the next call rebuilds it."""
    global _default_engine
    _default_engine = None


def classify(text: str) -> ClassificationVerdict:
    """Classify a command line with the default engine."""
    return get_default_engine().classify(text)


def requires_approval(verdict: ClassificationVerdict) -> bool:
    """True for YELLOW and RED."""
    return verdict.status >= SafetyStatus.YELLOW


def is_blocked(verdict: ClassificationVerdict) -> bool:
    """True only for RED."""
    return verdict.status == SafetyStatus.RED


def should_auto_approve(verdict: ClassificationVerdict) -> bool:
    """True only for GREEN."""
    return verdict.status == SafetyStatus.GREEN


def validate_command_safety(text: str) -> bool:
    """Validate a command before execution.

    Returns:
        True when the command needs user confirmation.

    Raises:
        InvalidCommandError: If the command is empty.
        CommandBlockedError: If the command is classified RED.
    """
    verdict = classify(text)
    if is_blocked(verdict):
        logger.warning(
            "command_blocked",
            command=text[: get_default_engine().preview_length],
            reasons=list(verdict.reasons),
        )
        raise CommandBlockedError(text, verdict)
    return verdict.status == SafetyStatus.YELLOW
