"""Structural shell parser.

Builds a CommandNode tree from the bashlex AST. bashlex handles quoting,
lists, pipelines, subshells, brace groups, if/for/while/until statements,
function definitions, redirections, here-documents, and command and
process substitution.

bash also runs commands in places bashlex keeps as plain text. Those are
scanned here:
- ``$(...)`` and backticks nested in ``${...}`` and ``$((...))``
- the body of a here-document whose delimiter is unquoted

Nothing is expanded. Input that cannot be structured never raises: the
result wraps the literal text in an opaque SimpleCommand that still
carries any substitutions found in it, plus a diagnostic.
"""

import bashlex

from agentic_guard.shell.models import (
    CommandList,
    CommandNode,
    CompoundCommand,
    ParseResult,
    Pipeline,
    Redirection,
    SimpleCommand,
    Subshell,
    Word,
)

MAX_NESTING_DEPTH = 32

_STATEMENT_KINDS = frozenset({"if", "for", "while", "until", "function"})
_COMMAND_KINDS = frozenset({"command", "pipeline", "list", "compound"}) | _STATEMENT_KINDS
_SUBSTITUTION_KINDS = frozenset({"commandsubstitution", "processsubstitution"})
_HEREDOC_OPERATORS = frozenset({"<<", "<<-"})


class ParseError(ValueError):
    """Raised internally when the input cannot be structured."""


def _skip_quoted(text: str, i: int) -> int:
    """Return the index just past the quoted string starting at ``i``."""
    quote = text[i]
    j = i + 1
    while j < len(text):
        if text[j] == "\\" and quote != "'":
            j += 2
            continue
        if text[j] == quote:
            return j + 1
        j += 1
    raise ParseError(f"unterminated quote at offset {i}")


def _find_closing_paren(text: str, start: int, depth: int = 1) -> int:
    i = start
    while i < len(text):
        char = text[i]
        if char == "\\":
            i += 2
            continue
        if char in "'\"`":
            i = _skip_quoted(text, i)
            continue
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    raise ParseError(f"unterminated substitution at offset {start}")


def _find_closing_brace(text: str, start: int) -> int:
    depth = 1
    i = start
    while i < len(text):
        char = text[i]
        if char == "\\":
            i += 2
            continue
        if char in "'\"":
            i = _skip_quoted(text, i)
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    raise ParseError(f"unterminated parameter expansion at offset {start}")


def _find_backtick(text: str, start: int) -> int:
    i = start
    while i < len(text):
        if text[i] == "\\":
            i += 2
            continue
        if text[i] == "`":
            return i
        i += 1
    raise ParseError(f"unterminated backtick substitution at offset {start - 1}")


def substitution_bodies(
    text: str,
    expansions_only: bool = False,
    literal_quotes: bool = False,
) -> list[str]:
    """Return the command text of every ``$(...)`` and backtick substitution.

    Args:
        text: Shell text to scan.
        expansions_only: Only report substitutions nested inside ``${...}``
            or ``$((...))``; top-level ones are skipped over.
        literal_quotes: Treat quotes as ordinary characters, as bash does
            in a here-document body.

    Raises:
        ParseError: If a substitution or quote is unterminated.
    """
    bodies: list[str] = []
    in_double = False
    i = 0
    while i < len(text):
        char = text[i]
        if char == "\\":
            i += 2
        elif char == '"' and not literal_quotes:
            in_double = not in_double
            i += 1
        elif char == "'" and not (literal_quotes or in_double):
            end = text.find("'", i + 1)
            if end == -1:
                raise ParseError(f"unterminated single quote at offset {i}")
            i = end + 1
        elif text.startswith("$((", i):
            close = _find_closing_paren(text, i + 3, depth=2)
            bodies.extend(substitution_bodies(text[i + 3:close - 1]))
            i = close + 1
        elif text.startswith("${", i):
            close = _find_closing_brace(text, i + 2)
            bodies.extend(substitution_bodies(text[i + 2:close]))
            i = close + 1
        elif text.startswith("$(", i):
            close = _find_closing_paren(text, i + 2)
            if not expansions_only:
                bodies.append(text[i + 2:close])
            i = close + 1
        elif char == "`":
            close = _find_backtick(text, i + 1)
            if not expansions_only:
                bodies.append(text[i + 1:close])
            i = close + 1
        else:
            i += 1
    return bodies


class _TreeBuilder:
    """Converts bashlex nodes into CommandNode values."""

    def __init__(self, text: str, depth: int = 0):
        if depth > MAX_NESTING_DEPTH:
            raise ParseError("substitutions nested too deeply")
        self.text = text
        self.depth = depth

    def build(self) -> CommandNode:
        if not self.text.strip():
            raise ParseError("empty command")
        source = self.text
        if "<<" in source and not source.endswith("\n"):
            # A here-document delimiter line must be newline-terminated
            source += "\n"

        nodes = [self.convert(tree) for tree in bashlex.parse(source)]
        if not nodes:
            raise ParseError("empty command")
        if len(nodes) == 1:
            return nodes[0]
        return CommandList(members=nodes, operators=[";"] * (len(nodes) - 1))

    def convert(self, node) -> CommandNode:
        kind = node.kind
        if kind == "command":
            return self._command(node)
        if kind == "pipeline":
            return self._pipeline(node)
        if kind == "list":
            return self._list(node)
        if kind == "compound":
            return self._compound(node)
        if kind in _STATEMENT_KINDS:
            return self._statement(node)
        raise ParseError(f"unsupported shell construct '{kind}'")

    def _commands(self, children) -> list[CommandNode]:
        return [self.convert(child) for child in children if child.kind in _COMMAND_KINDS]

    def _body(self, children) -> CommandNode:
        commands = self._commands(children)
        if not commands:
            raise ParseError("empty compound command")
        if len(commands) == 1:
            return commands[0]
        return CommandList(members=commands, operators=[";"] * (len(commands) - 1))

    def _command(self, node) -> SimpleCommand:
        assignments: list[Word] = []
        words: list[Word] = []
        redirections: list[Redirection] = []
        name_word: Word | None = None

        for part in node.parts:
            if part.kind == "redirect":
                redirections.append(self._redirection(part))
            elif part.kind == "assignment" and name_word is None:
                assignments.append(self._word(part))
            elif part.kind in ("word", "assignment"):
                word = self._word(part)
                if name_word is None:
                    name_word = word
                else:
                    words.append(word)
            else:
                raise ParseError(f"unsupported shell construct '{part.kind}'")

        return SimpleCommand(
            name=name_word.text if name_word is not None else "",
            words=words,
            redirections=redirections,
            assignments=assignments,
            name_word=name_word,
        )

    def _pipeline(self, node) -> CommandNode:
        stages = self._commands(node.parts)
        negated = any(p.kind == "reservedword" and p.word == "!" for p in node.parts)
        if len(stages) == 1 and not negated:
            return stages[0]
        return Pipeline(stages=stages, negated=negated)

    def _list(self, node) -> CommandNode:
        members: list[CommandNode] = []
        operators: list[str] = []
        for part in node.parts:
            if part.kind == "operator":
                operators.append(";" if part.op == "\n" else part.op)
            elif part.kind in _COMMAND_KINDS:
                members.append(self.convert(part))
        if len(members) == 1 and not operators:
            return members[0]
        return CommandList(members=members, operators=operators)

    def _compound(self, node) -> CommandNode:
        children = list(getattr(node, "list", None) or [])
        redirections = [
            self._redirection(r) for r in getattr(node, "redirects", None) or []
        ]

        opener = children[0] if children else None
        if opener is not None and opener.kind == "reservedword" and opener.word == "(":
            return Subshell(body=self._body(children), redirections=redirections)

        # if, for, while and until arrive wrapped in a compound node
        if len(children) == 1 and children[0].kind in _STATEMENT_KINDS:
            statement = self._statement(children[0])
            statement.redirections.extend(redirections)
            return statement

        return CompoundCommand(
            keyword="{",
            bodies=self._commands(children),
            redirections=redirections,
        )

    def _statement(self, node) -> CompoundCommand:
        parts = list(getattr(node, "parts", None) or [])
        body = getattr(node, "body", None)
        if body is not None and all(part is not body for part in parts):
            parts.append(body)
        return CompoundCommand(
            keyword=node.kind,
            bodies=self._commands(parts),
            words=[self._word(p) for p in parts if p.kind == "word"],
        )

    def _word(self, node) -> Word:
        start, end = node.pos
        raw = self.text[start:end] or node.word

        substitutions = [
            _TreeBuilder(self.text, self.depth + 1).convert(part.command)
            for part in getattr(node, "parts", None) or []
            if part.kind in _SUBSTITUTION_KINDS
        ]
        # Whatever bashlex left as text, including ${...} and $((...)) bodies
        bodies = substitution_bodies(raw, expansions_only=bool(substitutions))
        substitutions.extend(self._fragment(body) for body in bodies if body.strip())

        return Word(raw=raw, text=node.word, substitutions=substitutions)

    def _redirection(self, node) -> Redirection:
        fd = getattr(node, "input", None)
        output = node.output
        if isinstance(output, int):
            # 2>&1 style descriptor duplication
            target = Word(raw=str(output), text=str(output))
        else:
            target = self._word(output)

        if node.type in _HEREDOC_OPERATORS and not target.is_quoted:
            heredoc = getattr(node, "heredoc", None)
            if heredoc is not None:
                bodies = substitution_bodies(heredoc.value, literal_quotes=True)
                target.substitutions.extend(
                    self._fragment(body) for body in bodies if body.strip()
                )

        return Redirection(
            operator=node.type,
            target=target,
            fd="" if fd is None else str(fd),
        )

    def _fragment(self, body: str) -> CommandNode:
        return _TreeBuilder(body, self.depth + 1).build()


def opaque_command(text: str, depth: int = 0) -> SimpleCommand:
    """Wrap literal text in a node that no later stage can structure.

    Substitutions that can still be located in the text are parsed on their
    own, so the commands they hide are classified.
    """
    word = Word(raw=text, text=text, substitutions=_salvage_substitutions(text, depth))
    return SimpleCommand(name="", words=[word], opaque=True)


def _salvage_substitutions(text: str, depth: int) -> list[CommandNode]:
    if depth >= MAX_NESTING_DEPTH:
        return []
    try:
        bodies = substitution_bodies(text)
    except ParseError:
        return []
    return [_parse(body, depth + 1).node for body in bodies if body.strip()]


def _parse(text: str, depth: int) -> ParseResult:
    try:
        return ParseResult(node=_TreeBuilder(text, depth).build())
    except ParseError as e:
        diagnostic = str(e)
    except Exception as e:
        # bashlex raises ParsingError for malformed input and
        # NotImplementedError for grammar it lacks, such as case
        diagnostic = str(e) or type(e).__name__
    return ParseResult(node=opaque_command(text, depth), diagnostics=[diagnostic])


class CommandParser:
    """Parses shell command text into a CommandNode tree."""

    def parse(self, text: str) -> ParseResult:
        """Parse a command line.

        Args:
            text: The shell command string to parse.

        Returns:
            ParseResult with the tree, or an opaque node plus diagnostics.
        """
        return _parse(text, 0)


_default_parser = CommandParser()


def parse(text: str) -> ParseResult:
    """Parse ``text`` with the default parser."""
    return _default_parser.parse(text)
