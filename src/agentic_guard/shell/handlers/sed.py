"""Handler for ``sed``.

Reading files with sed is safe; editing them in place, writing the result
through a redirection or a ``w`` command, or running shell commands with
``e`` is not.
"""

from agentic_guard.shell.handlers.base import CommandHandler, HandlerContext
from agentic_guard.shell.models import (
    ClassificationVerdict,
    SafetyStatus,
    SimpleCommand,
)
from agentic_guard.shell.path_analyzer import SAFE_DEVICES

# Options whose value is a script, a script file or a plain value
SCRIPT_OPTIONS = frozenset({"-e", "--expression"})
SCRIPT_FILE_OPTIONS = frozenset({"-f", "--file"})
VALUE_OPTIONS = frozenset({"-l", "--line-length"})

# Flags that may follow s/regex/replacement/
_SUBSTITUTE_FLAGS = frozenset("gpiImM0123456789")


def is_in_place_flag(arg: str) -> bool:
    """Detect -i, -i.bak, combined short flags like -Ei, and --in-place[=SUF]."""
    if arg.startswith("--"):
        return arg == "--in-place" or arg.startswith("--in-place=")
    if not arg.startswith("-") or len(arg) < 2:
        return False
    cluster = ""
    for char in arg[1:]:
        if not char.isalpha():
            break
        cluster += char
    return "i" in cluster or "I" in cluster


def split_arguments(args: list[str]) -> tuple[list[str], list[str], list[str]]:
    """Split sed arguments into scripts, script files and input files.

    Handles ``-e SCRIPT``, ``--expression=SCRIPT``, clusters such as
    ``-ne SCRIPT`` or ``-es/a/b/``, and the bare first operand used as the
    script when no -e or -f option is given.
    """
    scripts: list[str] = []
    script_files: list[str] = []
    operands: list[str] = []
    ignored: list[str] = []

    def destination(option: str) -> list[str] | None:
        if option in SCRIPT_OPTIONS:
            return scripts
        if option in SCRIPT_FILE_OPTIONS:
            return script_files
        if option in VALUE_OPTIONS:
            return ignored
        return None

    pending: list[str] | None = None
    options_done = False
    for arg in args:
        if pending is not None:
            pending.append(arg)
            pending = None
            continue
        if options_done or arg == "-" or not arg.startswith("-"):
            operands.append(arg)
            continue
        if arg == "--":
            options_done = True
            continue
        if arg.startswith("--"):
            option, eq, value = arg.partition("=")
            target = destination(option)
            if target is not None:
                if eq:
                    target.append(value)
                else:
                    pending = target
            continue
        for j, char in enumerate(arg[1:], start=2):
            target = destination(f"-{char}")
            if target is not None:
                if arg[j:]:
                    target.append(arg[j:])
                else:
                    pending = target
                break
            if char == "i":
                # The rest of the cluster is the backup suffix
                break

    if not scripts and not script_files and operands:
        scripts.append(operands.pop(0))
    return scripts, script_files, operands


def file_arguments(args: list[str]) -> list[str]:
    """Return the input file operands, skipping flags and the script."""
    return split_arguments(args)[2]


def _skip_delimited(script: str, i: int, delimiter: str) -> int:
    """Return the index just past the next unescaped ``delimiter``."""
    while i < len(script):
        if script[i] == "\\":
            i += 2
            continue
        if script[i] == delimiter:
            return i + 1
        i += 1
    return len(script)


def _rest_of_line(script: str, i: int) -> tuple[str, int]:
    end = script.find("\n", i)
    if end == -1:
        end = len(script)
    return script[i:end].strip(), end


def _skip_text(script: str, i: int) -> int:
    """Skip a, i or c text, including lines continued with a backslash."""
    while True:
        _, i = _rest_of_line(script, i)
        if i >= len(script) or not script[:i].endswith("\\"):
            return i
        i += 1


def _skip_address(script: str, i: int) -> int:
    n = len(script)
    while True:
        if i < n and script[i] == "/":
            i = _skip_delimited(script, i + 1, "/")
            while i < n and script[i] in "IM":
                i += 1
        elif i < n and script[i] == "\\" and i + 1 < n:
            i = _skip_delimited(script, i + 2, script[i + 1])
            while i < n and script[i] in "IM":
                i += 1
        else:
            while i < n and (script[i].isdigit() or script[i] in "$~+"):
                i += 1
        if i < n and script[i] == ",":
            i += 1
            continue
        break
    while i < n and (script[i].isspace() or script[i] == "!"):
        i += 1
    return i


def script_effects(script: str) -> tuple[bool, list[str]]:
    """Find the side effects of a sed script.

    Returns:
        (executes, written) where ``executes`` is True when the script runs
        shell commands through ``e`` or the ``s///e`` flag, and ``written``
        lists the files named by ``w``, ``W`` and the ``s///w`` flag.
    """
    executes = False
    written: list[str] = []
    n = len(script)
    i = 0
    while i < n:
        while i < n and (script[i].isspace() or script[i] in ";{}"):
            i += 1
        i = _skip_address(script, i)
        if i >= n:
            break

        command = script[i]
        i += 1
        if command in "sy" and i < n:
            delimiter = script[i]
            i = _skip_delimited(script, i + 1, delimiter)
            i = _skip_delimited(script, i, delimiter)
            if command == "y":
                continue
            while i < n and (script[i] in _SUBSTITUTE_FLAGS or script[i] in "ew"):
                flag = script[i]
                i += 1
                if flag == "e":
                    executes = True
                elif flag == "w":
                    target, i = _rest_of_line(script, i)
                    written.append(target)
        elif command == "e":
            executes = True
            _, i = _rest_of_line(script, i)
        elif command in "wW":
            target, i = _rest_of_line(script, i)
            written.append(target)
        elif command in "aic":
            i = _skip_text(script, i)
        elif command in "#rR":
            # Comments and read file names run to the end of the line
            _, i = _rest_of_line(script, i)
        elif command in ":btTv":
            while i < n and script[i] not in ";\n":
                i += 1
    return executes, written


class SedHandler(CommandHandler):
    """Handler for sed command safety analysis."""

    name = "sed"
    owns_redirections = True

    def handle(self, node: SimpleCommand, context: HandlerContext) -> ClassificationVerdict:
        args = node.args
        analyzer = context.path_analyzer

        # First pass: detect in-place edits and output redirections
        for arg in args:
            if is_in_place_flag(arg):
                return ClassificationVerdict.of(
                    SafetyStatus.RED, f"sed in-place edit detected: {arg}"
                )
        writes = [
            r for r in node.redirections
            if r.is_output and r.target.text not in SAFE_DEVICES
        ]

        scripts, script_files, files = split_arguments(args)
        verdicts = []

        # Second pass: classify what the script itself does
        sandboxed = "--sandbox" in args
        script_writes = []
        for script_file in script_files:
            verdicts.append(ClassificationVerdict.of(
                SafetyStatus.YELLOW, f"sed script read from file {script_file}"
            ))
        for script in scripts:
            executes, written = script_effects(script)
            if sandboxed:
                continue
            if executes:
                verdicts.append(ClassificationVerdict.of(
                    SafetyStatus.RED, "sed script executes shell commands"
                ))
            script_writes.extend(t for t in written if t not in SAFE_DEVICES)

        for target in script_writes:
            verdicts.append(ClassificationVerdict.of(
                SafetyStatus.YELLOW, f"sed script writes to {target or '<unknown>'}"
            ))
            risk = analyzer.assess(target)
            if risk.status > SafetyStatus.GREEN:
                verdicts.append(ClassificationVerdict.of(
                    risk.status, f"sed write target: {risk.reason}"
                ))

        # Third pass: classify redirections and file arguments
        for redirection in node.redirections:
            target = redirection.target.text
            if redirection in writes:
                verdicts.append(ClassificationVerdict.of(
                    SafetyStatus.YELLOW, f"sed with output redirection to {target or '<unknown>'}"
                ))
            risk = analyzer.assess(target)
            if risk.status > SafetyStatus.GREEN:
                verdicts.append(ClassificationVerdict.of(risk.status, f"redirect to {target}"))

        for arg in files:
            if not arg:
                verdicts.append(ClassificationVerdict.of(
                    SafetyStatus.YELLOW, "opaque or unparseable argument"
                ))
                continue
            if not writes and not script_writes:
                # Read-only sed is safe whatever it reads
                continue
            risk = analyzer.assess(arg)
            status = SafetyStatus.RED if risk.status == SafetyStatus.RED else SafetyStatus.YELLOW
            verdicts.append(ClassificationVerdict.of(status, f"sed file argument {arg}"))

        return ClassificationVerdict.combine(*verdicts)
