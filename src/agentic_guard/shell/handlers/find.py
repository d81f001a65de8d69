"""Handler for ``find``.

``find`` is a read-only listing tool until it deletes, executes, or writes
files. Execution primitives are checked first, then flags that widen what
``find`` can reach, then the starting-point paths.
"""

import re

from agentic_guard.shell.handlers.base import CommandHandler, HandlerContext
from agentic_guard.shell.models import (
    ClassificationVerdict,
    SafetyStatus,
    SimpleCommand,
)
from agentic_guard.shell.path_analyzer import split_home_alias

EXEC_FLAGS = frozenset({"-exec", "-execdir", "-ok", "-okdir"})
EXEC_TERMINATORS = frozenset({";", "+"})

DESTRUCTIVE_COMMANDS = frozenset({
    "rm", "shred", "chmod", "chown", "mv", "dd", "mkfs", "truncate",
    "tee", "cp", "ln", "install", "rsync", "unlink",
})

# Programs that can run arbitrary commands or scripts
INTERPRETERS = frozenset({
    # Shells
    "sh", "bash", "zsh", "ksh", "dash", "fish", "tcsh", "csh",
    # Script interpreters
    "perl", "python", "python2", "python3", "ruby", "node", "nodejs", "php", "lua",
    # Meta-executors
    "env", "xargs", "parallel", "nohup", "nice", "ionice", "timeout",
    "stdbuf", "script", "expect", "sudo", "doas",
    # Text processors and editors that can shell out
    "awk", "gawk", "mawk", "nawk", "sed", "ed", "vi", "vim", "nvim", "emacs",
})

# Flags whose next word is a value, not a starting point
VALUE_FLAGS = frozenset({
    "-name", "-iname", "-path", "-ipath", "-regex", "-iregex",
    "-wholename", "-iwholename", "-lname", "-ilname", "-regextype",
    "-newer", "-anewer", "-cnewer", "-samefile",
    "-user", "-group", "-uid", "-gid",
    "-type", "-xtype", "-size", "-perm", "-inum", "-links",
    "-mtime", "-mmin", "-atime", "-amin", "-ctime", "-cmin", "-used",
    "-maxdepth", "-mindepth", "-printf", "-fprint", "-fprint0", "-fls",
    "-context", "-fstype",
})

FILE_OUTPUT_FLAGS = ("-fprint", "-fprint0", "-fprintf", "-fls")
SYMLINK_FLAGS = frozenset({"-L", "-H", "-follow"})

_SHELL_METACHARACTERS = re.compile(r"[|&;$`<>]")
_GLOB = re.compile(r"[*?\[\]]")
_SUID_NUMERIC = re.compile(r"[-/]?[2467]000")
_SUID_SYMBOLIC = re.compile(r"[ug]?\+s")

# Path markers that keep a RED path RED for find
_PRIVATE_MARKERS = ("/.ssh", "/.env", "/.git", "/.aws", "/.kube", "/.gnupg")


def _exec_span(args: list[str], start: int) -> int:
    """Return the index of the terminator for the exec flag at ``start``, or -1."""
    for j in range(start + 1, len(args)):
        if args[j] in EXEC_TERMINATORS:
            return j
    return -1


def find_dangerous_execution(args: list[str]) -> str | None:
    """Return a reason if ``find`` would delete files or run risky commands."""
    for i, arg in enumerate(args):
        if arg == "-delete":
            return "find -delete (destructive)"
        if arg not in EXEC_FLAGS:
            continue

        terminator = _exec_span(args, i)
        if terminator == -1:
            return f"find {arg} without terminator"

        command = [a for a in args[i + 1:terminator] if a]
        if not command:
            return f"find {arg} with empty command"

        program = command[0]
        base = program.rsplit("/", 1)[-1].lower()
        if program == "{}":
            return f"find {arg} {{}} (executes found files directly)"
        if base in DESTRUCTIVE_COMMANDS or base.startswith("mkfs"):
            return f"find {arg} {program} (destructive)"
        if base in INTERPRETERS:
            return f"find {arg} {program} (can execute commands)"
        if _SHELL_METACHARACTERS.search(" ".join(command)):
            return f"find {arg} with shell metacharacters"
    return None


def find_suspicious_flags(args: list[str]) -> str | None:
    """Return a reason if ``find`` writes files or widens its reach."""
    for i, arg in enumerate(args):
        if arg.startswith(FILE_OUTPUT_FLAGS):
            return f"find {arg} (file output)"
        if arg in SYMLINK_FLAGS:
            return f"find {arg} (symlink following)"
        if arg == "-perm" and i + 1 < len(args):
            value = args[i + 1]
            if _SUID_NUMERIC.search(value) or _SUID_SYMBOLIC.search(value):
                return f"find -perm {value} (SUID/SGID search)"
        if arg == "-inum":
            return "find -inum (inode-based access bypasses path checks)"
        if arg in EXEC_FLAGS:
            return f"find {arg} (command execution)"
    return None


def _is_private_path(path: str) -> bool:
    return (
        split_home_alias(path) is not None
        or path.startswith("$")
        or ".." in path.split("/")
        or any(marker in path for marker in _PRIVATE_MARKERS)
    )


def starting_points(args: list[str]) -> list[str]:
    """Extract positional path arguments, skipping flags and their values."""
    paths = []
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in EXEC_FLAGS:
            end = _exec_span(args, i)
            i = len(args) if end == -1 else end + 1
            continue
        if arg in VALUE_FLAGS:
            i += 2
            continue
        if arg == "-fprintf":
            i += 3
            continue
        if arg and not arg.startswith("-") and arg not in ("(", ")", "!", ","):
            paths.append(arg)
        i += 1
    return paths


class FindHandler(CommandHandler):
    """Handler for find command safety analysis."""

    name = "find"

    def handle(self, node: SimpleCommand, context: HandlerContext) -> ClassificationVerdict:
        args = node.args
        if not args:
            return ClassificationVerdict.green()

        danger = find_dangerous_execution(args)
        if danger:
            return ClassificationVerdict.of(SafetyStatus.RED, danger)

        verdicts = []
        suspicious = find_suspicious_flags(args)
        if suspicious:
            verdicts.append(ClassificationVerdict.of(SafetyStatus.YELLOW, suspicious))

        for path in starting_points(args):
            if _GLOB.search(path) or "\\" in path:
                continue
            if path in (".", "./"):
                continue
            if path in ("/", "//"):
                verdicts.append(ClassificationVerdict.of(
                    SafetyStatus.YELLOW, "find / (root traversal - resource intensive)"
                ))
                continue

            risk = context.path_analyzer.assess(path)
            if risk.status == SafetyStatus.RED:
                if _is_private_path(path):
                    verdicts.append(ClassificationVerdict.of(
                        SafetyStatus.RED, f"find dangerous path: {path}"
                    ))
                else:
                    verdicts.append(ClassificationVerdict.of(
                        SafetyStatus.YELLOW, f"find system path: {path}"
                    ))
            elif risk.status == SafetyStatus.YELLOW:
                verdicts.append(ClassificationVerdict.of(
                    SafetyStatus.YELLOW, f"find path argument {path}"
                ))

        return ClassificationVerdict.combine(*verdicts)
