"""Handler for ``git``.

Classifies by subcommand: inspection commands run unattended, anything
that can change the repository, its configuration or a remote needs
confirmation. Path operands and ``--output`` files go through the path
analyzer whatever the subcommand, so reading a key with
``git diff --no-index`` is treated like reading it with ``cat``.
"""

from agentic_guard.shell.handlers.base import CommandHandler, HandlerContext
from agentic_guard.shell.models import (
    ClassificationVerdict,
    SafetyStatus,
    SimpleCommand,
)
from agentic_guard.shell.path_analyzer import looks_like_path

SAFE_SUBCOMMANDS = frozenset({
    # Status and information
    "status", "log", "show", "diff", "reflog",
    # Inspection
    "ls-files", "ls-tree", "ls-remote", "describe", "rev-parse", "rev-list",
    "show-ref", "show-branch", "name-rev", "merge-base",
    # History viewing
    "blame", "annotate", "shortlog", "whatchanged",
    # Object inspection
    "cat-file", "count-objects", "verify-pack", "verify-commit", "verify-tag",
    # Other read-only commands
    "grep", "help", "version", "fsck", "check-ignore", "check-attr",
    "check-ref-format", "var",
})

WRITE_SUBCOMMANDS = frozenset({
    # Write operations
    "push", "commit", "add", "rm", "mv",
    # Destructive operations
    "reset", "clean", "rebase", "merge", "cherry-pick", "revert",
    # History rewriting
    "filter-branch", "filter-repo", "replace",
    # Branch/tag management
    "checkout", "switch", "restore", "branch", "tag",
    # Configuration changes
    "config", "remote",
    # Submodules
    "submodule", "subtree",
    # Other write operations
    "stash", "apply", "am", "fetch", "pull", "clone", "init", "gc",
    "prune", "worktree", "notes", "update-ref", "update-index", "lfs",
})

# Global options whose next word is a value
GLOBAL_VALUE_OPTIONS = frozenset({
    "-C", "-c", "--git-dir", "--work-tree", "--namespace", "--super-prefix",
})

_VERSION_HELP = frozenset({"--version", "-v", "--help", "-h"})

# Subcommands that write their output to a file with --output or -o
OUTPUT_SUBCOMMANDS = frozenset({"diff", "log", "show", "whatchanged", "format-patch"})
OUTPUT_OPTIONS = frozenset({"--output", "--output-directory"})

_BRANCH_LIST_FLAGS = frozenset({
    "-a", "--all", "-r", "--remotes", "-v", "-vv", "--verbose",
    "--list", "-l", "--show-current", "--no-color", "--color",
})


def _lists_branches(rest: list[str]) -> bool:
    return all(a in _BRANCH_LIST_FLAGS or a.startswith("--format=") for a in rest)


def _lists_tags(rest: list[str]) -> bool:
    return not rest or rest[0] in ("-l", "--list")


def _lists_stashes(rest: list[str]) -> bool:
    return bool(rest) and rest[0] in ("list", "show")


def _lists_remotes(rest: list[str]) -> bool:
    return not rest or rest[0] in ("-v", "--verbose", "show", "get-url")


def _reads_config(rest: list[str]) -> bool:
    return any(
        a in ("--get", "--get-all", "--get-regexp", "--list", "-l") for a in rest
    )


# Write subcommands that only list or read in these forms
READ_ONLY_FORMS = {
    "branch": _lists_branches,
    "tag": _lists_tags,
    "stash": _lists_stashes,
    "remote": _lists_remotes,
    "config": _reads_config,
}


def has_dangerous_flag(args: list[str]) -> bool:
    """Flags that turn an otherwise read-only subcommand into a write."""
    return any(
        a.startswith(("--force", "-f", "--hard", "--delete", "-d", "-D"))
        for a in args
    )


def split_subcommand(args: list[str]) -> tuple[list[str], str | None, list[str]]:
    """Split git arguments into global options, subcommand and the rest."""
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in GLOBAL_VALUE_OPTIONS:
            i += 2
            continue
        if arg.startswith("-"):
            i += 1
            continue
        return args[:i], arg, args[i + 1:]
    return args, None, []


def output_files(subcommand: str, rest: list[str]) -> list[str]:
    """Return the files named by ``--output``, ``--output-directory`` or ``-o``."""
    if subcommand not in OUTPUT_SUBCOMMANDS:
        return []
    files = []
    for i, arg in enumerate(rest):
        if arg == "--":
            break
        option, eq, value = arg.partition("=")
        if option in OUTPUT_OPTIONS and eq:
            files.append(value)
        elif (arg in OUTPUT_OPTIONS or arg == "-o") and i + 1 < len(rest):
            files.append(rest[i + 1])
        elif arg.startswith("-o") and len(arg) > 2:
            files.append(arg[2:])
    return files


def path_operands(rest: list[str]) -> list[str]:
    """Return the operands that look like file paths."""
    operands = []
    after_separator = False
    for arg in rest:
        if arg == "--" and not after_separator:
            after_separator = True
            continue
        if arg.startswith("-") and not after_separator:
            continue
        if looks_like_path(arg):
            operands.append(arg)
    return operands


def _write_specifics(subcommand: str, rest: list[str]) -> str | None:
    if subcommand == "push" and any(
        a in ("-f", "--force", "--mirror", "--delete", "-d") or a.startswith(("--force-with-lease", "+"))
        for a in rest
    ):
        return "git push --force (rewrites remote history)"
    if subcommand == "reset" and "--hard" in rest:
        return "git reset --hard (discards local changes)"
    if subcommand == "clean" and any(
        a == "--force" or (a.startswith("-") and not a.startswith("--") and "f" in a)
        for a in rest
    ):
        return "git clean -f (deletes untracked files)"
    if subcommand in ("checkout", "restore") and "." in rest:
        return f"git {subcommand} . (discards working tree changes)"
    return None


class GitHandler(CommandHandler):
    """Handler for git command safety analysis."""

    name = "git"

    def handle(self, node: SimpleCommand, context: HandlerContext) -> ClassificationVerdict:
        global_options, subcommand, rest = split_subcommand(node.args)
        verdicts = []

        for i, option in enumerate(global_options):
            if option == "-c" or option.startswith("--config-env"):
                verdicts.append(ClassificationVerdict.of(
                    SafetyStatus.YELLOW, "git -c overrides configuration"
                ))
            elif option == "-C" and i + 1 < len(global_options):
                risk = context.path_analyzer.assess(global_options[i + 1])
                if risk.status > SafetyStatus.GREEN:
                    verdicts.append(ClassificationVerdict.of(
                        SafetyStatus.YELLOW, f"git -C {global_options[i + 1]}"
                    ))

        if subcommand is None:
            if global_options and all(o in _VERSION_HELP for o in global_options):
                return ClassificationVerdict.combine(*verdicts)
            verdicts.append(ClassificationVerdict.of(
                SafetyStatus.YELLOW, "git without subcommand"
            ))
            return ClassificationVerdict.combine(*verdicts)

        verdicts.extend(self._audit_paths(subcommand, rest, context))

        read_only_form = READ_ONLY_FORMS.get(subcommand)
        if read_only_form is not None and read_only_form(rest):
            return ClassificationVerdict.combine(*verdicts)

        if subcommand in WRITE_SUBCOMMANDS:
            reason = _write_specifics(subcommand, rest) or f"git {subcommand} (write operation)"
            verdicts.append(ClassificationVerdict.of(SafetyStatus.YELLOW, reason))
        elif subcommand in SAFE_SUBCOMMANDS:
            if has_dangerous_flag(rest):
                verdicts.append(ClassificationVerdict.of(
                    SafetyStatus.YELLOW,
                    f"git {subcommand} with potentially dangerous flags",
                ))
        else:
            verdicts.append(ClassificationVerdict.of(
                SafetyStatus.YELLOW, f"git {subcommand} (unknown subcommand)"
            ))

        return ClassificationVerdict.combine(*verdicts)

    def _audit_paths(
        self, subcommand: str, rest: list[str], context: HandlerContext
    ) -> list[ClassificationVerdict]:
        verdicts = []
        outputs = output_files(subcommand, rest)
        for target in outputs:
            verdicts.append(ClassificationVerdict.of(
                SafetyStatus.YELLOW, f"git {subcommand} writes to {target or '<unknown>'}"
            ))
            risk = context.path_analyzer.assess(target)
            if risk.status > SafetyStatus.GREEN:
                verdicts.append(ClassificationVerdict.of(
                    risk.status, f"git output path: {risk.reason}"
                ))

        for operand in path_operands(rest):
            if operand in outputs:
                continue
            risk = context.path_analyzer.assess(operand)
            if risk.status > SafetyStatus.GREEN:
                verdicts.append(ClassificationVerdict.of(
                    risk.status, f"path argument: {risk.reason}"
                ))
        return verdicts
