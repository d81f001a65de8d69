"""Pattern classifier for simple commands.

Three ordered rule tables decide a command's tier:
- forbidden: RED, checked first and short-circuits
- risky: YELLOW
- safe: GREEN
Anything unmatched is YELLOW. Rules run case-insensitively against the
command's reconstructed text; the forbidden table also runs against the
whole raw command line to catch patterns that span pipes.
"""

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from agentic_guard.shell.models import (
    ClassificationVerdict,
    SafetyStatus,
    SimpleCommand,
)

if TYPE_CHECKING:
    from agentic_guard.shell.config import ShellSafetyPolicy


@dataclass(frozen=True)
class PatternRule:
    """A compiled pattern and the reason reported when it matches."""

    pattern: re.Pattern
    reason: str

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


def _rules(entries: list[tuple[str, str]]) -> tuple[PatternRule, ...]:
    return tuple(
        PatternRule(re.compile(pattern, re.IGNORECASE), reason)
        for pattern, reason in entries
    )


# Command position: start of text or after a control operator, optionally
# behind wrappers that run their arguments as a command
_C = (
    r"(?:^|[;&|(`]\s*|\$\(\s*)"
    r"(?:(?:sudo|doas|env|command|builtin|exec|nohup|nice|time|xargs)(?:\s+-\S+)*\s+)*"
)

# Same command only (no control operators)
_A = r"[^;&|]*"

# Deletion targets that wipe a root, home or working directory
_WIPE_TARGET = (
    r"""\s['"]?(?:/|/\*|~/?\*?|\$\{?HOME\}?/?\*?|\.|\./?\*?|\*|"""
    r"""/(?:bin|boot|dev|etc|home|lib|lib64|opt|proc|root|sbin|srv|sys|usr|var|Users|System|Library|Applications)/?\*?)"""
    r"""['"]?(?=\s|$|[;&|)])"""
)

FORBIDDEN_PATTERNS: list[tuple[str, str]] = [
    # Destructive deletes
    (
        rf"{_C}rm\b(?={_A}\s-(?:[a-z]*[rf][a-z]*|-recursive|-force)\b)(?={_A}{_WIPE_TARGET})",
        "Recursive delete of root, home or working directory",
    ),
    (rf"{_C}sudo\s+(?:-\S+\s+)*(?:rm|dd|mkfs(?:\.\w+)?)\b", "Privileged destructive operation"),
    # Filesystems and raw disks
    (rf"{_C}mkfs(?:\.\w+)?\b", "Filesystem creation"),
    (rf"{_C}(?:fdisk|gdisk|parted|wipefs)\b", "Disk partitioning"),
    (
        rf"{_C}dd\b(?={_A}\bof=/dev/(?!null\b|zero\b|stdout\b|stderr\b))",
        "Direct disk write with dd",
    ),
    (r">\s*/dev/(?:sd[a-z]|hd[a-z]|vd[a-z]|xvd[a-z]|nvme\d|disk\d|mmcblk\d)", "Direct disk write"),
    (rf"{_C}cat\s+/dev/(?:zero|u?random)\s*>\s*/", "Overwrite with /dev/zero or /dev/random"),
    (r"\bformat\s+[a-z]:", "Drive format"),
    # Fork bombs
    (r"(?P<fn>[\w:.]+)\s*\(\s*\)\s*\{\s*(?P=fn)\s*\|\s*(?P=fn)\s*&", "Fork bomb"),
    # Remote code execution
    (
        r"\b(?:curl|wget)\b[^;]*\|\s*(?:sudo\s+(?:-\S+\s+)*)?(?:(?:ba|z|da|k|fi)?sh|python[\d.]*|perl|ruby|node)\b",
        "Pipe remote script to interpreter",
    ),
    (rf"{_C}(?:ba|z|da)?sh\s+<\(\s*(?:curl|wget)\b", "Execute remote script"),
    (rf"{_C}eval\b{_A}(?:\$\(|`)", "Eval with command substitution"),
    # Processes and system state
    (rf"{_C}kill\s+-(?:9|KILL|SIGKILL)\s+-?1(?=\s|$|[;&|)])", "Kill init or all processes"),
    (rf"{_C}(?:shutdown|reboot|halt|poweroff)\b", "System shutdown or reboot"),
    (rf"{_C}init\s+[06]\b", "System shutdown or reboot"),
    (
        rf"{_C}systemctl\s+(?:-\S+\s+)*(?:stop|disable|mask|poweroff|reboot|halt)\b",
        "System service modification",
    ),
    # Permissions
    (rf"{_C}chmod\s+(?:-\S+\s+)*0?777\b", "Overly permissive chmod"),
    (rf"{_C}chmod\b(?={_A}\s-[a-z]*R)(?={_A}\s/(?=\s|$|[;&|)]))", "Recursive chmod of root"),
    (rf"{_C}chown\b(?={_A}\s-[a-z]*R)(?={_A}\sroot(?::\w*)?(?=\s|$|[;&|)]))", "Recursive chown to root"),
]

RISKY_PATTERNS: list[tuple[str, str]] = [
    (rf"{_C}rm\b(?={_A}\s-(?:[a-z]*[rf][a-z]*|-recursive|-force)\b)", "Recursive or forced delete"),
    (rf"{_C}(?:rm|rmdir|unlink|shred)\b", "File deletion"),
    (rf"{_C}(?:sudo|su|doas|pkexec)\b", "Privilege escalation"),
    (rf"{_C}git\s+push\b", "Git push"),
    (rf"{_C}git\s+reset\b(?={_A}\s--hard\b)", "Git hard reset"),
    (rf"{_C}git\s+clean\b(?={_A}\s-[a-z]*f)", "Git clean of untracked files"),
    (rf"{_C}git\s+checkout\s+--\s+\.(?=\s|$)", "Git discard all changes"),
    (rf"{_C}(?:npm|yarn|pnpm)\s+(?:publish|unpublish)\b", "Package publish"),
    (rf"{_C}(?:npm|pnpm)\s+(?:install|i|add)\b(?={_A}\s(?:-g|--global)\b)", "Global package install"),
    (rf"{_C}yarn\s+global\s+add\b", "Global package install"),
    (rf"{_C}pip[\d.]*\s+install\b(?!{_A}\s--user\b)", "System-wide pip install"),
    (
        rf"{_C}(?:apt|apt-get|yum|dnf|zypper|brew|port)\s+(?:-\S+\s+)*(?:install|remove|purge|uninstall|upgrade)\b",
        "System package operation",
    ),
    (
        rf"{_C}docker\s+(?:container\s+|image\s+|system\s+)?(?:rm|rmi|stop|kill|prune)\b",
        "Docker destructive operation",
    ),
    (rf"{_C}(?:chmod|chown|chgrp)\b", "Permission or ownership change"),
    (
        r"(?:^|\s)(?:\d+|&)?(?:>>|>\||>)(?![>&|])\s*(?!/dev/(?:null|stdout|stderr|tty)\b)\S",
        "File overwrite redirection",
    ),
    (rf"{_C}mv\b", "File move operation"),
    (rf"{_C}cp\b(?={_A}\s-(?:[a-z]*r[a-z]*|-recursive)\b)", "Recursive copy"),
    (rf"{_C}tar\b(?={_A}\s(?:-[a-z]*x[a-z]*|--extract|x[a-z]*)(?=\s|$))", "Archive extraction"),
    (rf"{_C}unzip\b", "Archive extraction"),
    (rf"{_C}dd\b", "Raw data copy"),
    (rf"{_C}(?:kill|killall|pkill)\b", "Process termination"),
    (rf"{_C}curl\b(?={_A}\s(?:-[a-z]*o|--output|--remote-name)\b)", "Download to file"),
    (rf"{_C}wget\b", "Download to file"),
]

SAFE_PATTERNS: list[tuple[str, str]] = [
    (r"^(?:ls|ll|la|dir|tree)\b", "List files"),
    (r"^(?:echo|printf|pwd)\b", "Print output"),
    (r"^(?:cat|head|tail|less|more|wc|file|stat)\b", "View file"),
    (r"^(?:grep|egrep|fgrep|rg|ag)\b", "Search text"),
    (r"^(?:which|whereis|type)\b", "Locate command"),
    (r"^(?:whoami|hostname|date|uptime|uname|id)\b", "System information"),
    (r"^(?:ps|df|du|free)\b", "Show system usage"),
    (r"^git\s+(?:status|log|diff|show|branch)\b", "Git read-only"),
    (r"^npm\s+(?:ls|list|outdated|audit|view|info)\b", "npm read-only"),
    (r"^pip[\d.]*\s+(?:list|show|freeze)\b", "pip read-only"),
    (
        r"^(?:node|npm|npx|yarn|pnpm|python[\d.]*|pip[\d.]*|git|go|cargo|rustc|ruby|java|deno|bun)\s+(?:--version|-v|-V|version)\s*$",
        "Version check",
    ),
    (r"^npm\s+(?:test|t)\b", "Run tests"),
    (r"^npm\s+run\s+(?:test|lint|check|build)\b", "Run npm script"),
    (r"^(?:pytest|py\.test)\b", "Run tests"),
    (r"^make\s+(?:test|lint|check)\b", "Run make target"),
    (r"^ruff\s+(?:check|format\s+--check)\b", "Lint"),
    (r"^npm\s+(?:install|i|ci)\b(?![^;&|]*\s(?:-g|--global)\b)", "Local npm install"),
    (r"^(?:yarn|pnpm)\s+(?:install|add)\b(?![^;&|]*\s(?:-g|--global)\b)", "Local package install"),
    (r"^pip[\d.]*\s+install\s+--user\b", "User pip install"),
    (r"^cd\b", "Change directory"),
]


@dataclass(frozen=True)
class PatternTables:
    """Immutable forbidden, risky and safe rule tables."""

    forbidden: tuple[PatternRule, ...] = field(default_factory=tuple)
    risky: tuple[PatternRule, ...] = field(default_factory=tuple)
    safe: tuple[PatternRule, ...] = field(default_factory=tuple)

    @classmethod
    def default(cls) -> "PatternTables":
        return DEFAULT_TABLES

    def with_policy(self, policy: "ShellSafetyPolicy") -> "PatternTables":
        """Return tables extended with a policy's deny and allow patterns.

        Deny patterns are checked before the built-in forbidden rules; allow
        patterns are checked after the built-in safe rules, so they never
        outrank a forbidden or risky match.
        """
        deny = tuple(
            PatternRule(p, f"Matches user deny pattern '{p.pattern}'")
            for p in policy.compile_deny_patterns()
        )
        allow = tuple(
            PatternRule(p, f"Matches user allow pattern '{p.pattern}'")
            for p in policy.compile_allow_patterns()
        )
        return PatternTables(
            forbidden=deny + self.forbidden,
            risky=self.risky,
            safe=self.safe + allow,
        )


DEFAULT_TABLES = PatternTables(
    forbidden=_rules(FORBIDDEN_PATTERNS),
    risky=_rules(RISKY_PATTERNS),
    safe=_rules(SAFE_PATTERNS),
)


_SEGMENT_SEPARATOR = re.compile(r";;|&&|\|\||[;&|\n]")

# Reserved words, group openers and case patterns that precede a command
_SEGMENT_LEAD = re.compile(
    r"^\s*(?:if|then|elif|else|do|while|until|!|\{|\(|case\s+\S+\s+in|\(?[^\s()]+\))(?=\s|$)"
)


def opaque_segments(text: str) -> list[str]:
    """Split unstructured text into candidate commands.

    Used when the parser cannot build a tree, so a forbidden command inside
    an unsupported compound (``case x in a) rm -rf /;; esac``) still sits at
    a command position.
    """
    segments = []
    for segment in _SEGMENT_SEPARATOR.split(text):
        previous = None
        while segment != previous:
            previous = segment
            segment = _SEGMENT_LEAD.sub("", segment, count=1)
        segment = segment.strip()
        if segment:
            segments.append(segment)
    return segments


def command_text(node: SimpleCommand) -> str:
    """Reconstruct the text the rule tables are matched against."""
    parts = [node.base_name] if node.name else []
    parts.extend(w.raw for w in node.words)
    parts.extend(r.render() for r in node.redirections)
    return " ".join(parts)


class PatternClassifier:
    """Classifies simple commands with ordered pattern tables."""

    def __init__(self, tables: PatternTables | None = None):
        self.tables = tables or DEFAULT_TABLES

    @classmethod
    def from_policy(cls, policy: "ShellSafetyPolicy | None") -> "PatternClassifier":
        if policy is None:
            return cls()
        return cls(DEFAULT_TABLES.with_policy(policy))

    def classify_simple(self, node: SimpleCommand) -> ClassificationVerdict:
        """Classify a single simple command.

        Args:
            node: The command to classify.

        Returns:
            ClassificationVerdict for the command alone (arguments and
            redirection targets are audited by the engine).
        """
        if node.opaque:
            literal = node.words[0].text if node.words else ""
            for segment in (literal, *opaque_segments(literal)):
                blocked = self.check_full_command(segment)
                if blocked is not None:
                    return blocked
            return ClassificationVerdict.of(SafetyStatus.YELLOW, "unparseable command")

        text = command_text(node)
        if not text:
            # Bare assignments (FOO=bar) run nothing
            return ClassificationVerdict.green()
        return self.classify_text(text, name=node.name or None)

    def classify_text(self, text: str, name: str | None = None) -> ClassificationVerdict:
        """Run the three tables over ``text``; first table with a match wins."""
        for rule in self.tables.forbidden:
            if rule.matches(text):
                return ClassificationVerdict.of(SafetyStatus.RED, rule.reason)

        for rule in self.tables.risky:
            if rule.matches(text):
                return ClassificationVerdict.of(SafetyStatus.YELLOW, rule.reason)

        for rule in self.tables.safe:
            if rule.matches(text):
                return ClassificationVerdict.green()

        label = name if name is not None else text.split(" ", 1)[0]
        return ClassificationVerdict.of(SafetyStatus.YELLOW, f"unknown command: {label}")

    def check_full_command(self, text: str) -> ClassificationVerdict | None:
        """Check the full command line against the forbidden table.

        This catches patterns that span multiple commands (e.g. curl | bash)
        or that the parser cannot structure (e.g. fork bombs).

        Returns:
            A RED verdict if a forbidden rule matches, None otherwise.
        """
        for rule in self.tables.forbidden:
            if rule.matches(text):
                return ClassificationVerdict.of(SafetyStatus.RED, rule.reason)
        return None
