"""Path risk analysis for shell command arguments.

Classifies a path string by where it points (home, system roots, project)
and by its form (hidden, sensitive extension, traversal). Paths are never
resolved against the filesystem and variables are never expanded.
"""

import posixpath
import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from agentic_guard.logging import Loggers
from agentic_guard.shell.models import SafetyStatus

if TYPE_CHECKING:
    from agentic_guard.shell.config import ShellSafetyPolicy

logger = Loggers.shell()


# Reserved system roots, matched on whole path segments
SYSTEM_ROOTS: tuple[str, ...] = (
    "/etc",
    "/sys",
    "/proc",
    "/dev",
    "/boot",
    "/var/lib",
    "/var/db",
    "/bin",
    "/sbin",
    "/lib",
    "/usr/bin",
    "/usr/sbin",
    "/usr/lib",
    "/System",  # macOS
    "/private/etc",  # macOS
)

# Home entries that hold credentials, history or configuration
SENSITIVE_HOME_ENTRIES = frozenset({
    ".ssh",
    ".env",
    ".git",
    ".aws",
    ".kube",
    ".gnupg",
    ".config",
    ".docker",
    ".bash_history",
    ".zsh_history",
})

# Dotfile markers that are risky anywhere in an absolute path
ABSOLUTE_DOTFILE_MARKERS: tuple[str, ...] = ("/.ssh", "/.gnupg", "/.aws", "/.gitconfig")

SENSITIVE_EXTENSIONS: tuple[str, ...] = (
    ".env",
    ".pem",
    ".key",
    ".p12",
    ".pfx",
    ".keystore",
    ".jks",
    ".kdbx",
    ".asc",
    ".gpg",
)

SAFE_DEVICES = frozenset({
    "/dev/null",
    "/dev/stdout",
    "/dev/stderr",
    "/dev/stdin",
    "/dev/zero",
    "/dev/random",
    "/dev/urandom",
    "/dev/tty",
})

# Common project configuration files
SAFE_JSON_FILES = frozenset({
    "package.json",
    "package-lock.json",
    "tsconfig.json",
    "jsconfig.json",
    "eslint.config.json",
    ".eslintrc.json",
    "prettier.config.json",
    ".prettierrc.json",
    "jest.config.json",
    "babel.config.json",
    ".babelrc.json",
    "tslint.json",
    "renovate.json",
    "nx.json",
    "project.json",
    "vercel.json",
    "composer.json",
    "pyrightconfig.json",
    "devcontainer.json",
})

# JSON file names that usually hold credentials or tokens
SUSPICIOUS_JSON_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^secrets?([-_.].*)?\.json$",
        r"^credentials?([-_.].*)?\.json$",
        r"^tokens?([-_.].*)?\.json$",
        r"^auth([-_.].*)?\.json$",
        r"^api[-_]?keys?([-_.].*)?\.json$",
        r"^service[-_]?accounts?([-_.].*)?\.json$",
        r"^private([-_.].*)?\.json$",
        r"^key([-_.].*)?\.json$",
        r"^id_rsa.*\.json$",
        r"^firebase[-_]?adminsdk.*\.json$",
        r"^google[-_]?credentials.*\.json$",
        r"^(gcloud|azure|aws|vault).*\.json$",
        r"^client[-_]secret.*\.json$",
        r"^oauth.*client.*\.json$",
        r"^(okta|sso|saml).*\.json$",
        r"^(sentry|newrelic|datadog).*\.json$",
        r".*\.(keystore|keypair|p8|p12)\.json$",
    )
]

_HOME_VARIABLE = re.compile(
    r"^\$(?:\{(?:HOME|USER|LOGNAME|XDG_\w*)\}|(?:HOME|USER|LOGNAME|XDG_\w*)(?!\w))"
)
_HOME_DIRECTORY = re.compile(r"^/(?:home|Users)/[^/]+")
_VARIABLE_ROOT = re.compile(r"^\$\{?\w+\}?(?:/|$)")


@dataclass(frozen=True)
class PathRisk:
    """Outcome of analysing one path candidate."""

    status: SafetyStatus
    reason: str | None = None


_GREEN = PathRisk(SafetyStatus.GREEN)


def split_home_alias(candidate: str) -> str | None:
    """Return the part of ``candidate`` after a home alias.

    Returns None when the path is not rooted at a home directory, and an
    empty string or "/" for the bare home directory.
    """
    if candidate.startswith("~"):
        slash = candidate.find("/")
        return "" if slash == -1 else candidate[slash:]

    match = _HOME_VARIABLE.match(candidate) or _HOME_DIRECTORY.match(candidate)
    if match:
        return candidate[match.end():]

    if candidate == "/root" or candidate.startswith("/root/"):
        return candidate[len("/root"):]
    return None


def looks_like_path(arg: str) -> bool:
    """Check if an argument looks like a file path."""
    if arg.startswith(("/", "~", "$", "./", "../")):
        return True
    if "/" in arg or arg in (".", ".."):
        return True
    # Has a dot (file extension or dotfile)
    return "." in arg


def _segments(path: str) -> list[str]:
    return [s for s in path.split("/") if s]


def _is_under(path: str, root: str) -> bool:
    root = root.rstrip("/") or "/"
    if root == "/":
        return path.startswith("/")
    return path == root or path.startswith(root + "/")


class PathRiskAnalyzer:
    """Classifies path strings into safety tiers.

    Decision order, first match wins: safe pseudo-devices, bare home,
    sensitive home entries, system roots, absolute dotfiles, other absolute
    or home paths, traversal, project JSON files, hidden files, sensitive
    extensions.
    """

    def __init__(
        self,
        project_root: Path | str | None = None,
        policy: "ShellSafetyPolicy | None" = None,
    ):
        """Initialize path analyzer.

        Args:
            project_root: Absolute paths inside this directory are treated
                like relative ones. Falls back to the policy's project_root.
            policy: Optional policy adding system paths and extensions.
        """
        if project_root is None and policy is not None:
            project_root = policy.project_root
        self.project_root = (
            posixpath.normpath(str(Path(project_root).expanduser()))
            if project_root
            else None
        )

        self._system_roots = SYSTEM_ROOTS
        self._sensitive_extensions = SENSITIVE_EXTENSIONS
        if policy is not None:
            self._system_roots += tuple(
                posixpath.normpath(p) for p in policy.extra_system_paths
            )
            self._sensitive_extensions += tuple(
                (ext if ext.startswith(".") else f".{ext}").lower()
                for ext in policy.extra_sensitive_extensions
            )

    def assess(self, candidate: str | None) -> PathRisk:
        """Analyze a single path candidate.

        Args:
            candidate: Path text as written on the command line.

        Returns:
            PathRisk with the tier and, for non-GREEN tiers, a reason.
        """
        candidate = (candidate or "").strip()
        if not candidate or candidate in SAFE_DEVICES:
            return _GREEN

        risk = self._assess(candidate)
        if risk.status > SafetyStatus.GREEN:
            logger.debug(
                "path_risk_detected",
                path=candidate,
                status=risk.status.name,
                reason=risk.reason,
            )
        return risk

    def _assess(self, candidate: str) -> PathRisk:
        is_absolute = candidate.startswith("/")
        normalized = "/" + posixpath.normpath(candidate).lstrip("/") if is_absolute else candidate
        in_project = is_absolute and self._in_project(normalized)

        if not in_project:
            suffix = split_home_alias(candidate)
            if suffix is not None:
                return self._assess_home(candidate, suffix)

            if is_absolute:
                for root in self._system_roots:
                    if _is_under(normalized, root):
                        return PathRisk(SafetyStatus.RED, f"system path {candidate}")
                if any(marker in normalized for marker in ABSOLUTE_DOTFILE_MARKERS):
                    return PathRisk(SafetyStatus.RED, f"home dotfile {candidate}")
                return PathRisk(SafetyStatus.YELLOW, f"unclassified absolute path {candidate}")

            if _VARIABLE_ROOT.match(candidate):
                return PathRisk(
                    SafetyStatus.YELLOW,
                    f"unclassified absolute path {candidate} (unresolved variable)",
                )

        return self._assess_relative(candidate)

    def _assess_home(self, candidate: str, suffix: str) -> PathRisk:
        if suffix.strip("/") == "":
            return PathRisk(SafetyStatus.RED, f"bare home access {candidate}")

        segments = _segments(suffix)
        if ".." in segments:
            return PathRisk(SafetyStatus.RED, f"directory traversal {candidate}")
        if any(
            s in SENSITIVE_HOME_ENTRIES or (s.startswith(".") and s != ".")
            for s in segments
        ):
            return PathRisk(SafetyStatus.RED, f"home dotfile or config {candidate}")

        filename = posixpath.basename(suffix.rstrip("/"))
        if self._is_suspicious_json(filename):
            return PathRisk(SafetyStatus.RED, f"credential file in home directory {candidate}")
        if filename.lower().endswith(self._sensitive_extensions):
            return PathRisk(SafetyStatus.RED, f"sensitive file in home directory {candidate}")

        return PathRisk(SafetyStatus.YELLOW, f"unclassified absolute path {candidate}")

    def _assess_relative(self, candidate: str) -> PathRisk:
        if ".." in _segments(candidate):
            return PathRisk(SafetyStatus.RED, f"directory traversal {candidate}")

        filename = posixpath.basename(candidate.rstrip("/"))
        if filename.lower().endswith(".json"):
            if filename.lower() in SAFE_JSON_FILES:
                return _GREEN
            if self._is_suspicious_json(filename):
                return PathRisk(SafetyStatus.YELLOW, f"credential-like JSON file {candidate}")
            return _GREEN

        if filename.startswith(".") and filename not in (".", ".."):
            return PathRisk(SafetyStatus.YELLOW, f"hidden file {candidate}")

        if filename.lower().endswith(self._sensitive_extensions):
            return PathRisk(SafetyStatus.YELLOW, f"sensitive file extension {candidate}")

        return _GREEN

    def _in_project(self, normalized: str) -> bool:
        if not self.project_root or self.project_root == "/":
            return False
        return _is_under(normalized, self.project_root)

    @staticmethod
    def _is_suspicious_json(filename: str) -> bool:
        return filename.lower().endswith(".json") and any(
            p.match(filename) for p in SUSPICIOUS_JSON_PATTERNS
        )


_default_analyzer = PathRiskAnalyzer()


def analyze_path_risk(candidate: str | None) -> SafetyStatus:
    """Classify a path with the default analyzer."""
    return _default_analyzer.assess(candidate).status
