"""Shell safety policy.

A policy lets users extend the built-in rules without replacing them:
extra deny and allow patterns, extra system paths, extra sensitive file
extensions, and the project root.

Example shell_policy.yaml:

    deny_patterns:
      - "\\bterraform\\s+destroy\\b"
    allow_patterns:
      - "^make\\s+docs\\b"
    extra_system_paths:
      - /opt/company
    extra_sensitive_extensions:
      - .tfstate
    project_root: ~/work/project
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from agentic_guard.errors import PolicyError
from agentic_guard.logging import Loggers

if TYPE_CHECKING:
    from agentic_guard.config import GuardSettings

logger = Loggers.config()

USER_POLICY_PATH = Path.home() / ".config" / "agentic-guard" / "shell_policy.yaml"
LOCAL_POLICY_NAME = "shell_policy.yaml"

_LIST_FIELDS = (
    "deny_patterns",
    "allow_patterns",
    "extra_system_paths",
    "extra_sensitive_extensions",
)


def _compile(patterns: list[str], kind: str) -> list[re.Pattern]:
    compiled = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except re.error as e:
            raise PolicyError(
                f"Invalid {kind} pattern '{pattern}': {e}",
                details={"pattern": pattern, "field": kind},
            ) from e
    return compiled


@dataclass
class ShellSafetyPolicy:
    """User policy for shell command classification.

    Attributes:
        deny_patterns: Regex patterns classified RED before built-in rules.
        allow_patterns: Regex patterns classified GREEN after built-in rules.
        extra_system_paths: Absolute paths treated like reserved system roots.
        extra_sensitive_extensions: File extensions treated as sensitive.
        project_root: Absolute paths inside it are treated as project files.
    """

    deny_patterns: list[str] = field(default_factory=list)
    allow_patterns: list[str] = field(default_factory=list)
    extra_system_paths: list[str] = field(default_factory=list)
    extra_sensitive_extensions: list[str] = field(default_factory=list)
    project_root: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ShellSafetyPolicy":
        """Create a policy from a dictionary.

        Raises:
            PolicyError: If a field has the wrong type or a pattern is invalid.
        """
        values: dict[str, Any] = {}
        for name in _LIST_FIELDS:
            value = data.get(name) or []
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise PolicyError(
                    f"'{name}' must be a list of strings",
                    details={"field": name},
                )
            values[name] = list(value)

        project_root = data.get("project_root")
        if project_root is not None and not isinstance(project_root, str):
            raise PolicyError("'project_root' must be a string", details={"field": "project_root"})

        policy = cls(project_root=project_root, **values)
        # Fail on load, not on first classification
        policy.compile_deny_patterns()
        policy.compile_allow_patterns()
        return policy

    @classmethod
    def from_yaml(cls, path: Path | str) -> "ShellSafetyPolicy":
        """Load a policy from a YAML file.

        Args:
            path: Path to the YAML policy file.

        Returns:
            ShellSafetyPolicy instance (defaults if the file does not exist).

        Raises:
            PolicyError: If the file is not valid YAML or holds invalid values.
        """
        path = Path(path).expanduser()
        if not path.exists():
            return cls()

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise PolicyError(
                f"Invalid YAML in policy file {path}: {e}",
                details={"path": str(path)},
            ) from e

        if not isinstance(data, dict):
            raise PolicyError(
                f"Policy file {path} must contain a mapping",
                details={"path": str(path)},
            )

        policy = cls.from_dict(data)
        logger.debug("shell_policy_loaded", path=str(path), **policy.summary())
        return policy

    @classmethod
    def load_default(cls, settings: "GuardSettings | None" = None) -> "ShellSafetyPolicy":
        """Load and merge the policies found in the default locations.

        Policies are merged in this order, later ones adding to earlier ones:
        1. ~/.config/agentic-guard/shell_policy.yaml
        2. ./shell_policy.yaml (project local)
        3. The settings' policy_file

        The settings' project_root applies when no policy sets one.
        """
        candidates = [USER_POLICY_PATH, Path(LOCAL_POLICY_NAME)]
        if settings is not None and settings.policy_file is not None:
            candidates.append(settings.policy_file)

        policy = cls()
        for candidate in candidates:
            if candidate.exists():
                policy = policy.merge_with(cls.from_yaml(candidate))

        if policy.project_root is None and settings is not None and settings.project_root:
            policy.project_root = str(settings.project_root)
        return policy

    def to_dict(self) -> dict[str, Any]:
        """Convert policy to dictionary."""
        return {
            "deny_patterns": list(self.deny_patterns),
            "allow_patterns": list(self.allow_patterns),
            "extra_system_paths": list(self.extra_system_paths),
            "extra_sensitive_extensions": list(self.extra_sensitive_extensions),
            "project_root": self.project_root,
        }

    def merge_with(self, other: "ShellSafetyPolicy") -> "ShellSafetyPolicy":
        """Merge this policy with another (other takes precedence).

        Lists are concatenated without duplicates; other's project_root wins
        when set.
        """

        def merged(a: list[str], b: list[str]) -> list[str]:
            return a + [item for item in b if item not in a]

        return ShellSafetyPolicy(
            deny_patterns=merged(self.deny_patterns, other.deny_patterns),
            allow_patterns=merged(self.allow_patterns, other.allow_patterns),
            extra_system_paths=merged(self.extra_system_paths, other.extra_system_paths),
            extra_sensitive_extensions=merged(
                self.extra_sensitive_extensions, other.extra_sensitive_extensions
            ),
            project_root=other.project_root or self.project_root,
        )

    def compile_deny_patterns(self) -> list[re.Pattern]:
        return _compile(self.deny_patterns, "deny_patterns")

    def compile_allow_patterns(self) -> list[re.Pattern]:
        return _compile(self.allow_patterns, "allow_patterns")

    def summary(self) -> dict[str, int]:
        """Counts of each rule list, for log events."""
        return {name: len(getattr(self, name)) for name in _LIST_FIELDS}
