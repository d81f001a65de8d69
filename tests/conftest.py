"""Shared test fixtures and utilities for agentic-guard tests.

Provides:
- MockContext for isolating tests from global state
- Engine and gate fixtures
- Policy file fixtures
"""

import os
from pathlib import Path
from typing import Generator

import pytest

from agentic_guard.config import (
    GuardSettings,
    reload_settings,
    set_context_settings,
    set_settings,
)
from agentic_guard.hitl import ApprovalGate
from agentic_guard.shell import config as shell_config
from agentic_guard.shell.engine import CommandSafetyEngine, reset_default_engine


class MockContext:
    """Context manager for isolating tests from global state.

    Handles:
    - Clearing AGENTIC_GUARD_* environment variables
    - Resetting the global settings singleton and the default engine
    - Restoring everything afterwards

    Usage:
        with MockContext(project_root=tmp_path) as ctx:
            settings = ctx.settings
    """

    def __init__(self, **settings_kwargs):
        self._settings_kwargs = settings_kwargs
        self._settings: GuardSettings | None = None
        self._original_env: dict[str, str] = {}

    def __enter__(self) -> "MockContext":
        for var in list(os.environ):
            if var.startswith("AGENTIC_GUARD_"):
                self._original_env[var] = os.environ.pop(var)

        self._settings = GuardSettings(**self._settings_kwargs)
        set_settings(self._settings)
        reset_default_engine()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        set_context_settings(None)
        os.environ.update(self._original_env)
        reload_settings()
        reset_default_engine()

    @property
    def settings(self) -> GuardSettings:
        """Get the test settings instance."""
        if self._settings is None:
            raise RuntimeError("MockContext not entered")
        return self._settings


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch) -> Generator[MockContext, None, None]:
    """Keep user and project policy files out of every test."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(
        shell_config, "USER_POLICY_PATH", tmp_path / "no-such-dir" / "shell_policy.yaml"
    )
    with MockContext() as ctx:
        yield ctx


@pytest.fixture
def engine() -> CommandSafetyEngine:
    """Engine with built-in rules only."""
    return CommandSafetyEngine()


@pytest.fixture
def gate() -> ApprovalGate:
    return ApprovalGate()


@pytest.fixture
def policy_file(tmp_path: Path) -> Path:
    """Write a policy file and return its path."""
    path = tmp_path / "policy.yaml"
    path.write_text(
        "deny_patterns:\n"
        "  - '\\bterraform\\s+destroy\\b'\n"
        "allow_patterns:\n"
        "  - '^make\\s+docs\\b'\n"
        "extra_system_paths:\n"
        "  - /opt/company\n"
        "extra_sensitive_extensions:\n"
        "  - .tfstate\n"
    )
    return path
