"""Tests for the shell safety policy."""

from pathlib import Path

import pytest

from agentic_guard.config import GuardSettings
from agentic_guard.errors import PolicyError
from agentic_guard.shell import config as shell_config
from agentic_guard.shell.config import ShellSafetyPolicy


class TestShellSafetyPolicy:
    """Tests for ShellSafetyPolicy construction."""

    def test_defaults(self):
        policy = ShellSafetyPolicy()

        assert policy.deny_patterns == []
        assert policy.allow_patterns == []
        assert policy.project_root is None

    def test_from_dict(self):
        policy = ShellSafetyPolicy.from_dict({
            "deny_patterns": [r"\bterraform\s+destroy\b"],
            "extra_system_paths": ["/opt/company"],
            "project_root": "/work/app",
        })

        assert policy.deny_patterns == [r"\bterraform\s+destroy\b"]
        assert policy.extra_system_paths == ["/opt/company"]
        assert policy.allow_patterns == []
        assert policy.project_root == "/work/app"

    def test_from_dict_rejects_invalid_regex(self):
        with pytest.raises(PolicyError) as exc_info:
            ShellSafetyPolicy.from_dict({"deny_patterns": ["(unclosed"]})

        assert exc_info.value.details["field"] == "deny_patterns"
        assert exc_info.value.error_code == "INVALID_POLICY"

    @pytest.mark.parametrize(
        "data",
        [
            {"deny_patterns": "rm"},
            {"allow_patterns": [1, 2]},
            {"project_root": 42},
        ],
    )
    def test_from_dict_rejects_wrong_types(self, data):
        with pytest.raises(PolicyError):
            ShellSafetyPolicy.from_dict(data)

    def test_to_dict_round_trip(self):
        policy = ShellSafetyPolicy(
            deny_patterns=["a"],
            allow_patterns=["b"],
            extra_sensitive_extensions=[".tfstate"],
        )

        assert ShellSafetyPolicy.from_dict(policy.to_dict()) == policy

    def test_merge_with(self):
        base = ShellSafetyPolicy(deny_patterns=["a", "b"], project_root="/one")
        other = ShellSafetyPolicy(deny_patterns=["b", "c"], allow_patterns=["x"])

        merged = base.merge_with(other)

        assert merged.deny_patterns == ["a", "b", "c"]
        assert merged.allow_patterns == ["x"]
        assert merged.project_root == "/one"

    def test_merge_with_project_root_override(self):
        merged = ShellSafetyPolicy(project_root="/one").merge_with(
            ShellSafetyPolicy(project_root="/two")
        )

        assert merged.project_root == "/two"

    def test_summary(self):
        policy = ShellSafetyPolicy(deny_patterns=["a"], extra_system_paths=["/x", "/y"])

        assert policy.summary() == {
            "deny_patterns": 1,
            "allow_patterns": 0,
            "extra_system_paths": 2,
            "extra_sensitive_extensions": 0,
        }


class TestPolicyLoading:
    """Tests for loading policies from YAML."""

    def test_from_yaml(self, policy_file):
        policy = ShellSafetyPolicy.from_yaml(policy_file)

        assert policy.deny_patterns == [r"\bterraform\s+destroy\b"]
        assert policy.allow_patterns == [r"^make\s+docs\b"]
        assert policy.extra_system_paths == ["/opt/company"]
        assert policy.extra_sensitive_extensions == [".tfstate"]

    def test_missing_file_gives_defaults(self, tmp_path):
        assert ShellSafetyPolicy.from_yaml(tmp_path / "missing.yaml") == ShellSafetyPolicy()

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert ShellSafetyPolicy.from_yaml(path) == ShellSafetyPolicy()

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("deny_patterns: [unclosed\n")

        with pytest.raises(PolicyError, match="Invalid YAML"):
            ShellSafetyPolicy.from_yaml(path)

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- rm\n- dd\n")

        with pytest.raises(PolicyError, match="must contain a mapping"):
            ShellSafetyPolicy.from_yaml(path)

    def test_load_default_without_files(self):
        assert ShellSafetyPolicy.load_default() == ShellSafetyPolicy()

    def test_load_default_merges_all_files(self, tmp_path, monkeypatch, policy_file):
        user_file = tmp_path / "user" / "shell_policy.yaml"
        user_file.parent.mkdir()
        user_file.write_text("deny_patterns: ['^shutdown']\nproject_root: /home/user\n")
        monkeypatch.setattr(shell_config, "USER_POLICY_PATH", user_file)
        (tmp_path / "shell_policy.yaml").write_text(
            "deny_patterns: ['^ls', '^shutdown']\nproject_root: /work/app\n"
        )

        policy = ShellSafetyPolicy.load_default(GuardSettings(policy_file=policy_file))

        assert policy.deny_patterns == ["^shutdown", "^ls", r"\bterraform\s+destroy\b"]
        assert policy.extra_system_paths == ["/opt/company"]
        assert policy.project_root == "/work/app"

    def test_load_default_local_file_adds_to_user_file(self, tmp_path, monkeypatch):
        user_file = tmp_path / "user" / "shell_policy.yaml"
        user_file.parent.mkdir()
        user_file.write_text("allow_patterns: ['^make\\b']\n")
        monkeypatch.setattr(shell_config, "USER_POLICY_PATH", user_file)
        (tmp_path / "shell_policy.yaml").write_text("deny_patterns: ['^ls']\n")

        policy = ShellSafetyPolicy.load_default()

        assert policy.allow_patterns == [r"^make\b"]
        assert policy.deny_patterns == ["^ls"]

    def test_load_default_user_file(self, tmp_path, monkeypatch):
        user_file = tmp_path / "user" / "shell_policy.yaml"
        user_file.parent.mkdir()
        user_file.write_text("allow_patterns: ['^make\\b']\n")
        monkeypatch.setattr(shell_config, "USER_POLICY_PATH", user_file)

        assert ShellSafetyPolicy.load_default().allow_patterns == [r"^make\b"]

    def test_load_default_applies_settings_project_root(self, tmp_path):
        settings = GuardSettings(project_root=tmp_path)

        policy = ShellSafetyPolicy.load_default(settings)

        assert Path(policy.project_root) == tmp_path

    def test_policy_project_root_wins_over_settings(self, tmp_path):
        (tmp_path / "shell_policy.yaml").write_text("project_root: /work/app\n")

        policy = ShellSafetyPolicy.load_default(GuardSettings(project_root=tmp_path))

        assert policy.project_root == "/work/app"
