"""Tests for safety tiers, verdicts and error types."""

import pytest

from agentic_guard.errors import (
    AlreadyPendingError,
    CommandBlockedError,
    GuardError,
    InvalidCommandError,
    UnknownRequestError,
)
from agentic_guard.shell.models import (
    ClassificationVerdict,
    Redirection,
    SafetyStatus,
    Word,
)


class TestSafetyStatus:
    """Tests for the ordered safety tiers."""

    def test_ordering(self):
        assert SafetyStatus.GREEN < SafetyStatus.YELLOW < SafetyStatus.RED
        assert max(SafetyStatus.YELLOW, SafetyStatus.RED, SafetyStatus.GREEN) == SafetyStatus.RED

    def test_descriptions(self):
        assert SafetyStatus.GREEN.description == "Safe - will auto-execute"
        assert SafetyStatus.RED.description == "Blocked - potentially dangerous"


class TestClassificationVerdict:
    """Tests for verdict construction and folding."""

    def test_green_has_no_reasons(self):
        verdict = ClassificationVerdict.green()

        assert verdict.status == SafetyStatus.GREEN
        assert verdict.reasons == ()
        assert not verdict.requires_approval

    def test_of_prefixes_reason(self):
        verdict = ClassificationVerdict.of(SafetyStatus.YELLOW, "unknown command: make")

        assert verdict.reasons == ("YELLOW: unknown command: make",)
        assert verdict.requires_approval
        assert not verdict.is_blocked

    def test_combine_is_worst_of(self):
        combined = ClassificationVerdict.combine(
            ClassificationVerdict.of(SafetyStatus.YELLOW, "a"),
            ClassificationVerdict.green(),
            ClassificationVerdict.of(SafetyStatus.RED, "b"),
        )

        assert combined.status == SafetyStatus.RED
        assert combined.reasons == ("YELLOW: a", "RED: b")
        assert combined.is_blocked

    def test_combine_nothing_is_green(self):
        assert ClassificationVerdict.combine() == ClassificationVerdict.green()

    def test_escalate_never_lowers(self):
        red = ClassificationVerdict.of(SafetyStatus.RED, "b")

        escalated = red.escalate(SafetyStatus.YELLOW, "c")

        assert escalated.status == SafetyStatus.RED
        assert escalated.reasons == ("RED: b", "YELLOW: c")

    def test_frozen(self):
        verdict = ClassificationVerdict.green()

        with pytest.raises(AttributeError):
            verdict.status = SafetyStatus.RED


class TestRedirection:
    """Tests for redirection helpers."""

    @pytest.mark.parametrize(
        "operator,target,expected",
        [
            (">", "out.txt", True),
            (">>", "out.txt", True),
            ("&>", "out.txt", True),
            ("<", "in.txt", False),
            (">&", "1", False),
            (">&", "-", False),
            (">&", "out.txt", True),
        ],
    )
    def test_is_output(self, operator, target, expected):
        redirection = Redirection(operator, Word(target, target))

        assert redirection.is_output is expected

    def test_render(self):
        assert Redirection(">&", Word("1", "1"), fd="2").render() == "2>&1"


class TestErrors:
    """Tests for error types."""

    def test_invalid_command_is_value_error(self):
        assert issubclass(InvalidCommandError, ValueError)
        assert issubclass(InvalidCommandError, GuardError)

    def test_blocked_summarizes_red_reasons(self):
        verdict = ClassificationVerdict.combine(
            ClassificationVerdict.of(SafetyStatus.YELLOW, "unknown command: x"),
            ClassificationVerdict.of(SafetyStatus.RED, "Fork bomb"),
        )

        error = CommandBlockedError(":(){ :|:& };:", verdict)

        assert error.message == "Command blocked: RED: Fork bomb"
        assert error.details["reasons"] == list(verdict.reasons)

    def test_to_dict(self):
        error = AlreadyPendingError("call_1")

        assert error.to_dict() == {
            "success": False,
            "error": {
                "message": "Approval request 'call_1' is still awaiting a decision",
                "code": "ALREADY_PENDING",
                "details": {"pending_id": "call_1"},
            },
        }

    def test_unknown_request_details(self):
        error = UnknownRequestError("stale", pending_id="call_1")

        assert error.details == {"request_id": "stale", "pending_id": "call_1"}
