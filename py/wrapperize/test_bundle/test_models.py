"""Tests for wrap specs and environment assignments."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from wrapperize._models import EnvAssignment, EnvPolicy, WrapSpec, is_valid_env_name
from wrapperize._exceptions import ValidationError


# ---------------------------------------------------------------------------
# EnvAssignment
# ---------------------------------------------------------------------------

class TestEnvName:
    """Environment variable name validation."""

    @pytest.mark.parametrize("name", ["HELLO", "hello", "_HELLO", "HELLO1", "HELLO1_WORLD", "____"])
    def test_valid(self, name):
        assert is_valid_env_name(name)

    @pytest.mark.parametrize("name", ["", "1HELLO", "@HELLO", "HELL@", "HE LLO"])
    def test_invalid(self, name):
        assert not is_valid_env_name(name)


class TestEnvAssignmentParse:
    """Parsing of [OP]NAME=value."""

    def test_plain_assignment_overrides(self):
        assignment = EnvAssignment.parse("FOO=bar")
        assert assignment == EnvAssignment("FOO", "bar", EnvPolicy.OVERRIDE)

    def test_value_may_contain_equals(self):
        assignment = EnvAssignment.parse("OPTS=a=b")
        assert assignment.name == "OPTS"
        assert assignment.value == "a=b"

    def test_empty_value_is_allowed(self):
        assert EnvAssignment.parse("FOO=").value == ""

    @pytest.mark.parametrize("text,policy", [
        ("^=PATH=/opt/bin", EnvPolicy.PREPEND),
        ("+=PATH=/opt/bin", EnvPolicy.APPEND),
        ("?=PATH=/opt/bin", EnvPolicy.DEFAULT),
    ])
    def test_operator_prefix(self, text, policy):
        assignment = EnvAssignment.parse(text)
        assert assignment.policy is policy
        assert assignment.name == "PATH"
        assert assignment.value == "/opt/bin"
        assert assignment.to_cli() == text

    def test_missing_separator_fails(self):
        with pytest.raises(ValidationError, match="separator"):
            EnvAssignment.parse("ENVvalue")

    def test_invalid_name_fails(self):
        with pytest.raises(ValidationError, match="invalid name"):
            EnvAssignment.parse("1FOO=bar")


# ---------------------------------------------------------------------------
# WrapSpec
# ---------------------------------------------------------------------------

class TestWrapSpec:
    """Building and rendering wrap specs."""

    def test_build_parses_env_strings(self):
        spec = WrapSpec.build("foo", args=["--verbose"], env=["FOO=bar", "^=PATH=/x"])
        assert spec.target == "foo"
        assert spec.args == ("--verbose",)
        assert spec.env[1].policy is EnvPolicy.PREPEND

    def test_build_requires_something_to_inject(self):
        with pytest.raises(ValidationError, match="no arguments or environment"):
            WrapSpec.build("foo")

    def test_trailing_args_alone_are_enough(self):
        spec = WrapSpec.build("foo", trailing_args=["--last"])
        assert spec.trailing_args == ("--last",)

    def test_newlines_are_rejected(self):
        with pytest.raises(ValidationError):
            WrapSpec.build("foo", args=["one\ntwo"])

    def test_spec_is_immutable(self):
        spec = WrapSpec.build("foo", args=["-x"])
        with pytest.raises(AttributeError):
            spec.args = ("-y",)

    def test_to_cli_args(self):
        spec = WrapSpec.build("foo", args=["--verbose"], trailing_args=["-q"], env=["^=PATH=/opt"])
        assert spec.to_cli_args() == ["--arg=--verbose", "--trailing-arg=-q", "--env=^=PATH=/opt"]

    def test_dict_form_survives_retarget(self):
        spec = WrapSpec.build("foo", args=["-x"], env=["?=A=1"])
        moved = WrapSpec.from_dict(spec.retarget("/usr/bin/foo").to_dict())
        assert moved.target == "/usr/bin/foo"
        assert moved.args == spec.args
        assert moved.env == spec.env

    def test_from_dict_requires_target(self):
        with pytest.raises(ValidationError, match="malformed"):
            WrapSpec.from_dict({"args": []})
