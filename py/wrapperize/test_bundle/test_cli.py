"""Tests for the CLI module."""

import logging
import shlex
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from wrapperize import _config
from wrapperize._cli import (
    EXIT_HOOK_WARNING,
    EXIT_NOT_FOUND,
    EXIT_OK,
    EXIT_PERMISSION,
    EXIT_STATE,
    EXIT_USAGE,
    exit_code_for,
    main,
)
from wrapperize._exceptions import ConflictError, WrapperizeError, WriteError
from wrapperize._writer import is_wrapper
from wrapperize.testing import patch_settings


@pytest.fixture
def program(tmp_path, monkeypatch):
    """A program on a private PATH, with settings pointing into tmp_path.

    The fake pacman claims every file belongs to ``foo-pkg``.
    """
    root = tmp_path.resolve()
    bin_dir = root / "bin"
    bin_dir.mkdir()
    path = bin_dir / "foo"
    path.write_text("#!/bin/sh\necho \"foo $*\"\n")
    path.chmod(0o755)

    pacman = root / "pacman"
    pacman.write_text("#!/bin/sh\necho foo-pkg\n")
    pacman.chmod(0o755)

    monkeypatch.setenv("PATH", f"{bin_dir}:/usr/bin:/bin")
    monkeypatch.setattr(_config, "DEFAULT_CONFIG_FILE", root / "absent.json")
    with patch_settings(root / "store", root / "hooks", executable="/usr/bin/wrapperize", pacman=str(pacman)):
        yield path


def _without_pacman(program: Path):
    root = program.parent.parent
    return patch_settings(root / "store", root / "hooks", executable="/usr/bin/wrapperize",
                          pacman=str(root / "no-pacman"))


def _hooks(program: Path) -> list[Path]:
    hook_dir = program.parent.parent / "hooks"
    return sorted(hook_dir.iterdir()) if hook_dir.exists() else []


def _exec_argv(hook: Path) -> list[str]:
    """Arguments of a hook's Exec line, without the executable."""
    for line in hook.read_text().splitlines():
        if line.startswith("Exec = "):
            return shlex.split(line[len("Exec = "):])[1:]
    raise AssertionError(f"no Exec line in {hook}")


class TestWrapCommand:
    """wrapperize wrap."""

    def test_wrap_by_name(self, program, capsys):
        rc = main(["wrap", "foo", "--arg=--verbose", "-e", "FOO=bar"])
        captured = capsys.readouterr()

        assert rc == EXIT_OK
        assert "wrapper successfully created" in captured.out
        assert is_wrapper(program)
        assert len(_hooks(program)) == 2

    def test_missing_injection_is_usage_error(self, program, capsys):
        rc = main(["wrap", "foo"])
        assert rc == EXIT_USAGE
        assert "no arguments or environment variables" in capsys.readouterr().err
        assert not is_wrapper(program)

    def test_bad_env_is_usage_error(self, program):
        assert main(["wrap", "foo", "-e", "1BAD=x"]) == EXIT_USAGE

    def test_unknown_program(self, program, capsys):
        rc = main(["wrap", "no-such-program", "--arg=-x"])
        assert rc == EXIT_NOT_FOUND
        assert "Error:" in capsys.readouterr().err

    def test_already_wrapped(self, program):
        assert main(["wrap", "foo", "--arg=-x"]) == EXIT_OK
        assert main(["wrap", "foo", "--arg=-y"]) == EXIT_STATE
        assert main(["wrap", "foo", "--arg=-y", "--update"]) == EXIT_OK

    def test_no_hooks(self, program):
        assert main(["wrap", "foo", "--arg=-x", "--no-hooks"]) == EXIT_OK
        assert _hooks(program) == []

    def test_unowned_is_warning(self, program, capsys):
        with _without_pacman(program):
            assert main(["wrap", "foo", "--arg=-x"]) == EXIT_OK
        assert "Warning:" in capsys.readouterr().err
        assert is_wrapper(program)
        assert _hooks(program) == []

    def test_strict_hooks(self, program):
        with _without_pacman(program):
            assert main(["wrap", "foo", "--arg=-x", "--strict-hooks"]) == EXIT_HOOK_WARNING

    def test_store_dir_flag(self, program, tmp_path):
        store = tmp_path.resolve() / "elsewhere"
        assert main(["--store-dir", str(store), "wrap", "foo", "--arg=-x", "--no-hooks"]) == EXIT_OK
        assert (store / str(program).lstrip("/")).exists()


class TestHookReplay:
    """Hook Exec lines run later by pacman, without the caller's flags or environment."""

    def test_hooks_use_wrap_time_directories(self, program, tmp_path):
        root = tmp_path.resolve()
        store, hooks = root / "alt-store", root / "alt-hooks"
        assert main(["--store-dir", str(store), "--hook-dir", str(hooks), "wrap", "foo", "--arg=-x"]) == EXIT_OK
        install_hook, remove_hook = sorted(hooks.iterdir())
        relocated = store / str(program).lstrip("/")

        # package upgrade: a new original replaces the wrapper
        program.write_text("#!/bin/sh\necho \"new foo $*\"\n")
        program.chmod(0o755)

        with _without_pacman(program):
            assert main(_exec_argv(install_hook)) == EXIT_OK
            assert is_wrapper(program)
            assert "new foo" in relocated.read_text()

            program.unlink()
            assert main(_exec_argv(remove_hook)) == EXIT_OK

        assert list(hooks.iterdir()) == []
        assert not relocated.exists()
        assert not (root / "store").exists()


class TestOtherCommands:
    """unwrap, clean and info."""

    def test_unwrap(self, program, capsys):
        main(["wrap", "foo", "--arg=-x"])
        rc = main(["unwrap", "foo"])

        assert rc == EXIT_OK
        assert not is_wrapper(program)
        assert _hooks(program) == []
        assert "restored" in capsys.readouterr().out

    def test_unwrap_not_wrapped(self, program):
        assert main(["unwrap", "foo"]) == EXIT_STATE

    def test_handled_error_is_logged_with_traceback(self, program, caplog):
        caplog.set_level(logging.DEBUG, logger="wrapperize._cli")
        assert main(["unwrap", "foo"]) == EXIT_STATE
        record = next(r for r in caplog.records if r.name == "wrapperize._cli")
        assert record.getMessage() == "unwrap failed"
        assert record.exc_info is not None

    def test_clean(self, program, capsys):
        main(["wrap", "foo", "--arg=-x"])
        program.unlink()

        assert main(["clean", str(program)]) == EXIT_OK
        assert "removed" in capsys.readouterr().out
        assert _hooks(program) == []

    def test_clean_relative_path(self, program):
        assert main(["clean", "bin/foo"]) == EXIT_USAGE

    def test_info(self, program, capsys):
        main(["wrap", "foo", "--arg=--verbose", "-e", "^=PATH=/opt/bin"])
        capsys.readouterr()

        assert main(["info", "foo"]) == EXIT_OK
        out = capsys.readouterr().out
        assert f"Program: {program}" in out
        assert "Wrapped: yes" in out
        assert "Args: --verbose" in out
        assert "^=PATH=/opt/bin" in out
        assert "Hooks:" in out

    def test_no_command_prints_help(self, capsys):
        assert main([]) == EXIT_USAGE
        assert "usage:" in capsys.readouterr().out


@pytest.mark.parametrize("error,code", [
    (ConflictError("x"), EXIT_STATE),
    (WriteError("x"), EXIT_PERMISSION),
    (WrapperizeError("x"), 1),
])
def test_exit_code_for(error, code):
    assert exit_code_for(error) == code
