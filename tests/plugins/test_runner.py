"""Tests for :mod:`kubeplugins.plugins.runner`."""

from __future__ import annotations

import io
import os
import shutil
from pathlib import Path

import pytest

from kubeplugins.plugins.env import EnvProviderError, MultiEnvProvider
from kubeplugins.plugins.runner import (
    ExecPluginRunner,
    PluginExecutionError,
    RunningContext,
    expand_env,
    split_command,
)

from tests.helpers import FailingEnvProvider, StaticEnvProvider, build_plugin

pytestmark = pytest.mark.skipif(shutil.which("sh") is None, reason="requires a POSIX shell")


def _path_entry() -> str:
    return f"PATH={os.environ.get('PATH', os.defpath)}"


def _context(*, args=(), env=(), stdin: str = "", working_dir: str = "") -> RunningContext:
    return RunningContext(
        stdin=io.StringIO(stdin),
        stdout=io.StringIO(),
        stderr=io.StringIO(),
        args=tuple(args),
        env_provider=StaticEnvProvider([_path_entry(), *env]),
        working_dir=working_dir,
    )


@pytest.mark.parametrize(
    "template, expected",
    [
        ("$HOME/bin/tool", "/home/user/bin/tool"),
        ("${HOME}/bin/tool --flag", "/home/user/bin/tool --flag"),
        ("$UNDEFINED/tool", "/tool"),
        ("echo ${UNDEFINED}done", "echo done"),
        ("no variables", "no variables"),
    ],
)
def test_expand_env(template: str, expected: str) -> None:
    assert expand_env(template, {"HOME": "/home/user"}) == expected


def test_split_command_drops_empty_tokens() -> None:
    assert split_command("  echo   hello\tworld ") == ["echo", "hello", "world"]
    assert split_command("") == []


def test_build_argv_appends_arguments_verbatim() -> None:
    runner = ExecPluginRunner(ambient_env={"TOOLS": "/opt/tools"})
    plugin = build_plugin(command="$TOOLS/run --fixed")

    argv = runner.build_argv(plugin, ["two words", "$NOT_EXPANDED"])

    assert argv == ["/opt/tools/run", "--fixed", "two words", "$NOT_EXPANDED"]


def test_build_argv_rejects_empty_command() -> None:
    runner = ExecPluginRunner(ambient_env={})

    with pytest.raises(PluginExecutionError) as excinfo:
        runner.build_argv(build_plugin(command="$UNSET"))
    assert excinfo.value.returncode is None


def test_successful_plugin_returns_none() -> None:
    ctx = _context()

    assert ExecPluginRunner().run(build_plugin(command="true"), ctx) is None


def test_failing_plugin_reports_exit_status() -> None:
    with pytest.raises(PluginExecutionError) as excinfo:
        ExecPluginRunner().run(build_plugin(command="false"), _context())

    assert excinfo.value.returncode == 1
    assert excinfo.value.plugin is not None
    assert excinfo.value.plugin.name == "status"


def test_exit_status_is_propagated() -> None:
    with pytest.raises(PluginExecutionError) as excinfo:
        ExecPluginRunner().run(build_plugin(command="sh -c"), _context(args=["exit 3"]))

    assert excinfo.value.returncode == 3


def test_output_is_forwarded_to_context_streams() -> None:
    ctx = _context(args=["hello", "world"])

    ExecPluginRunner().run(build_plugin(command="echo"), ctx)

    assert ctx.stdout.getvalue() == "hello world\n"


def test_stderr_is_forwarded() -> None:
    ctx = _context(args=["echo oops >&2"])

    ExecPluginRunner().run(build_plugin(command="sh -c"), ctx)

    assert ctx.stderr.getvalue() == "oops\n"
    assert ctx.stdout.getvalue() == ""


def test_stdin_is_forwarded() -> None:
    ctx = _context(stdin="piped input\n")

    ExecPluginRunner().run(build_plugin(command="cat"), ctx)

    assert ctx.stdout.getvalue() == "piped input\n"


def test_composed_environment_reaches_child_only() -> None:
    ambient = {"PATH": os.environ.get("PATH", os.defpath), "AMBIENT_ONLY": "ambient"}
    ctx = _context(args=["printf '%s|%s' \"$AMBIENT_ONLY\" \"$COMPOSED\""], env=["COMPOSED=composed"])

    ExecPluginRunner(ambient_env=ambient).run(build_plugin(command="sh -c"), ctx)

    assert ctx.stdout.getvalue() == "|composed"


def test_later_environment_entries_win() -> None:
    ctx = _context(args=["FOO"], env=["FOO=first", "FOO=second"])

    ExecPluginRunner().run(build_plugin(command="printenv"), ctx)

    assert ctx.stdout.getvalue() == "second\n"


def test_failing_provider_prevents_start(tmp_path: Path) -> None:
    marker = tmp_path / "started"
    ctx = RunningContext(
        stdin=io.StringIO(),
        stdout=io.StringIO(),
        stderr=io.StringIO(),
        args=(str(marker),),
        env_provider=MultiEnvProvider([StaticEnvProvider([_path_entry()]), FailingEnvProvider()]),
    )

    with pytest.raises(EnvProviderError):
        ExecPluginRunner().run(build_plugin(command="touch"), ctx)

    assert not marker.exists()


def test_working_directory_is_applied(tmp_path: Path) -> None:
    ctx = _context(working_dir=str(tmp_path))

    ExecPluginRunner().run(build_plugin(command="pwd"), ctx)

    assert os.path.realpath(ctx.stdout.getvalue().strip()) == os.path.realpath(tmp_path)


def test_missing_executable_is_reported() -> None:
    with pytest.raises(PluginExecutionError) as excinfo:
        ExecPluginRunner().run(build_plugin(command="kubeplugins-no-such-binary"), _context())

    assert excinfo.value.returncode is None
    assert "unable to start plugin" in str(excinfo.value)
