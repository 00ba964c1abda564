from pathlib import Path

import pytest

from ebook_deploy.core.commands import CommandRunner
from ebook_deploy.errors import ToolError


def test_run_returns_output(tmp_path: Path):
    script = tmp_path / "hello"
    script.write_text("#!/bin/sh\necho hello\n")
    script.chmod(0o755)

    assert CommandRunner().run([script]).stdout == "hello\n"


def test_non_zero_exit_raises(tmp_path: Path):
    script = tmp_path / "fail"
    script.write_text("#!/bin/sh\necho broken >&2\nexit 3\n")
    script.chmod(0o755)

    with pytest.raises(ToolError) as excinfo:
        CommandRunner().run([script])

    assert excinfo.value.returncode == 3
    assert str(excinfo.value).endswith("broken")


def test_non_zero_exit_unchecked(tmp_path: Path):
    script = tmp_path / "fail"
    script.write_text("#!/bin/sh\nexit 3\n")
    script.chmod(0o755)

    assert CommandRunner().run([script], check=False).returncode == 3


def test_non_executable_command_raises_tool_error(tmp_path: Path):
    script = tmp_path / "rebuild-cache"
    script.write_text("#!/bin/sh\n")
    script.chmod(0o644)

    with pytest.raises(ToolError) as excinfo:
        CommandRunner().run([script, "jane-austen/emma"])

    assert excinfo.value.returncode == 126
    assert excinfo.value.command == [str(script), "jane-austen/emma"]


def test_missing_command_raises_tool_error(tmp_path: Path):
    with pytest.raises(ToolError) as excinfo:
        CommandRunner().run([tmp_path / "no-such-tool"])

    assert excinfo.value.returncode == 127
