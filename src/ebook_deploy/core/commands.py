"""Boundary to the external tools that do the heavy lifting."""

import logging
import os
import shlex
import shutil
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

from ebook_deploy.errors import PreconditionError, ToolError

log = logging.getLogger(__name__)

# Encoding settings shared by every JPEG we produce (formula from Google Page Speed Insights)
JPEG_ARGS = [
    "-sampling-factor", "4:2:0",
    "-strip",
    "-quality", "80",
    "-colorspace", "RGB",
    "-interlace", "JPEG",
]
AVIF_QUALITY = "50"

HELPER_SCRIPTS = ("generate-opds", "generate-rss", "rebuild-cache")


class CommandRunner:
    """Run external commands, raising ToolError on failure."""

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        binary: bool = False,
        check: bool = True,
    ) -> subprocess.CompletedProcess:
        command = [str(part) for part in command]
        log.debug("Running %s", shlex.join(command))

        try:
            result = subprocess.run(
                command,
                cwd=str(cwd) if cwd else None,
                env=dict(env) if env is not None else None,
                capture_output=True,
                text=not binary,
            )
        except OSError as e:
            # Same codes a shell reports for a command it can't start
            returncode = 127 if isinstance(e, FileNotFoundError) else 126
            raise ToolError(command, returncode, str(e)) from e

        if check and result.returncode != 0:
            stderr = result.stderr
            if isinstance(stderr, bytes):
                stderr = stderr.decode("utf-8", errors="replace")
            raise ToolError(command, result.returncode, stderr or "")

        return result


class Toolchain:
    """Argument vectors for every external collaborator.

    Nothing here interprets tool output beyond exit codes; callers get
    files on disk or a ToolError.
    """

    def __init__(self, runner: CommandRunner, scripts_dir: Path):
        self.runner = runner
        self.scripts_dir = scripts_dir

    @staticmethod
    def required_tools(images: bool) -> list[str]:
        tools = ["git", "se"]
        if images:
            tools += ["convert", "cavif"]
        return tools

    @staticmethod
    def _is_executable(path: Path) -> bool:
        return path.is_file() and os.access(path, os.X_OK)

    def require(self, tools: Sequence[str]) -> None:
        """Fail before any work is done if a tool or helper script is missing."""
        missing = [tool for tool in tools if shutil.which(tool) is None]
        if missing:
            raise PreconditionError(
                f"Missing required dependencies: {', '.join(missing)}"
            )

        missing_helpers = [
            name for name in HELPER_SCRIPTS if not self._is_executable(self.scripts_dir / name)
        ]
        if missing_helpers:
            raise PreconditionError(
                f"Missing or non-executable helper scripts in {self.scripts_dir}: "
                f"{', '.join(missing_helpers)}"
            )

    # Ebook tooling

    def build(self, work_dir: Path, output_dir: Path, check: bool) -> None:
        command = ["se", "build", f"--output-dir={output_dir}"]
        if check:
            command.append("--check")
        command += ["--kindle", "--kobo", str(work_dir)]
        self.runner.run(command)

    def recompose(self, work_dir: Path, output: Path, extra_css: Path) -> None:
        self.runner.run(
            [
                "se", "recompose-epub",
                "--xhtml",
                f"--output={output}",
                f"--extra-css-file={extra_css}",
                str(work_dir),
            ]
        )

    # Images

    def convert(
        self, source: Path, destination: Path, resize: str, crop: str | None = None,
        cwd: Path | None = None,
    ) -> None:
        command = ["convert", "-resize", resize]
        if crop:
            command += ["-crop", crop]
        command += [*JPEG_ARGS, str(source), str(destination)]
        self.runner.run(command, cwd=cwd)

    def encode_avif(self, source: Path, destination: Path) -> None:
        self.runner.run(
            [
                "cavif", "--quiet", "--overwrite",
                "--quality", AVIF_QUALITY,
                str(source), "-o", str(destination),
            ]
        )

    # Helper scripts

    def helper(self, name: str, *args: str) -> None:
        self.runner.run([str(self.scripts_dir / name), *args])
