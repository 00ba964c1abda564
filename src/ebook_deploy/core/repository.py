"""Read-only access to a bare ebook repository through git."""

from datetime import datetime, timezone
from pathlib import Path

from ebook_deploy.core.commands import CommandRunner
from ebook_deploy.errors import ToolError

CONTENT_OPF = "src/epub/content.opf"
COVER_JPG = "images/cover.jpg"
COVER_SVG = "images/cover.svg"


class GitRepository:
    """A bare repository; every read is taken from HEAD."""

    def __init__(self, path: Path, runner: CommandRunner):
        self.path = path
        self.runner = runner

    def _git(self, *args: str, binary: bool = False, check: bool = True):
        return self.runner.run(
            ["git", "-C", str(self.path), *args], binary=binary, check=check
        )

    def read_blob(self, relative_path: str) -> bytes:
        """Return the raw contents of ``relative_path`` at HEAD."""
        return self._git("show", f"HEAD:{relative_path}", binary=True).stdout

    def read_text(self, relative_path: str) -> str:
        return self.read_blob(relative_path).decode("utf-8")

    def changed_paths(self, since: str) -> list[str]:
        """Paths touched between ``since`` and HEAD.

        Renames are reported as a deletion plus an addition so both sides
        are visible to the classifier.
        """
        result = self._git("diff", "--name-only", "--no-renames", since, "HEAD")
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def object_hash(self, relative_path: str) -> str | None:
        """Object id of ``relative_path`` at HEAD, or None if it doesn't exist."""
        result = self._git(
            "rev-parse", "--verify", "--quiet", f"HEAD:{relative_path}", check=False
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def last_commit_date(self) -> str:
        """Committer date of HEAD as ISO-8601 UTC with a ``Z`` suffix."""
        result = self._git("log", "-1", "--pretty=tformat:%ct")
        try:
            timestamp = int(result.stdout.strip())
        except ValueError as e:
            raise ToolError(["git", "log"], 0, f"unexpected commit date: {result.stdout!r}") from e
        return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime(
            "%Y-%m-%dT%H:%M:%SZ"
        )

    def clone(self, destination: Path) -> None:
        self.runner.run(["git", "clone", "--quiet", str(self.path), str(destination)])
