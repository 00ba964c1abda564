"""Exceptions raised while deploying ebooks."""

from collections.abc import Sequence


class DeployError(Exception):
    """Base class for deployment failures."""


class PreconditionError(DeployError):
    """The environment is not fit for a run; nothing has been touched yet."""


class MetadataError(DeployError):
    """The package metadata is missing, unreadable or incomplete."""


class PublishError(DeployError):
    """The published tree could not be swapped into place."""


class ToolError(DeployError):
    """An external command exited with a non-zero status."""

    def __init__(self, command: Sequence[str], returncode: int, stderr: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        message = f"{self.command[0]} exited with code {returncode}"
        detail = stderr.strip()
        if detail:
            message = f"{message}: {detail.splitlines()[-1]}"
        super().__init__(message)
