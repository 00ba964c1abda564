"""Deploy command implementation."""

import grp
import logging

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ebook_deploy.cache.manager import PublishCache
from ebook_deploy.core.commands import CommandRunner, Toolchain
from ebook_deploy.core.pipeline import PublishPipeline
from ebook_deploy.errors import DeployError, PreconditionError
from ebook_deploy.models.config import DeployConfig
from ebook_deploy.models.result import OutcomeStatus, RepositoryOutcome

log = logging.getLogger(__name__)

STATUS_STYLES = {
    OutcomeStatus.PUBLISHED: "green",
    OutcomeStatus.UNCHANGED: "dim",
    OutcomeStatus.SKIPPED: "yellow",
    OutcomeStatus.FAILED: "red",
}


def check_preconditions(config: DeployConfig, toolchain: Toolchain) -> None:
    """Abort the whole run before any repository is touched."""
    toolchain.require(Toolchain.required_tools(config.images))

    try:
        grp.getgrnam(config.group)
    except KeyError:
        raise PreconditionError(f"Group does not exist: {config.group}") from None

    if not config.webroot.is_dir():
        raise PreconditionError(f"Web root does not exist: {config.webroot}")


def display_summary(outcomes: list[RepositoryOutcome], console: Console) -> None:
    """Print one row per repository."""
    table = Table(title="Deployment", show_header=True, header_style="bold cyan")
    table.add_column("Repository", style="white")
    table.add_column("Ebook", style="dim")
    table.add_column("Status")
    table.add_column("Detail", style="dim")

    for outcome in outcomes:
        style = STATUS_STYLES[outcome.status]
        table.add_row(
            str(outcome.repository),
            outcome.identifier or "-",
            f"[{style}]{outcome.status.value}[/]",
            escape(outcome.error or ""),
        )

    console.print(table)


def execute_deploy(
    config: DeployConfig,
    console: Console,
    runner: CommandRunner | None = None,
) -> int:
    """Deploy every repository in ``config``; return the process exit code.

    A failing repository does not stop the batch. The catalogs are
    regenerated once at the end, and the exit code is 1 if any repository
    or the catalog regeneration failed.
    """
    toolchain = Toolchain(runner or CommandRunner(), config.scripts_dir)
    check_preconditions(config, toolchain)

    cache = PublishCache(config.cache_dir) if config.cache_dir else None
    pipeline = PublishPipeline(config, toolchain, cache)

    outcomes: list[RepositoryOutcome] = []
    for repository in config.repositories:
        log.info("Processing %s", repository)
        outcome = pipeline.run(repository)
        outcomes.append(outcome)
        if outcome.status == OutcomeStatus.FAILED:
            error = escape(outcome.error or "")
            console.print(f"[red]Error deploying {escape(str(repository))}: {error}[/]")

    exit_code = 0
    if any(o.status == OutcomeStatus.FAILED for o in outcomes):
        exit_code = 1

    try:
        pipeline.catalog.regenerate()
    except (DeployError, OSError) as e:
        console.print(f"[red]Error regenerating catalogs: {escape(str(e))}[/]")
        exit_code = 1

    if config.verbose or exit_code:
        display_summary(outcomes, console)

    return exit_code
