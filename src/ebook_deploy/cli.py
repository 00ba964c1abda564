"""Main CLI application."""

import logging
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ebook_deploy.cache.manager import PublishCache
from ebook_deploy.commands.deploy import execute_deploy
from ebook_deploy.errors import PreconditionError
from ebook_deploy.models.config import DEFAULT_GROUP, DEFAULT_WEBROOT, DEFAULT_WEBURL, DeployConfig

app = typer.Typer(
    name="deploy-ebook-to-www",
    help="Publish ebook source repositories to the web server.",
    add_completion=False,
)

cache_app = typer.Typer(
    name="ebook-deploy-cache",
    help="Publish-state cache management commands",
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)


def configure_logging(verbose: bool) -> None:
    """Send log records through rich; INFO narrates progress, WARNING stays quiet."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def default_scripts_dir() -> Path:
    """Helper scripts live beside the running executable by default."""
    return Path(sys.argv[0]).resolve().parent


@app.command()
def deploy(
    directories: Annotated[
        list[Path],
        typer.Argument(
            metavar="DIRECTORY...",
            help="One or more bare ebook source repositories",
        ),
    ],
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Narrate progress"),
    ] = False,
    group: Annotated[
        str,
        typer.Option(
            "--group", "-g",
            envvar="SE_GROUP",
            help="Group that owns the published files",
        ),
    ] = DEFAULT_GROUP,
    webroot: Annotated[
        Path,
        typer.Option("--webroot", envvar="SE_WEBROOT", help="Web document root"),
    ] = DEFAULT_WEBROOT,
    weburl: Annotated[
        str,
        typer.Option("--weburl", envvar="SE_WEBURL", help="Public base URL for the catalogs"),
    ] = DEFAULT_WEBURL,
    no_images: Annotated[
        bool,
        typer.Option("--no-images", help="Don't regenerate cover and hero images"),
    ] = False,
    no_build: Annotated[
        bool,
        typer.Option("--no-build", help="Don't build, validate or recompose the ebook"),
    ] = False,
    no_epubcheck: Annotated[
        bool,
        typer.Option("--no-epubcheck", help="Build without validating the EPUB"),
    ] = False,
    no_recompose: Annotated[
        bool,
        typer.Option("--no-recompose", help="Don't generate the single-page view"),
    ] = False,
    last_push_hash: Annotated[
        Optional[str],
        typer.Option(
            "--last-push-hash", "-l",
            help="Hash of the previously deployed commit; only rebuild what changed since",
        ),
    ] = None,
    scripts_dir: Annotated[
        Optional[Path],
        typer.Option(
            "--scripts-dir",
            envvar="SE_SCRIPTS_DIR",
            help="Directory holding generate-opds, generate-rss and rebuild-cache "
            "(default: directory of this executable)",
        ),
    ] = None,
    cache_dir: Annotated[
        Optional[Path],
        typer.Option(
            "--cache-dir",
            envvar="SE_DEPLOY_CACHE_DIR",
            help="Remember published content hashes here to skip unchanged ebooks",
        ),
    ] = None,
) -> None:
    """Build and deploy ebooks to the web server."""
    configure_logging(verbose)

    try:
        config = DeployConfig(
            group=group,
            webroot=webroot,
            weburl=weburl,
            scripts_dir=scripts_dir or default_scripts_dir(),
            cache_dir=cache_dir,
            images=not no_images,
            build=not no_build,
            epubcheck=not no_epubcheck,
            recompose=not no_recompose,
            last_push_hash=last_push_hash,
            verbose=verbose,
            repositories=directories,
        )
    except ValidationError as e:
        err_console.print(f"[red]Invalid options: {e}[/]")
        raise typer.Exit(1)

    try:
        exit_code = execute_deploy(config, console=err_console)
    except PreconditionError as e:
        err_console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)

    if exit_code:
        raise typer.Exit(exit_code)


CacheDirOption = Annotated[
    Path,
    typer.Option(
        "--dir", "-d",
        envvar="SE_DEPLOY_CACHE_DIR",
        help="Publish-state cache directory",
    ),
]


@cache_app.command("list")
def cache_list(cache_dir: CacheDirOption) -> None:
    """List the last publish of every cached repository."""
    records = PublishCache(cache_dir.resolve()).list_cached()

    if not records:
        console.print("[dim]No cached repositories[/]")
        return

    table = Table(title="Published Ebooks", show_header=True, header_style="bold cyan")
    table.add_column("Ebook", style="white")
    table.add_column("Repository", style="dim")
    table.add_column("Source", style="dim", width=12)
    table.add_column("Published", style="green")

    for record in records:
        # Truncate path for display
        repository = record.repository
        display_path = repository if len(repository) < 60 else "..." + repository[-57:]
        table.add_row(
            record.identifier,
            display_path,
            (record.src_hash or "-")[:12],
            record.published_at.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)


@cache_app.command("clear")
def cache_clear(cache_dir: CacheDirOption) -> None:
    """Forget every publish record, forcing full rebuilds."""
    count = PublishCache(cache_dir.resolve()).clear_cache()

    if count > 0:
        console.print(f"[green]Cleared {count} cached record(s)[/]")
    else:
        console.print("[dim]No cache to clear[/]")


if __name__ == "__main__":
    app()
