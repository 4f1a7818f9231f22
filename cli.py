import asyncio
import posixpath
import sys
from pathlib import Path
from typing import List, NoReturn, Optional

import click
import uvicorn
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from api.app import create_app
from config.logic import load_and_merge_configs
from config.models import Config
from core.commit.builder import AtomicCommitBuilder
from core.contracts.models import CommitFile, CommitRequest, CommitResult, RepoFile
from core.router import get_object_store
from utils.errors import ContextCommitException, ValidationError
from utils.logger import intercept_std_logging, setup_logger, logger


def load_config(ctx: click.Context) -> Config:
    """Loads the merged configuration and re-applies its logging settings."""
    config = load_and_merge_configs(custom_config_path=ctx.obj.get("config_path"))
    level = "DEBUG" if ctx.obj.get("verbose") else config.logging.level
    setup_logger(log_level=level, log_file=config.logging.file)
    return config


def fail(console: Console, error: ContextCommitException, verbose: bool) -> NoReturn:
    if verbose:
        logger.opt(exception=error).debug("Command failed")
    console.print(f"[bold red]Error ({error.kind}):[/bold red] {escape(error.detail)}")
    sys.exit(1)


def repo_path_for(local_path: str, prefix: str = "") -> str:
    """Maps a local file to its path in the repository."""
    path = Path(local_path)
    if path.is_absolute() or ".." in path.parts:
        relative = path.name
    else:
        relative = path.as_posix()
    prefix = prefix.strip("/")
    return posixpath.join(prefix, relative) if prefix else relative


def read_local_file(local_path: str) -> str:
    """
    Raises:
        ValidationError: If the file cannot be read as UTF-8 text.
    """
    try:
        return Path(local_path).read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ValidationError(f"'{local_path}' is not UTF-8 text", reason="invalid_encoding") from e
    except OSError as e:
        raise ValidationError(f"Cannot read '{local_path}': {e.strerror or e}", reason="unreadable_file") from e


async def run_push(config: Config, request: CommitRequest) -> CommitResult:
    client = get_object_store(config.object_store)
    try:
        return await AtomicCommitBuilder(client).commit(request)
    finally:
        await client.aclose()


async def run_fetch(config: Config, repo: str, path: str, branch: str) -> List[RepoFile]:
    client = get_object_store(config.object_store)
    try:
        return await client.get_files(repo, path, branch)
    finally:
        await client.aclose()


@click.group()
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Enable debug logging.",
)
@click.option(
    "-c", "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to a config file replacing the user and project configs.",
)
@click.pass_context
def cli(ctx, verbose: bool, config_path: Optional[str]):
    """
    Session-scoped file contexts and atomic multi-file commits.
    """
    setup_logger(log_level="DEBUG" if verbose else "INFO")
    ctx.obj = {"verbose": verbose, "config_path": config_path}


@cli.command("serve")
@click.option("--host", type=str, help="Override the bind address.")
@click.option("--port", type=int, help="Override the port.")
@click.pass_context
def serve(ctx, host: Optional[str], port: Optional[int]):
    """
    Run the HTTP server.
    """
    console = Console()
    try:
        config = load_config(ctx)
        app = create_app(config)
    except ContextCommitException as e:
        fail(console, e, ctx.obj["verbose"])

    log_level = "DEBUG" if ctx.obj["verbose"] else config.logging.level
    intercept_std_logging(log_level)
    uvicorn.run(
        app,
        host=host or config.server.host,
        port=port or config.server.port,
        log_config=None,
        log_level=log_level.lower(),
    )


@cli.command("push")
@click.argument("repo")
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("-m", "--message", required=True, help="Commit message.")
@click.option("-b", "--branch", type=str, help="Target branch (defaults to the configured default branch).")
@click.option("--prefix", default="", help="Repository directory to place the files under.")
@click.pass_context
def push(ctx, repo: str, files: tuple, message: str, branch: Optional[str], prefix: str):
    """
    Commit local FILES to REPO as a single atomic commit.
    """
    console = Console()
    try:
        config = load_config(ctx)
        request = CommitRequest(
            repo=repo,
            branch=branch or config.context_store.default_branch,
            files=[CommitFile(path=repo_path_for(f, prefix), content=read_local_file(f)) for f in files],
            message=message,
        )
        with console.status("[bold green]Committing...[/bold green]"):
            result = asyncio.run(run_push(config, request))
    except ContextCommitException as e:
        fail(console, e, ctx.obj["verbose"])

    table = Table(show_header=True, header_style="bold")
    table.add_column("Path")
    table.add_column("Blob")
    for f in result.files:
        table.add_row(f.path, f.sha[:12])
    console.print(Panel(
        table,
        title=f"[bold cyan]{result.repo}@{result.branch} {result.commit_sha[:12]}[/bold cyan]",
        subtitle=Text(result.message.splitlines()[0]),
        border_style="cyan",
        expand=False,
    ))


@cli.command("fetch")
@click.argument("repo")
@click.argument("path", default="")
@click.option("-b", "--branch", type=str, help="Branch to read (defaults to the configured default branch).")
@click.pass_context
def fetch(ctx, repo: str, path: str, branch: Optional[str]):
    """
    Print the files stored at PATH in REPO.
    """
    console = Console()
    try:
        config = load_config(ctx)
        files = asyncio.run(run_fetch(config, repo, path, branch or config.context_store.default_branch))
    except ContextCommitException as e:
        fail(console, e, ctx.obj["verbose"])

    if not files:
        console.print("[yellow]No files found.[/yellow]")
    for f in files:
        console.print(Panel(Text(f.content), title=Text(f.path, style="bold cyan"), border_style="cyan"))


if __name__ == "__main__":
    cli()
