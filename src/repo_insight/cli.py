"""Command line interface for repo-insight."""

import logging
import sys
from pathlib import Path
from typing import List, NoReturn, Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import Config, ConfigManager
from .errors import GitInsightError
from .git import (
    CodeSearchEngine,
    Commit,
    RepoSearchOptions,
    Repository,
)
from .utils.exception_logger import ExceptionLogger

logger = logging.getLogger(__name__)

console = Console()


def _load_config(repo: Optional[str], config_path: Optional[str]) -> Config:
    if config_path:
        config_manager = ConfigManager(Path(config_path))
    else:
        config_manager = ConfigManager.create_with_backtrack(
            Path(repo) if repo else None
        )
    config = config_manager.load()
    if repo:
        config = config.model_copy(update={"repo_path": Path(repo)})
    return config


def _open_repository(ctx: click.Context) -> Repository:
    config: Config = ctx.obj["config"]
    try:
        repository = Repository(config.repo_path, config=config)
    except ValueError as e:
        _fail(e)

    ExceptionLogger.initialize(repository.path)
    return repository


def _fail(error: Exception) -> NoReturn:
    logger.debug(f"Command failed: {error!r}")
    console.print(f"❌ {error}", style="red", markup=False)
    sys.exit(1)


def _commit_table(title: str, commits: List[Commit]) -> Table:
    table = Table(title=title)
    table.add_column("Commit", style="cyan", no_wrap=True)
    table.add_column("Author")
    table.add_column("Date")
    table.add_column("Summary")
    for commit in commits:
        table.add_row(
            commit.id[:10],
            escape(commit.author.name),
            commit.author.when,
            escape(commit.summary()),
        )
    return table


@click.group()
@click.option(
    "--repo",
    type=click.Path(exists=True, file_okay=False),
    help="Repository to inspect (default: from config or current directory)",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="Path to a repo-insight config.json",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(version=__version__, prog_name="repo-insight")
@click.pass_context
def cli(
    ctx: click.Context,
    repo: Optional[str],
    config_path: Optional[str],
    verbose: bool,
) -> None:
    """Inspect git history: code search, file status, submodules and stats."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
        )

    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = _load_config(repo, config_path)
    except ValueError as e:
        _fail(e)


@cli.command()
@click.argument("keyword")
@click.option("--page", default=1, show_default=True, help="1-based page number")
@click.option("--page-size", type=int, help="Matches per page")
@click.option(
    "--order-by", default="", help="History ordering flag, e.g. --date-order"
)
@click.pass_context
def search(
    ctx: click.Context,
    keyword: str,
    page: int,
    page_size: Optional[int],
    order_by: str,
) -> None:
    """Search the full commit history for KEYWORD."""
    repository = _open_repository(ctx)
    try:
        options = RepoSearchOptions(
            keyword=keyword,
            order_by=order_by,
            page=page,
            page_size=page_size or repository.config.search_page_size,
        )
        matches = CodeSearchEngine(repository).search_matches_in_repo(options)
    except (GitInsightError, ValidationError, ValueError) as e:
        _fail(e)

    console.print(
        f"🔍 {matches.number_matches} match(es) for '{keyword}' "
        f"(page {options.page}, {len(matches.results)} shown)",
        style="blue",
        markup=False,
    )
    for match in matches.results:
        console.print(f"{match.commit_id[:10]} {match.path}", style="bold cyan", markup=False)
        console.print(match.content, markup=False, highlight=False)
        console.print()


@cli.command()
@click.argument("keyword")
@click.pass_context
def count(ctx: click.Context, keyword: str) -> None:
    """Count (commit, file) pairs containing KEYWORD."""
    repository = _open_repository(ctx)
    try:
        total = CodeSearchEngine(repository).get_number_of_code_matches(keyword)
    except GitInsightError as e:
        _fail(e)
    click.echo(total)


@cli.command()
@click.argument("commit_id", default="HEAD")
@click.pass_context
def show(ctx: click.Context, commit_id: str) -> None:
    """Show metadata and parents of COMMIT_ID."""
    repository = _open_repository(ctx)
    try:
        commit = repository.get_commit(commit_id)
        parents = [commit.parent(n) for n in range(commit.parent_count())]
    except GitInsightError as e:
        _fail(e)

    table = Table(title=f"Commit {commit.id}", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Author", escape(f"{commit.author.name} <{commit.author.email}>"))
    table.add_row("Date", commit.author.when)
    table.add_row(
        "Committer", escape(f"{commit.committer.name} <{commit.committer.email}>")
    )
    table.add_row("Summary", escape(commit.summary()))
    console.print(table)

    if parents:
        console.print(_commit_table("Parents", parents))
    else:
        console.print("Root commit (no parents)", style="yellow")


@cli.command()
@click.argument("commit_id", default="HEAD")
@click.option("--limit", type=int, help="Show at most this many commits")
@click.option("--page", type=int, help="1-based page of history")
@click.option("--size", type=int, help="Commits per page (with --page)")
@click.option("--until", "until_commit", help="Stop after this commit (exclusive)")
@click.pass_context
def log(
    ctx: click.Context,
    commit_id: str,
    limit: Optional[int],
    page: Optional[int],
    size: Optional[int],
    until_commit: Optional[str],
) -> None:
    """List the history of COMMIT_ID."""
    if sum(option is not None for option in (limit, page, until_commit)) > 1:
        _fail(ValueError("Use only one of --limit, --page and --until"))

    repository = _open_repository(ctx)
    try:
        commit = repository.get_commit(commit_id)
        if limit is not None:
            commits = commit.commits_before_limit(limit)
        elif page is not None:
            if size is not None:
                commits = commit.commits_by_range_size(page, size)
            else:
                commits = commit.commits_by_range(page)
        elif until_commit is not None:
            commits = commit.commits_before_until(until_commit)
        else:
            commits = commit.commits_before()
    except (GitInsightError, ValueError) as e:
        _fail(e)

    console.print(_commit_table(f"History of {commit.id[:10]}", commits))


@cli.command("file-status")
@click.argument("commit_id", default="HEAD")
@click.pass_context
def file_status(ctx: click.Context, commit_id: str) -> None:
    """Show files added, removed and modified by COMMIT_ID."""
    repository = _open_repository(ctx)
    try:
        status = repository.get_commit(commit_id).file_status()
    except GitInsightError as e:
        _fail(e)

    table = Table(title=f"Files changed in {escape(commit_id)}")
    table.add_column("Status", style="bold")
    table.add_column("Path")
    for path in status.added:
        table.add_row("[green]added[/green]", escape(path))
    for path in status.removed:
        table.add_row("[red]removed[/red]", escape(path))
    for path in status.modified:
        table.add_row("[yellow]modified[/yellow]", escape(path))
    console.print(table)


@cli.command()
@click.argument("commit_id", default="HEAD")
@click.option("--path", "module_path", help="Show only the submodule at this path")
@click.pass_context
def submodules(ctx: click.Context, commit_id: str, module_path: Optional[str]) -> None:
    """List submodules registered at COMMIT_ID."""
    repository = _open_repository(ctx)
    try:
        commit = repository.get_commit(commit_id)
        if module_path:
            module = commit.get_sub_module(module_path)
            modules = [module] if module else []
        else:
            modules = list(commit.get_sub_modules().values())
    except GitInsightError as e:
        _fail(e)

    if not modules:
        message = f"No submodule at {module_path}" if module_path else "No submodules"
        console.print(message, style="yellow", markup=False)
        return

    table = Table(title="Submodules")
    table.add_column("Path", style="cyan")
    table.add_column("URL")
    for module in modules:
        table.add_row(escape(module.path), escape(module.url))
    console.print(table)


@cli.command("commits-per-user")
@click.option("--user", default="", help="Author name or email (default: everyone)")
@click.pass_context
def commits_per_user(ctx: click.Context, user: str) -> None:
    """Show a per-day histogram of commits."""
    repository = _open_repository(ctx)
    try:
        commits = repository.get_commit("HEAD").commits_count_per_collaborator(user)
    except GitInsightError as e:
        _fail(e)

    table = Table(title=f"Commits by {escape(user or 'all')}")
    table.add_column("Date")
    table.add_column("Commits", justify="right")
    for row in commits.info:
        table.add_row(escape(row.date), str(row.num_commits))
    table.add_row("[bold]Total[/bold]", f"[bold]{commits.total}[/bold]")
    console.print(table)


@cli.command()
@click.option("--user", default="", help="Author name or email (default: everyone)")
@click.pass_context
def numstat(ctx: click.Context, user: str) -> None:
    """Show lines inserted and deleted by an author."""
    repository = _open_repository(ctx)
    try:
        stats = repository.get_commit("HEAD").num_stat_commits_per_user(user)
    except GitInsightError as e:
        _fail(e)

    table = Table(title=f"Line changes by {escape(user or 'all')}")
    table.add_column("Insertions", justify="right", style="green")
    table.add_column("Deletions", justify="right", style="red")
    table.add_column("Files", justify="right")
    table.add_row(str(stats.insertions), str(stats.deletions), str(stats.files))
    console.print(table)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
