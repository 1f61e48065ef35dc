"""CLI for repository sync."""

import logging
from pathlib import Path

import click
from dotenv import load_dotenv
from git.exc import InvalidGitRepositoryError
from pydantic import BaseModel, ValidationError

from .config import SyncConfig
from .errors import ConfigError, SyncError
from .ingest import RepositorySync
from .mirror import RepositoryMirror
from .models import CommitSpec, FileEdit, PullRequestSpec
from .sink import JsonKnowledgeSink
from .writeback import WriteBackCoordinator

logger = logging.getLogger(__name__)

STORE_SUFFIX = ".knowledge.json"


def setup_logging(verbose: int) -> None:
    """Setup logging."""
    level = logging.DEBUG if verbose >= 2 else logging.INFO if verbose == 1 else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def default_store_path(config: SyncConfig) -> Path:
    return config.base_dir / config.owner / f"{config.repo}{STORE_SUFFIX}"


def parse_edits(items: tuple[str, ...]) -> list[FileEdit]:
    """Turn ``REPO_PATH=LOCAL_FILE`` arguments into edits."""
    edits = []
    for item in items:
        repo_path, sep, source = item.partition("=")
        if not sep or not repo_path or not source:
            raise click.BadParameter(f"expected REPO_PATH=LOCAL_FILE, got {item!r}", param_hint="FILES")
        try:
            content = Path(source).read_text(encoding="utf-8")
        except OSError as e:
            raise click.BadParameter(f"cannot read {source}: {e}", param_hint="FILES") from e
        try:
            edits.append(FileEdit(path=repo_path, content=content))
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="FILES") from e
    return edits


def build_spec(model: type[BaseModel], **values):
    """Validate a write-back spec, reporting bad values as usage errors."""
    try:
        return model(**values)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise click.UsageError(f"Invalid {model.__name__}: {problems}") from e


# ============ CLI Group ============

@click.group()
@click.option("--owner", envvar="GITHUB_OWNER", help="Repository owner")
@click.option("--repo", envvar="GITHUB_REPO", help="Repository name")
@click.option("--branch", envvar="GITHUB_BRANCH", help="Tracked branch")
@click.option("--path", "path_filter", envvar="GITHUB_PATH", help="Path filter inside the repository")
@click.option("--token", envvar="GITHUB_API_TOKEN", help="GitHub token")
@click.option("--use-gh-cli", is_flag=True, help="Use gh cli credentials when no token is set")
@click.option("--base-dir", envvar="REPOSYNC_BASE_DIR", type=click.Path(path_type=Path), help="Mirror base directory")
@click.option("-v", "--verbose", count=True, help="Verbosity (-v, -vv)")
@click.pass_context
def cli(
    ctx: click.Context, owner, repo, branch, path_filter, token, use_gh_cli: bool, base_dir, verbose: int
) -> None:
    """Mirror a GitHub repository and publish its files as knowledge."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = SyncConfig.from_env(
            use_gh_cli=use_gh_cli,
            owner=owner, repo=repo, branch=branch, path=path_filter, token=token, base_dir=base_dir
        )
    except ConfigError as e:
        raise click.ClickException(str(e)) from e


# ============ Sync Commands ============

@cli.command()
@click.option("-s", "--store", type=click.Path(path_type=Path), help="Knowledge store file")
@click.option("-f", "--force", is_flag=True, help="Start from an empty store")
@click.pass_context
def sync(ctx, store, force):
    """Clone or pull the mirror and ingest changed files."""
    config: SyncConfig = ctx.obj["config"]
    store_path = store or default_store_path(config)
    if force and store_path.exists():
        store_path.unlink()

    sink = JsonKnowledgeSink(store_path)
    try:
        report = RepositorySync(config, sink).run()
    except SyncError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"Scanned {report.scanned}: {report.upserted} new/updated, {report.skipped} unchanged")
    if report.failed:
        click.echo(f"Unreadable ({len(report.failed)}):")
        for path in report.failed:
            click.echo(f"  - {path}")
    if not report.upserted:
        click.echo("Everything up to date!")


@cli.command()
@click.option("-s", "--store", type=click.Path(path_type=Path), help="Knowledge store file")
@click.pass_context
def status(ctx, store):
    """Show mirror and store status."""
    config: SyncConfig = ctx.obj["config"]
    mirror = RepositoryMirror(config)
    click.echo(f"Repository: {config.owner}/{config.repo} ({config.remote_url})")
    if not mirror.path.exists():
        click.echo(f"Mirror: {mirror.path} (not cloned)")
    else:
        try:
            branch = mirror.current_branch() or "detached"
        except InvalidGitRepositoryError:
            click.echo(f"Mirror: {mirror.path} (not a git repository)")
        else:
            click.echo(f"Mirror: {mirror.path} (branch {branch})")

    store_path = store or default_store_path(config)
    if not store_path.exists():
        click.echo("No sync history.")
        return
    sink = JsonKnowledgeSink(store_path)
    click.echo(f"Last sync: {sink.store.updated_at.strftime('%Y-%m-%d %H:%M:%S')}")
    click.echo(f"Records: {len(sink)}")


# ============ Write-back Commands ============

@cli.command()
@click.option("-m", "--message", required=True, help="Commit message")
@click.argument("files", nargs=-1, required=True)
@click.pass_context
def commit(ctx, message, files):
    """Commit FILES (REPO_PATH=LOCAL_FILE) and push the tracked branch."""
    config: SyncConfig = ctx.obj["config"]
    edits = parse_edits(files)
    spec = build_spec(CommitSpec, message=message, edits=edits)
    mirror = RepositoryMirror(config)
    try:
        mirror.ensure_ready()
        result = WriteBackCoordinator(mirror).commit_and_push(spec)
    except SyncError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Pushed {result.commit_sha[:8]} to {result.branch} ({len(result.paths)} files)")


@cli.command()
@click.option("-t", "--title", required=True, help="Pull request title")
@click.option("-b", "--pr-branch", required=True, help="New branch for the changes")
@click.option("--body", help="Pull request description")
@click.option("--base", help="Base branch (defaults to the tracked branch)")
@click.argument("files", nargs=-1, required=True)
@click.pass_context
def pr(ctx, title, pr_branch, body, base, files):
    """Propose FILES (REPO_PATH=LOCAL_FILE) in a pull request."""
    config: SyncConfig = ctx.obj["config"]
    edits = parse_edits(files)
    spec = build_spec(
        PullRequestSpec, title=title, branch=pr_branch, edits=edits, description=body, base_branch=base
    )
    mirror = RepositoryMirror(config)
    try:
        mirror.ensure_ready()
        result = WriteBackCoordinator(mirror).open_pull_request(spec)
    except SyncError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Opened pull request #{result.number}: {result.html_url}")


def main() -> None:
    load_dotenv()
    cli()


if __name__ == "__main__":
    main()
