"""
Build Ledger — CLI entrypoint.

Usage:
    python -m build_ledger.main --help
    python -m build_ledger.main update --identifier app
    python -m build_ledger.main show --identifier app
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from build_ledger import __version__
from build_ledger.core.observability.logging_config import (
    ENV_FILE,
    ENV_FILE_LEVEL,
    resolve_level,
    setup_logging,
)


@click.group()
@click.version_option(version=__version__, prog_name="build-ledger")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to build-ledger.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """Build Ledger — monotonically increasing build numbers kept in git."""
    ctx.ensure_object(dict)
    ctx.obj["quiet"] = quiet
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(verbose=verbose, quiet=quiet, debug=debug),
        log_file=os.environ.get(ENV_FILE),
        log_file_level=os.environ.get(ENV_FILE_LEVEL),
    )


@cli.command()
@click.option("--identifier", "-i", default=None, help="Ledger key (e.g. the app name).")
@click.option("--branch", "-b", default=None, help="Ledger branch (default: build-numbers).")
@click.option(
    "--increment/--no-increment",
    default=None,
    help="Increment the build number (default: increment).",
)
@click.option("--token", default=None, help="Token for HTTPS remote authentication.")
@click.option("--remote", default=None, help="Remote to sync with (default: origin).")
@click.option("--file", "file_name", default=None, help="Ledger file name.")
@click.option("--author-name", default=None, help="Commit author name.")
@click.option("--author-email", default=None, help="Commit author email.")
@click.option("--max-attempts", type=int, default=None, help="Push attempts before giving up.")
@click.option("--lock-timeout", type=float, default=None, help="Seconds to wait for the lock.")
@click.option("--git-timeout", type=int, default=None, help="Seconds per git command.")
@click.option(
    "--work-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Git working tree (default: current directory).",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def update(
    ctx: click.Context,
    identifier: str | None,
    branch: str | None,
    increment: bool | None,
    token: str | None,
    remote: str | None,
    file_name: str | None,
    author_name: str | None,
    author_email: str | None,
    max_attempts: int | None,
    lock_timeout: float | None,
    git_timeout: int | None,
    work_dir: Path | None,
    as_json: bool,
) -> None:
    """Assign the next build number for an identifier and push it.

    Inputs not given as options are read from GitHub Actions inputs
    (INPUT_* variables), then from build-ledger.yml.
    """
    from build_ledger.core.services.ci_host import ActionsHost
    from build_ledger.core.use_cases.update import run_update

    overrides = {
        "identifier": identifier,
        "branch": branch,
        "increment": increment,
        "token": token,
        "remote": remote,
        "file": file_name,
        "author_name": author_name,
        "author_email": author_email,
        "max_attempts": max_attempts,
        "lock_timeout": lock_timeout,
        "git_timeout": git_timeout,
    }
    outcome = run_update(
        overrides,
        config_path=ctx.obj.get("config_path"),
        work_dir=work_dir,
        host=ActionsHost(echo_outputs=not as_json),
    )

    if as_json:
        click.echo(json.dumps(outcome.to_dict(), indent=2))
        sys.exit(0 if outcome.ok else 1)

    if not outcome.ok:
        click.secho(f"❌ {outcome.error}", fg="red", err=True)
        sys.exit(1)

    result = outcome.result
    assert result is not None  # guaranteed when ok
    if not ctx.obj.get("quiet"):
        verb = "incremented to" if result.incremented else "is"
        click.secho(
            f"✅ Build number for {result.identifier} {verb} {result.build_number}",
            fg="green",
            err=True,
        )


@cli.command()
@click.option("--identifier", "-i", default=None, help="Print only this identifier's number.")
@click.option("--branch", "-b", default=None, help="Ledger branch (default: build-numbers).")
@click.option("--remote", default=None, help="Remote to read from (default: origin).")
@click.option("--file", "file_name", default=None, help="Ledger file name.")
@click.option("--local", is_flag=True, help="Read the working tree file instead of the remote.")
@click.option(
    "--work-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Git working tree (default: current directory).",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def show(
    ctx: click.Context,
    identifier: str | None,
    branch: str | None,
    remote: str | None,
    file_name: str | None,
    local: bool,
    work_dir: Path | None,
    as_json: bool,
) -> None:
    """Show build numbers without changing anything.

    Branch, file, remote and token resolve like `update`: options first,
    then INPUT_* variables, then build-ledger.yml.
    """
    from build_ledger.core.config.loader import resolve_location
    from build_ledger.core.errors import ConfigurationError
    from build_ledger.core.use_cases.show import ShowResult, show_ledger

    try:
        location = resolve_location(
            {"branch": branch, "remote": remote, "file": file_name},
            config_path=ctx.obj.get("config_path"),
            start_dir=work_dir,
        )
    except ConfigurationError as e:
        result = ShowResult(error=str(e))
    else:
        result = show_ledger(
            branch=location.branch,
            file=location.file,
            work_dir=work_dir,
            remote=location.remote,
            local=local,
            token=location.token_value(),
            git_timeout=location.git_timeout,
        )

    if result.error:
        if as_json:
            click.echo(json.dumps(result.to_dict(), indent=2))
        else:
            click.secho(f"❌ {result.error}", fg="red", err=True)
        sys.exit(1)

    if identifier:
        if as_json:
            click.echo(json.dumps({identifier: result.value(identifier)}))
        else:
            click.echo(result.value(identifier))
        return

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    assert result.ledger is not None  # guaranteed without error
    if not len(result.ledger):
        click.secho(f"No build numbers in {result.source}", fg="yellow")
        return

    click.secho(f"📋 {result.source}", fg="cyan", bold=True)
    width = max(len(name) for name in result.ledger.root)
    for name, number in result.ledger.root.items():
        click.echo(f"   {name.ljust(width)}  {number}")


if __name__ == "__main__":
    cli()
