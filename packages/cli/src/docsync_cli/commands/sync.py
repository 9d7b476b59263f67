"""sync command — propose documentation updates after a merge."""

from __future__ import annotations

import click
from rich.console import Console

from docsync_cli.runtime import build_coordinator, load_event, require_credentials, require_repo

console = Console()


@click.command("sync")
@click.option("--repo", default=None, help="GitHub repository in owner/name format. Defaults to GITHUB_REPOSITORY.")
@click.option("--pr", "pr_number", type=int, default=None, help="Number of the merged pull request.")
@click.option(
    "--event-path",
    default=None,
    envvar="GITHUB_EVENT_PATH",
    help="pull_request event payload. Supplies --pr; unmerged pull requests are skipped.",
)
@click.pass_context
def sync_cmd(ctx, repo: str | None, pr_number: int | None, event_path: str | None):
    """Open a documentation pull request for a merged change.

    Skips pull requests opened by DocSync itself and changes the model
    classifies as not affecting documentation.
    """
    from docsync_core.errors import DocSyncError
    from docsync_store.base import StoreError

    if pr_number is None and event_path:
        pull = load_event(event_path).get("pull_request") or {}
        if not pull.get("merged"):
            console.print("[yellow]Pull request was closed without merging; nothing to sync.[/yellow]")
            return
        pr_number = pull.get("number")

    if pr_number is None:
        raise click.UsageError("Provide --pr, or --event-path with a pull_request payload.")

    config = ctx.obj["config"]
    repo = require_repo(repo)
    require_credentials(config)

    coordinator = build_coordinator(repo, config, ctx.obj["store"])
    try:
        ref = coordinator.handle_merge_event(pr_number)
    except DocSyncError as e:
        raise click.ClickException(f"{e.title}: {e.reason}")
    except StoreError as e:
        raise click.ClickException(f"Session state is unavailable: {e}")

    if ref is None:
        console.print(f"[green]No documentation update needed for #{pr_number}.[/green]")
        return
    console.print(f"[green]Opened documentation pull request #{ref.number}: {ref.url}[/green]")
