"""comment command — handle one pull request comment."""

from __future__ import annotations

import click
from rich.console import Console

from docsync_cli.runtime import build_coordinator, load_event, require_credentials, require_repo

console = Console()


@click.command("comment")
@click.option("--repo", default=None, help="GitHub repository in owner/name format. Defaults to GITHUB_REPOSITORY.")
@click.option("--pr", "pr_number", type=int, default=None, help="Pull request number.")
@click.option("--body", default=None, help="Comment text.")
@click.option("--author", default=None, help="Login of the comment author.")
@click.option(
    "--event-path",
    default=None,
    envvar="GITHUB_EVENT_PATH",
    help="issue_comment event payload. Supplies --pr, --body and --author.",
)
@click.pass_context
def comment_cmd(
    ctx,
    repo: str | None,
    pr_number: int | None,
    body: str | None,
    author: str | None,
    event_path: str | None,
):
    """Interpret a pull request comment and reply on the thread.

    \b
    Recognized commands:
      @docbot update|clarify|expand|fix <topic>
      @docbot add example <topic>
      @docbot approve | reject | revert last change
      docsync: <free-form feedback>
    """
    if event_path and (pr_number is None or body is None):
        event = load_event(event_path)
        issue = event.get("issue") or {}
        if "pull_request" not in issue:
            console.print("[dim]Comment is not on a pull request; nothing to do.[/dim]")
            return
        comment = event.get("comment") or {}
        pr_number = pr_number if pr_number is not None else issue.get("number")
        body = body if body is not None else comment.get("body", "")
        author = author or (comment.get("user") or {}).get("login", "")

    if pr_number is None or body is None:
        raise click.UsageError("Provide --pr and --body, or --event-path with an issue_comment payload.")

    config = ctx.obj["config"]
    repo = require_repo(repo)
    require_credentials(config)

    coordinator = build_coordinator(repo, config, ctx.obj["store"])
    reply = coordinator.handle_comment_event(pr_number, body, author or "")
    if reply is None:
        console.print("[dim]No DocSync command in this comment; nothing to do.[/dim]")
        return
    console.print(reply)
