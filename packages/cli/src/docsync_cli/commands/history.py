"""history command — display refinement sessions from the store."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

console = Console()

_STATE_STYLE = {
    "none": "dim",
    "awaiting_approval": "yellow",
    "applied": "green",
    "discarded": "red",
}


@click.command("history")
@click.option("--repo", required=True, help="GitHub repository (owner/name).")
@click.option("--pr", "pr_number", type=int, default=None, help="Show one pull request in detail.")
@click.option("--limit", default=20, show_default=True, help="Maximum number of rows to show.")
@click.pass_context
def history_cmd(ctx, repo: str, pr_number: int | None, limit: int):
    """Show DocSync refinement sessions for a repository.

    Without --pr, lists every pull request with a session. With --pr, shows
    the pending proposal and the applied-change history of that session.
    """
    store = ctx.obj["store"]

    if pr_number is None:
        sessions = store.list_sessions(repo)
        if not sessions:
            console.print("[yellow]No DocSync sessions found.[/yellow]")
            return
        table = Table(title=f"DocSync Sessions — {repo}", show_header=True, header_style="bold cyan")
        table.add_column("PR", style="bold", width=6)
        table.add_column("State", width=18)
        table.add_column("Pending", max_width=30)
        table.add_column("Changes", justify="right", width=8)
        table.add_column("Updated At", width=20)
        for s in list(reversed(sessions))[:limit]:
            style = _STATE_STYLE.get(s.approval_state.value, "white")
            table.add_row(
                f"#{s.pr_number}",
                f"[{style}]{s.approval_state.value}[/{style}]",
                s.pending_change.file_path if s.pending_change else "",
                str(len(s.history)),
                s.updated_at[:19].replace("T", " "),
            )
        console.print(table)
        return

    session = store.get(repo, pr_number)
    style = _STATE_STYLE.get(session.approval_state.value, "white")
    console.print(f"\n[bold]{repo}#{pr_number}[/bold]  state: [{style}]{session.approval_state.value}[/{style}]")
    if session.pending_change:
        p = session.pending_change
        console.print(f"  Pending: [cyan]{p.file_path}[/cyan] requested by {p.requested_by or 'unknown'}")
        console.print(f"  [dim]{p.instruction}[/dim]")

    if not session.history:
        console.print("[yellow]No applied changes.[/yellow]")
        return

    table = Table(title="Applied Changes", show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right", width=4)
    table.add_column("Kind", width=8)
    table.add_column("File", width=12)
    table.add_column("Commit", width=8)
    table.add_column("Author", max_width=20)
    table.add_column("At", width=20)
    for i, entry in enumerate(session.history[-limit:], start=max(len(session.history) - limit, 0) + 1):
        kind_style = "red" if entry.kind == "revert" else "green"
        table.add_row(
            str(i),
            f"[{kind_style}]{entry.kind}[/{kind_style}]",
            entry.file_path,
            entry.commit_sha[:7],
            entry.author,
            entry.timestamp[:19].replace("T", " "),
        )
    console.print(table)
