"""CLI entry point for docsync.

Commands:
  comment  — handle a pull request comment (issue_comment event)
  sync     — open a documentation pull request after a merge
  history  — show refinement sessions from the configured store
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from docsync_cli.commands.comment import comment_cmd
from docsync_cli.commands.history import history_cmd
from docsync_cli.commands.sync import sync_cmd

console = Console()


def _build_store(config: dict):
    """Instantiate the configured session store from .docsync.yml settings.

    Store selection:
      store: sqlite → SQLiteStore (store_path, default .docsync.db)
      store: gist   → GistStore  (requires gist_id and github_token)
      store: memory → MemoryStore (no persistence between runs)
    """
    lock_timeout = config.get("lock_timeout", 300)
    store_type = config.get("store", "sqlite")

    if store_type == "gist":
        from docsync_store.gist import GistStore

        gist_id = config.get("gist_id")
        token = config.get("github_token")
        if gist_id and token:
            return GistStore(gist_id=gist_id, token=token, lock_timeout=lock_timeout)
        console.print("[yellow]GistStore requires gist_id and a GitHub token. Falling back to SQLite.[/yellow]")

    if store_type == "memory":
        from docsync_store.memory import MemoryStore

        console.print("[yellow]Memory store: session state will not survive this run.[/yellow]")
        return MemoryStore(lock_timeout=lock_timeout)

    from docsync_store.sqlite import SQLiteStore

    return SQLiteStore(db_path=config.get("store_path", ".docsync.db"), lock_timeout=lock_timeout)


@click.group()
@click.version_option(
    version=importlib.metadata.version("docsync"),
    prog_name="docsync",
)
@click.option(
    "--config",
    "config_path",
    default=".docsync.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="DOCSYNC_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Human-in-the-loop AI documentation updates for pull requests."""
    from docsync_core.config import load_config
    from docsync_cli.auth import resolve_github_token

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )

    ctx.ensure_object(dict)

    config = load_config(config_path)

    token = resolve_github_token()
    if token:
        config["github_token"] = token

    store = _build_store(config)
    ctx.obj["store"] = store
    ctx.obj["config"] = config
    ctx.call_on_close(store.close)


main.add_command(comment_cmd)
main.add_command(sync_cmd)
main.add_command(history_cmd)
