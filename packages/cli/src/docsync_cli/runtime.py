"""Wiring shared by the comment and sync commands."""

from __future__ import annotations

import json

import click

from docsync_cli.auth import resolve_repo


def require_credentials(config: dict) -> None:
    if not config.get("github_token"):
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )
    if config["model"] == "anthropic" and not config.get("anthropic_api_key"):
        raise click.UsageError("ANTHROPIC_API_KEY environment variable is not set.")
    if config["model"] == "openai" and not config.get("openai_api_key"):
        raise click.UsageError("OPENAI_API_KEY environment variable is not set.")


def require_repo(repo: str | None) -> str:
    resolved = resolve_repo(repo)
    if not resolved:
        raise click.UsageError("Could not determine the repository. Pass --repo owner/name.")
    return resolved


def load_event(event_path: str) -> dict:
    """Read a GitHub Actions webhook payload (GITHUB_EVENT_PATH)."""
    try:
        with open(event_path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise click.UsageError(f"Could not read event payload {event_path}: {e}")


def build_coordinator(repo: str, config: dict, store):
    """Connect to GitHub and the AI provider and return a RefinementCoordinator."""
    from docsync_core.coordinator import RefinementCoordinator, get_generator
    from docsync_core.gh.pull_request import GitHubHost
    from docsync_core.notify import WebhookNotifier

    host = GitHubHost.connect(
        repo,
        token=config["github_token"],
        timeout=config["host_timeout"],
        max_chars_per_file=config["max_chars_per_file"],
    )
    notifier = WebhookNotifier(config["notify_webhook"]) if config.get("notify_webhook") else None
    return RefinementCoordinator(
        host=host,
        store=store,
        generator=get_generator(config),
        notifier=notifier,
        config=config,
    )
