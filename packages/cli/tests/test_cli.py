"""Tests for the CLI entry point."""

import json
from unittest.mock import MagicMock, patch

from click.testing import CliRunner

from docsync_cli.auth import _repo_from_remote
from docsync_cli.cli import _build_store, main
from docsync_core.errors import GenerationError
from docsync_core.gh.pull_request import NewPullRequestRef
from docsync_store.base import StoreError
from docsync_store.gist import GistStore
from docsync_store.memory import MemoryStore
from docsync_store.models import ApprovalState, HistoryEntry, PendingChange, Session
from docsync_store.sqlite import SQLiteStore


def _make_config(github_token="tok", model="anthropic", anthropic_key="ant", openai_key=None, store="memory"):
    return {
        "github_token": github_token,
        "model": model,
        "anthropic_api_key": anthropic_key,
        "openai_api_key": openai_key,
        "label": "docsync",
        "title_marker": "[DocSync]",
        "min_feedback_length": 10,
        "max_chars_per_file": 20000,
        "preview_lines": 60,
        "generation_timeout": 120,
        "host_timeout": 30,
        "lock_timeout": 300,
        "store": store,
        "notify_webhook": None,
        "ignore_authors": [],
    }


def _patch_common(mocker, config=None, token="tok", store=None):
    """Patch load_config, resolve_github_token, and _build_store for most tests."""
    cfg = config or _make_config()
    mocker.patch("docsync_core.config.load_config", return_value=cfg)
    mocker.patch("docsync_cli.auth.resolve_github_token", return_value=token)
    store = store or MemoryStore()
    mocker.patch("docsync_cli.cli._build_store", return_value=store)
    return cfg, store


def _write_event(tmp_path, payload):
    path = tmp_path / "event.json"
    path.write_text(json.dumps(payload))
    return str(path)


class TestCLIValidation:
    def test_missing_github_token(self, mocker):
        _patch_common(mocker, config=_make_config(github_token=None), token=None)

        result = CliRunner().invoke(
            main, ["comment", "--repo", "owner/repo", "--pr", "1", "--body", "@docbot approve"]
        )
        assert result.exit_code != 0
        assert "token" in result.output.lower() or "GITHUB_TOKEN" in result.output

    def test_missing_anthropic_key(self, mocker):
        _patch_common(mocker, config=_make_config(model="anthropic", anthropic_key=None))

        result = CliRunner().invoke(
            main, ["comment", "--repo", "owner/repo", "--pr", "1", "--body", "@docbot approve"]
        )
        assert result.exit_code != 0
        assert "ANTHROPIC_API_KEY" in result.output

    def test_missing_openai_key(self, mocker):
        _patch_common(mocker, config=_make_config(model="openai", anthropic_key=None, openai_key=None))

        result = CliRunner().invoke(main, ["sync", "--repo", "owner/repo", "--pr", "1"])
        assert result.exit_code != 0
        assert "OPENAI_API_KEY" in result.output

    def test_comment_requires_pr_and_body(self, mocker):
        _patch_common(mocker)

        result = CliRunner().invoke(
            main, ["comment", "--repo", "owner/repo", "--pr", "1"], env={"GITHUB_EVENT_PATH": ""}
        )
        assert result.exit_code != 0
        assert "--body" in result.output


class TestCommentCommand:
    def test_passes_comment_to_coordinator(self, mocker):
        _patch_common(mocker)
        coordinator = MagicMock()
        coordinator.handle_comment_event.return_value = "Discarded the pending proposal."
        build = mocker.patch("docsync_cli.commands.comment.build_coordinator", return_value=coordinator)

        result = CliRunner().invoke(
            main,
            ["comment", "--repo", "owner/repo", "--pr", "5", "--body", "@docbot reject", "--author", "alice"],
        )

        assert result.exit_code == 0
        assert build.call_args.args[0] == "owner/repo"
        coordinator.handle_comment_event.assert_called_once_with(5, "@docbot reject", "alice")
        assert "Discarded the pending proposal." in result.output

    def test_reads_issue_comment_payload(self, mocker, tmp_path):
        _patch_common(mocker)
        coordinator = MagicMock()
        coordinator.handle_comment_event.return_value = None
        mocker.patch("docsync_cli.commands.comment.build_coordinator", return_value=coordinator)
        event_path = _write_event(
            tmp_path,
            {
                "issue": {"number": 9, "pull_request": {"url": "https://api.github.com/x"}},
                "comment": {"body": "@docbot expand the usage section", "user": {"login": "bob"}},
            },
        )

        result = CliRunner().invoke(main, ["comment", "--repo", "owner/repo", "--event-path", event_path])

        assert result.exit_code == 0
        coordinator.handle_comment_event.assert_called_once_with(9, "@docbot expand the usage section", "bob")
        assert "nothing to do" in result.output

    def test_issue_without_pull_request_skipped(self, mocker, tmp_path):
        _patch_common(mocker)
        build = mocker.patch("docsync_cli.commands.comment.build_coordinator")
        event_path = _write_event(tmp_path, {"issue": {"number": 3}, "comment": {"body": "@docbot approve"}})

        result = CliRunner().invoke(main, ["comment", "--repo", "owner/repo", "--event-path", event_path])

        assert result.exit_code == 0
        assert "not on a pull request" in result.output
        build.assert_not_called()

    def test_unreadable_payload_is_usage_error(self, mocker, tmp_path):
        _patch_common(mocker)
        bad = tmp_path / "event.json"
        bad.write_text("{not json")

        result = CliRunner().invoke(main, ["comment", "--repo", "owner/repo", "--event-path", str(bad)])

        assert result.exit_code != 0
        assert "Could not read event payload" in result.output


class TestSyncCommand:
    def test_reports_opened_pull_request(self, mocker):
        _patch_common(mocker)
        coordinator = MagicMock()
        coordinator.handle_merge_event.return_value = NewPullRequestRef(
            number=12, url="https://github.com/owner/repo/pull/12", branch="docsync/pr-4"
        )
        mocker.patch("docsync_cli.commands.sync.build_coordinator", return_value=coordinator)

        result = CliRunner().invoke(main, ["sync", "--repo", "owner/repo", "--pr", "4"])

        assert result.exit_code == 0
        coordinator.handle_merge_event.assert_called_once_with(4)
        assert "#12" in result.output

    def test_nothing_to_update(self, mocker):
        _patch_common(mocker)
        coordinator = MagicMock()
        coordinator.handle_merge_event.return_value = None
        mocker.patch("docsync_cli.commands.sync.build_coordinator", return_value=coordinator)

        result = CliRunner().invoke(main, ["sync", "--repo", "owner/repo", "--pr", "4"])

        assert result.exit_code == 0
        assert "No documentation update needed for #4" in result.output

    def test_unmerged_payload_skipped(self, mocker, tmp_path):
        _patch_common(mocker)
        build = mocker.patch("docsync_cli.commands.sync.build_coordinator")
        event_path = _write_event(tmp_path, {"pull_request": {"number": 4, "merged": False}})

        result = CliRunner().invoke(main, ["sync", "--repo", "owner/repo", "--event-path", event_path])

        assert result.exit_code == 0
        assert "without merging" in result.output
        build.assert_not_called()

    def test_merged_payload_supplies_number(self, mocker, tmp_path):
        _patch_common(mocker)
        coordinator = MagicMock()
        coordinator.handle_merge_event.return_value = None
        mocker.patch("docsync_cli.commands.sync.build_coordinator", return_value=coordinator)
        event_path = _write_event(tmp_path, {"pull_request": {"number": 8, "merged": True}})

        CliRunner().invoke(main, ["sync", "--repo", "owner/repo", "--event-path", event_path])

        coordinator.handle_merge_event.assert_called_once_with(8)

    def test_generation_failure_exits_nonzero(self, mocker):
        _patch_common(mocker)
        coordinator = MagicMock()
        coordinator.handle_merge_event.side_effect = GenerationError("AnthropicGenerator failed: timeout")
        mocker.patch("docsync_cli.commands.sync.build_coordinator", return_value=coordinator)

        result = CliRunner().invoke(main, ["sync", "--repo", "owner/repo", "--pr", "4"])

        assert result.exit_code == 1
        assert "Documentation generation failed" in result.output


    def test_store_failure_exits_nonzero(self, mocker):
        _patch_common(mocker)
        coordinator = MagicMock()
        coordinator.handle_merge_event.side_effect = StoreError("Timed out waiting for lock on owner/repo#sync")
        mocker.patch("docsync_cli.commands.sync.build_coordinator", return_value=coordinator)

        result = CliRunner().invoke(main, ["sync", "--repo", "owner/repo", "--pr", "4"])

        assert result.exit_code == 1
        assert "Session state is unavailable" in result.output


class TestHistoryCommand:
    def test_no_sessions(self, mocker):
        _patch_common(mocker)

        result = CliRunner().invoke(main, ["history", "--repo", "owner/repo"])

        assert result.exit_code == 0
        assert "No DocSync sessions found" in result.output

    def test_lists_sessions(self, mocker):
        store = MemoryStore()
        store.save(Session(repo="owner/repo", pr_number=1))
        store.save(Session(repo="owner/repo", pr_number=2, approval_state=ApprovalState.DISCARDED))
        _patch_common(mocker, store=store)

        result = CliRunner().invoke(main, ["history", "--repo", "owner/repo"])

        assert result.exit_code == 0
        assert "#1" in result.output
        assert "#2" in result.output

    def test_session_detail(self, mocker):
        store = MemoryStore()
        store.save(
            Session(
                repo="owner/repo",
                pr_number=3,
                approval_state=ApprovalState.AWAITING_APPROVAL,
                pending_change=PendingChange(
                    file_path="README.md", new_content="x", instruction="Expand usage", requested_by="alice"
                ),
                history=[
                    HistoryEntry(
                        file_path="README.md",
                        prior_content="old",
                        new_content="new",
                        commit_sha="abc1234def",
                        kind="apply",
                        author="alice",
                    )
                ],
            )
        )
        _patch_common(mocker, store=store)

        result = CliRunner().invoke(main, ["history", "--repo", "owner/repo", "--pr", "3"])

        assert result.exit_code == 0
        assert "awaiting_approval" in result.output
        assert "requested by alice" in result.output
        assert "No applied changes" not in result.output

    def test_session_without_changes(self, mocker):
        _patch_common(mocker)

        result = CliRunner().invoke(main, ["history", "--repo", "owner/repo", "--pr", "3"])

        assert "No applied changes" in result.output


class TestBuildStore:
    def test_sqlite_default(self, tmp_path):
        store = _build_store({"store": "sqlite", "store_path": str(tmp_path / "d.db")})
        assert isinstance(store, SQLiteStore)
        store.close()

    def test_memory(self):
        assert isinstance(_build_store({"store": "memory"}), MemoryStore)

    def test_gist_with_credentials(self):
        with patch("github.Github"):
            store = _build_store({"store": "gist", "gist_id": "abc", "github_token": "tok"})
        assert isinstance(store, GistStore)

    def test_gist_without_id_falls_back_to_sqlite(self, tmp_path):
        store = _build_store({"store": "gist", "github_token": "tok", "store_path": str(tmp_path / "d.db")})
        assert isinstance(store, SQLiteStore)
        store.close()


class TestRepoFromRemote:
    def test_https(self):
        assert _repo_from_remote("https://github.com/owner/repo.git") == "owner/repo"

    def test_ssh(self):
        assert _repo_from_remote("git@github.com:owner/repo.git") == "owner/repo"

    def test_other_host(self):
        assert _repo_from_remote("https://gitlab.com/owner/repo.git") is None

    def test_missing(self):
        assert _repo_from_remote(None) is None
