"""GitHub host adapter.

Thin wrapper over a PyGithub repository exposing only the operations the
coordinator, the change applier and the sync flow need. Every method may
raise GithubException (or a requests timeout); callers decide how to map it.
"""

from __future__ import annotations

from dataclasses import dataclass

from github import Auth, Github, GithubException, UnknownObjectException

_DEFAULT_TIMEOUT = 30


@dataclass
class NewPullRequestRef:
    number: int
    url: str
    branch: str


def get_repo(repo_name: str, token: str, timeout: int = _DEFAULT_TIMEOUT):
    return Github(auth=Auth.Token(token), timeout=timeout).get_repo(repo_name)


def is_docsync_pull_request(labels: list[str], title: str, label: str, title_marker: str) -> bool:
    """A pull request is DocSync-originated if it carries the label or the title marker."""
    if label and label.lower() in (name.lower() for name in labels):
        return True
    return bool(title_marker) and title_marker.lower() in (title or "").lower()


def format_patch(filename: str, patch: str, max_chars: int) -> str:
    if len(patch) > max_chars:
        patch = patch[:max_chars] + "\n... [diff truncated]"
    return f"### {filename}\n```diff\n{patch}\n```"


class GitHubHost:
    """Version-control host operations for one repository."""

    def __init__(self, repo, max_chars_per_file: int = 20000):
        self.repo = repo
        self.full_name = repo.full_name
        self._max_chars = max_chars_per_file

    @classmethod
    def connect(cls, repo_name: str, token: str, timeout: int = _DEFAULT_TIMEOUT, **kwargs) -> GitHubHost:
        return cls(get_repo(repo_name, token, timeout=timeout), **kwargs)

    def get_pull_request_diff(self, pr_number: int) -> str:
        """Render the pull request's changed files as fenced unified diffs."""
        sections = []
        for f in sorted(self.repo.get_pull(pr_number).get_files(), key=lambda f: f.filename):
            if not f.patch:
                sections.append(f"### {f.filename}\n_({f.status}, no textual diff)_")
                continue
            sections.append(format_patch(f.filename, f.patch, self._max_chars))
        return "\n\n".join(sections)

    def get_changed_files(self, pr_number: int) -> list[str]:
        return [f.filename for f in self.repo.get_pull(pr_number).get_files()]

    def get_file_content(self, path: str, ref: str) -> str | None:
        """Return the file's text at ``ref``, or None if it does not exist there."""
        try:
            contents = self.repo.get_contents(path, ref=ref)
        except UnknownObjectException:
            return None
        if isinstance(contents, list):
            raise GithubException(400, {"message": f"{path} is a directory"}, None)
        return contents.decoded_content.decode("utf-8")

    def commit_file(self, path: str, content: str, branch: str, message: str) -> str:
        """Replace the existing ``path`` on ``branch`` in one commit; return its SHA.

        Never creates files: a missing path raises UnknownObjectException.
        """
        existing = self.repo.get_contents(path, ref=branch)
        result = self.repo.update_file(path, message, content, existing.sha, branch=branch)
        return result["commit"].sha

    def post_comment(self, pr_number: int, text: str) -> None:
        self.repo.get_issue(pr_number).create_comment(text)

    def get_pull_request_labels_and_title(self, pr_number: int) -> tuple[list[str], str]:
        pr = self.repo.get_pull(pr_number)
        return [label.name for label in pr.labels], pr.title or ""

    def get_head_branch(self, pr_number: int) -> str:
        return self.repo.get_pull(pr_number).head.ref

    def get_default_branch(self) -> str:
        return self.repo.default_branch

    def create_branch(self, name: str, from_branch: str) -> None:
        sha = self.repo.get_branch(from_branch).commit.sha
        self.repo.create_git_ref(ref=f"refs/heads/{name}", sha=sha)

    def delete_branch(self, name: str) -> None:
        self.repo.get_git_ref(f"heads/{name}").delete()

    def create_pull_request(self, title: str, body: str, head: str, base: str, label: str) -> NewPullRequestRef:
        pr = self.repo.create_pull(title=title, body=body, head=head, base=base)
        if label:
            pr.add_to_labels(label)
        return NewPullRequestRef(number=pr.number, url=pr.html_url, branch=head)
