from __future__ import annotations

from datetime import datetime

from github import Github

from prpulse_core.heuristics import CommitData, PrData


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_pull_requests(repo, state: str = "all"):
    # Newest first so a `since` cut-off can stop paging early.
    return repo.get_pulls(state=state, sort="created", direction="desc")


def to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def pull_state(pr) -> str:
    """Return "merged" for merged PRs, otherwise GitHub's "open"/"closed"."""
    return "merged" if pr.merged_at is not None else pr.state


def pr_to_data(pr) -> PrData:
    return PrData(
        author=pr.user.login if pr.user else "",
        branch_name=pr.head.ref if pr.head else None,
        labels=tuple(label.name for label in pr.labels),
    )


def commits_to_data(pr) -> list[CommitData]:
    return [CommitData(message=c.commit.message or "") for c in pr.get_commits()]
