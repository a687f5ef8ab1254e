"""Pull GitHub pull requests and their comments into the local store.

Each PR is labelled ai/human/mixed with the AI-authorship heuristics as it
is stored. A PR whose GitHub calls fail is logged and counted; the sync
moves on to the next one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from github import GithubException

from prpulse_core.gh.pull_request import commits_to_data, get_pull_requests, pr_to_data, pull_state, to_iso
from prpulse_core.heuristics import classify_pull_request
from prpulse_store.models import PrCommentRecord, PullRequestRecord, ReviewCommentRecord

if TYPE_CHECKING:
    from prpulse_core.heuristics import AiHeuristicsConfig
    from prpulse_store.base import BaseStore

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    repository: str
    pr_count: int = 0
    review_comment_count: int = 0
    pr_comment_count: int = 0
    errors: int = 0


def sync_repository(
    repo,
    store: BaseStore,
    heuristics: AiHeuristicsConfig,
    limit: int | None = None,
    since: datetime | None = None,
) -> SyncResult:
    """Sync pull requests (newest first) from a PyGithub repository object.

    ``limit`` caps the number of PRs; ``since`` stops at the first PR created
    before that timestamp.
    """
    result = SyncResult(repository=repo.full_name)

    for pr in get_pull_requests(repo):
        if limit is not None and result.pr_count + result.errors >= limit:
            break
        if since is not None and pr.created_at < since:
            break
        try:
            _sync_pull_request(pr, repo.full_name, store, heuristics, result)
        except GithubException as e:
            logger.warning("Failed to sync PR #%d in %s: %s", pr.number, repo.full_name, e)
            result.errors += 1
            continue
        result.pr_count += 1

    logger.info(
        "Synced %s: %d PR(s), %d review comment(s), %d PR comment(s), %d error(s)",
        result.repository,
        result.pr_count,
        result.review_comment_count,
        result.pr_comment_count,
        result.errors,
    )
    return result


def _sync_pull_request(pr, repository: str, store: BaseStore, heuristics: AiHeuristicsConfig, result: SyncResult):
    ai_generated = classify_pull_request(pr_to_data(pr), commits_to_data(pr), heuristics)

    store.upsert_pull_request(
        PullRequestRecord(
            github_id=pr.id,
            repository=repository,
            number=pr.number,
            title=pr.title or "",
            author=pr.user.login if pr.user else "",
            state=pull_state(pr),
            created_at=to_iso(pr.created_at),
            merged_at=to_iso(pr.merged_at),
            branch_name=pr.head.ref if pr.head else None,
            additions=pr.additions or 0,
            deletions=pr.deletions or 0,
            changed_files=pr.changed_files or 0,
            ai_generated=ai_generated,
        )
    )

    for comment in pr.get_review_comments():
        store.upsert_review_comment(
            ReviewCommentRecord(
                github_id=comment.id,
                pull_request_github_id=pr.id,
                reviewer=comment.user.login if comment.user else "",
                body=comment.body or "",
                file_path=comment.path,
                line=comment.line if comment.line is not None else getattr(comment, "original_line", None),
                created_at=to_iso(comment.created_at),
                updated_at=to_iso(comment.updated_at),
            )
        )
        result.review_comment_count += 1

    for comment in pr.get_issue_comments():
        store.upsert_pr_comment(
            PrCommentRecord(
                github_id=comment.id,
                pull_request_github_id=pr.id,
                author=comment.user.login if comment.user else "",
                body=comment.body or "",
                created_at=to_iso(comment.created_at),
                updated_at=to_iso(comment.updated_at),
            )
        )
        result.pr_comment_count += 1
