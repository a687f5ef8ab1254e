"""Persistence data models.

Decoupled from prpulse_core so the store layer can be used independently.
prpulse_core builds these records; the store only reads and writes them.
"""

from __future__ import annotations

from dataclasses import dataclass, field

COMMENT_TYPES = ("review_comment", "pr_comment")


@dataclass(frozen=True)
class CommentToClassify:
    """A review or PR comment that has no classification yet.

    Identity is (comment_type, comment_id).
    """

    comment_type: str  # "review_comment" | "pr_comment"
    comment_id: int
    body: str
    file_path: str | None
    pr_title: str


@dataclass
class ClassificationInsert:
    comment_type: str
    comment_id: int
    category: str
    confidence: int  # 0-100
    model_used: str
    classification_run_id: int | None
    reasoning: str | None = None


@dataclass
class Classification:
    """A persisted classification row, at most one per (comment_type, comment_id)."""

    id: int
    comment_type: str
    comment_id: int
    category: str
    confidence: int
    model_used: str
    classification_run_id: int | None  # None means manually set
    classified_at: str  # ISO-8601 UTC timestamp
    reasoning: str | None
    is_manual: bool


@dataclass
class ClassificationRun:
    id: int
    started_at: str
    completed_at: str | None
    status: str  # "running" | "success" | "error"
    comments_processed: int
    errors: int
    model_used: str


@dataclass
class CategoryCount:
    category: str
    count: int


@dataclass
class ReviewerCategoryCount:
    reviewer: str
    category: str
    count: int


@dataclass
class ClassificationSummary:
    categories: list[CategoryCount] = field(default_factory=list)
    total_classified: int = 0
    average_confidence: int = 0


@dataclass
class CategoryDistribution:
    """Classified counts per category across all runs plus what is still pending."""

    classified: list[CategoryCount] = field(default_factory=list)
    unclassified_count: int = 0


@dataclass
class PullRequestRecord:
    github_id: int
    number: int
    title: str
    author: str
    state: str  # "open" | "closed" | "merged"
    created_at: str
    merged_at: str | None = None
    branch_name: str | None = None
    additions: int = 0
    deletions: int = 0
    changed_files: int = 0
    ai_generated: str = "human"  # "ai" | "human" | "mixed"
    repository: str = ""


@dataclass
class ReviewCommentRecord:
    """An inline review comment attached to a file/line of a pull request."""

    github_id: int
    pull_request_github_id: int
    reviewer: str
    body: str
    created_at: str
    updated_at: str
    file_path: str | None = None
    line: int | None = None


@dataclass
class PrCommentRecord:
    """A general (issue-style) comment on a pull request."""

    github_id: int
    pull_request_github_id: int
    author: str
    body: str
    created_at: str
    updated_at: str


@dataclass
class PullRequestLabel:
    author: str
    ai_generated: str  # "ai" | "human" | "mixed"


@dataclass
class AuthorCount:
    author: str
    count: int


@dataclass
class WeekCount:
    week: str  # "2026-W05": year and Monday-based week number
    count: int


@dataclass
class PrSize:
    """Average size of one author's pull requests, rounded half-up."""

    author: str
    pr_count: int
    avg_additions: int
    avg_deletions: int
    avg_changed_files: int


@dataclass
class ReviewerCommentCount:
    reviewer: str
    total_comments: int
    prs_reviewed: int  # distinct PRs the reviewer left inline comments on
