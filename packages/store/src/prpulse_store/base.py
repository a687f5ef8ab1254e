"""Abstract store interface.

prpulse_core consumes persistence only through this interface. Batch
classification, sync and the reporting commands depend on BaseStore rather
than a concrete backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prpulse_store.models import (
        AuthorCount,
        CategoryDistribution,
        Classification,
        ClassificationInsert,
        ClassificationRun,
        ClassificationSummary,
        CommentToClassify,
        PrCommentRecord,
        PrSize,
        PullRequestLabel,
        PullRequestRecord,
        ReviewCommentRecord,
        ReviewerCategoryCount,
        ReviewerCommentCount,
        WeekCount,
    )


class ClassificationRunActiveError(RuntimeError):
    """Raised when a classification run is started while another is still running."""

    def __init__(self, active_run_id: int | None = None):
        self.active_run_id = active_run_id
        msg = "A classification is already running"
        if active_run_id is not None:
            msg += f" (run #{active_run_id})"
        super().__init__(msg)


class BaseStore(ABC):
    """Pluggable persistence layer for synced GitHub data and classifications."""

    # ------------------------------------------------------------------ #
    # Settings                                                             #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def get_setting(self, key: str) -> str | None:
        """Return the stored value for key, or None if unset."""

    @abstractmethod
    def set_setting(self, key: str, value: str) -> None:
        """Insert or overwrite a setting."""

    @abstractmethod
    def delete_setting(self, key: str) -> None:
        """Remove a setting. Deleting a missing key is not an error."""

    # ------------------------------------------------------------------ #
    # Classification runs                                                  #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def create_classification_run(self, model_used: str) -> ClassificationRun:
        """Create a run in ``running`` state.

        Must be atomic with respect to other runs: raises
        ClassificationRunActiveError if a run is already ``running``.
        """

    @abstractmethod
    def update_classification_run_progress(self, run_id: int, comments_processed: int, errors: int) -> None:
        """Record progress counters for a running run."""

    @abstractmethod
    def complete_classification_run(self, run_id: int, status: str, comments_processed: int, errors: int) -> None:
        """Finalize a run: set status, final counters and completed_at."""

    @abstractmethod
    def get_active_classification_run(self) -> ClassificationRun | None:
        """Return the run currently in ``running`` state, if any."""

    @abstractmethod
    def get_latest_classification_run(self) -> ClassificationRun | None:
        """Return the most recently created run, if any."""

    @abstractmethod
    def get_classification_run_history(self, limit: int = 10) -> list[ClassificationRun]:
        """Return the newest runs first, capped at limit."""

    # ------------------------------------------------------------------ #
    # Classifications                                                      #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def get_unclassified_review_comments(self) -> list[CommentToClassify]:
        """Return inline review comments with no classification row."""

    @abstractmethod
    def get_unclassified_pr_comments(self) -> list[CommentToClassify]:
        """Return PR (issue-style) comments with no classification row."""

    @abstractmethod
    def insert_classification(self, row: ClassificationInsert) -> Classification:
        """Persist an automatic classification, overwriting any existing row for the same comment."""

    @abstractmethod
    def upsert_manual_classification(self, comment_type: str, comment_id: int, category: str) -> Classification:
        """Persist a manual override for a comment (is_manual, no run id)."""

    @abstractmethod
    def get_classification(self, comment_type: str, comment_id: int) -> Classification | None:
        """Return the classification for a comment, if any."""

    @abstractmethod
    def get_classification_summary(self, run_id: int) -> ClassificationSummary:
        """Return per-category counts and average confidence for one run."""

    @abstractmethod
    def get_category_distribution(self) -> CategoryDistribution:
        """Return per-category counts over all classifications plus the unclassified count."""

    @abstractmethod
    def get_category_distribution_by_reviewer(
        self,
        reviewers: list[str] | None = None,
        start: str | None = None,
        end: str | None = None,
    ) -> list[ReviewerCategoryCount]:
        """Return classified comment counts grouped by (reviewer, category).

        ``start`` is inclusive and ``end`` exclusive; both are ISO-8601 strings
        compared against the comment's created_at.
        """

    # ------------------------------------------------------------------ #
    # Synced GitHub data                                                   #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def upsert_pull_request(self, record: PullRequestRecord) -> None:
        """Insert or update a pull request keyed by github_id."""

    @abstractmethod
    def upsert_review_comment(self, record: ReviewCommentRecord) -> None:
        """Insert or update an inline review comment keyed by github_id."""

    @abstractmethod
    def upsert_pr_comment(self, record: PrCommentRecord) -> None:
        """Insert or update a PR comment keyed by github_id."""

    # ------------------------------------------------------------------ #
    # Reports over synced pull requests                                    #
    # ------------------------------------------------------------------ #
    #
    # Every report takes the same filters: ``start`` inclusive and ``end``
    # exclusive as ISO-8601 strings, ``authors`` limiting to those GitHub
    # usernames (an empty list matches nothing), ``repository`` as owner/name.

    @abstractmethod
    def get_pull_request_labels(
        self,
        repository: str | None = None,
        authors: list[str] | None = None,
        start: str | None = None,
        end: str | None = None,
    ) -> list[PullRequestLabel]:
        """Return the author and AI label of each PR created in the window."""

    @abstractmethod
    def get_prs_opened_by_author(
        self,
        repository: str | None = None,
        authors: list[str] | None = None,
        start: str | None = None,
        end: str | None = None,
    ) -> list[AuthorCount]:
        """Count PRs by author, windowed on created_at."""

    @abstractmethod
    def get_prs_merged_by_author(
        self,
        repository: str | None = None,
        authors: list[str] | None = None,
        start: str | None = None,
        end: str | None = None,
    ) -> list[AuthorCount]:
        """Count merged PRs by author, windowed on merged_at."""

    @abstractmethod
    def get_prs_per_week(
        self,
        merged: bool = False,
        repository: str | None = None,
        authors: list[str] | None = None,
        start: str | None = None,
        end: str | None = None,
    ) -> list[WeekCount]:
        """Count opened (or merged) PRs per week, oldest week first."""

    @abstractmethod
    def get_avg_pr_size_by_author(
        self,
        repository: str | None = None,
        authors: list[str] | None = None,
        start: str | None = None,
        end: str | None = None,
    ) -> list[PrSize]:
        """Average additions, deletions and changed files per author."""

    @abstractmethod
    def get_review_comment_counts(
        self,
        repository: str | None = None,
        reviewers: list[str] | None = None,
        start: str | None = None,
        end: str | None = None,
    ) -> list[ReviewerCommentCount]:
        """Inline review comments and distinct PRs reviewed per reviewer."""

    def close(self) -> None:
        """Release any resources held by the store (connections, file handles).

        Optional: subclasses that need cleanup should override this.
        Default is a no-op so callers can always call close() safely.
        """
