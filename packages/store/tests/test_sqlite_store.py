"""Tests for SQLiteStore."""

from __future__ import annotations

import pytest

from prpulse_store.base import ClassificationRunActiveError
from prpulse_store.models import (
    AuthorCount,
    CategoryCount,
    ClassificationInsert,
    PrCommentRecord,
    PrSize,
    PullRequestRecord,
    ReviewCommentRecord,
    ReviewerCategoryCount,
    ReviewerCommentCount,
    WeekCount,
)
from prpulse_store.sqlite import SQLiteStore


@pytest.fixture
def store(tmp_path):
    s = SQLiteStore(db_path=str(tmp_path / "test.db"))
    yield s
    s.close()


def _pr(
    github_id=100,
    title="Add login",
    ai_generated="human",
    repository="acme/api",
    author="octocat",
    created_at="2026-01-01T00:00:00+00:00",
    merged_at=None,
    additions=0,
    deletions=0,
    changed_files=0,
):
    return PullRequestRecord(
        github_id=github_id,
        number=github_id - 99,
        title=title,
        author=author,
        state="merged" if merged_at else "open",
        created_at=created_at,
        merged_at=merged_at,
        additions=additions,
        deletions=deletions,
        changed_files=changed_files,
        ai_generated=ai_generated,
        repository=repository,
    )


def _review(github_id, reviewer="alice", created_at="2026-01-02T00:00:00+00:00", pr_id=100):
    return ReviewCommentRecord(
        github_id=github_id,
        pull_request_github_id=pr_id,
        reviewer=reviewer,
        body=f"review {github_id}",
        created_at=created_at,
        updated_at=created_at,
        file_path="src/app.py",
        line=3,
    )


def _comment(github_id, author="bob", created_at="2026-01-02T00:00:00+00:00", pr_id=100):
    return PrCommentRecord(
        github_id=github_id,
        pull_request_github_id=pr_id,
        author=author,
        body=f"comment {github_id}",
        created_at=created_at,
        updated_at=created_at,
    )


def _insert(comment_type, comment_id, category="security", confidence=80, run_id=None):
    return ClassificationInsert(
        comment_type=comment_type,
        comment_id=comment_id,
        category=category,
        confidence=confidence,
        model_used="claude-test",
        classification_run_id=run_id,
        reasoning="because",
    )


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class TestSettings:
    def test_missing_setting_is_none(self, store):
        assert store.get_setting("llm_provider") is None

    def test_set_and_overwrite(self, store):
        store.set_setting("llm_provider", "anthropic")
        store.set_setting("llm_provider", "openai")
        assert store.get_setting("llm_provider") == "openai"

    def test_delete(self, store):
        store.set_setting("llm_model", "gpt-4o")
        store.delete_setting("llm_model")
        assert store.get_setting("llm_model") is None

    def test_persists_across_connections(self, tmp_path):
        path = str(tmp_path / "persist.db")
        first = SQLiteStore(db_path=path)
        first.set_setting("llm_model", "claude-x")
        first.close()

        second = SQLiteStore(db_path=path)
        assert second.get_setting("llm_model") == "claude-x"
        second.close()


# ---------------------------------------------------------------------------
# Classification runs
# ---------------------------------------------------------------------------


class TestClassificationRuns:
    def test_create_starts_running(self, store):
        run = store.create_classification_run("claude-test")
        assert run.status == "running"
        assert run.comments_processed == 0
        assert run.errors == 0
        assert run.completed_at is None
        assert run.model_used == "claude-test"
        assert store.get_active_classification_run().id == run.id

    def test_second_running_run_is_rejected(self, store):
        run = store.create_classification_run("claude-test")
        with pytest.raises(ClassificationRunActiveError) as exc_info:
            store.create_classification_run("claude-test")
        assert exc_info.value.active_run_id == run.id
        assert len(store.get_classification_run_history()) == 1

    def test_new_run_allowed_after_completion(self, store):
        first = store.create_classification_run("claude-test")
        store.complete_classification_run(first.id, "success", 3, 1)
        second = store.create_classification_run("claude-test")
        assert second.id != first.id
        assert store.get_active_classification_run().id == second.id

    def test_progress_and_completion(self, store):
        run = store.create_classification_run("claude-test")
        store.update_classification_run_progress(run.id, 2, 1)
        assert store.get_active_classification_run().comments_processed == 2

        store.complete_classification_run(run.id, "error", 2, 5)
        latest = store.get_latest_classification_run()
        assert latest.status == "error"
        assert latest.errors == 5
        assert latest.completed_at is not None
        assert store.get_active_classification_run() is None

    def test_history_newest_first_and_limited(self, store):
        ids = []
        for _ in range(3):
            run = store.create_classification_run("claude-test")
            store.complete_classification_run(run.id, "success", 0, 0)
            ids.append(run.id)
        history = store.get_classification_run_history(limit=2)
        assert [r.id for r in history] == [ids[2], ids[1]]

    def test_no_runs(self, store):
        assert store.get_latest_classification_run() is None
        assert store.get_classification_run_history() == []


# ---------------------------------------------------------------------------
# Comments and classifications
# ---------------------------------------------------------------------------


class TestClassifications:
    @pytest.fixture
    def seeded(self, store):
        store.upsert_pull_request(_pr())
        store.upsert_review_comment(_review(1))
        store.upsert_review_comment(_review(2))
        store.upsert_pr_comment(_comment(3))
        return store

    def test_unclassified_comments_carry_context(self, seeded):
        reviews = seeded.get_unclassified_review_comments()
        comments = seeded.get_unclassified_pr_comments()

        assert [c.body for c in reviews] == ["review 1", "review 2"]
        assert reviews[0].comment_type == "review_comment"
        assert reviews[0].file_path == "src/app.py"
        assert reviews[0].pr_title == "Add login"
        assert comments[0].comment_type == "pr_comment"
        assert comments[0].file_path is None

    def test_classified_comments_are_excluded(self, seeded):
        first = seeded.get_unclassified_review_comments()[0]
        seeded.insert_classification(_insert("review_comment", first.comment_id))
        remaining = seeded.get_unclassified_review_comments()
        assert [c.body for c in remaining] == ["review 2"]
        assert len(seeded.get_unclassified_pr_comments()) == 1

    def test_resync_keeps_comment_identity(self, seeded):
        before = seeded.get_unclassified_review_comments()[0].comment_id
        seeded.upsert_review_comment(_review(1))
        assert seeded.get_unclassified_review_comments()[0].comment_id == before

    def test_insert_twice_keeps_one_row(self, store):
        store.insert_classification(_insert("review_comment", 1, category="security"))
        row = store.insert_classification(_insert("review_comment", 1, category="performance", confidence=60))
        assert row.category == "performance"
        assert row.confidence == 60
        assert row.is_manual is False
        assert store.get_category_distribution().classified == [CategoryCount("performance", 1)]

    def test_same_id_different_type_are_distinct(self, store):
        store.insert_classification(_insert("review_comment", 1))
        store.insert_classification(_insert("pr_comment", 1, category="nitpick_style"))
        assert store.get_classification("review_comment", 1).category == "security"
        assert store.get_classification("pr_comment", 1).category == "nitpick_style"

    def test_manual_reclassification_overrides(self, store):
        run = store.create_classification_run("claude-test")
        store.insert_classification(_insert("pr_comment", 5, run_id=run.id))

        row = store.upsert_manual_classification("pr_comment", 5, "question_clarification")

        assert row.category == "question_clarification"
        assert row.is_manual is True
        assert row.classification_run_id is None
        assert row.confidence == 100
        assert row.model_used == "manual"
        assert row.reasoning is None
        assert store.get_classification_summary(run.id).total_classified == 0

    def test_manual_classification_of_new_comment(self, store):
        row = store.upsert_manual_classification("review_comment", 9, "bug_correctness")
        assert row.is_manual is True
        assert store.get_classification("review_comment", 9).category == "bug_correctness"

    def test_missing_classification_is_none(self, store):
        assert store.get_classification("review_comment", 404) is None


class TestSummaries:
    def test_run_summary(self, store):
        run = store.create_classification_run("claude-test")
        store.insert_classification(_insert("review_comment", 1, "security", 80, run.id))
        store.insert_classification(_insert("review_comment", 2, "security", 85, run.id))
        store.insert_classification(_insert("pr_comment", 1, "nitpick_style", 90, run.id))
        store.insert_classification(_insert("pr_comment", 2, "performance", 10, run_id=None))

        summary = store.get_classification_summary(run.id)

        assert summary.total_classified == 3
        assert summary.categories == [CategoryCount("security", 2), CategoryCount("nitpick_style", 1)]
        # (80 + 85 + 90) / 3 = 85.0
        assert summary.average_confidence == 85

    def test_average_confidence_rounds_half_up(self, store):
        run = store.create_classification_run("claude-test")
        store.insert_classification(_insert("review_comment", 1, confidence=80, run_id=run.id))
        store.insert_classification(_insert("review_comment", 2, confidence=81, run_id=run.id))
        assert store.get_classification_summary(run.id).average_confidence == 81

    def test_empty_run_summary(self, store):
        run = store.create_classification_run("claude-test")
        summary = store.get_classification_summary(run.id)
        assert summary.total_classified == 0
        assert summary.categories == []
        assert summary.average_confidence == 0

    def test_distribution_counts_unclassified(self, store):
        store.upsert_pull_request(_pr())
        store.upsert_review_comment(_review(1))
        store.upsert_pr_comment(_comment(2))
        comment_id = store.get_unclassified_review_comments()[0].comment_id
        store.insert_classification(_insert("review_comment", comment_id))

        distribution = store.get_category_distribution()

        assert distribution.classified == [CategoryCount("security", 1)]
        assert distribution.unclassified_count == 1

    def test_distribution_by_reviewer_merges_comment_kinds(self, store):
        store.upsert_pull_request(_pr())
        store.upsert_review_comment(_review(1, reviewer="alice"))
        store.upsert_pr_comment(_comment(2, author="alice"))
        store.upsert_review_comment(_review(3, reviewer="bob"))
        for c in store.get_unclassified_review_comments() + store.get_unclassified_pr_comments():
            store.insert_classification(_insert(c.comment_type, c.comment_id, "security"))

        rows = store.get_category_distribution_by_reviewer()

        assert rows == [
            ReviewerCategoryCount("alice", "security", 2),
            ReviewerCategoryCount("bob", "security", 1),
        ]

    def test_distribution_by_reviewer_filters(self, store):
        store.upsert_pull_request(_pr())
        store.upsert_review_comment(_review(1, reviewer="alice", created_at="2026-01-01T00:00:00+00:00"))
        store.upsert_review_comment(_review(2, reviewer="alice", created_at="2026-02-01T00:00:00+00:00"))
        store.upsert_review_comment(_review(3, reviewer="bob", created_at="2026-01-15T00:00:00+00:00"))
        for c in store.get_unclassified_review_comments():
            store.insert_classification(_insert(c.comment_type, c.comment_id, "bug_correctness"))

        january = store.get_category_distribution_by_reviewer(start="2026-01-01", end="2026-02-01")
        assert {(r.reviewer, r.count) for r in january} == {("alice", 1), ("bob", 1)}

        only_bob = store.get_category_distribution_by_reviewer(reviewers=["bob"])
        assert only_bob == [ReviewerCategoryCount("bob", "bug_correctness", 1)]

        assert store.get_category_distribution_by_reviewer(reviewers=[]) == []


# ---------------------------------------------------------------------------
# Synced pull requests
# ---------------------------------------------------------------------------


class TestPullRequestReports:
    @pytest.fixture
    def synced(self, store):
        prs = [
            _pr(100, ai_generated="ai", author="alice", created_at="2026-02-02T10:00:00+00:00",
                merged_at="2026-02-03T10:00:00+00:00", additions=100, deletions=10, changed_files=3),
            _pr(101, ai_generated="human", author="alice", created_at="2026-02-10T10:00:00+00:00",
                merged_at="2026-02-11T10:00:00+00:00", additions=201, deletions=20, changed_files=4),
            _pr(102, ai_generated="human", author="bob", created_at="2026-02-04T10:00:00+00:00",
                additions=50, deletions=5, changed_files=1),
            _pr(103, ai_generated="mixed", author="bob", created_at="2026-01-20T10:00:00+00:00",
                merged_at="2026-02-05T10:00:00+00:00", repository="acme/web"),
        ]
        for pr in prs:
            store.upsert_pull_request(pr)
        return store

    def test_labels_in_window(self, synced):
        labels = synced.get_pull_request_labels(start="2026-02-01", end="2026-03-01")
        assert [(r.author, r.ai_generated) for r in labels] == [
            ("alice", "ai"),
            ("alice", "human"),
            ("bob", "human"),
        ]

    def test_labels_filtered_by_repository_and_author(self, synced):
        assert [r.ai_generated for r in synced.get_pull_request_labels(repository="acme/web")] == ["mixed"]
        assert len(synced.get_pull_request_labels(authors=["bob"])) == 2
        assert synced.get_pull_request_labels(authors=[]) == []

    def test_upsert_updates_label(self, store):
        store.upsert_pull_request(_pr(100, title="WIP", ai_generated="human"))
        store.upsert_pull_request(_pr(100, title="Add login", ai_generated="ai"))
        assert [r.ai_generated for r in store.get_pull_request_labels()] == ["ai"]

    def test_opened_by_author(self, synced):
        rows = synced.get_prs_opened_by_author(start="2026-02-01", end="2026-03-01")
        assert rows == [AuthorCount("alice", 2), AuthorCount("bob", 1)]

    def test_merged_by_author_windows_on_merge_date(self, synced):
        rows = synced.get_prs_merged_by_author(start="2026-02-01", end="2026-03-01")
        # bob's PR 103 was opened in January but merged in February; PR 102 is unmerged.
        assert rows == [AuthorCount("alice", 2), AuthorCount("bob", 1)]
        assert synced.get_prs_merged_by_author(end="2026-02-04") == [AuthorCount("alice", 1)]

    def test_per_week(self, synced):
        opened = synced.get_prs_per_week(start="2026-02-01", end="2026-03-01")
        merged = synced.get_prs_per_week(merged=True, repository="acme/api")
        # %W weeks start on Monday; 2026-02-02 is a Monday.
        assert opened == [WeekCount("2026-W05", 2), WeekCount("2026-W06", 1)]
        assert merged == [WeekCount("2026-W05", 1), WeekCount("2026-W06", 1)]

    def test_avg_pr_size_rounds_half_up(self, synced):
        rows = synced.get_avg_pr_size_by_author(repository="acme/api")
        assert rows == [
            PrSize(author="alice", pr_count=2, avg_additions=151, avg_deletions=15, avg_changed_files=4),
            PrSize(author="bob", pr_count=1, avg_additions=50, avg_deletions=5, avg_changed_files=1),
        ]

    def test_review_comment_counts(self, synced):
        synced.upsert_review_comment(_review(1, reviewer="carol", pr_id=100))
        synced.upsert_review_comment(_review(2, reviewer="carol", pr_id=100))
        synced.upsert_review_comment(_review(3, reviewer="carol", pr_id=101))
        synced.upsert_review_comment(_review(4, reviewer="dave", pr_id=102, created_at="2025-12-01T00:00:00+00:00"))

        rows = synced.get_review_comment_counts(start="2026-01-01")

        assert rows == [ReviewerCommentCount(reviewer="carol", total_comments=3, prs_reviewed=2)]
        assert synced.get_review_comment_counts(reviewers=[]) == []
        assert [r.reviewer for r in synced.get_review_comment_counts()] == ["carol", "dave"]

    def test_empty_store(self, store):
        assert store.get_pull_request_labels() == []
        assert store.get_prs_opened_by_author() == []
        assert store.get_prs_per_week() == []
        assert store.get_avg_pr_size_by_author() == []
        assert store.get_review_comment_counts() == []
