"""SQLiteStore: local file-based store for synced PR data and classifications.

Schema:
  settings: key/value application settings
  pull_requests: one row per synced PR, keyed by GitHub id
  review_comments: inline code review comments
  pr_comments: general (issue-style) PR comments
  comment_classifications: one row per (comment_type, comment_id)
  classification_runs: one row per batch classification run; a partial
    unique index allows a single 'running' row
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime, timezone

from prpulse_store.base import BaseStore, ClassificationRunActiveError
from prpulse_store.models import (
    AuthorCount,
    CategoryCount,
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
from prpulse_store.utils import round_half_up

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS settings (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS pull_requests (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    github_id       INTEGER NOT NULL UNIQUE,
    repository      TEXT NOT NULL DEFAULT '',
    number          INTEGER NOT NULL,
    title           TEXT NOT NULL,
    author          TEXT NOT NULL,
    state           TEXT NOT NULL,
    branch_name     TEXT,
    created_at      TEXT NOT NULL,
    merged_at       TEXT,
    additions       INTEGER NOT NULL DEFAULT 0,
    deletions       INTEGER NOT NULL DEFAULT 0,
    changed_files   INTEGER NOT NULL DEFAULT 0,
    ai_generated    TEXT NOT NULL DEFAULT 'human'
);
CREATE INDEX IF NOT EXISTS idx_pull_requests_author ON pull_requests (author);
CREATE INDEX IF NOT EXISTS idx_pull_requests_repository ON pull_requests (repository);

CREATE TABLE IF NOT EXISTS review_comments (
    id                      INTEGER PRIMARY KEY AUTOINCREMENT,
    github_id               INTEGER NOT NULL UNIQUE,
    pull_request_github_id  INTEGER NOT NULL REFERENCES pull_requests (github_id),
    reviewer                TEXT NOT NULL,
    body                    TEXT NOT NULL,
    file_path               TEXT,
    line                    INTEGER,
    created_at              TEXT NOT NULL,
    updated_at              TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_review_comments_reviewer ON review_comments (reviewer);

CREATE TABLE IF NOT EXISTS pr_comments (
    id                      INTEGER PRIMARY KEY AUTOINCREMENT,
    github_id               INTEGER NOT NULL UNIQUE,
    pull_request_github_id  INTEGER NOT NULL REFERENCES pull_requests (github_id),
    author                  TEXT NOT NULL,
    body                    TEXT NOT NULL,
    created_at              TEXT NOT NULL,
    updated_at              TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_pr_comments_author ON pr_comments (author);

CREATE TABLE IF NOT EXISTS classification_runs (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    started_at          TEXT NOT NULL,
    completed_at        TEXT,
    status              TEXT NOT NULL,
    comments_processed  INTEGER NOT NULL DEFAULT 0,
    errors              INTEGER NOT NULL DEFAULT 0,
    model_used          TEXT NOT NULL
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_classification_runs_single_running
    ON classification_runs (status) WHERE status = 'running';

CREATE TABLE IF NOT EXISTS comment_classifications (
    id                      INTEGER PRIMARY KEY AUTOINCREMENT,
    comment_type            TEXT NOT NULL,
    comment_id              INTEGER NOT NULL,
    category                TEXT NOT NULL,
    confidence              INTEGER NOT NULL,
    model_used              TEXT NOT NULL,
    classification_run_id   INTEGER REFERENCES classification_runs (id),
    classified_at           TEXT NOT NULL,
    reasoning               TEXT,
    is_manual               INTEGER NOT NULL DEFAULT 0,
    UNIQUE (comment_type, comment_id)
);
CREATE INDEX IF NOT EXISTS idx_comment_classifications_run
    ON comment_classifications (classification_run_id);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteStore(BaseStore):
    """Stores synced PR data and classifications in a local SQLite database file.

    The database file path defaults to `.prpulse.db` in the current working
    directory. Configure via .prpulse.yml: `store_path: /path/to/prpulse.db`.

    The connection is shared with the background classification worker, so
    every statement runs under a lock.
    """

    def __init__(self, db_path: str = ".prpulse.db"):
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        with self._lock:
            cursor = self._conn.execute(sql, params)
            self._conn.commit()
            return cursor

    def _fetchall(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, params).fetchall()

    def _fetchone(self, sql: str, params: tuple = ()) -> sqlite3.Row | None:
        with self._lock:
            return self._conn.execute(sql, params).fetchone()

    # ------------------------------------------------------------------ #
    # Settings                                                             #
    # ------------------------------------------------------------------ #

    def get_setting(self, key: str) -> str | None:
        row = self._fetchone("SELECT value FROM settings WHERE key=?", (key,))
        return row["value"] if row else None

    def set_setting(self, key: str, value: str) -> None:
        now = _now()
        self._execute(
            """
            INSERT INTO settings (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT (key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at
            """,
            (key, value, now),
        )

    def delete_setting(self, key: str) -> None:
        self._execute("DELETE FROM settings WHERE key=?", (key,))

    # ------------------------------------------------------------------ #
    # Classification runs                                                  #
    # ------------------------------------------------------------------ #

    def create_classification_run(self, model_used: str) -> ClassificationRun:
        with self._lock:
            try:
                cursor = self._conn.execute(
                    """
                    INSERT INTO classification_runs
                      (started_at, status, comments_processed, errors, model_used)
                    VALUES (?, 'running', 0, 0, ?)
                    """,
                    (_now(), model_used),
                )
                self._conn.commit()
            except sqlite3.IntegrityError:
                self._conn.rollback()
                active = self.get_active_classification_run()
                raise ClassificationRunActiveError(active.id if active else None) from None
            return self._get_run(cursor.lastrowid)

    def update_classification_run_progress(self, run_id: int, comments_processed: int, errors: int) -> None:
        self._execute(
            "UPDATE classification_runs SET comments_processed=?, errors=? WHERE id=?",
            (comments_processed, errors, run_id),
        )

    def complete_classification_run(self, run_id: int, status: str, comments_processed: int, errors: int) -> None:
        self._execute(
            """
            UPDATE classification_runs
               SET status=?, comments_processed=?, errors=?, completed_at=?
             WHERE id=?
            """,
            (status, comments_processed, errors, _now(), run_id),
        )

    def get_active_classification_run(self) -> ClassificationRun | None:
        row = self._fetchone("SELECT * FROM classification_runs WHERE status='running'")
        return self._row_to_run(row) if row else None

    def get_latest_classification_run(self) -> ClassificationRun | None:
        row = self._fetchone("SELECT * FROM classification_runs ORDER BY id DESC LIMIT 1")
        return self._row_to_run(row) if row else None

    def get_classification_run_history(self, limit: int = 10) -> list[ClassificationRun]:
        rows = self._fetchall("SELECT * FROM classification_runs ORDER BY id DESC LIMIT ?", (limit,))
        return [self._row_to_run(r) for r in rows]

    def _get_run(self, run_id: int) -> ClassificationRun:
        row = self._fetchone("SELECT * FROM classification_runs WHERE id=?", (run_id,))
        return self._row_to_run(row)

    # ------------------------------------------------------------------ #
    # Classifications                                                      #
    # ------------------------------------------------------------------ #

    def get_unclassified_review_comments(self) -> list[CommentToClassify]:
        rows = self._fetchall(
            """
            SELECT rc.id AS comment_id, rc.body, rc.file_path, pr.title AS pr_title
              FROM review_comments rc
              JOIN pull_requests pr ON pr.github_id = rc.pull_request_github_id
             WHERE rc.id NOT IN (
                   SELECT comment_id FROM comment_classifications WHERE comment_type='review_comment'
             )
             ORDER BY rc.id
            """
        )
        return [
            CommentToClassify(
                comment_type="review_comment",
                comment_id=r["comment_id"],
                body=r["body"],
                file_path=r["file_path"],
                pr_title=r["pr_title"],
            )
            for r in rows
        ]

    def get_unclassified_pr_comments(self) -> list[CommentToClassify]:
        rows = self._fetchall(
            """
            SELECT c.id AS comment_id, c.body, pr.title AS pr_title
              FROM pr_comments c
              JOIN pull_requests pr ON pr.github_id = c.pull_request_github_id
             WHERE c.id NOT IN (
                   SELECT comment_id FROM comment_classifications WHERE comment_type='pr_comment'
             )
             ORDER BY c.id
            """
        )
        return [
            CommentToClassify(
                comment_type="pr_comment",
                comment_id=r["comment_id"],
                body=r["body"],
                file_path=None,
                pr_title=r["pr_title"],
            )
            for r in rows
        ]

    def insert_classification(self, row: ClassificationInsert) -> Classification:
        self._execute(
            """
            INSERT INTO comment_classifications
              (comment_type, comment_id, category, confidence, model_used,
               classification_run_id, classified_at, reasoning, is_manual)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0)
            ON CONFLICT (comment_type, comment_id) DO UPDATE SET
              category=excluded.category,
              confidence=excluded.confidence,
              model_used=excluded.model_used,
              classification_run_id=excluded.classification_run_id,
              classified_at=excluded.classified_at,
              reasoning=excluded.reasoning,
              is_manual=0
            """,
            (
                row.comment_type,
                row.comment_id,
                row.category,
                row.confidence,
                row.model_used,
                row.classification_run_id,
                _now(),
                row.reasoning,
            ),
        )
        return self.get_classification(row.comment_type, row.comment_id)

    def upsert_manual_classification(self, comment_type: str, comment_id: int, category: str) -> Classification:
        self._execute(
            """
            INSERT INTO comment_classifications
              (comment_type, comment_id, category, confidence, model_used,
               classification_run_id, classified_at, reasoning, is_manual)
            VALUES (?, ?, ?, 100, 'manual', NULL, ?, NULL, 1)
            ON CONFLICT (comment_type, comment_id) DO UPDATE SET
              category=excluded.category,
              confidence=100,
              model_used='manual',
              classification_run_id=NULL,
              classified_at=excluded.classified_at,
              reasoning=NULL,
              is_manual=1
            """,
            (comment_type, comment_id, category, _now()),
        )
        return self.get_classification(comment_type, comment_id)

    def get_classification(self, comment_type: str, comment_id: int) -> Classification | None:
        row = self._fetchone(
            "SELECT * FROM comment_classifications WHERE comment_type=? AND comment_id=?",
            (comment_type, comment_id),
        )
        return self._row_to_classification(row) if row else None

    def get_classification_summary(self, run_id: int) -> ClassificationSummary:
        rows = self._fetchall(
            """
            SELECT category, COUNT(*) AS count
              FROM comment_classifications
             WHERE classification_run_id=?
             GROUP BY category
             ORDER BY count DESC, category
            """,
            (run_id,),
        )
        agg = self._fetchone(
            """
            SELECT COUNT(*) AS total, AVG(confidence) AS avg_confidence
              FROM comment_classifications
             WHERE classification_run_id=?
            """,
            (run_id,),
        )
        avg = agg["avg_confidence"] if agg and agg["avg_confidence"] is not None else 0
        return ClassificationSummary(
            categories=[CategoryCount(category=r["category"], count=r["count"]) for r in rows],
            total_classified=agg["total"] if agg else 0,
            average_confidence=round_half_up(avg),
        )

    def get_category_distribution(self) -> CategoryDistribution:
        rows = self._fetchall(
            """
            SELECT category, COUNT(*) AS count
              FROM comment_classifications
             GROUP BY category
             ORDER BY count DESC, category
            """
        )
        classified = [CategoryCount(category=r["category"], count=r["count"]) for r in rows]
        totals = self._fetchone(
            """
            SELECT (SELECT COUNT(*) FROM review_comments) + (SELECT COUNT(*) FROM pr_comments) AS total
            """
        )
        total_comments = totals["total"] if totals else 0
        total_classified = sum(c.count for c in classified)
        return CategoryDistribution(
            classified=classified,
            unclassified_count=max(total_comments - total_classified, 0),
        )

    def get_category_distribution_by_reviewer(
        self,
        reviewers: list[str] | None = None,
        start: str | None = None,
        end: str | None = None,
    ) -> list[ReviewerCategoryCount]:
        if reviewers is not None and not reviewers:
            return []

        merged: dict[tuple[str, str], int] = {}
        for table, author_col, comment_type in (
            ("review_comments", "reviewer", "review_comment"),
            ("pr_comments", "author", "pr_comment"),
        ):
            clauses = ["cc.comment_type=?"]
            params: list = [comment_type]
            if reviewers:
                clauses.append(f"c.{author_col} IN ({', '.join('?' for _ in reviewers)})")
                params.extend(reviewers)
            if start:
                clauses.append("c.created_at >= ?")
                params.append(start)
            if end:
                clauses.append("c.created_at < ?")
                params.append(end)
            rows = self._fetchall(
                f"""
                SELECT c.{author_col} AS reviewer, cc.category AS category, COUNT(*) AS count
                  FROM comment_classifications cc
                  JOIN {table} c ON c.id = cc.comment_id
                 WHERE {' AND '.join(clauses)}
                 GROUP BY c.{author_col}, cc.category
                """,
                tuple(params),
            )
            for r in rows:
                key = (r["reviewer"], r["category"])
                merged[key] = merged.get(key, 0) + r["count"]

        return [
            ReviewerCategoryCount(reviewer=reviewer, category=category, count=count)
            for (reviewer, category), count in sorted(merged.items())
        ]

    # ------------------------------------------------------------------ #
    # Synced GitHub data                                                   #
    # ------------------------------------------------------------------ #

    def upsert_pull_request(self, record: PullRequestRecord) -> None:
        self._execute(
            """
            INSERT INTO pull_requests
              (github_id, repository, number, title, author, state, branch_name,
               created_at, merged_at, additions, deletions, changed_files, ai_generated)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (github_id) DO UPDATE SET
              repository=excluded.repository,
              number=excluded.number,
              title=excluded.title,
              author=excluded.author,
              state=excluded.state,
              branch_name=excluded.branch_name,
              created_at=excluded.created_at,
              merged_at=excluded.merged_at,
              additions=excluded.additions,
              deletions=excluded.deletions,
              changed_files=excluded.changed_files,
              ai_generated=excluded.ai_generated
            """,
            (
                record.github_id,
                record.repository,
                record.number,
                record.title,
                record.author,
                record.state,
                record.branch_name,
                record.created_at,
                record.merged_at,
                record.additions,
                record.deletions,
                record.changed_files,
                record.ai_generated,
            ),
        )

    def upsert_review_comment(self, record: ReviewCommentRecord) -> None:
        self._execute(
            """
            INSERT INTO review_comments
              (github_id, pull_request_github_id, reviewer, body, file_path, line, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (github_id) DO UPDATE SET
              body=excluded.body,
              file_path=excluded.file_path,
              line=excluded.line,
              updated_at=excluded.updated_at
            """,
            (
                record.github_id,
                record.pull_request_github_id,
                record.reviewer,
                record.body,
                record.file_path,
                record.line,
                record.created_at,
                record.updated_at,
            ),
        )

    def upsert_pr_comment(self, record: PrCommentRecord) -> None:
        self._execute(
            """
            INSERT INTO pr_comments
              (github_id, pull_request_github_id, author, body, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT (github_id) DO UPDATE SET
              body=excluded.body,
              updated_at=excluded.updated_at
            """,
            (
                record.github_id,
                record.pull_request_github_id,
                record.author,
                record.body,
                record.created_at,
                record.updated_at,
            ),
        )

    # ------------------------------------------------------------------ #
    # Reports over synced pull requests                                    #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _window(
        date_col: str,
        author_col: str,
        repository: str | None,
        authors: list[str] | None,
        start: str | None,
        end: str | None,
    ) -> tuple[str, list]:
        clauses = ["1=1"]
        params: list = []
        if repository is not None:
            clauses.append("pr.repository = ?")
            params.append(repository)
        if authors is not None:
            clauses.append(f"{author_col} IN ({', '.join('?' for _ in authors)})")
            params.extend(authors)
        if start:
            clauses.append(f"{date_col} >= ?")
            params.append(start)
        if end:
            clauses.append(f"{date_col} < ?")
            params.append(end)
        return " AND ".join(clauses), params

    def get_pull_request_labels(self, repository=None, authors=None, start=None, end=None) -> list[PullRequestLabel]:
        if authors is not None and not authors:
            return []
        where, params = self._window("pr.created_at", "pr.author", repository, authors, start, end)
        rows = self._fetchall(
            f"SELECT pr.author, pr.ai_generated FROM pull_requests pr WHERE {where} ORDER BY pr.id",
            tuple(params),
        )
        return [PullRequestLabel(author=r["author"], ai_generated=r["ai_generated"]) for r in rows]

    def _count_by_author(self, date_col, repository, authors, start, end) -> list[AuthorCount]:
        if authors is not None and not authors:
            return []
        where, params = self._window(date_col, "pr.author", repository, authors, start, end)
        rows = self._fetchall(
            f"""
            SELECT pr.author, COUNT(*) AS count
              FROM pull_requests pr
             WHERE {date_col} IS NOT NULL AND {where}
             GROUP BY pr.author
             ORDER BY count DESC, pr.author
            """,
            tuple(params),
        )
        return [AuthorCount(author=r["author"], count=r["count"]) for r in rows]

    def get_prs_opened_by_author(self, repository=None, authors=None, start=None, end=None) -> list[AuthorCount]:
        return self._count_by_author("pr.created_at", repository, authors, start, end)

    def get_prs_merged_by_author(self, repository=None, authors=None, start=None, end=None) -> list[AuthorCount]:
        return self._count_by_author("pr.merged_at", repository, authors, start, end)

    def get_prs_per_week(self, merged=False, repository=None, authors=None, start=None, end=None) -> list[WeekCount]:
        if authors is not None and not authors:
            return []
        date_col = "pr.merged_at" if merged else "pr.created_at"
        where, params = self._window(date_col, "pr.author", repository, authors, start, end)
        rows = self._fetchall(
            f"""
            SELECT strftime('%Y-W%W', {date_col}) AS week, COUNT(*) AS count
              FROM pull_requests pr
             WHERE {date_col} IS NOT NULL AND {where}
             GROUP BY week
             ORDER BY week
            """,
            tuple(params),
        )
        return [WeekCount(week=r["week"], count=r["count"]) for r in rows]

    def get_avg_pr_size_by_author(self, repository=None, authors=None, start=None, end=None) -> list[PrSize]:
        if authors is not None and not authors:
            return []
        where, params = self._window("pr.created_at", "pr.author", repository, authors, start, end)
        rows = self._fetchall(
            f"""
            SELECT pr.author,
                   COUNT(*) AS pr_count,
                   AVG(pr.additions) AS avg_additions,
                   AVG(pr.deletions) AS avg_deletions,
                   AVG(pr.changed_files) AS avg_changed_files
              FROM pull_requests pr
             WHERE {where}
             GROUP BY pr.author
             ORDER BY pr.author
            """,
            tuple(params),
        )
        return [
            PrSize(
                author=r["author"],
                pr_count=r["pr_count"],
                avg_additions=round_half_up(r["avg_additions"]),
                avg_deletions=round_half_up(r["avg_deletions"]),
                avg_changed_files=round_half_up(r["avg_changed_files"]),
            )
            for r in rows
        ]

    def get_review_comment_counts(
        self, repository=None, reviewers=None, start=None, end=None
    ) -> list[ReviewerCommentCount]:
        if reviewers is not None and not reviewers:
            return []
        where, params = self._window("rc.created_at", "rc.reviewer", repository, reviewers, start, end)
        rows = self._fetchall(
            f"""
            SELECT rc.reviewer,
                   COUNT(*) AS total_comments,
                   COUNT(DISTINCT rc.pull_request_github_id) AS prs_reviewed
              FROM review_comments rc
              JOIN pull_requests pr ON pr.github_id = rc.pull_request_github_id
             WHERE {where}
             GROUP BY rc.reviewer
             ORDER BY rc.reviewer
            """,
            tuple(params),
        )
        return [
            ReviewerCommentCount(
                reviewer=r["reviewer"],
                total_comments=r["total_comments"],
                prs_reviewed=r["prs_reviewed"],
            )
            for r in rows
        ]

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @staticmethod
    def _row_to_run(row: sqlite3.Row) -> ClassificationRun:
        return ClassificationRun(
            id=row["id"],
            started_at=row["started_at"],
            completed_at=row["completed_at"],
            status=row["status"],
            comments_processed=row["comments_processed"],
            errors=row["errors"],
            model_used=row["model_used"],
        )

    @staticmethod
    def _row_to_classification(row: sqlite3.Row) -> Classification:
        return Classification(
            id=row["id"],
            comment_type=row["comment_type"],
            comment_id=row["comment_id"],
            category=row["category"],
            confidence=row["confidence"],
            model_used=row["model_used"],
            classification_run_id=row["classification_run_id"],
            classified_at=row["classified_at"],
            reasoning=row["reasoning"],
            is_manual=bool(row["is_manual"]),
        )
