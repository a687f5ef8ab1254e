"""PR throughput: opened vs merged pull requests, per author or per week."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from prpulse_store.models import AuthorCount, ReviewerCommentCount, WeekCount


@dataclass
class ThroughputRow:
    key: str  # author login or "YYYY-Www" week
    opened: int = 0
    merged: int = 0


def merge_throughput(opened: Iterable[AuthorCount], merged: Iterable[AuthorCount]) -> list[ThroughputRow]:
    """Join opened and merged counts on author.

    An author who only merged in the window (a PR opened earlier) still gets
    a row. Sorted by opened, then merged, descending.
    """
    rows: dict[str, ThroughputRow] = {}
    for c in opened:
        rows.setdefault(c.author, ThroughputRow(key=c.author)).opened = c.count
    for c in merged:
        rows.setdefault(c.author, ThroughputRow(key=c.author)).merged = c.count
    return sorted(rows.values(), key=lambda r: (-r.opened, -r.merged, r.key))


def merge_weekly_throughput(opened: Iterable[WeekCount], merged: Iterable[WeekCount]) -> list[ThroughputRow]:
    rows: dict[str, ThroughputRow] = {}
    for c in opened:
        rows.setdefault(c.week, ThroughputRow(key=c.week)).opened = c.count
    for c in merged:
        rows.setdefault(c.week, ThroughputRow(key=c.week)).merged = c.count
    return [rows[week] for week in sorted(rows)]


def comments_per_review(row: ReviewerCommentCount) -> float:
    """Average inline comments per reviewed PR, 0.0 when nothing was reviewed."""
    if not row.prs_reviewed:
        return 0.0
    return row.total_comments / row.prs_reviewed
