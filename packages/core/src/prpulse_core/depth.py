"""Review depth score: how "deep" a reviewer's comments are, from 0 to 100.

The score is the count-weighted mean of per-category weights, so it reflects
the mix of a reviewer's comments rather than their volume.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from prpulse_core.classifier import CommentCategory
from prpulse_store.models import CategoryCount, ReviewerCategoryCount
from prpulse_store.utils import round_half_up

# Higher weight = deeper, more architectural review behaviour.
REVIEW_DEPTH_WEIGHTS: dict[str, int] = {
    CommentCategory.ARCHITECTURE_DESIGN.value: 100,
    CommentCategory.SECURITY.value: 90,
    CommentCategory.BUG_CORRECTNESS.value: 85,
    CommentCategory.PERFORMANCE.value: 75,
    CommentCategory.MISSING_TEST_COVERAGE.value: 65,
    CommentCategory.READABILITY_MAINTAINABILITY.value: 45,
    CommentCategory.QUESTION_CLARIFICATION.value: 30,
    CommentCategory.NITPICK_STYLE.value: 10,
}


@dataclass
class DepthScoreResult:
    reviewer: str
    score: int
    total_comments: int
    category_breakdown: list[CategoryCount] = field(default_factory=list)


def compute_depth_score(category_counts: Iterable[CategoryCount]) -> int:
    """Return round(sum(count * weight) / sum(count)), half rounding up.

    Categories outside the taxonomy weigh 0. An empty distribution scores 0.
    """
    category_counts = list(category_counts)
    total = sum(c.count for c in category_counts)
    if total == 0:
        return 0
    weighted = sum(c.count * REVIEW_DEPTH_WEIGHTS.get(c.category, 0) for c in category_counts)
    return round_half_up(weighted / total)


def compute_reviewer_depth_scores(rows: Iterable[ReviewerCategoryCount]) -> list[DepthScoreResult]:
    by_reviewer: dict[str, list[CategoryCount]] = {}
    for row in rows:
        by_reviewer.setdefault(row.reviewer, []).append(CategoryCount(category=row.category, count=row.count))

    results = [
        DepthScoreResult(
            reviewer=reviewer,
            score=compute_depth_score(breakdown),
            total_comments=sum(c.count for c in breakdown),
            category_breakdown=breakdown,
        )
        for reviewer, breakdown in by_reviewer.items()
    ]
    results.sort(key=lambda r: (-r.score, r.reviewer))
    return results
