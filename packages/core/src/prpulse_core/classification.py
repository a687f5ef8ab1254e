"""Batch classification of review and PR comments.

classify_comments() drives one classification run end to end:

    create run (running) → gather unclassified comments
        → for each batch: classify each comment sequentially → record progress
        → finalize run (success | error) → summarize

A single comment failing (LLM error, unparsable output, unknown category)
is counted and skipped; it never aborts the batch or the run. Anything else
that goes wrong once the run exists (comment retrieval, progress updates, a
failing progress callback) finalizes the run as error before propagating,
so the single running slot is always released.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from prpulse_core.classifier import (
    ClassificationInput,
    CommentCategory,
    build_classification_prompt,
    is_classification_error,
    parse_classification_response,
)
from prpulse_store.models import COMMENT_TYPES, ClassificationInsert, ClassificationSummary

if TYPE_CHECKING:
    from prpulse_core.providers.base import BaseLLMService
    from prpulse_store.base import BaseStore
    from prpulse_store.models import Classification, ClassificationRun, CommentToClassify

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10

AUTO_CLASSIFY_SETTING = "auto_classify_on_sync"

ProgressCallback = Callable[[int, int, int], None]


@dataclass
class ClassifyResult:
    run_id: int
    status: str  # "success" | "error"
    comments_processed: int
    total_comments: int
    errors: int
    summary: ClassificationSummary = field(default_factory=ClassificationSummary)


def classify_comments(
    store: BaseStore,
    llm_service: BaseLLMService,
    batch_size: int = DEFAULT_BATCH_SIZE,
    on_progress: ProgressCallback | None = None,
) -> ClassifyResult:
    """Classify every unclassified comment and return the finalized run result.

    Raises ClassificationRunActiveError if another run is in progress.
    ``on_progress(processed, errors, total)`` is called after each batch.
    """
    _check_batch_size(batch_size)
    model_used = store.get_setting("llm_model") or "unknown"
    run = store.create_classification_run(model_used)
    return _process_run(store, llm_service, run, model_used, batch_size, on_progress)


def start_classification(
    store: BaseStore,
    llm_service: BaseLLMService,
    batch_size: int = DEFAULT_BATCH_SIZE,
    executor: ThreadPoolExecutor | None = None,
    on_progress: ProgressCallback | None = None,
) -> tuple[ClassificationRun, Future]:
    """Claim a classification run now and process it in the background.

    The run row is created on the calling thread, so a conflicting active run
    surfaces immediately as ClassificationRunActiveError instead of inside
    the future. Callers poll the store (or the future) for progress.
    """
    _check_batch_size(batch_size)
    model_used = store.get_setting("llm_model") or "unknown"
    run = store.create_classification_run(model_used)

    own_executor = executor is None
    if own_executor:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="prpulse-classify")
    future = executor.submit(_process_run, store, llm_service, run, model_used, batch_size, on_progress)
    if own_executor:
        # Lets the worker finish and then releases the thread.
        executor.shutdown(wait=False)
    logger.info("Started classification run #%d in the background", run.id)
    return run, future


def reclassify_comment(store: BaseStore, comment_type: str, comment_id: int, category: str) -> Classification:
    """Manually override a comment's category.

    The stored row is marked is_manual with no run id, replacing any
    automatic classification for the same comment.
    """
    if comment_type not in COMMENT_TYPES:
        raise ValueError(f"Invalid comment type: {comment_type!r}. Choose one of {', '.join(COMMENT_TYPES)}.")
    parsed = CommentCategory.parse(category)
    if parsed is None:
        raise ValueError(f"Invalid category: {category!r}.")
    return store.upsert_manual_classification(comment_type, comment_id, parsed.value)


def auto_classify_enabled(store: BaseStore) -> bool:
    """Whether sync should classify new comments. On unless the setting is "false"."""
    return store.get_setting(AUTO_CLASSIFY_SETTING) != "false"


def _check_batch_size(batch_size: int) -> None:
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1, got {batch_size}")


def _process_run(
    store: BaseStore,
    llm_service: BaseLLMService,
    run: ClassificationRun,
    model_used: str,
    batch_size: int,
    on_progress: ProgressCallback | None,
) -> ClassifyResult:
    try:
        comments = store.get_unclassified_review_comments() + store.get_unclassified_pr_comments()
    except Exception:
        # Release the single running slot before propagating.
        store.complete_classification_run(run.id, "error", 0, 0)
        raise

    total = len(comments)
    logger.info("Classification run #%d: %d unclassified comment(s)", run.id, total)

    if total == 0:
        store.complete_classification_run(run.id, "success", 0, 0)
        return ClassifyResult(run_id=run.id, status="success", comments_processed=0, total_comments=0, errors=0)

    processed = 0
    errors = 0
    completed = False

    try:
        for start in range(0, total, batch_size):
            for comment in comments[start : start + batch_size]:
                if _classify_one(store, llm_service, run.id, model_used, comment):
                    processed += 1
                else:
                    errors += 1

            store.update_classification_run_progress(run.id, processed, errors)
            if on_progress is not None:
                on_progress(processed, errors, total)

        status = "success" if processed > 0 else "error"
        store.complete_classification_run(run.id, status, processed, errors)
        completed = True
        logger.info(
            "Classification run #%d finished: %s (%d classified, %d error(s))",
            run.id,
            status,
            processed,
            errors,
        )

        summary = store.get_classification_summary(run.id)
    except Exception:
        logger.exception("Classification run #%d aborted", run.id)
        if not completed:
            store.complete_classification_run(run.id, "error", processed, errors)
        raise

    return ClassifyResult(
        run_id=run.id,
        status=status,
        comments_processed=processed,
        total_comments=total,
        errors=errors,
        summary=summary,
    )


def _classify_one(
    store: BaseStore,
    llm_service: BaseLLMService,
    run_id: int,
    model_used: str,
    comment: CommentToClassify,
) -> bool:
    """Classify and persist a single comment. Returns False on any failure."""
    prompt = build_classification_prompt(
        ClassificationInput(body=comment.body, file_path=comment.file_path, pr_title=comment.pr_title)
    )
    try:
        response = llm_service.classify(prompt)
    except Exception as e:
        logger.warning("Failed to classify %s #%d: %s", comment.comment_type, comment.comment_id, e)
        return False

    result = parse_classification_response(response.content)
    if is_classification_error(result):
        logger.warning(
            "Unusable classification for %s #%d: %s",
            comment.comment_type,
            comment.comment_id,
            result.error,
        )
        return False

    try:
        store.insert_classification(
            ClassificationInsert(
                comment_type=comment.comment_type,
                comment_id=comment.comment_id,
                category=result.category.value,
                confidence=result.confidence,
                model_used=model_used,
                classification_run_id=run_id,
                reasoning=result.reasoning,
            )
        )
    except Exception as e:
        logger.warning("Failed to save classification for %s #%d: %s", comment.comment_type, comment.comment_id, e)
        return False
    return True
