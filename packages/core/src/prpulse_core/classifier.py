"""Comment taxonomy, classification prompt builder and response parser.

The parser never raises: anything that is not a well-formed classification
comes back as a ClassificationParseError so the batch job can count it and
move on.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass
from enum import Enum

from prpulse_store.utils import round_half_up

logger = logging.getLogger(__name__)


class CommentCategory(str, Enum):
    BUG_CORRECTNESS = "bug_correctness"
    SECURITY = "security"
    PERFORMANCE = "performance"
    READABILITY_MAINTAINABILITY = "readability_maintainability"
    NITPICK_STYLE = "nitpick_style"
    ARCHITECTURE_DESIGN = "architecture_design"
    MISSING_TEST_COVERAGE = "missing_test_coverage"
    QUESTION_CLARIFICATION = "question_clarification"

    @classmethod
    def parse(cls, value: object) -> CommentCategory | None:
        """Return the member for value, or None if it is not in the taxonomy."""
        if not isinstance(value, str):
            return None
        try:
            return cls(value)
        except ValueError:
            return None


COMMENT_CATEGORIES = [c.value for c in CommentCategory]

_CATEGORY_DESCRIPTIONS = {
    CommentCategory.BUG_CORRECTNESS: "Points out bugs, logic errors, incorrect behavior, or missing null checks",
    CommentCategory.SECURITY: "Flags security vulnerabilities, injection risks, or unsafe practices",
    CommentCategory.PERFORMANCE: "Highlights performance bottlenecks, inefficient algorithms, or unnecessary work",
    CommentCategory.READABILITY_MAINTAINABILITY: "Suggests clearer naming, better structure, or easier-to-read code",
    CommentCategory.NITPICK_STYLE: "Minor style/formatting preferences, often subjective (e.g. trailing commas, spacing)",
    CommentCategory.ARCHITECTURE_DESIGN: (
        "Addresses design patterns, system structure, API contracts, or architectural concerns"
    ),
    CommentCategory.MISSING_TEST_COVERAGE: "Points out missing tests, untested edge cases, or poor test quality",
    CommentCategory.QUESTION_CLARIFICATION: "Asks a question or seeks clarification about intent or behavior",
}


@dataclass(frozen=True)
class ClassificationInput:
    body: str
    file_path: str | None = None
    pr_title: str | None = None
    diff_snippet: str | None = None


@dataclass(frozen=True)
class ClassificationResult:
    category: CommentCategory
    confidence: int  # 0-100
    reasoning: str


@dataclass(frozen=True)
class ClassificationParseError:
    error: str
    raw_content: str


def build_classification_prompt(data: ClassificationInput) -> str:
    category_lines = "\n".join(f"- {c.value}: {_CATEGORY_DESCRIPTIONS[c]}" for c in CommentCategory)

    context_lines = []
    if data.pr_title:
        context_lines.append(f"PR Title: {data.pr_title}")
    if data.file_path:
        context_lines.append(f"File: {data.file_path}")
    if data.diff_snippet:
        context_lines.append(f"Diff snippet:\n{data.diff_snippet}")
    context_section = "\n\nContext:\n" + "\n".join(context_lines) if context_lines else ""

    return f"""You are a code review analyst. Classify the following code review comment into exactly one category.

Categories and their meaning:
{category_lines}

Rules:
- If the comment is very short or lacks specific content (e.g. "LGTM", "+1"), classify as \
"question_clarification" with low confidence (0.1-0.3).
- If the comment appears bot-generated (automated messages, dependency update notices), classify as \
"nitpick_style" with confidence 0.4.
- If the comment covers multiple topics, pick the single most dominant category.
- Always return valid JSON with no markdown fences, no extra text.{context_section}

Comment to classify:
\"\"\"
{data.body}
\"\"\"

Respond with this exact JSON structure:
{{
  "category": "<one of the {len(COMMENT_CATEGORIES)} categories>",
  "confidence": <float between 0.0 and 1.0>,
  "reasoning": "<one sentence explaining the classification>"
}}"""


def _normalize_confidence(value: object) -> int | None:
    # bool is an int subclass; true/false is not a confidence.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    # json.loads accepts NaN and Infinity.
    if not math.isfinite(value) or value < 0 or value > 1:
        return None
    return round_half_up(value * 100)


def parse_classification_response(raw: str) -> ClassificationResult | ClassificationParseError:
    """Parse the model's raw text into a ClassificationResult.

    Tolerates an outer ```json fence. Confidence must be a 0-1 number and is
    rescaled to a 0-100 integer.
    """
    cleaned = re.sub(r"^```(?:json)?\s*", "", (raw or "").strip())
    cleaned = re.sub(r"\s*```$", "", cleaned.strip())

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        logger.debug("Classification response is not valid JSON: %s", (raw or "")[:200])
        return ClassificationParseError("Response is not valid JSON", raw)

    if not isinstance(parsed, dict):
        return ClassificationParseError("Response is not a JSON object", raw)

    category = CommentCategory.parse(parsed.get("category"))
    if category is None:
        return ClassificationParseError(f"Invalid category: {parsed.get('category')}", raw)

    confidence = _normalize_confidence(parsed.get("confidence"))
    if confidence is None:
        return ClassificationParseError(f"Invalid confidence: {parsed.get('confidence')}", raw)

    reasoning = parsed.get("reasoning")
    if not isinstance(reasoning, str) or not reasoning.strip():
        return ClassificationParseError("Missing or empty reasoning", raw)

    return ClassificationResult(category=category, confidence=confidence, reasoning=reasoning.strip())


def is_classification_error(result: ClassificationResult | ClassificationParseError) -> bool:
    return isinstance(result, ClassificationParseError)
