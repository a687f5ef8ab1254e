"""Tests for the comment taxonomy, prompt builder and response parser."""

import json

import pytest

from prpulse_core.classifier import (
    COMMENT_CATEGORIES,
    ClassificationInput,
    ClassificationParseError,
    ClassificationResult,
    CommentCategory,
    build_classification_prompt,
    is_classification_error,
    parse_classification_response,
)


def _response(**overrides):
    payload = {"category": "bug_correctness", "confidence": 0.9, "reasoning": "Flags a null dereference."}
    payload.update(overrides)
    return json.dumps(payload)


class TestCommentCategory:
    def test_taxonomy_has_eight_categories(self):
        assert len(COMMENT_CATEGORIES) == 8
        assert "architecture_design" in COMMENT_CATEGORIES

    def test_parse_known_value(self):
        assert CommentCategory.parse("security") is CommentCategory.SECURITY

    @pytest.mark.parametrize("value", ["Security", "unknown", "", None, 3])
    def test_parse_rejects_anything_else(self, value):
        assert CommentCategory.parse(value) is None


# ---------------------------------------------------------------------------
# build_classification_prompt
# ---------------------------------------------------------------------------


class TestBuildClassificationPrompt:
    def test_lists_every_category(self):
        prompt = build_classification_prompt(ClassificationInput(body="Looks off"))
        for category in COMMENT_CATEGORIES:
            assert f"- {category}:" in prompt

    def test_contains_comment_body(self):
        prompt = build_classification_prompt(ClassificationInput(body="This loop is O(n^2)"))
        assert "This loop is O(n^2)" in prompt

    def test_context_lines_included_when_present(self):
        data = ClassificationInput(
            body="nit",
            file_path="src/app.py",
            pr_title="Add login",
            diff_snippet="+x = 1",
        )
        prompt = build_classification_prompt(data)
        assert "PR Title: Add login" in prompt
        assert "File: src/app.py" in prompt
        assert "Diff snippet:\n+x = 1" in prompt

    def test_no_context_section_without_context(self):
        prompt = build_classification_prompt(ClassificationInput(body="nit"))
        assert "Context:" not in prompt

    def test_describes_expected_json_shape(self):
        prompt = build_classification_prompt(ClassificationInput(body="nit"))
        assert '"category"' in prompt
        assert '"confidence"' in prompt
        assert '"reasoning"' in prompt


# ---------------------------------------------------------------------------
# parse_classification_response
# ---------------------------------------------------------------------------


class TestParseClassificationResponse:
    def test_parses_bare_json(self):
        result = parse_classification_response(_response())
        assert result == ClassificationResult(
            category=CommentCategory.BUG_CORRECTNESS,
            confidence=90,
            reasoning="Flags a null dereference.",
        )
        assert is_classification_error(result) is False

    def test_strips_markdown_fences(self):
        result = parse_classification_response(f"```json\n{_response()}\n```")
        assert isinstance(result, ClassificationResult)
        assert result.category is CommentCategory.BUG_CORRECTNESS

    def test_strips_plain_fences(self):
        result = parse_classification_response(f"```\n{_response()}\n```")
        assert isinstance(result, ClassificationResult)

    @pytest.mark.parametrize("raw,expected", [(0.2, 20), (0.125, 13), (0, 0), (1, 100), (0.75, 75)])
    def test_confidence_normalized_to_percentage(self, raw, expected):
        result = parse_classification_response(_response(confidence=raw))
        assert result.confidence == expected

    @pytest.mark.parametrize(
        "raw",
        [-0.1, 1.5, 75, 101, "0.9", True, None, float("nan"), float("inf"), float("-inf")],
    )
    def test_invalid_confidence_is_error(self, raw):
        result = parse_classification_response(_response(confidence=raw))
        assert isinstance(result, ClassificationParseError)
        assert "confidence" in result.error

    def test_unknown_category_is_error(self):
        result = parse_classification_response(_response(category="praise"))
        assert isinstance(result, ClassificationParseError)
        assert "praise" in result.error

    @pytest.mark.parametrize("reasoning", ["", "   ", None, 42])
    def test_missing_reasoning_is_error(self, reasoning):
        result = parse_classification_response(_response(reasoning=reasoning))
        assert isinstance(result, ClassificationParseError)

    def test_reasoning_is_trimmed(self):
        result = parse_classification_response(_response(reasoning="  Clear.  "))
        assert result.reasoning == "Clear."

    def test_invalid_json_is_error_with_raw_content(self):
        result = parse_classification_response("I think this is a bug.")
        assert is_classification_error(result) is True
        assert result.raw_content == "I think this is a bug."

    def test_non_object_is_error(self):
        result = parse_classification_response('["bug_correctness", 0.9]')
        assert isinstance(result, ClassificationParseError)
        assert "object" in result.error

    def test_empty_response_is_error(self):
        assert isinstance(parse_classification_response(""), ClassificationParseError)
