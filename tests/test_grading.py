"""Tests for answer grading."""
from __future__ import annotations

import pytest

from edurag.errors import TransportError
from edurag.generation.generator import AnswerGenerator
from edurag.generation.grading import AnswerGrader, heuristic_grade
from edurag.generation.retry import RetryPolicy
from tests.conftest import FakeService


def _words(count: int) -> str:
    return " ".join(["word"] * count)


def _grader(replies, fast_retry: RetryPolicy) -> AnswerGrader:
    return AnswerGrader(AnswerGenerator(FakeService(replies), retry_policy=fast_retry))


class TestHeuristicGrade:
    def test_length_and_keywords(self) -> None:
        result = heuristic_grade(_words(58) + " because therefore")

        # 60 words -> 30 points, two reasoning keywords -> 10 points
        assert result.score == pytest.approx(40)
        assert result.confidence == 0.3
        assert result.used_fallback

    def test_capped_at_three_quarters(self) -> None:
        keywords = (
            "because therefore however example explain analyze "
            "compare contrast result conclusion evidence theory"
        )
        result = heuristic_grade(_words(60) + " " + keywords)
        assert result.score == pytest.approx(75)

    def test_scaled_to_max_score(self) -> None:
        result = heuristic_grade(_words(25), max_score=10)
        assert result.score == pytest.approx(2.0)

    def test_short_answer_scores_zero(self) -> None:
        assert heuristic_grade("yes").score == 0


class TestAnswerGrader:
    def test_model_grade(self, fast_retry: RetryPolicy) -> None:
        grader = _grader(['{"score": 8, "feedback": "Clear and correct.", "confidence": 0.9}'], fast_retry)
        result = grader.grade("What is x?", "x is 4", rubric="x = 4", max_score=10)

        assert result.score == 8
        assert result.feedback == "Clear and correct."
        assert result.confidence == 0.9
        assert not result.used_fallback

    def test_scores_are_clamped(self, fast_retry: RetryPolicy) -> None:
        grader = _grader(['{"score": 150, "feedback": "Great", "confidence": 3}'], fast_retry)
        result = grader.grade("Q", "A", rubric="R", max_score=100)

        assert result.score == 100
        assert result.confidence == 1.0

    def test_unparseable_reply_uses_heuristic(self, fast_retry: RetryPolicy) -> None:
        grader = _grader(["Nice answer, I'd give it a B."], fast_retry)
        result = grader.grade("Q", _words(30), rubric="R")

        assert result.used_fallback
        assert result.score == pytest.approx(20)

    def test_service_failure_uses_heuristic(self, fast_retry: RetryPolicy) -> None:
        grader = _grader([TransportError("down"), TransportError("down")], fast_retry)
        result = grader.grade("Q", _words(30), rubric="R")

        assert result.used_fallback
        assert "TransportError" in result.feedback
