"""
Answer Grader
--------------
Grades a student's free-text answer against a rubric with the
text-generation service.  The model must reply with a JSON object
matching GradingResult; scores are clamped into range.

If the service fails or the reply does not parse, a heuristic grade is
computed from answer length and reasoning keywords, capped at 75% of
the maximum score and flagged with low confidence.
"""
from __future__ import annotations

from loguru import logger
from pydantic import BaseModel

from edurag.errors import GenerationError, OutputParseError
from edurag.generation.generator import AnswerGenerator
from edurag.generation.prompts import GRADING_PROMPT
from edurag.generation.structured import parse_model
from edurag.utils.helpers import truncate_text

FALLBACK_CONFIDENCE = 0.3
FALLBACK_CAP = 0.75
KEYWORD_POINTS = 5

REASONING_KEYWORDS: tuple[str, ...] = (
    "because", "therefore", "however", "example", "explain", "analyze",
    "compare", "contrast", "result", "conclusion", "evidence", "theory",
)


class GradingResult(BaseModel):
    score: float
    feedback: str = "AI grading completed. Please review manually."
    confidence: float = 0.5
    used_fallback: bool = False


def heuristic_grade(answer: str, max_score: float = 100.0, note: str = "") -> GradingResult:
    """Length + keyword scoring on a 0-100 scale, rescaled to max_score."""
    word_count = len(answer.split())
    points = 0
    if word_count > 50:
        points += 30
    elif word_count > 20:
        points += 20
    elif word_count > 10:
        points += 10

    lowered = answer.lower()
    found = sum(1 for keyword in REASONING_KEYWORDS if keyword in lowered)
    points = min(points + found * KEYWORD_POINTS, FALLBACK_CAP * 100)

    feedback = (
        f"Automatic grading based on text analysis. Word count: {word_count}. "
        f"Found {found} reasoning indicators. Please review manually for accuracy."
    )
    if note:
        feedback += f" ({truncate_text(note, 200)})"
    return GradingResult(
        score=points / 100 * max_score,
        feedback=feedback,
        confidence=FALLBACK_CONFIDENCE,
        used_fallback=True,
    )


class AnswerGrader:
    def __init__(self, generator: AnswerGenerator) -> None:
        self.generator = generator

    def grade(
        self,
        question: str,
        answer: str,
        rubric: str,
        max_score: float = 100.0,
        context: str = "",
    ) -> GradingResult:
        prompt = GRADING_PROMPT.format(
            question=question,
            rubric=rubric,
            context=context or "(none)",
            max_score=max_score,
            answer=answer,
        )
        try:
            raw = self.generator.complete(prompt)
            result = parse_model(raw, GradingResult)
        except (GenerationError, OutputParseError) as exc:
            logger.warning(f"[Grader] {type(exc).__name__}: {exc} -- using heuristic grade")
            return heuristic_grade(answer, max_score, note=type(exc).__name__)

        return result.model_copy(update={
            "score": max(0.0, min(result.score, max_score)),
            "confidence": max(0.0, min(result.confidence, 1.0)),
            "used_fallback": False,
        })
