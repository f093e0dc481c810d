"""
Quiz Generator
---------------
Asks the text-generation service for multiple-choice questions about a
document and validates them against a strict schema.

When the service fails or its output does not parse, a deterministic
subject-specific quiz is built instead, so callers always get questions.
"""
from __future__ import annotations

from loguru import logger
from pydantic import BaseModel, Field, field_validator

from edurag.chunking.chunker import SentenceChunker
from edurag.errors import GenerationError, OutputParseError
from edurag.generation.generator import AnswerGenerator
from edurag.generation.prompts import QUIZ_PROMPT
from edurag.generation.structured import parse_list
from edurag.schemas import Document

QUIZ_LENGTH = 5


class QuizQuestion(BaseModel):
    question: str = Field(min_length=1)
    options: list[str] = Field(min_length=4, max_length=4)
    correct_answer: int = Field(ge=0, le=3)

    @field_validator("options")
    @classmethod
    def _options_not_blank(cls, options: list[str]) -> list[str]:
        if any(not o.strip() for o in options):
            raise ValueError("options must not be blank")
        return options


def _q(question: str, options: list[str], correct: int) -> QuizQuestion:
    return QuizQuestion(question=question, options=options, correct_answer=correct)


_SUBJECT_QUESTIONS: dict[str, list[tuple[str, list[str], int]]] = {
    "Mathematics": [
        ("In mathematics, what is typically the first step in problem solving?",
         ["Calculate immediately", "Understand the problem", "Guess the answer", "Use a calculator"], 1),
        ("Which mathematical principle is fundamental to most calculations?",
         ["Order of operations", "Random guessing", "Using only addition", "Avoiding fractions"], 0),
    ],
    "Science": [
        ("What scientific method step comes after forming a hypothesis?",
         ["Conclusion", "Experimentation", "Observation", "Theory"], 1),
        ("In scientific research, what makes a good hypothesis?",
         ["It's always correct", "It can be tested", "It's very complex", "It's based on opinion"], 1),
    ],
    "History": [
        ("What is the primary purpose of studying historical documents?",
         ["Entertainment", "Understanding the past", "Memorizing dates", "Learning languages"], 1),
        ("What helps historians determine the reliability of a source?",
         ["Its age", "Who wrote it and when", "Its length", "Its language"], 1),
    ],
    "English": [
        ("What is the main purpose of analyzing literature?",
         ["To memorize plots", "To understand themes and meanings", "To count words", "To practice reading"], 1),
        ("What makes a strong thesis statement?",
         ["It's very long", "It states a clear argument", "It asks questions", "It's at the end"], 1),
    ],
    "Computer Science": [
        ("What is the first step in solving a programming problem?",
         ["Write code immediately", "Understand the requirements", "Choose a language", "Test the solution"], 1),
        ("What is the purpose of debugging in programming?",
         ["To make code longer", "To find and fix errors", "To add features", "To change languages"], 1),
    ],
}


def fallback_quiz(document: Document) -> list[QuizQuestion]:
    """Deterministic questions built from the document's title and subject."""
    questions = [
        _q(
            f'Based on the title "{document.title}", what would you expect to learn?',
            [f"{document.subject} fundamentals", "Unrelated topics",
             "Historical facts only", "Mathematical formulas only"],
            0,
        )
    ]
    subject_specific = _SUBJECT_QUESTIONS.get(document.subject)
    if subject_specific:
        questions.extend(_q(*entry) for entry in subject_specific)
    else:
        questions.extend([
            _q(f'What is the main focus of the document "{document.title}"?',
               ["Basic concepts", "Advanced theory", "Practical applications", "All of the above"], 3),
            _q("This document belongs to which subject area?",
               [document.subject, "General studies", "Mixed topics", "Unknown"], 0),
            _q("When studying this material, what approach is most effective?",
               ["Memorization only", "Understanding concepts", "Skipping difficult parts", "Reading once"], 1),
        ])
    return questions[:QUIZ_LENGTH]


class QuizGenerator:
    """Builds up to QUIZ_LENGTH validated questions for one document."""

    def __init__(self, generator: AnswerGenerator, chunker: SentenceChunker | None = None) -> None:
        self.generator = generator
        self.chunker = chunker or SentenceChunker()

    def generate_quiz(self, document: Document, count: int = QUIZ_LENGTH) -> list[QuizQuestion]:
        prompt = QUIZ_PROMPT.format(
            count=count,
            document_text=self.chunker.extract_text(document),
            subject=document.subject,
        )
        try:
            raw = self.generator.complete(prompt)
            questions = parse_list(raw, QuizQuestion)
        except (GenerationError, OutputParseError) as exc:
            logger.warning(
                f"[Quiz] {type(exc).__name__} for {document.title!r}: {exc} -- using fallback quiz"
            )
            return fallback_quiz(document)

        logger.info(f"[Quiz] {len(questions)} questions generated for {document.title!r}")
        return questions[:count]
