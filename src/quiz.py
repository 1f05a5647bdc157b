"""Multiple-choice quizzes generated by the model."""

from __future__ import annotations

import json
import logging
import re

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

logger = logging.getLogger(__name__)

_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")


class QuizQuestion(BaseModel):
    """One question with its options and the index of the right one."""

    model_config = ConfigDict(populate_by_name=True)

    question: str
    options: list[str]
    correct_answer: int = Field(alias="correctAnswer")
    explanation: str | None = None

    @model_validator(mode="after")
    def _answer_in_range(self) -> "QuizQuestion":
        if not 0 <= self.correct_answer < len(self.options):
            raise ValueError(
                f"correctAnswer {self.correct_answer} out of range for {len(self.options)} options"
            )
        return self


class AnsweredQuestion(QuizQuestion):
    """A quiz question together with the option the user picked."""

    user_answer: int | None = Field(default=None, alias="userAnswer")


def parse_quiz_response(text: str) -> list[QuizQuestion] | None:
    """Parse a model's quiz answer into questions.

    The model is asked for a bare JSON array but often wraps it in prose
    or a code fence, so the outermost ``[...]`` span is tried first.
    Returns None when nothing usable can be parsed.
    """
    match = _JSON_ARRAY.search(text or "")
    payload = match.group(0) if match else text
    try:
        data = json.loads(payload)
    except (json.JSONDecodeError, TypeError):
        logger.warning("Quiz response is not valid JSON")
        return None

    if not isinstance(data, list):
        logger.warning("Quiz response is not a JSON array")
        return None

    try:
        return [QuizQuestion.model_validate(item) for item in data]
    except ValidationError as exc:
        logger.warning("Quiz response has malformed questions: %s", exc)
        return None


class QuizSession:
    """Walks a user through a quiz one question at a time."""

    def __init__(self, questions: list[QuizQuestion]) -> None:
        if not questions:
            raise ValueError("A quiz needs at least one question")
        self.questions = questions
        self.index = 0
        self.score = 0
        self.completed = False
        self.answers: list[int | None] = [None] * len(questions)

    @property
    def current(self) -> QuizQuestion:
        return self.questions[self.index]

    @property
    def answered(self) -> bool:
        return self.answers[self.index] is not None

    def answer(self, option: int) -> bool:
        """Answer the current question; returns whether it was right.

        A question can only be answered once.
        """
        if self.completed:
            raise RuntimeError("Quiz already completed")
        if self.answered:
            return self.answers[self.index] == self.current.correct_answer
        if not 0 <= option < len(self.current.options):
            raise ValueError(f"No option {option} for this question")

        self.answers[self.index] = option
        correct = option == self.current.correct_answer
        if correct:
            self.score += 1
        return correct

    def advance(self) -> None:
        """Move to the next question, or complete the quiz after the last."""
        if self.index < len(self.questions) - 1:
            self.index += 1
        else:
            self.completed = True

    def verdict(self) -> str:
        total = len(self.questions)
        if self.score == total:
            return "Perfect score! Outstanding!"
        if self.score > total / 2:
            return "Good job! Keep studying."
        return "Keep practicing!"

    def results(self) -> list[AnsweredQuestion]:
        """Questions paired with the user's answers, ready to be saved."""
        return [
            AnsweredQuestion(**q.model_dump(), user_answer=answer)
            for q, answer in zip(self.questions, self.answers)
        ]
