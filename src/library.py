"""Local records of uploaded documents, chat messages and quiz results.

Single-user and client-local: each collection is a JSON array kept under
one key of a :class:`~studybuddy.storage.KeyValueStore`.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime
from typing import Literal, TypeVar

from pydantic import BaseModel, Field, ValidationError

from studybuddy.quiz import AnsweredQuestion
from studybuddy.storage import KeyValueStore

logger = logging.getLogger(__name__)

DOCUMENTS_KEY = "studybuddy-documents"
CHATS_KEY = "studybuddy-chats"
QUIZZES_KEY = "studybuddy-quizzes"


def _new_id() -> str:
    return str(uuid.uuid4())


class DocumentRecord(BaseModel):
    """An uploaded document and its extracted text."""

    id: str = Field(default_factory=_new_id)
    name: str
    extracted_text: str
    created_at: datetime = Field(default_factory=datetime.now)


class ChatRecord(BaseModel):
    """One chat message; ``document_id`` is None for general chat."""

    id: str = Field(default_factory=_new_id)
    document_id: str | None = None
    role: Literal["user", "model"]
    content: str
    created_at: datetime = Field(default_factory=datetime.now)


class QuizRecord(BaseModel):
    """A finished quiz and its score."""

    id: str = Field(default_factory=_new_id)
    document_id: str
    score: int
    questions: list[AnsweredQuestion] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)


RecordT = TypeVar("RecordT", bound=BaseModel)


class Library:
    """Documents, chats and quiz results stored in a key-value store."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def _read(self, key: str, model: type[RecordT]) -> list[RecordT]:
        raw = self._store.get(key)
        if not raw:
            return []
        try:
            data = json.loads(raw)
            return [model.model_validate(item) for item in data]
        except (json.JSONDecodeError, TypeError, ValidationError):
            logger.warning("Corrupt %s collection, starting fresh", key)
            return []

    def _append(self, key: str, record: RecordT) -> RecordT:
        records = self._read(key, type(record))
        records.append(record)
        payload = [r.model_dump(mode="json") for r in records]
        self._store.set(key, json.dumps(payload))
        return record

    # --- documents ----------------------------------------------------------

    def add_document(self, name: str, extracted_text: str) -> DocumentRecord:
        return self._append(DOCUMENTS_KEY, DocumentRecord(name=name, extracted_text=extracted_text))

    def documents(self) -> list[DocumentRecord]:
        """All documents, newest first."""
        docs = self._read(DOCUMENTS_KEY, DocumentRecord)
        return sorted(docs, key=lambda d: d.created_at, reverse=True)

    def get_document(self, document_id: str) -> DocumentRecord | None:
        for doc in self._read(DOCUMENTS_KEY, DocumentRecord):
            if doc.id == document_id:
                return doc
        return None

    # --- chats --------------------------------------------------------------

    def add_chat(
        self,
        document_id: str | None,
        role: Literal["user", "model"],
        content: str,
    ) -> ChatRecord:
        return self._append(
            CHATS_KEY, ChatRecord(document_id=document_id, role=role, content=content)
        )

    def chats_for(self, document_id: str | None) -> list[ChatRecord]:
        """Messages for *document_id* (None for general chat), oldest first."""
        chats = [c for c in self._read(CHATS_KEY, ChatRecord) if c.document_id == document_id]
        return sorted(chats, key=lambda c: c.created_at)

    # --- quizzes ------------------------------------------------------------

    def save_quiz_result(
        self,
        document_id: str,
        score: int,
        questions: list[AnsweredQuestion],
    ) -> QuizRecord:
        return self._append(
            QUIZZES_KEY, QuizRecord(document_id=document_id, score=score, questions=questions)
        )

    def quiz_results(self) -> list[QuizRecord]:
        """All quiz results, newest first."""
        results = self._read(QUIZZES_KEY, QuizRecord)
        return sorted(results, key=lambda q: q.created_at, reverse=True)
