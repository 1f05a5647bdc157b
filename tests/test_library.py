"""Tests for src/library.py — documents, chats and quiz results."""

import json
from datetime import datetime

from studybuddy.library import (
    CHATS_KEY,
    DOCUMENTS_KEY,
    QUIZZES_KEY,
    ChatRecord,
    DocumentRecord,
    Library,
)
from studybuddy.quiz import AnsweredQuestion
from studybuddy.storage import JsonFileStore, MemoryStore


def stored(records):
    return json.dumps([r.model_dump(mode="json") for r in records])


class TestDocuments:
    def test_add_and_get(self):
        library = Library(MemoryStore())
        doc = library.add_document("notes.pdf", "Photosynthesis converts light.")
        assert library.get_document(doc.id) == doc
        assert library.get_document("missing") is None

    def test_newest_first(self):
        older = DocumentRecord(
            name="old.pdf", extracted_text="a", created_at=datetime(2024, 1, 1)
        )
        newer = DocumentRecord(
            name="new.pdf", extracted_text="b", created_at=datetime(2024, 2, 1)
        )
        library = Library(MemoryStore({DOCUMENTS_KEY: stored([older, newer])}))
        assert [d.name for d in library.documents()] == ["new.pdf", "old.pdf"]

    def test_corrupt_collection_reads_empty(self):
        library = Library(MemoryStore({DOCUMENTS_KEY: "{broken"}))
        assert library.documents() == []
        library.add_document("a.pdf", "text")
        assert len(library.documents()) == 1

    def test_persists_through_file_store(self, tmp_path):
        doc = Library(JsonFileStore(tmp_path)).add_document("a.pdf", "text")
        assert Library(JsonFileStore(tmp_path)).get_document(doc.id) == doc


class TestChats:
    def test_chats_filtered_by_document(self):
        library = Library(MemoryStore())
        library.add_chat("doc-1", "user", "What is ATP?")
        library.add_chat(None, "user", "General question")
        library.add_chat("doc-1", "model", "Energy currency.")

        doc_chats = library.chats_for("doc-1")
        assert [c.content for c in doc_chats] == ["What is ATP?", "Energy currency."]
        assert [c.content for c in library.chats_for(None)] == ["General question"]

    def test_oldest_first(self):
        late = ChatRecord(role="model", content="late", created_at=datetime(2024, 1, 2))
        early = ChatRecord(role="user", content="early", created_at=datetime(2024, 1, 1))
        library = Library(MemoryStore({CHATS_KEY: stored([late, early])}))
        assert [c.content for c in library.chats_for(None)] == ["early", "late"]

    def test_invalid_role_reads_empty(self):
        raw = json.dumps([{"role": "system", "content": "x"}])
        assert Library(MemoryStore({CHATS_KEY: raw})).chats_for(None) == []


class TestQuizResults:
    def test_save_and_list(self):
        store = MemoryStore()
        library = Library(store)
        questions = [
            AnsweredQuestion(
                question="q", options=["a", "b"], correct_answer=1, user_answer=0
            )
        ]
        record = library.save_quiz_result("doc-1", 0, questions)

        results = library.quiz_results()
        assert results == [record]
        assert results[0].questions[0].user_answer == 0
        assert results[0].questions[0].correct_answer == 1
        assert store.get(QUIZZES_KEY) is not None
