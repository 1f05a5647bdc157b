"""Key-value storage capability and the typed views built on it.

Everything the app remembers between runs (API key, the model/endpoint
pair that last worked, the current document) goes through an injected
:class:`KeyValueStore` instead of global state.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import NamedTuple, Protocol

logger = logging.getLogger(__name__)

STORE_FILENAME = "studybuddy-store.json"

API_KEY = "studybuddy-gemini-api-key"
MODEL_KEY = "studybuddy-working-model"
ENDPOINT_KEY = "studybuddy-working-endpoint"
MODEL_PREFERENCE_KEY = "studybuddy-model-preference"
DOCUMENT_TEXT_KEY = "studybuddy-document-context"
DOCUMENT_NAME_KEY = "studybuddy-document-name"
DOCUMENT_ID_KEY = "studybuddy-document-id"


class KeyValueStore(Protocol):
    """String-to-string storage with explicit get/set/delete/clear."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def clear(self) -> None: ...


class MemoryStore:
    """Process-lifetime store, the equivalent of session storage."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


def _atomic_write(path: Path, content: str) -> None:
    """Write *content* to *path* via a temp file and ``os.replace``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class JsonFileStore:
    """Persistent store kept as one JSON object on disk."""

    def __init__(self, path: Path) -> None:
        self._path = path / STORE_FILENAME if path.suffix != ".json" else path
        self._data: dict[str, str] = {}
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            logger.warning("Corrupt store at %s, starting fresh", self._path)
            return
        if not isinstance(data, dict):
            logger.warning("Unexpected store layout at %s, starting fresh", self._path)
            return
        self._data = {str(k): str(v) for k, v in data.items()}

    def _save(self) -> None:
        _atomic_write(self._path, json.dumps(self._data, indent=2, sort_keys=True))

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._save()

    def delete(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._save()

    def clear(self) -> None:
        self._data.clear()
        self._save()


class ApiKeyStore:
    """Bring-your-own API key, kept client-side only."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def get(self) -> str | None:
        raw = self._store.get(API_KEY)
        return raw.strip() if raw and raw.strip() else None

    def set(self, key: str) -> None:
        """Store *key* trimmed; a blank key removes the stored one."""
        trimmed = key.strip()
        if trimmed:
            self._store.set(API_KEY, trimmed)
        else:
            self._store.delete(API_KEY)

    def clear(self) -> None:
        self._store.delete(API_KEY)

    @property
    def has_key(self) -> bool:
        return self.get() is not None


class WorkingModel(NamedTuple):
    model: str
    endpoint: str


class ModelCache:
    """The model/endpoint pair that last answered successfully."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def get(self) -> WorkingModel | None:
        model = self._store.get(MODEL_KEY)
        endpoint = self._store.get(ENDPOINT_KEY)
        if model and endpoint:
            return WorkingModel(model, endpoint)
        return None

    def set(self, model: str, endpoint: str) -> None:
        self._store.set(MODEL_KEY, model)
        self._store.set(ENDPOINT_KEY, endpoint)
        self._store.set(MODEL_PREFERENCE_KEY, model)

    @property
    def preference(self) -> str | None:
        return self._store.get(MODEL_PREFERENCE_KEY)

    def clear(self) -> None:
        for key in (MODEL_KEY, ENDPOINT_KEY, MODEL_PREFERENCE_KEY):
            self._store.delete(key)


class DocumentContext(NamedTuple):
    text: str
    name: str
    document_id: str | None = None


class DocumentContextStore:
    """The document the current chat is about."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def set(self, text: str, name: str, document_id: str | None = None) -> None:
        self._store.set(DOCUMENT_TEXT_KEY, text)
        self._store.set(DOCUMENT_NAME_KEY, name)
        if document_id:
            self._store.set(DOCUMENT_ID_KEY, document_id)
        else:
            self._store.delete(DOCUMENT_ID_KEY)

    def get(self) -> DocumentContext | None:
        text = self._store.get(DOCUMENT_TEXT_KEY)
        if not text:
            return None
        return DocumentContext(
            text=text,
            name=self._store.get(DOCUMENT_NAME_KEY) or "Document",
            document_id=self._store.get(DOCUMENT_ID_KEY) or None,
        )

    def clear(self) -> None:
        for key in (DOCUMENT_TEXT_KEY, DOCUMENT_NAME_KEY, DOCUMENT_ID_KEY):
            self._store.delete(key)
