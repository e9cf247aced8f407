"""Conversation storage.

The core only depends on the :class:`ConversationStore` contract.
:class:`JsonConversationStore` keeps one JSON file per session.
"""

import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from turnloop.exceptions import PersistenceError, SessionNotFoundError
from turnloop.models.conversation import StoredMessage
from turnloop.persistence.models import SessionRecord, SessionSummary

logger = logging.getLogger(__name__)

_SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


class ConversationStore(ABC):
    """Persistence contract for chat sessions."""

    @abstractmethod
    def append_message(self, session_id: str, message: StoredMessage) -> None:
        """Append a message, creating the session if needed.

        The message carries its grade, turn id, final flag and token counts.
        """
        ...

    @abstractmethod
    def load_messages(self, session_id: str) -> list[StoredMessage]:
        """Messages of a session, oldest first; empty for unknown sessions."""
        ...

    @abstractmethod
    def load_context_threshold(self, session_id: str) -> int: ...

    @abstractmethod
    def set_context_threshold(self, session_id: str, threshold: int) -> None: ...

    @abstractmethod
    def set_text_grade(self, session_id: str, message_id: str, grade: int) -> None: ...

    @abstractmethod
    def clear(self, session_id: str) -> None:
        """Remove every message but keep the session."""
        ...

    @abstractmethod
    def rename(self, session_id: str, name: str) -> None: ...

    @abstractmethod
    def delete(self, session_id: str) -> None: ...

    @abstractmethod
    def list_sessions(self) -> list[SessionSummary]: ...

    def session_name(self, session_id: str) -> str:
        return session_id


class JsonConversationStore(ConversationStore):
    """Stores each session as ``<directory>/<session_id>.json``."""

    def __init__(self, directory: Path) -> None:
        """Initialize the store.

        Args:
            directory: Directory holding the session files. Created on first write.
        """
        self._directory = directory

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, session_id: str) -> Path:
        if not _SESSION_ID_PATTERN.match(session_id):
            msg = f"Invalid session id: {session_id!r}"
            raise PersistenceError(msg)
        return self._directory / f"{session_id}.json"

    def _load(self, session_id: str) -> SessionRecord | None:
        path = self._path(session_id)
        if not path.exists():
            return None
        try:
            return SessionRecord.model_validate_json(path.read_text(encoding="utf-8"))
        except ValidationError as e:
            msg = f"Corrupt session file {path}: {e}"
            raise PersistenceError(msg) from e
        except OSError as e:
            msg = f"Failed to read session file {path}: {e}"
            raise PersistenceError(msg) from e

    def _require(self, session_id: str) -> SessionRecord:
        record = self._load(session_id)
        if record is None:
            msg = f"Session not found: {session_id}"
            raise SessionNotFoundError(msg)
        return record

    def _save(self, record: SessionRecord) -> None:
        path = self._path(record.session_id)
        record.updated_at = datetime.now()
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(record.model_dump_json(indent=2), encoding="utf-8")
            tmp_path.replace(path)
        except OSError as e:
            msg = f"Failed to write session file {path}: {e}"
            raise PersistenceError(msg) from e

    def append_message(self, session_id: str, message: StoredMessage) -> None:
        record = self._load(session_id) or SessionRecord(session_id=session_id)
        record.messages.append(message)
        self._save(record)
        logger.debug("Stored %s message in session %s", message.role, session_id)

    def load_messages(self, session_id: str) -> list[StoredMessage]:
        record = self._load(session_id)
        if record is None:
            return []
        return sorted(record.messages, key=lambda message: message.created_at)

    def load_context_threshold(self, session_id: str) -> int:
        record = self._load(session_id)
        return record.context_threshold if record is not None else 0

    def set_context_threshold(self, session_id: str, threshold: int) -> None:
        if not 0 <= threshold <= 5:
            msg = f"Context threshold must be between 0 and 5, got {threshold}"
            raise PersistenceError(msg)
        record = self._load(session_id) or SessionRecord(session_id=session_id)
        record.context_threshold = threshold
        self._save(record)

    def set_text_grade(self, session_id: str, message_id: str, grade: int) -> None:
        if not 0 <= grade <= 5:
            msg = f"Grade must be between 0 and 5, got {grade}"
            raise PersistenceError(msg)
        record = self._require(session_id)
        for message in record.messages:
            if message.id == message_id:
                message.text_grade = grade
                self._save(record)
                return
        msg = f"Message {message_id} not found in session {session_id}"
        raise PersistenceError(msg)

    def clear(self, session_id: str) -> None:
        record = self._load(session_id)
        if record is None:
            return
        record.messages = []
        self._save(record)

    def rename(self, session_id: str, name: str) -> None:
        record = self._require(session_id)
        record.name = name
        self._save(record)

    def delete(self, session_id: str) -> None:
        path = self._path(session_id)
        if not path.exists():
            msg = f"Session not found: {session_id}"
            raise SessionNotFoundError(msg)
        path.unlink()

    def list_sessions(self) -> list[SessionSummary]:
        """Stored sessions, most recently updated first.

        Files that fail to parse are skipped.
        """
        if not self._directory.exists():
            return []

        summaries: list[SessionSummary] = []
        for path in self._directory.glob("*.json"):
            try:
                record = SessionRecord.model_validate_json(path.read_text(encoding="utf-8"))
            except (ValidationError, OSError):
                logger.warning("Skipping unreadable session file %s", path)
                continue
            summaries.append(
                SessionSummary(
                    session_id=record.session_id,
                    name=record.name or record.session_id,
                    updated_at=record.updated_at,
                    message_count=len(record.messages),
                )
            )
        summaries.sort(key=lambda summary: summary.updated_at, reverse=True)
        return summaries

    def session_name(self, session_id: str) -> str:
        record = self._load(session_id)
        if record is None or not record.name:
            return session_id
        return record.name
