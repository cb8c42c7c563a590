"""Durable notification state, one record per endpoint tag."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from ..errors import PersistenceError
from ..storage import read_json_document, write_json_atomic
from .models import EndpointState

logger = structlog.get_logger(__name__)


def _decode_state(raw: Any, *, tag: str | None) -> EndpointState:
    if not isinstance(raw, dict):
        return EndpointState()
    try:
        return EndpointState.model_validate(raw)
    except ValidationError as e:
        logger.error("Corrupt endpoint state, resetting to defaults", tag=tag, error=str(e))
        return EndpointState()


class NotificationStateStore:
    """JSON-file backed state store.

    Layout::

        {"endpoints": {"<tag>": {...EndpointState...}}}

    Every save re-reads the document and replaces only its own record under a
    process-wide lock, then writes atomically, so saves for different tags
    never clobber each other. Other top-level keys are carried through untouched.

    File I/O is synchronous and runs on the event loop; each call reads and
    writes the whole document.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> dict[str, Any]:
        doc = read_json_document(self.path)
        if not isinstance(doc.get("endpoints"), dict):
            doc["endpoints"] = {}
        return doc

    def _write(self, doc: dict[str, Any]) -> None:
        try:
            write_json_atomic(self.path, doc)
        except OSError as e:
            raise PersistenceError(f"Failed to write state file {self.path}: {e}") from e

    def load(self, tag: str) -> EndpointState:
        """Return the tag's state, creating and persisting a zero state on first access."""
        with self._lock:
            doc = self._read()
            raw = doc["endpoints"].get(tag)
            if raw is not None:
                return _decode_state(raw, tag=tag)

            state = EndpointState()
            doc["endpoints"][tag] = state.to_document()
            try:
                self._write(doc)
            except PersistenceError as e:
                logger.error("Failed to persist initial endpoint state", tag=tag, error=str(e))
            else:
                logger.info("Initialized endpoint state", tag=tag)
            return state

    def save(self, tag: str, state: EndpointState) -> None:
        with self._lock:
            doc = self._read()
            doc["endpoints"][tag] = state.to_document()
            self._write(doc)

    def delete(self, tag: str) -> bool:
        with self._lock:
            doc = self._read()
            if tag not in doc["endpoints"]:
                return False
            del doc["endpoints"][tag]
            self._write(doc)
        logger.info("Removed endpoint state", tag=tag)
        return True

    def tags(self) -> list[str]:
        with self._lock:
            return list(self._read()["endpoints"].keys())

