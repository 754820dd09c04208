from __future__ import annotations

import copy
import logging
import threading
from collections.abc import Callable
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from presence_engine.errors import UpstreamError
from presence_engine.models import PresenceDocument

logger = logging.getLogger("presence_engine.document_store")


class DocumentStore(Protocol):
    def get(self, key: str) -> dict[str, Any] | None:
        ...

    def set(self, key: str, value: dict[str, Any]) -> None:
        ...

    def delete(self, key: str) -> bool:
        ...

    def scan(self, prefix: str = "") -> list[tuple[str, dict[str, Any]]]:
        ...


class InMemoryDocumentStore:
    def __init__(self, documents: dict[str, dict[str, Any]] | None = None):
        self._documents: dict[str, dict[str, Any]] = copy.deepcopy(documents or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            value = self._documents.get(key)
            return copy.deepcopy(value) if value is not None else None

    def set(self, key: str, value: dict[str, Any]) -> None:
        with self._lock:
            self._documents[key] = copy.deepcopy(value)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._documents.pop(key, None) is not None

    def scan(self, prefix: str = "") -> list[tuple[str, dict[str, Any]]]:
        with self._lock:
            return [
                (key, copy.deepcopy(value))
                for key, value in sorted(self._documents.items())
                if key.startswith(prefix)
            ]


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SqlDocumentStore:
    """Document store on the ``presence_documents`` table.

    Every call opens and closes its own session so the store can be used
    from worker threads.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def get(self, key: str) -> dict[str, Any] | None:
        try:
            with self._session_factory() as db:
                document = db.get(PresenceDocument, key)
                if document is None:
                    return None
                return dict(document.payload)
        except SQLAlchemyError as exc:
            logger.exception("document_store_read_failed", extra={"key": key})
            raise UpstreamError("Document store read failed") from exc

    def set(self, key: str, value: dict[str, Any]) -> None:
        try:
            with self._session_factory() as db:
                document = db.get(PresenceDocument, key)
                if document is None:
                    db.add(PresenceDocument(key=key, payload=value))
                else:
                    document.payload = value
                db.commit()
        except SQLAlchemyError as exc:
            logger.exception("document_store_write_failed", extra={"key": key})
            raise UpstreamError("Document store write failed") from exc

    def delete(self, key: str) -> bool:
        try:
            with self._session_factory() as db:
                document = db.get(PresenceDocument, key)
                if document is None:
                    return False
                db.delete(document)
                db.commit()
                return True
        except SQLAlchemyError as exc:
            logger.exception("document_store_delete_failed", extra={"key": key})
            raise UpstreamError("Document store delete failed") from exc

    def scan(self, prefix: str = "") -> list[tuple[str, dict[str, Any]]]:
        statement = select(PresenceDocument).order_by(PresenceDocument.key.asc())
        if prefix:
            statement = statement.where(PresenceDocument.key.like(f"{_escape_like(prefix)}%", escape="\\"))
        try:
            with self._session_factory() as db:
                return [(document.key, dict(document.payload)) for document in db.scalars(statement).all()]
        except SQLAlchemyError as exc:
            logger.exception("document_store_scan_failed", extra={"prefix": prefix})
            raise UpstreamError("Document store scan failed") from exc
