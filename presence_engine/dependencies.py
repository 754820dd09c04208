from __future__ import annotations

from presence_engine.db import SessionLocal
from presence_engine.services.document_store import DocumentStore, SqlDocumentStore
from presence_engine.services.roster import JsonFileRosterProvider, RosterProvider
from presence_engine.settings import get_settings


def get_document_store() -> DocumentStore:
    return SqlDocumentStore(SessionLocal)


def get_roster_provider() -> RosterProvider:
    return JsonFileRosterProvider(get_settings().roster_file)
