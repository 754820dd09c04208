from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

from pydantic import TypeAdapter, ValidationError as SchemaValidationError

from presence_engine.errors import UpstreamError
from presence_engine.schemas import RosterMember

logger = logging.getLogger("presence_engine.roster")

_ROSTER_ADAPTER = TypeAdapter(list[RosterMember])


class RosterProvider(Protocol):
    def list_members(self) -> list[RosterMember]:
        ...


class StaticRosterProvider:
    def __init__(self, members: Iterable[RosterMember]):
        self._members = list(members)

    def list_members(self) -> list[RosterMember]:
        return list(self._members)


class JsonFileRosterProvider:
    """Reads ``[{"user_id": ..., "display_name": ...}, ...]`` on every call."""

    def __init__(self, path: str | Path):
        self._path = Path(path)

    def list_members(self) -> list[RosterMember]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.error("roster_file_unreadable", extra={"path": str(self._path)})
            raise UpstreamError("Roster provider is unavailable") from exc

        try:
            return _ROSTER_ADAPTER.validate_python(json.loads(raw))
        except (json.JSONDecodeError, SchemaValidationError) as exc:
            logger.error("roster_file_malformed", extra={"path": str(self._path)})
            raise UpstreamError("Roster provider returned malformed data") from exc


def find_member(provider: RosterProvider, user_id: str) -> RosterMember | None:
    for member in provider.list_members():
        if member.user_id == user_id:
            return member
    return None
