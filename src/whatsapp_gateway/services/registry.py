"""In-memory session registry."""

from dataclasses import dataclass, field

from whatsapp_gateway.domain.sessions import SessionRecord


@dataclass
class SessionRegistry:
    """Map of session id to its current record.

    Records are immutable; writers replace them wholesale, so every reader
    holds a consistent snapshot. Only the lifecycle controller writes here.
    """

    _records: dict[str, SessionRecord] = field(default_factory=dict)

    def get(self, session_id: str) -> SessionRecord | None:
        """Return the record for a session, if present."""
        return self._records.get(session_id)

    def list(self) -> list[SessionRecord]:
        """Return all records."""
        return list(self._records.values())

    def put(self, record: SessionRecord) -> None:
        """Insert or replace a record."""
        self._records[record.id] = record

    def pop(self, session_id: str) -> SessionRecord | None:
        """Delete a record and return it, if present."""
        return self._records.pop(session_id, None)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._records

    def __len__(self) -> int:
        return len(self._records)
