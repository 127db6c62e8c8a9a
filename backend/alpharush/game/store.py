from __future__ import annotations

import copy
from threading import Lock


class RoomStore:
    """Durable home for room records. Live sessions never read back from it."""

    def save(self, room_id: str, snapshot: dict) -> None:
        raise NotImplementedError

    def load(self, room_id: str) -> dict | None:
        raise NotImplementedError

    def delete(self, room_id: str) -> None:
        raise NotImplementedError


class MemoryRoomStore(RoomStore):
    def __init__(self) -> None:
        self._lock = Lock()
        self._records: dict[str, dict] = {}

    def save(self, room_id: str, snapshot: dict) -> None:
        with self._lock:
            self._records[room_id] = copy.deepcopy(snapshot)

    def load(self, room_id: str) -> dict | None:
        with self._lock:
            record = self._records.get(room_id)
            return copy.deepcopy(record) if record is not None else None

    def delete(self, room_id: str) -> None:
        with self._lock:
            self._records.pop(room_id, None)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
