from __future__ import annotations

import logging
from collections.abc import Callable
from threading import RLock

from ..config import Config
from .errors import DuplicateRoom, InvalidPayload, NotFound
from .models import Event
from .session import RoomSession
from .store import MemoryRoomStore, RoomStore


logger = logging.getLogger(__name__)

Publisher = Callable[[RoomSession, list[Event]], None]

# Guards the room map only. Lock order is always registry -> session.
_lock = RLock()
_rooms: dict[str, RoomSession] = {}
_store: RoomStore = MemoryRoomStore()
_settings: dict = {
    "MAX_PLAYERS": Config.MAX_PLAYERS,
    "TOTAL_ROUNDS": Config.TOTAL_ROUNDS,
    "MIN_ANSWER_LENGTH": Config.MIN_ANSWER_LENGTH,
    "MAX_ANSWER_LENGTH": Config.MAX_ANSWER_LENGTH,
}


def configure(config, store: RoomStore | None = None) -> None:
    """Take room settings from a Flask config mapping."""
    global _store
    with _lock:
        for key in _settings:
            if key in config:
                _settings[key] = int(config[key])
        if store is not None:
            _store = store


def get_store() -> RoomStore:
    return _store


def reset() -> None:
    with _lock:
        _rooms.clear()
        if isinstance(_store, MemoryRoomStore):
            _store.clear()


def _publish(session: RoomSession, events: list[Event], publish: Publisher | None) -> None:
    persist(session)
    if publish is not None and events:
        publish(session, events)


def persist(session: RoomSession) -> None:
    try:
        _store.save(session.room_id, session.public_state())
    except Exception:
        # In-memory state stays authoritative; the next mutation saves again.
        logger.exception("[store] room=%s save failed", session.room_id)


def create_room(
    room_id: str,
    host_id: str,
    host_name: str,
    secret: str = "",
    publish: Publisher | None = None,
) -> RoomSession:
    if not room_id or not host_id or not host_name:
        raise InvalidPayload()
    with _lock:
        if room_id in _rooms:
            raise DuplicateRoom()
        session = RoomSession(
            room_id=room_id,
            host_id=host_id,
            host_name=host_name,
            secret=secret,
            max_players=_settings["MAX_PLAYERS"],
            total_rounds=_settings["TOTAL_ROUNDS"],
            min_answer_length=_settings["MIN_ANSWER_LENGTH"],
            max_answer_length=_settings["MAX_ANSWER_LENGTH"],
        )
        _rooms[room_id] = session
        logger.info("[create] room=%s host=%s", room_id, host_id)
        with session.lock:
            _publish(session, [session.room_update()], publish)
        return session


def join_room(
    room_id: str,
    player_id: str,
    name: str,
    secret: str = "",
    publish: Publisher | None = None,
) -> RoomSession:
    if not room_id or not player_id or not name:
        raise InvalidPayload()
    with _lock:
        session = _rooms.get(room_id)
        if session is None:
            raise NotFound()
        with session.lock:
            events = session.add_player(player_id, name, secret)
            _publish(session, events, publish)
        return session


def get_session(room_id: str) -> RoomSession | None:
    with _lock:
        return _rooms.get(room_id)


def require_session(room_id: str) -> RoomSession:
    session = get_session(room_id)
    if session is None:
        raise NotFound()
    return session


def list_sessions() -> list[RoomSession]:
    with _lock:
        return list(_rooms.values())


def run(room_id: str, action: Callable[[RoomSession], list[Event]], publish: Publisher | None = None) -> list[Event]:
    """Apply one action to a room, serialized with every other action on it."""
    session = require_session(room_id)
    with session.lock:
        events = action(session)
        _publish(session, events, publish)
        return events


def delete_room(room_id: str) -> bool:
    with _lock:
        session = _rooms.pop(room_id, None)
    if session is None:
        return False
    try:
        _store.delete(room_id)
    except Exception:
        logger.exception("[store] room=%s delete failed", room_id)
    logger.info("[delete] room=%s", room_id)
    return True


def leave(player_id: str, room_id: str | None = None, publish: Publisher | None = None) -> list[str]:
    """Remove a connection from one room, or from every room it is in.

    Returns the ids of the rooms the player was removed from.
    """
    left: list[str] = []
    with _lock:
        if room_id is not None:
            candidates = [s for s in [_rooms.get(room_id)] if s is not None]
        else:
            candidates = list(_rooms.values())

        for session in candidates:
            with session.lock:
                if not session.has_player(player_id):
                    continue
                events = session.remove_player(player_id)
                left.append(session.room_id)
                if session.is_empty():
                    delete_room(session.room_id)
                    continue
                _publish(session, events, publish)
    return left
