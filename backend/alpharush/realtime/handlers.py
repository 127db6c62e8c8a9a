from __future__ import annotations

import functools
import logging
import re
from typing import Any

from flask import request
from flask_socketio import SocketIO, emit, join_room, leave_room

from ..game import service
from ..game.errors import GameError, InvalidPayload
from ..game.models import Event
from ..game.session import RoomSession
from .events import PLAYER_SUBMITTED, ROUND_SCORED, broadcast


logger = logging.getLogger(__name__)

_ROOM_ID_RE = re.compile(r"[A-Za-z0-9_-]{1,32}")

_grace_tasks: dict[tuple[str, int], bool] = {}
_advance_tasks: dict[tuple[str, int], bool] = {}


def _validate_name(name: str) -> bool:
    n = (name or "").strip()
    if not n:
        return False
    if len(n) > 24:
        return False
    # Avoid obvious HTML/script injection.
    if "<" in n or ">" in n:
        return False
    # No control characters.
    for ch in n:
        if ord(ch) < 32:
            return False
    return True


def _room_id(payload: dict) -> str:
    room_id = str(payload.get("roomId", "")).strip()
    if not _ROOM_ID_RE.fullmatch(room_id):
        raise InvalidPayload("invalid_room")
    return room_id


def _round(payload: dict, required: bool = False) -> int | None:
    raw: Any = payload.get("round")
    if raw is None:
        if required:
            raise InvalidPayload("invalid_round")
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise InvalidPayload("invalid_round")


def _fail(code: str) -> dict:
    emit("room:error", {"error": code})
    return {"ok": False, "error": code}


def _action(fn):
    @functools.wraps(fn)
    def wrapper(data=None):
        payload = data if isinstance(data, dict) else {}
        try:
            return fn(payload)
        except GameError as exc:
            return _fail(exc.code)
        except Exception:
            logger.exception("[socket] %s failed sid=%s", fn.__name__, request.sid)
            return _fail("internal_error")

    return wrapper


def register_socketio_handlers(socketio: SocketIO, config: dict | None = None) -> None:
    cfg = config or {}
    grace_sec = int(cfg.get("GRACE_DURATION_SEC", 10))
    server_grace = bool(cfg.get("SERVER_GRACE_TIMER", False)) and not cfg.get("TESTING")
    advance_delay = 0 if cfg.get("TESTING") else int(cfg.get("ROUND_ADVANCE_DELAY_SEC", 0))

    def _publish(session: RoomSession, events: list[Event]) -> None:
        broadcast(socketio, session.room_id, events)
        for ev in events:
            if ev.name == PLAYER_SUBMITTED and server_grace and session.state == "round_active":
                _ensure_grace_task(session.room_id, ev.payload["round"])
            elif ev.name == ROUND_SCORED and advance_delay > 0 and not ev.payload.get("recomputed"):
                _ensure_advance_task(session.room_id, ev.payload["round"])

    def _ensure_grace_task(room_id: str, round_no: int) -> None:
        key = (room_id, round_no)
        if _grace_tasks.get(key):
            return
        _grace_tasks[key] = True

        def _runner() -> None:
            socketio.sleep(grace_sec)
            _grace_tasks.pop(key, None)
            try:
                service.run(room_id, lambda s: s.score_round(round_no), _publish)
            except GameError as exc:
                logger.info("[grace-abort] room=%s round=%d reason=%s", room_id, round_no, exc.code)

        logger.info("[grace-set] room=%s round=%d duration=%ds", room_id, round_no, grace_sec)
        socketio.start_background_task(_runner)

    def _ensure_advance_task(room_id: str, round_no: int) -> None:
        key = (room_id, round_no)
        if _advance_tasks.get(key):
            return
        _advance_tasks[key] = True

        def _runner() -> None:
            socketio.sleep(advance_delay)
            _advance_tasks.pop(key, None)
            try:
                service.run(room_id, lambda s: s.auto_advance(round_no), _publish)
            except GameError as exc:
                logger.info("[advance-abort] room=%s round=%d reason=%s", room_id, round_no, exc.code)

        socketio.start_background_task(_runner)

    @socketio.on("createRoom")
    @_action
    def create_room(payload):
        room_id = _room_id(payload)
        name = str(payload.get("name", "")).strip()
        secret = str(payload.get("password", payload.get("secret", "")) or "")
        if not _validate_name(name):
            raise InvalidPayload()

        existing = service.get_session(room_id)
        was_member = existing is not None and existing.has_player(request.sid)
        join_room(room_id)
        try:
            session = service.create_room(room_id, request.sid, name, secret, publish=_publish)
        except GameError:
            # A member retrying createRoom keeps its broadcast subscription.
            if not was_member:
                leave_room(room_id)
            raise
        return {"ok": True, "playerId": request.sid, "room": session.public_state()}

    @socketio.on("joinRoom")
    @_action
    def join(payload):
        room_id = _room_id(payload)
        name = str(payload.get("name", "")).strip()
        secret = str(payload.get("password", payload.get("secret", "")) or "")
        if not _validate_name(name):
            raise InvalidPayload()

        existing = service.get_session(room_id)
        was_member = existing is not None and existing.has_player(request.sid)
        join_room(room_id)
        try:
            session = service.join_room(room_id, request.sid, name, secret, publish=_publish)
        except GameError:
            if not was_member:
                leave_room(room_id)
            raise
        return {"ok": True, "playerId": request.sid, "room": session.public_state()}

    @socketio.on("startGame")
    @_action
    def start_game(payload):
        room_id = _room_id(payload)
        sid = request.sid
        service.run(room_id, lambda s: s.start(sid), _publish)
        return {"ok": True}

    @socketio.on("updateAnswers")
    @_action
    def update_answers(payload):
        room_id = _room_id(payload)
        round_no = _round(payload)
        answers = payload.get("answers")
        sid = request.sid
        service.run(room_id, lambda s: s.draft_update(sid, answers, round_no), _publish)
        return {"ok": True}

    @socketio.on("submitAnswers")
    @_action
    def submit_answers(payload):
        room_id = _room_id(payload)
        round_no = _round(payload)
        answers = payload.get("answers")
        sid = request.sid
        events = service.run(room_id, lambda s: s.submit(sid, answers, round_no, grace_sec=grace_sec), _publish)
        return {"ok": True, "scored": any(ev.name == ROUND_SCORED for ev in events)}

    @socketio.on("forceScore")
    @_action
    def force_score(payload):
        room_id = _room_id(payload)
        round_no = _round(payload)
        sid = request.sid
        events = service.run(room_id, lambda s: s.score_round(round_no, caller_id=sid), _publish)
        # An already-scored round is not an error for the caller.
        return {"ok": True, "scored": bool(events)}

    @socketio.on("nextRound")
    @_action
    def next_round(payload):
        room_id = _room_id(payload)
        sid = request.sid
        service.run(room_id, lambda s: s.next_round(sid), _publish)
        return {"ok": True}

    @socketio.on("invalidateAnswer")
    @_action
    def invalidate_answer(payload):
        room_id = _room_id(payload)
        round_no = _round(payload, required=True)
        target_id = str(payload.get("targetId", payload.get("targetSocketId", "")) or "").strip()
        category = str(payload.get("category", "")).strip()
        if not target_id or not category:
            raise InvalidPayload()
        raw_flag = payload.get("invalidate")
        flag = None if raw_flag is None else bool(raw_flag)
        sid = request.sid
        service.run(room_id, lambda s: s.invalidate(sid, round_no, target_id, category, flag), _publish)
        return {"ok": True}

    @socketio.on("leaveRoom")
    @_action
    def leave(payload):
        room_id = _room_id(payload)
        leave_room(room_id)
        left = service.leave(request.sid, room_id, publish=_publish)
        return {"ok": True, "left": left}

    @socketio.on("disconnect")
    def on_disconnect(*args):
        # Removes the player from every room it joined; the ledger keeps its answers.
        left = service.leave(request.sid, publish=_publish)
        if left:
            logger.info("[disconnect] sid=%s rooms=%s", request.sid, ",".join(left))
