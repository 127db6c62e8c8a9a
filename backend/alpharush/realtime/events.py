from __future__ import annotations

from flask_socketio import SocketIO

from ..game.models import Event


PLAYER_SUBMITTED = "playerSubmitted"
ROUND_SCORED = "roundScored"


def broadcast(socketio: SocketIO, room_id: str, events: list[Event]) -> None:
    for event in events:
        socketio.emit(event.name, event.payload, to=room_id)
