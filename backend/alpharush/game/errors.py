from __future__ import annotations


class GameError(Exception):
    """Base class for action failures reported through the ack channel."""

    code = "game_error"

    def __init__(self, code: str | None = None, message: str = "") -> None:
        if code:
            self.code = code
        super().__init__(message or self.code)


class NotFound(GameError):
    code = "room_not_found"


class DuplicateRoom(GameError):
    code = "room_exists"


class RoomFull(GameError):
    code = "room_full"


class WrongSecret(GameError):
    code = "wrong_secret"


class NotHost(GameError):
    code = "only_host"


class InvalidState(GameError):
    code = "invalid_state"


class InvalidPayload(GameError):
    code = "invalid_payload"


class InternalError(GameError):
    code = "internal_error"


class AlreadyScored(GameError):
    code = "already_scored"


class LettersExhausted(Exception):
    pass
