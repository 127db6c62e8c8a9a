from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal


CATEGORIES = ("Name", "City", "Thing", "Animal")

RoomState = Literal["idle", "round_active", "round_scored", "game_over"]
RoundState = Literal["open", "scored"]


@dataclass
class Player:
    id: str
    name: str
    score: int = 0
    last_submit_at_ms: int | None = None


@dataclass
class Room:
    room_id: str
    host_id: str | None
    secret: str = ""
    round: int = 0
    used_letters: list[str] = field(default_factory=list)
    # Insertion order is join order.
    players: dict[str, Player] = field(default_factory=dict)
    max_players: int = 8
    total_rounds: int = 26
    created_at_ms: int | None = None

    @property
    def letter(self) -> str | None:
        return self.letter_for(self.round)

    def letter_for(self, round_no: int) -> str | None:
        if 1 <= round_no <= len(self.used_letters):
            return self.used_letters[round_no - 1]
        return None


@dataclass
class Submission:
    player_id: str
    player_name: str = ""
    answers: dict[str, str] = field(default_factory=lambda: {c: "" for c in CATEGORIES})
    submitted_at_ms: int | None = None
    invalid: dict[str, bool] = field(default_factory=lambda: {c: False for c in CATEGORIES})

    @property
    def is_submitted(self) -> bool:
        return self.submitted_at_ms is not None


@dataclass
class RoundRecord:
    number: int
    letter: str
    state: RoundState = "open"
    submissions: dict[str, Submission] = field(default_factory=dict)

    @property
    def is_scored(self) -> bool:
        return self.state == "scored"


@dataclass
class Event:
    """A broadcast to every member of a room."""

    name: str
    payload: dict
