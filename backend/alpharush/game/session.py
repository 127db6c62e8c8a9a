from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping
from threading import RLock

from .errors import (
    AlreadyScored,
    InternalError,
    InvalidState,
    LettersExhausted,
    NotFound,
    NotHost,
    RoomFull,
    WrongSecret,
)
from .ledger import AnswerLedger, clean_answers
from .letters import next_letter
from .models import CATEGORIES, Event, Player, Room, RoomState, RoundRecord
from .scoring import RoundScore, cumulative_totals, score_round


logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class RoomSession:
    """One room's state machine.

    Every public method takes ``self.lock``, validates before it mutates and
    returns the events to broadcast to the room, in order. The transport is
    expected to broadcast while still holding ``self.lock`` so that events of
    one room go out in the order the mutations happened.
    """

    def __init__(
        self,
        room_id: str,
        host_id: str,
        host_name: str,
        secret: str = "",
        max_players: int = 8,
        total_rounds: int = 26,
        min_answer_length: int = 3,
        max_answer_length: int = 64,
        letter_picker: Callable[[Iterable[str]], str] | None = None,
    ) -> None:
        self.room = Room(
            room_id=room_id,
            host_id=host_id,
            secret=secret or "",
            max_players=max_players,
            total_rounds=total_rounds,
            created_at_ms=now_ms(),
        )
        self.room.players[host_id] = Player(id=host_id, name=host_name)
        self.ledger = AnswerLedger()
        self.lock = RLock()
        self.letter_picker = letter_picker or next_letter
        self.min_answer_length = min_answer_length
        self.max_answer_length = max_answer_length

    # ---- state -------------------------------------------------------

    @property
    def room_id(self) -> str:
        return self.room.room_id

    @property
    def state(self) -> RoomState:
        r = self.room.round
        if r <= 0:
            return "idle"
        if r > self.room.total_rounds:
            return "game_over"
        if self.ledger.has(r) and self.ledger.get(r).is_scored:
            return "round_scored"
        return "round_active"

    def is_empty(self) -> bool:
        return not self.room.players

    def has_player(self, player_id: str) -> bool:
        return player_id in self.room.players

    def _require_member(self, player_id: str) -> Player:
        player = self.room.players.get(player_id)
        if player is None:
            raise NotFound("player_not_found", f"{player_id} is not in room {self.room_id}")
        return player

    def _require_host(self, player_id: str) -> None:
        if not player_id or player_id != self.room.host_id:
            raise NotHost()

    def _active_round(self, round_no: int | None) -> int:
        if self.state != "round_active":
            raise InvalidState("no_active_round")
        if round_no is not None and round_no != self.room.round:
            raise InvalidState("stale_round")
        return self.room.round

    # ---- membership --------------------------------------------------

    def add_player(self, player_id: str, name: str, secret: str = "") -> list[Event]:
        with self.lock:
            existing = self.room.players.get(player_id)
            if existing is not None:
                existing.name = name
                return [self.room_update()]
            if len(self.room.players) >= self.room.max_players:
                raise RoomFull()
            if self.room.secret and self.room.secret != (secret or ""):
                raise WrongSecret()

            self.room.players[player_id] = Player(id=player_id, name=name)
            if self.room.host_id is None:
                self.room.host_id = player_id
            logger.info("[join] room=%s player=%s players=%d", self.room_id, player_id, len(self.room.players))
            return [self.room_update()]

    def remove_player(self, player_id: str) -> list[Event]:
        with self.lock:
            if player_id not in self.room.players:
                return []
            del self.room.players[player_id]

            if self.room.host_id == player_id:
                # Next in join order, or nobody.
                self.room.host_id = next(iter(self.room.players), None)
                logger.info("[host] room=%s host %s -> %s", self.room_id, player_id, self.room.host_id)

            if not self.room.players:
                return []
            events = [self.room_update()]
            events.extend(self._maybe_auto_score())
            return events

    # ---- round flow --------------------------------------------------

    def start(self, caller_id: str) -> list[Event]:
        with self.lock:
            self._require_host(caller_id)
            if self.state != "idle":
                raise InvalidState("already_started")
            return self._open_next_round()

    def draft_update(self, caller_id: str, answers: Mapping | None, round_no: int | None = None) -> list[Event]:
        with self.lock:
            player = self._require_member(caller_id)
            number = self._active_round(round_no)
            cleaned = clean_answers(answers, self.max_answer_length)
            self.ledger.draft(number, player.id, player.name, cleaned)
            return []

    def submit(
        self,
        caller_id: str,
        answers: Mapping | None,
        round_no: int | None = None,
        grace_sec: int | None = None,
    ) -> list[Event]:
        with self.lock:
            player = self._require_member(caller_id)
            number = self._active_round(round_no)
            cleaned = clean_answers(answers, self.max_answer_length)

            ts = now_ms()
            self.ledger.submit(number, player.id, player.name, cleaned, ts)
            player.last_submit_at_ms = ts

            submitted = self._submitted_members(number)
            payload = {
                "playerId": player.id,
                "round": number,
                "submittedCount": len(submitted),
                "playerCount": len(self.room.players),
            }
            if grace_sec is not None:
                payload["graceSec"] = grace_sec
            events = [Event("playerSubmitted", payload)]
            events.extend(self._maybe_auto_score())
            return events

    def score_round(self, round_no: int | None = None, caller_id: str | None = None) -> list[Event]:
        """Score a round once. Later calls for the same round return no events."""
        with self.lock:
            if caller_id is not None:
                self._require_member(caller_id)
            number = self.room.round if round_no is None else round_no
            self.ledger.get(number)
            return self._score(number)

    def next_round(self, caller_id: str) -> list[Event]:
        with self.lock:
            self._require_host(caller_id)
            state = self.state
            if state == "round_active":
                raise InvalidState("round_not_scored")
            if state != "round_scored":
                raise InvalidState("no_active_game")
            return self._advance()

    def auto_advance(self, expected_round: int) -> list[Event]:
        """Advance on behalf of the host if the room is still on ``expected_round``."""
        with self.lock:
            if self.room.round != expected_round or self.state != "round_scored":
                return []
            return self._advance()

    def invalidate(
        self,
        caller_id: str,
        round_no: int,
        target_id: str,
        category: str,
        invalid: bool | None = None,
    ) -> list[Event]:
        with self.lock:
            self._require_host(caller_id)
            record = self.ledger.get(round_no)
            if not record.is_scored:
                raise InvalidState("round_not_scored")
            sub = record.submissions.get(target_id)
            flag = (not sub.invalid.get(category, False)) if (sub is not None and invalid is None) else bool(invalid)
            self.ledger.set_invalid(round_no, target_id, category, flag)

            self._recompute_totals()
            logger.info(
                "[invalidate] room=%s round=%d player=%s category=%s invalid=%s",
                self.room_id, round_no, target_id, category, flag,
            )
            result = score_round(record, self.min_answer_length)
            return [self._round_scored_event(record, result, recomputed=True), self.room_update()]

    # ---- internals ---------------------------------------------------

    def _submitted_members(self, number: int) -> set[str]:
        return self.ledger.submitted_ids(number) & set(self.room.players)

    def _maybe_auto_score(self) -> list[Event]:
        if self.state != "round_active" or not self.room.players:
            return []
        number = self.room.round
        if len(self._submitted_members(number)) >= len(self.room.players):
            return self._score(number)
        return []

    def _score(self, number: int) -> list[Event]:
        record = self.ledger.get(number)
        result = score_round(record, self.min_answer_length)
        try:
            self.ledger.mark_scored(number)
        except AlreadyScored:
            logger.debug("[score-skip] room=%s round=%d already scored", self.room_id, number)
            return []

        for pid, player in self.room.players.items():
            player.score += result.total_for(pid)
        logger.info("[scored] room=%s round=%d letter=%s", self.room_id, number, record.letter)
        return [self._round_scored_event(record, result), self.room_update()]

    def _recompute_totals(self) -> None:
        totals = cumulative_totals(self.ledger.rounds(), self.room.players, self.min_answer_length)
        for pid, player in self.room.players.items():
            player.score = totals[pid]

    def _open_next_round(self) -> list[Event]:
        number = self.room.round + 1
        try:
            letter = self.letter_picker(list(self.room.used_letters))
        except LettersExhausted as exc:
            raise InternalError(message=str(exc)) from exc

        self.room.round = number
        self.room.used_letters.append(letter)
        self.ledger.open_round(number, letter)
        logger.info("[round] room=%s round=%d letter=%s", self.room_id, number, letter)
        started = Event(
            "roundStarted",
            {"roomId": self.room_id, "round": number, "letter": letter, "totalRounds": self.room.total_rounds},
        )
        return [started, self.room_update()]

    def _advance(self) -> list[Event]:
        if self.room.round + 1 > self.room.total_rounds:
            self.room.round += 1
            logger.info("[game-over] room=%s", self.room_id)
            return [Event("gameOver", {"roomId": self.room_id, "totals": self.final_totals()}), self.room_update()]
        return self._open_next_round()

    # ---- payloads ----------------------------------------------------

    def totals(self) -> list[dict]:
        return [{"playerId": p.id, "name": p.name, "score": p.score} for p in self.room.players.values()]

    def final_totals(self) -> list[dict]:
        # sorted() is stable, so ties keep join order.
        return sorted(self.totals(), key=lambda t: t["score"], reverse=True)

    def _round_scored_event(self, record: RoundRecord, result: RoundScore, recomputed: bool = False) -> Event:
        ids = list(self.room.players)
        ids.extend(pid for pid in record.submissions if pid not in self.room.players)

        answers = {}
        for pid, sub in record.submissions.items():
            answers[pid] = {
                "name": sub.player_name,
                "answers": dict(sub.answers),
                "submittedAt": sub.submitted_at_ms,
                "invalid": dict(sub.invalid),
                "points": dict(result.points.get(pid, {c: 0 for c in CATEGORIES})),
            }

        return Event(
            "roundScored",
            {
                "roomId": self.room_id,
                "round": record.number,
                "letter": record.letter,
                "roundScores": {pid: result.total_for(pid) for pid in ids},
                "totals": self.totals(),
                "answers": answers,
                "recomputed": recomputed,
            },
        )

    def public_state(self) -> dict:
        with self.lock:
            room = self.room
            submitted: set[str] = set()
            if self.state == "round_active":
                submitted = self.ledger.submitted_ids(room.round)

            players = []
            for p in room.players.values():
                players.append(
                    {
                        "id": p.id,
                        "name": p.name,
                        "score": p.score,
                        "lastSubmitAt": p.last_submit_at_ms,
                        "submitted": p.id in submitted,
                        "isHost": p.id == room.host_id,
                    }
                )

            # Do NOT expose the secret to clients.
            return {
                "roomId": room.room_id,
                "hostId": room.host_id,
                "hasSecret": bool(room.secret),
                "state": self.state,
                "round": room.round,
                "totalRounds": room.total_rounds,
                "letter": room.letter,
                "usedLetters": list(room.used_letters),
                "maxPlayers": room.max_players,
                "players": players,
            }

    def room_update(self) -> Event:
        return Event("roomUpdate", self.public_state())
