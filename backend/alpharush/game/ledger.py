from __future__ import annotations

from collections.abc import Mapping

from .errors import AlreadyScored, InvalidPayload, InvalidState, NotFound
from .models import CATEGORIES, RoundRecord, Submission


def clean_answers(raw: Mapping | None, max_length: int = 64) -> dict[str, str]:
    """Keep only known categories, coerced to strings.

    An answer longer than ``max_length`` rejects the whole payload.
    """
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise InvalidPayload(message="answers must be an object")
    cleaned: dict[str, str] = {}
    for cat in CATEGORIES:
        if cat not in raw:
            continue
        value = raw.get(cat)
        text = "" if value is None else str(value)
        if len(text.strip()) > max_length:
            raise InvalidPayload("answer_too_long", f"{cat} is longer than {max_length} characters")
        cleaned[cat] = text
    return cleaned


class AnswerLedger:
    """Per-room store of every round's drafts, submissions and invalidation flags."""

    def __init__(self) -> None:
        self._rounds: dict[int, RoundRecord] = {}

    def open_round(self, number: int, letter: str) -> RoundRecord:
        if number in self._rounds:
            raise InvalidState(message=f"round {number} already exists")
        record = RoundRecord(number=number, letter=letter)
        self._rounds[number] = record
        return record

    def get(self, number: int) -> RoundRecord:
        record = self._rounds.get(number)
        if record is None:
            raise NotFound("round_not_found")
        return record

    def has(self, number: int) -> bool:
        return number in self._rounds

    def rounds(self) -> list[RoundRecord]:
        return [self._rounds[n] for n in sorted(self._rounds)]

    def _open_record(self, number: int) -> RoundRecord:
        record = self.get(number)
        if record.is_scored:
            raise InvalidState("round_closed")
        return record

    def draft(self, number: int, player_id: str, player_name: str, answers: Mapping[str, str]) -> Submission:
        record = self._open_record(number)
        sub = record.submissions.get(player_id)
        if sub is None:
            sub = Submission(player_id=player_id, player_name=player_name)
            record.submissions[player_id] = sub
        sub.player_name = player_name
        # Drafts merge and never touch the submission timestamp.
        sub.answers.update(answers)
        return sub

    def submit(
        self,
        number: int,
        player_id: str,
        player_name: str,
        answers: Mapping[str, str],
        now_ms: int,
    ) -> Submission:
        record = self._open_record(number)
        # The final payload replaces any draft or earlier submit; omitted categories are blank.
        sub = Submission(player_id=player_id, player_name=player_name, submitted_at_ms=now_ms)
        sub.answers.update(answers)
        record.submissions[player_id] = sub
        return sub

    def submitted_ids(self, number: int) -> set[str]:
        record = self.get(number)
        return {pid for pid, sub in record.submissions.items() if sub.is_submitted}

    def mark_scored(self, number: int) -> RoundRecord:
        record = self.get(number)
        if record.is_scored:
            raise AlreadyScored(message=f"round {number} already scored")
        record.state = "scored"
        return record

    def set_invalid(self, number: int, player_id: str, category: str, invalid: bool) -> Submission:
        if category not in CATEGORIES:
            raise InvalidPayload("invalid_category")
        record = self.get(number)
        sub = record.submissions.get(player_id)
        if sub is None:
            raise NotFound("player_not_found", f"no answers from {player_id} in round {number}")
        sub.invalid[category] = bool(invalid)
        return sub
