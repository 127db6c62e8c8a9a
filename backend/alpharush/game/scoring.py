"""Answer validation and round scoring.

Everything here is pure: the same submissions and letter always produce the
same points, whatever order the players are iterated in.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from .models import CATEGORIES, RoundRecord, Submission


UNIQUE_POINTS = 10
SHARED_POINTS = 5
MIN_ANSWER_LENGTH = 3


def normalize_answer(value: str | None) -> str:
    return (value or "").strip().lower()


def is_valid_answer(value: str | None, letter: str | None, min_length: int = MIN_ANSWER_LENGTH) -> bool:
    v = (value or "").strip()
    if not v:
        return False
    if len(v) < min_length:
        return False
    if not (v.isascii() and v.isalpha()):
        return False
    # "aaaa" is alphabetic and long enough but still rejected.
    if len(set(v.lower())) == 1:
        return False
    if not letter or v[0].lower() != letter.lower():
        return False
    return True


@dataclass
class RoundScore:
    # player id -> category -> points
    points: dict[str, dict[str, int]] = field(default_factory=dict)

    def total_for(self, player_id: str) -> int:
        return sum(self.points.get(player_id, {}).values())

    def totals(self, player_ids: Iterable[str] | None = None) -> dict[str, int]:
        ids = list(player_ids) if player_ids is not None else list(self.points)
        return {pid: self.total_for(pid) for pid in ids}


def score_submissions(
    submissions: Mapping[str, Submission],
    letter: str | None,
    min_length: int = MIN_ANSWER_LENGTH,
) -> RoundScore:
    groups: dict[str, dict[str, list[str]]] = {c: defaultdict(list) for c in CATEGORIES}

    for pid, sub in submissions.items():
        for cat in CATEGORIES:
            if sub.invalid.get(cat):
                continue
            raw = sub.answers.get(cat, "")
            if not is_valid_answer(raw, letter, min_length):
                continue
            groups[cat][normalize_answer(raw)].append(pid)

    result = RoundScore(points={pid: {c: 0 for c in CATEGORIES} for pid in submissions})
    for cat, by_text in groups.items():
        for pids in by_text.values():
            pts = UNIQUE_POINTS if len(pids) == 1 else SHARED_POINTS
            for pid in pids:
                result.points[pid][cat] = pts
    return result


def score_round(record: RoundRecord, min_length: int = MIN_ANSWER_LENGTH) -> RoundScore:
    return score_submissions(record.submissions, record.letter, min_length)


def cumulative_totals(
    records: Iterable[RoundRecord],
    player_ids: Iterable[str],
    min_length: int = MIN_ANSWER_LENGTH,
) -> dict[str, int]:
    """Rebuild every player's total from scratch over the scored rounds."""
    totals = {pid: 0 for pid in player_ids}
    for record in records:
        if not record.is_scored:
            continue
        result = score_round(record, min_length)
        for pid in totals:
            totals[pid] += result.total_for(pid)
    return totals
