"""Tabular view over a room's answer ledger.

Points are recomputed with the scorer for every row, independently of the
players' live totals.
"""

from __future__ import annotations

import csv
import io

from .models import CATEGORIES
from .scoring import score_round
from .session import RoomSession


CSV_HEADER = ["Round", "Letter", "PlayerId", "PlayerName", "Category", "Answer", "Invalid", "Points"]


def export_rows(session: RoomSession) -> list[dict]:
    rows: list[dict] = []
    with session.lock:
        players = session.room.players
        for record in session.ledger.rounds():
            result = score_round(record, session.min_answer_length)

            # Current players in join order, then anyone who answered and left.
            ids = list(players)
            ids.extend(pid for pid in record.submissions if pid not in players)

            for pid in ids:
                sub = record.submissions.get(pid)
                if pid in players:
                    name = players[pid].name
                else:
                    name = sub.player_name if sub else ""
                for cat in CATEGORIES:
                    rows.append(
                        {
                            "round": record.number,
                            "letter": record.letter,
                            "playerId": pid,
                            "playerName": name,
                            "category": cat,
                            "answer": sub.answers.get(cat, "") if sub else "",
                            "invalid": bool(sub.invalid.get(cat)) if sub else False,
                            "points": result.points.get(pid, {}).get(cat, 0),
                        }
                    )
    return rows


def rows_to_csv(rows: list[dict]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(CSV_HEADER)
    for r in rows:
        writer.writerow(
            [
                r["round"],
                r["letter"],
                r["playerId"],
                r["playerName"],
                r["category"],
                r["answer"],
                "yes" if r["invalid"] else "no",
                r["points"],
            ]
        )
    return buf.getvalue()
