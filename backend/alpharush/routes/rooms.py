from __future__ import annotations

from flask import Blueprint, Response, jsonify, request

from ..game import service
from ..game.export import export_rows, rows_to_csv

bp = Blueprint("rooms", __name__)


@bp.get("/rooms/<room_id>")
def get_room(room_id: str):
    session = service.get_session(room_id)
    if not session:
        return jsonify({"error": "room_not_found"}), 404
    return jsonify(session.public_state())


@bp.get("/rooms/<room_id>/export")
def export_room(room_id: str):
    session = service.get_session(room_id)
    if not session:
        return jsonify({"error": "room_not_found"}), 404

    rows = export_rows(session)
    if request.args.get("format") == "json":
        return jsonify({"roomId": room_id, "rows": rows})

    return Response(
        rows_to_csv(rows),
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="alpharush_{room_id}_answers.csv"'},
    )
