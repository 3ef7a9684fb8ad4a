from flask import Flask, jsonify, request

from config import STATE_DB_PATH
from db import init_state_db, list_runs, get_order_runs, open_orphans  # <-- shared DB module
from models import build_context

app = Flask(__name__)

# IMPORTANT: waitress imports the module; it does NOT run __main__
# So we initialize schema + indexes at import time.
init_state_db()


def _rows(rows):
    return [dict(r) for r in rows]


@app.route("/api/runs")
def runs():
    q = (request.args.get("q") or "").strip()
    try:
        limit = max(1, min(int(request.args.get("limit", 25)), 500))
    except ValueError:
        limit = 25
    return jsonify({"q": q, "db_path": STATE_DB_PATH, "runs": _rows(list_runs(q, limit))})


@app.route("/api/orders/<orno>")
def order_detail(orno):
    rows = _rows(get_order_runs(orno))
    if not rows:
        return jsonify({"orno": orno, "error": "no runs recorded"}), 404
    return jsonify({"orno": orno, "latest": rows[0], "runs": rows})


@app.route("/api/orphans")
def orphans():
    return jsonify({"orphans": _rows(open_orphans())})


@app.route("/api/orders/<orno>/pretext", methods=["POST"])
def order_add_pretext(orno):
    # imported here so the dashboard can start without ODBC drivers
    from app import add_pretext

    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        body = {}
    cono = body.get("cono")
    if cono is not None:
        try:
            cono = int(cono)
        except (TypeError, ValueError):
            return jsonify({"orno": orno, "error": f"cono must be a number, got {cono!r}"}), 400
    ctx = build_context(cono=cono, user=body.get("user"))
    result = add_pretext(orno, ctx)

    payload = {
        "orno": result.orno,
        "status": result.status,
        "step": result.step,
        "message": result.message,
        "new_txid": result.new_txid or None,
        "error_kind": result.error.kind if result.error is not None else None,
    }
    return jsonify(payload), (422 if result.is_error else 200)


if __name__ == "__main__":
    # For local dev only. Waitress uses admin:app
    init_state_db()
    app.run(host="0.0.0.0", port=5050, debug=True)
