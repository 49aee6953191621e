"""
Flask API for homewatch.

Endpoints:
  GET  /api/health                  : Liveness and backend info
  POST /api/readings                : Batch reading ingestion (runs alert evaluation)
  GET  /api/alerts                  : Alerts, filtered by owner_id / level / status
  POST /api/alerts/<id>/ack         : new -> acknowledged
  POST /api/alerts/<id>/close       : new|acknowledged -> closed
  GET  /api/alerts/rules            : Rules, optionally for one metric
  POST /api/alerts/rules            : Create a rule
  GET|PUT|DELETE /api/alerts/rules/<id>
  GET  /api/live/<user_id>          : Server-sent events of new alerts
  GET  /api/live/<user_id>/recent   : Recently pushed events
  GET  /api/summary                 : Open alert count and per-level stats

Started via: homewatch web [--port 5000] [--host 0.0.0.0]
"""
import json
import queue
import logging
from datetime import datetime, timezone

from flask import Flask, Response, jsonify, request, stream_with_context

from alerts.channels import find_broker, room_for_user
from alerts.rules_manager import RuleValidationError
from models.database import InvalidTransitionError, NotFoundError

logger = logging.getLogger("homewatch.web.app")

SSE_HEARTBEAT_SECONDS = 15


def create_app(config: dict, engines: dict) -> Flask:
    """
    Factory function. Receives initialized engines from main.py CLI or wsgi.py.

    Args:
        config: Application config dict
        engines: dict with db, engine, ingestor, rules and live (the live channel)
    """
    app = Flask(__name__)

    db = engines["db"]
    ingestor = engines["ingestor"]
    rules = engines["rules"]
    live = engines.get("live")
    broker = find_broker(live)

    # ─── Errors ──────────────────────────────────────────

    @app.errorhandler(NotFoundError)
    def handle_not_found(e):
        return jsonify({"status": "error", "error": str(e)}), 404

    @app.errorhandler(InvalidTransitionError)
    def handle_transition(e):
        return jsonify({"status": "error", "error": str(e)}), 409

    @app.errorhandler(RuleValidationError)
    def handle_validation(e):
        return jsonify({"status": "error", "error": str(e)}), 400

    # ─── Health ──────────────────────────────────────────

    @app.route("/api/health")
    def api_health():
        return jsonify({
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "services": {
                "database": "healthy" if db.conn is not None else "disconnected",
                "cache": config.get("cache", {}).get("backend", "memory"),
                "live": config.get("live", {}).get("backend", "memory"),
            },
        })

    # ─── Readings ────────────────────────────────────────

    @app.route("/api/readings", methods=["POST"])
    def api_readings():
        payload = request.get_json(silent=True)
        if isinstance(payload, dict):
            payload = [payload]
        if not isinstance(payload, list):
            return jsonify({"status": "error", "error": "Expected a JSON list of readings"}), 400

        result = ingestor.ingest(payload, owner_id=request.args.get("owner_id"), notifier=live)
        return jsonify({"status": "ok", "data": result.to_dict()}), 201

    # ─── Alerts ──────────────────────────────────────────

    @app.route("/api/alerts")
    def api_alerts():
        limit = request.args.get("limit", 50, type=int)
        alerts = db.list_alerts(
            owner_id=request.args.get("owner_id"),
            level=request.args.get("level"),
            status=request.args.get("status"),
            limit=max(1, min(limit, 500)),
        )
        return jsonify({"status": "ok", "data": [a.to_dict() for a in alerts], "count": len(alerts)})

    @app.route("/api/alerts/<alert_id>/ack", methods=["POST"])
    def api_alert_ack(alert_id):
        alert = db.acknowledge_alert(alert_id)
        return jsonify({"status": "ok", "data": alert.to_dict()})

    @app.route("/api/alerts/<alert_id>/close", methods=["POST"])
    def api_alert_close(alert_id):
        alert = db.close_alert(alert_id)
        return jsonify({"status": "ok", "data": alert.to_dict()})

    @app.route("/api/summary")
    def api_summary():
        owner_id = request.args.get("owner_id")
        return jsonify({
            "status": "ok",
            "data": {
                "open_alerts": db.count_open_alerts(owner_id),
                "by_level": db.get_alert_stats(),
            },
        })

    # ─── Rules ───────────────────────────────────────────

    @app.route("/api/alerts/rules", methods=["GET", "POST"])
    def api_rules():
        if request.method == "POST":
            rule = rules.create(request.get_json(silent=True))
            return jsonify({"status": "ok", "data": rule.to_dict()}), 201
        found = rules.list(request.args.get("metric_id"))
        return jsonify({"status": "ok", "data": [r.to_dict() for r in found], "count": len(found)})

    @app.route("/api/alerts/rules/<rule_id>", methods=["GET", "PUT", "DELETE"])
    def api_rule(rule_id):
        if request.method == "PUT":
            rule = rules.update(rule_id, request.get_json(silent=True) or {})
            return jsonify({"status": "ok", "data": rule.to_dict()})
        if request.method == "DELETE":
            rules.delete(rule_id)
            return jsonify({"status": "ok"})
        return jsonify({"status": "ok", "data": rules.get(rule_id).to_dict()})

    # ─── Live feed ───────────────────────────────────────

    @app.route("/api/live/<user_id>")
    def api_live(user_id):
        if broker is None:
            return jsonify({"status": "error", "error": "Live feed is not served by this process"}), 404

        room = room_for_user(user_id)
        q = broker.subscribe(room)

        def stream():
            try:
                yield ": connected\n\n"
                while True:
                    try:
                        message = q.get(timeout=SSE_HEARTBEAT_SECONDS)
                    except queue.Empty:
                        yield ": keepalive\n\n"
                        continue
                    yield f"event: {message['event']}\ndata: {json.dumps(message['data'])}\n\n"
            finally:
                broker.unsubscribe(room, q)

        return Response(stream_with_context(stream()), mimetype="text/event-stream",
                        headers={"Cache-Control": "no-cache"})

    @app.route("/api/live/<user_id>/recent")
    def api_live_recent(user_id):
        if broker is None:
            return jsonify({"status": "error", "error": "Live feed is not served by this process"}), 404
        events = broker.recent(room_for_user(user_id))
        return jsonify({"status": "ok", "data": events, "count": len(events)})

    return app
