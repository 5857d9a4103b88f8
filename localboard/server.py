"""
localboard HTTP shell
---------------------
Exposes the command surface to a UI shell as JSON over HTTP.

API:
    POST /api/invoke/<name>  → JSON body is the call payload, e.g.
                               {"input": {"name": "My Project"}} for createBoard
                               Returns the call's value as JSON, or
                               {"error": "..."} with 400/404/409/500
    GET  /api/commands       → JSON: { commands: [...] }
    GET  /health             → JSON: { status, db, migrations }

Auth:
    When LOCALBOARD_API_SECRET is set, every call that writes requires a
    matching X-API-Key header. Unset means local-only use without a key.
"""
import hmac
import logging
import os
from functools import wraps

from flask import Flask, jsonify, request

from .app import KanbanApp
from .commands import COMMAND_TABLE, invoke

logger = logging.getLogger(__name__)

API_SECRET_ENV = "LOCALBOARD_API_SECRET"

READ_ONLY_COMMANDS = frozenset({
    "listBoards",
    "getBoard",
    "listColumns",
    "listCardsForBoard",
    "listCardsForColumn",
    "getCard",
    "listBackups",
    "checkIntegrity",
    "listAppliedMigrations",
})

STATUS_BY_KIND = {
    "invalid": 400,
    "not_found": 404,
    "conflict": 409,
    "error": 500,
}


def require_api_key(f):
    """Decorator: reject writing calls without a valid X-API-Key header."""
    @wraps(f)
    def decorated(name, *args, **kwargs):
        secret = os.environ.get(API_SECRET_ENV, "")
        if secret and name not in READ_ONLY_COMMANDS:
            provided = request.headers.get("X-API-Key", "").strip()
            if not hmac.compare_digest(provided, secret):
                code = 401 if not provided else 403
                return jsonify({"error": "Unauthorized"}), code
        return f(name, *args, **kwargs)
    return decorated


def create_app(kanban: KanbanApp) -> Flask:
    app = Flask(__name__)

    @app.route("/api/invoke/<name>", methods=["POST"])
    @require_api_key
    def api_invoke(name):
        payload = request.get_json(force=True, silent=True)
        result = invoke(kanban, name, payload)
        if result.ok:
            return jsonify(result.value)
        return jsonify({"error": result.error}), STATUS_BY_KIND.get(result.kind, 500)

    @app.route("/api/commands")
    def api_commands():
        return jsonify({"commands": sorted(COMMAND_TABLE)})

    @app.route("/health")
    def health():
        return jsonify({
            "status": "ok",
            "db": str(kanban.config.db_path),
            "migrations": len(kanban.db.applied_migrations()),
        })

    return app


def serve(kanban: KanbanApp, host: str, port: int) -> None:
    if host not in ("127.0.0.1", "localhost") and not os.environ.get(API_SECRET_ENV):
        logger.warning(
            f"Binding to {host} without {API_SECRET_ENV}; writes are unauthenticated"
        )
    logger.info(f"Serving on http://{host}:{port}")
    create_app(kanban).run(host=host, port=port, debug=False, threaded=True)
