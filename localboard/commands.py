"""
Command surface: named request/response calls for the UI shell.

Each call takes the camelCase payload the UI sends and returns either a
JSON-ready value or a human-readable error string. Only names present in
COMMAND_TABLE can be invoked.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .app import KanbanApp
from .db import ConstraintError, ContentionError
from .schema import (
    BoardPatch, ColumnPatch, CardPatch,
    NewColumn, NewCard, CardMove, OrderUpdate,
    LocalboardError, NotFoundError, ValidationError, require_text,
)

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    ok: bool
    value: Any = None
    error: Optional[str] = None
    # coarse kind for transports that want status codes
    kind: str = "ok"

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"ok": True, "value": self.value}
        return {"ok": False, "error": self.error}


def _arg(payload: Dict[str, Any], key: str) -> Any:
    if key not in payload:
        raise ValidationError(f"missing argument: {key}")
    return payload[key]


def _id(payload: Dict[str, Any], key: str = "id") -> str:
    return require_text(_arg(payload, key), key)


def _dump(obj):
    return obj.to_dict() if obj is not None else None


# ── Boards ───────────────────────────────────────────────────────────────────

def list_boards(app: KanbanApp, payload):
    return [b.to_dict() for b in app.boards.list_all()]


def get_board(app: KanbanApp, payload):
    return _dump(app.boards.get(_id(payload)))


def create_board(app: KanbanApp, payload):
    data = _arg(payload, "input")
    if not isinstance(data, dict):
        raise ValidationError("input must be an object")
    return app.boards.create(data.get("name")).to_dict()


def update_board(app: KanbanApp, payload):
    patch = BoardPatch.from_dict(_arg(payload, "input"))
    return app.boards.update(_id(payload), patch).to_dict()


def delete_board(app: KanbanApp, payload):
    app.boards.delete(_id(payload))


def mark_board_opened(app: KanbanApp, payload):
    app.boards.mark_opened(_id(payload))


# ── Columns ──────────────────────────────────────────────────────────────────

def list_columns(app: KanbanApp, payload):
    return [c.to_dict() for c in app.columns.list_for_board(_id(payload, "boardId"))]


def create_column(app: KanbanApp, payload):
    return app.columns.create(NewColumn.from_dict(_arg(payload, "input"))).to_dict()


def update_column(app: KanbanApp, payload):
    patch = ColumnPatch.from_dict(_arg(payload, "input"))
    return app.columns.update(_id(payload), patch).to_dict()


def delete_column(app: KanbanApp, payload):
    app.columns.delete(_id(payload))


def reorder_columns(app: KanbanApp, payload):
    app.columns.reorder(OrderUpdate.list_from(_arg(payload, "updates")))


def rebalance_columns(app: KanbanApp, payload):
    updates = app.columns.rebalance(_id(payload, "boardId"))
    return [{"id": u.id, "order": u.order} for u in updates]


# ── Cards ────────────────────────────────────────────────────────────────────

def list_cards_for_board(app: KanbanApp, payload):
    return [c.to_dict() for c in app.cards.list_for_board(_id(payload, "boardId"))]


def list_cards_for_column(app: KanbanApp, payload):
    return [c.to_dict() for c in app.cards.list_for_column(_id(payload, "columnId"))]


def get_card(app: KanbanApp, payload):
    return _dump(app.cards.get(_id(payload)))


def create_card(app: KanbanApp, payload):
    return app.cards.create(NewCard.from_dict(_arg(payload, "input"))).to_dict()


def update_card(app: KanbanApp, payload):
    patch = CardPatch.from_dict(_arg(payload, "input"))
    return app.cards.update(_id(payload), patch).to_dict()


def delete_card(app: KanbanApp, payload):
    app.cards.delete(_id(payload))


def move_card(app: KanbanApp, payload):
    target = CardMove.from_dict(_arg(payload, "input"))
    return app.cards.move(_id(payload), target).to_dict()


def batch_update_card_orders(app: KanbanApp, payload):
    app.cards.batch_update_orders(OrderUpdate.list_from(_arg(payload, "updates")))


def rebalance_cards(app: KanbanApp, payload):
    updates = app.cards.rebalance(_id(payload, "columnId"))
    return [{"id": u.id, "order": u.order} for u in updates]


# ── Maintenance ──────────────────────────────────────────────────────────────

def create_backup(app: KanbanApp, payload):
    return str(app.backups.snapshot())


def list_backups(app: KanbanApp, payload):
    return [b.to_dict() for b in app.backups.list()]


def cleanup_old_backups(app: KanbanApp, payload):
    keep = _arg(payload, "keepCount")
    if isinstance(keep, bool) or not isinstance(keep, int) or keep < 0:
        raise ValidationError("keepCount must be a non-negative integer")
    return app.backups.retain(keep)


def check_integrity(app: KanbanApp, payload):
    return app.db.integrity_check()


def list_applied_migrations(app: KanbanApp, payload):
    return app.db.applied_migrations()


COMMAND_TABLE: Dict[str, Callable[[KanbanApp, Dict[str, Any]], Any]] = {
    "listBoards": list_boards,
    "getBoard": get_board,
    "createBoard": create_board,
    "updateBoard": update_board,
    "deleteBoard": delete_board,
    "markBoardOpened": mark_board_opened,
    "listColumns": list_columns,
    "createColumn": create_column,
    "updateColumn": update_column,
    "deleteColumn": delete_column,
    "reorderColumns": reorder_columns,
    "rebalanceColumns": rebalance_columns,
    "listCardsForBoard": list_cards_for_board,
    "listCardsForColumn": list_cards_for_column,
    "getCard": get_card,
    "createCard": create_card,
    "updateCard": update_card,
    "deleteCard": delete_card,
    "moveCard": move_card,
    "batchUpdateCardOrders": batch_update_card_orders,
    "rebalanceCards": rebalance_cards,
    "createBackup": create_backup,
    "listBackups": list_backups,
    "cleanupOldBackups": cleanup_old_backups,
    "checkIntegrity": check_integrity,
    "listAppliedMigrations": list_applied_migrations,
}


def _kind(e: Exception) -> str:
    if isinstance(e, ValidationError):
        return "invalid"
    if isinstance(e, NotFoundError):
        return "not_found"
    if isinstance(e, (ConstraintError, ContentionError)):
        return "conflict"
    return "error"


def invoke(app: KanbanApp, name: str, payload: Optional[Dict[str, Any]] = None) -> CommandResult:
    """Run one named call. Never raises; failures come back as error strings."""
    handler = COMMAND_TABLE.get(name)
    if handler is None:
        logger.warning(f"Rejected unknown command: {name}")
        return CommandResult(ok=False, error=f"Unknown command: {name}", kind="invalid")

    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        return CommandResult(ok=False, error="payload must be an object", kind="invalid")

    try:
        return CommandResult(ok=True, value=handler(app, payload))
    except LocalboardError as e:
        logger.warning(f"{name} failed: {e}")
        return CommandResult(ok=False, error=str(e), kind=_kind(e))
    except Exception as e:
        logger.error(f"{name} failed with exception: {e}", exc_info=True)
        return CommandResult(ok=False, error=f"{type(e).__name__}: {e}", kind="error")
