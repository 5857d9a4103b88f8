"""
Board, column and card repositories (SQLite).

Every method is one unit of work under Database.run(). Lookups return None
for unknown ids; mutations of unknown ids raise NotFoundError.
"""
import logging
import sqlite3
from typing import Dict, Any, List, Optional, Sequence

from .db import Database, transaction
from .ordering import next_order, rebalance_orders
from .schema import (
    Board, Column, Card,
    BoardPatch, ColumnPatch, CardPatch,
    NewColumn, NewCard, CardMove, OrderUpdate,
    NotFoundError, new_id, require_text, utc_now,
)

logger = logging.getLogger(__name__)

BOARD_FIELDS = "id, name, last_opened_at, created_at, updated_at"
COLUMN_FIELDS = 'id, board_id, name, "order", archived, created_at, updated_at'
CARD_FIELDS = 'id, column_id, title, description, "order", archived, created_at, updated_at'


def _apply_patch(
    conn: sqlite3.Connection, table: str, row_id: str, changes: Dict[str, Any], now: str
) -> None:
    """
    UPDATE only the supplied fields plus updated_at.

    Column names come from the patch classes' fixed whitelist; values are
    always bound as parameters.
    """
    assignments = ["updated_at = ?"]
    params: List[Any] = [now]
    for column_name, value in changes.items():
        assignments.append(f"{column_name} = ?")
        params.append(value)
    params.append(row_id)
    cur = conn.execute(
        f"UPDATE {table} SET {', '.join(assignments)} WHERE id = ?", params
    )
    if cur.rowcount == 0:
        raise NotFoundError(f"{table[:-1].capitalize()} {row_id} not found")


def _apply_orders(conn: sqlite3.Connection, table: str, updates: Sequence[OrderUpdate], now: str) -> None:
    with transaction(conn):
        for update in updates:
            conn.execute(
                f'UPDATE {table} SET "order" = ?, updated_at = ? WHERE id = ?',
                (update.order, now, update.id),
            )


def _rebalance(conn: sqlite3.Connection, table: str, scope_field: str, scope_id: str, now: str) -> List[OrderUpdate]:
    rows = conn.execute(
        f'SELECT id FROM {table} WHERE {scope_field} = ? ORDER BY "order" ASC, created_at ASC',
        (scope_id,),
    ).fetchall()
    updates = rebalance_orders(r["id"] for r in rows)
    _apply_orders(conn, table, updates, now)
    return updates


class BoardStore:
    """Boards, most recently opened first."""

    def __init__(self, db: Database):
        self.db = db

    def list_all(self) -> List[Board]:
        def query(conn):
            rows = conn.execute(f"""
                SELECT {BOARD_FIELDS} FROM boards
                ORDER BY last_opened_at IS NULL, last_opened_at DESC, created_at DESC
            """).fetchall()
            return [Board.from_row(r) for r in rows]
        return self.db.run(query)

    def get(self, board_id: str) -> Optional[Board]:
        return self.db.run(lambda conn: self._get(conn, board_id))

    def _get(self, conn, board_id: str) -> Optional[Board]:
        row = conn.execute(
            f"SELECT {BOARD_FIELDS} FROM boards WHERE id = ?", (board_id,)
        ).fetchone()
        return Board.from_row(row) if row else None

    def create(self, name: str) -> Board:
        require_text(name, "name")
        now = utc_now()
        board = Board(
            id=new_id(),
            name=name,
            last_opened_at=now,
            created_at=now,
            updated_at=now,
        )

        def insert(conn):
            conn.execute(
                f"INSERT INTO boards ({BOARD_FIELDS}) VALUES (?, ?, ?, ?, ?)",
                (board.id, board.name, board.last_opened_at, board.created_at, board.updated_at),
            )
        self.db.run(insert)
        logger.debug(f"Created board {board.id}")
        return board

    def update(self, board_id: str, patch: BoardPatch) -> Board:
        now = utc_now()

        def apply(conn):
            _apply_patch(conn, "boards", board_id, patch.changes(), now)
            return self._get(conn, board_id)
        return self.db.run(apply)

    def delete(self, board_id: str) -> None:
        """Delete a board; its columns and their cards go with it."""
        self.db.run(lambda conn: conn.execute("DELETE FROM boards WHERE id = ?", (board_id,)))

    def mark_opened(self, board_id: str) -> None:
        """Refresh last_opened_at only; updated_at is left alone."""
        now = utc_now()
        self.db.run(lambda conn: conn.execute(
            "UPDATE boards SET last_opened_at = ? WHERE id = ?", (now, board_id)
        ))


class ColumnStore:
    """Columns ordered within their board."""

    def __init__(self, db: Database):
        self.db = db

    def list_for_board(self, board_id: str) -> List[Column]:
        """Active (non-archived) columns, ascending by order."""
        def query(conn):
            rows = conn.execute(f"""
                SELECT {COLUMN_FIELDS} FROM columns
                WHERE board_id = ? AND archived = 0
                ORDER BY "order" ASC
            """, (board_id,)).fetchall()
            return [Column.from_row(r) for r in rows]
        return self.db.run(query)

    def get(self, column_id: str) -> Optional[Column]:
        return self.db.run(lambda conn: self._get(conn, column_id))

    def _get(self, conn, column_id: str) -> Optional[Column]:
        row = conn.execute(
            f"SELECT {COLUMN_FIELDS} FROM columns WHERE id = ?", (column_id,)
        ).fetchone()
        return Column.from_row(row) if row else None

    def create(self, new: NewColumn) -> Column:
        now = utc_now()

        def insert(conn):
            order = new.order
            if order is None:
                max_order = conn.execute(
                    'SELECT MAX("order") FROM columns WHERE board_id = ?', (new.board_id,)
                ).fetchone()[0]
                order = next_order(max_order)
            column = Column(
                id=new_id(),
                board_id=new.board_id,
                name=new.name,
                order=order,
                archived=False,
                created_at=now,
                updated_at=now,
            )
            conn.execute(
                f"INSERT INTO columns ({COLUMN_FIELDS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (column.id, column.board_id, column.name, column.order,
                 int(column.archived), column.created_at, column.updated_at),
            )
            return column
        return self.db.run(insert)

    def update(self, column_id: str, patch: ColumnPatch) -> Column:
        now = utc_now()

        def apply(conn):
            _apply_patch(conn, "columns", column_id, patch.changes(), now)
            return self._get(conn, column_id)
        return self.db.run(apply)

    def delete(self, column_id: str) -> None:
        self.db.run(lambda conn: conn.execute("DELETE FROM columns WHERE id = ?", (column_id,)))

    def reorder(self, updates: Sequence[OrderUpdate]) -> None:
        """Apply {id, order} pairs in sequence; all or nothing."""
        now = utc_now()
        self.db.run(lambda conn: _apply_orders(conn, "columns", updates, now))

    def rebalance(self, board_id: str) -> List[OrderUpdate]:
        """Rewrite every column order in the board as 1, 2, 3, ..."""
        now = utc_now()
        updates = self.db.run(lambda conn: _rebalance(conn, "columns", "board_id", board_id, now))
        logger.info(f"Rebalanced {len(updates)} columns in board {board_id}")
        return updates


class CardStore:
    """Cards ordered within their column."""

    def __init__(self, db: Database):
        self.db = db

    def list_for_column(self, column_id: str) -> List[Card]:
        def query(conn):
            rows = conn.execute(f"""
                SELECT {CARD_FIELDS} FROM cards
                WHERE column_id = ? AND archived = 0
                ORDER BY "order" ASC
            """, (column_id,)).fetchall()
            return [Card.from_row(r) for r in rows]
        return self.db.run(query)

    def list_for_board(self, board_id: str) -> List[Card]:
        """
        Active cards of every column in the board.

        Only the card's own archived flag is filtered; cards in archived
        columns are still returned.
        """
        def query(conn):
            rows = conn.execute("""
                SELECT c.id, c.column_id, c.title, c.description, c."order",
                       c.archived, c.created_at, c.updated_at
                FROM cards c
                INNER JOIN columns col ON c.column_id = col.id
                WHERE col.board_id = ? AND c.archived = 0
                ORDER BY c."order" ASC
            """, (board_id,)).fetchall()
            return [Card.from_row(r) for r in rows]
        return self.db.run(query)

    def get(self, card_id: str) -> Optional[Card]:
        return self.db.run(lambda conn: self._get(conn, card_id))

    def _get(self, conn, card_id: str) -> Optional[Card]:
        row = conn.execute(
            f"SELECT {CARD_FIELDS} FROM cards WHERE id = ?", (card_id,)
        ).fetchone()
        return Card.from_row(row) if row else None

    def create(self, new: NewCard) -> Card:
        now = utc_now()

        def insert(conn):
            order = new.order
            if order is None:
                max_order = conn.execute(
                    'SELECT MAX("order") FROM cards WHERE column_id = ?', (new.column_id,)
                ).fetchone()[0]
                order = next_order(max_order)
            card = Card(
                id=new_id(),
                column_id=new.column_id,
                title=new.title,
                description=new.description,
                order=order,
                archived=False,
                created_at=now,
                updated_at=now,
            )
            conn.execute(
                f"INSERT INTO cards ({CARD_FIELDS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (card.id, card.column_id, card.title, card.description, card.order,
                 int(card.archived), card.created_at, card.updated_at),
            )
            return card
        return self.db.run(insert)

    def update(self, card_id: str, patch: CardPatch) -> Card:
        now = utc_now()

        def apply(conn):
            _apply_patch(conn, "cards", card_id, patch.changes(), now)
            return self._get(conn, card_id)
        return self.db.run(apply)

    def delete(self, card_id: str) -> None:
        self.db.run(lambda conn: conn.execute("DELETE FROM cards WHERE id = ?", (card_id,)))

    def move(self, card_id: str, target: CardMove) -> Card:
        """
        Reassign a card to a column and position in one statement.

        The target column may belong to another board.
        """
        now = utc_now()

        def apply(conn):
            cur = conn.execute(
                'UPDATE cards SET column_id = ?, "order" = ?, updated_at = ? WHERE id = ?',
                (target.column_id, target.order, now, card_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Card {card_id} not found")
            return self._get(conn, card_id)
        return self.db.run(apply)

    def batch_update_orders(self, updates: Sequence[OrderUpdate]) -> None:
        now = utc_now()
        self.db.run(lambda conn: _apply_orders(conn, "cards", updates, now))

    def rebalance(self, column_id: str) -> List[OrderUpdate]:
        """Rewrite every card order in the column as 1, 2, 3, ..."""
        now = utc_now()
        updates = self.db.run(lambda conn: _rebalance(conn, "cards", "column_id", column_id, now))
        logger.info(f"Rebalanced {len(updates)} cards in column {column_id}")
        return updates
