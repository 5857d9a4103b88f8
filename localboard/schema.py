"""
Board, column and card records.

Hierarchy:
  Board → Column → Card

Columns and cards carry a real-valued `order` key; siblings display in
ascending order. Records serialize to camelCase dicts for the UI shell.
"""
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any


class LocalboardError(Exception):
    """Base class for every error raised by localboard."""
    pass


class ValidationError(LocalboardError):
    """Raised when input fails validation before reaching the store."""
    pass


class NotFoundError(LocalboardError):
    """Raised when a mutation targets a row that does not exist."""
    pass


def utc_now() -> str:
    """ISO-8601 UTC timestamp."""
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


def require_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value


def require_order(value: Any, field_name: str = "order") -> float:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field_name} must be a number")
    if not math.isfinite(value):
        raise ValidationError(f"{field_name} must be finite")
    return float(value)


def _optional_order(value: Any) -> Optional[float]:
    return None if value is None else require_order(value)


def _optional_bool(value: Any, field_name: str) -> Optional[bool]:
    if value is None:
        return None
    if not isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a boolean")
    return value


def _payload(data: Any, what: str) -> Dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError(f"{what} must be an object")
    return data


# ── Records ─────────────────────────────────────────────────────────────────


@dataclass
class Board:
    id: str
    name: str
    last_opened_at: Optional[str]
    created_at: str
    updated_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "lastOpenedAt": self.last_opened_at,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_row(cls, row) -> "Board":
        return cls(
            id=row["id"],
            name=row["name"],
            last_opened_at=row["last_opened_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


@dataclass
class Column:
    id: str
    board_id: str
    name: str
    order: float
    archived: bool
    created_at: str
    updated_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "boardId": self.board_id,
            "name": self.name,
            "order": self.order,
            "archived": self.archived,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_row(cls, row) -> "Column":
        return cls(
            id=row["id"],
            board_id=row["board_id"],
            name=row["name"],
            order=float(row["order"]),
            archived=bool(row["archived"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


@dataclass
class Card:
    id: str
    column_id: str
    title: str
    description: Optional[str]
    order: float
    archived: bool
    created_at: str
    updated_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "columnId": self.column_id,
            "title": self.title,
            "description": self.description,
            "order": self.order,
            "archived": self.archived,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_row(cls, row) -> "Card":
        return cls(
            id=row["id"],
            column_id=row["column_id"],
            title=row["title"],
            description=row["description"],
            order=float(row["order"]),
            archived=bool(row["archived"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


# ── Inputs ──────────────────────────────────────────────────────────────────


@dataclass
class NewColumn:
    board_id: str
    name: str
    order: Optional[float] = None

    def __post_init__(self):
        require_text(self.board_id, "boardId")
        require_text(self.name, "name")
        self.order = _optional_order(self.order)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NewColumn":
        data = _payload(data, "input")
        return cls(
            board_id=data.get("boardId"),
            name=data.get("name"),
            order=data.get("order"),
        )


@dataclass
class NewCard:
    column_id: str
    title: str
    description: Optional[str] = None
    order: Optional[float] = None

    def __post_init__(self):
        require_text(self.column_id, "columnId")
        require_text(self.title, "title")
        if self.description is not None and not isinstance(self.description, str):
            raise ValidationError("description must be a string")
        self.order = _optional_order(self.order)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NewCard":
        data = _payload(data, "input")
        return cls(
            column_id=data.get("columnId"),
            title=data.get("title"),
            description=data.get("description"),
            order=data.get("order"),
        )


@dataclass
class CardMove:
    """Drag-and-drop target: a column and a position within it."""
    column_id: str
    order: float

    def __post_init__(self):
        require_text(self.column_id, "columnId")
        self.order = require_order(self.order)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CardMove":
        data = _payload(data, "input")
        return cls(column_id=data.get("columnId"), order=data.get("order"))


@dataclass
class OrderUpdate:
    id: str
    order: float

    def __post_init__(self):
        require_text(self.id, "id")
        self.order = require_order(self.order)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderUpdate":
        data = _payload(data, "update")
        return cls(id=data.get("id"), order=data.get("order"))

    @classmethod
    def list_from(cls, items: Any) -> List["OrderUpdate"]:
        if not isinstance(items, list):
            raise ValidationError("updates must be a list")
        return [cls.from_dict(item) for item in items]


# ── Patches ─────────────────────────────────────────────────────────────────
#
# A patch holds one optional value per editable attribute. None means "leave
# unchanged". changes() maps the supplied values onto fixed SQL column
# identifiers so update statements are built from a whitelist only.


@dataclass
class BoardPatch:
    name: Optional[str] = None

    def __post_init__(self):
        if self.name is not None:
            require_text(self.name, "name")

    def changes(self) -> Dict[str, Any]:
        fields = {}
        if self.name is not None:
            fields["name"] = self.name
        return fields

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BoardPatch":
        data = _payload(data, "input")
        return cls(name=data.get("name"))


@dataclass
class ColumnPatch:
    name: Optional[str] = None
    order: Optional[float] = None
    archived: Optional[bool] = None

    def __post_init__(self):
        if self.name is not None:
            require_text(self.name, "name")
        self.order = _optional_order(self.order)
        self.archived = _optional_bool(self.archived, "archived")

    def changes(self) -> Dict[str, Any]:
        fields = {}
        if self.name is not None:
            fields["name"] = self.name
        if self.order is not None:
            fields['"order"'] = self.order
        if self.archived is not None:
            fields["archived"] = int(self.archived)
        return fields

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ColumnPatch":
        data = _payload(data, "input")
        return cls(
            name=data.get("name"),
            order=data.get("order"),
            archived=data.get("archived"),
        )


@dataclass
class CardPatch:
    title: Optional[str] = None
    description: Optional[str] = None
    order: Optional[float] = None
    archived: Optional[bool] = None

    def __post_init__(self):
        if self.title is not None:
            require_text(self.title, "title")
        if self.description is not None and not isinstance(self.description, str):
            raise ValidationError("description must be a string")
        self.order = _optional_order(self.order)
        self.archived = _optional_bool(self.archived, "archived")

    def changes(self) -> Dict[str, Any]:
        fields = {}
        if self.title is not None:
            fields["title"] = self.title
        if self.description is not None:
            fields["description"] = self.description
        if self.order is not None:
            fields['"order"'] = self.order
        if self.archived is not None:
            fields["archived"] = int(self.archived)
        return fields

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CardPatch":
        data = _payload(data, "input")
        return cls(
            title=data.get("title"),
            description=data.get("description"),
            order=data.get("order"),
            archived=data.get("archived"),
        )
