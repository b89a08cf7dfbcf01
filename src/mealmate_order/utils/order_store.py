"""
Order store - SQLite persistence for order records.
"""

import json
import logging
import sqlite3
from typing import Callable, List, Optional

from ..core.db import get_db_connection, init_database, resolve_db_path
from ..models.grocery_list import GroceryItem
from ..core.errors import OrderTransitionError, TerminalRecordError
from ..models.order import ALLOWED_TRANSITIONS, OrderRecord, OrderStatus

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

ORDER_COLUMNS = (
    "id", "user_id", "status", "grocery_items", "total_items", "allergen_warnings", "family_size",
    "estimated_total", "swiggy_cart_id", "swiggy_order_id", "error_message", "delivery_address_id",
    "delivery_address", "estimated_delivery", "payment_method", "items_added", "items_not_found",
    "created_at", "updated_at", "order_placed_at",
)

JSON_COLUMNS = ("grocery_items", "allergen_warnings", "items_added", "items_not_found")

DEFAULT_LIST_LIMIT = 20


def _to_row(record: OrderRecord) -> tuple:
    data = record.model_dump(mode="json")
    values = []
    for column in ORDER_COLUMNS:
        value = data[column]
        if column in JSON_COLUMNS:
            value = json.dumps(value)
        values.append(value)
    return tuple(values)


def _from_row(row: sqlite3.Row) -> OrderRecord:
    data = {column: row[column] for column in ORDER_COLUMNS}
    for column in JSON_COLUMNS:
        data[column] = json.loads(data[column] or "[]")
    data["grocery_items"] = [GroceryItem.model_validate(i) for i in data["grocery_items"]]
    return OrderRecord.model_validate(data)


class OrderNotFoundError(LookupError):
    """No order with the given id."""


class OrderStore:
    """Create, read and update order records."""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = resolve_db_path(db_path)
        init_database(self.db_path)

    def create(self, record: OrderRecord) -> OrderRecord:
        placeholders = ", ".join("?" for _ in ORDER_COLUMNS)
        conn = get_db_connection(self.db_path)
        try:
            with conn:
                conn.execute(
                    f"INSERT INTO orders ({', '.join(ORDER_COLUMNS)}) VALUES ({placeholders})",
                    _to_row(record),
                )
        finally:
            conn.close()

        logger.info(f"[ORDER-STORE] Created order {record.id} for user {record.user_id} ({record.status.value})")
        return record

    def get(self, order_id: str) -> Optional[OrderRecord]:
        conn = get_db_connection(self.db_path)
        try:
            row = conn.execute("SELECT * FROM orders WHERE id = ?", (order_id,)).fetchone()
        finally:
            conn.close()
        return _from_row(row) if row else None

    def update(self, order_id: str, mutate: Callable[[OrderRecord], OrderRecord]) -> OrderRecord:
        """
        Apply `mutate` to the stored record and write the result back.

        The read and the write happen inside one immediate transaction, so a
        concurrent writer cannot interleave between them. Terminal records
        are never rewritten and a status change must follow the lifecycle;
        those errors, like any raised by `mutate`, leave the row untouched.
        """
        conn = get_db_connection(self.db_path)
        conn.isolation_level = None
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                row = conn.execute("SELECT * FROM orders WHERE id = ?", (order_id,)).fetchone()
                if row is None:
                    raise OrderNotFoundError(order_id)

                current = _from_row(row)
                updated = mutate(current)
                if current.status.is_terminal:
                    raise TerminalRecordError(order_id, current.status.value, updated.status.value)
                if updated.status != current.status and updated.status not in ALLOWED_TRANSITIONS[current.status]:
                    raise OrderTransitionError(order_id, current.status.value, updated.status.value)

                assignments = ", ".join(f"{c} = ?" for c in ORDER_COLUMNS if c != "id")
                values = [v for c, v in zip(ORDER_COLUMNS, _to_row(updated)) if c != "id"]
                conn.execute(f"UPDATE orders SET {assignments} WHERE id = ?", (*values, order_id))
                conn.execute("COMMIT")
            except BaseException:
                conn.execute("ROLLBACK")
                raise
        finally:
            conn.close()

        if updated.status != current.status:
            logger.info(f"[ORDER-STORE] Order {order_id}: {current.status.value} -> {updated.status.value}")
        return updated

    def transition(self, order_id: str, target: OrderStatus, **changes) -> OrderRecord:
        return self.update(order_id, lambda record: record.transition_to(target, **changes))

    def list_for_user(self, user_id: str, limit: int = DEFAULT_LIST_LIMIT) -> List[OrderRecord]:
        conn = get_db_connection(self.db_path)
        try:
            rows = conn.execute(
                "SELECT * FROM orders WHERE user_id = ? ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (user_id, limit),
            ).fetchall()
        finally:
            conn.close()
        return [_from_row(row) for row in rows]
