"""
Database initialization and management utilities.
Handles SQLite schema creation for orders, agent memory and Swiggy sessions.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Optional

from .config import get_settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)


def resolve_db_path(db_path: Optional[str] = None) -> str:
    """Use the given path, falling back to the configured one."""
    return str(db_path or get_settings().db_path)


def get_db_connection(db_path: Optional[str] = None) -> sqlite3.Connection:
    """Get SQLite database connection."""
    path = resolve_db_path(db_path)
    try:
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(path)
        conn.row_factory = sqlite3.Row
        logger.debug(f"[DB] Connected to database: {path}")
        return conn
    except sqlite3.Error as e:
        logger.error(f"[DB] Failed to connect to database {path}: {e}")
        raise


def init_database(db_path: Optional[str] = None) -> None:
    """Initialize database schema."""
    conn = get_db_connection(db_path)
    cursor = conn.cursor()

    try:
        # Orders table
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS orders (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                status TEXT NOT NULL,
                grocery_items TEXT NOT NULL,
                total_items INTEGER NOT NULL,
                allergen_warnings TEXT,
                family_size INTEGER,
                estimated_total REAL,
                swiggy_cart_id TEXT,
                swiggy_order_id TEXT,
                error_message TEXT,
                delivery_address_id TEXT,
                delivery_address TEXT,
                estimated_delivery TEXT,
                payment_method TEXT,
                items_added TEXT,
                items_not_found TEXT,
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL,
                order_placed_at TIMESTAMP
            )
        """)
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_orders_user ON orders (user_id, created_at)")

        # Agent memory table
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS agent_memory (
                id INTEGER PRIMARY KEY,
                session_id TEXT NOT NULL,
                memory_type TEXT,
                content TEXT,
                metadata TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Swiggy sessions table
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS swiggy_sessions (
                user_id TEXT PRIMARY KEY,
                swiggy_user_id TEXT,
                phone TEXT NOT NULL,
                access_token TEXT NOT NULL,
                refresh_token TEXT,
                expires_at TIMESTAMP,
                is_active INTEGER DEFAULT 1,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Cached delivery addresses
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS swiggy_addresses (
                user_id TEXT NOT NULL,
                address_id TEXT NOT NULL,
                payload TEXT NOT NULL,
                is_default INTEGER DEFAULT 0,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (user_id, address_id)
            )
        """)

        conn.commit()
        logger.info("[DB] Database schema created successfully")

    except sqlite3.Error as e:
        logger.error(f"[DB] Failed to initialize database: {e}")
        raise
    finally:
        conn.close()
