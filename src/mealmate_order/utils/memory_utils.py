"""
Memory utilities - agent tool trace per order, kept for support and replay.
"""

import json
import logging
import sqlite3
from typing import Dict, List, Optional

from ..core.db import get_db_connection

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

TRACE_TYPES = ("agent_text", "tool_call", "tool_result", "tool_error")

_TRACE_QUERY = "SELECT memory_type, content, metadata, created_at FROM agent_memory WHERE session_id = ?"


def _entry(row: sqlite3.Row) -> Dict:
    return {
        "memory_type": row["memory_type"],
        "content": row["content"],
        "metadata": json.loads(row["metadata"] or "{}"),
        "created_at": row["created_at"],
    }


def save_memory(
    session_id: str,
    memory_type: str,
    content: str,
    metadata: Optional[Dict] = None,
    db_path: Optional[str] = None,
) -> bool:
    """
    Append one entry to an order's agent trace.

    A storage failure is logged and reported through the return value; it
    never interrupts the cart build that is being traced.

    Args:
        session_id: Order id the agent is working on
        memory_type: One of TRACE_TYPES
        content: Serialized call, result or text
        metadata: Extra context such as the round number
        db_path: Database file, defaults to the configured one
    """
    if memory_type not in TRACE_TYPES:
        logger.warning(f"[MEMORY] Unknown trace type {memory_type!r} for session {session_id}")

    try:
        conn = get_db_connection(db_path)
        try:
            with conn:
                conn.execute(
                    "INSERT INTO agent_memory (session_id, memory_type, content, metadata) VALUES (?, ?, ?, ?)",
                    (session_id, memory_type, content, json.dumps(metadata or {}, default=str)),
                )
        finally:
            conn.close()
    except sqlite3.Error as e:
        logger.error(f"[MEMORY] Could not record {memory_type} for session {session_id}: {e}", exc_info=True)
        return False

    logger.debug(f"[MEMORY] Recorded {memory_type} for session {session_id}")
    return True


def load_memory(session_id: str, memory_type: Optional[str] = None, db_path: Optional[str] = None) -> List[Dict]:
    """Trace entries for an order in insertion order, optionally of one type."""
    query, params = _TRACE_QUERY, [session_id]
    if memory_type:
        query += " AND memory_type = ?"
        params.append(memory_type)
    query += " ORDER BY id"

    try:
        conn = get_db_connection(db_path)
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()
    except sqlite3.Error as e:
        logger.error(f"[MEMORY] Could not read trace for session {session_id}: {e}", exc_info=True)
        return []

    logger.info(f"[MEMORY] Read {len(rows)} trace entries for session {session_id}")
    return [_entry(row) for row in rows]
