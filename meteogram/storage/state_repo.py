"""Repository for key-value widget state."""

import sqlite3


def get_value(conn: sqlite3.Connection, key: str) -> str | None:
    """Get a state value."""
    row = conn.execute("SELECT value FROM kv_state WHERE key = ?", (key,)).fetchone()
    if row is None:
        return None
    return row[0]


def set_value(conn: sqlite3.Connection, key: str, value: str) -> None:
    """Set a state value. Committed before returning."""
    conn.execute(
        "INSERT INTO kv_state (key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP) "
        "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP",
        (key, value),
    )
    conn.commit()


def delete_value(conn: sqlite3.Connection, key: str) -> bool:
    cursor = conn.execute("DELETE FROM kv_state WHERE key = ?", (key,))
    conn.commit()
    return cursor.rowcount > 0


def delete_prefix(conn: sqlite3.Connection, prefix: str) -> int:
    """Delete every key starting with prefix. Returns the number removed."""
    cursor = conn.execute(
        "DELETE FROM kv_state WHERE substr(key, 1, ?) = ?", (len(prefix), prefix)
    )
    conn.commit()
    return cursor.rowcount


def list_keys(conn: sqlite3.Connection, prefix: str = "") -> list[str]:
    rows = conn.execute(
        "SELECT key FROM kv_state WHERE substr(key, 1, ?) = ? ORDER BY key",
        (len(prefix), prefix),
    ).fetchall()
    return [r[0] for r in rows]
