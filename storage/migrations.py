"""Ad-hoc migrations for queue databases created before the current schema."""

from __future__ import annotations

from sqlalchemy import text

from core.settings import QUEUE


def _column_exists(conn, table: str, column: str) -> bool:
    result = conn.execute(text(f"PRAGMA table_info('{table}')"))
    return any(row[1] == column for row in result)


def ensure_queue_columns(conn) -> None:
    table = QUEUE.table_name
    columns = {
        "batch_id": "INTEGER NOT NULL DEFAULT 0",
        "processed_datetime": "DATETIME",
        "retry_count": "INTEGER NOT NULL DEFAULT 0",
    }
    for name, ddl_type in columns.items():
        if not _column_exists(conn, table, name):
            conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {name} {ddl_type}"))


def ensure_queue_indexes(conn) -> None:
    table = QUEUE.table_name
    conn.execute(
        text(
            f"""
            CREATE INDEX IF NOT EXISTS ix_taxjar_queue_record_status
            ON {table} (record_id, status)
            """
        )
    )
    conn.execute(
        text(
            f"""
            CREATE INDEX IF NOT EXISTS ix_taxjar_queue_batch_status
            ON {table} (batch_id, status)
            """
        )
    )
    conn.execute(
        text(
            f"""
            CREATE UNIQUE INDEX IF NOT EXISTS ux_taxjar_queue_active_record
            ON {table} (record_id)
            WHERE status IN ('new', 'awaiting')
            """
        )
    )


def run_all(engine) -> None:
    if engine.dialect.name != "sqlite":
        # create_all builds the full schema on other backends
        return
    with engine.begin() as conn:
        ensure_queue_columns(conn)
        ensure_queue_indexes(conn)


__all__ = ["run_all"]
