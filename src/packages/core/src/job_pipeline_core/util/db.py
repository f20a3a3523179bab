"""SQLite connection helpers shared by the job store and the record store."""
import os
import sqlite3
from contextlib import contextmanager


def get_sqlite_path() -> str:
    return os.environ.get("SQLITE_PATH", "/data/jobs.db")


@contextmanager
def get_conn(schema: str = ""):
    """Get a database connection in autocommit mode.

    Single statements are atomic on their own; use `transaction()` for
    anything that reads before it writes.
    """
    path = get_sqlite_path()
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    conn = sqlite3.connect(path, timeout=30, isolation_level=None)
    conn.row_factory = sqlite3.Row
    try:
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=30000")
        if schema:
            conn.executescript(schema)
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction(conn: sqlite3.Connection):
    """Run a block under BEGIN IMMEDIATE so no other writer interleaves."""
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    else:
        conn.execute("COMMIT")
