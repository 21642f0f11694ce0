import sqlite3

from app import config


# ── PostgreSQL compatibility wrappers ──────────────────────────────────────
# Makes psycopg2 look like sqlite3 so the persistence modules are written once.

class _PGConnectionWrapper:
    """psycopg2 connection with sqlite3-style .execute() / .commit() / .close()."""
    def __init__(self, conn):
        self._conn = conn

    def execute(self, sql, params=()):
        cur = self._conn.cursor()
        cur.execute(sql.replace("?", "%s"), params or ())
        return cur  # RealDictCursor — supports .fetchone() / .fetchall() / .rowcount

    def commit(self):
        self._conn.commit()

    def close(self):
        self._conn.close()


_SQLITE_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        role TEXT NOT NULL CHECK (role IN ('sender', 'viewer')),
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS reels (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        source_url TEXT NOT NULL,
        shortcode TEXT NOT NULL UNIQUE,
        submitted_by INTEGER NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        payload TEXT,
        failure_message TEXT,
        failure_category TEXT,
        view_count INTEGER NOT NULL DEFAULT 0,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        resolved_at DATETIME,
        FOREIGN KEY (submitted_by) REFERENCES users(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS push_subscriptions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        endpoint TEXT NOT NULL UNIQUE,
        p256dh TEXT NOT NULL,
        auth TEXT NOT NULL,
        user_agent TEXT,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (user_id) REFERENCES users(id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS ix_reels_status_created ON reels (status, created_at)",
    "CREATE INDEX IF NOT EXISTS ix_reels_submitter_created ON reels (submitted_by, created_at)",
]

_PG_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id SERIAL PRIMARY KEY,
        username TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        role TEXT NOT NULL CHECK (role IN ('sender', 'viewer')),
        created_at TIMESTAMP DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS reels (
        id SERIAL PRIMARY KEY,
        source_url TEXT NOT NULL,
        shortcode TEXT NOT NULL UNIQUE,
        submitted_by INTEGER NOT NULL REFERENCES users(id),
        status TEXT NOT NULL DEFAULT 'pending',
        payload TEXT,
        failure_message TEXT,
        failure_category TEXT,
        view_count INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT NOW(),
        resolved_at TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS push_subscriptions (
        id SERIAL PRIMARY KEY,
        user_id INTEGER NOT NULL REFERENCES users(id),
        endpoint TEXT NOT NULL UNIQUE,
        p256dh TEXT NOT NULL,
        auth TEXT NOT NULL,
        user_agent TEXT,
        created_at TIMESTAMP DEFAULT NOW()
    )
    """,
    "CREATE INDEX IF NOT EXISTS ix_reels_status_created ON reels (status, created_at)",
    "CREATE INDEX IF NOT EXISTS ix_reels_submitter_created ON reels (submitted_by, created_at)",
]


# ── Public API ─────────────────────────────────────────────────────────────

def get_db():
    """Return a DB connection — PostgreSQL when DATABASE_URL is set, SQLite otherwise."""
    if config.DATABASE_URL:
        import psycopg2
        import psycopg2.extras
        conn = psycopg2.connect(
            config.DATABASE_URL,
            cursor_factory=psycopg2.extras.RealDictCursor
        )
        return _PGConnectionWrapper(conn)
    # Local development — SQLite
    conn = sqlite3.connect(config.SQLITE_PATH)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db():
    """Create tables if they don't exist. Safe to re-run on every startup."""
    if config.DATABASE_URL:
        # PostgreSQL — direct psycopg2 with autocommit so DDL needs no transaction bookkeeping
        import psycopg2
        conn = psycopg2.connect(config.DATABASE_URL)
        conn.autocommit = True
        cur = conn.cursor()
        for statement in _PG_SCHEMA:
            cur.execute(statement)
        cur.close()
        conn.close()
        return

    conn = get_db()
    try:
        for statement in _SQLITE_SCHEMA:
            conn.execute(statement)
        conn.commit()
    finally:
        conn.close()


def ping_db():
    """Run a trivial query; raises if the database is unreachable."""
    conn = get_db()
    try:
        conn.execute("SELECT 1").fetchone()
    finally:
        conn.close()


def integrity_errors() -> tuple:
    """Exception types the active driver raises on a UNIQUE or FOREIGN KEY violation."""
    if config.DATABASE_URL:
        import psycopg2
        return (sqlite3.IntegrityError, psycopg2.IntegrityError)
    return (sqlite3.IntegrityError,)
