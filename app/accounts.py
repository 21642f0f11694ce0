import bcrypt

from app.database import get_db

ROLES = ("sender", "viewer")


class AccountExists(Exception):
    pass


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def get_account(user_id: int) -> dict | None:
    conn = get_db()
    try:
        user = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    finally:
        conn.close()
    return dict(user) if user else None


def get_account_by_username(username: str) -> dict | None:
    conn = get_db()
    try:
        user = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
    finally:
        conn.close()
    return dict(user) if user else None


def create_account(username: str, password: str, role: str) -> dict:
    """Insert a new account and return it. Raises AccountExists on a taken username."""
    if role not in ROLES:
        raise ValueError('Role must be either "sender" or "viewer"')

    conn = get_db()
    try:
        existing = conn.execute("SELECT id FROM users WHERE username = ?", (username,)).fetchone()
        if existing:
            raise AccountExists(username)

        conn.execute(
            "INSERT INTO users (username, password_hash, role) VALUES (?, ?, ?)",
            (username, hash_password(password), role),
        )
        conn.commit()

        user = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
    finally:
        conn.close()
    return dict(user)


def public_account(user: dict) -> dict:
    """Account fields that are safe to return to clients."""
    created_at = user.get("created_at")
    return {
        "id": user["id"],
        "username": user["username"],
        "role": user["role"],
        "createdAt": created_at.isoformat() if hasattr(created_at, "isoformat") else created_at,
    }
