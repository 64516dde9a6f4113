"""User registration, login and the remembered current user."""
import hashlib
import hmac
import logging
import secrets
from datetime import datetime
from typing import Optional, Tuple

from english_quiz.db import get_connection, get_setting, set_setting
from english_quiz.exceptions import AuthenticationError, NotFoundError, ValidationError
from english_quiz.models import User
from english_quiz.stats import read_stats

logger = logging.getLogger(__name__)

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6
CURRENT_USER_KEY = "current_user_id"


def hash_password(password: str, salt: Optional[str] = None) -> Tuple[str, str]:
    """PBKDF2-SHA256 with a random salt; returns (hex_hash, salt)."""
    if salt is None:
        salt = secrets.token_hex(16)
    key = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), 100000, dklen=32)
    return key.hex(), salt


def verify_password(password: str, hashed_password: str, salt: str) -> bool:
    candidate, _ = hash_password(password, salt)
    return hmac.compare_digest(candidate, hashed_password)


def _row_to_user(db_path: str, row) -> User:
    return User(
        id=row["id"],
        username=row["username"],
        email=row["email"],
        is_active=bool(row["is_active"]),
        created_at=row["created_at"],
        stats=read_stats(db_path, row["id"]),
    )


def register_user(db_path: str, username: str, email: str, password: str) -> User:
    username = (username or "").strip()
    email = (email or "").strip().lower()
    if not username or not email or not password:
        raise ValidationError("Username, email and password are required")
    if len(username) < MIN_USERNAME_LENGTH:
        raise ValidationError(
            f"Username must be at least {MIN_USERNAME_LENGTH} characters",
            {"username": "too short"},
        )
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            {"password": "too short"},
        )

    conn = get_connection(db_path)
    existing = conn.execute(
        "SELECT username FROM users WHERE username = ? OR email = ?", (username, email)
    ).fetchone()
    if existing:
        conn.close()
        if existing["username"] == username:
            raise ValidationError("Username already exists", {"username": "taken"})
        raise ValidationError("Email is already registered", {"email": "taken"})

    hashed, salt = hash_password(password)
    now = datetime.now().isoformat()
    cursor = conn.execute(
        """INSERT INTO users (username, email, password_hash, password_salt, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?)""",
        (username, email, hashed, salt, now, now),
    )
    conn.commit()
    user_id = cursor.lastrowid
    conn.close()
    logger.info("Registered user %s (%s)", user_id, username)
    return get_user(db_path, user_id)


def login_user(db_path: str, username: str, password: str) -> User:
    """Authenticate by username or email."""
    if not username or not password:
        raise ValidationError("Username and password are required")
    conn = get_connection(db_path)
    row = conn.execute(
        "SELECT * FROM users WHERE (username = ? OR email = ?) AND is_active = 1",
        (username.strip(), username.strip().lower()),
    ).fetchone()
    conn.close()
    if row is None or not verify_password(password, row["password_hash"], row["password_salt"]):
        logger.warning("Failed login for %s", username)
        raise AuthenticationError("Wrong username/email or password")
    return _row_to_user(db_path, row)


def get_user(db_path: str, user_id: int) -> User:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    conn.close()
    if row is None:
        raise NotFoundError(f"User {user_id} not found")
    return _row_to_user(db_path, row)


def get_current_user_id(db_path: str) -> int | None:
    value = get_setting(db_path, CURRENT_USER_KEY)
    return int(value) if value else None


def set_current_user(db_path: str, user_id: int | None) -> None:
    set_setting(db_path, CURRENT_USER_KEY, str(user_id) if user_id is not None else None)
