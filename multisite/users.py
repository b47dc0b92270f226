"""
Network user operations

Users live in the network-wide users/usermeta tables. Passwords are stored as
PBKDF2-SHA256 hashes.
"""

import base64
import json
import os
import re
import secrets
import string
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from config import PASSWORD_LENGTH, PASSWORD_HASH_ITERATIONS, DEFAULT_NETWORK_ID
from logging_config import logger
from .database import MultisiteDatabase
from .errors import UserCreationError

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+\-]+@[A-Za-z0-9\-]+(\.[A-Za-z0-9\-]+)+$")


def sanitize_email(email: str) -> str:
    """Strip characters that can never appear in an address"""
    if not email:
        return ""
    return re.sub(r"[^A-Za-z0-9.!#$%&'*+/=?^_`{|}~@\-]", "", email.strip())


def is_email(email: str) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email) is not None


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    """Random alphanumeric password"""
    alphabet = string.ascii_letters + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def hash_password(password: str, salt: bytes = None) -> str:
    """PBKDF2-SHA256 hash encoded as pbkdf2$iterations$salt$digest"""
    salt = salt or os.urandom(16)
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=PASSWORD_HASH_ITERATIONS,
    )
    digest = kdf.derive(password.encode())
    return "pbkdf2${}${}${}".format(
        PASSWORD_HASH_ITERATIONS,
        base64.b64encode(salt).decode(),
        base64.b64encode(digest).decode(),
    )


def check_password(password: str, hashed: str) -> bool:
    try:
        _, iterations, salt, digest = hashed.split("$")
    except ValueError:
        return False
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=base64.b64decode(salt),
        iterations=int(iterations),
    )
    try:
        kdf.verify(password.encode(), base64.b64decode(digest))
        return True
    except InvalidKey:
        return False


def email_exists(db: MultisiteDatabase, email: str) -> Optional[int]:
    """ID of the user registered with this email, or None"""
    if not email:
        return None
    row = db.conn.execute(
        f"SELECT ID FROM {db.global_table('users')} WHERE user_email = ?", (email,)
    ).fetchone()
    return row["ID"] if row else None


def get_user_by(db: MultisiteDatabase, field: str, value) -> Optional[Dict[str, Any]]:
    """Look a user up by 'id', 'login' or 'email'"""
    column = {"id": "ID", "login": "user_login", "email": "user_email"}[field]
    row = db.conn.execute(
        f"SELECT * FROM {db.global_table('users')} WHERE {column} = ?", (value,)
    ).fetchone()
    return dict(row) if row else None


def create_user(db: MultisiteDatabase, login: str, password: str, email: str) -> int:
    """Create a network user. Raises UserCreationError on failure."""
    if not login:
        raise UserCreationError("Can't create user: empty login.")
    if get_user_by(db, "login", login):
        raise UserCreationError(f"Can't create user: login '{login}' is taken.")

    cursor = db.conn.execute(
        f"INSERT INTO {db.global_table('users')} "
        "(user_login, user_pass, user_email, user_registered, display_name) "
        "VALUES (?, ?, ?, ?, ?)",
        (
            login,
            hash_password(password),
            email,
            datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
            login,
        ),
    )
    db.conn.commit()
    logger.log_operation_end("create_user", True, user_id=cursor.lastrowid, login=login)
    return cursor.lastrowid


def notify_new_user(user_id: int, login: str, email: str) -> None:
    """Record that a new user was created with a generated password"""
    logger.logger.info(
        f"New user notification: {login} <{email}> (ID {user_id})",
        extra={"structured": {"new_user": {"id": user_id, "login": login}}},
    )


def get_super_admins(db: MultisiteDatabase, network_id: int = DEFAULT_NETWORK_ID) -> List[str]:
    """Logins listed in the network's site_admins option"""
    raw = db.get_network_option("site_admins", network_id)
    if not raw:
        return []
    try:
        admins = json.loads(raw)
    except ValueError:
        return []
    return admins if isinstance(admins, list) else []


def is_super_admin(db: MultisiteDatabase, user_id: int, network_id: int = DEFAULT_NETWORK_ID) -> bool:
    user = get_user_by(db, "id", user_id)
    return bool(user) and user["user_login"] in get_super_admins(db, network_id)


def _user_option_key(db: MultisiteDatabase, option: str, blog_id: Optional[int]) -> str:
    if blog_id is None:
        return option
    return f"{db.site_prefix(blog_id)}{option}"


def get_user_option(
    db: MultisiteDatabase, user_id: int, option: str, blog_id: Optional[int] = None
) -> Optional[str]:
    """Site-scoped value first, then the global one"""
    table = db.global_table("usermeta")
    keys = [option]
    if blog_id is not None:
        keys.insert(0, _user_option_key(db, option, blog_id))
    for key in keys:
        row = db.conn.execute(
            f"SELECT meta_value FROM {table} WHERE user_id = ? AND meta_key = ?",
            (user_id, key),
        ).fetchone()
        if row is not None:
            return row["meta_value"]
    return None


def update_user_option(
    db: MultisiteDatabase,
    user_id: int,
    option: str,
    value,
    is_global: bool = False,
    blog_id: Optional[int] = None,
) -> None:
    """Write a user option, either global or scoped to blog_id"""
    key = option if is_global else _user_option_key(db, option, blog_id)
    table = db.global_table("usermeta")
    cursor = db.conn.execute(
        f"UPDATE {table} SET meta_value = ? WHERE user_id = ? AND meta_key = ?",
        (str(value), user_id, key),
    )
    if cursor.rowcount == 0:
        db.conn.execute(
            f"INSERT INTO {table} (user_id, meta_key, meta_value) VALUES (?, ?, ?)",
            (user_id, key, str(value)),
        )
    db.conn.commit()
