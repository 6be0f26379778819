"""
Auth Credential Store

SQLite-backed container that supplies the authenticated user's attributes
to the resolver. It only connects, reads one user row, updates one user row
and disconnects; the resolver never depends on it.

Table and column names are configurable:
- table name is prefix + users alias (default "gatekeeper_users")
- logical fields (auth_user_id, handle, passwd, is_active, lastlogin) map to
  column aliases
- extra columns (e.g. "role") are read into AuthenticatedUser.attributes
"""

import hashlib
import logging
import re
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Union

from .errors import ConfigError, CredentialStoreError
from .types import AuthenticatedUser

logger = logging.getLogger(__name__)

LASTLOGIN_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_ALIASES: Dict[str, str] = {
    "users": "users",
    "auth_user_id": "auth_user_id",
    "handle": "handle",
    "passwd": "passwd",
    "is_active": "is_active",
    "lastlogin": "lastlogin",
}

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def sha256_hasher(password: str) -> str:
    """
    Default password hasher: unsalted hex SHA-256 digest.

    Kept for compatibility with existing user tables only. New tables
    should use pbkdf2_hasher() or another salted, slow hash.
    """
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def pbkdf2_hasher(salt: bytes, iterations: int = 600_000) -> Callable[[str], str]:
    """
    Build a PBKDF2-SHA256 hasher with an application-wide salt.

    Passwords are matched inside the SELECT, so the hash must be
    deterministic: the salt is fixed per store instead of per user.
    Output is "salt_hex:hash_hex".

    Args:
        salt: Secret application salt (at least 16 bytes recommended)
        iterations: PBKDF2 iterations (OWASP 2023 recommends 600,000)
    """
    if not salt:
        raise ConfigError("pbkdf2_hasher needs a non-empty salt")

    def hasher(password: str) -> str:
        pwd_hash = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
        return salt.hex() + ":" + pwd_hash.hex()

    return hasher


def _identifier(name: str) -> str:
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ConfigError(f"Invalid SQL identifier: {name!r}")
    return name


class AuthCredentialStore:
    """
    Reads and updates user rows for authentication

    Usage:
        with AuthCredentialStore(db_path, extra_fields=["role"]) as store:
            user = store.read_user(handle="bob", password="secret")
            if user:
                store.update_last_login(user.auth_user_id)
    """

    def __init__(
        self,
        db_path: Optional[Union[str, Path]] = None,
        connection: Optional[sqlite3.Connection] = None,
        table_prefix: str = "gatekeeper_",
        aliases: Optional[Mapping[str, str]] = None,
        extra_fields: Iterable[str] = (),
        password_hasher: Optional[Callable[[str], str]] = None,
        check_password: bool = True
    ):
        """
        Initialize credential store

        Args:
            db_path: Path to the SQLite database (ignored if connection given)
            connection: Existing connection to reuse; never closed by the store
            table_prefix: Prefix of every table name
            aliases: Logical name -> table/column name overrides
            extra_fields: Extra columns read into user attributes
            password_hasher: Hashes passwords before comparison (default unsalted
                SHA-256 for compatibility; prefer pbkdf2_hasher())
            check_password: If False, handle lookups ignore the password
        """
        if db_path is None and connection is None:
            raise ConfigError("AuthCredentialStore needs a db_path or a connection")

        self.db_path = Path(db_path) if db_path is not None else None
        self.table_prefix = table_prefix
        self.alias = {**DEFAULT_ALIASES, **(aliases or {})}
        self.extra_fields = tuple(extra_fields)
        self.password_hasher = password_hasher or sha256_hasher
        self.check_password = check_password

        for name in list(self.alias.values()) + list(self.extra_fields):
            _identifier(name)
        self.table = _identifier(f"{table_prefix}{self.alias['users']}")

        self._conn = connection
        self._owns_connection = connection is None

    # ===== Connection lifecycle =====

    def connect(self) -> sqlite3.Connection:
        """Open the connection (no-op when one is already open)"""
        if self._conn is None:
            try:
                self._conn = sqlite3.connect(str(self.db_path), timeout=30.0)
            except sqlite3.Error as e:
                raise CredentialStoreError(f"Could not connect: {e}", details={"db_path": str(self.db_path)}) from e
            self._owns_connection = True
            logger.debug(f"Connected to credential store at {self.db_path}")
        return self._conn

    def disconnect(self) -> None:
        """Close the connection if this store opened it"""
        if self._conn is None or not self._owns_connection:
            return
        try:
            self._conn.close()
        except sqlite3.Error as e:
            raise CredentialStoreError(f"Could not disconnect: {e}") from e
        self._conn = None
        logger.debug("Disconnected from credential store")

    def __enter__(self) -> "AuthCredentialStore":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

    def init_schema(self) -> None:
        """Create the users table if it does not exist"""
        a = self.alias
        extra = "".join(f",\n                {column} TEXT" for column in self.extra_fields)
        self._execute(f"""
            CREATE TABLE IF NOT EXISTS {self.table} (
                {a['auth_user_id']} TEXT PRIMARY KEY,
                {a['handle']} TEXT NOT NULL,
                {a['passwd']} TEXT,
                {a['is_active']} INTEGER DEFAULT 1,
                {a['lastlogin']} TEXT{extra}
            )
        """, ())
        self._conn.commit()
        logger.info(f"Credential store table {self.table} initialized")

    # ===== Reads / writes =====

    def read_user(
        self,
        handle: Optional[str] = None,
        password: Optional[str] = None,
        auth_user_id: Optional[str] = None
    ) -> Optional[AuthenticatedUser]:
        """
        Read one user row.

        Lookup by auth_user_id when given; otherwise by handle, and when
        password checking is on, by handle and hashed password (several
        users may share a handle with different passwords).

        Returns:
            AuthenticatedUser, or None if no row matches
        """
        a = self.alias
        columns = ["auth_user_id", "handle", "is_active", "lastlogin"]
        select = ", ".join(f"{a[name]} AS {name}" for name in columns)
        if self.extra_fields:
            select += ", " + ", ".join(self.extra_fields)

        if auth_user_id is not None:
            where = f"{a['auth_user_id']} = ?"
            params = (auth_user_id,)
        elif handle is not None:
            where = f"{a['handle']} = ?"
            params = (handle,)
            if self.check_password:
                where += f" AND {a['passwd']} = ?"
                params += (self.password_hasher(password or ""),)
        else:
            raise ValueError("read_user needs a handle or an auth_user_id")

        row = self._execute(
            f"SELECT {select} FROM {self.table} WHERE {where} LIMIT 1", params
        ).fetchone()

        if row is None:
            logger.debug(f"No user row matched in {self.table}")
            return None

        return AuthenticatedUser(
            auth_user_id=str(row["auth_user_id"]),
            handle=row["handle"],
            is_active=bool(row["is_active"]) if row["is_active"] is not None else True,
            last_login=_parse_lastlogin(row["lastlogin"]),
            attributes={name: row[name] for name in self.extra_fields},
        )

    def update_last_login(self, auth_user_id: str, when: Optional[datetime] = None) -> None:
        """Write the login timestamp back to the user row"""
        a = self.alias
        when = when or datetime.now()
        self._execute(
            f"UPDATE {self.table} SET {a['lastlogin']} = ? WHERE {a['auth_user_id']} = ?",
            (when.strftime(LASTLOGIN_FORMAT), auth_user_id),
        )
        self._conn.commit()

    def add_user(
        self,
        auth_user_id: str,
        handle: str,
        password: Optional[str] = None,
        is_active: bool = True,
        **attributes: str
    ) -> None:
        """Insert a user row (password stored hashed)"""
        unknown = set(attributes) - set(self.extra_fields)
        if unknown:
            raise ValueError(f"Unknown user attribute(s): {', '.join(sorted(unknown))}")

        a = self.alias
        columns = [a["auth_user_id"], a["handle"], a["passwd"], a["is_active"]]
        values = [
            auth_user_id,
            handle,
            self.password_hasher(password) if password is not None else None,
            int(is_active),
        ]
        for name, value in attributes.items():
            columns.append(name)
            values.append(value)

        placeholders = ", ".join("?" for _ in values)
        self._execute(
            f"INSERT INTO {self.table} ({', '.join(columns)}) VALUES ({placeholders})",
            tuple(values),
        )
        self._conn.commit()

    def _execute(self, query: str, params: tuple) -> sqlite3.Cursor:
        cursor = self.connect().cursor()
        cursor.row_factory = sqlite3.Row
        try:
            return cursor.execute(query, params)
        except sqlite3.Error as e:
            logger.error(f"Credential store query failed on {self.table}: {e}")
            raise CredentialStoreError(str(e), details={"table": self.table}) from e


def _parse_lastlogin(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    try:
        # Existing tables may store epoch seconds instead of formatted text
        if isinstance(value, str) and value.strip().isdigit():
            value = int(value)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return datetime.fromtimestamp(value)
        return datetime.strptime(value, LASTLOGIN_FORMAT)
    except (TypeError, ValueError, OverflowError, OSError):
        logger.warning(f"Unparsable lastlogin value: {value!r}")
        return None


__all__ = [
    "AuthCredentialStore",
    "sha256_hasher",
    "pbkdf2_hasher",
    "DEFAULT_ALIASES",
]
