import contextlib
import logging
import sqlite3
import threading
from typing import Callable, Iterator, List, Optional

from .config import Config
from .domain import AuthError, ConflictError, Memo, NotFoundError, User, ValidationError
from .passwords import hash_password, password_problems, verify_password
from .utils import make_id, make_token, next_tick, time_after, time_now

logger = logging.getLogger(__name__)

MEMO_COLUMNS = "id, user_id, title, content, created_time, updated_time"
USER_COLUMNS = "id, email, password_hash, created_time, name, nickname"

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        email TEXT UNIQUE NOT NULL,
        password_hash TEXT NOT NULL,
        created_time TEXT NOT NULL,
        name TEXT,
        nickname TEXT UNIQUE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sessions (
        token TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        created_time TEXT NOT NULL,
        expires_time TEXT NOT NULL,
        FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS memos (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        title TEXT NOT NULL,
        content TEXT NOT NULL,
        created_time TEXT NOT NULL,
        updated_time TEXT NOT NULL,
        FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_sessions_user_id ON sessions(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_memos_user_updated ON memos(user_id, updated_time DESC)",
]


class Database:
    """
    Owns the SQLite file shared by users, sessions and memos.

    Connections are opened per operation and always closed. Writers take
    `lock`; readers do not, WAL mode lets them run alongside a writer.
    """

    def __init__(self, db_path: str = Config.DB_PATH):
        self.db_path = db_path
        self.lock = threading.Lock()
        self._init_schema()

    @contextlib.contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA foreign_keys=ON;")
        try:
            yield conn
        except sqlite3.Error:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self.connect() as conn:
            for statement in SCHEMA:
                conn.execute(statement)
            conn.commit()
        logger.debug("Schema ready in %s", self.db_path)


class AuthService:
    """Handles user registration, login, and server-side session validation."""

    def __init__(self, db: Database, session_ttl_hours: float = Config.SESSION_TTL_HOURS):
        self.db = db
        self.session_ttl_hours = session_ttl_hours

    def register(self, email: str, password: str, name: Optional[str] = None,
                 nickname: Optional[str] = None) -> User:
        """
        Create a new account.

        Args:
            email (str): Login email, stored lower-cased
            password (str): Plain text password, only its salted hash is kept
            name (str): Optional display name
            nickname (str): Optional nickname, unique across accounts

        Raises:
            ValidationError: If the password is too short, or fails the
                strength checks when Config.ENFORCE_PASSWORD_STRENGTH is set
            ConflictError: If the email or nickname is already registered
        """
        email = email.strip().lower()
        name = (name or "").strip() or None
        nickname = (nickname or "").strip() or None

        if len(password) < Config.MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {Config.MIN_PASSWORD_LENGTH} characters long")
        if Config.ENFORCE_PASSWORD_STRENGTH:
            problems = password_problems(password, Config.MIN_PASSWORD_LENGTH)
            if problems:
                raise ValidationError("Password must contain " + ", ".join(problems))

        user = User(make_id("usr"), email, hash_password(password), time_now(), name, nickname)
        with self.db.lock, self.db.connect() as conn:
            if conn.execute("SELECT 1 FROM users WHERE email=?", (email,)).fetchone():
                raise ConflictError("Email already exists")
            if nickname and conn.execute("SELECT 1 FROM users WHERE nickname=?", (nickname,)).fetchone():
                raise ConflictError("Nickname already in use")
            try:
                conn.execute(
                    f"INSERT INTO users ({USER_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                    (user.id, user.email, user.password_hash, user.created_time, user.name, user.nickname),
                )
                conn.commit()
            except sqlite3.IntegrityError:
                conn.rollback()
                raise ConflictError("Email or nickname already in use")
        logger.info("Registered user %s", user.id)
        return user

    def login(self, email: str, password: str) -> str:
        """Verify credentials and issue a new session token."""
        email = email.strip().lower()
        with self.db.connect() as conn:
            row = conn.execute(f"SELECT {USER_COLUMNS} FROM users WHERE email=?", (email,)).fetchone()
        if not row or not verify_password(password, row[2]):
            logger.info("Failed login attempt")
            raise AuthError("Invalid email or password")

        user_id = row[0]
        token = make_token()
        created_time = time_now()
        with self.db.lock, self.db.connect() as conn:
            conn.execute(
                "INSERT INTO sessions (token, user_id, created_time, expires_time) VALUES (?, ?, ?, ?)",
                (token, user_id, created_time, time_after(self.session_ttl_hours, created_time)),
            )
            conn.commit()
        logger.info("User %s logged in", user_id)
        return token

    @staticmethod
    def _strip_bearer(token: Optional[str]) -> str:
        token = (token or "").strip()
        if token.startswith("Bearer "):
            token = token[7:].strip()
        return token

    def validate(self, token: Optional[str]) -> str:
        """
        Resolve a session token to the owning user id.

        Accepts a bare token or a "Bearer <token>" header value.

        Raises:
            AuthError: If the token is missing, unknown or expired
        """
        token = self._strip_bearer(token)
        if not token:
            raise AuthError("Authorization token is required")

        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT user_id, expires_time FROM sessions WHERE token=?", (token,)
            ).fetchone()
        if not row:
            raise AuthError("Invalid or expired session token")

        user_id, expires_time = row
        if expires_time <= time_now():
            with self.db.lock, self.db.connect() as conn:
                conn.execute("DELETE FROM sessions WHERE token=?", (token,))
                conn.commit()
            raise AuthError("Invalid or expired session token")
        return user_id

    def logout(self, token: Optional[str]) -> bool:
        """Invalidate a session. Returns False if it was already gone."""
        token = self._strip_bearer(token)
        if not token:
            return False
        with self.db.lock, self.db.connect() as conn:
            cursor = conn.execute("DELETE FROM sessions WHERE token=?", (token,))
            conn.commit()
            return cursor.rowcount > 0

    def get_user(self, user_id: str) -> User:
        with self.db.connect() as conn:
            row = conn.execute(f"SELECT {USER_COLUMNS} FROM users WHERE id=?", (user_id,)).fetchone()
        if not row:
            raise NotFoundError("User not found")
        return User(*row)

    def purge_expired(self) -> int:
        """Delete every expired session and return how many were removed."""
        with self.db.lock, self.db.connect() as conn:
            cursor = conn.execute("DELETE FROM sessions WHERE expires_time <= ?", (time_now(),))
            conn.commit()
            removed = cursor.rowcount
        if removed:
            logger.info("Purged %d expired sessions", removed)
        return removed

    def counts(self) -> dict:
        with self.db.connect() as conn:
            users = conn.execute("SELECT COUNT(*) FROM users").fetchone()[0]
            sessions = conn.execute("SELECT COUNT(*) FROM sessions").fetchone()[0]
        return {"users": users, "sessions": sessions}


class Storage:
    """Data access for memos. Every statement is scoped by the owning user id."""

    def __init__(self, db: Database):
        self.db = db

    def add_memo(self, memo: Memo) -> Memo:
        with self.db.lock, self.db.connect() as conn:
            conn.execute(
                f"INSERT INTO memos ({MEMO_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                (memo.id, memo.user_id, memo.title, memo.content, memo.created_time, memo.updated_time),
            )
            conn.commit()
        logger.debug("Memo saved: %s", memo.id)
        return memo

    def list_memos(self, user_id: str) -> List[Memo]:
        """All memos of one user, most recently updated first."""
        with self.db.connect() as conn:
            rows = conn.execute(
                f"SELECT {MEMO_COLUMNS} FROM memos WHERE user_id=? ORDER BY updated_time DESC, id",
                (user_id,),
            ).fetchall()
        return [Memo(*row) for row in rows]

    def get_memo(self, user_id: str, memo_id: str) -> Optional[Memo]:
        with self.db.connect() as conn:
            row = conn.execute(
                f"SELECT {MEMO_COLUMNS} FROM memos WHERE user_id=? AND id=?",
                (user_id, memo_id),
            ).fetchone()
        return Memo(*row) if row else None

    def update_memo(self, memo: Memo) -> bool:
        """Write title, content and updated time. False if no row of this owner matched."""
        with self.db.lock, self.db.connect() as conn:
            cursor = conn.execute(
                "UPDATE memos SET title=?, content=?, updated_time=? WHERE id=? AND user_id=?",
                (memo.title, memo.content, memo.updated_time, memo.id, memo.user_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    def delete_memo(self, user_id: str, memo_id: str) -> bool:
        with self.db.lock, self.db.connect() as conn:
            cursor = conn.execute("DELETE FROM memos WHERE user_id=? AND id=?", (user_id, memo_id))
            conn.commit()
            return cursor.rowcount > 0


def _required_text(value: Optional[str]) -> str:
    if value is None or not value.strip():
        raise ValidationError("Title and content are required")
    return value


class MemoService:
    """
    Memo CRUD on behalf of an authenticated user.

    The caller's user id comes from a validated session, never from the
    request body. A memo that exists but belongs to someone else is reported
    exactly like one that does not exist.
    """

    def __init__(self, store: Storage, clock: Callable[[], str] = time_now):
        self.store = store
        self.clock = clock

    def list_memos(self, user_id: str) -> List[Memo]:
        return self.store.list_memos(user_id)

    def create_memo(self, user_id: str, title: Optional[str], content: Optional[str]) -> Memo:
        """
        Create a memo for `user_id`.

        Raises:
            ValidationError: If title or content is missing or blank; nothing is stored
        """
        title = _required_text(title).strip()
        content = _required_text(content)
        now = self.clock()
        memo = Memo(make_id("memo"), user_id, title, content, now, now)
        return self.store.add_memo(memo)

    def get_memo(self, user_id: str, memo_id: str) -> Memo:
        memo = self.store.get_memo(user_id, memo_id)
        if not memo:
            raise NotFoundError("Memo not found")
        return memo

    def update_memo(self, user_id: str, memo_id: str, title: Optional[str] = None,
                    content: Optional[str] = None) -> Memo:
        """
        Change the title and/or content of an owned memo.

        Fields left as None keep their current value, but at least one must be
        given. The updated time always moves strictly forward.

        Raises:
            ValidationError: If no field is given, or a given field is blank
            NotFoundError: If the memo is absent or owned by another user
        """
        if title is None and content is None:
            raise ValidationError("Title and content are required")
        if title is not None:
            title = _required_text(title).strip()
        if content is not None:
            content = _required_text(content)

        existing = self.get_memo(user_id, memo_id)
        updated = Memo(
            existing.id,
            user_id,
            existing.title if title is None else title,
            existing.content if content is None else content,
            existing.created_time,
            next_tick(existing.updated_time, self.clock()),
        )
        if not self.store.update_memo(updated):
            # Deleted between the read and the write
            raise NotFoundError("Memo not found")
        return updated

    def delete_memo(self, user_id: str, memo_id: str) -> None:
        if not self.store.delete_memo(user_id, memo_id):
            raise NotFoundError("Memo not found")
        logger.info("User %s deleted memo %s", user_id, memo_id)
