"""
SQLite-backed document and auth backend

This module provides a local implementation of the backend interface with:
- Owner-scoped document collections stored as JSON
- User accounts with bcrypt password hashing
- A persisted session so the signed-in identity survives restarts
- Live subscriptions pushed after every committed write
"""

import asyncio
import json
import logging
import re
import secrets
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Type

import bcrypt
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..errors import AuthError, BackendError, NotFoundError, PermissionDeniedError
from ..utils.datetime import coerce_timestamp, now_utc, to_iso_string
from .base import (
    SERVER_TIMESTAMP,
    AuthCallback,
    Backend,
    Document,
    ErrorCallback,
    Identity,
    SnapshotCallback,
    Subscription,
)
from .models import DOCUMENT_MODELS, validate_document

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
PERMISSION_DENIED_MESSAGE = "Missing or insufficient permissions."
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password using bcrypt."""
    if not isinstance(password, str):
        raise ValueError("password must be a string")
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plaintext password against its bcrypt hash."""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_iso_string(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class LocalBackend(Backend):
    """Owner-scoped document store and password auth in a single SQLite file."""

    def __init__(self, db_path: Path,
                 document_models: Optional[Dict[str, Type[BaseModel]]] = None,
                 clock: Callable[[], datetime] = now_utc,
                 bcrypt_rounds: int = 12):
        """Initialize the backend

        Args:
            db_path: SQLite database file; created if missing
            document_models: Collection name to pydantic model used to
                validate writes. Defaults to the ``tasks``/``users`` models.
            clock: Source of server timestamps
            bcrypt_rounds: Work factor for password hashes
        """
        self.db_path = Path(db_path)
        self.document_models = document_models if document_models is not None else dict(DOCUMENT_MODELS)
        self.clock = clock
        self.bcrypt_rounds = bcrypt_rounds
        self._subscriptions: List[Subscription] = []
        self._auth_listeners: List[AuthCallback] = []
        self._initialize_db()
        self._identity = self._restore_session()

    # ------------------------------------------------------------------
    # Connection and schema
    # ------------------------------------------------------------------

    @contextmanager
    def get_connection(self):
        """Get database connection with context manager

        Yields:
            sqlite3.Connection: Database connection
        """
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _initialize_db(self):
        """Initialize database schema"""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self.get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    email TEXT UNIQUE NOT NULL,
                    password_hash TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS sessions (
                    token TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    owner_id TEXT NOT NULL,
                    data TEXT NOT NULL,
                    seq INTEGER NOT NULL,
                    PRIMARY KEY (collection, id)
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_documents_owner
                ON documents (collection, owner_id)
            """)

    def _restore_session(self) -> Optional[Identity]:
        with self.get_connection() as conn:
            row = conn.execute("""
                SELECT u.id, u.email, u.created_at FROM sessions s
                JOIN users u ON u.id = s.user_id
                ORDER BY s.created_at DESC LIMIT 1
            """).fetchone()
        if row is None:
            return None
        logger.debug("Restored session for %s", row["email"])
        return self._row_to_identity(row)

    @staticmethod
    def _row_to_identity(row) -> Identity:
        return Identity(uid=row["id"], email=row["email"],
                        created_at=coerce_timestamp(row["created_at"]))

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    @property
    def current_identity(self) -> Optional[Identity]:
        return self._identity

    async def sign_up(self, email: str, password: str) -> Identity:
        email = (email or "").strip().lower()
        if not _EMAIL_RE.match(email):
            raise AuthError("The email address is badly formatted.", code="invalid-email")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise AuthError("Password should be at least 6 characters.", code="weak-password")

        identity = Identity(uid=uuid.uuid4().hex, email=email, created_at=self.clock())
        password_hash = await asyncio.to_thread(hash_password, password, self.bcrypt_rounds)
        try:
            await asyncio.to_thread(self._insert_user, identity, password_hash)
        except sqlite3.IntegrityError:
            raise AuthError("The email address is already in use by another account.",
                            code="email-already-in-use")

        logger.info("Created account %s", email)
        self._start_session(identity)
        return identity

    async def sign_in(self, email: str, password: str) -> Identity:
        email = (email or "").strip().lower()
        row = await asyncio.to_thread(self._find_user, email)
        if row is None or not await asyncio.to_thread(verify_password, password or "", row["password_hash"]):
            raise AuthError("Invalid login credentials.", code="invalid-credential")

        identity = self._row_to_identity(row)
        self._start_session(identity)
        return identity

    def _insert_user(self, identity: Identity, password_hash: str) -> None:
        with self.get_connection() as conn:
            conn.execute(
                "INSERT INTO users (id, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
                (identity.uid, identity.email, password_hash, to_iso_string(identity.created_at)),
            )

    def _find_user(self, email: str):
        with self.get_connection() as conn:
            return conn.execute(
                "SELECT id, email, password_hash, created_at FROM users WHERE email = ?", (email,)
            ).fetchone()

    async def sign_out(self) -> None:
        with self.get_connection() as conn:
            conn.execute("DELETE FROM sessions")
        previous = self._identity
        self._identity = None
        if previous is not None:
            logger.info("Signed out %s", previous.email)
        self._revoke_foreign_subscriptions()
        self._emit_auth_state()

    def on_auth_state_change(self, callback: AuthCallback) -> Callable[[], None]:
        self._auth_listeners.append(callback)
        callback(self._identity)

        def unsubscribe():
            if callback in self._auth_listeners:
                self._auth_listeners.remove(callback)

        return unsubscribe

    def _start_session(self, identity: Identity) -> None:
        with self.get_connection() as conn:
            conn.execute("DELETE FROM sessions")
            conn.execute(
                "INSERT INTO sessions (token, user_id, created_at) VALUES (?, ?, ?)",
                (secrets.token_urlsafe(32), identity.uid, to_iso_string(self.clock())),
            )
        self._identity = identity
        self._revoke_foreign_subscriptions()
        self._emit_auth_state()

    def _emit_auth_state(self) -> None:
        for listener in list(self._auth_listeners):
            listener(self._identity)

    def _revoke_foreign_subscriptions(self) -> None:
        """Fail live queries that the current identity may no longer read."""
        uid = self._identity.uid if self._identity else None
        for subscription in list(self._subscriptions):
            if subscription.owner_id != uid:
                subscription.fail(PermissionDeniedError(PERMISSION_DENIED_MESSAGE))

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def _require_identity(self) -> Identity:
        if self._identity is None:
            raise PermissionDeniedError(PERMISSION_DENIED_MESSAGE)
        return self._identity

    def _resolve(self, fields: Dict[str, Any], now: datetime) -> Dict[str, Any]:
        return {k: (now if v is SERVER_TIMESTAMP else v) for k, v in fields.items()}

    def _validate(self, collection: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        try:
            return validate_document(collection, fields, self.document_models)
        except PydanticValidationError as e:
            raise BackendError(f"Invalid document for '{collection}': {e.errors()[0]['msg']}",
                               code="invalid-argument")

    def _load(self, conn, collection: str, doc_id: str):
        return conn.execute(
            "SELECT owner_id, data FROM documents WHERE collection = ? AND id = ?",
            (collection, doc_id),
        ).fetchone()

    def _write(self, conn, collection: str, doc_id: str, owner_id: str, data: Dict[str, Any]) -> None:
        existing = self._load(conn, collection, doc_id)
        payload = json.dumps(data, default=_json_default)
        if existing is None:
            seq = conn.execute("SELECT COALESCE(MAX(seq), 0) + 1 FROM documents").fetchone()[0]
            conn.execute(
                "INSERT INTO documents (collection, id, owner_id, data, seq) VALUES (?, ?, ?, ?, ?)",
                (collection, doc_id, owner_id, payload, seq),
            )
        else:
            conn.execute(
                "UPDATE documents SET owner_id = ?, data = ? WHERE collection = ? AND id = ?",
                (owner_id, payload, collection, doc_id),
            )

    def _check_owner(self, identity: Identity, owner_id: str) -> None:
        if owner_id != identity.uid:
            raise PermissionDeniedError(PERMISSION_DENIED_MESSAGE)

    def query_owned(self, collection: str, owner_id: str) -> List[Document]:
        """All documents of ``owner_id`` in insertion order."""
        with self.get_connection() as conn:
            rows = conn.execute(
                "SELECT id, data FROM documents WHERE collection = ? AND owner_id = ? ORDER BY seq",
                (collection, owner_id),
            ).fetchall()
        return [Document(id=row["id"], data=json.loads(row["data"])) for row in rows]

    def subscribe(self, collection: str, owner_id: str,
                  on_next: SnapshotCallback,
                  on_error: Optional[ErrorCallback] = None) -> Subscription:
        subscription = Subscription(collection, owner_id, on_next, on_error,
                                    on_cancel=self._drop_subscription)
        identity = self._identity
        if identity is None or identity.uid != owner_id:
            logger.debug("Refusing subscription to %s for %s", collection, owner_id)
            subscription.fail(PermissionDeniedError(PERMISSION_DENIED_MESSAGE))
            return subscription

        self._subscriptions.append(subscription)
        subscription.push(self.query_owned(collection, owner_id))
        return subscription

    def _drop_subscription(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    async def _notify(self, collection: str, owner_id: str) -> None:
        """Push the fresh owner-scoped result set to matching subscriptions."""
        listeners = [s for s in self._subscriptions
                     if s.collection == collection and s.owner_id == owner_id]
        if not listeners:
            return
        documents = await asyncio.to_thread(self.query_owned, collection, owner_id)
        for subscription in listeners:
            subscription.push(documents)

    # Blocking sqlite work; the async methods below run these in a worker thread

    def _insert_document(self, collection: str, doc_id: str, owner_id: str, data: Dict[str, Any]) -> None:
        with self.get_connection() as conn:
            self._write(conn, collection, doc_id, owner_id, data)

    def _replace_document(self, identity: Identity, collection: str, doc_id: str,
                          owner_id: str, data: Dict[str, Any]) -> None:
        with self.get_connection() as conn:
            existing = self._load(conn, collection, doc_id)
            if existing is not None:
                self._check_owner(identity, existing["owner_id"])
            self._write(conn, collection, doc_id, owner_id, data)

    def _merge_document(self, identity: Identity, collection: str, doc_id: str,
                        fields: Dict[str, Any]) -> None:
        with self.get_connection() as conn:
            existing = self._load(conn, collection, doc_id)
            if existing is None:
                raise NotFoundError(f"No document to update: {collection}/{doc_id}")
            self._check_owner(identity, existing["owner_id"])

            merged = json.loads(existing["data"])
            merged.update(fields)
            data = self._validate(collection, merged)
            self._write(conn, collection, doc_id, existing["owner_id"], data)

    def _delete_document(self, identity: Identity, collection: str, doc_id: str) -> None:
        with self.get_connection() as conn:
            existing = self._load(conn, collection, doc_id)
            if existing is None:
                raise NotFoundError(f"No document to delete: {collection}/{doc_id}")
            self._check_owner(identity, existing["owner_id"])
            conn.execute("DELETE FROM documents WHERE collection = ? AND id = ?", (collection, doc_id))

    def _read_document(self, identity: Identity, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self.get_connection() as conn:
            existing = self._load(conn, collection, doc_id)
        if existing is None:
            return None
        self._check_owner(identity, existing["owner_id"])
        return json.loads(existing["data"])

    async def create(self, collection: str, fields: Dict[str, Any]) -> str:
        identity = self._require_identity()
        owner_id = fields.get("owner_id")
        self._check_owner(identity, owner_id)

        data = self._validate(collection, self._resolve(fields, self.clock()))
        doc_id = uuid.uuid4().hex
        await asyncio.to_thread(self._insert_document, collection, doc_id, owner_id, data)
        logger.debug("Created %s/%s", collection, doc_id)
        await self._notify(collection, owner_id)
        return doc_id

    async def set(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        identity = self._require_identity()
        owner_id = fields.get("owner_id")
        self._check_owner(identity, owner_id)

        data = self._validate(collection, self._resolve(fields, self.clock()))
        await asyncio.to_thread(self._replace_document, identity, collection, doc_id, owner_id, data)
        await self._notify(collection, owner_id)

    async def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        identity = self._require_identity()
        if "owner_id" in fields:
            self._check_owner(identity, fields["owner_id"])

        resolved = self._resolve(fields, self.clock())
        await asyncio.to_thread(self._merge_document, identity, collection, doc_id, resolved)
        logger.debug("Updated %s/%s: %s", collection, doc_id, sorted(fields))
        await self._notify(collection, identity.uid)

    async def delete(self, collection: str, doc_id: str) -> None:
        identity = self._require_identity()
        await asyncio.to_thread(self._delete_document, identity, collection, doc_id)
        logger.debug("Deleted %s/%s", collection, doc_id)
        await self._notify(collection, identity.uid)

    async def get_once(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        identity = self._require_identity()
        return await asyncio.to_thread(self._read_document, identity, collection, doc_id)
