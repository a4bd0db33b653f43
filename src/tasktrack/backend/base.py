"""Abstract interface to the owner-scoped document-and-auth backend.

The task store only talks to a backend through this interface. A backend
keeps documents in named collections, tags every document with the identity
that owns it, and refuses access to documents owned by anyone else.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional


class _ServerTimestamp:
    """Sentinel replaced with the backend's clock when a write is committed."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass(frozen=True)
class Identity:
    """An authenticated user as reported by the backend."""
    uid: str
    email: str
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Document:
    """A stored document: its id and a copy of its fields."""
    id: str
    data: Dict[str, Any]


SnapshotCallback = Callable[[List[Document]], None]
ErrorCallback = Callable[[Exception], None]
AuthCallback = Callable[[Optional[Identity]], None]


class Subscription:
    """Handle for a live query; pushes stop once cancelled."""

    def __init__(self, collection: str, owner_id: str,
                 on_next: SnapshotCallback, on_error: Optional[ErrorCallback] = None,
                 on_cancel: Optional[Callable[["Subscription"], None]] = None):
        self.collection = collection
        self.owner_id = owner_id
        self._on_next = on_next
        self._on_error = on_error
        self._on_cancel = on_cancel
        self.active = True

    def push(self, documents: List[Document]) -> None:
        if self.active:
            self._on_next(documents)

    def fail(self, error: Exception) -> None:
        """Deliver an error and stop the subscription."""
        if not self.active:
            return
        self.active = False
        if self._on_cancel is not None:
            self._on_cancel(self)
        if self._on_error is not None:
            self._on_error(error)

    def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        if self._on_cancel is not None:
            self._on_cancel(self)


class Backend(ABC):
    """Capability boundary for documents and authentication."""

    @property
    @abstractmethod
    def current_identity(self) -> Optional[Identity]:
        """The signed-in identity, or None."""

    # Documents

    @abstractmethod
    def subscribe(self, collection: str, owner_id: str,
                  on_next: SnapshotCallback,
                  on_error: Optional[ErrorCallback] = None) -> Subscription:
        """Push the full set of ``owner_id``'s documents on every change."""

    @abstractmethod
    async def create(self, collection: str, fields: Dict[str, Any]) -> str:
        """Store a new document and return its id."""

    @abstractmethod
    async def set(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """Create or overwrite the document with the given id."""

    @abstractmethod
    async def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """Merge ``fields`` into an existing document."""

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        """Remove a document."""

    @abstractmethod
    async def get_once(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Fetch a document's fields, or None when it does not exist."""

    # Authentication

    @abstractmethod
    async def sign_up(self, email: str, password: str) -> Identity:
        """Register a new identity and sign it in."""

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> Identity:
        """Sign in an existing identity."""

    @abstractmethod
    async def sign_out(self) -> None:
        """Sign out the current identity."""

    @abstractmethod
    def on_auth_state_change(self, callback: AuthCallback) -> Callable[[], None]:
        """Register ``callback`` for sign-in/sign-out; returns an unsubscribe function.

        The callback is invoked immediately with the current identity.
        """
