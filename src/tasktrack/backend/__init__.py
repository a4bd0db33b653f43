"""Backends implementing the owner-scoped document and auth interface."""

from .base import SERVER_TIMESTAMP, Backend, Document, Identity, Subscription
from .local import LocalBackend

__all__ = [
    "SERVER_TIMESTAMP",
    "Backend",
    "Document",
    "Identity",
    "Subscription",
    "LocalBackend",
]
