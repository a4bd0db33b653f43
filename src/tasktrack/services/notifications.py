"""Transient user notifications ("toasts")."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, List, Optional

from ..utils.datetime import now_utc

logger = logging.getLogger(__name__)

DEFAULT_DURATION_SECONDS = 3.0


class NotificationKind(Enum):
    """How a notification should be styled"""
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class Notification:
    """A notification instance"""
    message: str
    kind: NotificationKind = NotificationKind.SUCCESS
    duration: float = DEFAULT_DURATION_SECONDS
    created_at: datetime = field(default_factory=now_utc)

    @property
    def success(self) -> bool:
        return self.kind is NotificationKind.SUCCESS

    @property
    def expires_at(self) -> datetime:
        return self.created_at + timedelta(seconds=self.duration)

    def is_visible(self, now: Optional[datetime] = None) -> bool:
        return (now or now_utc()) < self.expires_at

    @classmethod
    def ok(cls, message: str, duration: float = DEFAULT_DURATION_SECONDS) -> "Notification":
        return cls(message=message, kind=NotificationKind.SUCCESS, duration=duration)

    @classmethod
    def error(cls, message: str, duration: float = DEFAULT_DURATION_SECONDS) -> "Notification":
        return cls(message=message, kind=NotificationKind.ERROR, duration=duration)


class NotificationCenter:
    """Fans notifications out to whatever is displaying them.

    Only the most recent notification is considered current; showing a new
    one replaces it.
    """

    def __init__(self, duration: float = DEFAULT_DURATION_SECONDS):
        self.duration = duration
        self.current: Optional[Notification] = None
        self.history: List[Notification] = []
        self._listeners: List[Callable[[Notification], None]] = []

    def add_listener(self, listener: Callable[[Notification], None]) -> None:
        self._listeners.append(listener)

    def show(self, message: str, success: bool = True) -> Notification:
        notification = (Notification.ok if success else Notification.error)(message, self.duration)
        self.post(notification)
        return notification

    def post(self, notification: Notification) -> None:
        if notification.success:
            logger.info(notification.message)
        else:
            logger.warning(notification.message)
        self.current = notification
        self.history.append(notification)
        for listener in list(self._listeners):
            listener(notification)

    def visible(self, now: Optional[datetime] = None) -> Optional[Notification]:
        """The current notification if it has not yet expired."""
        if self.current is not None and self.current.is_visible(now):
            return self.current
        return None
