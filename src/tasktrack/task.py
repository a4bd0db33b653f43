"""Task data model for tasktrack."""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional

from .errors import ValidationError
from .utils.datetime import coerce_timestamp, ensure_aware, local_date, to_iso_string


class Category(Enum):
    """Fixed set of task categories."""
    WORK = "work"
    PERSONAL = "personal"
    SHOPPING = "shopping"
    HEALTH = "health"
    EDUCATION = "education"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @classmethod
    def values(cls) -> list:
        return [c.value for c in cls]

    @classmethod
    def parse(cls, value: Any) -> Optional["Category"]:
        """Return the matching category, or None for unrecognized values."""
        if isinstance(value, Category):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass
class Task:
    """Local mirror of a task document held by the backend.

    ``category`` is kept as the raw stored string so that documents written
    with a value outside :class:`Category` survive the round trip; use
    :attr:`category_enum` when a recognized category is required.
    ``created_at`` is None until the backend has acknowledged the write.
    """

    id: str
    owner_id: str
    text: str
    category: str = Category.WORK.value
    completed: bool = False
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def __post_init__(self):
        if isinstance(self.category, Category):
            self.category = self.category.value
        self.created_at = ensure_aware(self.created_at)
        self.completed_at = ensure_aware(self.completed_at)

    @property
    def category_enum(self) -> Optional[Category]:
        return Category.parse(self.category)

    @property
    def completion_known(self) -> bool:
        """True when the task is completed and both timestamps are known."""
        return self.completed and self.created_at is not None and self.completed_at is not None

    def created_on(self, day: date) -> bool:
        """Check whether the task was created on the given local day."""
        if self.created_at is None:
            return False
        return local_date(self.created_at) == day

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "Task":
        """Build a Task from a backend document, normalizing timestamps."""
        return cls(
            id=doc_id,
            owner_id=data.get("owner_id", ""),
            text=data.get("text", ""),
            category=data.get("category", ""),
            completed=bool(data.get("completed", False)),
            created_at=coerce_timestamp(data.get("created_at")),
            completed_at=coerce_timestamp(data.get("completed_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "text": self.text,
            "category": self.category,
            "completed": self.completed,
            "created_at": to_iso_string(self.created_at),
            "completed_at": to_iso_string(self.completed_at),
        }


class TaskFilter:
    """Predicate selecting a subset of the snapshot.

    One of ``all``, ``active``, ``completed`` or an exact category name.
    """

    ALL = "all"
    ACTIVE = "active"
    COMPLETED = "completed"
    STATUS_FILTERS = (ALL, ACTIVE, COMPLETED)

    @classmethod
    def choices(cls) -> list:
        return list(cls.STATUS_FILTERS) + Category.values()

    @classmethod
    def validate(cls, predicate: str) -> str:
        if predicate not in cls.choices():
            raise ValidationError(f"Unknown filter: {predicate}", field_name="filter")
        return predicate

    @classmethod
    def matches(cls, task: Task, predicate: str) -> bool:
        if predicate == cls.ALL:
            return True
        if predicate == cls.ACTIVE:
            return not task.completed
        if predicate == cls.COMPLETED:
            return task.completed
        return task.category == predicate
