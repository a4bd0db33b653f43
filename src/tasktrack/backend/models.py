"""
Pydantic models validating documents before they are stored
"""

from datetime import datetime
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Task documents
# ============================================================================

class TaskDocument(BaseModel):
    """Stored shape of a task"""
    model_config = ConfigDict(extra="allow")

    owner_id: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1, max_length=500)
    category: str
    completed: bool = False
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @field_validator("text")
    @classmethod
    def strip_text(cls, v):
        """Trim surrounding whitespace and refuse blank text"""
        v = v.strip()
        if not v:
            raise ValueError("text must not be blank")
        return v


# ============================================================================
# User profile documents
# ============================================================================

class UserProfileDocument(BaseModel):
    """Stored shape of a user profile"""
    model_config = ConfigDict(extra="allow")

    owner_id: str = Field(..., min_length=1)
    name: str = ""
    email: str = ""
    created_at: Optional[datetime] = None


DOCUMENT_MODELS: Dict[str, Type[BaseModel]] = {
    "tasks": TaskDocument,
    "users": UserProfileDocument,
}


def validate_document(collection: str, fields: Dict[str, Any],
                      models: Optional[Dict[str, Type[BaseModel]]] = None) -> Dict[str, Any]:
    """Validate fields for a known collection and return JSON-ready data.

    Collections without a registered model are stored as given.
    """
    model = (models if models is not None else DOCUMENT_MODELS).get(collection)
    if model is None:
        return dict(fields)
    return model.model_validate(fields).model_dump(mode="json")
