"""
Inbound event schema for POST /api/v1/events.
Unknown keys are rejected; field maps are capped at MAX_EVENT_FIELDS.
"""
import re
from typing import Optional, Union
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr, field_validator

MAX_EVENT_FIELDS = 10
MAX_DESCRIPTION_LENGTH = 1000

CATEGORY_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9-]+$")

EventFieldValue = Union[StrictBool, StrictInt, StrictFloat, StrictStr]


def validate_category_name(value: str) -> str:
    """Shared by ingestion and category management."""
    if not value:
        raise ValueError("Category name is required.")
    if not CATEGORY_NAME_PATTERN.match(value):
        raise ValueError("Category name can only contain letters, numbers or hypens.")
    return value


class EventRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", allow_inf_nan=False)

    category: str
    fields: Optional[dict[str, EventFieldValue]] = None
    description: Optional[str] = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)

    @field_validator("category")
    @classmethod
    def _category_name(cls, value: str) -> str:
        return validate_category_name(value)

    @field_validator("fields")
    @classmethod
    def _max_fields(cls, value: Optional[dict]) -> Optional[dict]:
        if value is not None and len(value) > MAX_EVENT_FIELDS:
            raise ValueError(f"Maximum {MAX_EVENT_FIELDS} fields allowed")
        return value

    @field_validator("description")
    @classmethod
    def _description_not_empty(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and len(value) < 1:
            raise ValueError("Description must not be empty")
        return value
