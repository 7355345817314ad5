"""
Request schemas for category and webhook management endpoints.
"""
import re
from typing import Literal, Optional
from pydantic import BaseModel, Field, field_validator

from monitorflow.schemas.event_request import validate_category_name

WEBHOOK_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9-_\s]+$")
COLOR_PATTERN = re.compile(r"^#[0-9A-F]{6}$", re.IGNORECASE)
# RFC 7230 token for names; visible ASCII plus space/tab for values
HEADER_NAME_PATTERN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
HEADER_VALUE_PATTERN = re.compile(r"^[\x20-\x7e\t]*$")


class CategoryCreateRequest(BaseModel):
    name: str
    color: str
    emoji: Optional[str] = Field(default=None, max_length=20)

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        return validate_category_name(value)

    @field_validator("color")
    @classmethod
    def _color(cls, value: str) -> str:
        if not value:
            raise ValueError("Color is required")
        if not COLOR_PATTERN.match(value):
            raise ValueError("Invalid color format.")
        return value


class WebhookCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    url: str
    description: Optional[str] = Field(default=None, max_length=200)
    event_categories: list[str] = Field(min_length=1)
    headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        if not WEBHOOK_NAME_PATTERN.match(value):
            raise ValueError(
                "Name can only contain letters, numbers, spaces, hyphens, and underscores"
            )
        return value

    @field_validator("url")
    @classmethod
    def _https_url(cls, value: str) -> str:
        if not value.startswith("https://") or len(value) <= len("https://"):
            raise ValueError("URL must use HTTPS for security")
        return value

    @field_validator("event_categories")
    @classmethod
    def _categories(cls, value: list[str]) -> list[str]:
        names = [name.strip().lower() for name in value if name.strip()]
        if not names:
            raise ValueError("At least one event category must be selected")
        return list(dict.fromkeys(names))

    @field_validator("headers")
    @classmethod
    def _headers(cls, value: dict[str, str]) -> dict[str, str]:
        for name, header_value in value.items():
            if not HEADER_NAME_PATTERN.match(name):
                raise ValueError(f"Invalid header name: {name!r}")
            if not HEADER_VALUE_PATTERN.match(header_value):
                raise ValueError(f"Header {name} must contain printable ASCII characters only")
        return value


class WebhookUpdateRequest(WebhookCreateRequest):
    status: Literal["ACTIVE", "INACTIVE"]
