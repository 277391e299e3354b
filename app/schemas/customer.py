import base64
import json
import re
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.core.exceptions import ValidationError

EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")


class Address(BaseModel):
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = ""


class PhotoChange:
    """What a create/update call should do with the customer's photo."""


@dataclass(frozen=True)
class KeepPhoto(PhotoChange):
    pass


@dataclass(frozen=True)
class ReplacePhoto(PhotoChange):
    content: bytes
    filename: str
    content_type: Optional[str] = None


@dataclass(frozen=True)
class ClearPhoto(PhotoChange):
    pass


class CustomerFormData(BaseModel):
    name: str
    email: Optional[str] = None
    phone: str = ""
    address: Address = Field(default_factory=Address)
    photo: PhotoChange = Field(default_factory=KeepPhoto, exclude=True)

    @field_validator("email", mode="before")
    @classmethod
    def _check_email(cls, value):
        if value is None:
            return None
        if isinstance(value, str) and not value.strip():
            return None
        if not isinstance(value, str) or not EMAIL_PATTERN.match(value):
            raise ValueError("Invalid email address")
        return value

    class Config:
        arbitrary_types_allowed = True


class CustomerResponse(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    phone: str = ""
    address: Address = Field(default_factory=Address)
    photo_url: Optional[str] = None
    created_at: int
    updated_at: int

    class Config:
        from_attributes = True


class ResumeToken:
    """Opaque position of the last customer on a page.

    Only the listing code looks inside; everyone else hands it back as-is.
    """

    __slots__ = ("_created_at", "_customer_id")

    def __init__(self, created_at: int, customer_id: str):
        self._created_at = created_at
        self._customer_id = customer_id

    def __eq__(self, other):
        if not isinstance(other, ResumeToken):
            return NotImplemented
        return (self._created_at, self._customer_id) == (other._created_at, other._customer_id)

    def __hash__(self):
        return hash((self._created_at, self._customer_id))

    def __repr__(self):
        return f"ResumeToken({self.encode()!r})"

    @classmethod
    def after(cls, customer) -> "ResumeToken":
        return cls(customer.created_at, customer.id)

    @property
    def position(self) -> tuple[int, str]:
        """Sort key this token resumes after, for the listing query."""
        return self._created_at, self._customer_id

    def encode(self) -> str:
        raw = json.dumps([self._created_at, self._customer_id]).encode()
        return base64.urlsafe_b64encode(raw).decode().rstrip("=")

    @classmethod
    def decode(cls, value: str) -> "ResumeToken":
        try:
            padded = value + "=" * (-len(value) % 4)
            created_at, customer_id = json.loads(base64.urlsafe_b64decode(padded))
        except (ValueError, TypeError) as e:
            raise ValidationError("Invalid pagination cursor") from e
        if not isinstance(created_at, int) or not isinstance(customer_id, str):
            raise ValidationError("Invalid pagination cursor")
        return cls(created_at, customer_id)


class CustomerPage(BaseModel):
    items: list[CustomerResponse] = []
    next_token: Optional[ResumeToken] = None
    has_more: bool = False

    class Config:
        arbitrary_types_allowed = True


class CustomerPageResponse(BaseModel):
    items: list[CustomerResponse] = []
    next_cursor: Optional[str] = None
    has_more: bool = False


class CustomerStatistics(BaseModel):
    total_count: int = 0
    new_count: int = 0
    country_counts: dict[str, int] = {}


class CountryCount(BaseModel):
    name: str
    value: int


class CustomerStatsResponse(BaseModel):
    total_count: int
    new_count: int
    country_data: list[CountryCount] = []
