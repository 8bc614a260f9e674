"""
Pydantic records for users, books and reviews.
Validation here runs at the boundary, before anything is persisted.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

ISBN_PATTERN = r"^(?:\d{9}[\dX]|\d{13})$"


class Genre(str, Enum):
    """Genres a book may be filed under."""
    FICTION = "Fiction"
    NON_FICTION = "Non-Fiction"
    MYSTERY = "Mystery"
    ROMANCE = "Romance"
    SCI_FI = "Sci-Fi"
    FANTASY = "Fantasy"
    BIOGRAPHY = "Biography"
    HISTORY = "History"
    SELF_HELP = "Self-Help"
    OTHER = "Other"


class CatalogModel(BaseModel):
    """Base model serialising to camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _strip(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    return value


def utc_now() -> datetime:
    """Current UTC time at the millisecond precision MongoDB stores."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def _document_fields(document: Dict[str, Any]) -> Dict[str, Any]:
    """Copy a MongoDB document, exposing `_id` as `id` and ObjectIds as strings."""
    fields = {}
    for key, value in document.items():
        if key == "_id":
            key = "id"
        if isinstance(value, ObjectId):
            value = str(value)
        elif isinstance(value, datetime) and value.tzinfo is None:
            # BSON dates are UTC
            value = value.replace(tzinfo=timezone.utc)
        fields[key] = value
    return fields


# Users

class UserSignup(CatalogModel):
    """Signup request body."""
    name: str = Field(..., min_length=1, max_length=50, description="Display name")
    email: EmailStr = Field(..., description="Login email address")
    password: str = Field(..., min_length=6, description="Plain-text password")

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return _strip(v)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v):
        return v.lower()


class UserLogin(CatalogModel):
    """Login request body."""
    email: EmailStr = Field(..., description="Login email address")
    password: str = Field(..., min_length=1, description="Plain-text password")

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v):
        return v.lower()


class UserSummary(CatalogModel):
    """User reference embedded in book and review responses."""
    id: str
    name: str
    email: str


class UserRecord(CatalogModel):
    """Stored user. The password hash never leaves the service."""
    id: str
    name: str
    email: str
    password_hash: str = Field("", exclude=True)
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "UserRecord":
        return cls(**_document_fields(document))

    def summary(self) -> UserSummary:
        return UserSummary(id=self.id, name=self.name, email=self.email)


# Books

class BookCreate(CatalogModel):
    """Book creation request body."""
    title: str = Field(..., min_length=1, max_length=200, description="Book title")
    author: str = Field(..., min_length=1, max_length=100, description="Author name")
    genre: Genre = Field(..., description="Book genre")
    description: str = Field(..., min_length=1, max_length=1000, description="Book description")
    published_year: Optional[int] = Field(None, ge=1000, description="Year of publication")
    isbn: Optional[str] = Field(None, pattern=ISBN_PATTERN, description="ISBN-10 or ISBN-13")

    @field_validator("title", "author", mode="before")
    @classmethod
    def strip_text(cls, v):
        return _strip(v)

    @field_validator("genre", mode="before")
    @classmethod
    def validate_genre(cls, v):
        """Reject genres outside the fixed list with a readable message."""
        if isinstance(v, str) and v.strip() not in {genre.value for genre in Genre}:
            raise ValueError("Please select a valid genre")
        return _strip(v)

    @field_validator("published_year")
    @classmethod
    def validate_published_year(cls, v):
        if v is not None and v > datetime.now().year:
            raise ValueError("Published year cannot be in the future")
        return v


class BookSummary(CatalogModel):
    """Book reference embedded in review responses."""
    id: str
    title: str
    author: str
    genre: Optional[Genre] = None


class BookRecord(CatalogModel):
    """Stored book, without derived rating fields."""
    id: str
    title: str
    author: str
    genre: Genre
    description: str
    published_year: Optional[int] = None
    isbn: Optional[str] = None
    created_by: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "BookRecord":
        return cls(**_document_fields(document))

    def summary(self) -> BookSummary:
        return BookSummary(id=self.id, title=self.title, author=self.author, genre=self.genre)


# Reviews

class ReviewCreate(CatalogModel):
    """Review creation request body."""
    rating: int = Field(..., ge=1, le=5, description="Rating from 1 to 5")
    comment: str = Field(..., min_length=1, max_length=500, description="Review text")

    @field_validator("comment", mode="before")
    @classmethod
    def strip_comment(cls, v):
        return _strip(v)


class ReviewUpdate(CatalogModel):
    """
    Review update request body.

    Falsy values count as absent, so `{"rating": 0, "comment": ""}`
    leaves a review untouched.
    """
    rating: Optional[int] = Field(None, ge=1, le=5, description="Rating from 1 to 5")
    comment: Optional[str] = Field(None, max_length=500, description="Review text")

    @field_validator("rating", "comment", mode="before")
    @classmethod
    def drop_falsy(cls, v):
        v = _strip(v)
        return v or None

    def changes(self) -> Dict[str, Any]:
        """Fields the caller actually supplied."""
        return {
            field: value
            for field, value in (("rating", self.rating), ("comment", self.comment))
            if value is not None
        }


class ReviewRecord(CatalogModel):
    """Stored review. `user` and `book` hold referenced ids."""
    id: str
    rating: int
    comment: str
    user: str
    book: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "ReviewRecord":
        return cls(**_document_fields(document))

