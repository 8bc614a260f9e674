"""
API response models for the FastAPI application.
Request bodies are the boundary records in catalog.models.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, SerializerFunctionWrapHandler, model_serializer

from catalog.models import BookRecord, BookSummary, CatalogModel, UserRecord, UserSummary


class BookResponse(BookRecord):
    """Book with its creator populated and derived rating fields."""
    created_by: Union[UserSummary, str] = Field(..., description="Creator, or creator id if unknown")
    average_rating: float = Field(0, description="Mean review rating, one decimal")
    review_count: int = Field(0, description="Number of reviews")


class ReviewResponse(CatalogModel):
    """Review with its author and book populated."""
    id: str = Field(..., description="Unique review identifier")
    rating: int = Field(..., description="Rating from 1 to 5")
    comment: str = Field(..., description="Review text")
    user: Union[UserSummary, str] = Field(..., description="Author, or author id if unknown")
    book: Union[BookSummary, str] = Field(..., description="Book, or book id if unknown")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")


class Pagination(CatalogModel):
    """Pagination block shared by every listing."""
    current_page: int = Field(..., description="Current page number")
    total_pages: int = Field(..., description="Total number of pages")
    has_next_page: bool = Field(..., description="Whether there is a next page")
    has_prev_page: bool = Field(..., description="Whether there is a previous page")


class BookPagination(Pagination):
    total_books: int = Field(..., description="Total number of matching books")


class ReviewPagination(Pagination):
    total_reviews: int = Field(..., description="Total number of matching reviews")


class BookListData(CatalogModel):
    """Payload of the book listing and search endpoints."""
    books: List[BookResponse] = Field(..., description="Books on this page")
    search_query: Optional[str] = Field(None, description="Search term, for search results")
    pagination: BookPagination

    @model_serializer(mode="wrap")
    def omit_missing_search_query(self, handler: SerializerFunctionWrapHandler) -> Dict[str, Any]:
        data = handler(self)
        if self.search_query is None:
            data.pop("searchQuery", None)
            data.pop("search_query", None)
        return data


class BookDetailData(CatalogModel):
    """Payload of the book detail endpoint."""
    book: BookResponse
    reviews: List[ReviewResponse] = Field(..., description="Reviews on this page")
    reviews_pagination: ReviewPagination


class ReviewListData(CatalogModel):
    """Payload of the "my reviews" endpoint."""
    reviews: List[ReviewResponse] = Field(..., description="Reviews on this page")
    pagination: ReviewPagination


class BookData(CatalogModel):
    book: BookResponse


class ReviewData(CatalogModel):
    review: ReviewResponse


class UserData(CatalogModel):
    user: UserRecord


class AuthData(CatalogModel):
    """Payload of signup and login."""
    user: UserRecord
    token: str = Field(..., description="Bearer token")


class APIResponse(BaseModel):
    """Envelope wrapping every response."""
    success: bool = Field(True, description="Whether the request succeeded")
    message: Optional[str] = Field(None, description="Human-readable message")
    data: Optional[Dict[str, Any]] = Field(None, description="Response payload")


class ErrorResponse(BaseModel):
    """Error response model."""
    success: bool = Field(False, description="Always false for errors")
    message: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details (debug only)")
