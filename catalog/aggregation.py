"""
Rating aggregation, pagination arithmetic and listing filters.

Ratings are derived on every read from a book's full review set and are
never persisted, so listing, detail and search always agree.
"""

import math
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from catalog.errors import InvalidQuery

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
DEFAULT_REVIEW_LIMIT = 5
MAX_LIMIT = 100

# Newest first; id breaks ties between documents created in the same instant
NEWEST_FIRST = [("created_at", -1), ("_id", -1)]


class RatingSummary(BaseModel):
    """Derived rating attributes of a book."""
    average_rating: float = Field(0, description="Mean rating rounded to one decimal")
    review_count: int = Field(0, description="Number of reviews")


class PageWindow(BaseModel):
    """Requested page of a listing."""
    page: int = Field(DEFAULT_PAGE, ge=1, description="Page number (starts from 1)")
    limit: int = Field(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT, description="Items per page")

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def rating_summary(ratings: Iterable[int]) -> RatingSummary:
    """
    Compute the average rating and review count for one book.

    Args:
        ratings: Ratings of every review of the book

    Returns:
        RatingSummary with the mean rounded half-up to one decimal,
        or 0 when there are no reviews
    """
    ratings = list(ratings)
    if not ratings:
        return RatingSummary(average_rating=0, review_count=0)

    mean = Decimal(sum(ratings)) / Decimal(len(ratings))
    average = mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return RatingSummary(average_rating=float(average), review_count=len(ratings))


def summarize_ratings(
    book_ids: Iterable[str],
    reviews: Iterable[Dict[str, Any]]
) -> Dict[str, RatingSummary]:
    """
    Group review documents by book and summarise each group.

    Args:
        book_ids: Ids of the books being listed
        reviews: Review documents (at least `book` and `rating`) for those books

    Returns:
        Mapping of book id to its RatingSummary; books without reviews get zeros
    """
    ratings: Dict[str, List[int]] = {str(book_id): [] for book_id in book_ids}
    for review in reviews:
        book_id = str(review["book"])
        if book_id in ratings:
            ratings[book_id].append(review["rating"])
    return {book_id: rating_summary(values) for book_id, values in ratings.items()}


def pagination(page: int, limit: int, total: int) -> Dict[str, Any]:
    """
    Build the pagination block of a listing envelope.

    Args:
        page: Current page (1-indexed)
        limit: Items per page
        total: Total number of matching items

    Returns:
        Dictionary with current_page, total_pages, has_next_page and has_prev_page
    """
    total_pages = math.ceil(total / limit)
    return {
        "current_page": page,
        "total_pages": total_pages,
        "has_next_page": page < total_pages,
        "has_prev_page": page > 1,
    }


def book_filter(author: Optional[str] = None, genre: Optional[str] = None) -> Dict[str, Any]:
    """Listing filter: case-insensitive author substring, exact genre."""
    filter_query: Dict[str, Any] = {}
    if author:
        filter_query["author"] = {"$regex": re.escape(author), "$options": "i"}
    if genre:
        filter_query["genre"] = genre
    return filter_query


def search_filter(query: Optional[str]) -> Dict[str, Any]:
    """Search filter: case-insensitive substring on title or author."""
    if not query or not query.strip():
        raise InvalidQuery("Search query is required")
    pattern = {"$regex": re.escape(query), "$options": "i"}
    return {"$or": [{"title": pattern}, {"author": pattern}]}
