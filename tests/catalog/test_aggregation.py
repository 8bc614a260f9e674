"""
Tests for rating aggregation, pagination and listing filters.
"""

import pytest
from pydantic import ValidationError

from catalog.aggregation import (
    PageWindow, book_filter, pagination, rating_summary, search_filter, summarize_ratings
)
from catalog.errors import InvalidQuery

BOOK_A = "64b0000000000000000000a1"
BOOK_B = "64b0000000000000000000a2"


class TestRatingSummary:
    """Test cases for average rating computation."""

    def test_average_and_count(self):
        summary = rating_summary([5, 4, 5])

        assert summary.average_rating == 4.7
        assert summary.review_count == 3

    def test_no_reviews(self):
        summary = rating_summary([])

        assert summary.average_rating == 0
        assert summary.review_count == 0

    @pytest.mark.parametrize("ratings,expected", [
        ([4, 5, 4, 4], 4.3),
        ([1, 2], 1.5),
        ([3, 3, 4], 3.3),
        ([5], 5.0),
    ])
    def test_rounds_half_up_to_one_decimal(self, ratings, expected):
        assert rating_summary(ratings).average_rating == expected

    def test_summarize_groups_by_book(self):
        reviews = [
            {"book": BOOK_A, "rating": 5},
            {"book": BOOK_A, "rating": 4},
            {"book": "64b0000000000000000000ff", "rating": 1},
        ]

        summaries = summarize_ratings([BOOK_A, BOOK_B], reviews)

        assert set(summaries) == {BOOK_A, BOOK_B}
        assert summaries[BOOK_A].average_rating == 4.5
        assert summaries[BOOK_A].review_count == 2
        assert summaries[BOOK_B].review_count == 0


class TestPagination:
    """Test cases for pagination arithmetic."""

    def test_first_of_two_pages(self):
        assert pagination(1, 10, 12) == {
            "current_page": 1,
            "total_pages": 2,
            "has_next_page": True,
            "has_prev_page": False,
        }

    def test_last_page(self):
        result = pagination(2, 10, 12)

        assert result["has_next_page"] is False
        assert result["has_prev_page"] is True

    def test_empty_listing(self):
        result = pagination(1, 10, 0)

        assert result["total_pages"] == 0
        assert result["has_next_page"] is False

    def test_page_beyond_last(self):
        result = pagination(5, 10, 12)

        assert result["total_pages"] == 2
        assert result["has_next_page"] is False
        assert result["has_prev_page"] is True

    def test_window_skip(self):
        assert PageWindow().skip == 0
        assert PageWindow(page=3, limit=5).skip == 10

    @pytest.mark.parametrize("page,limit", [(0, 10), (1, 0), (1, 101), (-1, 10)])
    def test_window_bounds(self, page, limit):
        with pytest.raises(ValidationError):
            PageWindow(page=page, limit=limit)


class TestFilters:
    """Test cases for listing and search filters."""

    def test_no_filters(self):
        assert book_filter() == {}

    def test_author_and_genre(self):
        assert book_filter(author="herbert", genre="Sci-Fi") == {
            "author": {"$regex": "herbert", "$options": "i"},
            "genre": "Sci-Fi",
        }

    def test_author_is_matched_literally(self):
        assert book_filter(author="J.R.R.")["author"]["$regex"] == r"J\.R\.R\."

    def test_search_matches_title_or_author(self):
        pattern = {"$regex": "dune", "$options": "i"}

        assert search_filter("dune") == {"$or": [{"title": pattern}, {"author": pattern}]}

    @pytest.mark.parametrize("query", [None, "", "   "])
    def test_search_requires_query(self, query):
        with pytest.raises(InvalidQuery) as exc_info:
            search_filter(query)

        assert exc_info.value.message == "Search query is required"
        assert exc_info.value.status_code == 400
