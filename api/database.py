"""
Database service layer for the FastAPI application.
"""

from typing import Any, Dict, Iterable, List, Optional

import structlog
from bson import ObjectId
from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from api.models import (
    BookDetailData, BookListData, BookPagination, BookResponse,
    ReviewListData, ReviewPagination, ReviewResponse
)
from catalog.aggregation import (
    NEWEST_FIRST, PageWindow, RatingSummary,
    book_filter, pagination, search_filter, summarize_ratings
)
from catalog.errors import AlreadyReviewed, CatalogError, NotFound
from catalog.models import (
    BookCreate, BookRecord, BookSummary, ReviewCreate, ReviewRecord,
    UserRecord, UserSignup, UserSummary, utc_now
)

logger = structlog.get_logger(__name__)


def _object_ids(ids: Iterable[str]) -> List[ObjectId]:
    return [ObjectId(value) for value in set(ids) if ObjectId.is_valid(value)]


class APIDatabaseService:
    """Database service for API operations."""

    def __init__(self, database: AsyncIOMotorDatabase):
        self.database = database
        self.users_collection = database.users
        self.books_collection = database.books
        self.reviews_collection = database.reviews

    async def create_indexes(self) -> None:
        """
        Create the indexes backing uniqueness rules and common query patterns.
        """
        try:
            await self.users_collection.create_index("email", unique=True)

            # ISBN is optional, so uniqueness only applies where present
            await self.books_collection.create_index("isbn", unique=True, sparse=True)
            await self.books_collection.create_index("genre")
            await self.books_collection.create_index("author")
            await self.books_collection.create_index([("created_at", -1)])

            # One review per user per book
            await self.reviews_collection.create_index([("user", 1), ("book", 1)], unique=True)
            await self.reviews_collection.create_index([("book", 1), ("created_at", -1)])
            await self.reviews_collection.create_index([("user", 1), ("created_at", -1)])

            logger.info("Successfully created MongoDB indexes")

        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    # Users

    async def create_user(self, signup: UserSignup, password_hash: str) -> UserRecord:
        """
        Insert a new user.

        Args:
            signup: Validated signup data
            password_hash: bcrypt hash of the user's password

        Returns:
            The stored UserRecord

        Raises:
            DuplicateKeyError: If the email is already registered
        """
        now = utc_now()
        user_doc = {
            "name": signup.name,
            "email": signup.email,
            "password_hash": password_hash,
            "created_at": now,
            "updated_at": now,
        }
        result = await self.users_collection.insert_one(user_doc)
        user_doc["_id"] = result.inserted_id
        logger.info("User created", user_id=str(result.inserted_id))
        return UserRecord.from_document(user_doc)

    async def get_user_by_id(self, user_id: str) -> Optional[UserRecord]:
        """Look up a user; malformed ids simply match nothing."""
        if not ObjectId.is_valid(user_id):
            return None
        user_doc = await self.users_collection.find_one({"_id": ObjectId(user_id)})
        return UserRecord.from_document(user_doc) if user_doc else None

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        user_doc = await self.users_collection.find_one({"email": email.lower()})
        return UserRecord.from_document(user_doc) if user_doc else None

    async def _user_summaries(self, user_ids: Iterable[str]) -> Dict[str, UserSummary]:
        object_ids = _object_ids(user_ids)
        if not object_ids:
            return {}
        cursor = self.users_collection.find({"_id": {"$in": object_ids}}, {"name": 1, "email": 1})
        users = await cursor.to_list(length=None)
        return {
            str(user["_id"]): UserSummary(id=str(user["_id"]), name=user["name"], email=user["email"])
            for user in users
        }

    # Books

    async def create_book(self, data: BookCreate, creator: UserRecord) -> BookResponse:
        """
        Insert a new book created by the given user.

        Raises:
            DuplicateKeyError: If the ISBN is already taken
        """
        now = utc_now()
        book_doc = data.model_dump(mode="json", exclude_none=True)
        book_doc.update({
            "created_by": ObjectId(creator.id),
            "created_at": now,
            "updated_at": now,
        })
        result = await self.books_collection.insert_one(book_doc)
        book_doc["_id"] = result.inserted_id
        logger.info("Book created", book_id=str(result.inserted_id), created_by=creator.id)

        fields = BookRecord.from_document(book_doc).model_dump()
        fields["created_by"] = creator.summary()
        return BookResponse(**fields)

    async def _rating_summaries(self, book_ids: List[str]) -> Dict[str, RatingSummary]:
        """Summarise every review of each book, independent of any page window."""
        object_ids = _object_ids(book_ids)
        reviews: List[Dict[str, Any]] = []
        if object_ids:
            cursor = self.reviews_collection.find({"book": {"$in": object_ids}}, {"book": 1, "rating": 1})
            reviews = await cursor.to_list(length=None)
        return summarize_ratings(book_ids, reviews)

    async def _book_responses(self, book_docs: List[Dict[str, Any]]) -> List[BookResponse]:
        records = [BookRecord.from_document(book_doc) for book_doc in book_docs]
        creators = await self._user_summaries(record.created_by for record in records)
        ratings = await self._rating_summaries([record.id for record in records])

        books = []
        for record in records:
            fields = record.model_dump()
            fields["created_by"] = creators.get(record.created_by, record.created_by)
            fields.update(ratings.get(record.id, RatingSummary()).model_dump())
            books.append(BookResponse(**fields))
        return books

    async def _list_books(
        self,
        filter_query: Dict[str, Any],
        window: PageWindow,
        search_query: Optional[str] = None
    ) -> BookListData:
        try:
            total = await self.books_collection.count_documents(filter_query)

            cursor = (
                self.books_collection.find(filter_query)
                .sort(NEWEST_FIRST)
                .skip(window.skip)
                .limit(window.limit)
            )
            book_docs = await cursor.to_list(length=window.limit)
            books = await self._book_responses(book_docs)

            return BookListData(
                books=books,
                search_query=search_query,
                pagination=BookPagination(
                    **pagination(window.page, window.limit, total),
                    total_books=total
                )
            )

        except Exception as e:
            logger.error("Failed to list books", error=str(e), filter=str(filter_query), page=window.page)
            raise

    async def get_books(
        self,
        window: PageWindow,
        author: Optional[str] = None,
        genre: Optional[str] = None
    ) -> BookListData:
        """
        Get books with optional author/genre filters, newest first.

        Args:
            window: Requested page and page size
            author: Case-insensitive author substring
            genre: Exact genre

        Returns:
            BookListData with aggregates and pagination
        """
        return await self._list_books(book_filter(author, genre), window)

    async def search_books(self, query: Optional[str], window: PageWindow) -> BookListData:
        """
        Search books by title or author.

        Raises:
            InvalidQuery: If the query is empty
        """
        return await self._list_books(search_filter(query), window, search_query=query)

    async def get_book_detail(self, book_id: str, window: PageWindow) -> Optional[BookDetailData]:
        """
        Get a single book with one page of its reviews.

        Args:
            book_id: Book identifier (MongoDB ObjectId)
            window: Page of the review sublist

        Returns:
            BookDetailData if found, None otherwise
        """
        book_oid = ObjectId(book_id)
        book_doc = await self.books_collection.find_one({"_id": book_oid})
        if not book_doc:
            return None

        book = (await self._book_responses([book_doc]))[0]
        reviews, total = await self._page_reviews({"book": book_oid}, window)

        return BookDetailData(
            book=book,
            reviews=reviews,
            reviews_pagination=ReviewPagination(
                **pagination(window.page, window.limit, total),
                total_reviews=total
            )
        )

    async def _book_summaries(self, book_ids: Iterable[str]) -> Dict[str, BookSummary]:
        object_ids = _object_ids(book_ids)
        if not object_ids:
            return {}
        cursor = self.books_collection.find(
            {"_id": {"$in": object_ids}},
            {"title": 1, "author": 1, "genre": 1}
        )
        books = await cursor.to_list(length=None)
        return {
            str(book["_id"]): BookSummary(
                id=str(book["_id"]),
                title=book["title"],
                author=book["author"],
                genre=book.get("genre")
            )
            for book in books
        }

    # Reviews

    async def _review_responses(self, review_docs: List[Dict[str, Any]]) -> List[ReviewResponse]:
        records = [ReviewRecord.from_document(review_doc) for review_doc in review_docs]
        users = await self._user_summaries(record.user for record in records)
        books = await self._book_summaries(record.book for record in records)

        return [
            ReviewResponse(
                id=record.id,
                rating=record.rating,
                comment=record.comment,
                user=users.get(record.user, record.user),
                book=books.get(record.book, record.book),
                created_at=record.created_at,
                updated_at=record.updated_at,
            )
            for record in records
        ]

    async def _page_reviews(self, filter_query: Dict[str, Any], window: PageWindow):
        total = await self.reviews_collection.count_documents(filter_query)
        cursor = (
            self.reviews_collection.find(filter_query)
            .sort(NEWEST_FIRST)
            .skip(window.skip)
            .limit(window.limit)
        )
        review_docs = await cursor.to_list(length=window.limit)
        return await self._review_responses(review_docs), total

    async def create_review(self, book_id: str, data: ReviewCreate, author: UserRecord) -> ReviewResponse:
        """
        Add a review to a book.

        Args:
            book_id: Book being reviewed
            data: Validated rating and comment
            author: Authenticated user writing the review

        Returns:
            The stored review, populated

        Raises:
            NotFound: If the book does not exist
            AlreadyReviewed: If the author already reviewed this book
        """
        book_oid = ObjectId(book_id)
        author_oid = ObjectId(author.id)

        if not await self.books_collection.find_one({"_id": book_oid}, {"_id": 1}):
            raise NotFound("Book not found")

        if await self.reviews_collection.find_one({"user": author_oid, "book": book_oid}, {"_id": 1}):
            raise AlreadyReviewed()

        # A concurrent duplicate still trips the unique index and is translated the same way
        now = utc_now()
        review_doc = {
            "rating": data.rating,
            "comment": data.comment,
            "user": author_oid,
            "book": book_oid,
            "created_at": now,
            "updated_at": now,
        }
        result = await self.reviews_collection.insert_one(review_doc)
        review_doc["_id"] = result.inserted_id
        logger.info("Review created", review_id=str(result.inserted_id), book_id=book_id, user_id=author.id)

        return (await self._review_responses([review_doc]))[0]

    async def get_review(self, review_id: str) -> Optional[ReviewRecord]:
        review_doc = await self.reviews_collection.find_one({"_id": ObjectId(review_id)})
        return ReviewRecord.from_document(review_doc) if review_doc else None

    async def update_review(self, review_id: str, changes: Dict[str, Any]) -> ReviewResponse:
        review_doc = await self.reviews_collection.find_one_and_update(
            {"_id": ObjectId(review_id)},
            {"$set": changes},
            return_document=ReturnDocument.AFTER
        )
        if not review_doc:
            raise NotFound("Review not found")
        logger.info("Review updated", review_id=review_id, fields=sorted(changes))
        return (await self._review_responses([review_doc]))[0]

    async def delete_review(self, review_id: str) -> bool:
        result = await self.reviews_collection.delete_one({"_id": ObjectId(review_id)})
        logger.info("Review deleted", review_id=review_id, deleted=result.deleted_count)
        return result.deleted_count == 1

    async def get_user_reviews(self, user_id: str, window: PageWindow) -> ReviewListData:
        """Page through the reviews written by one user, newest first."""
        reviews, total = await self._page_reviews({"user": ObjectId(user_id)}, window)
        return ReviewListData(
            reviews=reviews,
            pagination=ReviewPagination(
                **pagination(window.page, window.limit, total),
                total_reviews=total
            )
        )

    # Maintenance

    async def clear_collections(self) -> Dict[str, int]:
        """Delete every review, book and user. Used by the seed script."""
        deleted = {}
        for name, collection in (
            ("reviews", self.reviews_collection),
            ("books", self.books_collection),
            ("users", self.users_collection),
        ):
            result = await collection.delete_many({})
            deleted[name] = result.deleted_count
        logger.info("Collections cleared", **deleted)
        return deleted

    async def health_check(self) -> Dict:
        """
        Perform database health check.

        Returns:
            Dictionary with health status and collection counts
        """
        try:
            await self.database.command("ping")

            return {
                "status": "healthy",
                "users_count": await self.users_collection.count_documents({}),
                "books_count": await self.books_collection.count_documents({}),
                "reviews_count": await self.reviews_collection.count_documents({}),
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }


def get_db_service(request: Request) -> APIDatabaseService:
    """Database service created at application start-up."""
    db_service = getattr(request.app.state, "db_service", None)
    if db_service is None:
        raise CatalogError("Database service not available")
    return db_service
