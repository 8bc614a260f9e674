"""
FastAPI main application for the Book Review API.
"""

import time
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from bson.errors import InvalidId
from fastapi import APIRouter, Depends, FastAPI, Query, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorClient
from pydantic import BaseModel
from pymongo.errors import DuplicateKeyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.auth import TokenService, get_current_user, get_token_service, hash_password, verify_password
from api.config import config
from api.database import APIDatabaseService, get_db_service
from api.models import (
    APIResponse, AuthData, BookData, ErrorResponse, ReviewData, UserData
)
from catalog.aggregation import DEFAULT_LIMIT, DEFAULT_REVIEW_LIMIT, MAX_LIMIT, PageWindow
from catalog.errors import CatalogError, NotFound, Unauthenticated, translate_error
from catalog.models import BookCreate, ReviewCreate, ReviewUpdate, UserLogin, UserRecord, UserSignup
from catalog.ownership import ensure_review_owner, review_changes
from utilities.logger import clear_request_context, setup_logging, start_request_context

# Setup logging
logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
        debug=config.debug
    )
    logger.info("Starting Book Review API")

    try:
        client = AsyncIOMotorClient(config.mongodb_url, tz_aware=True)
        database = client[config.mongodb_database]

        # Test connection
        await database.command("ping")
        logger.info("Database connection established", database=config.mongodb_database)

        db_service = APIDatabaseService(database)
        await db_service.create_indexes()

    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        raise

    app.state.db_service = db_service
    app.state.token_service = TokenService(
        secret=config.jwt_secret,
        algorithm=config.jwt_algorithm,
        expires_in=timedelta(days=config.access_token_expire_days)
    )

    yield

    # Shutdown
    logger.info("Shutting down Book Review API")
    client.close()


app = FastAPI(
    title=config.api_title,
    description="""
    A REST API for books and reader reviews.

    ## Features

    * **Books**: Create, browse, filter and search books
    * **Reviews**: One review per reader per book, editable only by its author
    * **Ratings**: Average rating and review count computed on every read
    * **Pagination**: Every listing is paginated, newest first

    ## Authentication

    Write operations require a bearer token obtained from signup or login:

    ```
    Authorization: Bearer <token>
    ```
    """,
    version=config.api_version,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=config.cors_allow_credentials,
    allow_methods=config.cors_allow_methods,
    allow_headers=config.cors_allow_headers,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Access log for every request, tagged with a request id."""
    request_id = start_request_context(
        request.method,
        request.url.path,
        request_id=request.headers.get(REQUEST_ID_HEADER)
    )
    started = time.perf_counter()
    try:
        response = await call_next(request)
        logger.info(
            "Request completed",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2)
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
    finally:
        clear_request_context()


def error_response(status_code: int, message: str, detail: Optional[str] = None) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message, detail=detail).model_dump(exclude_none=True),
        headers=headers
    )


def success_response(
    data: Optional[BaseModel] = None,
    message: Optional[str] = None,
    status_code: int = status.HTTP_200_OK
) -> JSONResponse:
    content = {"success": True}
    if message:
        content["message"] = message
    if data is not None:
        content["data"] = data.model_dump(mode="json", by_alias=True)
    return JSONResponse(status_code=status_code, content=content)


# Exception handlers
@app.exception_handler(CatalogError)
@app.exception_handler(DuplicateKeyError)
@app.exception_handler(InvalidId)
@app.exception_handler(RequestValidationError)
async def catalog_exception_handler(request: Request, exc: Exception):
    """Translate domain, store and validation failures."""
    status_code, message = translate_error(exc)
    log = logger.error if status_code >= 500 else logger.warning
    log("Request failed", path=request.url.path, status_code=status_code, error=message)
    return error_response(status_code, message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return error_response(exc.status_code, "Route not found")
    return error_response(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Server Error",
        detail=str(exc) if config.debug else None
    )


router = APIRouter(prefix="/api")


def page_query(default_limit: int):
    """Dependency factory for page/limit query parameters."""
    def dependency(
        page: int = Query(1, ge=1, description="Page number (starts from 1)"),
        limit: int = Query(default_limit, ge=1, le=MAX_LIMIT, description="Items per page")
    ) -> PageWindow:
        return PageWindow(page=page, limit=limit)
    return dependency


# Health check endpoint (no authentication required)
@router.get("/health", response_model=APIResponse, tags=["Health"])
async def health_check(request: Request):
    """Health check endpoint."""
    db_service = getattr(request.app.state, "db_service", None)
    database = await db_service.health_check() if db_service else {"status": "unavailable"}
    return JSONResponse(content={
        "success": True,
        "message": "Book Review API is running!",
        "data": {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": config.api_version,
            "database": database,
        },
    })


# Auth endpoints
@router.post("/auth/signup", response_model=APIResponse, status_code=201, tags=["Auth"])
async def signup(
    signup_data: UserSignup,
    db_service: APIDatabaseService = Depends(get_db_service),
    tokens: TokenService = Depends(get_token_service)
):
    """Register a new user and return a token."""
    password_hash = await run_in_threadpool(hash_password, signup_data.password, config.bcrypt_rounds)
    user = await db_service.create_user(signup_data, password_hash)
    return success_response(
        AuthData(user=user, token=tokens.issue(user.id)),
        message="User registered successfully",
        status_code=status.HTTP_201_CREATED
    )


@router.post("/auth/login", response_model=APIResponse, tags=["Auth"])
async def login(
    credentials: UserLogin,
    db_service: APIDatabaseService = Depends(get_db_service),
    tokens: TokenService = Depends(get_token_service)
):
    """Verify credentials and return a token."""
    user = await db_service.get_user_by_email(credentials.email)
    if user is None or not await run_in_threadpool(verify_password, credentials.password, user.password_hash):
        logger.warning("Login failed", email=credentials.email)
        raise Unauthenticated("Invalid credentials")

    return success_response(AuthData(user=user, token=tokens.issue(user.id)), message="Login successful")


@router.get("/auth/profile", response_model=APIResponse, tags=["Auth"])
async def get_profile(current_user: UserRecord = Depends(get_current_user)):
    """Return the authenticated user."""
    return success_response(UserData(user=current_user))


# Books endpoints
@router.post("/books", response_model=APIResponse, status_code=201, tags=["Books"])
async def create_book(
    book_data: BookCreate,
    current_user: UserRecord = Depends(get_current_user),
    db_service: APIDatabaseService = Depends(get_db_service)
):
    """Create a book owned by the authenticated user."""
    book = await db_service.create_book(book_data, current_user)
    return success_response(
        BookData(book=book),
        message="Book created successfully",
        status_code=status.HTTP_201_CREATED
    )


@router.get("/books", response_model=APIResponse, tags=["Books"])
async def get_books(
    author: Optional[str] = None,
    genre: Optional[str] = None,
    window: PageWindow = Depends(page_query(DEFAULT_LIMIT)),
    db_service: APIDatabaseService = Depends(get_db_service)
):
    """
    Get books with filtering and pagination.

    - **author**: Case-insensitive author substring
    - **genre**: Exact genre
    - **page**: Page number (starts from 1)
    - **limit**: Items per page (1-100)
    """
    result = await db_service.get_books(window, author=author, genre=genre)
    return success_response(result)


@router.get("/books/{book_id}", response_model=APIResponse, tags=["Books"])
async def get_book(
    book_id: str,
    window: PageWindow = Depends(page_query(DEFAULT_REVIEW_LIMIT)),
    db_service: APIDatabaseService = Depends(get_db_service)
):
    """
    Get a single book with a page of its reviews.

    - **book_id**: Book identifier (MongoDB ObjectId)
    """
    result = await db_service.get_book_detail(book_id, window)
    if result is None:
        raise NotFound("Book not found")
    return success_response(result)


@router.get("/search", response_model=APIResponse, tags=["Books"])
async def search_books(
    query: Optional[str] = None,
    window: PageWindow = Depends(page_query(DEFAULT_LIMIT)),
    db_service: APIDatabaseService = Depends(get_db_service)
):
    """Search books by title or author."""
    result = await db_service.search_books(query, window)
    return success_response(result)


# Reviews endpoints
@router.post("/books/{book_id}/reviews", response_model=APIResponse, status_code=201, tags=["Reviews"])
async def add_review(
    book_id: str,
    review_data: ReviewCreate,
    current_user: UserRecord = Depends(get_current_user),
    db_service: APIDatabaseService = Depends(get_db_service)
):
    """Add the authenticated user's review of a book."""
    review = await db_service.create_review(book_id, review_data, current_user)
    return success_response(
        ReviewData(review=review),
        message="Review added successfully",
        status_code=status.HTTP_201_CREATED
    )


@router.get("/reviews/my-reviews", response_model=APIResponse, tags=["Reviews"])
async def get_my_reviews(
    window: PageWindow = Depends(page_query(DEFAULT_LIMIT)),
    current_user: UserRecord = Depends(get_current_user),
    db_service: APIDatabaseService = Depends(get_db_service)
):
    """Page through the authenticated user's reviews."""
    result = await db_service.get_user_reviews(current_user.id, window)
    return success_response(result)


@router.put("/reviews/{review_id}", response_model=APIResponse, tags=["Reviews"])
async def update_review(
    review_id: str,
    update: Optional[ReviewUpdate] = None,
    current_user: UserRecord = Depends(get_current_user),
    db_service: APIDatabaseService = Depends(get_db_service)
):
    """Update a review. Only its author may do so."""
    review = ensure_review_owner(await db_service.get_review(review_id), current_user, "update")
    updated = await db_service.update_review(review.id, review_changes(update or ReviewUpdate()))
    return success_response(ReviewData(review=updated), message="Review updated successfully")


@router.delete("/reviews/{review_id}", response_model=APIResponse, tags=["Reviews"])
async def delete_review(
    review_id: str,
    current_user: UserRecord = Depends(get_current_user),
    db_service: APIDatabaseService = Depends(get_db_service)
):
    """Delete a review. Only its author may do so."""
    review = ensure_review_owner(await db_service.get_review(review_id), current_user, "delete")
    await db_service.delete_review(review.id)
    return success_response(message="Review deleted successfully")


app.include_router(router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="info"
    )
