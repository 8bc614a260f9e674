"""
Tests for error classification and translation.
"""

import pytest
from bson.errors import InvalidId
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError

from catalog.errors import (
    AlreadyReviewed, DuplicateKey, ErrorKind, NotFound, TokenExpired, classify_error, translate_error
)
from catalog.models import BookCreate


def duplicate(key_pattern):
    return DuplicateKeyError(
        "E11000 duplicate key error",
        code=11000,
        details={"keyPattern": key_pattern, "keyValue": {field: "x" for field in key_pattern}}
    )


class TestDuplicateKeys:

    @pytest.mark.parametrize("key_pattern,message", [
        ({"email": 1}, "Email already exists"),
        ({"isbn": 1}, "ISBN already exists"),
        ({"user": 1, "book": 1}, "You have already reviewed this book"),
        ({"slug": 1}, "Duplicate field value entered"),
    ])
    def test_messages_by_index(self, key_pattern, message):
        assert translate_error(duplicate(key_pattern)) == (400, message)

    def test_review_pair_classified_as_already_reviewed(self):
        assert isinstance(classify_error(duplicate({"user": 1, "book": 1})), AlreadyReviewed)

    def test_missing_details(self):
        error = classify_error(DuplicateKeyError("E11000 duplicate key error", code=11000))

        assert isinstance(error, DuplicateKey)
        assert error.message == "Duplicate field value entered"


class TestTranslation:

    def test_domain_errors_pass_through(self):
        assert translate_error(NotFound("Book not found")) == (404, "Book not found")
        assert translate_error(TokenExpired()) == (401, "Token expired.")

    def test_validation_messages_are_joined(self):
        with pytest.raises(ValidationError) as exc_info:
            BookCreate(title="", author="Frank Herbert", genre="Poetry", description="Desert.")

        status, message = translate_error(RequestValidationError(exc_info.value.errors()))

        assert status == 400
        assert "genre: Please select a valid genre" in message
        assert message.startswith("title: ")
        assert ", " in message

    def test_request_without_body_names_the_body(self):
        error = RequestValidationError([{"type": "missing", "loc": ("body",), "msg": "Field required"}])

        assert translate_error(error) == (400, "body: Field required")

    def test_request_locations_drop_their_source(self):
        error = RequestValidationError([
            {"type": "greater_than_equal", "loc": ("query", "page"), "msg": "Input should be greater than or equal to 1"}
        ])

        assert translate_error(error) == (400, "page: Input should be greater than or equal to 1")

    def test_internal_model_error_is_server_fault(self):
        with pytest.raises(ValidationError) as exc_info:
            BookCreate(title="Dune")

        assert translate_error(exc_info.value) == (500, "Server Error")

    def test_malformed_identifier(self):
        assert translate_error(InvalidId("'abc' is not a valid ObjectId")) == (404, "Resource not found")

    def test_unexpected_exception(self):
        error = classify_error(RuntimeError("boom"))

        assert error.kind == ErrorKind.SERVER_ERROR
        assert (error.status_code, error.message) == (500, "Server Error")
