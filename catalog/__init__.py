"""
Core book review domain layer.

This package provides:
- Typed records for users, books and reviews
- Rating aggregation and pagination arithmetic
- Review ownership rules
- Error taxonomy and translation of store failures
"""
