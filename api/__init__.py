"""
FastAPI RESTful API for the Book Review service.

This module provides a REST API for:
- Signup, login and bearer-token authentication
- Book creation, browsing, filtering and search
- Reviews with author-only updates and deletes
- Ratings aggregated from reviews on every read
"""
