"""
Review ownership rules: only the author of a review may change or delete it.
"""

from typing import Any, Dict, Optional

import structlog

from catalog.errors import Forbidden, NotFound
from catalog.models import ReviewRecord, ReviewUpdate, UserRecord, utc_now

logger = structlog.get_logger(__name__)


def ensure_review_owner(
    review: Optional[ReviewRecord],
    principal: UserRecord,
    action: str
) -> ReviewRecord:
    """
    Check that the principal may mutate a review.

    Args:
        review: Review looked up by id, or None if it does not exist
        principal: Authenticated user
        action: Verb used in the refusal message ("update" or "delete")

    Returns:
        The review, when the principal is its author

    Raises:
        NotFound: If the review does not exist
        Forbidden: If the principal is not the author
    """
    if review is None:
        raise NotFound("Review not found")

    if review.user != principal.id:
        logger.warning(
            "Review ownership check failed",
            review_id=review.id,
            author_id=review.user,
            principal_id=principal.id,
            action=action
        )
        raise Forbidden(f"You can only {action} your own reviews")

    return review


def review_changes(update: ReviewUpdate) -> Dict[str, Any]:
    """Fields to write for an update, including the refreshed timestamp."""
    changes = update.changes()
    changes["updated_at"] = utc_now()
    return changes
