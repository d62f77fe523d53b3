"""SQLAlchemy models package.

All ORM classes are imported here so mapper configuration never depends on
import order.
"""

from moderation.models import (  # noqa: F401
    content_report,
    content_submission,
    feedback_vote,
    moderation_action,
    moderation_result,
    moderation_rule,
    queue_item,
    reputation,
)
