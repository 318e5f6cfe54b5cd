"""Pipeline orchestration: listing fan-out, conversation notices and event entry points."""

from .conversation import ConversationNotifier
from .fanout import ListingFanout
from .runner import NotificationPipeline

__all__ = [
    "ConversationNotifier",
    "ListingFanout",
    "NotificationPipeline",
]
