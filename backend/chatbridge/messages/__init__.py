"""Message pagination, history sync and enrichment."""
from .pagination import MessagePager, select_page, substitute_mentions
from .schemas import MessagePage, MessageRecord, QuotedSummary

__all__ = [
    "MessagePage",
    "MessagePager",
    "MessageRecord",
    "QuotedSummary",
    "select_page",
    "substitute_mentions",
]
