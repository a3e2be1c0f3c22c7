"""Unread statistics for dashboards."""
from .service import StatsService

__all__ = ["StatsService"]
