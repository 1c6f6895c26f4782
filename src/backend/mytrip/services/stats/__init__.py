"""Dashboard statistics"""

from .stats_service import StatsService

__all__ = ["StatsService"]
