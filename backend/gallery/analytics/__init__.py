"""Analytics module: aggregate statistics over uploaded images."""

from .router import router
from .service import AnalyticsService

__all__ = ["AnalyticsService", "router"]
