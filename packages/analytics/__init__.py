# Dashboard aggregation, streak and daily statistics

from packages.analytics.service import AnalyticsService
from packages.analytics.stats import (
    DashboardData,
    PillarProgress,
    calculate_streak,
    get_daily_stats,
    get_dashboard_data,
    get_stats_range,
)

__all__ = [
    "AnalyticsService",
    "DashboardData",
    "PillarProgress",
    "calculate_streak",
    "get_daily_stats",
    "get_dashboard_data",
    "get_stats_range",
]
