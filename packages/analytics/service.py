"""Statistics service for the dashboard and progress views."""

from datetime import date, tzinfo

from packages.analytics.stats import (
    DashboardData,
    calculate_streak,
    get_daily_stats,
    get_dashboard_data,
    get_stats_range,
)
from packages.common.clock import Clock, local_date, utcnow
from packages.common.config import Settings, get_settings
from packages.common.database import Database
from packages.scheduling.models import DailyStats


class AnalyticsService:
    """Service for review statistics.

    Shares the clock and day boundary with the review service so that the
    day a review is counted for and the day the dashboard calls "today" agree.
    """

    def __init__(
        self,
        db: Database,
        settings: Settings | None = None,
        *,
        clock: Clock = utcnow,
        tz: tzinfo | None = None,
    ) -> None:
        """Initialize analytics service.

        Args:
            db: Open database handle.
            settings: Application settings.
            clock: Source of the current instant.
            tz: Timezone deciding where one study day ends.
        """
        self.db = db
        self.settings = settings or get_settings()
        self.clock = clock
        self.tz = tz or self.settings.tzinfo

    def today(self) -> date:
        return local_date(self.clock(), self.tz)

    def get_dashboard_data(self) -> DashboardData:
        now = self.clock()
        return get_dashboard_data(self.db, now, local_date(now, self.tz))

    def calculate_streak(self, today: date | None = None) -> int:
        return calculate_streak(self.db, today or self.today())

    def get_daily_stats(self, day: date) -> DailyStats | None:
        return get_daily_stats(self.db, day)

    def get_stats_range(self, start: date, end: date) -> list[DailyStats]:
        return get_stats_range(self.db, start, end)
