"""Pytest configuration and fixtures."""

import tempfile
from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from packages.common.clock import to_iso
from packages.common.config import Settings
from packages.common.database import Database, run_migrations
from packages.scheduling.models import CardState
from packages.scheduling.service import ReviewService

START = datetime(2025, 1, 15, 12, 0, tzinfo=UTC)

TOPIC_ID = "technical-mastery/python/decorators"


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def temp_dir() -> Generator[Path]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def settings() -> Settings:
    """Settings for an in-memory database in UTC."""
    return Settings(database_path=":memory:", timezone="UTC")


@pytest.fixture
def db() -> Generator[Database]:
    """Migrated in-memory database."""
    database = Database.open(path=":memory:")
    run_migrations(database)
    yield database
    database.close()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def topic(db: Database) -> str:
    """One pillar / domain / topic chain cards can attach to."""
    with db.transaction() as conn:
        conn.execute(
            "INSERT INTO pillars (id, name, icon, color, sort_order) VALUES (?, ?, ?, ?, ?)",
            ("technical-mastery", "Technical Mastery", "Code2", "#6366f1", 1),
        )
        conn.execute(
            "INSERT INTO domains (id, pillar_id, name, tier, sort_order) VALUES (?, ?, ?, ?, ?)",
            ("technical-mastery/python", "technical-mastery", "Python Ecosystem", 1, 1),
        )
        conn.execute(
            "INSERT INTO topics (id, domain_id, name, sort_order) VALUES (?, ?, ?, ?)",
            (TOPIC_ID, "technical-mastery/python", "Python Decorators", 1),
        )
    return TOPIC_ID


@pytest.fixture
def review_service(db: Database, settings: Settings, clock: FixedClock) -> ReviewService:
    return ReviewService(db, settings, clock=clock, tz=UTC)


def set_memory(
    db: Database,
    card_id: int,
    *,
    state: CardState,
    due: datetime | None,
    stability: float = 1.0,
    difficulty: float = 5.0,
    last_review: datetime | None = None,
    reps: int = 1,
    lapses: int = 0,
) -> None:
    """Put a card into a given memory state directly."""
    with db.transaction() as conn:
        conn.execute(
            """
            UPDATE cards SET state = ?, due = ?, stability = ?, difficulty = ?,
                last_review = ?, reps = ?, lapses = ?
            WHERE id = ?
            """,
            (
                int(state),
                to_iso(due) if due else None,
                stability,
                difficulty,
                to_iso(last_review) if last_review else None,
                reps,
                lapses,
                card_id,
            ),
        )
