"""Read access to the pillar / domain / topic hierarchy."""

from packages.common.database import Database
from packages.taxonomy.models import Domain, Pillar, Topic


def get_pillars(db: Database) -> list[Pillar]:
    """All pillars in display order."""
    with db.read() as conn:
        rows = conn.execute("SELECT * FROM pillars ORDER BY sort_order").fetchall()
    return [Pillar.from_row(row) for row in rows]


def get_domains(db: Database, pillar_id: str | None = None) -> list[Domain]:
    """Domains, optionally restricted to one pillar, core tiers first."""
    with db.read() as conn:
        if pillar_id is None:
            rows = conn.execute(
                "SELECT * FROM domains ORDER BY tier ASC, sort_order ASC"
            ).fetchall()
        else:
            rows = conn.execute(
                "SELECT * FROM domains WHERE pillar_id = ? ORDER BY tier ASC, sort_order ASC",
                (pillar_id,),
            ).fetchall()
    return [Domain.from_row(row) for row in rows]


def get_topics(db: Database, domain_id: str | None = None) -> list[Topic]:
    """Topics, optionally restricted to one domain."""
    with db.read() as conn:
        if domain_id is None:
            rows = conn.execute("SELECT * FROM topics ORDER BY sort_order").fetchall()
        else:
            rows = conn.execute(
                "SELECT * FROM topics WHERE domain_id = ? ORDER BY sort_order",
                (domain_id,),
            ).fetchall()
    return [Topic.from_row(row) for row in rows]


def get_topic(db: Database, topic_id: str) -> Topic | None:
    with db.read() as conn:
        row = conn.execute("SELECT * FROM topics WHERE id = ?", (topic_id,)).fetchone()
    return Topic.from_row(row) if row else None
