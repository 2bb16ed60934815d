"""Initial taxonomy and sample cards loaded from YAML."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from packages.cards.service import insert_card
from packages.common.database import Database
from packages.common.exceptions import ConfigurationError
from packages.common.logging import get_logger
from packages.taxonomy.models import DEFAULT_COLOR, DEFAULT_TIER, Domain, Pillar, Topic

logger = get_logger(module=__name__)

DEFAULT_SEED_FILE = Path(__file__).parent / "data" / "seed.yml"


@dataclass
class SampleCard:
    """A card shipped with the seed data."""

    topic_id: str
    front: str
    back: str
    card_type: str = "basic"


@dataclass
class SeedData:
    """Everything one seed file describes."""

    pillars: list[Pillar] = field(default_factory=list)
    domains: list[Domain] = field(default_factory=list)
    topics: list[Topic] = field(default_factory=list)
    cards: list[SampleCard] = field(default_factory=list)


@dataclass
class SeedResult:
    """Counts of rows written by a seeding run."""

    seeded: bool = False
    pillars: int = 0
    domains: int = 0
    topics: int = 0
    cards: int = 0


def load_seed_from_yaml(yaml_path: Path) -> SeedData:
    """Load seed data from a YAML file.

    Expected format:
    ```yaml
    pillars:
      - id: technical-mastery
        name: Technical Mastery
        icon: Code2
        color: "#6366f1"
        sort_order: 1
        domains:
          - id: technical-mastery/python
            name: Python Ecosystem
            tier: 1
            sort_order: 1
            topics:
              - id: technical-mastery/python/decorators
                name: Python Decorators
                sort_order: 1
    cards:
      - topic_id: technical-mastery/python/decorators
        front: What does functools.wraps do?
        back: It copies the wrapped function's metadata.
    ```

    Args:
        yaml_path: Path to the YAML file.

    Returns:
        Parsed seed data.

    Raises:
        ConfigurationError: The file is missing or malformed.
    """
    if not yaml_path.exists():
        raise ConfigurationError(
            f"Seed file not found: {yaml_path}", context={"path": str(yaml_path)}
        )

    with yaml_path.open(encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigurationError(
                f"Invalid seed file: {exc}", context={"path": str(yaml_path)}
            ) from exc

    if not data:
        return SeedData()
    if not isinstance(data, dict):
        raise ConfigurationError(
            "Seed file must contain a mapping", context={"path": str(yaml_path)}
        )

    seed = SeedData()
    try:
        _parse_pillars(data.get("pillars") or [], seed)
        for item in data.get("cards") or []:
            seed.cards.append(
                SampleCard(
                    topic_id=item["topic_id"],
                    front=item["front"],
                    back=item["back"],
                    card_type=item.get("card_type", "basic"),
                )
            )
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(
            f"Invalid seed file: {exc}", context={"path": str(yaml_path)}
        ) from exc

    return seed


def _parse_pillars(items: list[dict[str, Any]], seed: SeedData) -> None:
    for index, item in enumerate(items, start=1):
        pillar = Pillar(
            id=item["id"],
            name=item["name"],
            icon=item.get("icon", ""),
            color=item.get("color") or DEFAULT_COLOR,
            sort_order=item.get("sort_order", index),
        )
        seed.pillars.append(pillar)

        for d_index, d_item in enumerate(item.get("domains") or [], start=1):
            domain = Domain(
                id=d_item["id"],
                pillar_id=pillar.id,
                name=d_item["name"],
                tier=d_item.get("tier", DEFAULT_TIER),
                sort_order=d_item.get("sort_order", d_index),
            )
            seed.domains.append(domain)

            for t_index, t_item in enumerate(d_item.get("topics") or [], start=1):
                seed.topics.append(
                    Topic(
                        id=t_item["id"],
                        domain_id=domain.id,
                        name=t_item["name"],
                        content_path=t_item.get("content_path"),
                        sort_order=t_item.get("sort_order", t_index),
                    )
                )


def seed_database(db: Database, seed: SeedData | None = None) -> SeedResult:
    """Populate an empty database.

    Does nothing when any pillar already exists. All rows are written in a
    single transaction.
    """
    seed = seed if seed is not None else load_seed_from_yaml(DEFAULT_SEED_FILE)

    with db.transaction() as conn:
        row = conn.execute("SELECT COUNT(*) AS c FROM pillars").fetchone()
        if row["c"] > 0:
            logger.debug("seed_skipped", existing_pillars=row["c"])
            return SeedResult(seeded=False)

        conn.executemany(
            "INSERT OR IGNORE INTO pillars (id, name, icon, color, sort_order) VALUES (?, ?, ?, ?, ?)",
            [(p.id, p.name, p.icon, p.color, p.sort_order) for p in seed.pillars],
        )
        conn.executemany(
            "INSERT OR IGNORE INTO domains (id, pillar_id, name, tier, sort_order) VALUES (?, ?, ?, ?, ?)",
            [(d.id, d.pillar_id, d.name, d.tier, d.sort_order) for d in seed.domains],
        )
        conn.executemany(
            "INSERT OR IGNORE INTO topics (id, domain_id, name, content_path, sort_order) "
            "VALUES (?, ?, ?, ?, ?)",
            [(t.id, t.domain_id, t.name, t.content_path, t.sort_order) for t in seed.topics],
        )
        for card in seed.cards:
            card_type = card.card_type if card.card_type in ("basic", "cloze") else "basic"
            insert_card(conn, card.topic_id, card.front, card.back, card_type)

    result = SeedResult(
        seeded=True,
        pillars=len(seed.pillars),
        domains=len(seed.domains),
        topics=len(seed.topics),
        cards=len(seed.cards),
    )
    logger.info(
        "database_seeded",
        pillars=result.pillars,
        domains=result.domains,
        topics=result.topics,
        cards=result.cards,
    )
    return result
