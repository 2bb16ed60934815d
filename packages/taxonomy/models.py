"""Knowledge taxonomy models: pillars, domains, topics and graph elements."""

import sqlite3
from typing import Literal

from pydantic import BaseModel

DEFAULT_COLOR = "#6366f1"
DEFAULT_TIER = 2

Tier = Literal[1, 2, 3]


class Pillar(BaseModel):
    """Top-level area of knowledge."""

    id: str
    name: str
    icon: str = ""
    color: str = DEFAULT_COLOR
    sort_order: int = 0

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Pillar":
        return cls(
            id=row["id"],
            name=row["name"],
            icon=row["icon"] or "",
            color=row["color"] or DEFAULT_COLOR,
            sort_order=row["sort_order"] or 0,
        )


class Domain(BaseModel):
    """Subject area inside a pillar."""

    id: str
    pillar_id: str | None = None
    name: str
    tier: Tier = DEFAULT_TIER
    sort_order: int = 0

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Domain":
        tier = row["tier"] if row["tier"] in (1, 2, 3) else DEFAULT_TIER
        return cls(
            id=row["id"],
            pillar_id=row["pillar_id"],
            name=row["name"],
            tier=tier,
            sort_order=row["sort_order"] or 0,
        )


class Topic(BaseModel):
    """Leaf of the taxonomy; cards attach to topics."""

    id: str
    domain_id: str | None = None
    name: str
    content_path: str | None = None
    sort_order: int = 0

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Topic":
        return cls(
            id=row["id"],
            domain_id=row["domain_id"],
            name=row["name"],
            content_path=row["content_path"] or None,
            sort_order=row["sort_order"] or 0,
        )


class GraphNode(BaseModel):
    """A topic as a knowledge-graph node."""

    id: str
    label: str
    type: Literal["pillar", "domain", "topic"] = "topic"
    pillar_id: str | None = None
    tier: int | None = None
    card_count: int = 0
    mastered_count: int = 0


class GraphEdge(BaseModel):
    """A link between two taxonomy entities."""

    id: str
    source: str
    target: str
    relation: str = "related"
    weight: float = 1.0
