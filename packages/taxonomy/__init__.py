"""Pillar / domain / topic taxonomy, knowledge graph and seed data."""

from packages.taxonomy.graph import add_link, get_graph_edges, get_graph_nodes
from packages.taxonomy.models import (
    DEFAULT_COLOR,
    Domain,
    GraphEdge,
    GraphNode,
    Pillar,
    Topic,
)
from packages.taxonomy.navigation import get_domains, get_pillars, get_topic, get_topics
from packages.taxonomy.seed import (
    DEFAULT_SEED_FILE,
    SampleCard,
    SeedData,
    SeedResult,
    load_seed_from_yaml,
    seed_database,
)

__all__ = [
    "DEFAULT_COLOR",
    "DEFAULT_SEED_FILE",
    "Domain",
    "GraphEdge",
    "GraphNode",
    "Pillar",
    "SampleCard",
    "SeedData",
    "SeedResult",
    "Topic",
    "add_link",
    "get_domains",
    "get_graph_edges",
    "get_graph_nodes",
    "get_pillars",
    "get_topic",
    "get_topics",
    "load_seed_from_yaml",
    "seed_database",
]
