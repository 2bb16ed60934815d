"""Tests for taxonomy navigation, seeding and the knowledge graph."""

from pathlib import Path

import pytest

from packages.cards import count_cards, create_card
from packages.common.database import Database
from packages.common.exceptions import ConfigurationError
from packages.scheduling import CardState
from packages.taxonomy import (
    DEFAULT_COLOR,
    add_link,
    get_domains,
    get_graph_edges,
    get_graph_nodes,
    get_pillars,
    get_topic,
    get_topics,
    load_seed_from_yaml,
    seed_database,
)
from tests.conftest import START, set_memory

PYTHON_DOMAIN = "technical-mastery/python"
DECORATORS = "technical-mastery/python/decorators"
DATA_STRUCTURES = "technical-mastery/python/data-structures"
SPACED_REPETITION = "cognitive-performance/learning/spaced-repetition"


@pytest.fixture
def seeded(db: Database) -> Database:
    seed_database(db)
    return db


class TestSeed:
    """Tests for the default seed data."""

    def test_default_seed_counts(self, db: Database) -> None:
        result = seed_database(db)

        assert result.seeded is True
        assert (result.pillars, result.domains, result.topics, result.cards) == (6, 35, 3, 5)
        assert len(get_pillars(db)) == 6
        assert len(get_domains(db)) == 35
        assert len(get_topics(db)) == 3
        assert count_cards(db) == 5

    def test_seed_is_idempotent(self, seeded: Database) -> None:
        """Test seeding a populated database writes nothing."""
        result = seed_database(seeded)

        assert result.seeded is False
        assert len(get_pillars(seeded)) == 6
        assert count_cards(seeded) == 5

    def test_custom_seed_file(self, db: Database, temp_dir: Path) -> None:
        seed_file = temp_dir / "seed.yml"
        seed_file.write_text(
            """
pillars:
  - id: languages
    name: Languages
    domains:
      - id: languages/spanish
        name: Spanish
        topics:
          - id: languages/spanish/verbs
            name: Verbs
cards:
  - topic_id: languages/spanish/verbs
    front: hablar
    back: to speak
"""
        )

        seed = load_seed_from_yaml(seed_file)
        result = seed_database(db, seed)

        assert result.seeded is True
        pillar = get_pillars(db)[0]
        assert pillar.icon == ""
        assert pillar.color == DEFAULT_COLOR
        domain = get_domains(db)[0]
        assert domain.pillar_id == "languages"
        assert domain.tier == 2
        topic = get_topic(db, "languages/spanish/verbs")
        assert topic is not None
        assert topic.domain_id == "languages/spanish"

    def test_empty_seed_file(self, temp_dir: Path) -> None:
        seed_file = temp_dir / "empty.yml"
        seed_file.write_text("")

        seed = load_seed_from_yaml(seed_file)
        assert seed.pillars == []
        assert seed.cards == []

    def test_missing_seed_file(self, temp_dir: Path) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            load_seed_from_yaml(temp_dir / "nope.yml")

    def test_invalid_yaml(self, temp_dir: Path) -> None:
        seed_file = temp_dir / "bad.yml"
        seed_file.write_text("pillars: [unclosed")

        with pytest.raises(ConfigurationError):
            load_seed_from_yaml(seed_file)

    def test_missing_required_field(self, temp_dir: Path) -> None:
        seed_file = temp_dir / "bad.yml"
        seed_file.write_text("pillars:\n  - id: no-name\n")

        with pytest.raises(ConfigurationError):
            load_seed_from_yaml(seed_file)


class TestNavigation:
    """Tests for pillar, domain and topic listings."""

    def test_pillars_in_display_order(self, seeded: Database) -> None:
        pillars = get_pillars(seeded)

        assert [p.sort_order for p in pillars] == [1, 2, 3, 4, 5, 6]
        assert pillars[0].id == "technical-mastery"
        assert pillars[0].icon == "Code2"

    def test_domains_core_tier_first(self, seeded: Database) -> None:
        domains = get_domains(seeded, "technical-mastery")

        assert len(domains) == 18
        assert [d.tier for d in domains] == sorted(d.tier for d in domains)
        assert domains[0].id == PYTHON_DOMAIN

    def test_domains_unknown_pillar(self, seeded: Database) -> None:
        assert get_domains(seeded, "nope") == []

    def test_topics_for_domain(self, seeded: Database) -> None:
        topics = get_topics(seeded, PYTHON_DOMAIN)

        assert [t.id for t in topics] == [DECORATORS, DATA_STRUCTURES]

    def test_null_columns_become_defaults(self, db: Database) -> None:
        with db.transaction() as conn:
            conn.execute("INSERT INTO pillars (id, name) VALUES ('bare', 'Bare')")

        pillar = get_pillars(db)[0]
        assert pillar.icon == ""
        assert pillar.color == DEFAULT_COLOR
        assert pillar.sort_order == 0

    def test_get_topic_missing(self, seeded: Database) -> None:
        assert get_topic(seeded, "no/such/topic") is None


class TestGraph:
    """Tests for graph nodes and edges."""

    def test_nodes_count_cards(self, seeded: Database) -> None:
        nodes = {node.id: node for node in get_graph_nodes(seeded)}

        assert nodes[DECORATORS].card_count == 2
        assert nodes[DATA_STRUCTURES].card_count == 1
        assert nodes[SPACED_REPETITION].card_count == 2
        assert all(node.mastered_count == 0 for node in nodes.values())
        assert nodes[DECORATORS].pillar_id == "technical-mastery"
        assert nodes[DECORATORS].tier == 1
        assert nodes[DECORATORS].type == "topic"

    def test_review_cards_count_as_mastered(self, seeded: Database) -> None:
        card_id = create_card(seeded, DATA_STRUCTURES, "q", "a")
        set_memory(seeded, card_id, state=CardState.REVIEW, due=START)

        nodes = {node.id: node for node in get_graph_nodes(seeded)}
        assert nodes[DATA_STRUCTURES].card_count == 2
        assert nodes[DATA_STRUCTURES].mastered_count == 1

    def test_topic_without_cards(self, seeded: Database) -> None:
        with seeded.transaction() as conn:
            conn.execute(
                "INSERT INTO topics (id, domain_id, name, sort_order) VALUES (?, ?, ?, ?)",
                (f"{PYTHON_DOMAIN}/generators", PYTHON_DOMAIN, "Generators", 3),
            )

        nodes = {node.id: node for node in get_graph_nodes(seeded)}
        assert nodes[f"{PYTHON_DOMAIN}/generators"].card_count == 0

    def test_pillar_filter(self, seeded: Database) -> None:
        nodes = get_graph_nodes(seeded, pillar_filter="cognitive-performance")

        assert [node.id for node in nodes] == [SPACED_REPETITION]

    def test_edges(self, seeded: Database) -> None:
        first = add_link(seeded, DECORATORS, DATA_STRUCTURES)
        second = add_link(seeded, SPACED_REPETITION, DECORATORS, relation="applies-to", weight=0.5)

        edges = get_graph_edges(seeded)

        assert [edge.id for edge in edges] == [str(first), str(second)]
        assert edges[0].relation == "related"
        assert edges[0].weight == 1.0
        assert edges[1].relation == "applies-to"
        assert edges[1].weight == 0.5

    def test_edges_filtered_by_source_pillar(self, seeded: Database) -> None:
        add_link(seeded, DECORATORS, DATA_STRUCTURES)
        add_link(seeded, SPACED_REPETITION, DECORATORS)

        edges = get_graph_edges(seeded, pillar_filter="cognitive-performance")

        assert [(edge.source, edge.target) for edge in edges] == [(SPACED_REPETITION, DECORATORS)]
