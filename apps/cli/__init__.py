"""Corpus CLI application."""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import timedelta
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from packages.common.config import Settings, get_settings
from packages.common.database import Database, run_migrations
from packages.common.exceptions import CorpusError
from packages.common.logging import configure_logging
from packages.scheduling.models import Card, Rating

VERSION = "0.1.0"

app = typer.Typer(
    name="corpus",
    help="Spaced-repetition knowledge base",
    no_args_is_help=True,
)

console = Console()

_state: dict[str, str | None] = {"database": None}


@app.callback()
def main(
    database: str | None = typer.Option(
        None,
        "--database",
        "-d",
        help="SQLite database file (defaults to CORPUS_DATABASE_PATH)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
) -> None:
    """Spaced-repetition knowledge base."""
    _state["database"] = database
    configure_logging(debug=verbose)


def _settings() -> Settings:
    return get_settings()


@contextmanager
def _open_database() -> Iterator[Database]:
    """Open the database with an up-to-date schema."""
    db = Database.open(_settings(), path=_state["database"])
    try:
        run_migrations(db)
        yield db
    finally:
        db.close()


def _parse_rating(value: str) -> Rating:
    text = value.strip()
    if text.isdigit() and int(text) in {r.value for r in Rating}:
        return Rating(int(text))
    try:
        return Rating[text.upper()]
    except KeyError:
        raise typer.BadParameter(
            f"{value!r} is not one of again, hard, good, easy or 1-4"
        ) from None


def _format_interval(delta: timedelta) -> str:
    seconds = delta.total_seconds()
    if seconds < 3600:
        return f"{round(seconds / 60)}m"
    if seconds < 86400:
        return f"{round(seconds / 3600)}h"
    return f"{round(seconds / 86400)}d"


def _card_table(title: str, cards: list[Card]) -> Table:
    table = Table(title=title)
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("State")
    table.add_column("Due")
    table.add_column("Front", max_width=60)

    for card in cards:
        due = card.due.strftime("%Y-%m-%d %H:%M") if card.due else "-"
        table.add_row(str(card.id), card.state.name.title(), due, card.front)
    return table


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"corpus {VERSION}")


@app.command()
def migrate() -> None:
    """Run database migrations."""
    console.print("Running database migrations...")
    try:
        db = Database.open(_settings(), path=_state["database"])
        try:
            result = run_migrations(db)
        finally:
            db.close()
    except CorpusError as e:
        console.print(f"[red]Migration error:[/red] {e}")
        raise typer.Exit(1) from None

    if result.applied:
        console.print(f"[green]Applied migrations:[/green] {', '.join(result.applied)}")
    else:
        console.print("[yellow]No migrations to apply[/yellow]")


@app.command()
def seed(
    seed_file: str | None = typer.Option(
        None,
        "--file",
        "-f",
        help="Path to seed YAML file (defaults to the bundled starter set)",
    ),
) -> None:
    """Load the starter taxonomy and sample cards into an empty database."""
    from packages.taxonomy.seed import DEFAULT_SEED_FILE, load_seed_from_yaml, seed_database

    path = Path(seed_file or _settings().seed_file or DEFAULT_SEED_FILE).expanduser()
    try:
        data = load_seed_from_yaml(path)
        with _open_database() as db:
            result = seed_database(db, data)
    except CorpusError as e:
        console.print(f"[red]Seed error:[/red] {e}")
        raise typer.Exit(1) from None

    if not result.seeded:
        console.print("[yellow]Database already has a taxonomy; nothing seeded[/yellow]")
        return

    table = Table(title="Seeded")
    table.add_column("Entity", style="cyan")
    table.add_column("Count", justify="right", style="green")
    table.add_row("Pillars", str(result.pillars))
    table.add_row("Domains", str(result.domains))
    table.add_row("Topics", str(result.topics))
    table.add_row("Cards", str(result.cards))
    console.print(table)


@app.command()
def add(
    front: str = typer.Argument(..., help="Question side"),
    back: str = typer.Argument(..., help="Answer side"),
    topic: str | None = typer.Option(None, "--topic", "-t", help="Topic id"),
    cloze: bool = typer.Option(False, "--cloze", help="Create a cloze card"),
) -> None:
    """Create a new card."""
    from packages.cards import create_card

    try:
        with _open_database() as db:
            card_id = create_card(db, topic, front, back, card_type="cloze" if cloze else "basic")
    except CorpusError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    console.print(f"[green]Created card[/green] {card_id}")


@app.command()
def due(
    limit: int | None = typer.Option(None, "--limit", "-n", help="Maximum cards to show"),
) -> None:
    """List cards due for review now."""
    from packages.scheduling import ReviewService

    try:
        with _open_database() as db:
            cards = ReviewService(db, _settings()).get_due_cards(limit)
    except CorpusError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    if not cards:
        console.print("[green]Nothing due[/green]")
        return
    console.print(_card_table(f"Due cards ({len(cards)})", cards))


@app.command()
def rate(
    card_id: int = typer.Argument(..., help="Card id"),
    rating: str = typer.Argument(..., help="again, hard, good, easy (or 1-4)"),
    duration_ms: int = typer.Option(0, "--duration", help="Answer time in milliseconds"),
) -> None:
    """Record a review of a card."""
    from packages.scheduling import ReviewService

    parsed = _parse_rating(rating)
    try:
        with _open_database() as db:
            result = ReviewService(db, _settings()).process_review(card_id, parsed, duration_ms)
    except CorpusError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    card = result.updated_card
    due_text = card.due.strftime("%Y-%m-%d %H:%M") if card.due else "-"
    console.print(
        f"Card {card.id}: [cyan]{parsed.name.title()}[/cyan] -> "
        f"{card.state.name.title()}, due {due_text} "
        f"(stability {card.stability:.2f}, difficulty {card.difficulty:.2f})"
    )


@app.command()
def undo(card_id: int = typer.Argument(..., help="Card id")) -> None:
    """Revert the most recent review of a card."""
    from packages.scheduling import ReviewService

    try:
        with _open_database() as db:
            card = ReviewService(db, _settings()).undo_review(card_id)
    except CorpusError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    if card is None:
        console.print(f"[yellow]Card {card_id} has no reviews to undo[/yellow]")
        return
    console.print(f"Card {card.id} restored to {card.state.name.title()} (reps {card.reps})")


@app.command()
def preview(card_id: int = typer.Argument(..., help="Card id")) -> None:
    """Show what each rating would schedule for a card."""
    from packages.scheduling import ReviewService

    try:
        with _open_database() as db:
            outcomes = ReviewService(db, _settings()).preview(card_id)
    except CorpusError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    table = Table(title=f"Card {card_id}")
    table.add_column("Rating", style="cyan")
    table.add_column("Next state")
    table.add_column("Interval", justify="right", style="green")
    for rating, result in outcomes.items():
        table.add_row(
            rating.name.title(),
            result.memory.state.name.title(),
            _format_interval(result.interval),
        )
    console.print(table)


@app.command()
def dashboard() -> None:
    """Show review counts, streak and per-pillar progress."""
    from packages.analytics import AnalyticsService

    try:
        with _open_database() as db:
            data = AnalyticsService(db, _settings()).get_dashboard_data()
    except CorpusError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    table = Table(title="Today")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")
    table.add_row("Due", str(data.due_today))
    table.add_row("New available", str(data.new_available))
    table.add_row("Reviewed today", str(data.reviewed_today))
    table.add_row("Streak (days)", str(data.streak))
    console.print(table)

    if data.pillar_progress:
        progress = Table(title="Pillars")
        progress.add_column("Pillar", style="cyan")
        progress.add_column("Cards", justify="right")
        progress.add_column("Mastered", justify="right", style="green")
        for p in data.pillar_progress:
            progress.add_row(p.pillar_id, str(p.total), str(p.mastered))
        console.print(progress)


@app.command()
def stats(
    days: int = typer.Option(7, "--days", help="Number of days to show, ending today"),
) -> None:
    """Show daily review statistics."""
    from packages.analytics import AnalyticsService

    try:
        with _open_database() as db:
            service = AnalyticsService(db, _settings())
            today = service.today()
            rows = service.get_stats_range(today - timedelta(days=max(days, 1) - 1), today)
    except CorpusError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    if not rows:
        console.print("[yellow]No reviews recorded in this period[/yellow]")
        return

    table = Table(title="Daily statistics")
    table.add_column("Date", style="cyan")
    table.add_column("Reviewed", justify="right", style="green")
    table.add_column("New", justify="right")
    table.add_column("Time", justify="right")
    for row in rows:
        table.add_row(
            row.date.isoformat(),
            str(row.cards_reviewed),
            str(row.cards_new),
            f"{row.time_spent_ms / 60000:.1f} min",
        )
    console.print(table)


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    limit: int | None = typer.Option(None, "--limit", "-n", help="Maximum results"),
) -> None:
    """Full-text search over cards."""
    from packages.search import search as run_search

    try:
        with _open_database() as db:
            result = run_search(db, query, limit=limit, settings=_settings())
    except CorpusError as e:
        console.print(f"[red]Search error:[/red] {e}")
        raise typer.Exit(1) from None

    if not result.results:
        console.print("[yellow]No results found[/yellow]")
        return

    if result.used_fallback:
        console.print("[dim]No card matched every word; showing partial matches[/dim]")

    for i, hit in enumerate(result.results, 1):
        snippet = hit.snippet.replace("<mark>", "[bold yellow]").replace("</mark>", "[/bold yellow]")
        console.print(f"[bold]{i}.[/bold] {hit.entity_type} {hit.entity_id}: {hit.title}")
        console.print(f"    {snippet}")


@app.command()
def topics(
    domain: str | None = typer.Option(None, "--domain", help="Only topics of this domain"),
) -> None:
    """List pillars and topics."""
    from packages.taxonomy import get_pillars, get_topics

    try:
        with _open_database() as db:
            pillars = get_pillars(db)
            topic_list = get_topics(db, domain)
    except CorpusError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    if domain is None:
        pillar_table = Table(title="Pillars")
        pillar_table.add_column("ID", style="cyan")
        pillar_table.add_column("Name")
        for p in pillars:
            pillar_table.add_row(p.id, p.name)
        console.print(pillar_table)

    topic_table = Table(title="Topics")
    topic_table.add_column("ID", style="cyan")
    topic_table.add_column("Name")
    for t in topic_list:
        topic_table.add_row(t.id, t.name)
    console.print(topic_table)


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address"),
    port: int | None = typer.Option(None, "--port", help="Port"),
) -> None:
    """Run the HTTP API."""
    import uvicorn

    settings = _settings()
    if _state["database"]:
        settings = settings.model_copy(update={"database_path": _state["database"]})

    from apps.api.main import create_app

    uvicorn.run(
        create_app(settings),
        host=host or settings.api_host,
        port=port or settings.api_port,
    )


if __name__ == "__main__":
    app()
