"""Corpus API - FastAPI application."""

from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import date
from pathlib import Path
from typing import Annotated, Any

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from packages.analytics import AnalyticsService, DashboardData
from packages.cards import count_cards, create_card, delete_card, get_card, get_cards_by_topic
from packages.cards import update_card as update_card_content
from packages.common.config import Settings, get_settings
from packages.common.database import Database, check_connection, run_migrations
from packages.common.exceptions import DatabaseError, NotFoundError
from packages.common.logging import (
    bind_request_id,
    clear_request_context,
    configure_logging,
    get_logger,
)
from packages.scheduling import Card, CardType, DailyStats, Rating, ReviewLog, ReviewService
from packages.search import EntityType, SearchFilters, search
from packages.taxonomy import (
    Domain,
    GraphEdge,
    GraphNode,
    Pillar,
    Topic,
    get_domains,
    get_graph_edges,
    get_graph_nodes,
    get_pillars,
    get_topic,
    get_topics,
    load_seed_from_yaml,
    seed_database,
)
from packages.taxonomy.seed import DEFAULT_SEED_FILE

logger = get_logger(module=__name__)

VERSION = "0.1.0"
REQUEST_ID_HEADER = "X-Request-ID"


class CardCreateRequest(BaseModel):
    """Request body for card creation."""

    topic_id: str | None = None
    front: str = Field(min_length=1)
    back: str = Field(min_length=1)
    card_type: CardType = "basic"
    image_url: str | None = None


class CardCreateResponse(BaseModel):
    id: int


class CardUpdateRequest(BaseModel):
    """Request body for card edits; omitted fields are left unchanged."""

    front: str | None = None
    back: str | None = None
    topic_id: str | None = None


class ReviewRequest(BaseModel):
    """Request body for rating a card."""

    rating: Rating
    duration_ms: int = 0


class ReviewResponse(BaseModel):
    """Response from the review endpoint."""

    card: Card
    log: ReviewLog


class UndoResponse(BaseModel):
    """Response from the undo endpoint; ``card`` is null when nothing was undone."""

    undone: bool
    card: Card | None = None


class PreviewItem(BaseModel):
    rating: Rating
    state: int
    due: str | None
    interval_days: float
    retrievability: float


class SearchResultItem(BaseModel):
    """A single search hit."""

    entity_id: str
    entity_type: str
    title: str
    snippet: str
    rank: float


class SearchResponse(BaseModel):
    """Response from search endpoint."""

    query: str
    results: list[SearchResultItem]
    mode: str
    used_fallback: bool


def get_db(request: Request) -> Database:
    """Database handle opened by the lifespan handler."""
    db: Database = request.app.state.db
    return db


def get_app_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def get_review_service(
    db: Annotated[Database, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> ReviewService:
    return ReviewService(db, settings)


def get_analytics_service(
    db: Annotated[Database, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> AnalyticsService:
    return AnalyticsService(db, settings)


DbDep = Annotated[Database, Depends(get_db)]
ReviewDep = Annotated[ReviewService, Depends(get_review_service)]
AnalyticsDep = Annotated[AnalyticsService, Depends(get_analytics_service)]


def create_app(settings: Settings | None = None, *, seed: bool = True) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Application settings; the cached environment settings by default.
        seed: Load the starter taxonomy into an empty database at startup.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        """Open the database, bring the schema up to date and close it on shutdown."""
        configure_logging(debug=settings.debug, json_output=not settings.debug)
        db = Database.open(settings)
        try:
            run_migrations(db)
            if seed:
                seed_path = DEFAULT_SEED_FILE
                if settings.seed_file:
                    seed_path = Path(settings.seed_file).expanduser()
                seed_database(db, load_seed_from_yaml(seed_path))
            app.state.settings = settings
            app.state.db = db
            logger.info("api_started", database=db.path)
            yield
        finally:
            db.close()

    app = FastAPI(
        title="Corpus",
        description="Spaced-repetition knowledge base with FSRS scheduling",
        version=VERSION,
        lifespan=lifespan,
        debug=settings.debug,
    )

    @app.middleware("http")
    async def request_id_middleware(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Bind X-Request-ID (or a fresh id) to every log line of the request."""
        request_id = bind_request_id(request.headers.get(REQUEST_ID_HEADER))
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @app.exception_handler(NotFoundError)
    async def not_found_handler(_request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(DatabaseError)
    async def database_error_handler(_request: Request, exc: DatabaseError) -> JSONResponse:
        logger.error("request_database_error", error=str(exc), **exc.context)
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    @app.get("/health", response_class=JSONResponse)
    def health() -> dict[str, Any]:
        """Health check endpoint.

        Does not touch the database (use /ready for that).
        """
        return {"status": "healthy", "version": VERSION}

    @app.get("/ready", response_class=JSONResponse)
    def ready(db: DbDep) -> dict[str, Any]:
        """Readiness check - verifies the database answers."""
        database_ok = check_connection(db)
        return {
            "status": "ready" if database_ok else "not_ready",
            "checks": {"database": "ok" if database_ok else "failed"},
        }

    # Cards

    @app.get("/cards", response_model=list[Card])
    def list_cards(db: DbDep, topic_id: str) -> list[Card]:
        """Cards of one topic in creation order."""
        return get_cards_by_topic(db, topic_id)

    @app.get("/cards/due", response_model=list[Card])
    def due_cards(
        service: ReviewDep,
        limit: Annotated[int | None, Query(ge=0)] = None,
    ) -> list[Card]:
        """Cards to show in a review session right now."""
        return service.get_due_cards(limit)

    @app.get("/cards/count", response_class=JSONResponse)
    def cards_count(db: DbDep) -> dict[str, int]:
        return {"count": count_cards(db)}

    @app.get("/cards/{card_id}", response_model=Card)
    def read_card(db: DbDep, card_id: int) -> Card:
        card = get_card(db, card_id)
        if card is None:
            raise HTTPException(status_code=404, detail=f"Card {card_id} not found")
        return card

    @app.post("/cards", response_model=CardCreateResponse, status_code=201)
    def add_card(db: DbDep, request: CardCreateRequest) -> CardCreateResponse:
        card_id = create_card(
            db,
            request.topic_id,
            request.front,
            request.back,
            card_type=request.card_type,
            image_url=request.image_url,
        )
        return CardCreateResponse(id=card_id)

    @app.patch("/cards/{card_id}", response_class=JSONResponse)
    def edit_card(db: DbDep, card_id: int, request: CardUpdateRequest) -> dict[str, bool]:
        """Edit card content. ``updated`` is false for empty edits and unknown cards."""
        updated = update_card_content(
            db,
            card_id,
            front=request.front,
            back=request.back,
            topic_id=request.topic_id,
        )
        return {"updated": updated}

    @app.delete("/cards/{card_id}", response_class=JSONResponse)
    def remove_card(db: DbDep, card_id: int) -> dict[str, bool]:
        return {"deleted": delete_card(db, card_id)}

    # Review

    @app.post("/review/{card_id}", response_model=ReviewResponse)
    def review_card(service: ReviewDep, card_id: int, request: ReviewRequest) -> ReviewResponse:
        """Apply a rating to a card and return its new memory state."""
        result = service.process_review(card_id, request.rating, request.duration_ms)
        return ReviewResponse(card=result.updated_card, log=result.log)

    @app.post("/review/{card_id}/undo", response_model=UndoResponse)
    def undo_review(service: ReviewDep, card_id: int) -> UndoResponse:
        """Revert the card's most recent review."""
        card = service.undo_review(card_id)
        return UndoResponse(undone=card is not None, card=card)

    @app.get("/review/{card_id}/preview", response_model=list[PreviewItem])
    def preview_review(service: ReviewDep, card_id: int) -> list[PreviewItem]:
        """What each rating would schedule, for labelling answer buttons."""
        outcomes = service.preview(card_id)
        return [
            PreviewItem(
                rating=rating,
                state=int(result.memory.state),
                due=result.memory.due.isoformat() if result.memory.due else None,
                interval_days=result.interval.total_seconds() / 86400.0,
                retrievability=result.retrievability,
            )
            for rating, result in outcomes.items()
        ]

    # Statistics

    @app.get("/dashboard", response_model=DashboardData)
    def dashboard(service: AnalyticsDep) -> DashboardData:
        return service.get_dashboard_data()

    @app.get("/stats/streak", response_class=JSONResponse)
    def streak(service: AnalyticsDep) -> dict[str, int]:
        return {"streak": service.calculate_streak()}

    @app.get("/stats/daily/{day}", response_model=DailyStats)
    def daily_stats(service: AnalyticsDep, day: date) -> DailyStats:
        stats = service.get_daily_stats(day)
        if stats is None:
            raise HTTPException(status_code=404, detail=f"No statistics for {day.isoformat()}")
        return stats

    @app.get("/stats/range", response_model=list[DailyStats])
    def stats_range(service: AnalyticsDep, start: date, end: date) -> list[DailyStats]:
        return service.get_stats_range(start, end)

    # Search

    @app.get("/search", response_model=SearchResponse)
    def search_documents(
        db: DbDep,
        q: str,
        limit: Annotated[int | None, Query(ge=1, le=200)] = None,
        entity_type: Annotated[list[EntityType] | None, Query()] = None,
    ) -> SearchResponse:
        """Full-text search over cards; every term must match, else any term."""
        filters = SearchFilters(entity_types=entity_type) if entity_type else None
        result = search(db, q, limit=limit, filters=filters, settings=settings)
        return SearchResponse(
            query=q,
            results=[
                SearchResultItem(
                    entity_id=hit.entity_id,
                    entity_type=hit.entity_type,
                    title=hit.title,
                    snippet=hit.snippet,
                    rank=hit.rank,
                )
                for hit in result.results
            ],
            mode=result.mode,
            used_fallback=result.used_fallback,
        )

    # Taxonomy

    @app.get("/pillars", response_model=list[Pillar])
    def list_pillars(db: DbDep) -> list[Pillar]:
        return get_pillars(db)

    @app.get("/domains", response_model=list[Domain])
    def list_domains(db: DbDep, pillar_id: str | None = None) -> list[Domain]:
        return get_domains(db, pillar_id)

    @app.get("/topics", response_model=list[Topic])
    def list_topics(db: DbDep, domain_id: str | None = None) -> list[Topic]:
        return get_topics(db, domain_id)

    @app.get("/topics/{topic_id:path}", response_model=Topic)
    def read_topic(db: DbDep, topic_id: str) -> Topic:
        topic = get_topic(db, topic_id)
        if topic is None:
            raise HTTPException(status_code=404, detail=f"Topic not found: {topic_id}")
        return topic

    @app.get("/graph/nodes", response_model=list[GraphNode])
    def graph_nodes(db: DbDep, pillar: str | None = None) -> list[GraphNode]:
        return get_graph_nodes(db, pillar)

    @app.get("/graph/edges", response_model=list[GraphEdge])
    def graph_edges(db: DbDep, pillar: str | None = None) -> list[GraphEdge]:
        return get_graph_edges(db, pillar)

    return app


# Application instance for uvicorn
app = create_app()
