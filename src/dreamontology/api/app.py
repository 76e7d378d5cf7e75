"""
Dream Ontology REST API

FastAPI application over the repository contracts:
- /symbols:      CRUD, search, category filter, related symbols, interpretation
- /symbol-sets:  CRUD and search
- /categories:   distinct symbol categories
- /health:       liveness + active backend

Handlers validate input (empty ids/names/queries) before touching a
repository and raise ValidationError; every RepositoryError is mapped to an
HTTP status by one exception handler.
"""
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.responses import JSONResponse

from dreamontology import __version__
from dreamontology.config import Settings, get_settings
from dreamontology.core.logging import get_logger, setup_logging
from dreamontology.repository import (
    ConflictError, InternalError, NotFoundError, RepositoryError,
    RepositoryFactory, SymbolRepository, SymbolSetRepository, ValidationError,
    build_repository_factory,
)
from dreamontology.schema import (
    AddRelatedSymbolRequest, CategoriesResponse, HealthResponse, InterpretRequest,
    InterpretResponse, Symbol, SymbolSet, SymbolSetsResponse, SymbolsResponse,
)

logger = get_logger(__name__)

ERROR_STATUS = {
    NotFoundError: (404, "Not Found"),
    ConflictError: (409, "Conflict"),
    ValidationError: (400, "Bad Request"),
    InternalError: (500, "Internal Server Error"),
}


def _require(value: Optional[str], message: str) -> None:
    if value is None or not value.strip():
        raise ValidationError(message)


def _limit(limit: Optional[int], settings: Settings) -> int:
    return settings.default_limit if limit is None else limit


# ============================================
# DEPENDENCY INJECTION
# ============================================

def get_factory(request: Request) -> RepositoryFactory:
    return request.app.state.factory


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_symbol_repository(factory: RepositoryFactory = Depends(get_factory)) -> SymbolRepository:
    return factory.create_symbol_repository()


def get_symbol_set_repository(factory: RepositoryFactory = Depends(get_factory)) -> SymbolSetRepository:
    return factory.create_symbol_set_repository()


def create_app(factory: Optional[RepositoryFactory] = None,
               settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the API. Without a factory, one is built from settings on startup
    (DATABASE_URL -> relational, otherwise in-memory).
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Dream Ontology API",
        version=__version__,
        description="Catalog of dream and mythological symbols and symbol sets",
    )
    app.state.settings = settings
    app.state.factory = factory
    # Only a factory built here is closed on shutdown
    app.state.owns_factory = factory is None

    # ============================================
    # STARTUP/SHUTDOWN EVENTS
    # ============================================

    @app.on_event("startup")
    async def startup_event():
        logger.info("api_startup", version=__version__)
        if app.state.factory is None:
            try:
                app.state.factory = build_repository_factory(settings)
            except Exception as e:
                logger.error("repository_initialization_failed", error=str(e))
                raise

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("api_shutdown")
        if app.state.owns_factory and app.state.factory is not None:
            app.state.factory.close()
            app.state.factory = None

    # ============================================
    # ERROR MAPPING
    # ============================================

    @app.exception_handler(RepositoryError)
    async def repository_error_handler(request: Request, exc: RepositoryError):
        status, reason = ERROR_STATUS.get(type(exc), (500, "Internal Server Error"))
        if status == 500:
            # Storage detail stays in the logs
            logger.error("internal_error", path=request.url.path, error=str(exc))
            message = "An internal error occurred"
        else:
            message = exc.message
        return JSONResponse(
            status_code=status,
            content={"error": {"type": reason, "message": message}},
        )

    # ============================================
    # HEALTH CHECK
    # ============================================

    @app.get("/health", response_model=HealthResponse)
    def health_check(factory: RepositoryFactory = Depends(get_factory)):
        return HealthResponse(status="ok", version=__version__, backend=factory.backend_name)

    # ============================================
    # SYMBOLS
    # ============================================

    @app.get("/symbols", response_model=SymbolsResponse)
    def list_symbols(
        category: Optional[str] = None,
        query: Optional[str] = None,
        limit: Optional[int] = Query(default=None, ge=0),
        repo: SymbolRepository = Depends(get_symbol_repository),
        app_settings: Settings = Depends(get_app_settings),
    ):
        """Search when `query` is given, else list (optionally by category)."""
        if query is not None:
            _require(query, "Search query cannot be empty")
        if category is not None:
            _require(category, "Category cannot be empty")

        if query is not None:
            symbols = repo.search_symbols(query)
        else:
            symbols = repo.list_symbols(category)

        return SymbolsResponse(
            symbols=symbols[:_limit(limit, app_settings)],
            total_count=len(symbols),
        )

    @app.post("/symbols/interpret", response_model=InterpretResponse)
    def interpret_symbol(
        request: InterpretRequest,
        repo: SymbolRepository = Depends(get_symbol_repository),
    ):
        """
        Interpretation text for a symbol. Uses the stored interpretation for
        the requested context when there is one, else a generic rendering.
        """
        _require(request.symbol_id, "Symbol ID cannot be empty")
        symbol = repo.get_symbol(request.symbol_id)

        if request.context and request.context in symbol.interpretations:
            text = symbol.interpretations[request.context]
        elif request.context:
            text = (f"Symbol interpretation for '{symbol.name}' in context "
                    f"'{request.context}': {symbol.description}")
        else:
            text = f"General interpretation for '{symbol.name}': {symbol.description}"

        return InterpretResponse(symbol=symbol, interpretation=text, context=request.context)

    @app.get("/symbols/{symbol_id}", response_model=Symbol)
    def get_symbol(symbol_id: str, repo: SymbolRepository = Depends(get_symbol_repository)):
        _require(symbol_id, "Symbol ID cannot be empty")
        return repo.get_symbol(symbol_id)

    @app.post("/symbols", response_model=Symbol, status_code=201)
    def create_symbol(symbol: Symbol, repo: SymbolRepository = Depends(get_symbol_repository)):
        _require(symbol.id, "Symbol ID cannot be empty")
        _require(symbol.name, "Symbol name cannot be empty")
        created = repo.create_symbol(symbol)
        logger.info("api_symbol_created", symbol_id=created.id)
        return created

    @app.api_route("/symbols/{symbol_id}", methods=["POST", "PUT"], response_model=Symbol)
    def update_symbol(
        symbol_id: str,
        symbol: Symbol,
        repo: SymbolRepository = Depends(get_symbol_repository),
    ):
        if symbol_id != symbol.id:
            raise ValidationError("Symbol ID in path does not match ID in body")
        _require(symbol.name, "Symbol name cannot be empty")
        return repo.update_symbol(symbol)

    @app.delete("/symbols/{symbol_id}", status_code=204)
    def delete_symbol(symbol_id: str, repo: SymbolRepository = Depends(get_symbol_repository)):
        _require(symbol_id, "Symbol ID cannot be empty")
        repo.delete_symbol(symbol_id)
        return Response(status_code=204)

    @app.post("/symbols/{symbol_id}/related", response_model=Symbol)
    def add_related_symbol(
        symbol_id: str,
        request: AddRelatedSymbolRequest,
        repo: SymbolRepository = Depends(get_symbol_repository),
    ):
        """Link an existing symbol; both ids must exist."""
        _require(symbol_id, "Symbol ID cannot be empty")
        _require(request.related_symbol_id, "Related symbol ID cannot be empty")

        symbol = repo.get_symbol(symbol_id)
        repo.get_symbol(request.related_symbol_id)

        symbol.add_related_symbol(request.related_symbol_id)
        return repo.update_symbol(symbol)

    @app.get("/symbols/{symbol_id}/related", response_model=SymbolsResponse)
    def get_related_symbols(
        symbol_id: str,
        repo: SymbolRepository = Depends(get_symbol_repository),
    ):
        """Resolve related ids; ids that no longer exist are skipped."""
        _require(symbol_id, "Symbol ID cannot be empty")
        base = repo.get_symbol(symbol_id)

        related: List[Symbol] = []
        for related_id in base.related_symbols:
            try:
                related.append(repo.get_symbol(related_id))
            except NotFoundError:
                continue

        return SymbolsResponse(symbols=related, total_count=len(related))

    @app.get("/categories", response_model=CategoriesResponse)
    def get_categories(repo: SymbolRepository = Depends(get_symbol_repository)):
        categories = sorted({s.category for s in repo.list_symbols()})
        return CategoriesResponse(categories=categories, total_count=len(categories))

    # ============================================
    # SYMBOL SETS
    # ============================================

    @app.get("/symbol-sets", response_model=SymbolSetsResponse)
    def list_symbol_sets(
        category: Optional[str] = None,
        limit: Optional[int] = Query(default=None, ge=0),
        repo: SymbolSetRepository = Depends(get_symbol_set_repository),
        app_settings: Settings = Depends(get_app_settings),
    ):
        if category is not None:
            _require(category, "Category cannot be empty")
        symbol_sets = repo.list_symbol_sets(category)
        return SymbolSetsResponse(
            symbol_sets=symbol_sets[:_limit(limit, app_settings)],
            total_count=len(symbol_sets),
        )

    @app.get("/symbol-sets/search", response_model=SymbolSetsResponse)
    def search_symbol_sets(
        query: str = "",
        limit: Optional[int] = Query(default=None, ge=0),
        repo: SymbolSetRepository = Depends(get_symbol_set_repository),
        app_settings: Settings = Depends(get_app_settings),
    ):
        _require(query, "Search query cannot be empty")
        symbol_sets = repo.search_symbol_sets(query)
        return SymbolSetsResponse(
            symbol_sets=symbol_sets[:_limit(limit, app_settings)],
            total_count=len(symbol_sets),
        )

    @app.get("/symbol-sets/{set_id}", response_model=SymbolSet)
    def get_symbol_set(set_id: str, repo: SymbolSetRepository = Depends(get_symbol_set_repository)):
        _require(set_id, "Symbol set ID cannot be empty")
        return repo.get_symbol_set(set_id)

    @app.post("/symbol-sets", response_model=SymbolSet, status_code=201)
    def create_symbol_set(
        symbol_set: SymbolSet,
        repo: SymbolSetRepository = Depends(get_symbol_set_repository),
    ):
        _require(symbol_set.id, "Symbol set ID cannot be empty")
        _require(symbol_set.name, "Symbol set name cannot be empty")
        created = repo.create_symbol_set(symbol_set)
        logger.info("api_symbol_set_created", set_id=created.id)
        return created

    @app.api_route("/symbol-sets/{set_id}", methods=["POST", "PUT"], response_model=SymbolSet)
    def update_symbol_set(
        set_id: str,
        symbol_set: SymbolSet,
        repo: SymbolSetRepository = Depends(get_symbol_set_repository),
    ):
        if set_id != symbol_set.id:
            raise ValidationError("Symbol set ID in path does not match ID in body")
        _require(symbol_set.name, "Symbol set name cannot be empty")
        return repo.update_symbol_set(symbol_set)

    @app.delete("/symbol-sets/{set_id}", status_code=204)
    def delete_symbol_set(set_id: str, repo: SymbolSetRepository = Depends(get_symbol_set_repository)):
        _require(set_id, "Symbol set ID cannot be empty")
        repo.delete_symbol_set(set_id)
        return Response(status_code=204)

    return app


def create_default_app() -> FastAPI:
    """
    ASGI factory: `uvicorn --factory dreamontology.api.app:create_default_app`.
    Settings and logging are resolved here, not at import.
    """
    settings = get_settings()
    setup_logging(settings)
    return create_app(settings=settings)
