"""
Dream Ontology MCP server.

Exposes read-only catalog tools over the Model Context Protocol. Outputs are
compact JSON so they stay cheap in an LLM context window.

Tool arguments are validated before any repository call; repository errors
become tool errors (internal detail is logged, not returned).
"""
import json
from typing import Any, Callable, Dict, Optional, TypeVar

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from dreamontology import __version__
from dreamontology.config import Settings, get_settings
from dreamontology.core.logging import get_logger
from dreamontology.repository import (
    InternalError, RepositoryError, RepositoryFactory, ValidationError
)
from dreamontology.schema import SymbolDTO, SymbolSetSummary

logger = get_logger(__name__)

T = TypeVar("T")

INSTRUCTIONS = (
    "Get dream symbols from the ontology. For searching symbols, use "
    "search_symbols. For filtering by category, use filter_by_category."
)


def _c(d: Dict[str, Any]) -> str:
    return json.dumps(d, ensure_ascii=False, separators=(",", ":"))


class SymbolToolService:
    """Tool implementations, independent of the MCP transport."""

    def __init__(self, factory: RepositoryFactory, default_limit: int = 50):
        self.symbols = factory.create_symbol_repository()
        self.symbol_sets = factory.create_symbol_set_repository()
        self.default_limit = default_limit

    def _call(self, tool: str, fn: Callable[[], T]) -> T:
        try:
            return fn()
        except InternalError as e:
            logger.error("tool_internal_error", tool=tool, error=str(e))
            raise ToolError("Internal error while reading the catalog") from e
        except RepositoryError as e:
            logger.info("tool_rejected", tool=tool, error=str(e))
            raise ToolError(str(e)) from e

    def _limit(self, limit: Optional[int]) -> int:
        if limit is None:
            return self.default_limit
        if limit < 0:
            raise ToolError("Validation error: limit must be >= 0")
        return limit

    @staticmethod
    def _require(value: Optional[str], message: str) -> None:
        if value is None or not value.strip():
            raise ToolError(str(ValidationError(message)))

    def _symbol_page(self, symbols, limit: Optional[int]) -> Dict[str, Any]:
        return {
            "symbols": [SymbolDTO.from_symbol(s).model_dump() for s in symbols[:self._limit(limit)]],
            "total_count": len(symbols),
        }

    def _set_page(self, symbol_sets, limit: Optional[int]) -> Dict[str, Any]:
        return {
            "symbol_sets": [
                SymbolSetSummary.from_symbol_set(s).model_dump()
                for s in symbol_sets[:self._limit(limit)]
            ],
            "total_count": len(symbol_sets),
        }

    def get_symbols(self, limit: Optional[int] = None) -> Dict[str, Any]:
        symbols = self._call("get_symbols", lambda: self.symbols.list_symbols())
        return self._symbol_page(symbols, limit)

    def search_symbols(self, query: str, limit: Optional[int] = None) -> Dict[str, Any]:
        self._require(query, "Search query cannot be empty")
        symbols = self._call("search_symbols", lambda: self.symbols.search_symbols(query))
        logger.info("tool_search_symbols", query=query, found=len(symbols))
        return self._symbol_page(symbols, limit)

    def filter_by_category(self, category: str, limit: Optional[int] = None) -> Dict[str, Any]:
        self._require(category, "Category cannot be empty")
        symbols = self._call("filter_by_category", lambda: self.symbols.list_symbols(category))
        return self._symbol_page(symbols, limit)

    def get_categories(self) -> Dict[str, Any]:
        symbols = self._call("get_categories", lambda: self.symbols.list_symbols())
        categories = sorted({s.category for s in symbols})
        return {"categories": categories, "total_count": len(categories)}

    def get_symbol(self, symbol_id: str) -> Dict[str, Any]:
        self._require(symbol_id, "Symbol ID cannot be empty")
        symbol = self._call("get_symbol", lambda: self.symbols.get_symbol(symbol_id))
        return symbol.model_dump()

    def get_symbol_sets(self, limit: Optional[int] = None) -> Dict[str, Any]:
        symbol_sets = self._call("get_symbol_sets", lambda: self.symbol_sets.list_symbol_sets())
        return self._set_page(symbol_sets, limit)

    def search_symbol_sets(self, query: str, limit: Optional[int] = None) -> Dict[str, Any]:
        self._require(query, "Search query cannot be empty")
        symbol_sets = self._call(
            "search_symbol_sets", lambda: self.symbol_sets.search_symbol_sets(query)
        )
        return self._set_page(symbol_sets, limit)


def create_mcp_server(factory: RepositoryFactory, settings: Optional[Settings] = None) -> FastMCP:
    settings = settings or get_settings()
    service = SymbolToolService(factory, default_limit=settings.default_limit)

    mcp = FastMCP(
        "dream_ontology",
        instructions=INSTRUCTIONS,
        host=settings.mcp_host,
        port=settings.mcp_port,
    )

    @mcp.tool(name="get_symbols")
    def get_symbols(limit: Optional[int] = None) -> str:
        """List all symbols (without filtering). Returns {symbols:[{id,name,category,description,related_symbols}],total_count}."""
        return _c(service.get_symbols(limit))

    @mcp.tool(name="search_symbols")
    def search_symbols(query: str, limit: Optional[int] = None) -> str:
        """Search symbols by text query - use this for all text searches. Matches name or description, case-insensitive."""
        return _c(service.search_symbols(query, limit))

    @mcp.tool(name="filter_by_category")
    def filter_by_category(category: str, limit: Optional[int] = None) -> str:
        """Get symbols by category - use this to filter by category (exact match)."""
        return _c(service.filter_by_category(category, limit))

    @mcp.tool(name="get_categories")
    def get_categories() -> str:
        """Get all available symbol categories. Returns {categories:[],total_count}."""
        return _c(service.get_categories())

    @mcp.tool(name="get_symbol")
    def get_symbol(symbol_id: str) -> str:
        """Full symbol by id, including interpretations and properties."""
        return _c(service.get_symbol(symbol_id))

    @mcp.tool(name="get_symbol_sets")
    def get_symbol_sets(limit: Optional[int] = None) -> str:
        """List symbol sets - collections of related symbols. Returns {symbol_sets:[{id,name,category,description,symbol_count}],total_count}."""
        return _c(service.get_symbol_sets(limit))

    @mcp.tool(name="search_symbol_sets")
    def search_symbol_sets(query: str, limit: Optional[int] = None) -> str:
        """Search symbol sets by name or description, including the symbols they contain."""
        return _c(service.search_symbol_sets(query, limit))

    logger.info("mcp_server_configured", backend=factory.backend_name, version=__version__)
    return mcp
