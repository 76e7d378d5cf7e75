"""
Repository contracts.

Backends implement these ABCs; everything above the repository layer depends
only on them. All methods may block (lock wait or database round-trip), so
callers must not hold their own locks across a call.
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from dreamontology.schema.symbols import Symbol, SymbolSet


class SymbolRepository(ABC):

    @abstractmethod
    def get_symbol(self, symbol_id: str) -> Symbol:
        """Raises NotFoundError when absent."""

    @abstractmethod
    def list_symbols(self, category: Optional[str] = None) -> List[Symbol]:
        """All symbols, or those whose category equals `category` exactly."""

    @abstractmethod
    def search_symbols(self, query: str) -> List[Symbol]:
        """Symbols whose name or description contains `query`, ignoring case."""

    @abstractmethod
    def create_symbol(self, symbol: Symbol) -> Symbol:
        """Raises ConflictError when the id is already present."""

    @abstractmethod
    def update_symbol(self, symbol: Symbol) -> Symbol:
        """Replaces the full record. Raises NotFoundError when absent."""

    @abstractmethod
    def delete_symbol(self, symbol_id: str) -> None:
        """Raises NotFoundError when absent."""


class SymbolSetRepository(ABC):

    @abstractmethod
    def get_symbol_set(self, set_id: str) -> SymbolSet:
        """Raises NotFoundError when absent."""

    @abstractmethod
    def list_symbol_sets(self, category: Optional[str] = None) -> List[SymbolSet]:
        pass

    @abstractmethod
    def search_symbol_sets(self, query: str) -> List[SymbolSet]:
        """
        Sets whose own name/description contains `query`, or that contain a
        member symbol whose name/description does.
        """

    @abstractmethod
    def create_symbol_set(self, symbol_set: SymbolSet) -> SymbolSet:
        pass

    @abstractmethod
    def update_symbol_set(self, symbol_set: SymbolSet) -> SymbolSet:
        pass

    @abstractmethod
    def delete_symbol_set(self, set_id: str) -> None:
        pass


class RepositoryFactory(ABC):
    """
    Owns the backend state (connection pool or in-memory maps) and hands out
    repository handles bound to it. Handles from the same factory share state.
    """

    backend_name = "unknown"

    @abstractmethod
    def create_symbol_repository(self) -> SymbolRepository:
        pass

    @abstractmethod
    def create_symbol_set_repository(self) -> SymbolSetRepository:
        pass

    def close(self) -> None:
        """Release backend resources. No-op by default."""
