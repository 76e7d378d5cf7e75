"""
In-memory repository backend for development and testing.

One dict per entity family, each guarded by a single reader/writer lock.
Reads scan under the read lock; create/update/delete do their existence check
and mutation inside one write-lock acquisition. Data is lost on restart.
"""
import threading
from contextlib import contextmanager
from typing import Dict, Generic, List, Optional, TypeVar

from dreamontology.core.logging import get_logger
from dreamontology.repository.errors import ConflictError, NotFoundError
from dreamontology.repository.interfaces import (
    RepositoryFactory, SymbolRepository, SymbolSetRepository
)
from dreamontology.schema.symbols import Symbol, SymbolSet

logger = get_logger(__name__)

E = TypeVar("E", Symbol, SymbolSet)


class ReadWriteLock:
    """Many concurrent readers or one writer. Waiting writers block new readers."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self):
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self):
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class MemoryStore(Generic[E]):
    """A guarded id -> entity map, shared by every handle a factory creates."""

    def __init__(self):
        self.lock = ReadWriteLock()
        self.data: Dict[str, E] = {}


class MemorySymbolRepository(SymbolRepository):

    def __init__(self, store: MemoryStore[Symbol]):
        self._store = store

    def get_symbol(self, symbol_id: str) -> Symbol:
        with self._store.lock.read():
            symbol = self._store.data.get(symbol_id)
            if symbol is None:
                raise NotFoundError(f"Symbol not found: {symbol_id}")
            return symbol.clone()

    def list_symbols(self, category: Optional[str] = None) -> List[Symbol]:
        with self._store.lock.read():
            return [
                s.clone() for s in self._store.data.values()
                if category is None or s.category == category
            ]

    def search_symbols(self, query: str) -> List[Symbol]:
        with self._store.lock.read():
            return [s.clone() for s in self._store.data.values() if s.matches(query)]

    def create_symbol(self, symbol: Symbol) -> Symbol:
        with self._store.lock.write():
            if symbol.id in self._store.data:
                raise ConflictError(f"Symbol already exists: {symbol.id}")
            self._store.data[symbol.id] = symbol.clone()
        logger.debug("symbol_created", symbol_id=symbol.id, backend="memory")
        return symbol.clone()

    def update_symbol(self, symbol: Symbol) -> Symbol:
        with self._store.lock.write():
            if symbol.id not in self._store.data:
                raise NotFoundError(f"Symbol not found: {symbol.id}")
            self._store.data[symbol.id] = symbol.clone()
        logger.debug("symbol_updated", symbol_id=symbol.id, backend="memory")
        return symbol.clone()

    def delete_symbol(self, symbol_id: str) -> None:
        with self._store.lock.write():
            if self._store.data.pop(symbol_id, None) is None:
                raise NotFoundError(f"Symbol not found: {symbol_id}")
        logger.debug("symbol_deleted", symbol_id=symbol_id, backend="memory")


class MemorySymbolSetRepository(SymbolSetRepository):

    def __init__(self, store: MemoryStore[SymbolSet]):
        self._store = store

    def get_symbol_set(self, set_id: str) -> SymbolSet:
        with self._store.lock.read():
            symbol_set = self._store.data.get(set_id)
            if symbol_set is None:
                raise NotFoundError(f"SymbolSet not found: {set_id}")
            return symbol_set.clone()

    def list_symbol_sets(self, category: Optional[str] = None) -> List[SymbolSet]:
        with self._store.lock.read():
            return [
                s.clone() for s in self._store.data.values()
                if category is None or s.category == category
            ]

    def search_symbol_sets(self, query: str) -> List[SymbolSet]:
        with self._store.lock.read():
            return [s.clone() for s in self._store.data.values() if s.matches(query)]

    def create_symbol_set(self, symbol_set: SymbolSet) -> SymbolSet:
        with self._store.lock.write():
            if symbol_set.id in self._store.data:
                raise ConflictError(f"SymbolSet already exists: {symbol_set.id}")
            self._store.data[symbol_set.id] = symbol_set.clone()
        logger.debug("symbol_set_created", set_id=symbol_set.id, backend="memory")
        return symbol_set.clone()

    def update_symbol_set(self, symbol_set: SymbolSet) -> SymbolSet:
        with self._store.lock.write():
            if symbol_set.id not in self._store.data:
                raise NotFoundError(f"SymbolSet not found: {symbol_set.id}")
            self._store.data[symbol_set.id] = symbol_set.clone()
        logger.debug("symbol_set_updated", set_id=symbol_set.id, backend="memory")
        return symbol_set.clone()

    def delete_symbol_set(self, set_id: str) -> None:
        with self._store.lock.write():
            if self._store.data.pop(set_id, None) is None:
                raise NotFoundError(f"SymbolSet not found: {set_id}")
        logger.debug("symbol_set_deleted", set_id=set_id, backend="memory")


class MemoryRepositoryFactory(RepositoryFactory):
    """Factory over two MemoryStores; every handle it creates shares them."""

    backend_name = "memory"

    def __init__(self):
        self._symbols: MemoryStore[Symbol] = MemoryStore()
        self._symbol_sets: MemoryStore[SymbolSet] = MemoryStore()

    def create_symbol_repository(self) -> SymbolRepository:
        return MemorySymbolRepository(self._symbols)

    def create_symbol_set_repository(self) -> SymbolSetRepository:
        return MemorySymbolSetRepository(self._symbol_sets)
