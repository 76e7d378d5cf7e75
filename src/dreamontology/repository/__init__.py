from .errors import (
    RepositoryError, NotFoundError, ConflictError, ValidationError, InternalError
)
from .interfaces import SymbolRepository, SymbolSetRepository, RepositoryFactory
from .memory import MemoryRepositoryFactory
from .factory import build_repository_factory

__all__ = [
    "RepositoryError", "NotFoundError", "ConflictError", "ValidationError", "InternalError",
    "SymbolRepository", "SymbolSetRepository", "RepositoryFactory",
    "MemoryRepositoryFactory", "build_repository_factory",
]
