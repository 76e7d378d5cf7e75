from .symbols import Symbol, SymbolSet
from .tables import SymbolRecord, SymbolSetRecord
from .api import (
    SymbolsResponse, SymbolSetsResponse, CategoriesResponse,
    AddRelatedSymbolRequest, InterpretRequest, InterpretResponse, HealthResponse,
    SymbolDTO, SymbolSetSummary, SymbolImport
)

__all__ = [
    "Symbol", "SymbolSet",
    "SymbolRecord", "SymbolSetRecord",
    "SymbolsResponse", "SymbolSetsResponse", "CategoriesResponse",
    "AddRelatedSymbolRequest", "InterpretRequest", "InterpretResponse", "HealthResponse",
    "SymbolDTO", "SymbolSetSummary", "SymbolImport",
]
