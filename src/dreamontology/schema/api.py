from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from dreamontology.schema.symbols import Symbol, SymbolSet
from dreamontology.utils.text import slugify


class SymbolsResponse(BaseModel):
    symbols: List[Symbol]
    total_count: int  # before the limit was applied


class SymbolSetsResponse(BaseModel):
    symbol_sets: List[SymbolSet]
    total_count: int


class CategoriesResponse(BaseModel):
    categories: List[str]
    total_count: int


class AddRelatedSymbolRequest(BaseModel):
    related_symbol_id: str


class InterpretRequest(BaseModel):
    symbol_id: str
    context: Optional[str] = None


class InterpretResponse(BaseModel):
    symbol: Symbol
    interpretation: str
    context: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    version: str
    backend: str


class SymbolDTO(BaseModel):
    """Compact symbol shape returned by the MCP tools."""
    id: str
    name: str
    category: str
    description: str
    related_symbols: List[str] = []

    @classmethod
    def from_symbol(cls, symbol: Symbol) -> "SymbolDTO":
        return cls(
            id=symbol.id,
            name=symbol.name,
            category=symbol.category,
            description=symbol.description,
            related_symbols=list(symbol.related_symbols),
        )


class SymbolSetSummary(BaseModel):
    """Set shape returned by the MCP tools: member count instead of bodies."""
    id: str
    name: str
    category: str
    description: str
    symbol_count: int

    @classmethod
    def from_symbol_set(cls, symbol_set: SymbolSet) -> "SymbolSetSummary":
        return cls(
            id=symbol_set.id,
            name=symbol_set.name,
            category=symbol_set.category,
            description=symbol_set.description,
            symbol_count=symbol_set.count(),
        )


class SymbolImport(BaseModel):
    """One entry of a JSON catalog file."""
    name: str = Field(min_length=1)
    id: Optional[str] = None
    category: str = "dream"
    description: str = "No description"
    # Flat dictionaries ship a single interpretation; stored under "default"
    interpretation: Optional[str] = None
    interpretations: Dict[str, str] = Field(default_factory=dict)
    related_symbols: List[str] = Field(default_factory=list)
    properties: Dict[str, str] = Field(default_factory=dict)

    def to_symbol(self) -> Symbol:
        interpretations = dict(self.interpretations)
        if self.interpretation and "default" not in interpretations:
            interpretations["default"] = self.interpretation
        return Symbol(
            id=(self.id or slugify(self.name)),
            name=self.name.strip(),
            category=self.category,
            description=self.description,
            interpretations=interpretations,
            related_symbols=list(self.related_symbols),
            properties=dict(self.properties),
        )
