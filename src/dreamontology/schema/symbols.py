from typing import Dict, Iterable, List, Optional, Set

from pydantic import BaseModel, Field


class Symbol(BaseModel):
    """
    A single catalog entry: a dream/mythological concept.

    `id` is the identity key. By convention it is the lowercased,
    underscore-joined name (see utils.text.slugify) but nothing enforces that.
    """
    id: str
    name: str
    category: str
    description: str

    # context label -> interpretation text ("psychology", "spiritual", ...)
    interpretations: Dict[str, str] = Field(default_factory=dict)
    # ids of other symbols, ordered; not validated against the store
    related_symbols: List[str] = Field(default_factory=list)
    # open-ended: emotional_tone, frequency, dream_type, ...
    properties: Dict[str, str] = Field(default_factory=dict)

    def with_category(self, category: str) -> "Symbol":
        self.category = category
        return self

    def with_related(self, related: Iterable[str]) -> "Symbol":
        self.related_symbols = list(related)
        return self

    def add_interpretation(self, context: str, interpretation: str) -> None:
        self.interpretations[context] = interpretation

    def add_related_symbol(self, symbol_id: str) -> None:
        if symbol_id not in self.related_symbols:
            self.related_symbols.append(symbol_id)

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match on name or description."""
        needle = query.lower()
        return needle in self.name.lower() or needle in self.description.lower()

    def clone(self) -> "Symbol":
        return self.model_copy(deep=True)


class SymbolSet(BaseModel):
    """
    Named grouping of symbols.

    Members are embedded in full (id -> Symbol). The relational backend only
    persists the member ids and rehydrates the bodies on read.
    """
    id: str
    name: str
    category: str
    description: str
    symbols: Dict[str, Symbol] = Field(default_factory=dict)

    def with_symbols(self, symbol_ids: Iterable[str]) -> "SymbolSet":
        # Placeholders only; real bodies come from the repository
        for symbol_id in symbol_ids:
            self.symbols[symbol_id] = Symbol(
                id=symbol_id, name=symbol_id, category="", description=""
            )
        return self

    def add_symbol(self, symbol: Symbol) -> None:
        self.symbols[symbol.id] = symbol

    def get_symbol(self, symbol_id: str) -> Optional[Symbol]:
        return self.symbols.get(symbol_id)

    def remove_symbol(self, symbol_id: str) -> Optional[Symbol]:
        return self.symbols.pop(symbol_id, None)

    def search(self, query: str) -> List[Symbol]:
        needle = query.lower()
        return [
            s for s in self.symbols.values()
            if needle in s.id.lower()
            or needle in s.name.lower()
            or needle in s.description.lower()
        ]

    def filter_by_category(self, category: str) -> List[Symbol]:
        return [s for s in self.symbols.values() if s.category == category]

    def get_categories(self) -> Set[str]:
        return {s.category for s in self.symbols.values()}

    def count(self) -> int:
        return len(self.symbols)

    def matches(self, query: str) -> bool:
        """
        True when the set's own name/description contains `query`, or when
        any member symbol's name/description does (case-insensitive).
        """
        needle = query.lower()
        if needle in self.name.lower() or needle in self.description.lower():
            return True
        return any(s.matches(query) for s in self.symbols.values())

    def clone(self) -> "SymbolSet":
        return self.model_copy(deep=True)
