from typing import Any, Dict, List

from sqlalchemy import JSON, Column
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


class SymbolRecord(SQLModel, table=True):
    """One row per symbol; semi-structured fields live in JSON columns."""
    __tablename__ = "symbols"

    id: str = Field(primary_key=True)
    name: str
    category: str = Field(index=True)
    description: str

    interpretations: Dict[str, str] = Field(
        default_factory=dict, sa_column=Column(JSONDocument, nullable=False)
    )
    related_symbols: List[str] = Field(
        default_factory=list, sa_column=Column(JSONDocument, nullable=False)
    )
    properties: Dict[str, str] = Field(
        default_factory=dict, sa_column=Column(JSONDocument, nullable=False)
    )


class SymbolSetRecord(SQLModel, table=True):
    """
    One row per set. `symbols` holds only the membership: a JSON object keyed
    by member symbol id, values null. Bodies are joined in on read.
    """
    __tablename__ = "symbol_sets"

    id: str = Field(primary_key=True)
    name: str
    category: str = Field(index=True)
    description: str

    symbols: Dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSONDocument, nullable=False)
    )
