"""
Relational repository backend (Postgres in production, SQLite in tests).

Scalar fields are columns; interpretations, related_symbols, properties and
set membership are JSON documents. Every mutation probes for the id first so
Conflict/NotFound can be reported, and the primary-key constraint backs the
probe up: a losing concurrent insert gets an IntegrityError, which is
re-raised as ConflictError. A zero-row update/delete is NotFound.

Each operation checks a connection out of the engine's pool through a
Session and returns it on every exit path.
"""
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional

from sqlalchemy import delete, exists, not_, or_, update
from sqlalchemy import select as sa_select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, col, select

from dreamontology.config import Settings
from dreamontology.core.logging import get_logger
from dreamontology.repository.errors import (
    ConflictError, InternalError, NotFoundError, RepositoryError
)
from dreamontology.repository.interfaces import (
    RepositoryFactory, SymbolRepository, SymbolSetRepository
)
from dreamontology.schema.symbols import Symbol, SymbolSet
from dreamontology.schema.tables import SymbolRecord, SymbolSetRecord
from dreamontology.utils.db import create_db_engine, init_db

logger = get_logger(__name__)


def record_to_symbol(record: SymbolRecord) -> Symbol:
    return Symbol(
        id=record.id,
        name=record.name,
        category=record.category,
        description=record.description,
        interpretations=dict(record.interpretations or {}),
        related_symbols=list(record.related_symbols or []),
        properties=dict(record.properties or {}),
    )


def _text_match(model, query: str):
    """Case-insensitive substring match on name or description; % and _ are literal."""
    return or_(
        col(model.name).icontains(query, autoescape=True),
        col(model.description).icontains(query, autoescape=True),
    )


def _symbol_columns(symbol: Symbol) -> dict:
    return {
        "name": symbol.name,
        "category": symbol.category,
        "description": symbol.description,
        "interpretations": dict(symbol.interpretations),
        "related_symbols": list(symbol.related_symbols),
        "properties": dict(symbol.properties),
    }


def _set_columns(symbol_set: SymbolSet) -> dict:
    return {
        "name": symbol_set.name,
        "category": symbol_set.category,
        "description": symbol_set.description,
        # membership only; values unused
        "symbols": {symbol_id: None for symbol_id in symbol_set.symbols},
    }


class _SqlRepository:
    """Session scoping and error wrapping shared by both repositories."""

    def __init__(self, engine: Engine):
        self._engine = engine

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        try:
            with Session(self._engine) as session:
                yield session
        except RepositoryError:
            raise
        except SQLAlchemyError as e:
            logger.error("database_error", operation=operation, error=str(e))
            raise InternalError(f"Database error during {operation}: {e}") from e
        except (ValueError, TypeError) as e:
            # Undecodable JSON column or a row that no longer fits the model
            logger.error("row_decode_failed", operation=operation, error=str(e))
            raise InternalError(f"Failed to decode row during {operation}: {e}") from e

    @staticmethod
    def _exists(session: Session, model, record_id: str) -> bool:
        return bool(session.scalar(sa_select(exists().where(model.id == record_id))))


class SqlSymbolRepository(_SqlRepository, SymbolRepository):

    def get_symbol(self, symbol_id: str) -> Symbol:
        with self._session("get_symbol") as session:
            record = session.get(SymbolRecord, symbol_id)
            if record is None:
                raise NotFoundError(f"Symbol not found: {symbol_id}")
            return record_to_symbol(record)

    def list_symbols(self, category: Optional[str] = None) -> List[Symbol]:
        with self._session("list_symbols") as session:
            statement = select(SymbolRecord)
            if category is not None:
                statement = statement.where(SymbolRecord.category == category)
            statement = statement.order_by(SymbolRecord.id)
            return [record_to_symbol(r) for r in session.exec(statement).all()]

    def search_symbols(self, query: str) -> List[Symbol]:
        with self._session("search_symbols") as session:
            statement = select(SymbolRecord).where(
                _text_match(SymbolRecord, query)
            ).order_by(SymbolRecord.id)
            return [record_to_symbol(r) for r in session.exec(statement).all()]

    def create_symbol(self, symbol: Symbol) -> Symbol:
        with self._session("create_symbol") as session:
            if self._exists(session, SymbolRecord, symbol.id):
                raise ConflictError(f"Symbol already exists: {symbol.id}")

            session.add(SymbolRecord(id=symbol.id, **_symbol_columns(symbol)))
            try:
                session.commit()
            except IntegrityError as e:
                # Lost a race against a concurrent create of the same id
                session.rollback()
                logger.info("symbol_create_conflict", symbol_id=symbol.id)
                raise ConflictError(f"Symbol already exists: {symbol.id}") from e

        logger.info("symbol_created", symbol_id=symbol.id)
        return symbol.clone()

    def update_symbol(self, symbol: Symbol) -> Symbol:
        with self._session("update_symbol") as session:
            if not self._exists(session, SymbolRecord, symbol.id):
                raise NotFoundError(f"Symbol not found: {symbol.id}")

            result = session.exec(
                update(SymbolRecord)
                .where(SymbolRecord.id == symbol.id)
                .values(**_symbol_columns(symbol))
            )
            if result.rowcount == 0:
                session.rollback()
                raise NotFoundError(f"Symbol not found: {symbol.id}")
            session.commit()

        logger.info("symbol_updated", symbol_id=symbol.id)
        return symbol.clone()

    def delete_symbol(self, symbol_id: str) -> None:
        with self._session("delete_symbol") as session:
            if not self._exists(session, SymbolRecord, symbol_id):
                raise NotFoundError(f"Symbol not found: {symbol_id}")

            result = session.exec(
                delete(SymbolRecord).where(SymbolRecord.id == symbol_id)
            )
            if result.rowcount == 0:
                session.rollback()
                raise NotFoundError(f"Symbol not found: {symbol_id}")
            session.commit()

        logger.info("symbol_deleted", symbol_id=symbol_id)


class SqlSymbolSetRepository(_SqlRepository, SymbolSetRepository):

    def _load_members(self, session: Session, member_ids: Iterable[str]) -> Dict[str, Symbol]:
        member_ids = list(member_ids)
        if not member_ids:
            return {}
        statement = select(SymbolRecord).where(col(SymbolRecord.id).in_(member_ids))
        return {r.id: record_to_symbol(r) for r in session.exec(statement).all()}

    def _hydrate(self, session: Session, records: List[SymbolSetRecord]) -> List[SymbolSet]:
        """Join member bodies in with one query for all records."""
        wanted = set()
        for record in records:
            wanted.update((record.symbols or {}).keys())
        members = self._load_members(session, wanted)

        sets = []
        for record in records:
            symbol_set = SymbolSet(
                id=record.id,
                name=record.name,
                category=record.category,
                description=record.description,
            )
            for symbol_id in (record.symbols or {}):
                symbol = members.get(symbol_id)
                if symbol is None:
                    # Member was deleted or never existed; skip it
                    logger.debug("symbol_set_member_missing", set_id=record.id, symbol_id=symbol_id)
                    continue
                symbol_set.add_symbol(symbol.clone())
            sets.append(symbol_set)
        return sets

    def get_symbol_set(self, set_id: str) -> SymbolSet:
        with self._session("get_symbol_set") as session:
            record = session.get(SymbolSetRecord, set_id)
            if record is None:
                raise NotFoundError(f"SymbolSet not found: {set_id}")
            return self._hydrate(session, [record])[0]

    def list_symbol_sets(self, category: Optional[str] = None) -> List[SymbolSet]:
        with self._session("list_symbol_sets") as session:
            statement = select(SymbolSetRecord)
            if category is not None:
                statement = statement.where(SymbolSetRecord.category == category)
            statement = statement.order_by(SymbolSetRecord.id)
            return self._hydrate(session, list(session.exec(statement).all()))

    def search_symbol_sets(self, query: str) -> List[SymbolSet]:
        own_match = _text_match(SymbolSetRecord, query)
        with self._session("search_symbol_sets") as session:
            hit_ids = set(session.exec(select(SymbolSetRecord.id).where(own_match)).all())

            # A set also matches when it contains a matching symbol
            matching_ids = set(session.exec(
                select(SymbolRecord.id).where(_text_match(SymbolRecord, query))
            ).all())
            if matching_ids:
                memberships = session.exec(
                    select(SymbolSetRecord.id, SymbolSetRecord.symbols).where(not_(own_match))
                ).all()
                for set_id, members in memberships:
                    if matching_ids.intersection((members or {}).keys()):
                        hit_ids.add(set_id)

            if not hit_ids:
                return []
            records = session.exec(
                select(SymbolSetRecord)
                .where(col(SymbolSetRecord.id).in_(sorted(hit_ids)))
                .order_by(SymbolSetRecord.id)
            ).all()
            return self._hydrate(session, list(records))

    def create_symbol_set(self, symbol_set: SymbolSet) -> SymbolSet:
        with self._session("create_symbol_set") as session:
            if self._exists(session, SymbolSetRecord, symbol_set.id):
                raise ConflictError(f"SymbolSet already exists: {symbol_set.id}")

            session.add(SymbolSetRecord(id=symbol_set.id, **_set_columns(symbol_set)))
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                logger.info("symbol_set_create_conflict", set_id=symbol_set.id)
                raise ConflictError(f"SymbolSet already exists: {symbol_set.id}") from e

        logger.info("symbol_set_created", set_id=symbol_set.id, members=symbol_set.count())
        return symbol_set.clone()

    def update_symbol_set(self, symbol_set: SymbolSet) -> SymbolSet:
        with self._session("update_symbol_set") as session:
            if not self._exists(session, SymbolSetRecord, symbol_set.id):
                raise NotFoundError(f"SymbolSet not found: {symbol_set.id}")

            result = session.exec(
                update(SymbolSetRecord)
                .where(SymbolSetRecord.id == symbol_set.id)
                .values(**_set_columns(symbol_set))
            )
            if result.rowcount == 0:
                session.rollback()
                raise NotFoundError(f"SymbolSet not found: {symbol_set.id}")
            session.commit()

        logger.info("symbol_set_updated", set_id=symbol_set.id, members=symbol_set.count())
        return symbol_set.clone()

    def delete_symbol_set(self, set_id: str) -> None:
        with self._session("delete_symbol_set") as session:
            if not self._exists(session, SymbolSetRecord, set_id):
                raise NotFoundError(f"SymbolSet not found: {set_id}")

            result = session.exec(
                delete(SymbolSetRecord).where(SymbolSetRecord.id == set_id)
            )
            if result.rowcount == 0:
                session.rollback()
                raise NotFoundError(f"SymbolSet not found: {set_id}")
            session.commit()

        logger.info("symbol_set_deleted", set_id=set_id)


class SqlRepositoryFactory(RepositoryFactory):
    """
    Owns the engine (connection pool). Repositories it hands out share it.
    Tables are created on construction unless `initialize=False`.
    """

    def __init__(self, engine: Engine, initialize: bool = True,
                 max_retries: int = 1, retry_delay: float = 0.0):
        self.engine = engine
        self.backend_name = engine.dialect.name
        if initialize:
            try:
                init_db(engine, max_retries=max_retries, retry_delay=retry_delay)
            except SQLAlchemyError as e:
                raise InternalError(f"Failed to initialize database: {e}") from e

    @classmethod
    def from_settings(cls, settings: Settings) -> "SqlRepositoryFactory":
        engine = create_db_engine(settings.database_url, settings)
        return cls(
            engine,
            max_retries=settings.db_init_retries,
            retry_delay=settings.db_init_retry_delay,
        )

    def create_symbol_repository(self) -> SymbolRepository:
        return SqlSymbolRepository(self.engine)

    def create_symbol_set_repository(self) -> SymbolSetRepository:
        return SqlSymbolSetRepository(self.engine)

    def close(self) -> None:
        self.engine.dispose()
