"""
Relational backend specifics: table layout, JSON columns, error wrapping and
the create race, run on SQLite.
"""
import pytest
from sqlalchemy import inspect, text
from sqlalchemy.pool import QueuePool
from sqlmodel import SQLModel, create_engine

from dreamontology.repository import ConflictError, InternalError
from dreamontology.repository.sql import (
    SqlRepositoryFactory, SqlSymbolRepository, SqlSymbolSetRepository
)


@pytest.fixture
def symbols(sql_factory):
    return sql_factory.create_symbol_repository()


@pytest.fixture
def symbol_sets(sql_factory):
    return sql_factory.create_symbol_set_repository()


class TestSchema:
    """Table layout written by init_db."""

    def test_tables_and_columns(self, sql_factory, sqlite_engine):
        inspector = inspect(sqlite_engine)
        assert {"symbols", "symbol_sets"} <= set(inspector.get_table_names())

        symbol_columns = {c["name"] for c in inspector.get_columns("symbols")}
        assert symbol_columns == {
            "id", "name", "category", "description",
            "interpretations", "related_symbols", "properties",
        }
        set_columns = {c["name"] for c in inspector.get_columns("symbol_sets")}
        assert set_columns == {"id", "name", "category", "description", "symbols"}

    def test_category_indexes(self, sql_factory, sqlite_engine):
        inspector = inspect(sqlite_engine)
        for table in ("symbols", "symbol_sets"):
            indexed = {tuple(ix["column_names"]) for ix in inspector.get_indexes(table)}
            assert ("category",) in indexed

    def test_backend_name_is_dialect(self, sql_factory):
        assert sql_factory.backend_name == "sqlite"

    def test_init_is_idempotent(self, sqlite_engine, water):
        first = SqlRepositoryFactory(sqlite_engine)
        first.create_symbol_repository().create_symbol(water)
        second = SqlRepositoryFactory(sqlite_engine)
        assert second.create_symbol_repository().get_symbol("water") == water


class TestStorageFormat:

    def test_membership_stored_as_id_keyed_object(self, symbols, symbol_sets,
                                                  sqlite_engine, water, elements_set):
        symbols.create_symbol(water)
        elements_set.add_symbol(water)
        symbol_sets.create_symbol_set(elements_set)

        with sqlite_engine.connect() as conn:
            raw = conn.execute(
                text("SELECT symbols FROM symbol_sets WHERE id = 'elements'")
            ).scalar_one()
        assert raw.replace(" ", "") == '{"water":null}'

    def test_reads_rows_written_outside_the_repository(self, symbols, sqlite_engine):
        with sqlite_engine.begin() as conn:
            conn.execute(text(
                "INSERT INTO symbols (id, name, category, description, "
                "interpretations, related_symbols, properties) VALUES "
                "('raven', 'Raven', 'animal', 'Messenger', "
                "'{\"norse\": \"Odin''s bird\"}', '[\"crow\"]', '{}')"
            ))

        raven = symbols.get_symbol("raven")
        assert raven.interpretations == {"norse": "Odin's bird"}
        assert raven.related_symbols == ["crow"]
        assert raven.properties == {}

    def test_list_is_ordered_by_id(self, symbols, water, fire, falling):
        for symbol in (water, fire, falling):
            symbols.create_symbol(symbol)
        assert [s.id for s in symbols.list_symbols()] == ["falling", "fire", "water"]


class TestMembership:

    def test_deleted_member_is_skipped_on_read(self, symbols, symbol_sets,
                                               water, fire, elements_set):
        symbols.create_symbol(water)
        symbols.create_symbol(fire)
        elements_set.add_symbol(water)
        elements_set.add_symbol(fire)
        symbol_sets.create_symbol_set(elements_set)

        symbols.delete_symbol("water")

        stored = symbol_sets.get_symbol_set("elements")
        assert set(stored.symbols) == {"fire"}

    def test_member_bodies_reflect_current_symbol(self, symbols, symbol_sets,
                                                  water, elements_set):
        symbols.create_symbol(water)
        elements_set.add_symbol(water)
        symbol_sets.create_symbol_set(elements_set)

        symbols.update_symbol(water.model_copy(update={"description": "Flowing"}))

        stored = symbol_sets.get_symbol_set("elements")
        assert stored.get_symbol("water").description == "Flowing"

    def test_placeholder_members_resolve_to_stored_bodies(self, symbols, symbol_sets,
                                                          water, elements_set):
        symbols.create_symbol(water)
        symbol_sets.create_symbol_set(elements_set.with_symbols(["water", "ghost"]))

        stored = symbol_sets.get_symbol_set("elements")
        assert list(stored.symbols) == ["water"]
        assert stored.get_symbol("water").name == "Water"


class TestErrorWrapping:

    def test_lost_create_race_is_conflict(self, mocker, symbols, water):
        symbols.create_symbol(water)
        # Probe says "absent", so the primary key has to reject the insert
        mocker.patch.object(SqlSymbolRepository, "_exists", return_value=False)

        with pytest.raises(ConflictError) as exc_info:
            symbols.create_symbol(water)
        assert "Symbol already exists: water" in str(exc_info.value)
        assert symbols.list_symbols() == [water]

    def test_lost_set_create_race_is_conflict(self, mocker, symbol_sets, elements_set):
        symbol_sets.create_symbol_set(elements_set)
        mocker.patch.object(SqlSymbolSetRepository, "_exists", return_value=False)

        with pytest.raises(ConflictError):
            symbol_sets.create_symbol_set(elements_set)

    def test_database_failure_is_internal(self, symbols, sqlite_engine):
        SQLModel.metadata.drop_all(sqlite_engine)

        with pytest.raises(InternalError) as exc_info:
            symbols.list_symbols()
        assert str(exc_info.value).startswith("Internal error: Database error during list_symbols")
        assert exc_info.value.__cause__ is not None

    def test_undecodable_row_is_internal(self, symbols, sqlite_engine):
        with sqlite_engine.begin() as conn:
            conn.execute(text(
                "INSERT INTO symbols (id, name, category, description, "
                "interpretations, related_symbols, properties) VALUES "
                "('bad', 'Bad', 'x', 'd', '{\"a\": 1}', '[]', '{}')"
            ))

        with pytest.raises(InternalError) as exc_info:
            symbols.get_symbol("bad")
        assert "Failed to decode row during get_symbol" in str(exc_info.value)

    def test_unreachable_database_fails_factory_construction(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path}/missing/dir/catalog.db")
        with pytest.raises(InternalError) as exc_info:
            SqlRepositoryFactory(engine)
        assert "Failed to initialize database" in str(exc_info.value)

    def test_exhausted_pool_is_internal_not_a_hang(self, tmp_path):
        engine = create_engine(
            f"sqlite:///{tmp_path}/pool.db",
            poolclass=QueuePool,
            pool_size=1,
            max_overflow=0,
            pool_timeout=0.2,
            connect_args={"check_same_thread": False},
        )
        factory = SqlRepositoryFactory(engine)
        symbols = factory.create_symbol_repository()

        held = engine.connect()
        try:
            with pytest.raises(InternalError) as exc_info:
                symbols.list_symbols()
            assert "Database error during list_symbols" in str(exc_info.value)
            held.close()
            # Connection back in the pool; the same repository works again
            assert symbols.list_symbols() == []
        finally:
            held.close()
            factory.close()
