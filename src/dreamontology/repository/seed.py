"""
Sample catalog and JSON catalog import.

Both go through the repository contract, so they work against any backend.
"""
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Union

from pydantic import ValidationError as PydanticValidationError

from dreamontology.core.logging import get_logger
from dreamontology.repository.errors import ConflictError, RepositoryError
from dreamontology.repository.interfaces import RepositoryFactory, SymbolRepository
from dreamontology.schema.api import SymbolImport
from dreamontology.schema.symbols import Symbol, SymbolSet

logger = get_logger(__name__)


def sample_symbols() -> List[Symbol]:
    return [
        Symbol(id="sun", name="Sun", category="nature",
               description="Celestial body at the center of our solar system")
        .with_related(["light", "day"]),
        Symbol(id="moon", name="Moon", category="nature",
               description="Natural satellite of Earth")
        .with_related(["night", "tide"]),
        Symbol(id="light", name="Light", category="concept",
               description="Electromagnetic radiation visible to the human eye")
        .with_related(["sun", "illumination"]),
        Symbol(id="dark", name="Darkness", category="concept",
               description="Absence of light")
        .with_related(["night", "shadow"]),
        Symbol(id="tree", name="Tree", category="nature",
               description="Perennial plant with an elongated stem and branches")
        .with_related(["forest", "wood"]),
    ]


def sample_symbol_sets(symbols: List[Symbol]) -> List[SymbolSet]:
    by_id = {s.id: s for s in symbols}

    celestial = SymbolSet(id="celestial", name="Celestial Bodies", category="nature",
                          description="Celestial bodies and phenomena")
    opposites = SymbolSet(id="opposites", name="Opposing Concepts", category="concept",
                          description="Paired opposing concepts")
    for symbol_id in ("sun", "moon"):
        celestial.add_symbol(by_id[symbol_id])
    for symbol_id in ("light", "dark"):
        opposites.add_symbol(by_id[symbol_id])
    return [celestial, opposites]


def seed_test_data(factory: RepositoryFactory) -> int:
    """Loads the sample catalog. Existing ids are left alone. Returns the number created."""
    symbol_repo = factory.create_symbol_repository()
    set_repo = factory.create_symbol_set_repository()

    symbols = sample_symbols()
    created = 0
    for symbol in symbols:
        try:
            symbol_repo.create_symbol(symbol)
            created += 1
        except ConflictError:
            logger.debug("seed_symbol_exists", symbol_id=symbol.id)

    for symbol_set in sample_symbol_sets(symbols):
        try:
            set_repo.create_symbol_set(symbol_set)
            created += 1
        except ConflictError:
            logger.debug("seed_symbol_set_exists", set_id=symbol_set.id)

    logger.info("test_data_seeded", created=created)
    return created


@dataclass
class ImportReport:
    created: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)


def import_symbols_json(path: Union[str, Path], repository: SymbolRepository) -> ImportReport:
    """
    Import a JSON array of symbol objects.

    Entries with an id that already exists (in the store or earlier in the
    file) are skipped. Malformed entries are counted as failed and the import
    continues. Storage failures propagate.
    """
    path = Path(path)
    entries = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(entries, list):
        raise ValueError(f"{path}: expected a JSON array of symbols")

    report = ImportReport()
    seen = set()

    for index, entry in enumerate(entries):
        try:
            symbol = SymbolImport.model_validate(entry).to_symbol()
        except PydanticValidationError as e:
            report.failed += 1
            report.errors.append(f"entry {index}: {e.errors()[0]['msg']}")
            logger.warning("import_entry_invalid", index=index)
            continue

        if not symbol.id or symbol.id in seen:
            report.skipped += 1
            continue
        seen.add(symbol.id)

        try:
            repository.create_symbol(symbol)
            report.created += 1
        except ConflictError:
            report.skipped += 1
        except RepositoryError:
            logger.error("import_aborted", path=str(path), created=report.created)
            raise

        if report.created and report.created % 100 == 0:
            logger.info("import_progress", created=report.created)

    logger.info(
        "import_completed",
        path=str(path),
        created=report.created,
        skipped=report.skipped,
        failed=report.failed,
    )
    return report
