from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from ..models import Species, SpeciesRecord, TaxonomyInfo
from .base import CLASSIFICATION_LEVELS, CatalogError, DuplicateTaxonError

_LEVEL_COLUMNS = {
    "class": "class_name",
    "order": "order_name",
    "family": "family_name",
    "genus": "genus_name",
}

_SELECT = """
    SELECT id, taxon_id, scientific_name, common_name, image_url, iconic_taxon_name,
           kingdom_name, phylum_name, class_name, order_name, family_name,
           genus_name, species_name
    FROM species
"""

_DISPLAY_NAME_ORDER = "fold(COALESCE(common_name, scientific_name)), id"


class SqliteSpeciesCatalog:
    """SQLite-backed species catalog.

    ``taxon_id`` carries a UNIQUE constraint, so two racing imports of the
    same taxon cannot both land: the loser gets :class:`DuplicateTaxonError`.
    All text comparison goes through a Python ``casefold`` so matching is
    case-insensitive beyond ASCII.
    """

    def __init__(self, path: Path, *, schema_version: int = 1) -> None:
        self._path = path
        self._schema_version = schema_version
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        conn.create_function("fold", 1, _fold, deterministic=True)
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise CatalogError(f"Cannot open species catalog: {exc}") from exc
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            raise CatalogError(f"Species catalog error: {exc}") from exc
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._transaction() as conn:
            version = conn.execute("PRAGMA user_version").fetchone()[0]
            if version not in (0, self._schema_version):
                raise ValueError(
                    "Catalog schema version mismatch: expected "
                    f"{self._schema_version}, got {version}"
                )
            if version == 0:
                conn.executescript(
                    """
                    CREATE TABLE IF NOT EXISTS species (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        taxon_id INTEGER NOT NULL UNIQUE,
                        scientific_name TEXT,
                        common_name TEXT,
                        image_url TEXT,
                        iconic_taxon_name TEXT,
                        kingdom_name TEXT,
                        phylum_name TEXT,
                        class_name TEXT,
                        order_name TEXT,
                        family_name TEXT,
                        genus_name TEXT,
                        species_name TEXT,
                        created_at TEXT NOT NULL DEFAULT (datetime('now'))
                    );
                    CREATE INDEX IF NOT EXISTS ix_species_class ON species (class_name);
                    CREATE INDEX IF NOT EXISTS ix_species_order ON species (order_name);
                    CREATE INDEX IF NOT EXISTS ix_species_family ON species (family_name);
                    CREATE INDEX IF NOT EXISTS ix_species_genus ON species (genus_name);
                    """
                )
                conn.execute(f"PRAGMA user_version = {int(self._schema_version)}")

    def get_by_id(self, species_id: int) -> Species | None:
        with self._transaction() as conn:
            row = conn.execute(f"{_SELECT} WHERE id = ?", (species_id,)).fetchone()
        return None if row is None else _row_to_species(row)

    def get_by_taxon_id(self, taxon_id: int) -> Species | None:
        with self._transaction() as conn:
            row = conn.execute(f"{_SELECT} WHERE taxon_id = ?", (taxon_id,)).fetchone()
        return None if row is None else _row_to_species(row)

    def search(self, term: str, limit: int = 20) -> list[Species]:
        """Substring search over common name, scientific name and genus.

        Common-name prefix matches rank first, then scientific-name prefix
        matches, then everything else alphabetically.
        """
        needle = _fold(term.strip()) if term else ""
        if not needle or limit <= 0:
            return []

        with self._transaction() as conn:
            rows = conn.execute(
                f"""
                {_SELECT}
                WHERE instr(fold(common_name), :term) > 0
                   OR instr(fold(scientific_name), :term) > 0
                   OR instr(fold(genus_name), :term) > 0
                ORDER BY COALESCE(instr(fold(common_name), :term) = 1, 0) DESC,
                         COALESCE(instr(fold(scientific_name), :term) = 1, 0) DESC,
                         {_DISPLAY_NAME_ORDER}
                LIMIT :limit
                """,
                {"term": needle, "limit": limit},
            ).fetchall()
        return [_row_to_species(row) for row in rows]

    def get_by_classification(self, level: str, value: str, limit: int = 20) -> list[Species]:
        level_key = level.strip().lower() if level else ""
        needle = _fold(value.strip()) if value else ""
        if level_key not in CLASSIFICATION_LEVELS or not needle or limit <= 0:
            return []

        column = _LEVEL_COLUMNS[level_key]
        with self._transaction() as conn:
            rows = conn.execute(
                f"""
                {_SELECT}
                WHERE fold({column}) = ?
                ORDER BY {_DISPLAY_NAME_ORDER}
                LIMIT ?
                """,
                (needle, limit),
            ).fetchall()
        return [_row_to_species(row) for row in rows]

    def add(self, record: SpeciesRecord) -> Species:
        taxonomy = record.taxonomy
        with self._transaction() as conn:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO species (
                        taxon_id, scientific_name, common_name, image_url,
                        iconic_taxon_name, kingdom_name, phylum_name, class_name,
                        order_name, family_name, genus_name, species_name
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.taxon_id,
                        record.scientific_name,
                        record.common_name,
                        record.image_url,
                        record.iconic_taxon_name,
                        taxonomy.kingdom,
                        taxonomy.phylum,
                        taxonomy.class_,
                        taxonomy.order,
                        taxonomy.family,
                        taxonomy.genus,
                        taxonomy.species,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise DuplicateTaxonError(record.taxon_id) from exc
            species_id = int(cursor.lastrowid)
        return Species(id=species_id, record=record)

    def list_preloaded(self, limit: int = 50) -> list[Species]:
        if limit <= 0:
            return []
        with self._transaction() as conn:
            rows = conn.execute(
                f"{_SELECT} ORDER BY {_DISPLAY_NAME_ORDER} LIMIT ?", (limit,)
            ).fetchall()
        return [_row_to_species(row) for row in rows]


def _fold(value: str | None) -> str | None:
    return None if value is None else value.casefold()


def _row_to_species(row: sqlite3.Row) -> Species:
    return Species(
        id=int(row["id"]),
        record=SpeciesRecord(
            taxon_id=int(row["taxon_id"]),
            scientific_name=row["scientific_name"],
            common_name=row["common_name"],
            image_url=row["image_url"],
            iconic_taxon_name=row["iconic_taxon_name"],
            taxonomy=TaxonomyInfo(
                kingdom=row["kingdom_name"],
                phylum=row["phylum_name"],
                class_=row["class_name"],
                order=row["order_name"],
                family=row["family_name"],
                genus=row["genus_name"],
                species=row["species_name"],
            ),
        ),
    )


__all__ = ["SqliteSpeciesCatalog"]
