"""Species resolution: reconcile provider taxa with the local catalog.

The catalog is the only place state lives. Imports are check-then-insert,
with the catalog's uniqueness constraint on ``taxon_id`` as the backstop when
two imports of the same taxon race.
"""

from __future__ import annotations

import structlog

from .catalog.base import DuplicateTaxonError, SpeciesStore
from .models import (
    CatalogEntry,
    Found,
    IdentificationResult,
    NotFound,
    ProviderError,
    Species,
    UnimportedSpecies,
)
from .resolvers.base import TaxonomyClient

logger = structlog.get_logger()

MIN_EXTERNAL_QUERY_LENGTH = 4


class TaxonomyUnavailableError(Exception):
    """The taxonomy provider could not be reached while importing a taxon."""

    def __init__(self, taxon_id: int, detail: str) -> None:
        super().__init__(f"Taxonomy provider unavailable for taxon {taxon_id}: {detail}")
        self.taxon_id = taxon_id
        self.detail = detail


class SpeciesService:
    def __init__(self, store: SpeciesStore, taxonomy: TaxonomyClient) -> None:
        self._store = store
        self._taxonomy = taxonomy

    def get_by_id(self, species_id: int) -> Species | None:
        return self._store.get_by_id(species_id)

    def search(self, query: str, limit: int = 20) -> list[Species]:
        return self._store.search(query, limit)

    def get_by_classification(self, level: str, value: str, limit: int = 20) -> list[Species]:
        return self._store.get_by_classification(level, value, limit)

    def list_preloaded(self, limit: int = 50) -> list[Species]:
        return self._store.list_preloaded(limit)

    def find(self, query: str, limit: int = 10) -> list[CatalogEntry]:
        """Search locally, topping up with one provider match when needed.

        The provider is consulted only when the catalog returned fewer than
        ``limit`` rows and the query is at least four characters long. A
        provider match is appended as :class:`UnimportedSpecies` and is never
        written to the catalog here.
        """
        results: list[CatalogEntry] = list(self._store.search(query, limit))

        if len(results) >= limit:
            return results

        if len(query) < MIN_EXTERNAL_QUERY_LENGTH:
            return results

        lookup = self._taxonomy.search_by_name(query)
        if isinstance(lookup, ProviderError):
            logger.warning("find_provider_unavailable", query=query, detail=lookup.detail)
            return results
        if isinstance(lookup, NotFound):
            return results

        if self._store.get_by_taxon_id(lookup.record.taxon_id) is None:
            results.append(UnimportedSpecies(record=lookup.record))

        return results[:limit]

    def import_by_taxon_id(self, taxon_id: int) -> Species | None:
        """Return the catalog row for ``taxon_id``, importing it if needed.

        Idempotent. Returns ``None`` when the provider has no such taxon and
        raises :class:`TaxonomyUnavailableError` when the provider could not
        be asked. Catalog failures other than a lost insert race propagate.
        """
        existing = self._store.get_by_taxon_id(taxon_id)
        if existing is not None:
            return existing

        lookup = self._taxonomy.get_by_taxon_id(taxon_id)
        if isinstance(lookup, NotFound):
            logger.info("import_taxon_not_found", taxon_id=taxon_id)
            return None
        if isinstance(lookup, ProviderError):
            raise TaxonomyUnavailableError(taxon_id, lookup.detail)

        return self._insert(lookup)

    def import_top_candidate(self, result: IdentificationResult) -> IdentificationResult:
        """Import the top identification candidate and annotate the result.

        Used by the observation flow. Failed identifications and candidates
        without a taxon id are returned untouched.
        """
        top = result.top
        if top is None or top.taxon_id is None:
            return result

        try:
            species = self.import_by_taxon_id(top.taxon_id)
        except TaxonomyUnavailableError as exc:
            logger.warning("auto_import_failed", taxon_id=top.taxon_id, detail=exc.detail)
            return result.with_import(None, "Could not reach taxonomy provider")

        if species is None:
            return result.with_import(None, f"Taxon {top.taxon_id} not found")
        return result.with_import(species.id, f"Species {species.id} ready")

    def _insert(self, lookup: Found) -> Species:
        record = lookup.record
        try:
            species = self._store.add(record)
        except DuplicateTaxonError:
            winner = self._store.get_by_taxon_id(record.taxon_id)
            if winner is None:
                raise
            logger.info("import_race_lost", taxon_id=record.taxon_id, species_id=winner.id)
            return winner

        logger.info("species_imported", taxon_id=record.taxon_id, species_id=species.id)
        return species


__all__ = ["MIN_EXTERNAL_QUERY_LENGTH", "SpeciesService", "TaxonomyUnavailableError"]
