from __future__ import annotations

from typing import Literal, Protocol

from ..models import Species, SpeciesRecord

ClassificationLevel = Literal["class", "order", "family", "genus"]
CLASSIFICATION_LEVELS: tuple[str, ...] = ("class", "order", "family", "genus")


class CatalogError(Exception):
    """The species catalog could not complete an operation."""


class DuplicateTaxonError(CatalogError):
    """A species with this external taxon id is already in the catalog."""

    def __init__(self, taxon_id: int) -> None:
        super().__init__(f"Species with taxon id {taxon_id} already exists")
        self.taxon_id = taxon_id


class SpeciesStore(Protocol):
    def get_by_id(self, species_id: int) -> Species | None:
        ...

    def get_by_taxon_id(self, taxon_id: int) -> Species | None:
        ...

    def search(self, term: str, limit: int = 20) -> list[Species]:
        ...

    def get_by_classification(
        self, level: str, value: str, limit: int = 20
    ) -> list[Species]:
        ...

    def add(self, record: SpeciesRecord) -> Species:
        """Insert unconditionally; raise DuplicateTaxonError on a taxon id clash."""
        ...

    def list_preloaded(self, limit: int = 50) -> list[Species]:
        ...
