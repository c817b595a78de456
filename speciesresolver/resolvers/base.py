from __future__ import annotations

from typing import Protocol

from ..models import IdentificationResult, TaxonLookup


class TaxonomyClient(Protocol):
    def search_by_name(self, name: str) -> TaxonLookup:
        ...

    def get_by_taxon_id(self, taxon_id: int) -> TaxonLookup:
        ...


class VisionClient(Protocol):
    def identify(
        self,
        image_bytes: bytes,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> IdentificationResult:
        ...
