from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

LINEAGE_RANKS = ("kingdom", "phylum", "class", "order", "family", "genus", "species")


@dataclass(slots=True)
class TaxonomyInfo:
    kingdom: str | None = None
    phylum: str | None = None
    class_: str | None = None
    order: str | None = None
    family: str | None = None
    genus: str | None = None
    species: str | None = None

    def get(self, rank: str) -> str | None:
        return getattr(self, "class_" if rank == "class" else rank)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kingdom": self.kingdom,
            "phylum": self.phylum,
            "class": self.class_,
            "order": self.order,
            "family": self.family,
            "genus": self.genus,
            "species": self.species,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> TaxonomyInfo:
        return TaxonomyInfo(
            kingdom=data.get("kingdom"),
            phylum=data.get("phylum"),
            class_=data.get("class"),
            order=data.get("order"),
            family=data.get("family"),
            genus=data.get("genus"),
            species=data.get("species"),
        )


@dataclass(slots=True)
class SpeciesRecord:
    """Import-ready species data as returned by the taxonomy provider."""

    taxon_id: int
    scientific_name: str | None = None
    common_name: str | None = None
    image_url: str | None = None
    iconic_taxon_name: str | None = None
    taxonomy: TaxonomyInfo = field(default_factory=TaxonomyInfo)

    def to_dict(self) -> dict[str, Any]:
        return {
            "taxon_id": self.taxon_id,
            "scientific_name": self.scientific_name,
            "common_name": self.common_name,
            "image_url": self.image_url,
            "iconic_taxon_name": self.iconic_taxon_name,
            "taxonomy": self.taxonomy.to_dict(),
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> SpeciesRecord:
        return SpeciesRecord(
            taxon_id=int(data["taxon_id"]),
            scientific_name=data.get("scientific_name"),
            common_name=data.get("common_name"),
            image_url=data.get("image_url"),
            iconic_taxon_name=data.get("iconic_taxon_name"),
            taxonomy=TaxonomyInfo.from_dict(data.get("taxonomy") or {}),
        )


@dataclass(slots=True)
class Species:
    """A species row persisted in the catalog."""

    id: int
    record: SpeciesRecord

    @property
    def taxon_id(self) -> int:
        return self.record.taxon_id

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "imported": True, **self.record.to_dict()}


@dataclass(slots=True)
class UnimportedSpecies:
    """Provider data shown to the user but not yet written to the catalog."""

    record: SpeciesRecord

    @property
    def taxon_id(self) -> int:
        return self.record.taxon_id

    def to_dict(self) -> dict[str, Any]:
        return {"id": None, "imported": False, **self.record.to_dict()}


CatalogEntry = Species | UnimportedSpecies


@dataclass(slots=True)
class Found:
    record: SpeciesRecord


@dataclass(slots=True)
class NotFound:
    pass


@dataclass(slots=True)
class ProviderError:
    detail: str


TaxonLookup = Found | NotFound | ProviderError


@dataclass(slots=True)
class TaxonCandidate:
    common_name: str
    scientific_name: str | None
    confidence: float
    taxon_id: int | None = None
    iconic_taxon_name: str | None = None
    rank: str | None = None
    image_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "common_name": self.common_name,
            "scientific_name": self.scientific_name,
            "confidence": self.confidence,
            "taxon_id": self.taxon_id,
            "iconic_taxon_name": self.iconic_taxon_name,
            "rank": self.rank,
            "image_url": self.image_url,
        }


@dataclass(slots=True)
class IdentificationResult:
    """Outcome of one identification request.

    A successful result always carries at least one candidate; a failed one
    carries only ``error``. Use :meth:`succeeded` and :meth:`failure` rather
    than the constructor so that the two shapes never mix.
    """

    success: bool
    candidates: list[TaxonCandidate] = field(default_factory=list)
    error: str | None = None
    imported_species_id: int | None = None
    import_message: str | None = None

    @staticmethod
    def succeeded(candidates: list[TaxonCandidate]) -> IdentificationResult:
        if not candidates:
            raise ValueError("A successful identification needs at least one candidate")
        return IdentificationResult(success=True, candidates=list(candidates))

    @staticmethod
    def failure(reason: str) -> IdentificationResult:
        return IdentificationResult(success=False, error=reason)

    @property
    def top(self) -> TaxonCandidate | None:
        return self.candidates[0] if self.success else None

    @property
    def common_name(self) -> str | None:
        return self.top.common_name if self.top else None

    @property
    def scientific_name(self) -> str | None:
        return self.top.scientific_name if self.top else None

    @property
    def confidence(self) -> float | None:
        return self.top.confidence if self.top else None

    @property
    def alternatives(self) -> list[TaxonCandidate]:
        return self.candidates[1:]

    def with_import(self, species_id: int | None, message: str) -> IdentificationResult:
        return replace(self, imported_species_id=species_id, import_message=message)

    def to_dict(self) -> dict[str, Any]:
        if not self.success:
            return {"success": False, "error": self.error}
        data: dict[str, Any] = {
            "success": True,
            "common_name": self.common_name,
            "scientific_name": self.scientific_name,
            "confidence": self.confidence,
            "candidates": [candidate.to_dict() for candidate in self.candidates],
        }
        if self.import_message is not None:
            data["imported_species_id"] = self.imported_species_id
            data["import_message"] = self.import_message
        return data
