"""Map raw iNaturalist taxon records onto :class:`SpeciesRecord`.

Ancestor lists from the provider are sparse and their order is not reliable,
so lineage is filled by matching each ancestor's declared rank, never by
position.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from ..models import LINEAGE_RANKS, SpeciesRecord, TaxonomyInfo


def species_record_from_taxon(taxon: dict[str, Any]) -> SpeciesRecord:
    taxon_id = _as_int(taxon.get("id"))
    if taxon_id is None:
        raise ValueError("Taxon record has no usable id")

    return SpeciesRecord(
        taxon_id=taxon_id,
        scientific_name=_as_str(taxon.get("name")),
        common_name=_common_name(taxon.get("preferred_common_name")),
        image_url=medium_photo_url(taxon),
        iconic_taxon_name=_as_str(taxon.get("iconic_taxon_name")),
        taxonomy=taxonomy_from_ancestors(taxon.get("ancestors")),
    )


def taxonomy_from_ancestors(ancestors: Iterable[Any] | None) -> TaxonomyInfo:
    fields: dict[str, str | None] = {rank: None for rank in LINEAGE_RANKS}

    for ancestor in ancestors or []:
        if not isinstance(ancestor, dict):
            continue
        _assign_rank(fields, ancestor.get("rank"), ancestor.get("name"))

    fields["class_"] = fields.pop("class")
    return TaxonomyInfo(**fields)


def medium_photo_url(taxon: dict[str, Any]) -> str | None:
    photo = taxon.get("default_photo")
    if not isinstance(photo, dict):
        return None
    return _as_str(photo.get("medium_url"))


def _assign_rank(target: dict[str, str | None], rank: Any, name: Any) -> None:
    if not isinstance(rank, str) or not isinstance(name, str) or not name:
        return
    key = rank.strip().lower()
    if key in target:
        target[key] = name


def _common_name(value: Any) -> str | None:
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):  # older API revisions nest the name
        return _as_str(value.get("name"))
    return None


def _as_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


__all__ = ["medium_photo_url", "species_record_from_taxon", "taxonomy_from_ancestors"]
