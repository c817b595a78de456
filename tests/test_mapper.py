from __future__ import annotations

import pytest

from speciesresolver.resolvers.mapper import species_record_from_taxon, taxonomy_from_ancestors


def _raven_taxon() -> dict:
    return {
        "id": 8010,
        "name": "Corvus corax",
        "rank": "species",
        "preferred_common_name": "Common Raven",
        "iconic_taxon_name": "Aves",
        "default_photo": {
            "square_url": "https://static.inaturalist.org/photos/1/square.jpg",
            "medium_url": "https://static.inaturalist.org/photos/1/medium.jpg",
        },
        "ancestors": [
            {"rank": "kingdom", "name": "Animalia"},
            {"rank": "phylum", "name": "Chordata"},
            {"rank": "subphylum", "name": "Vertebrata"},
            {"rank": "class", "name": "Aves"},
            {"rank": "order", "name": "Passeriformes"},
            {"rank": "family", "name": "Corvidae"},
            {"rank": "genus", "name": "Corvus"},
        ],
    }


def test_maps_full_taxon_record() -> None:
    record = species_record_from_taxon(_raven_taxon())

    assert record.taxon_id == 8010
    assert record.scientific_name == "Corvus corax"
    assert record.common_name == "Common Raven"
    assert record.iconic_taxon_name == "Aves"
    assert record.image_url == "https://static.inaturalist.org/photos/1/medium.jpg"
    assert record.taxonomy.kingdom == "Animalia"
    assert record.taxonomy.phylum == "Chordata"
    assert record.taxonomy.class_ == "Aves"
    assert record.taxonomy.order == "Passeriformes"
    assert record.taxonomy.family == "Corvidae"
    assert record.taxonomy.genus == "Corvus"
    assert record.taxonomy.species is None


def test_sparse_ancestors_leave_other_ranks_empty() -> None:
    taxonomy = taxonomy_from_ancestors(
        [{"rank": "order", "name": "Passeriformes"}, {"rank": "family", "name": "Corvidae"}]
    )

    assert taxonomy.order == "Passeriformes"
    assert taxonomy.family == "Corvidae"
    assert taxonomy.kingdom is None
    assert taxonomy.phylum is None
    assert taxonomy.class_ is None
    assert taxonomy.genus is None
    assert taxonomy.species is None


def test_rank_matching_ignores_order_and_case() -> None:
    taxonomy = taxonomy_from_ancestors(
        [
            {"rank": "Genus", "name": "Vulpes"},
            {"rank": "superfamily", "name": "Canoidea"},
            {"rank": "KINGDOM", "name": "Animalia"},
            {"rank": "family", "name": "Canidae"},
        ]
    )

    assert taxonomy.kingdom == "Animalia"
    assert taxonomy.family == "Canidae"
    assert taxonomy.genus == "Vulpes"
    assert taxonomy.order is None


def test_malformed_ancestors_are_skipped() -> None:
    taxonomy = taxonomy_from_ancestors(
        [None, "Animalia", {"rank": "class"}, {"name": "Aves"}, {"rank": 3, "name": "x"}]
    )

    assert taxonomy.to_dict() == {
        "kingdom": None,
        "phylum": None,
        "class": None,
        "order": None,
        "family": None,
        "genus": None,
        "species": None,
    }


def test_missing_optional_fields() -> None:
    record = species_record_from_taxon({"id": "42"})

    assert record.taxon_id == 42
    assert record.scientific_name is None
    assert record.common_name is None
    assert record.image_url is None
    assert record.taxonomy.genus is None


def test_nested_common_name_is_accepted() -> None:
    record = species_record_from_taxon({"id": 1, "preferred_common_name": {"name": "Lindens"}})

    assert record.common_name == "Lindens"


def test_taxon_without_id_is_rejected() -> None:
    with pytest.raises(ValueError):
        species_record_from_taxon({"name": "Corvus corax"})
