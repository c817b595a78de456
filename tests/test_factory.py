from __future__ import annotations

from pathlib import Path

import httpx

from speciesresolver.config import Config, InaturalistConfig
from speciesresolver.factory import build_services
from speciesresolver.identify import IdentifyRequest
from speciesresolver.models import NotFound


def _taxon_payload() -> dict:
    return {
        "results": [
            {
                "id": 42069,
                "name": "Vulpes vulpes",
                "preferred_common_name": "Red Fox",
                "iconic_taxon_name": "Mammalia",
                "ancestors": [
                    {"rank": "kingdom", "name": "Animalia"},
                    {"rank": "class", "name": "Mammalia"},
                    {"rank": "family", "name": "Canidae"},
                    {"rank": "genus", "name": "Vulpes"},
                ],
            }
        ]
    }


def test_build_services_wires_sqlite_and_inaturalist(tmp_path: Path) -> None:
    config = Config(
        catalog_path=str(tmp_path / "catalog.db"),
        max_image_size_mb=1,
        inaturalist=InaturalistConfig(
            rate_limit=0,
            cache_enabled=True,
            cache_path=str(tmp_path / "cache.db"),
        ),
    )
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        if request.url.path == "/v1/taxa/42069":
            return httpx.Response(200, json=_taxon_payload())
        return httpx.Response(404)

    http = httpx.Client(transport=httpx.MockTransport(handler))
    with build_services(config, http_client=http) as services:
        species = services.species.import_by_taxon_id(42069)
        assert species is not None
        assert species.record.taxonomy.family == "Canidae"
        assert services.species.import_by_taxon_id(1) is None
        assert services.species.search("fox", 5) == [species]

        too_big = services.identification.identify(
            IdentifyRequest(encoded_image="A" * (2 * 1024 * 1024))
        )
        assert too_big.error == "Image too large (max 1MB)"

    assert paths == ["/v1/taxa/42069", "/v1/taxa/1"]
    assert (tmp_path / "cache.db").exists()
    assert not http.is_closed


def test_injected_collaborators_skip_http(tmp_path: Path) -> None:
    class StubTaxonomy:
        def search_by_name(self, name: str):
            return NotFound()

        def get_by_taxon_id(self, taxon_id: int):
            return NotFound()

    class StubVision:
        def identify(self, image_bytes, latitude=None, longitude=None):
            raise AssertionError("not called")

    config = Config(catalog_path=str(tmp_path / "catalog.db"))

    with build_services(config, taxonomy=StubTaxonomy(), vision=StubVision()) as services:
        assert services.species.find("anything", 5) == []

    assert (tmp_path / "catalog.db").exists()
