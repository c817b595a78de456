"""Build the services from a :class:`Config`.

Collaborators may be injected for tests; anything not supplied is created
from the configuration with production defaults.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import httpx

from .catalog.base import SpeciesStore
from .catalog.storage import SqliteSpeciesCatalog
from .config import Config
from .identify import IdentificationService
from .rate_limiter import TokenBucketRateLimiter
from .resolvers.base import TaxonomyClient, VisionClient
from .resolvers.cache import DiskCache, DiskCacheConfig
from .resolvers.inaturalist import INaturalistTaxonomyClient
from .resolvers.vision import INaturalistVisionClient
from .species import SpeciesService


@dataclass(slots=True)
class Services:
    species: SpeciesService
    identification: IdentificationService


@contextmanager
def build_services(
    config: Config,
    *,
    store: SpeciesStore | None = None,
    taxonomy: TaxonomyClient | None = None,
    vision: VisionClient | None = None,
    http_client: httpx.Client | None = None,
) -> Iterator[Services]:
    owns_http = http_client is None and (taxonomy is None or vision is None)
    if owns_http:
        http_client = httpx.Client(headers={"User-Agent": config.user_agent})

    try:
        rate_limiter = TokenBucketRateLimiter(
            rate=config.inaturalist.rate_limit,
            burst=config.inaturalist.burst_limit,
        )

        if store is None:
            store = SqliteSpeciesCatalog(Path(config.catalog_path))

        if taxonomy is None:
            cache: DiskCache | None = None
            if config.inaturalist.cache_enabled:
                cache = DiskCache(
                    DiskCacheConfig(
                        path=Path(config.inaturalist.cache_path),
                        ttl_days=config.inaturalist.cache_ttl_days,
                    )
                )
            taxonomy = INaturalistTaxonomyClient(
                http=http_client,
                config=config.inaturalist,
                locale=config.locale,
                user_agent=config.user_agent,
                rate_limiter=rate_limiter,
                cache=cache,
            )

        if vision is None:
            vision = INaturalistVisionClient(
                http=http_client,
                config=config.inaturalist,
                user_agent=config.user_agent,
                rate_limiter=rate_limiter,
            )

        yield Services(
            species=SpeciesService(store, taxonomy),
            identification=IdentificationService(
                vision, max_image_bytes=config.max_image_size_bytes
            ),
        )
    finally:
        if owns_http and http_client is not None:
            http_client.close()


__all__ = ["Services", "build_services"]
