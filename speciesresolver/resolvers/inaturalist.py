from __future__ import annotations

import random
import sqlite3
import time
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from ..config import InaturalistConfig
from ..models import Found, NotFound, ProviderError, TaxonLookup
from .cache import DiskCache
from .mapper import species_record_from_taxon

logger = structlog.get_logger()


@dataclass(slots=True)
class INaturalistTaxonomyClient:
    """Name search and by-id lookup against the iNaturalist taxa API.

    Every call returns a :data:`TaxonLookup`; provider trouble is logged and
    reported as :class:`ProviderError` rather than raised, so callers can tell
    "no such taxon" apart from "could not ask".
    """

    http: httpx.Client
    config: InaturalistConfig
    locale: str = "en"
    user_agent: str = "SpeciesResolver/0.1.0"
    rate_limiter: object | None = None
    cache: DiskCache | None = None

    def search_by_name(self, name: str) -> TaxonLookup:
        params = {"q": name, "rank": "species", "per_page": 1, "locale": self.locale}
        return self._lookup("taxa_search", name.strip().lower(), "/v1/taxa", params)

    def get_by_taxon_id(self, taxon_id: int) -> TaxonLookup:
        taxon_id = int(taxon_id)
        return self._lookup(
            "taxa_by_id", str(taxon_id), f"/v1/taxa/{taxon_id}", {"locale": self.locale}
        )

    def _lookup(
        self, endpoint: str, key: str, path: str, params: dict[str, Any]
    ) -> TaxonLookup:
        try:
            data = self._fetch(endpoint, key, path, params)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("taxonomy_lookup_failed", endpoint=endpoint, key=key, error=str(exc))
            return ProviderError(detail=str(exc) or exc.__class__.__name__)

        if data is None:
            return NotFound()
        return _first_record(data, endpoint, key)

    def _fetch(
        self, endpoint: str, key: str, path: str, params: dict[str, Any]
    ) -> dict[str, Any] | None:
        cached = None
        if self.cache is not None:
            try:
                cached = self.cache.get(endpoint, key, self.locale)
            except sqlite3.Error as exc:
                logger.warning("taxonomy_cache_read_failed", endpoint=endpoint, key=key, error=str(exc))
        if cached is not None:
            logger.debug("taxonomy_cache_hit", endpoint=endpoint, key=key)
            return cached

        response_json = self._request(path, params)
        if response_json is not None and self.cache is not None:
            try:
                self.cache.put(endpoint, key, self.locale, response_json)
            except sqlite3.Error as exc:
                logger.warning("taxonomy_cache_write_failed", endpoint=endpoint, key=key, error=str(exc))
        return response_json

    def _request(self, path: str, params: dict[str, Any]) -> dict[str, Any] | None:
        url = f"{self.config.base_url.rstrip('/')}{path}"
        last_response: httpx.Response | None = None
        for attempt in range(self.config.max_retries + 1):
            if self.rate_limiter is not None:
                self.rate_limiter.acquire()

            response = self.http.get(
                url,
                params=params,
                headers={"User-Agent": self.user_agent},
                timeout=self.config.timeout,
            )
            last_response = response

            if response.status_code == 200:
                payload = response.json()
                if not isinstance(payload, dict):
                    raise ValueError("Malformed iNaturalist response: expected an object")
                return payload

            if response.status_code == 404:
                return None

            if response.status_code in {429} or response.status_code >= 500:
                if attempt < self.config.max_retries:
                    _sleep_backoff(attempt)
                    continue

            break

        # Exhausted retries or non-retryable error
        message = "iNaturalist error"
        if last_response is not None:
            raise httpx.HTTPStatusError(
                f"{message}: {last_response.status_code}",
                request=last_response.request,
                response=last_response,
            )
        raise httpx.HTTPError(message)


def _sleep_backoff(attempt: int) -> None:
    base_delay = 3 * (2**attempt)
    jitter = 0.5 + random.random() * 0.5
    time.sleep(base_delay * jitter)


def _first_record(data: dict[str, Any], endpoint: str, key: str) -> TaxonLookup:
    results = data.get("results")
    if not isinstance(results, list):
        logger.warning("taxonomy_response_malformed", endpoint=endpoint, key=key)
        return ProviderError(detail="Malformed iNaturalist response: missing results")
    if not results:
        return NotFound()

    first = results[0]
    if not isinstance(first, dict):
        return ProviderError(detail="Malformed iNaturalist response: result is not an object")
    try:
        return Found(record=species_record_from_taxon(first))
    except ValueError as exc:
        logger.warning("taxonomy_record_unmappable", endpoint=endpoint, key=key, error=str(exc))
        return ProviderError(detail=str(exc))


__all__ = ["INaturalistTaxonomyClient"]
