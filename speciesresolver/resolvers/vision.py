from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from ..config import InaturalistConfig
from ..models import IdentificationResult, TaxonCandidate
from .mapper import medium_photo_url

logger = structlog.get_logger()

MAX_CANDIDATES = 5
UNKNOWN_NAME = "Unknown"


@dataclass(slots=True)
class INaturalistVisionClient:
    """Scores an image against the iNaturalist computer-vision endpoint.

    One multipart POST per call, no retries. Every failure is reported as a
    failed :class:`IdentificationResult`; nothing is raised to the caller.
    """

    http: httpx.Client
    config: InaturalistConfig
    user_agent: str = "SpeciesResolver/0.1.0"
    rate_limiter: object | None = None

    def identify(
        self,
        image_bytes: bytes,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> IdentificationResult:
        url = f"{self.config.base_url.rstrip('/')}/v1/computervision/score_image"
        data: dict[str, str] = {}
        # The provider only uses the location when both coordinates are present.
        if latitude is not None and longitude is not None:
            data = {"lat": str(latitude), "lng": str(longitude)}

        headers = {"User-Agent": self.user_agent}
        if self.config.api_token:
            headers["Authorization"] = f"Bearer {self.config.api_token}"

        if self.rate_limiter is not None:
            self.rate_limiter.acquire()

        try:
            response = self.http.post(
                url,
                files={"image": ("uploaded_image.jpg", image_bytes, "image/jpeg")},
                data=data,
                headers=headers,
                timeout=self.config.timeout,
            )
        except httpx.HTTPError as exc:
            logger.warning("vision_request_failed", error=str(exc))
            return IdentificationResult.failure(f"Network error: {exc}")

        if not response.is_success:
            logger.warning(
                "vision_request_rejected",
                status=response.status_code,
                reason=response.reason_phrase,
            )
            return IdentificationResult.failure(
                f"API returned {response.status_code}: {response.reason_phrase}"
            )

        try:
            payload = response.json()
        except ValueError as exc:
            return IdentificationResult.failure(f"Failed to parse API response: {exc}")
        return parse_score_response(payload)


def parse_score_response(payload: Any) -> IdentificationResult:
    if not isinstance(payload, dict):
        return IdentificationResult.failure(
            "Failed to parse API response: expected a JSON object"
        )
    results = payload.get("results")
    if results is not None and not isinstance(results, list):
        return IdentificationResult.failure(
            "Failed to parse API response: results is not a list"
        )

    candidates = [
        candidate
        for candidate in (_candidate_from_result(item) for item in results or [])
        if candidate is not None
    ]
    if not candidates:
        return IdentificationResult.failure("No identification results found")

    # sorted() is stable, so equal scores keep provider order
    candidates = sorted(candidates, key=lambda c: c.confidence, reverse=True)
    return IdentificationResult.succeeded(candidates[:MAX_CANDIDATES])


def _candidate_from_result(result: Any) -> TaxonCandidate | None:
    if not isinstance(result, dict):
        return None
    taxon = result.get("taxon")
    if not isinstance(taxon, dict):
        return None

    return TaxonCandidate(
        common_name=_text(taxon.get("preferred_common_name")) or UNKNOWN_NAME,
        scientific_name=_text(taxon.get("name")),
        confidence=_percentage(result.get("combined_score")),
        taxon_id=_optional_int(taxon.get("id")),
        iconic_taxon_name=_text(taxon.get("iconic_taxon_name")),
        rank=_text(taxon.get("rank")),
        image_url=medium_photo_url(taxon),
    )


def _percentage(score: Any) -> float:
    try:
        value = float(score)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return round(min(max(value, 0.0), 1.0) * 100, 2)


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _optional_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


__all__ = ["INaturalistVisionClient", "parse_score_response"]
