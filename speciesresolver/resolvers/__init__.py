from __future__ import annotations

from .base import TaxonomyClient, VisionClient
from .inaturalist import INaturalistTaxonomyClient
from .vision import INaturalistVisionClient

__all__ = [
    "INaturalistTaxonomyClient",
    "INaturalistVisionClient",
    "TaxonomyClient",
    "VisionClient",
]
