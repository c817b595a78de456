from __future__ import annotations

from .base import (
    CLASSIFICATION_LEVELS,
    CatalogError,
    ClassificationLevel,
    DuplicateTaxonError,
    SpeciesStore,
)
from .storage import SqliteSpeciesCatalog

__all__ = [
    "CLASSIFICATION_LEVELS",
    "CatalogError",
    "ClassificationLevel",
    "DuplicateTaxonError",
    "SpeciesStore",
    "SqliteSpeciesCatalog",
]
