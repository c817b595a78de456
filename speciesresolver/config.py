from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import jsonschema
from dotenv import load_dotenv

API_TOKEN_ENV = "INATURALIST_API_TOKEN"
SCHEMA_PATH = Path(__file__).resolve().parent / "schemas" / "config.schema.json"


@dataclass
class InaturalistConfig:
    base_url: str = "https://api.inaturalist.org"
    timeout: float = 30
    rate_limit: float = 1.0
    burst_limit: int = 5
    max_retries: int = 3
    cache_enabled: bool = True
    cache_path: str = "cache/speciesresolver.db"
    cache_ttl_days: int = 7
    api_token: str | None = None


@dataclass
class Config:
    catalog_path: str = "data/catalog.db"
    locale: str = "en"
    max_image_size_mb: float = 10.0
    user_agent: str = "SpeciesResolver/0.1.0"
    inaturalist: InaturalistConfig = field(default_factory=InaturalistConfig)

    @property
    def max_image_size_bytes(self) -> int:
        return int(self.max_image_size_mb * 1024 * 1024)


def load_config(path: Path) -> Config:
    """Read, validate and materialise a JSON config file.

    ``.env`` is loaded first; ``INATURALIST_API_TOKEN`` from the environment
    wins over any token in the file.
    """
    load_dotenv()

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    data = json.loads(path.read_text(encoding="utf-8"))
    _validate_config(data)

    provider = InaturalistConfig(**data.pop("inaturalist", {}))
    token = os.getenv(API_TOKEN_ENV)
    if token:
        provider = replace(provider, api_token=token)
    return Config(**data, inaturalist=provider)


def _validate_config(data: Any) -> None:
    schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
    validator = jsonschema.Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    if errors:
        messages = "; ".join(_describe(error) for error in errors)
        raise ValueError(f"Invalid config: {messages}")


def _describe(error: jsonschema.ValidationError) -> str:
    location = ".".join(str(part) for part in error.path)
    return f"{location}: {error.message}" if location else error.message
