"""
Settings for the Typesense search core.

Values come from explicit arguments first, then environment variables:

    TYPESENSE_HOST              (default: localhost)
    TYPESENSE_PORT              (default: 8108)
    TYPESENSE_PROTOCOL          (default: http)
    TYPESENSE_PATH              (default: "")
    TYPESENSE_API_KEY           (required)
    TYPESENSE_TIMEOUT           connection timeout in seconds (default: 10)
    TYPESENSE_NUM_RETRIES       (default: 3)
    TYPESENSE_RETRY_INTERVAL    seconds (default: 0.1)

    TYPESENSE_PER_PAGE          (default: 20)
    TYPESENSE_MAX_FACET_VALUES  (default: 10000)
    TYPESENSE_DISJUNCTIVE_FACETS  1/true/yes to enable (default: enabled)

Multi-collection search profiles can be kept in YAML:

    collections:
      - collection: products
        weight: 2.0
        query_by: name,description
        max_results: 10
      - collection: categories
        query_by: name
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from .exceptions import ConfigurationError, ValidationError

if TYPE_CHECKING:
    from typesense_search.domain.entities.multi_collection import CollectionSearchConfig

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


@dataclass
class TypesenseSettings:
    """Connection settings for one Typesense node."""

    api_key: str
    host: str = "localhost"
    port: int = 8108
    protocol: str = "http"
    path: str = ""
    connection_timeout_seconds: float = 10.0
    num_retries: int = 3
    retry_interval_seconds: float = 0.1

    def __post_init__(self) -> None:
        if not self.api_key:
            raise ConfigurationError("Typesense API key is required (set TYPESENSE_API_KEY)")
        if isinstance(self.port, str):
            try:
                self.port = int(self.port)
            except ValueError as e:
                raise ConfigurationError(f"Invalid Typesense port: {self.port!r}") from e
        if self.protocol not in ("http", "https"):
            raise ConfigurationError(f"Unsupported protocol: {self.protocol!r}")
        if self.num_retries < 0:
            raise ConfigurationError("num_retries cannot be negative")

    @property
    def base_url(self) -> str:
        path = self.path.strip("/")
        url = f"{self.protocol}://{self.host}:{self.port}"
        return f"{url}/{path}" if path else url

    @classmethod
    def from_env(cls, **overrides: Any) -> TypesenseSettings:
        """Build settings from environment variables, explicit overrides win."""
        values: dict[str, Any] = {
            "api_key": os.environ.get("TYPESENSE_API_KEY", "").strip(),
            "host": os.environ.get("TYPESENSE_HOST", "localhost").strip() or "localhost",
            "port": _env_int("TYPESENSE_PORT", 8108),
            "protocol": os.environ.get("TYPESENSE_PROTOCOL", "http").strip() or "http",
            "path": os.environ.get("TYPESENSE_PATH", "").strip(),
            "connection_timeout_seconds": _env_float("TYPESENSE_TIMEOUT", 10.0),
            "num_retries": _env_int("TYPESENSE_NUM_RETRIES", 3),
            "retry_interval_seconds": _env_float("TYPESENSE_RETRY_INTERVAL", 0.1),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


@dataclass
class SearchDefaults:
    """Defaults applied to every single-collection search."""

    per_page: int = 20
    max_facet_values: int = 10000
    query_by: str = "*"
    enable_disjunctive_facet_queries: bool = True

    @classmethod
    def from_env(cls) -> SearchDefaults:
        raw_toggle = os.environ.get("TYPESENSE_DISJUNCTIVE_FACETS", "").strip().lower()
        return cls(
            per_page=_env_int("TYPESENSE_PER_PAGE", 20),
            max_facet_values=_env_int("TYPESENSE_MAX_FACET_VALUES", 10000),
            enable_disjunctive_facet_queries=(raw_toggle in _TRUE_VALUES) if raw_toggle else True,
        )


def load_collection_configs(path: str | Path) -> list[CollectionSearchConfig]:
    """
    Load multi-collection search profiles from a YAML file.

    The document is either a list of collection entries or a mapping with a
    ``collections`` list. Keys use snake_case and match CollectionSearchConfig.
    """
    from typesense_search.domain.entities.multi_collection import CollectionSearchConfig

    file_path = Path(path).expanduser()
    try:
        data = yaml.safe_load(file_path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(f"Cannot read collection config {file_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {file_path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("collections")
    if not isinstance(data, list):
        raise ConfigurationError(f"{file_path}: expected a list of collections")

    configs: list[CollectionSearchConfig] = []
    for i, entry in enumerate(data):
        if not isinstance(entry, dict) or not entry.get("collection"):
            raise ConfigurationError(f"{file_path}: entry {i} needs a 'collection' name")
        try:
            configs.append(CollectionSearchConfig(**entry))
        except (TypeError, ValidationError) as e:
            raise ConfigurationError(f"{file_path}: entry {i}: {e}") from e

    logger.debug(f"Loaded {len(configs)} collection configs from {file_path}")
    return configs
