"""Configuration models and YAML loader for the service search engine."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator


class DatabaseConfig(BaseModel):
    """Database configuration."""

    path: str = "data/services.db"


class SearchDefaults(BaseModel):
    """Defaults applied when a search request leaves a parameter out."""

    default_radius_km: float = Field(default=50.0, ge=0.0)
    max_candidates: int = Field(default=500, ge=1)


class CatalogConfig(BaseModel):
    """Optional YAML catalog of listings to seed the store from."""

    path: str | None = None

    @field_validator("path")
    @classmethod
    def path_not_blank(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            msg = "catalog path must not be blank"
            raise ValueError(msg)
        return v.strip() if v is not None else None


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    search: SearchDefaults = Field(default_factory=SearchDefaults)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)
