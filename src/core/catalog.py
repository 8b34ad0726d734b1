"""Listing catalog: validated YAML input that seeds the listing store.

Catalog entries go through the same checks a create-service request does
(length limits, non-negative prices, max_price >= min_price, coordinate
ranges) before they become SearchableRecords.
"""

import uuid
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from src.core.schemas import SearchableRecord


class LocationInput(BaseModel):
    """Optional location block of a listing."""

    latitude: float | None = Field(default=None, ge=-90.0, le=90.0)
    longitude: float | None = Field(default=None, ge=-180.0, le=180.0)
    city: str = Field(default="", max_length=100)
    country: str = Field(default="Colombia", max_length=100)


class ServiceInput(BaseModel):
    """A single listing as written in the catalog file."""

    id: str | None = None
    title: str = Field(min_length=3, max_length=200)
    description: str = Field(min_length=10, max_length=2000)
    category: str = Field(max_length=100)
    min_price: float = Field(ge=0.0)
    max_price: float = Field(ge=0.0)
    provider_id: str = ""
    active: bool = True
    gallery: list[str] = Field(default_factory=list, max_length=10)
    location: LocationInput | None = None
    created_at: datetime | None = None

    @field_validator("title", "category")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()

    @model_validator(mode="after")
    def price_range_ordered(self) -> "ServiceInput":
        if self.max_price < self.min_price:
            msg = "max_price must be greater than or equal to min_price"
            raise ValueError(msg)
        return self

    def to_record(self) -> SearchableRecord:
        """Flatten the location block into a SearchableRecord."""
        location = self.location or LocationInput()
        data: dict[str, Any] = {
            "id": self.id or str(uuid.uuid4()),
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "min_price": self.min_price,
            "max_price": self.max_price,
            "latitude": location.latitude,
            "longitude": location.longitude,
            "active": self.active,
            "provider_id": self.provider_id,
            "city": location.city,
            "country": location.country,
            "gallery": list(self.gallery),
        }
        if self.created_at is not None:
            data["created_at"] = self.created_at
        return SearchableRecord(**data)


class Catalog(BaseModel):
    """Top-level catalog file: a list of services."""

    services: list[ServiceInput] = Field(default_factory=list)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Catalog":
        """Load a catalog from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Catalog file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)

    def to_records(self) -> list[SearchableRecord]:
        return [s.to_record() for s in self.services]
