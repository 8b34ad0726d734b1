"""Core data models for the service search engine."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from src.core.errors import InvalidCriteriaError


class GeoPoint(BaseModel):
    """A (lat, lng) pair in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float


class MapBounds(BaseModel):
    """Bounding box for map views. Edges are inclusive."""

    model_config = ConfigDict(frozen=True)

    north: float
    south: float
    east: float
    west: float


class SearchableRecord(BaseModel):
    """A service listing as handed to the search pipeline.

    Frozen. Price ordering and coordinate ranges are not enforced here;
    the ranker reports records that break them instead of failing the batch.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str = ""
    category: str = ""
    min_price: float = Field(default=0.0, ge=0.0)
    max_price: float = Field(default=0.0, ge=0.0)
    latitude: float | None = None
    longitude: float | None = None
    active: bool = True
    provider_id: str = ""
    city: str = ""
    country: str = "Colombia"
    gallery: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def has_coordinates(self) -> bool:
        # A single coordinate counts as no location at all.
        return self.latitude is not None and self.longitude is not None

    @property
    def point(self) -> GeoPoint | None:
        if not self.has_coordinates:
            return None
        return GeoPoint(lat=self.latitude, lng=self.longitude)  # type: ignore[arg-type]


class SearchCriteria(BaseModel):
    """Per-request search parameters. Every field is independently optional.

    Direct construction is checked by pydantic, so a half reference point
    such as {"lat": 1.0} raises ValidationError. Request parameters should go
    through from_params, which raises InvalidCriteriaError instead. Both are
    ValueErrors.
    """

    model_config = ConfigDict(frozen=True)

    text_query: str | None = None
    category: str | None = None
    min_price: float | None = None
    max_price: float | None = None
    reference_point: GeoPoint | None = None
    radius_km: float = 50.0
    bounds: MapBounds | None = None

    @classmethod
    def from_params(
        cls,
        *,
        query: str | None = None,
        category: str | None = None,
        min_price: float | None = None,
        max_price: float | None = None,
        lat: float | None = None,
        lng: float | None = None,
        radius_km: float = 50.0,
    ) -> "SearchCriteria":
        """Build criteria from loose request parameters.

        Raises InvalidCriteriaError when only one of lat/lng is given.
        """
        if (lat is None) != (lng is None):
            msg = "reference point needs both lat and lng"
            raise InvalidCriteriaError(msg)
        point = GeoPoint(lat=lat, lng=lng) if lat is not None and lng is not None else None
        return cls(
            text_query=query,
            category=category,
            min_price=min_price,
            max_price=max_price,
            reference_point=point,
            radius_km=radius_km,
        )


class CategorySummary(BaseModel):
    """A category name in use by active listings, with how many use it."""

    model_config = ConfigDict(frozen=True)

    name: str
    service_count: int = Field(ge=0)


class RankedResult(BaseModel):
    """Wrapper pairing a frozen record with its distance to the reference point."""

    model_config = ConfigDict(frozen=True)

    record: SearchableRecord
    distance_km: float | None = None


class SearchRunResult(BaseModel):
    """Summary of a single search run against the listing store."""

    criteria: SearchCriteria
    candidate_count: int
    result_count: int
    results: list[RankedResult] = Field(default_factory=list)
    started_at: datetime
    finished_at: datetime
