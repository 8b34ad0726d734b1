"""Filter chain for listing search.

Filter order (always AND-combined, input order preserved):
  1. ActiveFilter    — always applied, the one authoritative active check
  2. TextQueryFilter — title OR description OR category, case-insensitive
  3. CategoryFilter  — exact, case-sensitive
  4. MinPriceFilter  — overlap: record.max_price >= floor
  5. MaxPriceFilter  — overlap: record.min_price <= ceiling
  6. BoundsFilter    — map view bounding box
"""

import logging
import math
from collections.abc import Callable

from src.core.schemas import MapBounds, SearchableRecord, SearchCriteria

logger = logging.getLogger(__name__)

# A filter is a callable that takes records and returns a subset.
Filter = Callable[[list[SearchableRecord]], list[SearchableRecord]]


def _log_removed(name: str, before: int, after: int) -> None:
    removed = before - after
    if removed:
        logger.debug("%s: removed %d records", name, removed)


class ActiveFilter:
    """Keep only records with active == True."""

    def __call__(self, records: list[SearchableRecord]) -> list[SearchableRecord]:
        result = [r for r in records if r.active is True]
        _log_removed("ActiveFilter", len(records), len(result))
        return result


class TextQueryFilter:
    """Keep records whose title, description or category contains the query.

    Blank queries are a no-op.
    """

    def __init__(self, text_query: str | None) -> None:
        self._query = (text_query or "").strip().lower()

    def __call__(self, records: list[SearchableRecord]) -> list[SearchableRecord]:
        if not self._query:
            return records
        result = [r for r in records if self._matches(r)]
        _log_removed("TextQueryFilter", len(records), len(result))
        return result

    def _matches(self, record: SearchableRecord) -> bool:
        return any(
            self._query in field.lower()
            for field in (record.title, record.description, record.category)
        )


class CategoryFilter:
    """Keep records whose category equals the given one exactly."""

    def __init__(self, category: str | None) -> None:
        self._category = (category or "").strip()

    def __call__(self, records: list[SearchableRecord]) -> list[SearchableRecord]:
        if not self._category:
            return records
        result = [r for r in records if r.category == self._category]
        _log_removed("CategoryFilter", len(records), len(result))
        return result


class MinPriceFilter:
    """Keep records whose price range reaches at least the floor.

    Tests record.max_price, not a single price point. Floors <= 0 are a no-op.
    """

    def __init__(self, min_price: float | None) -> None:
        self._floor = min_price

    def __call__(self, records: list[SearchableRecord]) -> list[SearchableRecord]:
        if self._floor is None or not self._floor > 0:
            return records
        result = [r for r in records if r.max_price >= self._floor]
        _log_removed("MinPriceFilter", len(records), len(result))
        return result


class MaxPriceFilter:
    """Keep records whose price range starts at or below the ceiling.

    Tests record.min_price. Missing or infinite ceilings are a no-op.
    """

    def __init__(self, max_price: float | None) -> None:
        self._ceiling = max_price

    def __call__(self, records: list[SearchableRecord]) -> list[SearchableRecord]:
        if self._ceiling is None or not math.isfinite(self._ceiling):
            return records
        result = [r for r in records if r.min_price <= self._ceiling]
        _log_removed("MaxPriceFilter", len(records), len(result))
        return result


class BoundsFilter:
    """Keep records located inside a bounding box (edges inclusive).

    Records without both coordinates never match a box.
    """

    def __init__(self, bounds: MapBounds | None) -> None:
        self._bounds = bounds

    def __call__(self, records: list[SearchableRecord]) -> list[SearchableRecord]:
        if self._bounds is None:
            return records
        bounds = self._bounds
        result = [r for r in records if _inside(r, bounds)]
        _log_removed("BoundsFilter", len(records), len(result))
        return result


def _inside(record: SearchableRecord, b: MapBounds) -> bool:
    if record.latitude is None or record.longitude is None:
        return False
    return b.south <= record.latitude <= b.north and b.west <= record.longitude <= b.east


def build_filters(criteria: SearchCriteria) -> list[Filter]:
    """Return the filter chain for the given criteria, in application order."""
    return [
        ActiveFilter(),
        TextQueryFilter(criteria.text_query),
        CategoryFilter(criteria.category),
        MinPriceFilter(criteria.min_price),
        MaxPriceFilter(criteria.max_price),
        BoundsFilter(criteria.bounds),
    ]


def run_filter_chain(
    records: list[SearchableRecord],
    filters: list[Filter],
) -> list[SearchableRecord]:
    """Apply filters in order, returning the surviving records."""
    result = records
    for f in filters:
        result = f(result)
    return result
