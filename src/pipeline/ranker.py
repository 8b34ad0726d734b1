"""Geo filter & ranker: radius cutoff plus proximity ordering.

Without a reference point records pass through untouched (no distance,
no reordering). With one, each record is checked, measured, cut at
radius_km (inclusive) and stable-sorted by ascending distance.
"""

import logging
import math
import warnings

from src.core.errors import SkippedRecordWarning
from src.core.schemas import GeoPoint, RankedResult, SearchableRecord, SearchCriteria
from src.pipeline.geo import distance_km, is_valid_point

logger = logging.getLogger(__name__)


def rank_by_distance(
    records: list[SearchableRecord],
    criteria: SearchCriteria,
) -> list[RankedResult]:
    """Filter records to the search radius and order them nearest first.

    Args:
        records: Output of the filter chain, in caller-defined order.
        criteria: Supplies reference_point and radius_km.

    Returns:
        RankedResult list. distance_km is None for every entry when no
        reference point was given.
    """
    origin = criteria.reference_point
    if origin is None:
        return [RankedResult(record=r) for r in records]

    measured: list[tuple[float, SearchableRecord]] = []
    for record in records:
        reason = malformed_reason(record)
        if reason is not None:
            _skip(record, reason)
            continue
        distance = _distance_or_inf(origin, record)
        if distance <= criteria.radius_km:
            measured.append((distance, record))

    # list.sort is stable, so equal distances keep input order.
    measured.sort(key=lambda pair: pair[0])
    logger.debug(
        "rank_by_distance: %d of %d records within %.1f km",
        len(measured), len(records), criteria.radius_km,
    )
    return [RankedResult(record=r, distance_km=d) for d, r in measured]


def malformed_reason(record: SearchableRecord) -> str | None:
    """Describe why a record cannot be ranked, or None if it is well-formed."""
    if record.max_price < record.min_price:
        return f"max_price {record.max_price} < min_price {record.min_price}"
    if record.has_coordinates and not is_valid_point(record.latitude, record.longitude):  # type: ignore[arg-type]
        return f"coordinates out of range ({record.latitude}, {record.longitude})"
    return None


def _distance_or_inf(origin: GeoPoint, record: SearchableRecord) -> float:
    point = record.point
    if point is None:
        return math.inf
    return distance_km(origin, point)


def _skip(record: SearchableRecord, reason: str) -> None:
    logger.warning("Skipping record %s from geo ranking: %s", record.id, reason)
    warnings.warn(SkippedRecordWarning(record.id, reason), stacklevel=3)
