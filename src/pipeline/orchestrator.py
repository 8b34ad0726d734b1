"""Orchestrator: wires criteria validation, filter chain, geo ranker, and DB.

Data flow:
  1. Validate criteria (fail loudly, never coerce)
  2. Filter chain → predicate-filtered records
  3. Geo filter & ranker → ranked results
For store-backed runs the candidate sequence is read from SQLite first and
a search_runs row is written afterwards.
"""

import json
import logging
import math
import sqlite3
from datetime import datetime

from src.core.config import Settings
from src.core.db import fetch_active_records, fetch_records_for_map, insert_search_run
from src.core.errors import InvalidCriteriaError
from src.core.schemas import (
    MapBounds,
    RankedResult,
    SearchableRecord,
    SearchCriteria,
    SearchRunResult,
)
from src.pipeline.geo import is_valid_point
from src.pipeline.matcher import build_filters, run_filter_chain
from src.pipeline.ranker import rank_by_distance

logger = logging.getLogger(__name__)


def validate_criteria(criteria: SearchCriteria) -> None:
    """Raise InvalidCriteriaError if the criteria cannot be applied as given."""
    if not math.isfinite(criteria.radius_km) or criteria.radius_km < 0:
        msg = f"radius_km must be a finite number >= 0, got {criteria.radius_km}"
        raise InvalidCriteriaError(msg)
    point = criteria.reference_point
    if point is not None and not is_valid_point(point.lat, point.lng):
        msg = f"reference point out of range: ({point.lat}, {point.lng})"
        raise InvalidCriteriaError(msg)
    for name in ("min_price", "max_price"):
        value = getattr(criteria, name)
        if value is not None and (math.isnan(value) or value < 0):
            msg = f"{name} must be >= 0, got {value}"
            raise InvalidCriteriaError(msg)
    bounds = criteria.bounds
    if bounds is not None:
        corners = ((bounds.south, bounds.west), (bounds.north, bounds.east))
        if not all(is_valid_point(lat, lng) for lat, lng in corners):
            msg = f"map bounds out of range: {bounds.model_dump()}"
            raise InvalidCriteriaError(msg)
        if bounds.south > bounds.north or bounds.west > bounds.east:
            msg = f"map bounds are inverted: {bounds.model_dump()}"
            raise InvalidCriteriaError(msg)


def search(
    candidates: list[SearchableRecord],
    criteria: SearchCriteria,
) -> list[RankedResult]:
    """Run the filter chain, then the geo ranker, over a candidate sequence.

    Pure and idempotent: the same inputs always give the same output.
    Geo ranking only ever sees records the filter chain kept.
    """
    validate_criteria(criteria)
    filtered = run_filter_chain(list(candidates), build_filters(criteria))
    logger.debug("After filtering: %d of %d", len(filtered), len(candidates))
    return rank_by_distance(filtered, criteria)


def run_search(
    conn: sqlite3.Connection,
    criteria: SearchCriteria,
    settings: Settings,
) -> SearchRunResult:
    """Search the listing store and record the run.

    The candidate sequence is the newest max_candidates active listings.
    """
    started_at = datetime.now()
    limit = settings.search.max_candidates
    candidates = fetch_active_records(conn, limit=limit)
    logger.info("Candidates: %d", len(candidates))
    if len(candidates) >= limit:
        logger.info(
            "Candidate cap of %d reached; older active listings may have been left out", limit,
        )

    results = search(candidates, criteria)
    finished_at = datetime.now()

    insert_search_run(
        conn,
        criteria_json=criteria.model_dump_json(),
        candidate_count=len(candidates),
        result_count=len(results),
        started_at=started_at,
        finished_at=finished_at,
    )
    logger.info("Search: %d candidates, %d results", len(candidates), len(results))

    return SearchRunResult(
        criteria=criteria,
        candidate_count=len(candidates),
        result_count=len(results),
        results=results,
        started_at=started_at,
        finished_at=finished_at,
    )


def services_for_map(
    conn: sqlite3.Connection,
    bounds: MapBounds | None = None,
) -> list[SearchableRecord]:
    """Return active, located listings for a map view, newest first.

    The store narrows the read; the filter chain re-applies active and bounds.
    Raises InvalidCriteriaError for inverted or out-of-range bounds.
    """
    criteria = SearchCriteria(bounds=bounds)
    validate_criteria(criteria)
    candidates = fetch_records_for_map(conn, bounds)
    located = [r for r in candidates if r.has_coordinates]
    return run_filter_chain(located, build_filters(criteria))


def export_results_json(results: list[RankedResult]) -> str:
    """Export ranked results as a JSON string."""
    data = []
    for r in results:
        rec = r.record
        data.append({
            "id": rec.id,
            "title": rec.title,
            "category": rec.category,
            "min_price": rec.min_price,
            "max_price": rec.max_price,
            "latitude": rec.latitude,
            "longitude": rec.longitude,
            "city": rec.city,
            "provider_id": rec.provider_id,
            "gallery": rec.gallery,
            "distance_km": r.distance_km,
        })
    return json.dumps(data, indent=2)
