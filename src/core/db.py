"""SQLite database layer for service listings and search run tracking."""

import json
import sqlite3
from datetime import datetime
from pathlib import Path

from src.core.schemas import CategorySummary, MapBounds, SearchableRecord

_SERVICES_TABLE = """
CREATE TABLE IF NOT EXISTS services (
    id              TEXT    PRIMARY KEY,
    title           TEXT    NOT NULL,
    description     TEXT    NOT NULL DEFAULT '',
    category        TEXT    NOT NULL DEFAULT '',
    min_price       REAL    NOT NULL DEFAULT 0.0,
    max_price       REAL    NOT NULL DEFAULT 0.0,
    latitude        REAL,
    longitude       REAL,
    status          INTEGER NOT NULL DEFAULT 1,
    provider_id     TEXT    NOT NULL DEFAULT '',
    city            TEXT    NOT NULL DEFAULT '',
    country         TEXT    NOT NULL DEFAULT 'Colombia',
    gallery_json    TEXT    NOT NULL DEFAULT '[]',
    created_at      TEXT    NOT NULL,
    created_ts      REAL    NOT NULL,
    updated_at      TEXT    NOT NULL
);
"""

_SEARCH_RUNS_TABLE = """
CREATE TABLE IF NOT EXISTS search_runs (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    criteria_json   TEXT NOT NULL,
    candidate_count INTEGER NOT NULL,
    result_count    INTEGER NOT NULL,
    started_at      TEXT NOT NULL,
    finished_at     TEXT NOT NULL
);
"""

_SELECT_COLUMNS = """
    id, title, description, category, min_price, max_price, latitude, longitude,
    status, provider_id, city, country, gallery_json, created_at
"""


def init_db(path: str | Path) -> sqlite3.Connection:
    """Create the database and tables, returning a connection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(_SERVICES_TABLE)
    conn.execute(_SEARCH_RUNS_TABLE)
    conn.commit()
    return conn


def _row_to_record(row: sqlite3.Row) -> SearchableRecord:
    return SearchableRecord(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        category=row["category"],
        min_price=row["min_price"],
        max_price=row["max_price"],
        latitude=row["latitude"],
        longitude=row["longitude"],
        active=bool(row["status"]),
        provider_id=row["provider_id"],
        city=row["city"],
        country=row["country"],
        gallery=json.loads(row["gallery_json"] or "[]"),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _sort_key(created_at: datetime) -> float:
    # Epoch seconds, so listings with different UTC offsets sort by real time.
    # Naive timestamps are taken as local time.
    return created_at.timestamp()


def upsert_record(conn: sqlite3.Connection, record: SearchableRecord) -> bool:
    """Insert a listing or update the existing row with the same id.

    Returns True if a new row was inserted, False if an existing one was updated.
    """
    existed = conn.execute(
        "SELECT 1 FROM services WHERE id = ? LIMIT 1", (record.id,),
    ).fetchone() is not None
    now = datetime.now().isoformat()
    conn.execute(
        """
        INSERT INTO services
            (id, title, description, category, min_price, max_price,
             latitude, longitude, status, provider_id, city, country,
             gallery_json, created_at, created_ts, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            title = excluded.title,
            description = excluded.description,
            category = excluded.category,
            min_price = excluded.min_price,
            max_price = excluded.max_price,
            latitude = excluded.latitude,
            longitude = excluded.longitude,
            status = excluded.status,
            provider_id = excluded.provider_id,
            city = excluded.city,
            country = excluded.country,
            gallery_json = excluded.gallery_json,
            updated_at = excluded.updated_at
        """,
        (
            record.id,
            record.title,
            record.description,
            record.category,
            record.min_price,
            record.max_price,
            record.latitude,
            record.longitude,
            int(record.active),
            record.provider_id,
            record.city,
            record.country,
            json.dumps(record.gallery),
            record.created_at.isoformat(),
            _sort_key(record.created_at),
            now,
        ),
    )
    conn.commit()
    return not existed


def get_record(
    conn: sqlite3.Connection,
    record_id: str,
    active_only: bool = False,
) -> SearchableRecord | None:
    """Return a single listing by its full id.

    active_only=True hides inactive listings, as a public detail view should.
    Ids are opaque strings; there is no short-prefix lookup.
    """
    sql = f"SELECT {_SELECT_COLUMNS} FROM services WHERE id = ?"
    if active_only:
        sql += " AND status = 1"
    row = conn.execute(sql, (record_id,)).fetchone()
    return _row_to_record(row) if row is not None else None


def fetch_active_records(
    conn: sqlite3.Connection,
    limit: int | None = None,
) -> list[SearchableRecord]:
    """Return active listings, newest first.

    The active check here only trims the read; the filter chain re-checks it.
    """
    sql = f"SELECT {_SELECT_COLUMNS} FROM services WHERE status = 1 ORDER BY created_ts DESC"
    params: tuple[int, ...] = ()
    if limit is not None:
        sql += " LIMIT ?"
        params = (limit,)
    return [_row_to_record(row) for row in conn.execute(sql, params).fetchall()]


def fetch_records_by_category(conn: sqlite3.Connection, category: str) -> list[SearchableRecord]:
    """Return active listings in a category, newest first."""
    rows = conn.execute(
        f"""
        SELECT {_SELECT_COLUMNS} FROM services
        WHERE category = ? AND status = 1
        ORDER BY created_ts DESC
        """,
        (category,),
    ).fetchall()
    return [_row_to_record(row) for row in rows]


def fetch_records_by_provider(conn: sqlite3.Connection, provider_id: str) -> list[SearchableRecord]:
    """Return every listing of a provider (including inactive), newest first."""
    rows = conn.execute(
        f"""
        SELECT {_SELECT_COLUMNS} FROM services
        WHERE provider_id = ?
        ORDER BY created_ts DESC
        """,
        (provider_id,),
    ).fetchall()
    return [_row_to_record(row) for row in rows]


def fetch_records_for_map(
    conn: sqlite3.Connection,
    bounds: MapBounds | None = None,
) -> list[SearchableRecord]:
    """Return active listings that have both coordinates, optionally inside bounds."""
    sql = f"""
        SELECT {_SELECT_COLUMNS} FROM services
        WHERE status = 1 AND latitude IS NOT NULL AND longitude IS NOT NULL
    """
    params: list[float] = []
    if bounds is not None:
        sql += " AND latitude BETWEEN ? AND ? AND longitude BETWEEN ? AND ?"
        params = [bounds.south, bounds.north, bounds.west, bounds.east]
    sql += " ORDER BY created_ts DESC"
    return [_row_to_record(row) for row in conn.execute(sql, params).fetchall()]


def list_categories(conn: sqlite3.Connection) -> list[CategorySummary]:
    """Return the categories of active listings, ordered by name, with counts."""
    rows = conn.execute(
        """
        SELECT category, COUNT(*) AS service_count FROM services
        WHERE status = 1 AND category != ''
        GROUP BY category
        ORDER BY category ASC
        """,
    ).fetchall()
    return [CategorySummary(name=row["category"], service_count=row["service_count"]) for row in rows]


def get_category(conn: sqlite3.Connection, name: str) -> CategorySummary | None:
    """Return one category by exact name, or None if no active listing uses it."""
    row = conn.execute(
        """
        SELECT category, COUNT(*) AS service_count FROM services
        WHERE status = 1 AND category = ?
        GROUP BY category
        """,
        (name,),
    ).fetchone()
    if row is None:
        return None
    return CategorySummary(name=row["category"], service_count=row["service_count"])


def set_record_status(
    conn: sqlite3.Connection,
    record_id: str,
    active: bool | None = None,
    provider_id: str | None = None,
) -> SearchableRecord | None:
    """Set or toggle a listing's active flag.

    active=None toggles the current value; active=False is a soft delete.
    When provider_id is given the listing must belong to that provider.
    Returns the updated record, or None if no matching listing exists.
    """
    current = get_record(conn, record_id)
    if current is None:
        return None
    if provider_id is not None and current.provider_id != provider_id:
        return None
    new_status = (not current.active) if active is None else active
    conn.execute(
        "UPDATE services SET status = ?, updated_at = ? WHERE id = ?",
        (int(new_status), datetime.now().isoformat(), record_id),
    )
    conn.commit()
    return get_record(conn, record_id)


def insert_search_run(
    conn: sqlite3.Connection,
    criteria_json: str,
    candidate_count: int,
    result_count: int,
    started_at: datetime,
    finished_at: datetime,
) -> int:
    """Record a completed search run. Returns the row ID."""
    cursor = conn.execute(
        """
        INSERT INTO search_runs
            (criteria_json, candidate_count, result_count, started_at, finished_at)
        VALUES (?, ?, ?, ?, ?)
        """,
        (
            criteria_json,
            candidate_count,
            result_count,
            started_at.isoformat(),
            finished_at.isoformat(),
        ),
    )
    conn.commit()
    return cursor.lastrowid or 0
