"""CLI entry point for the service search engine."""

import argparse
import logging
import sys

from src.core.catalog import Catalog
from src.core.config import Settings
from src.core.db import init_db, list_categories, upsert_record
from src.core.schemas import MapBounds, SearchCriteria
from src.pipeline.orchestrator import export_results_json, run_search, services_for_map


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Service search engine - filter and rank marketplace listings",
    )
    subparsers = parser.add_subparsers(dest="command")

    # --- search subcommand (default) ---
    search_parser = subparsers.add_parser("search", help="Search active listings")
    _add_common(search_parser)
    search_parser.add_argument("--query", default="", help="Free-text fragment")
    search_parser.add_argument("--category", default="", help="Exact category")
    search_parser.add_argument("--min-price", type=float, help="Price floor (overlap test)")
    search_parser.add_argument("--max-price", type=float, help="Price ceiling (overlap test)")
    search_parser.add_argument("--lat", type=float, help="Reference latitude")
    search_parser.add_argument("--lng", type=float, help="Reference longitude")
    search_parser.add_argument(
        "--radius-km",
        type=float,
        help="Search radius around --lat/--lng (default: from settings)",
    )
    search_parser.add_argument(
        "--export",
        choices=["json"],
        help="Export results to format (json)",
    )

    # --- import-catalog subcommand ---
    import_parser = subparsers.add_parser(
        "import-catalog",
        help="Load listings from a catalog YAML into the store",
    )
    _add_common(import_parser)
    import_parser.add_argument(
        "--catalog",
        help="Path to catalog YAML (default: catalog.path from settings)",
    )

    # --- map subcommand ---
    map_parser = subparsers.add_parser("map", help="List located listings for a map view")
    _add_common(map_parser)
    for edge in ("north", "south", "east", "west"):
        map_parser.add_argument(f"--{edge}", type=float, help=f"{edge.title()} edge of the box")

    # --- categories subcommand ---
    categories_parser = subparsers.add_parser(
        "categories",
        help="List the categories in use by active listings",
    )
    _add_common(categories_parser)

    # Default to search when no subcommand given
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or (argv[0] not in subparsers.choices and argv[0] not in ("-h", "--help")):
        argv = ["search", *argv]

    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def cmd_search(args: argparse.Namespace, settings: Settings) -> None:
    """Handle search subcommand."""
    radius = args.radius_km if args.radius_km is not None else settings.search.default_radius_km
    criteria = SearchCriteria.from_params(
        query=args.query,
        category=args.category,
        min_price=args.min_price,
        max_price=args.max_price,
        lat=args.lat,
        lng=args.lng,
        radius_km=radius,
    )

    conn = init_db(settings.database.path)
    try:
        run = run_search(conn, criteria, settings)
    finally:
        conn.close()

    print(f"\nSearch complete: {run.candidate_count} candidates, {run.result_count} results.")
    for r in run.results:
        where = f"{r.distance_km:.1f} km" if r.distance_km is not None else r.record.city or "-"
        print(f"  [{r.record.category}] {r.record.title} "
              f"({r.record.min_price:g}-{r.record.max_price:g}) {where}")

    if args.export == "json" and run.results:
        print(f"\n{export_results_json(run.results)}")


def cmd_import_catalog(args: argparse.Namespace, settings: Settings) -> None:
    """Handle import-catalog subcommand."""
    path = args.catalog or settings.catalog.path
    if not path:
        msg = "no catalog given (use --catalog or set catalog.path)"
        raise ValueError(msg)

    print(f"Loading catalog from {path}...")
    records = Catalog.from_yaml(path).to_records()

    conn = init_db(settings.database.path)
    try:
        new_count = sum(1 for r in records if upsert_record(conn, r))
    finally:
        conn.close()
    print(f"Imported {len(records)} listings ({new_count} new, "
          f"{len(records) - new_count} updated).")


def cmd_map(args: argparse.Namespace, settings: Settings) -> None:
    """Handle map subcommand."""
    edges = (args.north, args.south, args.east, args.west)
    if any(e is not None for e in edges) and not all(e is not None for e in edges):
        msg = "map bounds need all of --north, --south, --east, --west"
        raise ValueError(msg)
    bounds = None
    if all(e is not None for e in edges):
        bounds = MapBounds(north=args.north, south=args.south, east=args.east, west=args.west)

    conn = init_db(settings.database.path)
    try:
        records = services_for_map(conn, bounds)
    finally:
        conn.close()

    print(f"{len(records)} listings on map")
    for r in records:
        print(f"  {r.id}: {r.title} @ ({r.latitude}, {r.longitude})")


def cmd_categories(args: argparse.Namespace, settings: Settings) -> None:
    """Handle categories subcommand."""
    conn = init_db(settings.database.path)
    try:
        categories = list_categories(conn)
    finally:
        conn.close()

    print(f"{len(categories)} categories")
    for c in categories:
        print(f"  {c.name}: {c.service_count} listings")


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = Settings.from_yaml(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    handlers = {
        "search": cmd_search,
        "import-catalog": cmd_import_catalog,
        "map": cmd_map,
        "categories": cmd_categories,
    }
    try:
        handlers[args.command](args, settings)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
