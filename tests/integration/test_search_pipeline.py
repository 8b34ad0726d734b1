"""Integration test: catalog → SQLite store → search pipeline → JSON export."""

import json
import logging
from pathlib import Path
from textwrap import dedent

import pytest

from main import main
from src.core.catalog import Catalog
from src.core.config import DatabaseConfig, SearchDefaults, Settings
from src.core.db import init_db, list_categories, upsert_record
from src.core.errors import InvalidCriteriaError
from src.core.schemas import GeoPoint, MapBounds, SearchCriteria
from src.pipeline.orchestrator import export_results_json, run_search, services_for_map

CATALOG = dedent("""\
    services:
      - id: lawn-chapinero
        title: Lawn mowing
        description: Lawn Care Services for houses and small gardens
        category: Gardening
        min_price: 10
        max_price: 50
        created_at: 2026-05-03T10:00:00
        location: {latitude: 4.6486, longitude: -74.0628, city: Bogotá}
      - id: lawn-usaquen
        title: Garden design
        description: Landscaping and lawn restoration
        category: Gardening
        min_price: 100
        max_price: 400
        created_at: 2026-05-02T10:00:00
        location: {latitude: 4.6950, longitude: -74.0300, city: Bogotá}
      - id: lawn-medellin
        title: Lawn trimming
        description: Edge trimming and lawn feeding
        category: Gardening
        min_price: 15
        max_price: 40
        created_at: 2026-05-01T10:00:00
        location: {latitude: 6.2442, longitude: -75.5812, city: Medellín}
      - id: plumber-remote
        title: Plumbing advice
        description: Video calls about leaking pipes
        category: Plumbing
        min_price: 5
        max_price: 20
        created_at: 2026-04-30T10:00:00
      - id: lawn-retired
        title: Lawn mowing
        description: No longer offered in the north
        category: Gardening
        min_price: 10
        max_price: 30
        active: false
        created_at: 2026-04-29T10:00:00
        location: {latitude: 4.6487, longitude: -74.0629}
""")

BOGOTA = GeoPoint(lat=4.6097, lng=-74.0817)


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        database=DatabaseConfig(path=str(tmp_path / "services.db")),
        search=SearchDefaults(max_candidates=100),
    )


@pytest.fixture()
def conn(tmp_path: Path, settings: Settings):  # type: ignore[no-untyped-def]
    catalog_path = tmp_path / "catalog.yaml"
    catalog_path.write_text(CATALOG)
    conn = init_db(settings.database.path)
    for record in Catalog.from_yaml(catalog_path).to_records():
        upsert_record(conn, record)
    yield conn
    conn.close()


class TestRunSearch:
    def test_text_only_newest_first(self, conn, settings) -> None:  # type: ignore[no-untyped-def]
        run = run_search(conn, SearchCriteria(text_query="LAWN"), settings)
        assert [r.record.id for r in run.results] == [
            "lawn-chapinero", "lawn-usaquen", "lawn-medellin",
        ]
        assert run.candidate_count == 4
        assert run.result_count == 3

    def test_geo_radius_and_ranking(self, conn, settings) -> None:  # type: ignore[no-untyped-def]
        criteria = SearchCriteria(text_query="lawn", reference_point=BOGOTA, radius_km=50)
        run = run_search(conn, criteria, settings)
        ids = [r.record.id for r in run.results]
        assert ids == ["lawn-chapinero", "lawn-usaquen"]
        assert all(r.distance_km is not None and r.distance_km < 15 for r in run.results)

    def test_price_overlap(self, conn, settings) -> None:  # type: ignore[no-untyped-def]
        criteria = SearchCriteria(category="Gardening", min_price=45, max_price=120)
        run = run_search(conn, criteria, settings)
        assert [r.record.id for r in run.results] == ["lawn-chapinero", "lawn-usaquen"]

    def test_run_recorded(self, conn, settings) -> None:  # type: ignore[no-untyped-def]
        run_search(conn, SearchCriteria(text_query="lawn"), settings)
        row = conn.execute("SELECT * FROM search_runs").fetchone()
        assert row["result_count"] == 3
        assert json.loads(row["criteria_json"])["text_query"] == "lawn"

    def test_max_candidates_bounds_read(self, conn, tmp_path) -> None:  # type: ignore[no-untyped-def]
        small = Settings(
            database=DatabaseConfig(path=str(tmp_path / "services.db")),
            search=SearchDefaults(max_candidates=1),
        )
        run = run_search(conn, SearchCriteria(), small)
        assert run.candidate_count == 1

    def test_cap_reached_is_logged(self, conn, tmp_path, caplog) -> None:  # type: ignore[no-untyped-def]
        small = Settings(
            database=DatabaseConfig(path=str(tmp_path / "services.db")),
            search=SearchDefaults(max_candidates=2),
        )
        with caplog.at_level(logging.INFO, logger="src.pipeline.orchestrator"):
            run_search(conn, SearchCriteria(text_query="lawn"), small)
        assert "Candidate cap of 2 reached" in caplog.text

    def test_cap_not_reached_is_quiet(self, conn, settings, caplog) -> None:  # type: ignore[no-untyped-def]
        with caplog.at_level(logging.INFO, logger="src.pipeline.orchestrator"):
            run_search(conn, SearchCriteria(), settings)
        assert "Candidate cap" not in caplog.text

    def test_export(self, conn, settings) -> None:  # type: ignore[no-untyped-def]
        criteria = SearchCriteria(reference_point=BOGOTA, radius_km=50)
        data = json.loads(export_results_json(run_search(conn, criteria, settings).results))
        assert [d["id"] for d in data] == ["lawn-chapinero", "lawn-usaquen"]


class TestServicesForMap:
    def test_inverted_bounds_rejected(self, conn) -> None:  # type: ignore[no-untyped-def]
        with pytest.raises(InvalidCriteriaError, match="inverted"):
            services_for_map(conn, MapBounds(north=4.0, south=7.0, east=-73.0, west=-76.0))

    def test_all_located(self, conn) -> None:  # type: ignore[no-untyped-def]
        ids = [r.id for r in services_for_map(conn)]
        assert ids == ["lawn-chapinero", "lawn-usaquen", "lawn-medellin"]

    def test_bounds(self, conn) -> None:  # type: ignore[no-untyped-def]
        bounds = MapBounds(north=7.0, south=6.0, east=-75.0, west=-76.0)
        assert [r.id for r in services_for_map(conn, bounds)] == ["lawn-medellin"]


class TestCategoriesListing:
    def test_active_categories_by_name(self, conn) -> None:  # type: ignore[no-untyped-def]
        assert [(c.name, c.service_count) for c in list_categories(conn)] == [
            ("Gardening", 3),
            ("Plumbing", 1),
        ]


class TestCli:
    def _write_config(self, tmp_path: Path) -> Path:
        (tmp_path / "catalog.yaml").write_text(CATALOG)
        cfg = tmp_path / "settings.yaml"
        cfg.write_text(dedent(f"""\
            database:
              path: {tmp_path / "cli.db"}
            catalog:
              path: {tmp_path / "catalog.yaml"}
        """))
        return cfg

    def test_import_then_search(self, tmp_path, capsys) -> None:  # type: ignore[no-untyped-def]
        cfg = self._write_config(tmp_path)
        main(["import-catalog", "--config", str(cfg)])
        assert "Imported 5 listings (5 new, 0 updated)" in capsys.readouterr().out

        main([
            "search", "--config", str(cfg), "--query", "lawn",
            "--lat", "4.6097", "--lng", "-74.0817", "--radius-km", "50",
        ])
        out = capsys.readouterr().out
        assert "2 results" in out
        assert "Lawn mowing" in out

    def test_search_is_default_command(self, tmp_path, capsys) -> None:  # type: ignore[no-untyped-def]
        cfg = self._write_config(tmp_path)
        main(["import-catalog", "--config", str(cfg)])
        capsys.readouterr()
        main(["--config", str(cfg), "--category", "Plumbing"])
        assert "1 results" in capsys.readouterr().out

    def test_half_reference_point_exits(self, tmp_path, capsys) -> None:  # type: ignore[no-untyped-def]
        cfg = self._write_config(tmp_path)
        with pytest.raises(SystemExit) as exc:
            main(["search", "--config", str(cfg), "--lat", "4.6"])
        assert exc.value.code == 1
        assert "both lat and lng" in capsys.readouterr().err

    def test_missing_config_exits(self, tmp_path, capsys) -> None:  # type: ignore[no-untyped-def]
        with pytest.raises(SystemExit):
            main(["search", "--config", str(tmp_path / "missing.yaml")])
        assert "Config file not found" in capsys.readouterr().err

    def test_map_command(self, tmp_path, capsys) -> None:  # type: ignore[no-untyped-def]
        cfg = self._write_config(tmp_path)
        main(["import-catalog", "--config", str(cfg)])
        capsys.readouterr()
        main(["map", "--config", str(cfg),
              "--north", "5", "--south", "4", "--east", "-73", "--west", "-75"])
        assert "2 listings on map" in capsys.readouterr().out

    def test_categories_command(self, tmp_path, capsys) -> None:  # type: ignore[no-untyped-def]
        cfg = self._write_config(tmp_path)
        main(["import-catalog", "--config", str(cfg)])
        capsys.readouterr()
        main(["categories", "--config", str(cfg)])
        out = capsys.readouterr().out
        assert "2 categories" in out
        assert out.index("Gardening: 3 listings") < out.index("Plumbing: 1 listings")

    def test_map_inverted_bounds_exits(self, tmp_path, capsys) -> None:  # type: ignore[no-untyped-def]
        cfg = self._write_config(tmp_path)
        with pytest.raises(SystemExit) as exc:
            main(["map", "--config", str(cfg),
                  "--north", "4", "--south", "5", "--east", "-73", "--west", "-75"])
        assert exc.value.code == 1
        assert "inverted" in capsys.readouterr().err
