"""
Tests for the command-line interface.
"""

import json
import logging

import pytest

from hierarchy_targeting.cli import main
from hierarchy_targeting.core.http_repository import HTTPTaxonomyRepository
from hierarchy_targeting.core.snapshot_repository import SnapshotTaxonomyRepository
from hierarchy_targeting.models import HierarchyNode, TaxonomyKind

from conftest import SAMPLE_NODES, FakeRepository


@pytest.fixture(autouse=True)
def reset_cli_logging(clean_env):
    """Drop the handlers setup_logging() installs on captured streams."""
    yield
    logging.getLogger("hierarchy_targeting").handlers.clear()


@pytest.fixture
def snapshot_file(temp_db_path):
    """A closed snapshot file holding SAMPLE_NODES."""
    repo = SnapshotTaxonomyRepository(temp_db_path)
    repo.connect()
    for taxonomy in (TaxonomyKind.ORIGINAL, TaxonomyKind.SECTOR, TaxonomyKind.EXPATRIATE):
        repo.insert_nodes(
            taxonomy,
            [
                HierarchyNode(id=nid, name=name, level=level, parent_id=parent_id)
                for kind, level, nid, name, parent_id in SAMPLE_NODES
                if kind == taxonomy
            ],
        )
    repo.disconnect()
    return temp_db_path


class TestBrowsing:
    """Tests for the roots and children commands."""

    def test_roots_json(self, snapshot_file, capsys):
        main(["--database", str(snapshot_file), "--json", "roots", "expatriate"])

        nodes = json.loads(capsys.readouterr().out)

        assert [n["name"] for n in nodes] == ["Europe", "Gulf"]
        assert nodes[0]["level"] == "expatriate_region"

    def test_roots_text(self, snapshot_file, capsys):
        main(["--database", str(snapshot_file), "roots", "original"])

        out = capsys.readouterr().out

        assert "ORIGINAL region roots" in out
        assert "Region One" in out

    def test_national_roots(self, snapshot_file, capsys):
        main(["--database", str(snapshot_file), "--national", "--json", "roots", "sector"])

        assert [n["id"] for n in json.loads(capsys.readouterr().out)] == ["SN1"]

    def test_global_has_no_roots(self, snapshot_file, capsys):
        main(["--database", str(snapshot_file), "roots", "global"])
        assert "GLOBAL has no levels" in capsys.readouterr().out

    def test_children(self, snapshot_file, capsys):
        main(["--database", str(snapshot_file), "--json", "children", "original", "R1", "locality"])

        assert [n["id"] for n in json.loads(capsys.readouterr().out)] == ["L1", "L2"]

    def test_no_children(self, snapshot_file, capsys):
        main(["--database", str(snapshot_file), "children", "original", "D1", "district"])
        assert "(no items)" in capsys.readouterr().out


class TestSnapshotCommands:
    """Tests for load-snapshot and stats."""

    def test_stats(self, snapshot_file, capsys):
        main(["--database", str(snapshot_file), "stats"])

        out = capsys.readouterr().out

        assert "ORIGINAL:" in out
        assert "Total nodes: 13" in out

    def test_load_snapshot_crawls_every_taxonomy(self, temp_db_path, capsys, monkeypatch):
        fake = FakeRepository()
        monkeypatch.setattr(
            HTTPTaxonomyRepository, "from_config", classmethod(lambda cls, config=None: fake)
        )

        main(["--database", str(temp_db_path), "load-snapshot"])

        out = capsys.readouterr().out
        assert "ORIGINAL: 7 nodes" in out
        assert "SECTOR: 2 nodes" in out
        assert "EXPATRIATE: 2 nodes" in out
        assert fake.count("list_roots") == 3

    def test_load_single_taxonomy(self, temp_db_path, capsys, monkeypatch):
        fake = FakeRepository()
        monkeypatch.setattr(
            HTTPTaxonomyRepository, "from_config", classmethod(lambda cls, config=None: fake)
        )

        main(["--database", str(temp_db_path), "load-snapshot", "--taxonomy", "expatriate"])

        out = capsys.readouterr().out
        assert "EXPATRIATE: 2 nodes" in out
        assert "ORIGINAL" not in out


class TestErrors:
    """Tests for exit codes and error output."""

    def test_no_command(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 1

    def test_snapshot_source_without_path(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--source", "snapshot", "stats"])

        assert exc_info.value.code == 1
        assert "No snapshot configured" in capsys.readouterr().out

    def test_unopenable_snapshot_reports_json_error(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--database", str(tmp_path), "--json", "roots", "original"])

        assert exc_info.value.code == 1
        error = json.loads(capsys.readouterr().out)
        assert error["error_category"] == "configuration"
        assert error["retryable"] is False
