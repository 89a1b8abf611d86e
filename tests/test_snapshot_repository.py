"""
Tests for the DuckDB snapshot repository.
"""

import pytest

from hierarchy_targeting.core.errors import RepositoryError, UnsupportedOperationError
from hierarchy_targeting.core.snapshot_repository import SnapshotTaxonomyRepository
from hierarchy_targeting.models import HierarchyNode, Level, TaxonomyKind


class TestConnection:
    """Tests for connecting and schema setup."""

    def test_schema_created(self, empty_snapshot):
        tables = [t[0] for t in empty_snapshot.connection.execute("SHOW TABLES").fetchall()]
        assert "hierarchy_nodes" in tables

    def test_disconnect(self, temp_db_path):
        repo = SnapshotTaxonomyRepository(temp_db_path)
        repo.connect()
        assert repo.is_connected

        repo.disconnect()

        assert not repo.is_connected

    @pytest.mark.asyncio
    async def test_close_disconnects(self, temp_db_path):
        repo = SnapshotTaxonomyRepository(temp_db_path)
        repo.connect()

        await repo.close()

        assert repo.connection is None

    @pytest.mark.asyncio
    async def test_query_without_connection(self, temp_db_path):
        repo = SnapshotTaxonomyRepository(temp_db_path)

        with pytest.raises(RepositoryError) as exc_info:
            await repo.list_roots(TaxonomyKind.ORIGINAL, Level.REGION)

        assert exc_info.value.retryable is False

    def test_reopen_keeps_data(self, temp_db_path):
        repo = SnapshotTaxonomyRepository(temp_db_path)
        repo.connect()
        repo.insert_nodes(
            TaxonomyKind.EXPATRIATE, [HierarchyNode("E1", "Gulf", Level.EXPATRIATE_REGION)]
        )
        repo.disconnect()

        repo.connect()
        count = repo.connection.execute("SELECT COUNT(*) FROM hierarchy_nodes").fetchone()[0]
        repo.disconnect()

        assert count == 1


class TestListing:
    """Tests for roots and children."""

    @pytest.mark.asyncio
    async def test_roots_ordered_by_name(self, populated_snapshot):
        nodes = await populated_snapshot.list_roots(
            TaxonomyKind.EXPATRIATE, Level.EXPATRIATE_REGION
        )
        assert [n.name for n in nodes] == ["Europe", "Gulf"]

    @pytest.mark.asyncio
    async def test_roots_scoped_to_taxonomy(self, populated_snapshot):
        nodes = await populated_snapshot.list_roots(TaxonomyKind.SECTOR, Level.REGION)
        assert [n.id for n in nodes] == ["SR1"]

    @pytest.mark.asyncio
    async def test_children(self, populated_snapshot):
        nodes = await populated_snapshot.list_children(TaxonomyKind.ORIGINAL, "R1", Level.LOCALITY)

        assert [n.id for n in nodes] == ["L1", "L2"]
        assert all(n.parent_id == "R1" for n in nodes)
        assert all(n.children is None for n in nodes)

    @pytest.mark.asyncio
    async def test_no_children(self, populated_snapshot):
        nodes = await populated_snapshot.list_children(
            TaxonomyKind.ORIGINAL, "L3", Level.ADMIN_UNIT
        )
        assert nodes == []

    @pytest.mark.asyncio
    async def test_insert_replaces_existing(self, populated_snapshot):
        populated_snapshot.insert_nodes(
            TaxonomyKind.EXPATRIATE, [HierarchyNode("E1", "Gulf States", Level.EXPATRIATE_REGION)]
        )

        nodes = await populated_snapshot.list_roots(
            TaxonomyKind.EXPATRIATE, Level.EXPATRIATE_REGION
        )

        assert [n.name for n in nodes] == ["Europe", "Gulf States"]

    def test_insert_walks_attached_children(self, empty_snapshot):
        region = HierarchyNode("R1", "Region One", Level.REGION)
        region.attach_children([HierarchyNode("L1", "Locality One", Level.LOCALITY, parent_id="R1")])

        assert empty_snapshot.insert_nodes(TaxonomyKind.ORIGINAL, [region]) == 2


class TestFullTree:
    """Tests for fetch_full_tree()."""

    @pytest.mark.asyncio
    async def test_tree_assembled(self, populated_snapshot):
        roots = await populated_snapshot.fetch_full_tree(TaxonomyKind.ORIGINAL)

        assert [n.id for n in roots] == ["R1", "R2"]
        l1 = roots[0].find_child("L1")
        assert l1.find_child("A1").find_child("D1").children == []
        assert roots[1].find_child("L3").children == []

    @pytest.mark.asyncio
    async def test_national_level_excluded(self, populated_snapshot):
        roots = await populated_snapshot.fetch_full_tree(TaxonomyKind.SECTOR)
        assert [n.level for n in roots] == [Level.REGION]

    def test_tree_advertised_for_geographic_taxonomies(self, populated_snapshot):
        assert populated_snapshot.supports_tree(TaxonomyKind.SECTOR)
        assert not populated_snapshot.supports_tree(TaxonomyKind.EXPATRIATE)

    @pytest.mark.asyncio
    async def test_expatriate_unsupported(self, populated_snapshot):
        with pytest.raises(UnsupportedOperationError):
            await populated_snapshot.fetch_full_tree(TaxonomyKind.EXPATRIATE)


class TestStatistics:
    """Tests for get_statistics()."""

    @pytest.mark.asyncio
    async def test_counts(self, populated_snapshot):
        stats = await populated_snapshot.get_statistics()

        assert stats["total_nodes"] == 13
        assert stats["taxonomies"]["ORIGINAL"]["region"] == 2
        assert stats["taxonomies"]["EXPATRIATE"]["expatriate_region"] == 2

    @pytest.mark.asyncio
    async def test_empty(self, empty_snapshot):
        assert await empty_snapshot.get_statistics() == {"total_nodes": 0, "taxonomies": {}}
