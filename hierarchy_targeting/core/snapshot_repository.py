"""
Taxonomy repository backed by a local DuckDB snapshot.

Holds a copy of every taxonomy's nodes in one table so the selector can run
offline (kiosk builds, tests, CLI inspection) with the same interface as the
API-backed repository.
"""

import logging
from pathlib import Path
from typing import Any

import duckdb

from ..models.taxonomy_models import GEOGRAPHIC_CHAIN, HierarchyNode, Level, TaxonomyKind
from .errors import ConfigurationError, RepositoryError
from .repository import TaxonomyRepository

logger = logging.getLogger(__name__)


CREATE_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS hierarchy_nodes (
    taxonomy VARCHAR NOT NULL,            -- 'ORIGINAL', 'SECTOR', 'EXPATRIATE'
    level VARCHAR NOT NULL,               -- 'national_level' through 'district'
    node_id VARCHAR NOT NULL,
    name VARCHAR NOT NULL,
    code VARCHAR,
    parent_id VARCHAR,                    -- NULL for roots
    PRIMARY KEY (taxonomy, level, node_id)
);

CREATE INDEX IF NOT EXISTS idx_nodes_parent ON hierarchy_nodes (taxonomy, level, parent_id);
"""


class SnapshotTaxonomyRepository(TaxonomyRepository):
    """
    DuckDB access for hierarchy snapshots.

    Rows are ordered by name within a level, matching the API's listing order.
    """

    name = "snapshot"

    def __init__(self, database_path: Path):
        """
        Args:
            database_path: Path to the DuckDB snapshot file
        """
        self.database_path = Path(database_path)
        self.connection = None

    @property
    def is_connected(self) -> bool:
        return self.connection is not None

    def connect(self) -> None:
        """Open the snapshot and create the schema if needed."""
        try:
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
            self.connection = duckdb.connect(str(self.database_path))
            logger.info(f"Connected to snapshot at {self.database_path}")
            self._initialize_schema()

        except Exception as e:
            logger.error(f"Failed to open snapshot: {e}")
            raise ConfigurationError(
                f"Cannot open hierarchy snapshot: {e}", config_key="TARGETING_SNAPSHOT_PATH"
            ) from e

    def _initialize_schema(self) -> None:
        tables = [t[0] for t in self.connection.execute("SHOW TABLES").fetchall()]
        if "hierarchy_nodes" not in tables:
            logger.info("Initializing hierarchy snapshot schema...")
            self.connection.execute(CREATE_SCHEMA_SQL)

    def disconnect(self) -> None:
        """Close the snapshot cleanly."""
        if self.connection:
            self.connection.close()
            self.connection = None
            logger.info("Snapshot connection closed")

    async def close(self) -> None:
        self.disconnect()

    def _require_connection(self):
        if not self.connection:
            raise RepositoryError("Snapshot not connected", retryable=False)
        return self.connection

    def insert_nodes(self, taxonomy: TaxonomyKind, nodes: list[HierarchyNode]) -> int:
        """
        Store nodes (and any attached children, recursively).

        Existing rows with the same key are replaced.

        Returns:
            Number of rows written
        """
        connection = self._require_connection()
        rows: list[tuple] = []

        def collect(node: HierarchyNode) -> None:
            rows.append(
                (taxonomy.value, node.level.value, node.id, node.name, node.code, node.parent_id)
            )
            for child in node.children or []:
                collect(child)

        for node in nodes:
            collect(node)

        if rows:
            connection.executemany(
                """
                INSERT OR REPLACE INTO hierarchy_nodes
                (taxonomy, level, node_id, name, code, parent_id)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
        logger.info(f"Stored {len(rows)} {taxonomy.value} nodes in snapshot")
        return len(rows)

    def _query_nodes(self, sql: str, params: list[Any]) -> list[HierarchyNode]:
        connection = self._require_connection()
        try:
            results = connection.execute(sql, params).fetchall()
        except duckdb.Error as e:
            logger.error(f"Snapshot query failed: {e}")
            raise RepositoryError("Snapshot query failed", retryable=False, cause=e) from e
        return [self._row_to_node(row) for row in results]

    async def list_roots(self, taxonomy: TaxonomyKind, level: Level) -> list[HierarchyNode]:
        return self._query_nodes(
            """
            SELECT level, node_id, name, code, parent_id FROM hierarchy_nodes
            WHERE taxonomy = ? AND level = ?
            ORDER BY name, node_id
            """,
            [taxonomy.value, level.value],
        )

    async def list_children(
        self, taxonomy: TaxonomyKind, parent_id: str, child_level: Level
    ) -> list[HierarchyNode]:
        return self._query_nodes(
            """
            SELECT level, node_id, name, code, parent_id FROM hierarchy_nodes
            WHERE taxonomy = ? AND level = ? AND parent_id = ?
            ORDER BY name, node_id
            """,
            [taxonomy.value, child_level.value, parent_id],
        )

    def supports_tree(self, taxonomy: TaxonomyKind) -> bool:
        return taxonomy in (TaxonomyKind.ORIGINAL, TaxonomyKind.SECTOR)

    async def fetch_full_tree(self, taxonomy: TaxonomyKind) -> list[HierarchyNode]:
        """
        Assemble the region-rooted tree for a geographic taxonomy in one pass.
        """
        if not self.supports_tree(taxonomy):
            return await super().fetch_full_tree(taxonomy)

        nodes = self._query_nodes(
            """
            SELECT level, node_id, name, code, parent_id FROM hierarchy_nodes
            WHERE taxonomy = ? AND level IN ('region', 'locality', 'admin_unit', 'district')
            ORDER BY name, node_id
            """,
            [taxonomy.value],
        )

        by_level: dict[Level, list[HierarchyNode]] = {}
        for node in nodes:
            by_level.setdefault(node.level, []).append(node)

        # Attach bottom-up so every fetched node has a concrete child list
        for parent, child in zip(GEOGRAPHIC_CHAIN[1:-1], GEOGRAPHIC_CHAIN[2:]):
            children_by_parent: dict[str, list[HierarchyNode]] = {}
            for node in by_level.get(child, []):
                children_by_parent.setdefault(node.parent_id, []).append(node)
            for node in by_level.get(parent, []):
                node.attach_children(children_by_parent.get(node.id, []))

        for node in by_level.get(Level.DISTRICT, []):
            node.attach_children([])

        return by_level.get(Level.REGION, [])

    async def get_statistics(self) -> dict[str, Any]:
        """Node counts per taxonomy and level."""
        connection = self._require_connection()
        results = connection.execute(
            """
            SELECT taxonomy, level, COUNT(*) FROM hierarchy_nodes
            GROUP BY taxonomy, level
            ORDER BY taxonomy, level
            """
        ).fetchall()

        stats: dict[str, Any] = {"total_nodes": 0, "taxonomies": {}}
        for taxonomy, level, count in results:
            stats["taxonomies"].setdefault(taxonomy, {})[level] = count
            stats["total_nodes"] += count
        return stats

    def _row_to_node(self, row: tuple) -> HierarchyNode:
        return HierarchyNode(
            level=Level(row[0]),
            id=row[1],
            name=row[2],
            code=row[3],
            parent_id=row[4],
        )
