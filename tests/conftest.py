"""
Pytest fixtures for hierarchy targeting tests.

Provides an in-memory fake repository, sample taxonomy data, and a temporary
DuckDB snapshot.
"""

import asyncio
import os
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from hierarchy_targeting.config import SelectorConfig, reset_config
from hierarchy_targeting.core.errors import RepositoryError
from hierarchy_targeting.core.hierarchy_cache import HierarchyCache
from hierarchy_targeting.core.repository import TaxonomyRepository
from hierarchy_targeting.core.selection import TargetSelector
from hierarchy_targeting.core.snapshot_repository import SnapshotTaxonomyRepository
from hierarchy_targeting.models.taxonomy_models import HierarchyNode, Level, TaxonomyKind


# --- Sample Data ---

# (taxonomy, level, id, name, parent_id)
SAMPLE_NODES = [
    (TaxonomyKind.ORIGINAL, Level.NATIONAL_LEVEL, "N1", "National", None),
    (TaxonomyKind.ORIGINAL, Level.REGION, "R1", "Region One", "N1"),
    (TaxonomyKind.ORIGINAL, Level.REGION, "R2", "Region Two", "N1"),
    (TaxonomyKind.ORIGINAL, Level.LOCALITY, "L1", "Locality One", "R1"),
    (TaxonomyKind.ORIGINAL, Level.LOCALITY, "L2", "Locality Two", "R1"),
    (TaxonomyKind.ORIGINAL, Level.LOCALITY, "L3", "Locality Three", "R2"),
    (TaxonomyKind.ORIGINAL, Level.ADMIN_UNIT, "A1", "Unit One", "L1"),
    (TaxonomyKind.ORIGINAL, Level.DISTRICT, "D1", "District One", "A1"),
    (TaxonomyKind.SECTOR, Level.NATIONAL_LEVEL, "SN1", "Sector National", None),
    (TaxonomyKind.SECTOR, Level.REGION, "SR1", "Sector Region", "SN1"),
    (TaxonomyKind.SECTOR, Level.LOCALITY, "SL1", "Sector Locality", "SR1"),
    (TaxonomyKind.EXPATRIATE, Level.EXPATRIATE_REGION, "E1", "Gulf", None),
    (TaxonomyKind.EXPATRIATE, Level.EXPATRIATE_REGION, "E2", "Europe", None),
]


def make_node(taxonomy: TaxonomyKind, node_id: str) -> HierarchyNode:
    """Build a fresh node from the sample data."""
    for kind, level, nid, name, parent_id in SAMPLE_NODES:
        if kind == taxonomy and nid == node_id:
            return HierarchyNode(id=nid, name=name, level=level, parent_id=parent_id)
    raise KeyError(node_id)


class FakeRepository(TaxonomyRepository):
    """
    In-memory repository over SAMPLE_NODES.

    `fail` makes every call raise; `fail_taxonomies` limits failures to some
    taxonomies. A call whose parent id (or "roots:<TAXONOMY>") is in `gates`
    waits on that event before answering, which lets tests resolve fetches
    out of order.
    """

    name = "fake"

    def __init__(self, nodes=None):
        self.nodes = list(nodes if nodes is not None else SAMPLE_NODES)
        self.fail = False
        self.fail_taxonomies: set[TaxonomyKind] = set()
        self.gates: dict[str, asyncio.Event] = {}
        self.delay: float = 0.0
        self.calls: list[tuple] = []

    def _check(self, taxonomy: TaxonomyKind) -> None:
        if self.fail or taxonomy in self.fail_taxonomies:
            raise RepositoryError(f"{taxonomy.value} unavailable")

    def _build(self, rows) -> list[HierarchyNode]:
        return [
            HierarchyNode(id=nid, name=name, level=level, parent_id=parent_id)
            for _, level, nid, name, parent_id in rows
        ]

    async def list_roots(self, taxonomy, level):
        self.calls.append(("list_roots", taxonomy, level))
        gate = self.gates.get(f"roots:{taxonomy.value}")
        if gate is not None:
            await gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        self._check(taxonomy)
        return self._build(r for r in self.nodes if r[0] == taxonomy and r[1] == level)

    async def list_children(self, taxonomy, parent_id, child_level):
        self.calls.append(("list_children", taxonomy, parent_id, child_level))
        if parent_id in self.gates:
            await self.gates[parent_id].wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        self._check(taxonomy)
        return self._build(
            r
            for r in self.nodes
            if r[0] == taxonomy and r[1] == child_level and r[4] == parent_id
        )

    def count(self, operation: str) -> int:
        return sum(1 for call in self.calls if call[0] == operation)


# --- Fixtures ---


@pytest.fixture
def fake_repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def selector_config() -> SelectorConfig:
    """Selector defaults, independent of the environment."""
    return SelectorConfig(
        default_taxonomy=TaxonomyKind.ORIGINAL,
        include_national_level=False,
        auto_confirm=True,
    )


@pytest.fixture
def emitted() -> list:
    """Collects descriptors passed to the sink."""
    return []


@pytest.fixture
def selector(fake_repository, selector_config, emitted) -> TargetSelector:
    cache = HierarchyCache(fake_repository, timeout_seconds=1.0, prefer_tree_endpoint=False)
    return TargetSelector(config=selector_config, sink=emitted.append, cache=cache)


@pytest.fixture
def temp_db_path() -> Generator[Path, None, None]:
    """Provide a temporary snapshot path that's cleaned up after tests."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir) / "test_hierarchy.duckdb"


@pytest.fixture
def empty_snapshot(temp_db_path: Path) -> Generator[SnapshotTaxonomyRepository, None, None]:
    """Provide an empty snapshot with schema initialized."""
    repo = SnapshotTaxonomyRepository(temp_db_path)
    repo.connect()

    yield repo

    repo.disconnect()


@pytest.fixture
def populated_snapshot(temp_db_path: Path) -> Generator[SnapshotTaxonomyRepository, None, None]:
    """Provide a snapshot populated with SAMPLE_NODES."""
    repo = SnapshotTaxonomyRepository(temp_db_path)
    repo.connect()

    for taxonomy in (TaxonomyKind.ORIGINAL, TaxonomyKind.SECTOR, TaxonomyKind.EXPATRIATE):
        nodes = [
            HierarchyNode(id=nid, name=name, level=level, parent_id=parent_id)
            for kind, level, nid, name, parent_id in SAMPLE_NODES
            if kind == taxonomy
        ]
        repo.insert_nodes(taxonomy, nodes)

    yield repo

    repo.disconnect()


# --- Environment Fixtures ---

ENV_VARS = [
    "TARGETING_API_BASE_URL",
    "TARGETING_API_TOKEN",
    "TARGETING_REQUEST_TIMEOUT_SECONDS",
    "TARGETING_PREFER_TREE_ENDPOINT",
    "TARGETING_SNAPSHOT_PATH",
    "TARGETING_DEFAULT_TAXONOMY",
    "TARGETING_INCLUDE_NATIONAL_LEVEL",
    "TARGETING_AUTO_CONFIRM",
    "TARGETING_LOG_LEVEL",
    "TARGETING_LOG_FORMAT",
    "TARGETING_LOG_FILE",
    "TARGETING_SERVICE_NAME",
    "TARGETING_ENVIRONMENT",
]


@pytest.fixture
def clean_env():
    """Ensure clean environment variables and a fresh config singleton."""
    original_env = {}
    for var in ENV_VARS:
        original_env[var] = os.environ.get(var)
        if var in os.environ:
            del os.environ[var]
    reset_config()

    yield

    for var, value in original_env.items():
        if value is not None:
            os.environ[var] = value
        elif var in os.environ:
            del os.environ[var]
    reset_config()


@pytest.fixture
def node_factory():
    """Build detached sample nodes by taxonomy and id."""
    return make_node
