"""
Hierarchy cache: lazily fetched, per-taxonomy holding area for tree data.

The cache is the only component that performs I/O. Every repository failure
(transport error, malformed payload, timeout) is absorbed here into an empty
node list plus one surfaced error message, so the selector stays usable in a
degraded state instead of failing.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from functools import partial

from ..models.taxonomy_models import (
    HierarchyNode,
    Level,
    TaxonomyKind,
    chain_for,
)
from ..observability.logging import get_logger
from ..observability.metrics import (
    FETCH_DURATION,
    Timer,
    record_fallback,
    record_fetch,
    record_stale_result,
    update_cached_nodes,
)
from .errors import FetchTimeoutError, MalformedPayloadError, with_fallback
from .repository import TaxonomyRepository

logger = get_logger(__name__)

# Shown when a fetch fails; the host renders it next to a retry control
LOAD_FAILED_MESSAGE = "Failed to load hierarchy data"

StillWanted = Callable[[], bool]


@dataclass
class TaxonomyCache:
    """Loaded portion of one taxonomy's tree."""

    roots: list[HierarchyNode] = field(default_factory=list)
    roots_loaded: bool = False
    error: str | None = None

    def node_count(self) -> int:
        count = 0
        stack = list(self.roots)
        while stack:
            node = stack.pop()
            count += 1
            stack.extend(node.children or [])
        return count


class HierarchyCache:
    """
    Per-selector cache of taxonomy trees.

    Args:
        repository: Source of hierarchy nodes
        timeout_seconds: Limit applied to every fetch
        prefer_tree_endpoint: Try the pre-nested tree before flat root listings
        include_national_level: Geographic chains start at the national level
    """

    def __init__(
        self,
        repository: TaxonomyRepository,
        timeout_seconds: float = 10.0,
        prefer_tree_endpoint: bool = True,
        include_national_level: bool = False,
    ):
        self.repository = repository
        self.timeout_seconds = timeout_seconds
        self.prefer_tree_endpoint = prefer_tree_endpoint
        self.include_national_level = include_national_level
        self._caches: dict[TaxonomyKind, TaxonomyCache] = {
            kind: TaxonomyCache() for kind in TaxonomyKind
        }

    # --- Accessors ---

    def roots(self, taxonomy: TaxonomyKind) -> list[HierarchyNode]:
        return list(self._caches[taxonomy].roots)

    def roots_loaded(self, taxonomy: TaxonomyKind) -> bool:
        return self._caches[taxonomy].roots_loaded

    def error(self, taxonomy: TaxonomyKind) -> str | None:
        return self._caches[taxonomy].error

    def clear_error(self, taxonomy: TaxonomyKind) -> None:
        self._caches[taxonomy].error = None

    def find(self, taxonomy: TaxonomyKind, level: Level, node_id: str) -> HierarchyNode | None:
        """Find an already-loaded node by level and id."""
        stack = list(self._caches[taxonomy].roots)
        while stack:
            node = stack.pop()
            if node.level == level and node.id == node_id:
                return node
            stack.extend(node.children or [])
        return None

    def clear(self, taxonomy: TaxonomyKind | None = None) -> None:
        """Drop cached data for one taxonomy, or for all of them."""
        kinds = [taxonomy] if taxonomy else list(TaxonomyKind)
        for kind in kinds:
            self._caches[kind] = TaxonomyCache()
            update_cached_nodes(kind.value, 0)

    # --- Loading ---

    async def _fetch(
        self, taxonomy: TaxonomyKind, operation: str, call: Callable[[], Awaitable]
    ) -> list[HierarchyNode]:
        """Run one repository call under the timeout, recording metrics."""
        with Timer(FETCH_DURATION, {"taxonomy": taxonomy.value, "operation": operation}):
            try:
                nodes = await asyncio.wait_for(call(), timeout=self.timeout_seconds)
            except asyncio.TimeoutError as e:
                record_fetch(taxonomy.value, operation, "timeout")
                raise FetchTimeoutError(operation, self.timeout_seconds) from e
            except Exception:
                record_fetch(taxonomy.value, operation, "failure")
                raise

        if not isinstance(nodes, list):
            record_fetch(taxonomy.value, operation, "failure")
            raise MalformedPayloadError(
                f"{operation} returned {type(nodes).__name__}, expected a list"
            )
        record_fetch(taxonomy.value, operation, "success")
        return nodes

    async def _fetch_roots(self, taxonomy: TaxonomyKind, root_level: Level) -> list[HierarchyNode]:
        flat = partial(
            self._fetch,
            taxonomy,
            "list_roots",
            partial(self.repository.list_roots, taxonomy, root_level),
        )
        if (
            not self.prefer_tree_endpoint
            or taxonomy not in (TaxonomyKind.ORIGINAL, TaxonomyKind.SECTOR)
            or not self.repository.supports_tree(taxonomy)
        ):
            return await flat()

        async def tree() -> list[HierarchyNode]:
            nodes = await self._fetch(
                taxonomy, "fetch_full_tree", partial(self.repository.fetch_full_tree, taxonomy)
            )
            if any(node.level != root_level for node in nodes):
                raise MalformedPayloadError(
                    f"Tree for {taxonomy.value} is not rooted at {root_level.value}"
                )
            return nodes

        nodes, fallback_used = await with_fallback(tree, flat, "flat_roots")
        if fallback_used:
            record_fallback(taxonomy.value, "flat")
        return nodes

    async def load_roots(
        self, taxonomy: TaxonomyKind, still_wanted: StillWanted | None = None
    ) -> list[HierarchyNode]:
        """
        Load the top level of a taxonomy.

        Failures set the taxonomy's error message and yield an empty list, or
        the previously loaded roots when a reload fails.
        If `still_wanted` returns False when the fetch resolves, the result is
        discarded and the cache left untouched.
        """
        chain = chain_for(taxonomy, self.include_national_level)
        if not chain:
            return []

        cache = self._caches[taxonomy]
        root_level = chain[0]

        try:
            nodes = await self._fetch_roots(taxonomy, root_level)
        except Exception as e:
            # Adapters outside this package may raise anything, not only RepositoryError
            nodes = None
            failure = e

        if still_wanted is not None and not still_wanted():
            record_stale_result(taxonomy.value, "load_roots")
            logger.debug(
                f"Discarding stale {taxonomy.value} roots", data={"taxonomy": taxonomy.value}
            )
            return []

        if nodes is None:
            record_fallback(taxonomy.value, "empty")
            logger.warning(
                f"Could not load {taxonomy.value} roots",
                data={"taxonomy": taxonomy.value, "error": str(failure)[:200]},
            )
            cache.error = LOAD_FAILED_MESSAGE
            if cache.roots_loaded:
                # Slots may still point at these nodes
                return list(cache.roots)
            cache.roots = []
            update_cached_nodes(taxonomy.value, 0)
            return []

        cache.roots = nodes
        cache.roots_loaded = True
        cache.error = None
        update_cached_nodes(taxonomy.value, cache.node_count())
        logger.info(
            f"Loaded {len(nodes)} {taxonomy.value} roots",
            data={"taxonomy": taxonomy.value, "level": root_level.value, "count": len(nodes)},
        )
        return list(nodes)

    async def load_children(
        self,
        taxonomy: TaxonomyKind,
        node: HierarchyNode,
        child_level: Level,
        still_wanted: StillWanted | None = None,
    ) -> list[HierarchyNode]:
        """
        Load the next level below `node` and attach it to the node.

        Nodes whose children are already attached are answered from memory.
        Same absorb-on-failure and stale-discard contract as load_roots.
        """
        if node.children_loaded:
            return list(node.children)

        cache = self._caches[taxonomy]

        try:
            children = await self._fetch(
                taxonomy,
                "list_children",
                partial(self.repository.list_children, taxonomy, node.id, child_level),
            )
        except Exception as e:
            children = None
            failure = e

        if still_wanted is not None and not still_wanted():
            record_stale_result(taxonomy.value, "load_children")
            logger.debug(
                f"Discarding stale children of {node.id}",
                data={"taxonomy": taxonomy.value, "node_id": node.id},
            )
            return []

        if children is None:
            logger.warning(
                f"Could not load {child_level.value} children of {node.id}",
                data={"taxonomy": taxonomy.value, "error": str(failure)[:200]},
            )
            cache.error = LOAD_FAILED_MESSAGE
            return []

        node.attach_children(children)
        cache.error = None
        update_cached_nodes(taxonomy.value, cache.node_count())
        return list(children)
