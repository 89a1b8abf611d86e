"""
Cascading selection state machine.

A TargetSelector walks one taxonomy from its root level down to the level the
operator wants to target. Picking at a level invalidates every deeper pick,
and each pick at a non-leaf level loads the next level's children.

All transitions validate and mutate state before their first await, so two
coroutines driving the same selector cannot interleave a half-applied
transition. Fetches that resolve after the selection has moved on are
discarded by the cache.
"""

from collections.abc import Callable

from ..models.descriptor_models import (
    ExpatriateTarget,
    GlobalTarget,
    HierarchyTarget,
    TargetingDescriptor,
)
from ..models.selection_models import SelectionState
from ..models.taxonomy_models import (
    HierarchyNode,
    Level,
    TaxonomyKind,
    next_level,
    parent_level,
)
from ..observability.logging import generate_selector_id, get_logger, set_selector_context
from ..observability.metrics import record_descriptor, record_transition
from .errors import ConfigurationError, InvalidPickError, SelectionError
from .hierarchy_cache import HierarchyCache
from .normalizer import DisplayLabel, display_label, normalize
from .repository import TaxonomyRepository

logger = get_logger(__name__)

DescriptorSink = Callable[[TargetingDescriptor], None]


class TargetSelector:
    """
    Per-operator cascading selector over the hierarchy taxonomies.

    Args:
        repository: Source of hierarchy nodes (ignored when `cache` is given)
        config: Selector behaviour; loaded from the environment when omitted
        sink: Receives every confirmed descriptor
        cache: Pre-built cache, e.g. with a custom timeout
        selector_id: Identifier used in log records
    """

    def __init__(
        self,
        repository: TaxonomyRepository | None = None,
        config=None,
        sink: DescriptorSink | None = None,
        cache: HierarchyCache | None = None,
        selector_id: str | None = None,
    ):
        if config is None:
            from ..config import get_selector_config

            config = get_selector_config()

        if cache is None:
            if repository is None:
                raise ConfigurationError("TargetSelector needs a repository or a cache")
            from ..config import get_repository_config

            repo_config = get_repository_config()
            cache = HierarchyCache(
                repository,
                timeout_seconds=repo_config.request_timeout_seconds,
                prefer_tree_endpoint=repo_config.prefer_tree_endpoint,
                include_national_level=config.include_national_level,
            )
        elif cache.include_national_level != config.include_national_level:
            raise ConfigurationError(
                "Cache and selector disagree on include_national_level",
                config_key="TARGETING_INCLUDE_NATIONAL_LEVEL",
            )

        self.cache = cache
        self.sink = sink
        self.auto_confirm = config.auto_confirm
        self.selector_id = selector_id or generate_selector_id()
        self.state = SelectionState(
            taxonomy=config.default_taxonomy,
            include_national_level=config.include_national_level,
        )
        self.expanded = False
        self.last_descriptor: TargetingDescriptor | None = None
        self._generation = 0

    # --- Read-only views ---

    @property
    def taxonomy(self) -> TaxonomyKind:
        return self.state.taxonomy

    @property
    def confirm_at(self) -> Level | None:
        return self.state.confirm_at

    @property
    def roots(self) -> list[HierarchyNode]:
        """Root nodes of the active taxonomy (empty until loaded or on failure)."""
        return self.cache.roots(self.state.taxonomy)

    @property
    def error(self) -> str | None:
        """Surfaced load error for the active taxonomy, if any."""
        return self.cache.error(self.state.taxonomy)

    @property
    def label(self) -> DisplayLabel:
        return display_label(self.state)

    def options(self, level: Level) -> list[HierarchyNode]:
        """
        Nodes the operator can pick at `level` given the current state.

        The root level offers the roots; deeper levels offer the loaded
        children of the parent slot, or nothing while that slot is unset.
        """
        chain = self.state.chain
        if level not in chain:
            return []
        parent = parent_level(chain, level)
        if parent is None:
            return self.roots
        parent_node = self.state.slot(parent)
        if parent_node is None:
            return []
        return list(parent_node.children or [])

    def selected(self, level: Level) -> HierarchyNode | None:
        return self.state.slot(level)

    # --- Internal helpers ---

    def _context(self, operation: str) -> None:
        set_selector_context(
            selector_id=self.selector_id,
            taxonomy=self.state.taxonomy.value,
            operation=operation,
        )

    def _roots_wanted(self, taxonomy: TaxonomyKind) -> Callable[[], bool]:
        generation = self._generation

        def still_wanted() -> bool:
            return self._generation == generation and self.state.taxonomy == taxonomy

        return still_wanted

    def _children_wanted(self, taxonomy: TaxonomyKind, level: Level, node: HierarchyNode):
        generation = self._generation

        def still_wanted() -> bool:
            return (
                self._generation == generation
                and self.state.taxonomy == taxonomy
                and self.state.slot(level) is node
            )

        return still_wanted

    async def _load_roots(self, force: bool = False) -> list[HierarchyNode]:
        taxonomy = self.state.taxonomy
        if taxonomy == TaxonomyKind.GLOBAL:
            return []
        if not force and self.cache.roots_loaded(taxonomy):
            return self.cache.roots(taxonomy)
        return await self.cache.load_roots(taxonomy, still_wanted=self._roots_wanted(taxonomy))

    async def _load_children(self, level: Level, node: HierarchyNode) -> list[HierarchyNode]:
        taxonomy = self.state.taxonomy
        child_level = next_level(self.state.chain, level)
        if child_level is None:
            return []
        return await self.cache.load_children(
            taxonomy,
            node,
            child_level,
            still_wanted=self._children_wanted(taxonomy, level, node),
        )

    def _validate_pick(self, level: Level, node: HierarchyNode) -> None:
        chain = self.state.chain
        if level not in chain:
            raise InvalidPickError(
                f"{level.value} is not a level of {self.state.taxonomy.value}",
                level=level.value,
                node_id=node.id,
            )
        if node.level != level:
            raise InvalidPickError(
                f"Node {node.id} is a {node.level.value}, not a {level.value}",
                level=level.value,
                node_id=node.id,
            )

        parent = parent_level(chain, level)
        if parent is None:
            # Node ids are only unique within a taxonomy
            if not any(root is node for root in self.roots):
                raise InvalidPickError(
                    f"Node {node.id} is not a loaded {self.state.taxonomy.value} {level.value}",
                    level=level.value,
                    node_id=node.id,
                )
            return
        parent_node = self.state.slot(parent)
        if parent_node is None:
            raise InvalidPickError(
                f"Cannot pick a {level.value} before a {parent.value}",
                level=level.value,
                node_id=node.id,
            )
        if node.parent_id != parent_node.id:
            raise InvalidPickError(
                f"Node {node.id} does not belong to {parent.value} {parent_node.id}",
                level=level.value,
                node_id=node.id,
                details={"expected_parent": parent_node.id, "actual_parent": node.parent_id},
            )

    def _set_slot(self, level: Level, node: HierarchyNode) -> None:
        self.state.slots[self.state.taxonomy][level] = node
        self.state.clear_below(level)

    def _emit(self) -> TargetingDescriptor:
        descriptor = normalize(self.state)
        self.last_descriptor = descriptor
        self.expanded = False

        level = getattr(descriptor, "level", None)
        record_descriptor(descriptor.kind.value, level.value if level else None)
        logger.info(
            f"Emitting {descriptor.kind.value} target",
            data=descriptor.to_dict(),
        )
        if self.sink is not None:
            self.sink(descriptor)
        return descriptor

    # --- Transitions ---

    async def expand(self) -> list[HierarchyNode]:
        """Open the picker and make sure the active taxonomy's roots are loaded."""
        self._context("expand")
        self.expanded = True
        return await self._load_roots()

    def collapse(self) -> None:
        self.expanded = False

    async def select_taxonomy(self, kind: TaxonomyKind | str) -> list[HierarchyNode]:
        """
        Switch the active taxonomy.

        Every taxonomy's picks are cleared, not only the active one, and the
        confirm-at marker moves to the new taxonomy's root level. Returns the
        new taxonomy's roots.
        """
        kind = TaxonomyKind(kind)

        self._generation += 1
        self.state.taxonomy = kind
        self.state.clear_all()
        chain = self.state.chain
        self.state.confirm_at = chain[0] if chain else None

        self._context("select_taxonomy")
        record_transition("select_taxonomy", applied=True)
        logger.debug(f"Switched to {kind.value}", data={"taxonomy": kind.value})

        return await self._load_roots()

    async def pick(self, level: Level | str, node: HierarchyNode) -> TargetingDescriptor | None:
        """
        Choose `node` at `level`.

        Deeper slots are cleared, including when the same node is picked
        again. The next level's children are loaded unless `level` is a
        leaf. With auto-confirm on, picking at the confirm-at level emits and
        returns the descriptor; otherwise returns None.

        Raises:
            InvalidPickError: If the level or parent linkage does not match
        """
        level = Level(level)
        self._context("pick")

        try:
            self._validate_pick(level, node)
        except InvalidPickError as e:
            record_transition("pick", applied=False)
            logger.warning(f"Rejected pick: {e.message}", data=e.details)
            raise

        self._set_slot(level, node)
        record_transition("pick", applied=True)
        logger.debug(
            f"Picked {level.value} {node.id}",
            data={"level": level.value, "node_id": node.id},
        )

        descriptor = None
        if self.auto_confirm and level == self.state.confirm_at:
            descriptor = self._emit()

        await self._load_children(level, node)
        return descriptor

    def change_level_target(self, level: Level | str) -> None:
        """
        Move the confirm-at marker within the active chain. Slots are kept.

        Raises:
            InvalidPickError: If `level` is not part of the active chain
        """
        level = Level(level)
        self._context("change_level_target")

        if level not in self.state.chain:
            record_transition("change_level_target", applied=False)
            raise InvalidPickError(
                f"{level.value} is not a level of {self.state.taxonomy.value}",
                level=level.value,
            )

        self.state.confirm_at = level
        record_transition("change_level_target", applied=True)

    def confirm(self) -> TargetingDescriptor:
        """
        Normalize the current selection and emit it to the sink.

        Raises:
            PrematureConfirmError: If the confirm-at slot is unset
            SelectionInvariantError: If the selection has a gap
        """
        self._context("confirm")
        try:
            descriptor = self._emit()
        except SelectionError as e:
            record_transition("confirm", applied=False)
            logger.info(f"Rejected confirm: {e.message}", data=e.details)
            raise
        record_transition("confirm", applied=True)
        return descriptor

    async def retry(self) -> list[HierarchyNode]:
        """
        Clear the surfaced error and reload the active taxonomy's roots.

        When a child load had failed below the deepest pick, that load is
        retried as well.
        """
        taxonomy = self.state.taxonomy
        self._context("retry")
        self.cache.clear_error(taxonomy)
        record_transition("retry", applied=True)

        roots = await self._load_roots(force=True)

        deepest = self.state.deepest_set()
        if deepest is not None:
            node = self.state.slot(deepest)
            if not node.children_loaded:
                await self._load_children(deepest, node)
        return roots

    async def restore(self, descriptor: TargetingDescriptor) -> bool:
        """
        Re-establish a previously emitted descriptor without emitting it.

        Walks the cache from the roots, fetching children as needed. The walk
        stops at the first entry that cannot be found, leaving the slots set
        so far. Returns True when every entry was restored.
        """
        await self.select_taxonomy(descriptor.kind)
        self._context("restore")
        generation = self._generation

        if isinstance(descriptor, GlobalTarget):
            return True

        if isinstance(descriptor, ExpatriateTarget):
            refs = [(Level.EXPATRIATE_REGION, descriptor.expatriate_region_id)]
        elif isinstance(descriptor, HierarchyTarget):
            refs = [(ref.level, ref.id) for ref in descriptor.chain if ref.level in self.state.chain]
        else:
            raise TypeError(f"Cannot restore {type(descriptor).__name__}")

        chain = self.state.chain
        if not refs or refs[0][0] != chain[0]:
            logger.warning(
                "Descriptor does not start at the selector's root level",
                data={"taxonomy": descriptor.kind.value},
            )
            return False

        candidates = self.roots
        for index, (level, node_id) in enumerate(refs):
            if self._generation != generation:
                return False

            node = next((c for c in candidates if c.id == node_id), None)
            if node is None:
                logger.info(
                    f"Could not restore {level.value} {node_id}",
                    data={"level": level.value, "node_id": node_id},
                )
                return False

            self._set_slot(level, node)
            self.state.confirm_at = level
            if index + 1 < len(refs):
                candidates = await self._load_children(level, node)

        record_transition("restore", applied=True)
        return self._generation == generation
