"""
Selection state: which node is chosen at each level of each taxonomy.
"""

from dataclasses import dataclass, field

from ..core.errors import SelectionInvariantError
from .taxonomy_models import HierarchyNode, Level, TaxonomyKind, chain_for


def _empty_slots(include_national_level: bool) -> dict[TaxonomyKind, dict[Level, HierarchyNode | None]]:
    return {
        kind: {level: None for level in chain_for(kind, include_national_level)}
        for kind in TaxonomyKind
    }


@dataclass
class SelectionState:
    """
    One slot per level for every taxonomy, plus the active taxonomy and the
    level the operator wants to stop at.

    Invariant: within a taxonomy, a set slot implies every shallower slot is
    set. The selector maintains it; check_invariant() verifies it.
    """

    taxonomy: TaxonomyKind = TaxonomyKind.ORIGINAL
    include_national_level: bool = False
    slots: dict[TaxonomyKind, dict[Level, HierarchyNode | None]] = field(default_factory=dict)
    confirm_at: Level | None = None

    def __post_init__(self):
        if not self.slots:
            self.slots = _empty_slots(self.include_national_level)
        if self.confirm_at is None and self.chain:
            self.confirm_at = self.chain[0]

    @property
    def chain(self) -> tuple[Level, ...]:
        """Level chain of the active taxonomy."""
        return chain_for(self.taxonomy, self.include_national_level)

    def chain_of(self, taxonomy: TaxonomyKind) -> tuple[Level, ...]:
        return chain_for(taxonomy, self.include_national_level)

    def slot(self, level: Level, taxonomy: TaxonomyKind | None = None) -> HierarchyNode | None:
        return self.slots[taxonomy or self.taxonomy].get(level)

    def set_levels(self, taxonomy: TaxonomyKind | None = None) -> list[Level]:
        """Levels holding a node, in chain order."""
        kind = taxonomy or self.taxonomy
        return [level for level in self.chain_of(kind) if self.slots[kind].get(level) is not None]

    def deepest_set(self, taxonomy: TaxonomyKind | None = None) -> Level | None:
        levels = self.set_levels(taxonomy)
        return levels[-1] if levels else None

    def clear_all(self) -> None:
        self.slots = _empty_slots(self.include_national_level)

    def clear_below(self, level: Level) -> None:
        """Unset every slot deeper than `level` in the active taxonomy."""
        chain = self.chain
        for deeper in chain[chain.index(level) + 1 :]:
            self.slots[self.taxonomy][deeper] = None

    def check_invariant(self, taxonomy: TaxonomyKind | None = None) -> None:
        """
        Raises:
            SelectionInvariantError: If a set slot sits below an unset one
        """
        kind = taxonomy or self.taxonomy
        missing: Level | None = None
        for level in self.chain_of(kind):
            if self.slots[kind].get(level) is None:
                missing = missing or level
            elif missing is not None:
                raise SelectionInvariantError(kind.value, missing.value, level.value)

    def snapshot(self) -> dict[str, dict[str, str | None]]:
        """Plain view of all slots by node id, for logging and comparisons."""
        return {
            kind.value: {
                level.value: (node.id if node is not None else None)
                for level, node in levels.items()
            }
            for kind, levels in self.slots.items()
        }
