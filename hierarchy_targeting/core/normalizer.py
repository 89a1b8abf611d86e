"""
Selection normalizer and display labels.

Pure functions over SelectionState. The normalizer is the only place a
TargetingDescriptor is built from selection state, so every consumer sees the
same shape for the same selection.
"""

from dataclasses import dataclass
from enum import Enum

from ..models.descriptor_models import (
    ExpatriateTarget,
    GlobalTarget,
    HierarchyTarget,
    LevelRef,
    TargetingDescriptor,
)
from ..models.selection_models import SelectionState
from ..models.taxonomy_models import Level, TaxonomyKind
from .errors import PrematureConfirmError

TAXONOMY_LABELS: dict[TaxonomyKind, str] = {
    TaxonomyKind.ORIGINAL: "Geographic",
    TaxonomyKind.EXPATRIATE: "Expatriates",
    TaxonomyKind.SECTOR: "Sector",
    TaxonomyKind.GLOBAL: "Global",
}

LEVEL_LABELS: dict[Level, str] = {
    Level.NATIONAL_LEVEL: "National level",
    Level.REGION: "Region",
    Level.LOCALITY: "Locality",
    Level.ADMIN_UNIT: "Administrative unit",
    Level.DISTRICT: "District",
    Level.EXPATRIATE_REGION: "Expatriate region",
}

PLACEHOLDER_TEXT = "Select a target"
GLOBAL_TEXT = "Everyone"


class LabelKind(str, Enum):
    """What a display label summarizes; hosts map this to an icon."""

    PLACEHOLDER = "placeholder"
    GLOBAL = "global"
    EXPATRIATE = "expatriate"
    NATIONAL_LEVEL = "national_level"
    REGION = "region"
    LOCALITY = "locality"
    ADMIN_UNIT = "admin_unit"
    DISTRICT = "district"


_LEVEL_LABEL_KINDS: dict[Level, LabelKind] = {
    Level.NATIONAL_LEVEL: LabelKind.NATIONAL_LEVEL,
    Level.REGION: LabelKind.REGION,
    Level.LOCALITY: LabelKind.LOCALITY,
    Level.ADMIN_UNIT: LabelKind.ADMIN_UNIT,
    Level.DISTRICT: LabelKind.DISTRICT,
    Level.EXPATRIATE_REGION: LabelKind.EXPATRIATE,
}


@dataclass(frozen=True)
class DisplayLabel:
    """Human-readable summary of the current selection."""

    kind: LabelKind
    text: str
    complete: bool = False  # True when the confirm-at slot is set

    def __str__(self) -> str:
        return self.text


def normalize(state: SelectionState) -> TargetingDescriptor:
    """
    Map selection state to its Targeting Descriptor.

    The chain carried by the descriptor runs from the root of the active
    taxonomy down to the confirm-at level; deeper picks are ignored.

    Raises:
        SelectionInvariantError: If the active taxonomy's slots have a gap
        PrematureConfirmError: If the confirm-at slot is unset
    """
    if state.taxonomy == TaxonomyKind.GLOBAL:
        return GlobalTarget()

    state.check_invariant()

    level = state.confirm_at
    if level is None or level not in state.chain:
        raise PrematureConfirmError(state.taxonomy.value, level.value if level else None)

    node = state.slot(level)
    if node is None:
        raise PrematureConfirmError(state.taxonomy.value, level.value)

    if state.taxonomy == TaxonomyKind.EXPATRIATE:
        return ExpatriateTarget(expatriate_region_id=node.id, expatriate_region_name=node.name)

    chain = state.chain
    refs = []
    for chain_level in chain[: chain.index(level) + 1]:
        chosen = state.slot(chain_level)
        refs.append(LevelRef(level=chain_level, id=chosen.id, name=chosen.name))

    return HierarchyTarget(kind=state.taxonomy, chain=tuple(refs))


def display_label(state: SelectionState) -> DisplayLabel:
    """
    Summarize the deepest chosen node, up to the confirm-at level.

    A complete selection reads "<Level> <name>"; a partial walk reads as a
    breadcrumb of the names chosen so far.
    """
    if state.taxonomy == TaxonomyKind.GLOBAL:
        return DisplayLabel(kind=LabelKind.GLOBAL, text=GLOBAL_TEXT, complete=True)

    chain = state.chain
    limit = chain.index(state.confirm_at) + 1 if state.confirm_at in chain else len(chain)
    chosen = [
        (level, state.slot(level))
        for level in chain[:limit]
        if state.slot(level) is not None
    ]

    if not chosen:
        return DisplayLabel(kind=LabelKind.PLACEHOLDER, text=PLACEHOLDER_TEXT)

    deepest_level, deepest_node = chosen[-1]
    complete = deepest_level == state.confirm_at

    if state.taxonomy == TaxonomyKind.EXPATRIATE:
        text = f"{TAXONOMY_LABELS[TaxonomyKind.EXPATRIATE]} - {deepest_node.name}"
    elif complete:
        text = f"{LEVEL_LABELS[deepest_level]} {deepest_node.name}"
    else:
        text = " - ".join(node.name for _, node in chosen)

    return DisplayLabel(kind=_LEVEL_LABEL_KINDS[deepest_level], text=text, complete=complete)


def describe(descriptor: TargetingDescriptor) -> str:
    """Breadcrumb text for an emitted descriptor."""
    if isinstance(descriptor, GlobalTarget):
        return TAXONOMY_LABELS[TaxonomyKind.GLOBAL]

    if isinstance(descriptor, ExpatriateTarget):
        label = TAXONOMY_LABELS[TaxonomyKind.EXPATRIATE]
        if descriptor.expatriate_region_name:
            return f"{label} - {descriptor.expatriate_region_name}"
        return label

    names = " - ".join(ref.name for ref in descriptor.chain if ref.name)
    if descriptor.kind == TaxonomyKind.SECTOR:
        label = TAXONOMY_LABELS[TaxonomyKind.SECTOR]
        return f"{label} - {names}" if names else label
    return names or TAXONOMY_LABELS[TaxonomyKind.ORIGINAL]
