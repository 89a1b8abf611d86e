"""
Data models for hierarchy targeting.
"""

from .descriptor_models import (
    ExpatriateTarget,
    GlobalTarget,
    HierarchyTarget,
    LevelRef,
    TargetingDescriptor,
    descriptor_from_dict,
)
from .selection_models import SelectionState
from .taxonomy_models import (
    EXPATRIATE_CHAIN,
    GEOGRAPHIC_CHAIN,
    HierarchyNode,
    Level,
    TaxonomyKind,
    chain_for,
    is_leaf,
    next_level,
    parent_level,
    parse_nodes,
)

__all__ = [
    # Taxonomy models
    "TaxonomyKind",
    "Level",
    "HierarchyNode",
    "GEOGRAPHIC_CHAIN",
    "EXPATRIATE_CHAIN",
    "chain_for",
    "next_level",
    "parent_level",
    "is_leaf",
    "parse_nodes",
    # Selection state
    "SelectionState",
    # Descriptor models
    "LevelRef",
    "GlobalTarget",
    "ExpatriateTarget",
    "HierarchyTarget",
    "TargetingDescriptor",
    "descriptor_from_dict",
]
