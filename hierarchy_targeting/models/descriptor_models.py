"""
Targeting descriptors: the normalized output of a completed selection.

A descriptor is a tagged union over the taxonomy kind. Every consumer that
scopes content to part of the organization receives one of these, never the
selector's internal state.
"""

from dataclasses import dataclass
from typing import Any, Union

from ..core.errors import MalformedPayloadError
from .taxonomy_models import GEOGRAPHIC_CHAIN, Level, TaxonomyKind


@dataclass(frozen=True)
class LevelRef:
    """One resolved entry of a target chain."""

    level: Level
    id: str
    name: str


@dataclass(frozen=True)
class GlobalTarget:
    """Target everyone. Carries no further fields."""

    kind: TaxonomyKind = TaxonomyKind.GLOBAL

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value}


@dataclass(frozen=True)
class ExpatriateTarget:
    """Target one expatriate region."""

    expatriate_region_id: str
    expatriate_region_name: str
    kind: TaxonomyKind = TaxonomyKind.EXPATRIATE

    @property
    def level(self) -> Level:
        return Level.EXPATRIATE_REGION

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "level": self.level.value,
            "expatriate_region_id": self.expatriate_region_id,
            "expatriate_region_name": self.expatriate_region_name,
        }


@dataclass(frozen=True)
class HierarchyTarget:
    """
    Target a node of the ORIGINAL or SECTOR taxonomy.

    The chain always runs from the root to the target level, because
    consumers scope-match against any ancestor, not just the leaf.
    """

    kind: TaxonomyKind
    chain: tuple[LevelRef, ...]

    def __post_init__(self):
        if self.kind not in (TaxonomyKind.ORIGINAL, TaxonomyKind.SECTOR):
            raise ValueError(f"HierarchyTarget does not support {self.kind.value}")
        if not self.chain:
            raise ValueError("HierarchyTarget requires at least one level")
        positions = [GEOGRAPHIC_CHAIN.index(ref.level) for ref in self.chain]
        if positions != list(range(positions[0], positions[0] + len(positions))):
            raise ValueError("HierarchyTarget chain must be contiguous and ordered")

    @property
    def level(self) -> Level:
        """The deepest level of the chain, i.e. the target itself."""
        return self.chain[-1].level

    @property
    def target(self) -> LevelRef:
        return self.chain[-1]

    def ref_for(self, level: Level) -> LevelRef | None:
        for ref in self.chain:
            if ref.level == level:
                return ref
        return None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"kind": self.kind.value, "level": self.level.value}
        for ref in self.chain:
            result[f"{ref.level.value}_id"] = ref.id
            result[f"{ref.level.value}_name"] = ref.name
        return result


TargetingDescriptor = Union[GlobalTarget, ExpatriateTarget, HierarchyTarget]


def descriptor_from_dict(data: dict[str, Any]) -> TargetingDescriptor:
    """
    Parse the flattened `to_dict()` form back into a descriptor.

    Raises:
        MalformedPayloadError: If the kind is unknown or required fields are missing
    """
    try:
        kind = TaxonomyKind(data.get("kind"))
    except ValueError as e:
        raise MalformedPayloadError(
            f"Unknown taxonomy kind: {data.get('kind')!r}", cause=e
        ) from e

    if kind == TaxonomyKind.GLOBAL:
        return GlobalTarget()

    if kind == TaxonomyKind.EXPATRIATE:
        region_id = data.get("expatriate_region_id")
        if not region_id:
            raise MalformedPayloadError("Expatriate target is missing expatriate_region_id")
        return ExpatriateTarget(
            expatriate_region_id=str(region_id),
            expatriate_region_name=str(data.get("expatriate_region_name") or ""),
        )

    try:
        target_level = Level(data.get("level"))
    except ValueError as e:
        raise MalformedPayloadError(
            f"Unknown level: {data.get('level')!r}", cause=e
        ) from e
    if target_level not in GEOGRAPHIC_CHAIN:
        raise MalformedPayloadError(f"Level {target_level.value} is not valid for {kind.value}")

    chain = []
    for level in GEOGRAPHIC_CHAIN[: GEOGRAPHIC_CHAIN.index(target_level) + 1]:
        level_id = data.get(f"{level.value}_id")
        if level_id is None:
            # Chains may start below the national level
            if chain:
                raise MalformedPayloadError(
                    f"Target chain has a gap at {level.value}", details={"level": level.value}
                )
            continue
        chain.append(
            LevelRef(level=level, id=str(level_id), name=str(data.get(f"{level.value}_name") or ""))
        )

    if not chain or chain[-1].level != target_level:
        raise MalformedPayloadError(f"Target chain does not reach {target_level.value}")

    return HierarchyTarget(kind=kind, chain=tuple(chain))
