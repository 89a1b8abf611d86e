"""
Domain models for hierarchy taxonomies.

The organization is described by several independent trees. Each taxonomy
has its own entity set and its own chain of levels, from broad to specific.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..core.errors import MalformedPayloadError


class TaxonomyKind(str, Enum):
    """The independent hierarchy taxonomies a target can be chosen from."""

    ORIGINAL = "ORIGINAL"  # Geographic hierarchy
    EXPATRIATE = "EXPATRIATE"  # Expatriate regions
    SECTOR = "SECTOR"  # Sector hierarchy, same shape as ORIGINAL
    GLOBAL = "GLOBAL"  # Applies to everyone, no entities


class Level(str, Enum):
    """
    Named depths within a taxonomy chain.

    ORIGINAL and SECTOR share the five geographic levels.
    EXPATRIATE uses a single level. GLOBAL has none.
    """

    NATIONAL_LEVEL = "national_level"
    REGION = "region"
    LOCALITY = "locality"
    ADMIN_UNIT = "admin_unit"
    DISTRICT = "district"
    EXPATRIATE_REGION = "expatriate_region"


GEOGRAPHIC_CHAIN: tuple[Level, ...] = (
    Level.NATIONAL_LEVEL,
    Level.REGION,
    Level.LOCALITY,
    Level.ADMIN_UNIT,
    Level.DISTRICT,
)

EXPATRIATE_CHAIN: tuple[Level, ...] = (Level.EXPATRIATE_REGION,)


def chain_for(kind: TaxonomyKind, include_national_level: bool = False) -> tuple[Level, ...]:
    """
    Return the ordered level chain the selector walks for a taxonomy.

    The geographic chains start at regions unless the national level is
    explicitly included.
    """
    if kind == TaxonomyKind.GLOBAL:
        return ()
    if kind == TaxonomyKind.EXPATRIATE:
        return EXPATRIATE_CHAIN
    if include_national_level:
        return GEOGRAPHIC_CHAIN
    return GEOGRAPHIC_CHAIN[1:]


def next_level(chain: tuple[Level, ...], level: Level) -> Level | None:
    """Get the level immediately below `level`, or None for a leaf."""
    index = chain.index(level)
    if index + 1 < len(chain):
        return chain[index + 1]
    return None


def parent_level(chain: tuple[Level, ...], level: Level) -> Level | None:
    """Get the level immediately above `level`, or None for the root."""
    index = chain.index(level)
    if index > 0:
        return chain[index - 1]
    return None


def is_leaf(chain: tuple[Level, ...], level: Level) -> bool:
    return next_level(chain, level) is None


# Keys the dashboard API uses for nested children and parent links
_CHILD_KEYS: dict[Level, tuple[str, ...]] = {
    Level.NATIONAL_LEVEL: ("regions", "children"),
    Level.REGION: ("localities", "children"),
    Level.LOCALITY: ("adminUnits", "admin_units", "children"),
    Level.ADMIN_UNIT: ("districts", "children"),
    Level.DISTRICT: (),
    Level.EXPATRIATE_REGION: (),
}

_PARENT_KEYS: dict[Level, tuple[str, ...]] = {
    Level.NATIONAL_LEVEL: (),
    Level.REGION: ("nationalLevelId", "national_level_id", "sectorNationalLevelId"),
    Level.LOCALITY: ("regionId", "region_id", "sectorRegionId"),
    Level.ADMIN_UNIT: ("localityId", "locality_id", "sectorLocalityId"),
    Level.DISTRICT: ("adminUnitId", "admin_unit_id", "sectorAdminUnitId"),
    Level.EXPATRIATE_REGION: (),
}

_GEOGRAPHIC_NEXT: dict[Level, Level] = {
    GEOGRAPHIC_CHAIN[i]: GEOGRAPHIC_CHAIN[i + 1] for i in range(len(GEOGRAPHIC_CHAIN) - 1)
}


@dataclass(eq=False)
class HierarchyNode:
    """
    A single entity in one taxonomy tree.

    `children` is None until the next level has been fetched; an empty list
    means the node was fetched and has no children. Nodes are not mutated
    after fetch except to attach children.
    """

    id: str
    name: str
    level: Level
    code: str | None = None
    parent_id: str | None = None
    children: list["HierarchyNode"] | None = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HierarchyNode):
            return NotImplemented
        return self.id == other.id and self.level == other.level

    def __hash__(self) -> int:
        return hash((self.level, self.id))

    @property
    def children_loaded(self) -> bool:
        return self.children is not None

    def attach_children(self, children: list["HierarchyNode"]) -> None:
        """Attach a freshly fetched child list."""
        self.children = list(children)

    def find_child(self, node_id: str) -> "HierarchyNode | None":
        for child in self.children or []:
            if child.id == node_id:
                return child
        return None

    @classmethod
    def from_payload(
        cls, payload: Any, level: Level, parent_id: str | None = None
    ) -> "HierarchyNode":
        """
        Build a node from one raw API object.

        Nested child lists (localities, adminUnits, districts) are parsed
        recursively so a pre-nested tree arrives fully populated.

        Raises:
            MalformedPayloadError: If the object lacks an id or a name
        """
        if not isinstance(payload, dict):
            raise MalformedPayloadError(
                f"Expected an object for {level.value} node", details={"level": level.value}
            )

        node_id = payload.get("id", payload.get("_id"))
        name = payload.get("name")
        if node_id is None or not name:
            raise MalformedPayloadError(
                f"{level.value} node is missing id or name",
                details={"level": level.value, "keys": sorted(payload.keys())[:10]},
            )

        resolved_parent = payload.get("parentId", payload.get("parent_id"))
        if resolved_parent is None:
            for key in _PARENT_KEYS[level]:
                if payload.get(key) is not None:
                    resolved_parent = payload[key]
                    break
        if resolved_parent is None:
            resolved_parent = parent_id

        code = payload.get("code")
        node = cls(
            id=str(node_id),
            name=str(name),
            level=level,
            code=str(code) if code else None,
            parent_id=str(resolved_parent) if resolved_parent is not None else None,
        )

        child_level = _GEOGRAPHIC_NEXT.get(level)
        if child_level is not None:
            for key in _CHILD_KEYS[level]:
                raw_children = payload.get(key)
                if isinstance(raw_children, list):
                    node.attach_children(
                        [cls.from_payload(item, child_level, node.id) for item in raw_children]
                    )
                    break

        return node

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "level": self.level.value,
            "code": self.code,
            "parent_id": self.parent_id,
        }
        if self.children is not None:
            result["children"] = [child.to_dict() for child in self.children]
        return result

    def __str__(self) -> str:
        if self.code:
            return f"{self.name} [{self.code}]"
        return self.name


def parse_nodes(
    payload: Any, level: Level, parent_id: str | None = None
) -> list[HierarchyNode]:
    """
    Parse a list payload into nodes.

    Accepts a bare list or an envelope with a `data` list.
    """
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        payload = payload["data"]
    if not isinstance(payload, list):
        raise MalformedPayloadError(
            f"Expected a list of {level.value} nodes",
            details={"level": level.value, "type": type(payload).__name__},
        )
    return [HierarchyNode.from_payload(item, level, parent_id) for item in payload]
