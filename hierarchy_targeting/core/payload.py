"""
Mapping of targeting descriptors onto content-record fields.

Votes, surveys, bulletins and subscription plans store their target as a set
of nullable foreign keys, one per taxonomy level. Only the keys of the
descriptor's own taxonomy are written.
"""

from typing import Any

from ..models.descriptor_models import (
    ExpatriateTarget,
    GlobalTarget,
    HierarchyTarget,
    TargetingDescriptor,
)
from ..models.taxonomy_models import Level, TaxonomyKind

ORIGINAL_FIELDS: dict[Level, str] = {
    Level.NATIONAL_LEVEL: "targetNationalLevelId",
    Level.REGION: "targetRegionId",
    Level.LOCALITY: "targetLocalityId",
    Level.ADMIN_UNIT: "targetAdminUnitId",
    Level.DISTRICT: "targetDistrictId",
}

SECTOR_FIELDS: dict[Level, str] = {
    Level.NATIONAL_LEVEL: "targetSectorNationalLevelId",
    Level.REGION: "targetSectorRegionId",
    Level.LOCALITY: "targetSectorLocalityId",
    Level.ADMIN_UNIT: "targetSectorAdminUnitId",
    Level.DISTRICT: "targetSectorDistrictId",
}

EXPATRIATE_FIELD = "targetExpatriateRegionId"
GLOBAL_FIELD = "isGlobal"

ALL_TARGET_FIELDS: tuple[str, ...] = (
    *ORIGINAL_FIELDS.values(),
    EXPATRIATE_FIELD,
    *SECTOR_FIELDS.values(),
    GLOBAL_FIELD,
)


def to_target_fields(
    descriptor: TargetingDescriptor, base: dict[str, Any] | None = None
) -> dict[str, Any]:
    """
    Merge a descriptor's foreign-key fields into a record payload.

    Target fields already present in `base` are dropped first, so a record
    re-targeted from one taxonomy to another never keeps stale keys.

    Args:
        descriptor: Confirmed targeting descriptor
        base: Other record fields (title, description, ...)

    Returns:
        New dict; `base` is not modified
    """
    result = {k: v for k, v in (base or {}).items() if k not in ALL_TARGET_FIELDS}

    if isinstance(descriptor, GlobalTarget):
        result[GLOBAL_FIELD] = True
    elif isinstance(descriptor, ExpatriateTarget):
        result[EXPATRIATE_FIELD] = descriptor.expatriate_region_id
    elif isinstance(descriptor, HierarchyTarget):
        fields = SECTOR_FIELDS if descriptor.kind == TaxonomyKind.SECTOR else ORIGINAL_FIELDS
        for ref in descriptor.chain:
            result[fields[ref.level]] = ref.id
    else:
        raise TypeError(f"Unsupported descriptor: {type(descriptor).__name__}")

    return result
