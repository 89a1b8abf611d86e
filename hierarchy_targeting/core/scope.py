"""
Operator admin scope.

An operator's admin level bounds what they may target: root admins can target
anything, everyone else targets their own node or something below it. The
default target for a form is the operator's own scope, truncated at their
admin level.
"""

from dataclasses import dataclass, field
from enum import Enum

from ..models.descriptor_models import (
    ExpatriateTarget,
    GlobalTarget,
    HierarchyTarget,
    LevelRef,
    TargetingDescriptor,
)
from ..models.taxonomy_models import GEOGRAPHIC_CHAIN, Level, TaxonomyKind
from ..observability.logging import get_logger

logger = get_logger(__name__)


class AdminLevel(str, Enum):
    """Administrative level of an operator account."""

    ADMIN = "ADMIN"
    GENERAL_SECRETARIAT = "GENERAL_SECRETARIAT"
    NATIONAL_LEVEL = "NATIONAL_LEVEL"
    REGION = "REGION"
    LOCALITY = "LOCALITY"
    ADMIN_UNIT = "ADMIN_UNIT"
    DISTRICT = "DISTRICT"
    USER = "USER"
    EXPATRIATE_GENERAL = "EXPATRIATE_GENERAL"
    EXPATRIATE_NATIONAL_LEVEL = "EXPATRIATE_NATIONAL_LEVEL"
    EXPATRIATE_REGION = "EXPATRIATE_REGION"
    EXPATRIATE_LOCALITY = "EXPATRIATE_LOCALITY"
    EXPATRIATE_ADMIN_UNIT = "EXPATRIATE_ADMIN_UNIT"
    EXPATRIATE_DISTRICT = "EXPATRIATE_DISTRICT"


# Depth in the geographic chain each admin level operates at (0 = national)
ADMIN_DEPTH: dict[AdminLevel, int] = {
    AdminLevel.ADMIN: 0,
    AdminLevel.GENERAL_SECRETARIAT: 0,
    AdminLevel.NATIONAL_LEVEL: 0,
    AdminLevel.REGION: 1,
    AdminLevel.LOCALITY: 2,
    AdminLevel.ADMIN_UNIT: 3,
    AdminLevel.DISTRICT: 4,
    AdminLevel.USER: 5,
    AdminLevel.EXPATRIATE_GENERAL: 0,
    AdminLevel.EXPATRIATE_NATIONAL_LEVEL: 0,
    AdminLevel.EXPATRIATE_REGION: 1,
    AdminLevel.EXPATRIATE_LOCALITY: 2,
    AdminLevel.EXPATRIATE_ADMIN_UNIT: 3,
    AdminLevel.EXPATRIATE_DISTRICT: 4,
}

ROOT_ADMIN_LEVELS = frozenset(
    {AdminLevel.ADMIN, AdminLevel.GENERAL_SECRETARIAT, AdminLevel.NATIONAL_LEVEL}
)

UNRESTRICTED_LEVELS = frozenset({AdminLevel.ADMIN, AdminLevel.GENERAL_SECRETARIAT})

EXPATRIATE_ADMIN_LEVELS = frozenset(level for level in AdminLevel if level.name.startswith("EXPATRIATE_"))


@dataclass
class OperatorProfile:
    """
    The parts of an operator account that determine targeting scope.

    `original` and `sector` map each geographic level to the (id, name) of the
    operator's node at that level, where known.
    """

    admin_level: AdminLevel
    active_taxonomy: TaxonomyKind = TaxonomyKind.ORIGINAL
    original: dict[Level, tuple[str, str]] = field(default_factory=dict)
    sector: dict[Level, tuple[str, str]] = field(default_factory=dict)
    expatriate_region: tuple[str, str] | None = None


def is_root_admin(admin_level: AdminLevel | str) -> bool:
    """Root admins can see and target any hierarchy."""
    return AdminLevel(admin_level) in ROOT_ADMIN_LEVELS


def _admin_target_level(admin_level: AdminLevel) -> Level:
    depth = ADMIN_DEPTH.get(admin_level, len(GEOGRAPHIC_CHAIN))
    return GEOGRAPHIC_CHAIN[min(depth, len(GEOGRAPHIC_CHAIN) - 1)]


def default_target_for(profile: OperatorProfile) -> TargetingDescriptor | None:
    """
    Derive the operator's own scope as a descriptor.

    Only levels down to the operator's admin level are included, so a region
    admin defaults to region-wide content rather than their own district.
    Returns None when the profile lacks the data its active taxonomy needs.
    """
    if profile.active_taxonomy == TaxonomyKind.GLOBAL:
        return GlobalTarget()

    if profile.active_taxonomy == TaxonomyKind.EXPATRIATE:
        if profile.expatriate_region is None:
            logger.warning(
                "Operator has the expatriate taxonomy active but no expatriate region",
                data={"admin_level": profile.admin_level.value},
            )
            return None
        region_id, region_name = profile.expatriate_region
        return ExpatriateTarget(expatriate_region_id=region_id, expatriate_region_name=region_name)

    known = profile.sector if profile.active_taxonomy == TaxonomyKind.SECTOR else profile.original
    target_level = _admin_target_level(profile.admin_level)

    chain = []
    for level in GEOGRAPHIC_CHAIN[: GEOGRAPHIC_CHAIN.index(target_level) + 1]:
        entry = known.get(level)
        if entry is None:
            if chain:
                break
            continue
        chain.append(LevelRef(level=level, id=entry[0], name=entry[1]))

    if not chain:
        return None
    return HierarchyTarget(kind=profile.active_taxonomy, chain=tuple(chain))


def can_target(admin_level: AdminLevel | str, descriptor: TargetingDescriptor) -> bool:
    """
    Whether an operator at `admin_level` may create content for `descriptor`.

    GLOBAL content needs a top-depth admin. Expatriate content is open to
    expatriate admins and top-depth admins. ORIGINAL and SECTOR content is
    allowed at the operator's own depth or deeper.
    """
    admin_level = AdminLevel(admin_level)
    if admin_level in UNRESTRICTED_LEVELS:
        return True

    depth = ADMIN_DEPTH.get(admin_level, len(GEOGRAPHIC_CHAIN))

    if isinstance(descriptor, GlobalTarget):
        return depth == 0
    if isinstance(descriptor, ExpatriateTarget):
        return admin_level in EXPATRIATE_ADMIN_LEVELS or depth == 0

    return depth <= GEOGRAPHIC_CHAIN.index(descriptor.level)
