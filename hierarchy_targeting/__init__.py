"""
Hierarchy Targeting

A multi-taxonomy cascading selector that turns an operator's pick in the
geographic, sector or expatriate hierarchy (or "everyone") into one
canonical targeting descriptor.

Usage:
    python -m hierarchy_targeting roots original     # List regions
    python -m hierarchy_targeting stats              # Snapshot statistics
"""

__version__ = "0.1.0"

from .config import (
    AppConfig,
    LoggingConfig,
    RepositoryConfig,
    SelectorConfig,
    get_config,
    get_repository_config,
    get_selector_config,
    reset_config,
)
from .core.errors import (
    ConfigurationError,
    ErrorCategory,
    ErrorResponse,
    FetchTimeoutError,
    InvalidPickError,
    MalformedPayloadError,
    PrematureConfirmError,
    RepositoryError,
    SelectionInvariantError,
    TargetingException,
    UnsupportedOperationError,
)
from .core.hierarchy_cache import LOAD_FAILED_MESSAGE, HierarchyCache
from .core.http_repository import HTTPTaxonomyRepository
from .core.normalizer import (
    LEVEL_LABELS,
    TAXONOMY_LABELS,
    DisplayLabel,
    LabelKind,
    describe,
    display_label,
    normalize,
)
from .core.payload import to_target_fields
from .core.repository import TaxonomyRepository
from .core.scope import AdminLevel, OperatorProfile, can_target, default_target_for, is_root_admin
from .core.selection import TargetSelector
from .core.snapshot_repository import SnapshotTaxonomyRepository
from .models import (
    ExpatriateTarget,
    GlobalTarget,
    HierarchyNode,
    HierarchyTarget,
    Level,
    LevelRef,
    SelectionState,
    TargetingDescriptor,
    TaxonomyKind,
    chain_for,
    descriptor_from_dict,
)

__all__ = [
    # Version
    "__version__",
    # Config
    "RepositoryConfig",
    "SelectorConfig",
    "LoggingConfig",
    "AppConfig",
    "get_config",
    "get_repository_config",
    "get_selector_config",
    "reset_config",
    # Core
    "TaxonomyRepository",
    "HTTPTaxonomyRepository",
    "SnapshotTaxonomyRepository",
    "HierarchyCache",
    "LOAD_FAILED_MESSAGE",
    "TargetSelector",
    "normalize",
    "display_label",
    "describe",
    "DisplayLabel",
    "LabelKind",
    "TAXONOMY_LABELS",
    "LEVEL_LABELS",
    "to_target_fields",
    "AdminLevel",
    "OperatorProfile",
    "default_target_for",
    "can_target",
    "is_root_admin",
    # Errors
    "TargetingException",
    "ErrorCategory",
    "ErrorResponse",
    "RepositoryError",
    "MalformedPayloadError",
    "UnsupportedOperationError",
    "FetchTimeoutError",
    "InvalidPickError",
    "SelectionInvariantError",
    "PrematureConfirmError",
    "ConfigurationError",
    # Models
    "TaxonomyKind",
    "Level",
    "HierarchyNode",
    "SelectionState",
    "LevelRef",
    "GlobalTarget",
    "ExpatriateTarget",
    "HierarchyTarget",
    "TargetingDescriptor",
    "chain_for",
    "descriptor_from_dict",
]
