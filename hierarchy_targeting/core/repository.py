"""
Taxonomy repository interface.

The selector never talks to a transport directly. It asks a repository for
"the roots at level L" or "the children of P at level L", and the repository
decides where those come from (the dashboard API, a local snapshot, a test fake).
"""

from abc import ABC, abstractmethod

from ..models.taxonomy_models import HierarchyNode, Level, TaxonomyKind
from .errors import UnsupportedOperationError


class TaxonomyRepository(ABC):
    """
    Source of hierarchy nodes, fetched by parent identifier.

    Implementations raise RepositoryError (or a subclass) on failure;
    absorbing those failures is the hierarchy cache's job.
    """

    name: str = "repository"

    @abstractmethod
    async def list_roots(self, taxonomy: TaxonomyKind, level: Level) -> list[HierarchyNode]:
        """List the nodes at the top of a taxonomy's chain."""

    @abstractmethod
    async def list_children(
        self, taxonomy: TaxonomyKind, parent_id: str, child_level: Level
    ) -> list[HierarchyNode]:
        """List the nodes at `child_level` whose parent is `parent_id`."""

    async def fetch_full_tree(self, taxonomy: TaxonomyKind) -> list[HierarchyNode]:
        """
        Fetch a pre-nested tree for the taxonomy.

        Optional. Repositories without a richer tree endpoint keep this default.
        """
        raise UnsupportedOperationError("fetch_full_tree", self.name)

    def supports_tree(self, taxonomy: TaxonomyKind) -> bool:
        """Whether fetch_full_tree can answer for `taxonomy`."""
        return type(self).fetch_full_tree is not TaxonomyRepository.fetch_full_tree

    async def close(self) -> None:
        """Release any held resources."""
        return None
