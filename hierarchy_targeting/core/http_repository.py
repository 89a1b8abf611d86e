"""
Taxonomy repository backed by the dashboard's REST API.

Uses httpx's async client. Every transport, status or decoding failure is
raised as a RepositoryError so the hierarchy cache can absorb it.
"""

import logging
from typing import Any

import httpx

from ..models.taxonomy_models import HierarchyNode, Level, TaxonomyKind, parse_nodes
from .errors import MalformedPayloadError, RepositoryError, UnsupportedOperationError
from .repository import TaxonomyRepository

logger = logging.getLogger(__name__)


# Root listings per taxonomy and level
ROOT_ENDPOINTS: dict[tuple[TaxonomyKind, Level], str] = {
    (TaxonomyKind.ORIGINAL, Level.NATIONAL_LEVEL): "/hierarchy/national-levels",
    (TaxonomyKind.ORIGINAL, Level.REGION): "/hierarchy-management/regions",
    (TaxonomyKind.SECTOR, Level.NATIONAL_LEVEL): "/sector-hierarchy/sector-national-levels",
    (TaxonomyKind.SECTOR, Level.REGION): "/sector-hierarchy/sector-regions",
    (TaxonomyKind.EXPATRIATE, Level.EXPATRIATE_REGION): "/expatriate-hierarchy/expatriate-regions",
}

# Child listings for the geographic taxonomy, keyed by child level
ORIGINAL_CHILD_ENDPOINTS: dict[Level, str] = {
    Level.REGION: "/hierarchy/national-levels/{parent_id}/regions",
    Level.LOCALITY: "/hierarchy-management/regions/{parent_id}/localities",
    Level.ADMIN_UNIT: "/hierarchy-management/localities/{parent_id}/admin-units",
    Level.DISTRICT: "/hierarchy-management/admin-units/{parent_id}/districts",
}

# Sector listings are flat per level, filtered by parent
SECTOR_LEVEL_ENDPOINTS: dict[Level, str] = {
    Level.NATIONAL_LEVEL: "/sector-hierarchy/sector-national-levels",
    Level.REGION: "/sector-hierarchy/sector-regions",
    Level.LOCALITY: "/sector-hierarchy/sector-localities",
    Level.ADMIN_UNIT: "/sector-hierarchy/sector-admin-units",
    Level.DISTRICT: "/sector-hierarchy/sector-districts",
}

TREE_ENDPOINTS: dict[TaxonomyKind, str] = {
    TaxonomyKind.ORIGINAL: "/hierarchy-management/tree",
}


class HTTPTaxonomyRepository(TaxonomyRepository):
    """
    Repository that reads hierarchy data from the dashboard API.

    Args:
        base_url: API root, e.g. "https://example.org/api"
        token: Optional bearer token sent with every request
        timeout_seconds: Per-request transport timeout
        client: Optional preconfigured AsyncClient (tests inject a MockTransport)
    """

    name = "http"

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout_seconds = timeout_seconds
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_config(cls, config=None) -> "HTTPTaxonomyRepository":
        """Build a repository from RepositoryConfig (loads it if not given)."""
        if config is None:
            from ..config import get_repository_config

            config = get_repository_config()
        return cls(
            base_url=config.api_base_url,
            token=config.api_token,
            timeout_seconds=config.request_timeout_seconds,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url, headers=self._headers(), timeout=self.timeout_seconds
            )
        return self._client

    async def _get_json(self, path: str, params: dict[str, str] | None = None) -> Any:
        client = self._get_client()
        try:
            response = await client.get(path, params=params, headers=self._headers())
            response.raise_for_status()
            return response.json()

        except httpx.TimeoutException as e:
            raise RepositoryError(
                f"Timeout fetching {path}", details={"path": path}, cause=e
            ) from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise RepositoryError(
                f"API call failed: {status} {e.response.reason_phrase}",
                retryable=status >= 500,
                details={"path": path, "status": status},
                cause=e,
            ) from e
        except httpx.HTTPError as e:
            raise RepositoryError(
                f"HTTP error fetching {path}", details={"path": path}, cause=e
            ) from e
        except ValueError as e:
            raise MalformedPayloadError(
                f"Response from {path} is not valid JSON", details={"path": path}, cause=e
            ) from e

    async def list_roots(self, taxonomy: TaxonomyKind, level: Level) -> list[HierarchyNode]:
        path = ROOT_ENDPOINTS.get((taxonomy, level))
        if path is None:
            raise UnsupportedOperationError(f"list_roots({taxonomy.value}, {level.value})", self.name)

        logger.debug(f"Listing {taxonomy.value} roots at {level.value} from {path}")
        payload = await self._get_json(path)
        return parse_nodes(payload, level)

    async def list_children(
        self, taxonomy: TaxonomyKind, parent_id: str, child_level: Level
    ) -> list[HierarchyNode]:
        if taxonomy == TaxonomyKind.ORIGINAL and child_level in ORIGINAL_CHILD_ENDPOINTS:
            path = ORIGINAL_CHILD_ENDPOINTS[child_level].format(parent_id=parent_id)
            payload = await self._get_json(path)
        elif taxonomy == TaxonomyKind.SECTOR and child_level in SECTOR_LEVEL_ENDPOINTS:
            path = SECTOR_LEVEL_ENDPOINTS[child_level]
            payload = await self._get_json(path, params={"parentId": parent_id})
        else:
            raise UnsupportedOperationError(
                f"list_children({taxonomy.value}, {child_level.value})", self.name
            )

        logger.debug(f"Fetched {child_level.value} children of {parent_id} from {path}")
        return parse_nodes(payload, child_level, parent_id)

    def supports_tree(self, taxonomy: TaxonomyKind) -> bool:
        return taxonomy in TREE_ENDPOINTS

    async def fetch_full_tree(self, taxonomy: TaxonomyKind) -> list[HierarchyNode]:
        path = TREE_ENDPOINTS.get(taxonomy)
        if path is None:
            raise UnsupportedOperationError(f"fetch_full_tree({taxonomy.value})", self.name)

        payload = await self._get_json(path)
        return parse_nodes(payload, Level.REGION)

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
