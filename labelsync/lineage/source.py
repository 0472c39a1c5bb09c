"""Dataset host client.

Fetches a dataset's info document (for its codebase version) and its
line-delimited episode metadata (for lineage) over HTTP.

Usage:
    async with DatasetHostClient() as client:
        version = await client.get_dataset_version("org/dataset")
        text = await client.fetch_lineage_document("org/dataset", version)
"""

import os
from urllib.parse import urlparse

import httpx
from pydantic import ValidationError

from labelsync.config.models.dataset_host import DatasetHostConfig
from labelsync.lineage.errors import IncompatibleDatasetError, LineageUnavailableError
from labelsync.lineage.models import DatasetInfo
from labelsync.observability.logging import get_logger

logger = get_logger(__name__)

TOKEN_ENV_VARS: tuple[str, ...] = (
    "HF_TOKEN",
    "HUGGINGFACE_TOKEN",
    "HF_ACCESS_TOKEN",
    "HUGGINGFACEHUB_API_TOKEN",
)


def token_from_env() -> str | None:
    """First access token found in the environment."""
    for name in TOKEN_ENV_VARS:
        value = os.environ.get(name)
        if value:
            return value
    return None


class DatasetHostClient:
    """Async client for dataset metadata on the dataset host.

    The bearer token is only attached to requests for huggingface.co or
    the configured host, never to third-party URLs.
    """

    def __init__(
        self,
        config: DatasetHostConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Host configuration (defaults to the public hub)
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self._config = config or DatasetHostConfig()
        self._token = self._config.token or token_from_env()
        self._client = httpx.AsyncClient(timeout=self._config.timeout, transport=transport)

    async def __aenter__(self) -> "DatasetHostClient":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    @property
    def supported_versions(self) -> list[str]:
        return list(self._config.supported_versions)

    def build_url(self, repo_id: str, path: str) -> str:
        base = self._config.base_url.rstrip("/")
        return f"{base}/{repo_id}/resolve/{self._config.revision}/{path}"

    def _headers(self, url: str) -> dict[str, str]:
        """Auth headers for url, empty when the host is not trusted."""
        if not self._token:
            return {}
        host = urlparse(url).hostname or ""
        trusted = urlparse(self._config.base_url).hostname or ""
        if host == trusted or host.endswith("huggingface.co"):
            return {"Authorization": f"Bearer {self._token}"}
        return {}

    async def fetch_info(self, repo_id: str) -> DatasetInfo:
        """Fetch and validate the dataset's info document.

        Raises:
            IncompatibleDatasetError: unreachable, not JSON, or lacking features
        """
        url = self.build_url(repo_id, self._config.info_path)
        try:
            response = await self._client.get(url, headers=self._headers(url))
        except httpx.HTTPError as e:
            logger.warning("dataset_info_fetch_failed", repo_id=repo_id, error=str(e))
            raise IncompatibleDatasetError(
                f"Failed to fetch dataset info for {repo_id}: {e}", cause=e
            ) from e

        if not response.is_success:
            logger.warning(
                "dataset_info_fetch_failed",
                repo_id=repo_id,
                status_code=response.status_code,
                has_token=bool(self._token),
            )
            raise IncompatibleDatasetError(
                f"Failed to fetch dataset info for {repo_id}: {response.status_code}"
            )

        try:
            return DatasetInfo.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise IncompatibleDatasetError(
                f"Dataset {repo_id} info does not have the expected features structure",
                cause=e,
            ) from e

    async def get_dataset_version(self, repo_id: str) -> str:
        """Read codebase_version and check it against the allowlist.

        Raises:
            IncompatibleDatasetError: missing or unsupported version
        """
        info = await self.fetch_info(repo_id)
        version = info.codebase_version
        if not version:
            raise IncompatibleDatasetError(
                f"Dataset {repo_id} info does not contain codebase_version"
            )
        if version not in self._config.supported_versions:
            raise IncompatibleDatasetError(
                f"Dataset {repo_id} has codebase version {version}, which is not supported "
                f"(supported: {', '.join(self._config.supported_versions)})",
                version=version,
            )
        return version

    async def fetch_lineage_document(self, repo_id: str, version: str) -> str:
        """Fetch the raw episode metadata document.

        Args:
            repo_id: '<org>/<dataset>'
            version: Codebase version the document belongs to (logged only;
                the document is read from the configured revision)

        Raises:
            LineageUnavailableError: any HTTP failure, with its status code
        """
        url = self.build_url(repo_id, self._config.lineage_path)
        try:
            response = await self._client.get(url, headers=self._headers(url))
        except httpx.TimeoutException as e:
            raise LineageUnavailableError(f"Lineage request for {repo_id} timed out", cause=e) from e
        except httpx.HTTPError as e:
            raise LineageUnavailableError(
                f"Lineage request for {repo_id} failed: {e}", cause=e
            ) from e

        if not response.is_success:
            raise LineageUnavailableError(
                f"Failed to fetch lineage for {repo_id}: {response.status_code}",
                status_code=response.status_code,
            )

        logger.debug(
            "lineage_document_fetched",
            repo_id=repo_id,
            version=version,
            size=len(response.text),
        )
        return response.text
