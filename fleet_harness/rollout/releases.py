"""
Latest published release lookup via the GitHub REST API.
"""

from typing import Any

import httpx
from pydantic import SecretStr

from fleet_harness.errors import ReleaseLookupError
from fleet_harness.interfaces import ReleaseSource
from fleet_harness.logging import get_logger

logger = get_logger(__name__)

GITHUB_API_VERSION = "2022-11-28"


def normalize_tag(tag: str) -> str:
    """Strip a leading "v" from a release tag (v0.4.1 -> 0.4.1)."""
    tag = tag.strip()
    return tag[1:] if tag[:1] in ("v", "V") else tag


class GitHubReleaseSource(ReleaseSource):
    """Reads `tag_name` of the latest release of a repository."""

    def __init__(
        self,
        repo: str,
        api_url: str = "https://api.github.com",
        token: SecretStr | None = None,
        timeout: float = 30.0,
    ) -> None:
        """
        Args:
            repo: Repository as "owner/name"
            api_url: API base URL
            token: Optional access token (raises rate limits, reaches private repos)
            timeout: Request timeout in seconds
        """
        if repo.count("/") != 1:
            raise ValueError(f"repo must be 'owner/name', got {repo!r}")
        self._repo = repo
        self._base_url = api_url.rstrip("/")
        self._token = token
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }
        if self._token is not None:
            headers["Authorization"] = f"Bearer {self._token.get_secret_value()}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def latest_version(self) -> str:
        url = f"{self._base_url}/repos/{self._repo}/releases/latest"
        client = await self._get_client()
        logger.debug("Release lookup: GET %s", url)

        try:
            response = await client.get(url, headers=self._headers())
        except httpx.TimeoutException as e:
            raise ReleaseLookupError(f"Release lookup timed out: {e}") from e
        except httpx.RequestError as e:
            raise ReleaseLookupError(f"Release lookup failed: {e}") from e

        if response.status_code == 404:
            raise ReleaseLookupError(
                f"No published release for {self._repo}",
                status_code=404,
            )
        if response.status_code != 200:
            raise ReleaseLookupError(
                f"Release lookup failed with status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data: dict[str, Any] = response.json()
        except ValueError as e:
            raise ReleaseLookupError(f"Release response is not JSON: {e}") from e

        tag = data.get("tag_name")
        if not isinstance(tag, str) or not tag.strip():
            raise ReleaseLookupError("Release response has no tag_name")
        return normalize_tag(tag)
