"""Pinata client for publishing and reading token metadata on IPFS."""

import logging
from typing import Any

import httpx

from .config import PinataConfig

logger = logging.getLogger(__name__)

IPFS_SCHEME = "ipfs://"
REQUIRED_METADATA_FIELDS = ("name", "description", "image")


class StorageError(Exception):
    """Base class for content-addressable storage failures."""


class MetadataPublishError(StorageError):
    """Pinning metadata failed."""


class MetadataFetchError(StorageError):
    """Published metadata could not be read back."""


def strip_ipfs_scheme(uri: str) -> str:
    return uri[len(IPFS_SCHEME):] if uri.startswith(IPFS_SCHEME) else uri


class PinataClient:
    """Async client for the Pinata pinning API and IPFS gateways."""

    def __init__(
        self,
        config: PinataConfig,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.timeout = timeout
        self._transport = transport

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout or self.timeout,
            transport=self._transport,
            follow_redirects=True,
        )

    def gateway_url(self, uri: str) -> str:
        """HTTP URL for an IPFS URI on the dedicated gateway."""
        return f"https://{self.config.gateway_url}/ipfs/{strip_ipfs_scheme(uri)}"

    def candidate_urls(self, uri: str) -> list[str]:
        """Every gateway URL worth trying for an IPFS URI, public gateways first."""
        cid = strip_ipfs_scheme(uri)
        urls = [f"{gateway.rstrip('/')}/{cid}" for gateway in self.config.public_gateways]
        dedicated = self.gateway_url(uri)
        if dedicated not in urls:
            urls.append(dedicated)
        return urls

    async def publish_json(self, content: dict[str, Any], name: str = "metadata.json") -> str:
        """Pin a JSON document.

        Args:
            content: JSON-serializable document.
            name: Human-readable pin name shown in the Pinata dashboard.

        Returns:
            The ``ipfs://<cid>`` URI.

        Raises:
            MetadataPublishError: If pinning fails or the response has no hash.
        """
        body = {"pinataContent": content, "pinataMetadata": {"name": name}}
        headers = {"Authorization": f"Bearer {self.config.jwt.get_secret_value()}"}

        async with self._client() as client:
            try:
                response = await client.post(
                    f"{self.config.api_url}/pinning/pinJSONToIPFS", json=body, headers=headers
                )
                response.raise_for_status()
                payload = response.json()
            except httpx.HTTPStatusError as e:
                raise MetadataPublishError(
                    f"Pinata returned HTTP {e.response.status_code}: {e.response.text}"
                ) from e
            except (httpx.HTTPError, ValueError) as e:
                raise MetadataPublishError(f"Pinata request failed: {e}") from e

        ipfs_hash = payload.get("IpfsHash")
        if not ipfs_hash:
            raise MetadataPublishError("Pinata response did not include an IpfsHash")

        uri = f"{IPFS_SCHEME}{ipfs_hash}"
        logger.info("Pinned %s as %s (%s)", name, uri, self.gateway_url(uri))
        return uri

    async def fetch(self, uri: str, timeout: float | None = None) -> dict[str, Any]:
        """Read a JSON document by IPFS or HTTP(S) URI.

        Raises:
            MetadataFetchError: If the document cannot be fetched or decoded.
        """
        url = self.gateway_url(uri) if uri.startswith(IPFS_SCHEME) else uri
        async with self._client(timeout) as client:
            try:
                response = await client.get(url)
                response.raise_for_status()
                data = response.json()
            except (httpx.HTTPError, ValueError) as e:
                raise MetadataFetchError(f"Failed to fetch {url}: {e}") from e

        if not isinstance(data, dict):
            raise MetadataFetchError(f"Metadata at {url} is not a JSON object")
        return data

    async def validate_metadata(self, uri: str) -> bool:
        """Check that published metadata is readable and complete.

        IPFS URIs are tried against each gateway in turn, stopping at the
        first that answers. Failure here is reported, never raised; freshly
        pinned content often has not propagated yet.

        Returns:
            True if a gateway returned metadata with name, description and image.
        """
        if uri.startswith(IPFS_SCHEME):
            if len(strip_ipfs_scheme(uri)) < 10:
                logger.warning("Metadata URI %s has an invalid CID", uri)
                return False
            urls = self.candidate_urls(uri)
        elif uri.startswith(("http://", "https://")):
            urls = [uri]
        else:
            logger.warning("Metadata URI %s has an unsupported scheme", uri)
            return False

        for url in urls:
            try:
                metadata = await self.fetch(url, timeout=self.config.validation_timeout)
            except MetadataFetchError as e:
                logger.debug("Gateway miss: %s", e)
                continue

            missing = [f for f in REQUIRED_METADATA_FIELDS if not metadata.get(f)]
            if missing:
                logger.warning("Metadata at %s is missing %s", url, ", ".join(missing))
                return False
            logger.info("Metadata verified via %s", url)
            return True

        logger.warning(
            "Could not fetch %s from any gateway; it may not have propagated yet", uri
        )
        return False
