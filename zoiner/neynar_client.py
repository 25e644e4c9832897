"""Neynar client wrapper for Farcaster interactions."""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from .config import FarcasterConfig

logger = logging.getLogger(__name__)

URL_PATTERN = re.compile(r"https?://[^\s]+")


@dataclass(frozen=True)
class CastAuthor:
    """Author of a cast."""

    fid: int
    username: str
    display_name: str = ""
    pfp_url: Optional[str] = None
    eth_address: Optional[str] = None

    @property
    def name(self) -> str:
        return self.display_name or self.username


@dataclass(frozen=True)
class CastEmbed:
    """A structured attachment reference on a cast."""

    url: Optional[str] = None
    mimetype: Optional[str] = None
    image: Optional[str] = None


@dataclass(frozen=True)
class EmbeddedMedia:
    """Legacy embedded media entry."""

    url: Optional[str] = None
    type: Optional[str] = None


@dataclass(frozen=True)
class Cast:
    """Represents a single Farcaster cast as fetched from the API."""

    hash: str
    author: CastAuthor
    text: str
    timestamp: datetime
    parent_hash: Optional[str] = None
    embeds: tuple[CastEmbed, ...] = ()
    embedded_media: tuple[EmbeddedMedia, ...] = ()
    image_urls: tuple[str, ...] = ()
    mentions: tuple[int, ...] = ()

    def __str__(self) -> str:
        return f"@{self.author.username}: {self.text}"


@dataclass(frozen=True)
class FarcasterUser:
    """Minimal user profile."""

    fid: int
    username: str
    display_name: str
    eth_addresses: list[str] = field(default_factory=list)

    @property
    def verified_eth_address(self) -> Optional[str]:
        return self.eth_addresses[0] if self.eth_addresses else None


def _parse_timestamp(raw: Any) -> datetime:
    if not raw:
        return datetime.now(timezone.utc)
    try:
        parsed = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Unparseable cast timestamp: %s", raw)
        return datetime.now(timezone.utc)
    # Offset-less timestamps are UTC
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def _eth_addresses(user: dict[str, Any]) -> list[str]:
    verified = (user.get("verified_addresses") or {}).get("eth_addresses") or []
    if verified:
        return [str(a) for a in verified]
    # Older payloads carry a flat verifications list
    return [str(a) for a in user.get("verifications") or [] if str(a).startswith("0x")]


def parse_cast(raw: dict[str, Any]) -> Cast:
    """Convert a Neynar cast payload into a Cast."""
    author = raw.get("author") or {}
    addresses = _eth_addresses(author)

    embeds = []
    for embed in raw.get("embeds") or []:
        if not isinstance(embed, dict):
            continue
        metadata = embed.get("metadata") or {}
        embeds.append(
            CastEmbed(
                url=embed.get("url"),
                mimetype=embed.get("mimetype") or metadata.get("content_type"),
                image=embed.get("image"),
            )
        )

    media = [
        EmbeddedMedia(url=m.get("url"), type=m.get("type"))
        for m in raw.get("embedded_media") or []
        if isinstance(m, dict)
    ]

    image_urls = [str(u) for u in raw.get("image_urls") or []]
    image_urls += [str(u) for u in raw.get("images") or []]

    mentions = [int(fid) for fid in raw.get("mentions") or [] if str(fid).isdigit()]
    mentions += [
        int(p["fid"]) for p in raw.get("mentioned_profiles") or [] if isinstance(p, dict) and "fid" in p
    ]

    return Cast(
        hash=str(raw.get("hash") or ""),
        author=CastAuthor(
            fid=int(author.get("fid") or 0),
            username=str(author.get("username") or ""),
            display_name=str(author.get("display_name") or ""),
            pfp_url=author.get("pfp_url"),
            eth_address=addresses[0] if addresses else None,
        ),
        text=str(raw.get("text") or ""),
        timestamp=_parse_timestamp(raw.get("timestamp")),
        parent_hash=raw.get("parent_hash") or None,
        embeds=tuple(embeds),
        embedded_media=tuple(media),
        image_urls=tuple(image_urls),
        mentions=tuple(mentions),
    )


class NeynarClient:
    """Async wrapper around the Neynar REST API for bot operations."""

    def __init__(
        self,
        config: FarcasterConfig,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.timeout = timeout
        self._transport = transport

    @property
    def bot_fid(self) -> int:
        return self.config.bot_fid

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.api_base_url,
            headers={
                "x-api-key": self.config.api_key.get_secret_value(),
                "Accept": "application/json",
            },
            timeout=self.timeout,
            transport=self._transport,
        )

    async def get_cast_by_hash(self, cast_hash: str) -> Optional[Cast]:
        """Fetch a cast by hash.

        Args:
            cast_hash: The cast hash (0x-prefixed).

        Returns:
            Cast, or None if it could not be fetched.
        """
        async with self._client() as client:
            try:
                response = await client.get("/cast", params={"identifier": cast_hash, "type": "hash"})
                response.raise_for_status()
                payload = response.json()
            except httpx.HTTPStatusError as e:
                logger.warning(
                    "Failed to fetch cast %s (HTTP %d)", cast_hash, e.response.status_code
                )
                return None
            except httpx.HTTPError as e:
                logger.warning("Failed to fetch cast %s: %s", cast_hash, e)
                return None

        raw = payload.get("cast")
        if not raw:
            logger.warning("Cast %s not found in response", cast_hash)
            return None

        cast = parse_cast(raw)
        logger.debug(
            "Fetched cast %s from fid=%d (embeds=%d)", cast.hash, cast.author.fid, len(cast.embeds)
        )
        return cast

    async def get_user_by_fid(self, fid: int) -> Optional[FarcasterUser]:
        """Fetch a user profile by fid."""
        async with self._client() as client:
            try:
                response = await client.get("/user/bulk", params={"fids": str(fid)})
                response.raise_for_status()
                users = response.json().get("users") or []
            except httpx.HTTPError as e:
                logger.warning("Failed to fetch user %d: %s", fid, e)
                return None

        if not users:
            return None

        user = users[0]
        return FarcasterUser(
            fid=int(user.get("fid") or fid),
            username=user.get("username") or "unnamed",
            display_name=user.get("display_name") or user.get("username") or "Unnamed User",
            eth_addresses=_eth_addresses(user),
        )

    async def get_user_eth_address(self, fid: int) -> Optional[str]:
        """Return the user's primary verified Ethereum address, if any."""
        user = await self.get_user_by_fid(fid)
        return user.verified_eth_address if user else None

    async def get_user_eth_address_by_username(self, username: str) -> Optional[str]:
        """Look up a verified Ethereum address by exact username match.

        Args:
            username: Farcaster username, with or without a leading @.

        Returns:
            The first verified address, or None.
        """
        username = username.lstrip("@")
        async with self._client() as client:
            try:
                response = await client.get("/user/search", params={"q": username, "limit": 10})
                response.raise_for_status()
                users = (response.json().get("result") or {}).get("users") or []
            except httpx.HTTPError as e:
                logger.warning("Failed to search user %s: %s", username, e)
                return None

        for user in users:
            if str(user.get("username", "")).lower() == username.lower():
                addresses = _eth_addresses(user)
                if not addresses:
                    logger.info("No verified ETH address for @%s", username)
                return addresses[0] if addresses else None

        logger.info("No exact match found for username: %s", username)
        return None

    async def reply_to_cast(self, parent_fid: int, parent_hash: str, text: str) -> Optional[str]:
        """Publish a reply. URLs found in the text are attached as embeds.

        Args:
            parent_fid: Author fid of the cast being replied to.
            parent_hash: Hash of the cast being replied to.
            text: Reply text.

        Returns:
            Hash of the new cast, or None if publishing failed.
        """
        urls = list(dict.fromkeys(URL_PATTERN.findall(text)))
        body: dict[str, Any] = {
            "signer_uuid": self.config.signer_uuid,
            "text": text,
            "parent": parent_hash,
            "parent_author_fid": parent_fid,
        }
        if urls:
            body["embeds"] = [{"url": url} for url in urls]

        async with self._client() as client:
            try:
                response = await client.post("/cast", json=body)
                response.raise_for_status()
                payload = response.json()
            except httpx.HTTPStatusError as e:
                logger.error(
                    "Failed to reply to cast %s (HTTP %d): %s",
                    parent_hash,
                    e.response.status_code,
                    e.response.text,
                )
                return None
            except httpx.HTTPError as e:
                logger.error("Failed to reply to cast %s: %s", parent_hash, e)
                return None

        reply_hash = (payload.get("cast") or {}).get("hash")
        logger.info("Posted reply to %s: %s", parent_hash, reply_hash)
        return reply_hash

    def cast_mentions_bot(self, cast: Cast) -> bool:
        """Check whether a cast mentions the bot by fid or by name."""
        if self.bot_fid in cast.mentions:
            return True

        text = cast.text.lower()
        return (
            f"@{self.config.bot_name.lower()}" in text
            or f"@!{self.bot_fid}" in text
        )
