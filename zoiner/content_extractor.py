"""Image extraction from already-fetched casts."""

import logging
from typing import Optional

from .neynar_client import Cast

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".svg")
PREVIEW_ENDPOINT = "https://client.farcaster.xyz/v2/og-image"


def is_likely_image_url(url: str) -> bool:
    """Guess from the URL alone whether it points at an image."""
    lowered = url.lower()
    return lowered.endswith(IMAGE_EXTENSIONS) or "image" in lowered


def _is_image_mimetype(mimetype: Optional[str]) -> bool:
    return bool(mimetype) and mimetype.lower().startswith("image/")


def extract_image(cast: Cast) -> Optional[str]:
    """Find the best candidate image URL on a cast.

    Search order, first match wins:
    1. embed with an ``image/*`` mimetype
    2. embed whose URL looks like an image
    3. embed with an explicit ``image`` field
    4. legacy embedded media, same two checks
    5. directly provided image URLs

    Returns:
        The image URL, or None when the cast carries no image.
    """
    for embed in cast.embeds:
        if embed.url:
            if _is_image_mimetype(embed.mimetype):
                logger.debug("Found image in embed with mimetype %s", embed.mimetype)
                return embed.url
            if is_likely_image_url(embed.url):
                logger.debug("Found likely image URL in embed: %s", embed.url)
                return embed.url
        if embed.image:
            logger.debug("Found image in embed.image: %s", embed.image)
            return embed.image

    for media in cast.embedded_media:
        if not media.url:
            continue
        if _is_image_mimetype(media.type) or is_likely_image_url(media.url):
            logger.debug("Found image in embedded media: %s", media.url)
            return media.url

    if cast.image_urls:
        return cast.image_urls[0]

    logger.debug("No image found in cast %s", cast.hash)
    return None


def preview_image_url(cast: Cast) -> str:
    """Rendered preview image for a cast, served by the platform itself."""
    return f"{PREVIEW_ENDPOINT}?castHash={cast.hash}"
