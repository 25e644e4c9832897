"""Minting sequence: preconditions, metadata, issuance with retry, reply and ledger."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import urlencode

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .decision_engine import MintingDecision
from .neynar_client import Cast, NeynarClient
from .orm.image_analysis import ImageAnalysis
from .orm.token_creation import TokenCreation
from .pinata_client import MetadataPublishError, PinataClient
from .services.token_creation_service import TokenCreationService
from .zora_client import CoinParams, CoinResult, TransientMetadataError, ZoraClient, short_address

logger = logging.getLogger(__name__)

NEED_ADDRESS_MESSAGE = "need a verified ethereum address first!"
NEED_IMAGE_MESSAGE = "need an image to create your token!"
MINT_FAILED_MESSAGE = "sorry, hit a creative block! 🎨 try again ✨"
SUCCESS_SUFFIX = "your creation is zoined! 🎨→🪙"

ISSUANCE_ATTEMPTS = 3
BACKOFF_SECONDS = 5


def build_token_metadata(
    name: str, symbol: str, image_url: str, description: Optional[str] = None
) -> dict[str, Any]:
    """Token metadata document in the shape the Zora indexer expects."""
    return {
        "name": name,
        "symbol": symbol,
        "description": description or f"{name} - Created with @zoiner on Farcaster",
        "image": image_url,
        "properties": {"category": "social"},
    }


def fallback_metadata_url(public_url: str, name: str, symbol: str, image_url: str) -> str:
    """URL of this service's own metadata endpoint for a token."""
    query = urlencode({"name": name, "symbol": symbol, "image": image_url})
    return f"{public_url.rstrip('/')}/metadata?{query}"


class MintingOrchestrator:
    """Executes a creation decision end to end.

    Every outcome ends in exactly one reply to the triggering cast. A ledger
    row is written only after issuance succeeds.
    """

    def __init__(
        self,
        neynar: NeynarClient,
        storage: PinataClient,
        issuer: ZoraClient,
        ledger: TokenCreationService,
        platform_referrer: str,
        dry_run: bool = False,
        public_url: Optional[str] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.neynar = neynar
        self.storage = storage
        self.issuer = issuer
        self.ledger = ledger
        self.platform_referrer = platform_referrer
        self.dry_run = dry_run
        self.public_url = public_url
        self._sleep = sleep

    async def execute(
        self,
        decision: MintingDecision,
        cast: Cast,
        image_url: Optional[str],
        target_cast: Cast,
        analysis: Optional[ImageAnalysis] = None,
    ) -> Optional[TokenCreation]:
        """Run the minting steps for a creation decision.

        Returns:
            The ledger row, or None when nothing was minted.
        """
        payout = cast.author.eth_address or await self.neynar.get_user_eth_address(cast.author.fid)
        if not payout and cast.author.username:
            payout = await self.neynar.get_user_eth_address_by_username(cast.author.username)
        if not payout:
            logger.info("fid=%d has no verified address", cast.author.fid)
            await self._reply(cast, NEED_ADDRESS_MESSAGE)
            return None

        if not image_url:
            await self._reply(cast, NEED_IMAGE_MESSAGE)
            return None

        name = decision.suggested_name
        symbol = decision.suggested_symbol
        is_post_token = decision.action == "create_post_token"

        if self.dry_run:
            text = f'{decision.message}\n\n🏜️ DRY RUN: Token "{name}" would be created'
            if is_post_token:
                text += f" from cast by {target_cast.author.username}"
            await self._reply(cast, text + "!")
            return None

        try:
            metadata = build_token_metadata(name, symbol, image_url, decision.metadata_description)
            uri = await self._publish_metadata(metadata)
            await self.storage.validate_metadata(uri)

            result = await self._create_with_retry(
                CoinParams(
                    name=name,
                    symbol=symbol,
                    uri=uri,
                    payout_recipient=payout,
                    platform_referrer=self.platform_referrer,
                )
            )
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.error(
                "Token creation failed for cast %s (%s / %s)", cast.hash, name, symbol, exc_info=True
            )
            await self._reply(cast, MINT_FAILED_MESSAGE)
            return None

        zora_url = self.issuer.generate_zora_url(result.address, self.platform_referrer)
        reply = f"{decision.message}\n\n{SUCCESS_SUFFIX}\n\n"
        if is_post_token:
            reply += f"tokenized cast by @{target_cast.author.username}\n\n"
        await self._reply(cast, reply + zora_url)

        try:
            return await self.ledger.record(
                fid=cast.author.fid,
                token_address=result.address,
                token_name=name,
                token_symbol=symbol,
                image_url=image_url,
                description=metadata["description"],
                user_prompt=cast.text,
                zora_url=zora_url,
                transaction_hash=result.tx_hash,
                image_analysis_id=analysis.id if analysis is not None else None,
            )
        except Exception:
            logger.error(
                "Token %s minted at %s but the ledger write failed",
                name,
                result.address,
                exc_info=True,
            )
            return None

    async def _publish_metadata(self, metadata: dict[str, Any]) -> str:
        try:
            return await self.storage.publish_json(metadata, f"{metadata['name']}-metadata.json")
        except MetadataPublishError:
            if not self.public_url:
                raise
            url = fallback_metadata_url(
                self.public_url, metadata["name"], metadata["symbol"], metadata["image"]
            )
            logger.warning("IPFS publish failed, serving metadata from %s", url, exc_info=True)
            return url

    async def _create_with_retry(self, params: CoinParams) -> CoinResult:
        """Create the coin, retrying only while metadata has not propagated."""
        logger.info(
            "Issuing %s (%s) to %s", params.name, params.symbol, short_address(params.payout_recipient)
        )
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(TransientMetadataError),
            stop=stop_after_attempt(ISSUANCE_ATTEMPTS),
            wait=wait_exponential(multiplier=BACKOFF_SECONDS, min=BACKOFF_SECONDS),
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                return await self.issuer.create_coin(params)

    async def _reply(self, cast: Cast, text: str) -> None:
        await self.neynar.reply_to_cast(cast.author.fid, cast.hash, text)
