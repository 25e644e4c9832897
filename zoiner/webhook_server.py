"""FastAPI webhook server for Neynar cast events."""

import hashlib
import hmac
import json
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from . import __version__
from .config import Config
from .minting import build_token_metadata
from .services.webhook_handler import WebhookHandler

logger = logging.getLogger(__name__)


def verify_neynar_signature(payload: bytes, signature: str, secret: str) -> bool:
    """Verify a Neynar webhook signature (hex HMAC SHA-512 of the raw body).

    Args:
        payload: Raw request body bytes
        signature: X-Neynar-Signature header value
        secret: Webhook secret

    Returns:
        True if signature is valid, False otherwise
    """
    if not signature:
        logger.warning("Missing webhook signature")
        return False

    expected_signature = hmac.new(secret.encode("utf-8"), payload, hashlib.sha512).hexdigest()

    is_valid = hmac.compare_digest(expected_signature, signature.lower())
    if not is_valid:
        logger.warning(
            "Signature verification failed. Expected: %s..., Received: %s...",
            expected_signature[:16],
            signature[:16],
        )
    return is_valid


def create_webhook_app(config: Config, webhook_handler: WebhookHandler) -> FastAPI:
    """Create and configure the FastAPI webhook application.

    Args:
        config: Application configuration
        webhook_handler: WebhookHandler instance

    Returns:
        Configured FastAPI app
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        logger.info("Draining in-flight casts before shutdown")
        await webhook_handler.drain(config.bot.shutdown_drain_seconds)

    app = FastAPI(
        title="Zoiner",
        description="Farcaster mention-to-token bot",
        version=__version__,
        lifespan=lifespan,
    )

    @app.get("/health")
    async def health_check() -> dict:
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": "zoiner",
            "dry_run": config.bot.dry_run,
            "in_flight": webhook_handler.in_flight,
            **webhook_handler.bot.stats,
        }

    @app.get("/webhooks/farcaster")
    async def webhook_verification(challenge: str | None = None) -> dict:
        """Echo the verification challenge, or describe the endpoint."""
        if challenge:
            return {"challenge": challenge}
        return {"status": "Zoiner webhook endpoint active", "version": __version__}

    @app.post("/webhooks/farcaster")
    async def farcaster_webhook(request: Request) -> JSONResponse:
        """Handle incoming Neynar webhooks.

        Returns immediately; the cast is processed in the background.
        """
        if webhook_handler.shutting_down:
            raise HTTPException(status_code=503, detail="Shutting down")

        body = await request.body()

        secret = config.farcaster.webhook_secret
        if secret is not None:
            signature = request.headers.get("X-Neynar-Signature", "")
            if not verify_neynar_signature(body, signature, secret.get_secret_value()):
                raise HTTPException(status_code=401, detail="Invalid signature")

        try:
            payload = json.loads(body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error("Failed to parse webhook payload: %s", e)
            raise HTTPException(status_code=400, detail="Invalid JSON payload")

        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Invalid JSON payload")

        status = await webhook_handler.handle_event(payload)
        return JSONResponse({"status": status}, status_code=200)

    @app.get("/metadata")
    async def token_metadata(
        name: str = Query(..., min_length=1),
        symbol: str = Query(..., min_length=1),
        image: str = Query(..., min_length=1),
    ) -> JSONResponse:
        """Serve token metadata when IPFS publishing was unavailable."""
        return JSONResponse(
            build_token_metadata(name, symbol, image),
            headers={"Access-Control-Allow-Origin": "*"},
        )

    return app
