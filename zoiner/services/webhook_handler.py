"""Neynar webhook event handler."""

import asyncio
import logging
from typing import Any

from ..bot import Bot
from ..cast_gate import CastGate

logger = logging.getLogger(__name__)

CAST_EVENT_TYPES = ("cast.created", "post.created")


class WebhookHandler:
    """Routes webhook events to the cast pipeline as background tasks."""

    def __init__(self, bot: Bot, gate: CastGate):
        """Initialize webhook handler.

        Args:
            bot: Pipeline that processes a cast hash
            gate: Gate consulted before scheduling any work
        """
        self.bot = bot
        self.gate = gate
        self._tasks: set[asyncio.Task] = set()

    @property
    def shutting_down(self) -> bool:
        return self.bot.shutdown_event.is_set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def handle_event(self, payload: dict[str, Any]) -> str:
        """Route a webhook payload.

        Returns:
            One of ``accepted``, ``ignored``, ``invalid``, ``cooldown`` or
            ``shutting_down``.
        """
        await self.gate.evict_expired()

        event_type = payload.get("type")
        if event_type not in CAST_EVENT_TYPES:
            logger.info("Ignoring unhandled event type: %s", event_type)
            return "ignored"

        data = payload.get("data") or {}
        cast_hash = data.get("hash") if isinstance(data, dict) else None
        if not cast_hash:
            logger.warning("Webhook %s without a cast hash", event_type)
            return "invalid"

        if self.shutting_down:
            return "shutting_down"

        if not await self.gate.try_start_cooldown(cast_hash):
            logger.info("Cast %s is in cooldown, skipping", cast_hash)
            return "cooldown"

        self.schedule(cast_hash)
        logger.info("Accepted %s for cast %s", event_type, cast_hash)
        return "accepted"

    def schedule(self, cast_hash: str) -> asyncio.Task:
        task = asyncio.create_task(self.bot.process_cast(cast_hash), name=f"cast-{cast_hash}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self, timeout: float) -> None:
        """Stop accepting work and wait for in-flight casts.

        Tasks still running after ``timeout`` seconds are cancelled.
        """
        self.bot.shutdown_event.set()
        if self._tasks:
            logger.info("Waiting for %d in-flight cast(s)", len(self._tasks))
            _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
                logger.warning("Cancelled %d cast(s) still running at shutdown", len(pending))

        await self.bot.conversations.wait_for_cleanup()
