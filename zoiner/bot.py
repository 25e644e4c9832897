"""Cast-processing pipeline: gate, fetch, decide, mint, reply, remember."""

import asyncio
import logging
from datetime import timedelta
from typing import Optional

from .cast_gate import CastGate
from .decision_engine import DecisionEngine, DecisionOutcome
from .minting import MintingOrchestrator
from .neynar_client import Cast, NeynarClient
from .services.conversation_service import ConversationService

logger = logging.getLogger(__name__)

CREATIVE_BLOCK_MESSAGE = "sorry, i'm having a creative block right now! 🎨 try again in a moment ✨"


class Bot:
    """Handles one cast delivery at a time per task; safe to run many tasks concurrently."""

    def __init__(
        self,
        neynar: NeynarClient,
        gate: CastGate,
        engine: DecisionEngine,
        orchestrator: MintingOrchestrator,
        conversations: ConversationService,
        loop_guard_seconds: float = 10,
        shutdown_event: asyncio.Event | None = None,
    ) -> None:
        self.neynar = neynar
        self.gate = gate
        self.engine = engine
        self.orchestrator = orchestrator
        self.conversations = conversations
        self.loop_guard = timedelta(seconds=loop_guard_seconds)
        self.shutdown_event = shutdown_event or asyncio.Event()
        self.stats = {"processed_casts": 0, "replies": 0, "failures": 0}

    async def process_cast(self, cast_hash: str) -> bool:
        """Process one delivered cast hash.

        Never raises except for cancellation; failures end in a single
        apologetic reply when the cast is known.

        Returns:
            True if the bot replied to the cast.
        """
        if self.shutdown_event.is_set():
            logger.info("Shutting down, not starting cast %s", cast_hash)
            return False

        if not await self.gate.try_mark_seen(cast_hash):
            logger.debug("Skipping already processed cast: %s", cast_hash)
            return False
        self.stats["processed_casts"] += 1

        cast: Optional[Cast] = None
        try:
            cast = await self.neynar.get_cast_by_hash(cast_hash)
            if cast is None:
                logger.warning("Failed to fetch cast %s", cast_hash)
                return False
            if not await self.should_process(cast):
                return False

            logger.info("Processing cast %s from @%s: %s", cast.hash, cast.author.username, cast.text)
            outcome = await self.engine.decide(cast)
            acted = await self._act(cast, outcome)
            if acted:
                self.stats["replies"] += 1
            return acted

        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.stats["failures"] += 1
            logger.error("Error processing cast %s: %s", cast_hash, e, exc_info=True)
            await self.gate.clear_cooldown(cast_hash)
            if cast is not None:
                await self.neynar.reply_to_cast(cast.author.fid, cast.hash, CREATIVE_BLOCK_MESSAGE)
                return True
            return False

    async def should_process(self, cast: Cast) -> bool:
        """Apply loop prevention and the mention check."""
        if cast.author.fid == self.neynar.bot_fid:
            logger.debug("Skipping own cast %s", cast.hash)
            return False

        if not self.neynar.cast_mentions_bot(cast):
            logger.debug("Cast %s does not mention the bot, ignoring", cast.hash)
            return False

        if await self.is_reply_burst(cast):
            logger.info("Skipping cast %s, too close to a bot reply", cast.hash)
            return False

        return True

    async def is_reply_burst(self, cast: Cast) -> bool:
        """Whether the cast replies to a bot cast published moments earlier."""
        if not cast.parent_hash:
            return False

        parent = await self.neynar.get_cast_by_hash(cast.parent_hash)
        if parent is None or parent.author.fid != self.neynar.bot_fid:
            return False

        return cast.timestamp - parent.timestamp < self.loop_guard

    async def _act(self, cast: Cast, outcome: DecisionOutcome) -> bool:
        decision = outcome.decision
        logger.info("Decision for %s: %s", cast.hash, decision.action)

        if decision.is_creation:
            if self.shutdown_event.is_set():
                logger.info("Shutting down, abandoning mint for cast %s", cast.hash)
                await self.gate.clear_cooldown(cast.hash)
                return False
            await self.orchestrator.execute(
                decision, cast, outcome.image_url, outcome.target_cast, outcome.analysis
            )
        else:
            await self.neynar.reply_to_cast(cast.author.fid, cast.hash, decision.message)

        await self._remember(cast, outcome)
        return True

    async def _remember(self, cast: Cast, outcome: DecisionOutcome) -> None:
        # The reply is already out; a storage failure here must not trigger another one
        analysis = outcome.analysis
        try:
            await self.conversations.store_conversation(
                fid=cast.author.fid,
                cast_hash=cast.hash,
                user_message=cast.text,
                agent_response=outcome.decision.message,
                action_taken=outcome.decision.action,
                image_url=outcome.image_url,
                image_analysis_id=analysis.id if analysis is not None else None,
            )
        except Exception as e:
            logger.error("Failed to store conversation for %s: %s", cast.hash, e, exc_info=True)
