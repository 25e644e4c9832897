"""Service for managing per-user conversation memory."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError

from ..orm.conversation import Conversation
from ..orm.token_creation import TokenCreation
from .database import DatabaseService, get_db_service

logger = logging.getLogger(__name__)

NEWEST_FIRST = (Conversation.created_at.desc(), Conversation.id.desc())


@dataclass
class UserContext:
    """What the decision engine knows about a user before deciding."""

    fid: int
    recent: List[Conversation] = field(default_factory=list)
    creation_count: int = 0

    @property
    def last_action(self) -> Optional[str]:
        return self.recent[0].action_taken if self.recent else None


class ConversationService:
    """Stores interactions and keeps only the most recent few per user."""

    def __init__(self, db: DatabaseService | None = None, retention: int = 5):
        self._db = db
        self.retention = retention
        self._cleanup_tasks: set[asyncio.Task] = set()

    @property
    def db(self) -> DatabaseService:
        return self._db or get_db_service()

    async def store_conversation(
        self,
        fid: int,
        cast_hash: str,
        user_message: str,
        agent_response: str,
        action_taken: str,
        image_url: Optional[str] = None,
        image_analysis_id: Optional[str] = None,
    ) -> Optional[Conversation]:
        """Store one interaction and schedule retention cleanup for the user.

        Returns:
            The stored row, or None if the cast was already recorded.
        """
        entry = Conversation(
            fid=fid,
            cast_hash=cast_hash,
            user_message=user_message,
            agent_response=agent_response,
            image_url=image_url,
            image_analysis_id=image_analysis_id,
            action_taken=action_taken,
        )
        try:
            async with self.db.session() as session:
                session.add(entry)
        except IntegrityError:
            if await self._stored_for_cast(cast_hash) is None:
                raise
            logger.warning("Conversation for cast %s already stored", cast_hash)
            return None

        task = asyncio.create_task(self.cleanup_user_history(fid))
        self._cleanup_tasks.add(task)
        task.add_done_callback(self._cleanup_tasks.discard)
        return entry

    async def _stored_for_cast(self, cast_hash: str) -> Optional[Conversation]:
        async with self.db.session() as session:
            result = await session.execute(
                select(Conversation).where(Conversation.cast_hash == cast_hash)
            )
            return result.scalar_one_or_none()

    async def get_recent(self, fid: int, limit: int | None = None) -> List[Conversation]:
        """Most recent interactions for a user, newest first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(Conversation)
                .where(Conversation.fid == fid)
                .order_by(*NEWEST_FIRST)
                .limit(limit or self.retention)
            )
            return list(result.scalars().all())

    async def get_user_context(self, fid: int) -> UserContext:
        """Recent history plus lifetime creation count."""
        recent = await self.get_recent(fid)
        async with self.db.session() as session:
            result = await session.execute(
                select(func.count()).select_from(TokenCreation).where(TokenCreation.fid == fid)
            )
            count = result.scalar() or 0
        return UserContext(fid=fid, recent=recent, creation_count=count)

    async def cleanup_user_history(self, fid: int) -> int:
        """Delete all but the newest ``retention`` rows for a user.

        Returns:
            Number of rows removed.
        """
        try:
            async with self.db.session() as session:
                keep = (
                    select(Conversation.id)
                    .where(Conversation.fid == fid)
                    .order_by(*NEWEST_FIRST)
                    .limit(self.retention)
                )
                result = await session.execute(
                    delete(Conversation)
                    .where(Conversation.fid == fid, Conversation.id.not_in(keep))
                    .execution_options(synchronize_session=False)
                )
                removed = result.rowcount or 0
        except Exception:
            logger.error("Conversation cleanup failed for fid=%d", fid, exc_info=True)
            return 0

        if removed:
            logger.debug("Removed %d old conversations for fid=%d", removed, fid)
        return removed

    async def wait_for_cleanup(self) -> None:
        """Wait for any scheduled cleanup passes to finish."""
        if self._cleanup_tasks:
            await asyncio.gather(*self._cleanup_tasks, return_exceptions=True)
