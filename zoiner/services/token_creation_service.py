"""Append-only ledger of created tokens."""

import logging
from typing import List, Optional

from sqlalchemy import func, select

from ..orm.token_creation import TokenCreation
from .database import DatabaseService, get_db_service

logger = logging.getLogger(__name__)


class TokenCreationService:
    """Service for recording completed token creations."""

    def __init__(self, db: DatabaseService | None = None):
        self._db = db

    @property
    def db(self) -> DatabaseService:
        return self._db or get_db_service()

    async def record(
        self,
        fid: int,
        token_address: str,
        token_name: str,
        token_symbol: str,
        image_url: str,
        description: str,
        user_prompt: str,
        zora_url: Optional[str] = None,
        transaction_hash: Optional[str] = None,
        image_analysis_id: Optional[str] = None,
    ) -> TokenCreation:
        """Append one ledger row."""
        entry = TokenCreation(
            fid=fid,
            token_address=token_address,
            token_name=token_name,
            token_symbol=token_symbol,
            image_url=image_url,
            image_analysis_id=image_analysis_id,
            ai_generated_description=description,
            user_prompt=user_prompt,
            zora_url=zora_url,
            transaction_hash=transaction_hash,
        )
        async with self.db.session() as session:
            session.add(entry)

        logger.info("Recorded token %s (%s) for fid=%d", token_name, token_address, fid)
        return entry

    async def count_for_fid(self, fid: int) -> int:
        """Lifetime number of tokens created for a user."""
        async with self.db.session() as session:
            result = await session.execute(
                select(func.count()).select_from(TokenCreation).where(TokenCreation.fid == fid)
            )
            return result.scalar() or 0

    async def list_for_fid(self, fid: int, limit: int = 10) -> List[TokenCreation]:
        """Most recent creations for a user, newest first."""
        async with self.db.session() as session:
            result = await session.execute(
                select(TokenCreation)
                .where(TokenCreation.fid == fid)
                .order_by(TokenCreation.created_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())
