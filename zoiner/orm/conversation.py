"""Conversation model for per-user interaction history."""

from typing import Optional

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase


class Conversation(SqlalchemyBase):
    """One bot interaction: the user's cast and the bot's reply.

    History is ordered by ``(created_at, id)``. Only the most recent few
    rows per fid are kept; trimming happens in a cleanup pass after insert,
    not on the write path.
    """

    __tablename__ = "conversations"
    __table_args__ = (Index("idx_conversations_fid_created_at", "fid", "created_at"),)

    fid: Mapped[int] = mapped_column(Integer, nullable=False)
    cast_hash: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    user_message: Mapped[str] = mapped_column(Text, nullable=False)
    agent_response: Mapped[str] = mapped_column(Text, nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    image_analysis_id: Mapped[Optional[str]] = mapped_column(
        String, ForeignKey("image_analyses.id", ondelete="SET NULL"), nullable=True
    )
    action_taken: Mapped[str] = mapped_column(String, nullable=False)
