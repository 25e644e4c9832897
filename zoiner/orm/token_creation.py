"""TokenCreation model: the append-only ledger of minted tokens."""

from typing import Optional

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase


class TokenCreation(SqlalchemyBase):
    """Record of a completed token creation. Rows are never updated or deleted."""

    __tablename__ = "ai_token_creations"
    __table_args__ = (
        Index("idx_ai_token_creations_fid", "fid"),
        Index("idx_ai_token_creations_created_at", "created_at"),
    )

    fid: Mapped[int] = mapped_column(Integer, nullable=False)
    token_address: Mapped[str] = mapped_column(String, nullable=False)
    token_name: Mapped[str] = mapped_column(String, nullable=False)
    token_symbol: Mapped[str] = mapped_column(String, nullable=False)
    image_url: Mapped[str] = mapped_column(String, nullable=False)
    image_analysis_id: Mapped[Optional[str]] = mapped_column(
        String, ForeignKey("image_analyses.id", ondelete="SET NULL"), nullable=True
    )
    ai_generated_description: Mapped[str] = mapped_column(Text, nullable=False)
    user_prompt: Mapped[str] = mapped_column(Text, nullable=False)
    zora_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    transaction_hash: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<TokenCreation(id={self.id}, fid={self.fid}, name={self.token_name}, "
            f"symbol={self.token_symbol}, address={self.token_address})>"
        )
