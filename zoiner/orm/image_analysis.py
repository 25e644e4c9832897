"""ImageAnalysis model caching vision analyses by image URL."""

from sqlalchemy import JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase


class ImageAnalysis(SqlalchemyBase):
    """Memoized advisory-model analysis of an image. Never evicted."""

    __tablename__ = "image_analyses"

    image_url: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    analysis_result: Mapped[str] = mapped_column(Text, nullable=False)  # raw model output
    artistic_style: Mapped[str] = mapped_column(String, nullable=False)
    color_palette: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    mood: Mapped[str] = mapped_column(String, nullable=False)
    composition_notes: Mapped[str] = mapped_column(Text, nullable=False)
    suggested_names: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    suggested_symbols: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    artistic_elements: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    visual_description: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        """String representation."""
        return f"<ImageAnalysis(id={self.id}, image_url={self.image_url}, style={self.artistic_style})>"
