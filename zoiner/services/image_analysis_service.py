"""Cache of image analyses keyed by image URL."""

import logging
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..orm.image_analysis import ImageAnalysis
from .database import DatabaseService, get_db_service

logger = logging.getLogger(__name__)


class ImageAnalysisService:
    """Reads and writes memoized image analyses."""

    def __init__(self, db: DatabaseService | None = None):
        self._db = db

    @property
    def db(self) -> DatabaseService:
        return self._db or get_db_service()

    async def get_by_url(self, image_url: str) -> Optional[ImageAnalysis]:
        """Return the cached analysis for an image URL, if any."""
        async with self.db.session() as session:
            result = await session.execute(
                select(ImageAnalysis).where(ImageAnalysis.image_url == image_url)
            )
            return result.scalar_one_or_none()

    async def store(self, image_url: str, raw_result: str, analysis: dict[str, Any]) -> ImageAnalysis:
        """Persist an analysis.

        If another task stored the same URL first, the existing row wins and
        is returned instead.
        """
        entry = ImageAnalysis(
            image_url=image_url,
            analysis_result=raw_result,
            artistic_style=analysis["artistic_style"],
            color_palette=list(analysis["color_palette"]),
            mood=analysis["mood"],
            composition_notes=analysis["composition_notes"],
            suggested_names=list(analysis["suggested_names"]),
            suggested_symbols=list(analysis["suggested_symbols"]),
            artistic_elements=list(analysis["artistic_elements"]),
            visual_description=analysis["visual_description"],
        )

        try:
            async with self.db.session() as session:
                session.add(entry)
        except IntegrityError:
            logger.debug("Analysis for %s already stored, reusing existing row", image_url)
            existing = await self.get_by_url(image_url)
            if existing is None:
                raise
            return existing

        logger.info("Stored image analysis for %s", image_url)
        return entry
