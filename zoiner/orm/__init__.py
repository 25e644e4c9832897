"""ORM models for database persistence."""

from .base import Base, SqlalchemyBase
from .conversation import Conversation
from .image_analysis import ImageAnalysis
from .token_creation import TokenCreation

__all__ = [
    "Base",
    "SqlalchemyBase",
    "Conversation",
    "ImageAnalysis",
    "TokenCreation",
]
