"""Service layer for business logic and database operations."""

from .conversation_service import ConversationService, UserContext
from .database import DatabaseService, close_db_service, get_db_service, init_db_service
from .image_analysis_service import ImageAnalysisService
from .token_creation_service import TokenCreationService

__all__ = [
    "ConversationService",
    "DatabaseService",
    "ImageAnalysisService",
    "TokenCreationService",
    "UserContext",
    "close_db_service",
    "get_db_service",
    "init_db_service",
]
