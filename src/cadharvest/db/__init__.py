"""
Database Package

Database models, connection management, and the scraped property repository.
"""
from src.cadharvest.db.base import Base
from src.cadharvest.db.session import (
    engine,
    SessionLocal,
    get_db_session,
    close_connections,
    create_all_tables,
)
from src.cadharvest.db.models import ScrapedProperty
from src.cadharvest.db.repository import BaseRepository, ScrapedPropertyRepository

__all__ = [
    # Base
    "Base",
    # Session management
    "engine",
    "SessionLocal",
    "get_db_session",
    "close_connections",
    "create_all_tables",
    # Models
    "ScrapedProperty",
    # Repositories
    "BaseRepository",
    "ScrapedPropertyRepository",
]
