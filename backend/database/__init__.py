"""
Database module for WordFlow
Provides SQLite-based persistence for glossary terms and categories
"""
from .models import Base, GlossaryTermModel, GlossaryCategoryModel
from .repository import GlossaryTermRepository, GlossaryCategoryRepository
from .connection import get_db, init_db, close_db

__all__ = [
    "Base",
    "GlossaryTermModel",
    "GlossaryCategoryModel",
    "GlossaryTermRepository",
    "GlossaryCategoryRepository",
    "get_db",
    "init_db",
    "close_db",
]
