"""
Database Models for WordFlow
SQLAlchemy models for persistent glossary storage
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, Integer
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _new_term_id() -> str:
    return str(uuid.uuid4())


class GlossaryTermModel(Base):
    """Glossary term persistence model"""
    __tablename__ = "glossary_terms"

    id = Column(String(36), primary_key=True, default=_new_term_id)

    # Language fields - source is the base language, unique across the glossary
    source = Column(Text, unique=True, nullable=False)
    target_a = Column(Text, default="", nullable=False)
    target_b = Column(Text, default="", nullable=False)

    category = Column(String(100), nullable=False, index=True)
    status = Column(String(20), default="draft", nullable=False, index=True)
    remark = Column(Text, default="", nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    def to_dict(self) -> dict:
        """Convert to dictionary for API response"""
        return {
            "id": self.id,
            "source": self.source,
            "target_a": self.target_a or "",
            "target_b": self.target_b or "",
            "category": self.category,
            "status": self.status,
            "remark": self.remark or "",
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class GlossaryCategoryModel(Base):
    """Glossary category model"""
    __tablename__ = "glossary_categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False)
    created_at = Column(DateTime, default=datetime.now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
