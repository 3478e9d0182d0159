"""
Repository classes for database operations
Provides CRUD operations for glossary terms and categories
"""
from datetime import datetime
from typing import Optional, List, Dict, Iterable
from sqlalchemy import select, delete, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from .models import GlossaryTermModel, GlossaryCategoryModel

# Columns a term update may touch; id and created_at are owned by the store
TERM_UPDATABLE_FIELDS = ("source", "target_a", "target_b", "category", "status", "remark")


class GlossaryTermRepository:
    """Repository for glossary term CRUD operations"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        source: str,
        target_a: str = "",
        target_b: str = "",
        category: str = "General",
        status: str = "draft",
        remark: str = "",
    ) -> GlossaryTermModel:
        """Create a new glossary term"""
        now = datetime.now()
        term = GlossaryTermModel(
            source=source,
            target_a=target_a,
            target_b=target_b,
            category=category,
            status=status,
            remark=remark,
            created_at=now,
            updated_at=now,
        )
        self.session.add(term)
        await self.session.flush()
        logger.debug(f"Created glossary term {term.id}: {source!r}")
        return term

    async def get(self, term_id: str) -> Optional[GlossaryTermModel]:
        """Get term by ID"""
        result = await self.session.execute(
            select(GlossaryTermModel).where(GlossaryTermModel.id == term_id)
        )
        return result.scalar_one_or_none()

    async def get_all(
        self,
        category: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[GlossaryTermModel]:
        """Get all terms in creation order, optionally filtered"""
        stmt = select(GlossaryTermModel).order_by(
            GlossaryTermModel.created_at, GlossaryTermModel.id
        )

        if category:
            stmt = stmt.where(GlossaryTermModel.category == category)

        if status:
            stmt = stmt.where(GlossaryTermModel.status == status)

        if search:
            pattern = f"%{search.lower()}%"
            stmt = stmt.where(or_(
                func.lower(GlossaryTermModel.source).like(pattern),
                func.lower(GlossaryTermModel.target_a).like(pattern),
                func.lower(GlossaryTermModel.target_b).like(pattern),
                func.lower(GlossaryTermModel.remark).like(pattern),
            ))

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def update(self, term_id: str, **kwargs) -> Optional[GlossaryTermModel]:
        """Update the supplied term fields only"""
        term = await self.get(term_id)
        if not term:
            return None

        changed = []
        for key, value in kwargs.items():
            if key in TERM_UPDATABLE_FIELDS:
                setattr(term, key, value)
                changed.append(key)
            else:
                logger.warning(f"Ignoring unknown glossary term field: {key}")

        term.updated_at = datetime.now()
        await self.session.flush()
        logger.debug(f"Updated glossary term {term_id}: {changed}")
        return term

    async def delete(self, term_id: str) -> bool:
        """Delete a term"""
        result = await self.session.execute(
            delete(GlossaryTermModel).where(GlossaryTermModel.id == term_id)
        )
        deleted = result.rowcount > 0
        if deleted:
            logger.info(f"Deleted glossary term: {term_id}")
        return deleted

    async def delete_many(self, term_ids: Iterable[str]) -> int:
        """Delete several terms, returning how many rows were removed"""
        ids = list(term_ids)
        if not ids:
            return 0
        result = await self.session.execute(
            delete(GlossaryTermModel).where(GlossaryTermModel.id.in_(ids))
        )
        logger.info(f"Deleted {result.rowcount} glossary terms")
        return result.rowcount

    async def count_by_status(self) -> Dict[str, int]:
        """Aggregate term counts per status"""
        result = await self.session.execute(
            select(GlossaryTermModel.status, func.count(GlossaryTermModel.id))
            .group_by(GlossaryTermModel.status)
        )
        return {status: count for status, count in result.all()}

    async def get_used_categories(self) -> List[str]:
        """Distinct categories referenced by terms"""
        result = await self.session.execute(
            select(GlossaryTermModel.category).distinct().order_by(GlossaryTermModel.category)
        )
        return [row[0] for row in result.all() if row[0]]


class GlossaryCategoryRepository:
    """Repository for glossary categories"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_all(self) -> List[GlossaryCategoryModel]:
        result = await self.session.execute(
            select(GlossaryCategoryModel).order_by(GlossaryCategoryModel.name)
        )
        return list(result.scalars().all())

    async def get_by_name(self, name: str) -> Optional[GlossaryCategoryModel]:
        result = await self.session.execute(
            select(GlossaryCategoryModel).where(GlossaryCategoryModel.name == name)
        )
        return result.scalar_one_or_none()

    async def create(self, name: str) -> GlossaryCategoryModel:
        category = GlossaryCategoryModel(name=name, created_at=datetime.now())
        self.session.add(category)
        await self.session.flush()
        logger.info(f"Created glossary category: {name}")
        return category

    async def delete(self, name: str) -> bool:
        result = await self.session.execute(
            delete(GlossaryCategoryModel).where(GlossaryCategoryModel.name == name)
        )
        return result.rowcount > 0
