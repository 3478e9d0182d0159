"""
Term Store

Abstract interface the duplicate resolution engine consumes, and the
SQLAlchemy-backed implementation used by the API.
"""
import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Callable, Dict, Iterable, List, Optional

from loguru import logger
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database.models import GlossaryTermModel
from database.repository import GlossaryTermRepository, GlossaryCategoryRepository

from .errors import ConflictError, InvalidInputError, StoreUnavailableError
from .models import CandidateTerm, Term, TermStatus

# Fields a partial term update may carry
UPDATABLE_FIELDS = ("source", "target_a", "target_b", "category", "status", "remark")


class TermStore(ABC):
    """Abstract base class for glossary term stores"""

    @abstractmethod
    async def list_terms(self) -> List[Term]:
        """Return all existing terms in a stable order"""
        pass

    @abstractmethod
    async def insert_term(self, candidate: CandidateTerm) -> Term:
        """Persist a candidate; the store assigns id, defaults and timestamps"""
        pass

    @abstractmethod
    async def update_term(self, term_id: str, fields: Dict[str, Any]) -> Term:
        """Apply a partial update; only the supplied keys change"""
        pass


def term_from_model(model: GlossaryTermModel) -> Term:
    return Term(
        id=model.id,
        source=model.source,
        target_a=model.target_a or "",
        target_b=model.target_b or "",
        category=model.category,
        status=TermStatus(model.status),
        remark=model.remark or "",
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


class SqlTermStore(TermStore):
    """
    Term store on top of the async SQLAlchemy repositories.

    Every call runs in its own session. SQLite shares a single connection
    (StaticPool), so calls are serialized there to keep one transaction per
    call. Database errors are translated into the glossary error taxonomy.
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], AsyncSession]] = None,
        serialize: Optional[bool] = None,
    ):
        """
        Args:
            session_factory: Callable returning a new AsyncSession. Defaults
                to the application's session factory.
            serialize: Run one store call at a time. Defaults to True for
                SQLite URLs.
        """
        self._session_factory = session_factory
        if serialize is None:
            serialize = settings.DATABASE_URL.startswith("sqlite")
        self._serialize = serialize
        self._lock: Optional[asyncio.Lock] = None

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        if not self._serialize:
            async with self._open_session() as session:
                yield session
            return

        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            async with self._open_session() as session:
                yield session

    @asynccontextmanager
    async def _open_session(self) -> AsyncGenerator[AsyncSession, None]:
        if self._session_factory is None:
            from database.connection import get_session_factory
            self._session_factory = get_session_factory()

        try:
            async with self._session_factory() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise
        except IntegrityError as e:
            logger.warning(f"Glossary write rejected: {e.orig}")
            raise ConflictError(f"Term violates a uniqueness constraint: {e.orig}") from e
        except (OperationalError, DBAPIError, OSError) as e:
            logger.error(f"Glossary store unavailable: {e}")
            raise StoreUnavailableError(f"Term store unavailable: {e}") from e

    async def list_terms(
        self,
        category: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Term]:
        async with self._session() as session:
            models = await GlossaryTermRepository(session).get_all(
                category=category, status=status, search=search
            )
            return [term_from_model(m) for m in models]

    async def get_term(self, term_id: str) -> Optional[Term]:
        async with self._session() as session:
            model = await GlossaryTermRepository(session).get(term_id)
            return term_from_model(model) if model else None

    async def insert_term(self, candidate: CandidateTerm) -> Term:
        source = (candidate.source or "").strip()
        if not source:
            raise InvalidInputError("Term source must not be empty")

        async with self._session() as session:
            model = await GlossaryTermRepository(session).create(
                source=source,
                target_a=(candidate.target_a or "").strip(),
                target_b=(candidate.target_b or "").strip(),
                category=(candidate.category or "").strip() or settings.DEFAULT_CATEGORY,
                status=TermStatus(candidate.status or TermStatus.DRAFT).value,
                remark=(candidate.remark or "").strip(),
            )
            return term_from_model(model)

    async def update_term(self, term_id: str, fields: Dict[str, Any]) -> Term:
        updates = {}
        for key, value in fields.items():
            if key not in UPDATABLE_FIELDS:
                raise InvalidInputError(f"Field cannot be updated: {key}")
            if key == "status":
                try:
                    value = TermStatus(value).value
                except ValueError:
                    raise InvalidInputError(f"Unknown term status: {value!r}")
            updates[key] = value

        if "source" in updates and not str(updates["source"]).strip():
            raise InvalidInputError("Term source must not be empty")

        async with self._session() as session:
            model = await GlossaryTermRepository(session).update(term_id, **updates)
            if model is None:
                raise ConflictError(f"Term no longer exists: {term_id}")
            return term_from_model(model)

    async def delete_term(self, term_id: str) -> bool:
        async with self._session() as session:
            return await GlossaryTermRepository(session).delete(term_id)

    async def delete_terms(self, term_ids: Iterable[str]) -> int:
        async with self._session() as session:
            return await GlossaryTermRepository(session).delete_many(term_ids)

    async def status_counts(self) -> Dict[str, int]:
        """Number of terms per workflow status, including zero counts"""
        async with self._session() as session:
            counts = await GlossaryTermRepository(session).count_by_status()
        result = {status.value: 0 for status in TermStatus}
        result.update(counts)
        result["total"] = sum(counts.values())
        return result

    async def list_categories(self) -> List[str]:
        """Managed categories merged with any category already used by a term"""
        async with self._session() as session:
            managed = [c.name for c in await GlossaryCategoryRepository(session).get_all()]
            used = await GlossaryTermRepository(session).get_used_categories()
        return sorted(set(managed) | set(used))

    async def add_category(self, name: str) -> str:
        name = (name or "").strip()
        if not name:
            raise InvalidInputError("Category name must not be empty")
        async with self._session() as session:
            repo = GlossaryCategoryRepository(session)
            if await repo.get_by_name(name):
                raise ConflictError(f"Category already exists: {name}")
            await repo.create(name)
        return name

    async def delete_category(self, name: str) -> bool:
        async with self._session() as session:
            return await GlossaryCategoryRepository(session).delete(name)
