"""
Glossary Import Sessions

One import cycle moves through:
    idle -> detecting -> awaiting_resolution -> applying -> idle
When nothing collides, detection goes straight to applying. Abandoning an
awaiting session drops every duplicate and inserts only the uniques.
"""
import enum
import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from loguru import logger

from config import settings
from .duplicates import detect_duplicates, resolve
from .errors import ImportStateError, InvalidInputError
from .models import (
    CandidateTerm,
    DetectionResult,
    ResolutionAction,
    ResolutionRequest,
    ResolutionResult,
)
from .store import TermStore


class ImportState(str, enum.Enum):
    """Import cycle state"""
    IDLE = "idle"
    DETECTING = "detecting"
    AWAITING_RESOLUTION = "awaiting_resolution"
    APPLYING = "applying"


class ImportSession:
    """A single glossary import, from detection to applied result"""

    def __init__(self, store: TermStore, session_id: Optional[str] = None):
        self.session_id = session_id or str(uuid.uuid4())
        self.store = store
        self.state = ImportState.IDLE
        self.detection: Optional[DetectionResult] = None
        self.result: Optional[ResolutionResult] = None
        self.created_at = datetime.now()

    @property
    def completed(self) -> bool:
        return self.state is ImportState.IDLE and self.result is not None

    def to_dict(self) -> dict:
        data = {
            "session_id": self.session_id,
            "state": self.state.value,
            "duplicates": [],
            "unique_count": 0,
            "invalid_count": 0,
            "result": self.result.to_dict() if self.result else None,
        }
        if self.detection:
            data.update(self.detection.to_dict())
        return data

    async def start(self, candidates: List[CandidateTerm]) -> DetectionResult:
        """
        Detect duplicates for the candidates.

        If none collide, the uniques are inserted right away and the session
        returns to idle with a result; otherwise it waits for resolve() or
        abandon().
        """
        if self.state is not ImportState.IDLE or self.result is not None:
            raise ImportStateError(f"Import {self.session_id} already started")
        if candidates is None:
            raise InvalidInputError("candidates are required")

        self.state = ImportState.DETECTING
        try:
            existing = await self.store.list_terms()
            self.detection = detect_duplicates(candidates, existing)
        except Exception:
            self.state = ImportState.IDLE
            raise

        if self.detection.duplicates:
            self.state = ImportState.AWAITING_RESOLUTION
            logger.info(
                f"Import {self.session_id} waiting for resolution of "
                f"{len(self.detection.duplicates)} duplicates"
            )
        else:
            await self._apply(ResolutionRequest(action=ResolutionAction.IGNORE))
        return self.detection

    async def resolve(self, request: ResolutionRequest) -> ResolutionResult:
        """Apply the user's decision to the pending duplicates"""
        if self.state is not ImportState.AWAITING_RESOLUTION:
            raise ImportStateError(
                f"Import {self.session_id} is not awaiting resolution (state: {self.state.value})"
            )
        return await self._apply(request)

    async def abandon(self) -> ResolutionResult:
        """Drop every duplicate (all ignored) and insert only the uniques"""
        if self.state is not ImportState.AWAITING_RESOLUTION:
            raise ImportStateError(
                f"Import {self.session_id} is not awaiting resolution (state: {self.state.value})"
            )
        logger.info(f"Import {self.session_id} abandoned, inserting uniques only")
        every_duplicate = {match.existing.id for match in self.detection.duplicates}
        return await self._apply(ResolutionRequest(
            action=ResolutionAction.IGNORE,
            selected_existing_ids=every_duplicate,
        ))

    async def _apply(self, request: ResolutionRequest) -> ResolutionResult:
        self.state = ImportState.APPLYING
        try:
            result = await resolve(
                self.detection.duplicates,
                request,
                self.detection.uniques,
                self.store,
            )
        except BaseException:
            # Nothing recorded; the decision can be retried
            self.state = ImportState.AWAITING_RESOLUTION
            raise
        result.skipped += len(self.detection.invalid)
        self.result = result
        self.state = ImportState.IDLE
        return result


class ImportSessionManager:
    """
    Keeps import sessions that are waiting for a user decision.

    Sessions are in-memory only; completed or expired sessions are dropped.
    """

    def __init__(self, ttl_seconds: Optional[int] = None):
        self.ttl = timedelta(seconds=ttl_seconds or settings.IMPORT_SESSION_TTL)
        self._sessions: Dict[str, ImportSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    async def start(self, store: TermStore, candidates: List[CandidateTerm]) -> ImportSession:
        """Create a session and run detection"""
        self.purge_expired()
        session = ImportSession(store)
        await session.start(candidates)
        if session.state is ImportState.AWAITING_RESOLUTION:
            self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str) -> ImportSession:
        self.purge_expired()
        session = self._sessions.get(session_id)
        if session is None:
            raise InvalidInputError(f"Unknown or expired import session: {session_id}")
        return session

    async def resolve(self, session_id: str, request: ResolutionRequest) -> ImportSession:
        session = self.get(session_id)
        await session.resolve(request)
        self._sessions.pop(session_id, None)
        return session

    async def abandon(self, session_id: str) -> ImportSession:
        session = self.get(session_id)
        await session.abandon()
        self._sessions.pop(session_id, None)
        return session

    def purge_expired(self) -> int:
        """Drop sessions older than the TTL"""
        cutoff = datetime.now() - self.ttl
        expired = [sid for sid, s in self._sessions.items() if s.created_at < cutoff]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info(f"Dropped {len(expired)} expired import sessions")
        return len(expired)

    def clear(self) -> None:
        self._sessions.clear()
