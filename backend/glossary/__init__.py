"""
Glossary Management

Glossary terms with an approval workflow, and the duplicate detection and
resolution applied when terms are imported in bulk.
"""
from .errors import (
    ErrorKind,
    GlossaryError,
    InvalidInputError,
    ImportStateError,
    ConflictError,
    StoreUnavailableError,
)
from .models import (
    Term,
    TermStatus,
    CandidateTerm,
    DuplicateMatch,
    MatchedField,
    ResolutionAction,
    ResolutionRequest,
    DetectionResult,
    ResolutionResult,
    ItemFailure,
)
from .store import TermStore, SqlTermStore
from .duplicates import detect_duplicates, resolve
from .import_session import ImportSession, ImportSessionManager, ImportState

__all__ = [
    "ErrorKind",
    "GlossaryError",
    "InvalidInputError",
    "ImportStateError",
    "ConflictError",
    "StoreUnavailableError",
    "Term",
    "TermStatus",
    "CandidateTerm",
    "DuplicateMatch",
    "MatchedField",
    "ResolutionAction",
    "ResolutionRequest",
    "DetectionResult",
    "ResolutionResult",
    "ItemFailure",
    "TermStore",
    "SqlTermStore",
    "detect_duplicates",
    "resolve",
    "ImportSession",
    "ImportSessionManager",
    "ImportState",
]
