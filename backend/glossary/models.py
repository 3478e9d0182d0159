"""
Glossary Data Structures

Terms, import candidates and the transient records produced while
detecting and resolving duplicates during an import.
"""
import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from .errors import ErrorKind, InvalidInputError


class TermStatus(str, enum.Enum):
    """Approval workflow state of a glossary term"""
    DRAFT = "draft"
    REVIEW = "review"
    APPROVED = "approved"
    REJECTED = "rejected"


class MatchedField(str, enum.Enum):
    """Language field that caused a duplicate match, in priority order"""
    SOURCE = "source"
    TARGET_A = "target_a"
    TARGET_B = "target_b"


class ResolutionAction(str, enum.Enum):
    """Bulk decision applied to selected duplicates"""
    OVERRIDE = "override"
    IGNORE = "ignore"


# Aliases accepted when building a candidate from loosely shaped input
_FIELD_ALIASES = {
    "source": ("source", "en", "english", "src"),
    "target_a": ("target_a", "my", "ms", "bm", "malay"),
    "target_b": ("target_b", "zh", "cn", "chinese"),
    "remark": ("remark", "remarks", "note", "notes"),
}


def _pick(data: Dict[str, Any], key: str) -> str:
    for alias in _FIELD_ALIASES[key]:
        value = data.get(alias)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


def _parse_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value)
    return None


@dataclass
class Term:
    """A persisted glossary entry"""
    id: str
    source: str
    target_a: str = ""
    target_b: str = ""
    category: str = ""
    status: TermStatus = TermStatus.DRAFT
    remark: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "target_a": self.target_a,
            "target_b": self.target_b,
            "category": self.category,
            "status": TermStatus(self.status).value,
            "remark": self.remark,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Term":
        return cls(
            id=str(data["id"]),
            source=data.get("source", ""),
            target_a=data.get("target_a") or "",
            target_b=data.get("target_b") or "",
            category=data.get("category") or "",
            status=TermStatus(data.get("status") or TermStatus.DRAFT.value),
            remark=data.get("remark") or "",
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )


@dataclass
class CandidateTerm:
    """A proposed term pending import; has no id until the store inserts it.

    An empty ``category`` means the import did not specify one and the store
    applies its default category on insert.
    """
    source: str
    target_a: str = ""
    target_b: str = ""
    category: str = ""
    status: TermStatus = TermStatus.DRAFT
    remark: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "target_a": self.target_a,
            "target_b": self.target_b,
            "category": self.category,
            "status": TermStatus(self.status).value,
            "remark": self.remark,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CandidateTerm":
        """Build a candidate, accepting the language aliases used by imports"""
        status = data.get("status") or TermStatus.DRAFT.value
        try:
            status = TermStatus(status)
        except ValueError:
            raise InvalidInputError(f"Unknown term status: {status!r}")
        return cls(
            source=_pick(data, "source"),
            target_a=_pick(data, "target_a"),
            target_b=_pick(data, "target_b"),
            category=str(data.get("category") or "").strip(),
            status=status,
            remark=_pick(data, "remark"),
        )


@dataclass
class DuplicateMatch:
    """Collision between an incoming candidate and an existing term"""
    candidate: CandidateTerm
    existing: Term
    matched_field: MatchedField

    def to_dict(self) -> Dict[str, Any]:
        return {
            "candidate": self.candidate.to_dict(),
            "existing": self.existing.to_dict(),
            "matched_field": self.matched_field.value,
        }


@dataclass
class ResolutionRequest:
    """User's batch decision for the duplicates of one import"""
    action: ResolutionAction
    selected_existing_ids: Set[str] = field(default_factory=set)


@dataclass
class DetectionResult:
    """Partition of an import batch"""
    duplicates: List[DuplicateMatch] = field(default_factory=list)
    uniques: List[CandidateTerm] = field(default_factory=list)
    invalid: List[CandidateTerm] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "duplicates": [d.to_dict() for d in self.duplicates],
            "unique_count": len(self.uniques),
            "invalid_count": len(self.invalid),
        }


@dataclass
class ItemFailure:
    """A single write that failed inside a resolution batch"""
    operation: str  # "insert" or "update"
    kind: ErrorKind
    message: str
    source: str = ""
    term_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "kind": self.kind.value,
            "message": self.message,
            "source": self.source,
            "term_id": self.term_id,
        }


@dataclass
class ResolutionResult:
    """Aggregate outcome of applying an import batch"""
    overridden: int = 0
    ignored: int = 0
    inserted: int = 0
    skipped: int = 0  # Invalid input excluded from processing
    failures: List[ItemFailure] = field(default_factory=list)
    overridden_terms: List[Term] = field(default_factory=list)
    inserted_terms: List[Term] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overridden": self.overridden,
            "ignored": self.ignored,
            "inserted": self.inserted,
            "skipped": self.skipped,
            "failed": self.failed,
            "failures": [f.to_dict() for f in self.failures],
        }
