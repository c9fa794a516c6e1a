"""Per-record reconciliation outcomes and the run summary."""

from pydantic import BaseModel, Field
from typing import List, Dict, Any
from enum import Enum


class OutcomeStatus(str, Enum):
    """Classification of one reconciled record."""
    SUCCESS = "success"
    SKIPPED = "skipped"
    ERROR = "error"


class SkipReason(str, Enum):
    NOTHING_TO_ADD = "nothing to add"
    NOT_FOUND = "not found"
    ALREADY_PRESENT = "already present"


class ReconciliationOutcome(BaseModel):
    """Result of reconciling a single record. Never persisted."""

    primary_smtp_address: str
    status: OutcomeStatus
    reason: str = ""
    aliases_added: List[str] = Field(
        default_factory=list,
        description="Aliases that were added, or would be added in preview mode"
    )
    preview: bool = False

    @property
    def added_count(self) -> int:
        return len(self.aliases_added)

    @classmethod
    def success(cls, address: str, aliases: List[str], preview: bool = False) -> "ReconciliationOutcome":
        return cls(
            primary_smtp_address=address,
            status=OutcomeStatus.SUCCESS,
            aliases_added=list(aliases),
            preview=preview,
        )

    @classmethod
    def skipped(cls, address: str, reason: SkipReason, preview: bool = False) -> "ReconciliationOutcome":
        return cls(
            primary_smtp_address=address,
            status=OutcomeStatus.SKIPPED,
            reason=reason.value,
            preview=preview,
        )

    @classmethod
    def error(cls, address: str, message: str, preview: bool = False) -> "ReconciliationOutcome":
        return cls(
            primary_smtp_address=address,
            status=OutcomeStatus.ERROR,
            reason=message,
            preview=preview,
        )


class RunSummary(BaseModel):
    """Aggregate counters for one import run."""

    processed: int = 0
    success: int = 0
    skipped: int = 0
    error: int = 0
    total_aliases_added: int = 0
    preview: bool = False

    def counters(self) -> Dict[str, int]:
        """The statistics alone, without the mode flag."""
        return {
            "processed": self.processed,
            "success": self.success,
            "skipped": self.skipped,
            "error": self.error,
            "total_aliases_added": self.total_aliases_added,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump()
        data["mode"] = "preview" if self.preview else "applied"
        return data
