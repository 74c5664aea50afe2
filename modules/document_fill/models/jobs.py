"""
Fill-time job records: roster entries, processed documents and batches.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from modules.document_fill.core.exceptions import InvalidStatusTransition
from modules.document_fill.core.interfaces import FillResult
from modules.document_fill.models.template import FieldMapping, ProcessingOptions, Template


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProcessingStatus(str, Enum):
    """Status of one processed document. Only moves forward."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class BatchStatus(str, Enum):
    """Aggregate status of a batch"""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


_STATUS_ORDER = {
    ProcessingStatus.PENDING: 0,
    ProcessingStatus.PROCESSING: 1,
    ProcessingStatus.COMPLETED: 2,
    ProcessingStatus.ERROR: 2,
}


class RosterEntry(BaseModel):
    """One provider at a 1-based roster position."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    provider_id: str
    position: int


@dataclass
class ProcessedDocument:
    """One fill attempt and its outcome."""
    original_path: str
    output_path: str
    template: Optional[Template] = None
    provider_id: Optional[str] = None
    office_id: Optional[str] = None
    mailing_address_id: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: ProcessingStatus = ProcessingStatus.PENDING
    error: Optional[str] = None
    processed_at: Optional[datetime] = None
    warnings: List[str] = field(default_factory=list)

    def transition(self, status: ProcessingStatus, error: Optional[str] = None) -> None:
        """
        Move to ``status``.

        Raises:
            InvalidStatusTransition: If the move goes backwards or leaves a
                terminal status
        """
        status = ProcessingStatus(status)
        current = _STATUS_ORDER[self.status]
        if self.status in (ProcessingStatus.COMPLETED, ProcessingStatus.ERROR) or _STATUS_ORDER[status] <= current:
            raise InvalidStatusTransition(
                f"Cannot move document {self.id} from {self.status.value} to {status.value}"
            )
        self.status = status
        if status == ProcessingStatus.ERROR:
            self.error = error or "Unknown error"
        if status in (ProcessingStatus.COMPLETED, ProcessingStatus.ERROR):
            self.processed_at = _utcnow()

    def mark_processing(self) -> None:
        self.transition(ProcessingStatus.PROCESSING)

    def mark_completed(self) -> None:
        self.transition(ProcessingStatus.COMPLETED)

    def mark_error(self, error: str) -> None:
        self.transition(ProcessingStatus.ERROR, error)

    @property
    def is_finished(self) -> bool:
        return self.status in (ProcessingStatus.COMPLETED, ProcessingStatus.ERROR)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "id": self.id,
            "original_path": self.original_path,
            "output_path": self.output_path,
            "template_id": self.template.id if self.template else None,
            "template_version": self.template.version if self.template else None,
            "provider_id": self.provider_id,
            "office_id": self.office_id,
            "mailing_address_id": self.mailing_address_id,
            "status": self.status.value,
            "error": self.error,
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
            "warnings": self.warnings,
        }


@dataclass
class BatchJob:
    """
    Named, ordered collection of processed documents.

    ``status`` is the worst outcome of the documents and is set when the run
    ends.
    """
    name: str
    documents: List[ProcessedDocument] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: BatchStatus = BatchStatus.PENDING
    created_at: datetime = field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def total(self) -> int:
        return len(self.documents)

    @property
    def completed_count(self) -> int:
        return sum(1 for d in self.documents if d.status == ProcessingStatus.COMPLETED)

    @property
    def error_count(self) -> int:
        return sum(1 for d in self.documents if d.status == ProcessingStatus.ERROR)

    @property
    def progress(self) -> float:
        """Completed documents over total, 0.0 to 1.0."""
        if not self.documents:
            return 0.0
        return self.completed_count / self.total

    def finish(self) -> None:
        """Set the aggregate status from the documents' outcomes."""
        if any(d.status != ProcessingStatus.COMPLETED for d in self.documents):
            self.status = BatchStatus.ERROR
        else:
            self.status = BatchStatus.COMPLETED
        self.completed_at = _utcnow()

    def fail(self, error: str) -> None:
        """End a batch that could not start its documents."""
        self.status = BatchStatus.ERROR
        self.error = error
        self.completed_at = _utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "progress": self.progress,
            "total": self.total,
            "completed": self.completed_count,
            "errors": self.error_count,
            "documents": [d.to_dict() for d in self.documents],
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error": self.error,
        }


@dataclass
class FillJob:
    """One (path, mappings, data, output_path) unit of batch work."""
    path: str
    mappings: Sequence[FieldMapping]
    data: Any
    output_path: str
    options: Optional[ProcessingOptions] = None
    template: Optional[Template] = None
    provider_id: Optional[str] = None
    office_id: Optional[str] = None
    mailing_address_id: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "FillJob":
        """Build a job from a loosely-typed request dict."""
        mappings = [
            m if isinstance(m, FieldMapping) else FieldMapping.model_validate(m)
            for m in raw.get("mappings") or []
        ]
        return cls(
            path=raw.get("path") or raw.get("filePath") or raw.get("inputPath") or "",
            mappings=mappings,
            data=raw.get("data") or {},
            output_path=raw.get("output_path") or raw.get("outputPath") or "",
            options=ProcessingOptions.coerce(raw.get("options")),
        )


@dataclass
class BatchResult:
    """Aggregate of a batch run. The batch call itself always succeeds."""
    results: List[FillResult] = field(default_factory=list)
    batch_id: Optional[str] = None
    success: bool = True

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def total_count(self) -> int:
        return len(self.results)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "success": self.success,
            "batch_id": self.batch_id,
            "results": [r.to_dict() for r in self.results],
            "success_count": self.success_count,
            "total_count": self.total_count,
        }
