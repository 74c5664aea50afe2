"""
Data models for templates and fill jobs.
"""

from modules.document_fill.models.template import (
    Condition,
    ConditionalRule,
    ExcelColumnMapping,
    ExcelConfiguration,
    FieldMapping,
    FieldTransformation,
    ProcessingOptions,
    Template,
    compute_document_hash,
)
from modules.document_fill.models.jobs import (
    BatchJob,
    BatchResult,
    BatchStatus,
    FillJob,
    ProcessedDocument,
    ProcessingStatus,
    RosterEntry,
)

__all__ = [
    "Condition",
    "ConditionalRule",
    "ExcelColumnMapping",
    "ExcelConfiguration",
    "FieldMapping",
    "FieldTransformation",
    "ProcessingOptions",
    "Template",
    "compute_document_hash",
    "BatchJob",
    "BatchResult",
    "BatchStatus",
    "FillJob",
    "ProcessedDocument",
    "ProcessingStatus",
    "RosterEntry",
]
