"""
Core interfaces for the document fill module.

Every document backend implements IDocumentProcessor and reports through the
result types below.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional, Sequence, TYPE_CHECKING
from dataclasses import dataclass, field
from enum import Enum

if TYPE_CHECKING:
    from modules.document_fill.models.template import ConditionalRule, FieldMapping, ProcessingOptions
    from modules.document_fill.resolution.resolver import FillContext
    from modules.document_fill.storage.file_store import IFileStore


# ==============================================================================
# ENUMS
# ==============================================================================

class FileCategory(str, Enum):
    """Document family derived from the file extension"""
    PDF = "pdf"
    WORD = "word"
    EXCEL = "excel"
    UNSUPPORTED = "unsupported"


class ProcessorState(str, Enum):
    """Processor lifecycle. Transitions only move forward."""
    CREATED = "created"
    VALIDATED = "validated"
    ANALYZED = "analyzed"
    FILLED = "filled"


class HiddenFieldPolicy(str, Enum):
    """How a backend renders a field hidden by a conditional rule"""
    OMIT = "omit"
    BLANK = "blank"


# ==============================================================================
# RESULT TYPES
# ==============================================================================

@dataclass
class DocumentField:
    """A fillable field discovered in a document."""
    id: str
    name: str
    type: str = "text"  # text, checkbox, radio, dropdown, date
    required: bool = False
    value: Any = None
    options: List[str] = field(default_factory=list)
    page: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "required": self.required,
            "value": self.value,
            "options": self.options,
            "page": self.page,
            "metadata": self.metadata,
        }


@dataclass
class AnalysisResult:
    """
    Result from analyzing a document.

    On failure ``fields`` is empty and ``error`` says why.
    """
    success: bool
    fields: List[DocumentField] = field(default_factory=list)
    pages: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def field_ids(self) -> List[str]:
        return [f.id for f in self.fields]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "success": self.success,
            "fields": [f.to_dict() for f in self.fields],
            "pages": self.pages,
            "metadata": self.metadata,
            "error": self.error,
        }


@dataclass
class FillResult:
    """Result from filling a document."""
    success: bool
    output_path: Optional[str] = None
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    filled_fields: List[str] = field(default_factory=list)
    skipped_fields: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "success": self.success,
            "output_path": self.output_path,
            "error": self.error,
            "warnings": self.warnings,
            "filled_fields": self.filled_fields,
            "skipped_fields": self.skipped_fields,
        }


# ==============================================================================
# PROCESSOR INTERFACE
# ==============================================================================

class IDocumentProcessor(ABC):
    """
    Abstract interface for document processors.

    One processor wraps one immutable document buffer. Processors
    self-register with the ProcessorRegistry per file extension.

    Example:
        @register_processor(".pdf", category=FileCategory.PDF, display_name="PDF Document")
        class PdfProcessor(IDocumentProcessor):
            def can_process(self) -> bool:
                # Implementation
    """

    hidden_field_policy: HiddenFieldPolicy = HiddenFieldPolicy.BLANK

    def __init__(self, file_path: str, data: bytes, file_store: Optional["IFileStore"] = None):
        """
        Initialize processor.

        Args:
            file_path: Source path, used for naming and error messages
            data: Raw document bytes (never modified)
            file_store: Store used to write output documents
        """
        self.file_path = file_path
        self.data = bytes(data)
        self.file_store = file_store
        self.state = ProcessorState.CREATED

    @abstractmethod
    def can_process(self) -> bool:
        """
        Structural check of the buffer.

        Returns:
            True if the buffer looks like a well-formed document of this
            type. Never raises.
        """
        pass

    @abstractmethod
    async def analyze_document(
        self,
        options: Optional["ProcessingOptions"] = None
    ) -> AnalysisResult:
        """
        Discover the document's fillable fields.

        Idempotent: the first successful result is cached.

        Args:
            options: Optional processing options

        Returns:
            AnalysisResult (success=False with empty fields on failure)
        """
        pass

    @abstractmethod
    async def fill_document(
        self,
        mappings: Sequence["FieldMapping"],
        data: "FillContext",
        output_path: str,
        options: Optional["ProcessingOptions"] = None,
        rules: Sequence["ConditionalRule"] = ()
    ) -> FillResult:
        """
        Fill the document and write it to ``output_path``.

        Args:
            mappings: Field mappings to apply
            data: Fill context (or a dict of records) to resolve against
            output_path: Destination of the filled document
            options: Optional processing options
            rules: Conditional rules applied after resolution

        Returns:
            FillResult; errors are reported in the result, never raised
        """
        pass

    @abstractmethod
    async def get_preview_data(self) -> Dict[str, Any]:
        """
        Summarize the document for display.

        Raises:
            DocumentFillException: If the document cannot be read
        """
        pass

    @abstractmethod
    async def extract_text(self) -> str:
        """
        Extract the document's plain text.

        Raises:
            DocumentFillException: If the document cannot be read
        """
        pass

    @abstractmethod
    def get_document_type(self) -> str:
        """Return the short document type (pdf, docx, doc, xlsx, xls)."""
        pass

    def advance(self, state: ProcessorState) -> None:
        """Move the lifecycle forward; never moves backwards."""
        order = list(ProcessorState)
        if order.index(state) > order.index(self.state):
            self.state = state
