"""
Document Fill Module

Fills PDF, Word and Excel documents from provider, office, mailing and
custom records through reusable field-mapping templates.
"""

__version__ = "1.0.0"

from modules.document_fill.core.interfaces import (
    IDocumentProcessor,
    DocumentField,
    AnalysisResult,
    FillResult,
    FileCategory,
    ProcessorState,
    HiddenFieldPolicy,
)

from modules.document_fill.core.registry import (
    ProcessorRegistry,
    register_processor,
)

# Import implementations to trigger registration
import modules.document_fill.processors

from modules.document_fill.core import dispatcher
from modules.document_fill.core.validation import (
    validate_template,
    ensure_valid_template,
    check_document_type,
)

# Export models
from modules.document_fill.models import (
    Condition,
    ConditionalRule,
    ExcelConfiguration,
    FieldMapping,
    ProcessingOptions,
    Template,
    compute_document_hash,
    BatchJob,
    BatchResult,
    FillJob,
    ProcessedDocument,
    RosterEntry,
)

# Export resolution
from modules.document_fill.resolution import (
    FieldResolver,
    FillContext,
    ResolvedFields,
    build,
)

# Export configuration
from modules.document_fill.config import (
    FillConfig,
    get_fill_config,
    set_fill_config,
)

# Export storage
from modules.document_fill.storage import (
    IFileStore,
    LocalFileStore,
    InMemoryFileStore,
    IJobStorage,
    InMemoryJobStorage,
    IRecordStore,
    InMemoryRecordStore,
)

from modules.document_fill.templates import (
    TemplateLoader,
    ITemplateStore,
    InMemoryTemplateStore,
    FileTemplateStore,
)

from modules.document_fill.orchestrator import FillOrchestrator, normalize_roster
from modules.document_fill.engine import DocumentFillEngine

__all__ = [
    # Interfaces
    "IDocumentProcessor",
    "DocumentField",
    "AnalysisResult",
    "FillResult",
    "FileCategory",
    "ProcessorState",
    "HiddenFieldPolicy",
    # Registry and dispatch
    "ProcessorRegistry",
    "register_processor",
    "dispatcher",
    # Validation
    "validate_template",
    "ensure_valid_template",
    "check_document_type",
    # Models
    "Condition",
    "ConditionalRule",
    "ExcelConfiguration",
    "FieldMapping",
    "ProcessingOptions",
    "Template",
    "compute_document_hash",
    "BatchJob",
    "BatchResult",
    "FillJob",
    "ProcessedDocument",
    "RosterEntry",
    # Resolution
    "FieldResolver",
    "FillContext",
    "ResolvedFields",
    "build",
    # Configuration
    "FillConfig",
    "get_fill_config",
    "set_fill_config",
    # Storage
    "IFileStore",
    "LocalFileStore",
    "InMemoryFileStore",
    "IJobStorage",
    "InMemoryJobStorage",
    "IRecordStore",
    "InMemoryRecordStore",
    # Templates
    "TemplateLoader",
    "ITemplateStore",
    "InMemoryTemplateStore",
    "FileTemplateStore",
    # Orchestration
    "FillOrchestrator",
    "normalize_roster",
    "DocumentFillEngine",
]
