"""
Core components for document fill module.
"""

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

from modules.document_fill.core.exceptions import (
    DocumentFillException,
    UnsupportedFormatException,
    CorruptDocumentException,
    SourceNotFoundException,
    TransformationError,
    ConditionSyntaxError,
    WriteFailureException,
    TemplateValidationException,
    TemplateNotFoundException,
    RecordNotFoundException,
    InvalidStatusTransition,
    ConfigurationException,
    ResolutionWarning,
)

__all__ = [
    # Interfaces
    "IDocumentProcessor",
    # Results
    "DocumentField",
    "AnalysisResult",
    "FillResult",
    "FileCategory",
    "ProcessorState",
    "HiddenFieldPolicy",
    # Registry
    "ProcessorRegistry",
    "register_processor",
    # Exceptions
    "DocumentFillException",
    "UnsupportedFormatException",
    "CorruptDocumentException",
    "SourceNotFoundException",
    "TransformationError",
    "ConditionSyntaxError",
    "WriteFailureException",
    "TemplateValidationException",
    "TemplateNotFoundException",
    "RecordNotFoundException",
    "InvalidStatusTransition",
    "ConfigurationException",
    "ResolutionWarning",
]
