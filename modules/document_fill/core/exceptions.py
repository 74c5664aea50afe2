"""
Custom exceptions for the document fill module.
"""

from typing import List, Optional


class DocumentFillException(Exception):
    """Base exception for document fill module."""
    pass


class UnsupportedFormatException(DocumentFillException):
    """Exception raised when a file extension has no registered processor."""
    pass


class CorruptDocumentException(DocumentFillException):
    """Exception raised when a document fails structural validation."""
    pass


class SourceNotFoundException(DocumentFillException):
    """Exception raised when the source document does not exist."""
    pass


class TransformationError(DocumentFillException):
    """Exception raised when a transformation config is structurally invalid."""

    def __init__(self, message: str, transformation_type: Optional[str] = None):
        super().__init__(message)
        self.transformation_type = transformation_type


class ConditionSyntaxError(DocumentFillException):
    """Exception raised when a condition expression cannot be parsed."""

    def __init__(self, message: str, expression: str = ""):
        super().__init__(message)
        self.expression = expression


class WriteFailureException(DocumentFillException):
    """Exception raised when the output document cannot be written."""
    pass


class TemplateValidationException(DocumentFillException):
    """Exception raised when template validation fails."""

    def __init__(self, message: str, issues: Optional[List[str]] = None):
        super().__init__(message)
        self.issues = list(issues or [])


class TemplateNotFoundException(DocumentFillException):
    """Exception raised when template not found."""
    pass


class RecordNotFoundException(DocumentFillException):
    """Exception raised when a provider, office or mailing address is missing."""
    pass


class InvalidStatusTransition(DocumentFillException):
    """Exception raised when a processed document status would move backwards."""
    pass


class ConfigurationException(DocumentFillException):
    """Exception raised for configuration errors."""
    pass


class ResolutionWarning(UserWarning):
    """A mapping resolved to no data and had no default value."""

    def __init__(self, field_id: str, message: str):
        super().__init__(message)
        self.field_id = field_id
        self.message = message

    def __str__(self) -> str:
        return self.message
