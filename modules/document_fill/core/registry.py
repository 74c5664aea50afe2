"""
Registry pattern implementation for document processors.

Processors self-register per file extension.
Adding a backend requires no changes to the dispatcher.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Type

from modules.document_fill.core.interfaces import FileCategory, IDocumentProcessor
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class ProcessorEntry:
    """Registration record for one file extension."""
    extension: str
    category: FileCategory
    display_name: str
    processor_class: Type[IDocumentProcessor]

    def to_dict(self) -> Dict[str, str]:
        """Convert to dictionary"""
        return {
            "extension": self.extension,
            "category": self.category.value,
            "display_name": self.display_name,
        }


def normalize_extension(extension: str) -> str:
    extension = extension.strip().lower()
    if extension and not extension.startswith("."):
        extension = f".{extension}"
    return extension


# ==============================================================================
# PROCESSOR REGISTRY
# ==============================================================================

class ProcessorRegistry:
    """
    Registry for document processors.

    Processors self-register using @register_processor decorator.
    Insertion order is the order extensions are listed in.
    """

    _REGISTRY: Dict[str, ProcessorEntry] = {}

    @classmethod
    def register(
        cls,
        extension: str,
        processor_class: Type[IDocumentProcessor],
        category: FileCategory,
        display_name: str
    ) -> None:
        """
        Register a processor class for an extension.

        Args:
            extension: File extension (".pdf", "docx", ...)
            processor_class: IDocumentProcessor subclass
            category: Document family the extension belongs to
            display_name: Human-readable format name
        """
        extension = normalize_extension(extension)

        if extension in cls._REGISTRY:
            logger.warning(f"Processor for '{extension}' already registered, overwriting")

        cls._REGISTRY[extension] = ProcessorEntry(
            extension=extension,
            category=FileCategory(category),
            display_name=display_name,
            processor_class=processor_class,
        )
        logger.info(f"✅ Registered processor: {extension} -> {processor_class.__name__}")

    @classmethod
    def get(cls, extension: str) -> Optional[ProcessorEntry]:
        """Get the registration for an extension, or None"""
        return cls._REGISTRY.get(normalize_extension(extension))

    @classmethod
    def list_entries(cls) -> List[ProcessorEntry]:
        """Get registrations in registration order"""
        return list(cls._REGISTRY.values())

    @classmethod
    def list_extensions(cls) -> List[str]:
        """Get list of registered extensions"""
        return list(cls._REGISTRY.keys())

    @classmethod
    def is_registered(cls, extension: str) -> bool:
        """Check if an extension has a processor"""
        return normalize_extension(extension) in cls._REGISTRY


def register_processor(extension: str, category: FileCategory, display_name: str):
    """
    Decorator to register a processor.

    Usage:
        @register_processor(".xlsx", category=FileCategory.EXCEL,
                            display_name="Excel Spreadsheet (Modern)")
        class ExcelProcessor(IDocumentProcessor):
            def can_process(self) -> bool:
                # Implementation
    """
    def decorator(cls):
        ProcessorRegistry.register(extension, cls, category, display_name)
        return cls
    return decorator
