"""
Format dispatch.

Classification is a pure function of the file extension; no filesystem
access happens here.
"""

import os
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING

from modules.document_fill.core.exceptions import UnsupportedFormatException
from modules.document_fill.core.interfaces import FileCategory, IDocumentProcessor
from modules.document_fill.core.registry import ProcessorRegistry
from shared.utils.logger import setup_logger

if TYPE_CHECKING:
    from modules.document_fill.storage.file_store import IFileStore

logger = setup_logger(__name__)

# Backends register on import
import modules.document_fill.processors  # noqa: E402,F401


def get_extension(path: str) -> str:
    return os.path.splitext(str(path))[1].lower()


def is_supported(path: str) -> bool:
    """True if a processor is registered for the path's extension."""
    extension = get_extension(path)
    return bool(extension) and ProcessorRegistry.is_registered(extension)


def classify(path: str) -> FileCategory:
    """Return the document family of ``path`` (UNSUPPORTED if unknown)."""
    extension = get_extension(path)
    entry = ProcessorRegistry.get(extension) if extension else None
    return entry.category if entry else FileCategory.UNSUPPORTED


def create(path: str, data: bytes, file_store: Optional["IFileStore"] = None) -> IDocumentProcessor:
    """
    Instantiate the processor for ``path`` over ``data``.

    Raises:
        UnsupportedFormatException: If no processor handles the extension
    """
    extension = get_extension(path)
    entry = ProcessorRegistry.get(extension) if extension else None

    if entry is None:
        raise UnsupportedFormatException(
            f"Unsupported file type: {extension or '(none)'}. "
            f"Supported: {', '.join(list_supported_extensions())}"
        )

    logger.debug(f"Creating {entry.processor_class.__name__} for {path}")
    return entry.processor_class(str(path), data, file_store=file_store)


def list_supported_extensions() -> Tuple[str, ...]:
    return tuple(ProcessorRegistry.list_extensions())


def list_supported_types() -> List[Dict[str, Any]]:
    """Extension, category and display name of every registered format."""
    return [entry.to_dict() for entry in ProcessorRegistry.list_entries()]

