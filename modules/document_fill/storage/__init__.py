"""
Storage collaborators for the document fill module.
"""

from modules.document_fill.storage.file_store import (
    IFileStore,
    LocalFileStore,
    InMemoryFileStore,
)
from modules.document_fill.storage.job_storage import (
    IJobStorage,
    InMemoryJobStorage,
)
from modules.document_fill.storage.record_store import (
    IRecordStore,
    InMemoryRecordStore,
)

__all__ = [
    "IFileStore",
    "LocalFileStore",
    "InMemoryFileStore",
    "IJobStorage",
    "InMemoryJobStorage",
    "IRecordStore",
    "InMemoryRecordStore",
]
