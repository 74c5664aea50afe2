"""
Batch job storage for the document fill module.

Allows different storage backends (memory, Redis, database, etc.)
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional, List

from modules.document_fill.models.jobs import BatchJob, BatchStatus


class IJobStorage(ABC):
    """
    Abstract interface for batch job storage.

    Allows swapping storage backends without changing orchestrator code.
    """

    @abstractmethod
    async def save_batch(self, batch: BatchJob) -> bool:
        """
        Save (or overwrite) a batch.

        Args:
            batch: Batch to save

        Returns:
            True if saved successfully
        """
        pass

    @abstractmethod
    async def get_batch(self, batch_id: str) -> Optional[BatchJob]:
        """
        Get a batch by ID.

        Args:
            batch_id: Batch identifier

        Returns:
            BatchJob or None if not found
        """
        pass

    @abstractmethod
    async def list_batches(
        self,
        filters: Optional[Dict[str, Any]] = None,
        limit: int = 100
    ) -> List[BatchJob]:
        """
        List batches with optional filters.

        Args:
            filters: Optional filters (status, created_after)
            limit: Maximum number of batches to return

        Returns:
            List of BatchJob, newest first
        """
        pass

    @abstractmethod
    async def delete_batch(self, batch_id: str) -> bool:
        """
        Delete a batch.

        Args:
            batch_id: Batch identifier

        Returns:
            True if deleted
        """
        pass

    @abstractmethod
    async def cleanup_old_batches(self, older_than_seconds: int) -> int:
        """
        Delete finished batches older than the given age.

        Args:
            older_than_seconds: Delete batches created before now minus this

        Returns:
            Number of batches deleted
        """
        pass


class InMemoryJobStorage(IJobStorage):
    """
    In-memory batch storage.

    Batches are lost on restart. Stored objects are the live BatchJob
    instances, so status reads see progress while a batch runs.
    """

    def __init__(self):
        self._storage: Dict[str, BatchJob] = {}

    async def save_batch(self, batch: BatchJob) -> bool:
        self._storage[batch.id] = batch
        return True

    async def get_batch(self, batch_id: str) -> Optional[BatchJob]:
        return self._storage.get(batch_id)

    async def list_batches(
        self,
        filters: Optional[Dict[str, Any]] = None,
        limit: int = 100
    ) -> List[BatchJob]:
        batches = list(self._storage.values())

        if filters:
            if "status" in filters:
                status_filter = BatchStatus(filters["status"])
                batches = [b for b in batches if b.status == status_filter]

            if "created_after" in filters:
                created_after = filters["created_after"]
                batches = [b for b in batches if b.created_at >= created_after]

        # Newest first
        batches.sort(key=lambda b: b.created_at, reverse=True)

        return batches[:limit]

    async def delete_batch(self, batch_id: str) -> bool:
        if batch_id in self._storage:
            del self._storage[batch_id]
            return True
        return False

    async def cleanup_old_batches(self, older_than_seconds: int) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=older_than_seconds)

        to_delete = [
            batch_id for batch_id, batch in self._storage.items()
            if batch.created_at < cutoff
            and batch.status in (BatchStatus.COMPLETED, BatchStatus.ERROR)
        ]

        for batch_id in to_delete:
            del self._storage[batch_id]

        return len(to_delete)
