"""
Fill orchestrator.

Runs single, roster, individual and raw batch fills. Batches run strictly
sequentially in submission order, and a failing job never affects the others.
"""

import re
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from modules.document_fill.config import FillConfig, get_fill_config
from modules.document_fill.core import dispatcher
from modules.document_fill.core.exceptions import DocumentFillException
from modules.document_fill.core.interfaces import FillResult
from modules.document_fill.core.validation import check_document_type
from modules.document_fill.models.jobs import (
    BatchJob,
    BatchResult,
    BatchStatus,
    FillJob,
    ProcessedDocument,
    RosterEntry,
)
from modules.document_fill.models.template import (
    ConditionalRule,
    FieldMapping,
    ProcessingOptions,
    Template,
)
from modules.document_fill.resolution.paths import get_path, is_missing
from modules.document_fill.resolution.resolver import FillContext
from modules.document_fill.storage.file_store import IFileStore, LocalFileStore
from modules.document_fill.storage.job_storage import IJobStorage, InMemoryJobStorage
from modules.document_fill.storage.record_store import IRecordStore, InMemoryRecordStore
from shared.utils.logger import log_error, log_fill_result, setup_logger

logger = setup_logger(__name__)

STOPPED_MESSAGE = "batch stopped before job ran"

_PLACEHOLDER_RE = re.compile(r"\{([^{}]+)\}")

# Placeholder fallbacks when the record has no value
_NAME_FALLBACKS = {
    "provider.lastName": "Provider",
    "office.locationName": "Office",
}


# ==============================================================================
# ROSTER AND FILE NAMES
# ==============================================================================

def normalize_roster(entries: Iterable[Union[RosterEntry, Mapping[str, Any]]]) -> Tuple[RosterEntry, ...]:
    """
    Order roster entries by position and renumber them 1..N.

    Ties keep input order and duplicate provider ids keep their first
    occurrence. Normalizing a normalized roster returns it unchanged.
    """
    parsed = [e if isinstance(e, RosterEntry) else RosterEntry.model_validate(e) for e in entries]
    ordered = sorted(parsed, key=lambda e: e.position)

    seen = set()
    unique: List[RosterEntry] = []
    for entry in ordered:
        if entry.provider_id in seen:
            continue
        seen.add(entry.provider_id)
        unique.append(entry)

    return tuple(
        RosterEntry(provider_id=entry.provider_id, position=index)
        for index, entry in enumerate(unique, start=1)
    )


def sanitize_file_name(name: str) -> str:
    """Whitespace to underscores; anything outside ``[A-Za-z0-9._-]`` dropped."""
    cleaned = re.sub(r"\s+", "_", name.strip())
    cleaned = re.sub(r"[^A-Za-z0-9._-]", "", cleaned)
    return cleaned.strip("._") or "document"


def render_file_name(
    pattern: str,
    document_name: str,
    provider: Any = None,
    office: Any = None,
    on_date: Optional[date] = None,
    date_format: str = "%Y-%m-%d"
) -> str:
    """
    Render an output file name (without extension).

    Supports ``{documentName}``, ``{date}`` and ``{provider.<path>}`` /
    ``{office.<path>}`` placeholders.
    """
    namespace = {"provider": provider, "office": office}
    stamp = (on_date or date.today()).strftime(date_format)

    def replace(match: "re.Match[str]") -> str:
        key = match.group(1).strip()
        if key == "documentName":
            return document_name
        if key == "date":
            return stamp
        root, _, rest = key.partition(".")
        value = get_path(namespace.get(root), rest) if rest and root in namespace else None
        if is_missing(value):
            return _NAME_FALLBACKS.get(key, "") if namespace.get(root) is not None else ""
        return str(value)

    return sanitize_file_name(_PLACEHOLDER_RE.sub(replace, pattern))


def _record_id(record: Any) -> Optional[str]:
    value = get_path(record, "id")
    return None if is_missing(value) else str(value)


# ==============================================================================
# ORCHESTRATOR
# ==============================================================================

class FillOrchestrator:
    """
    Coordinates fills over the dispatcher and processors.

    Batch progress is tracked in the job storage and can be read with
    ``get_batch_status`` while a batch runs.
    """

    def __init__(
        self,
        config: Optional[FillConfig] = None,
        job_storage: Optional[IJobStorage] = None,
        record_store: Optional[IRecordStore] = None,
        file_store: Optional[IFileStore] = None
    ):
        self.config = config or get_fill_config()
        self.job_storage = job_storage or InMemoryJobStorage()
        self.record_store = record_store or InMemoryRecordStore()
        self.file_store = file_store or LocalFileStore()
        self._stop_requested = False

    # ------------------------------------------------------------------
    # Single document
    # ------------------------------------------------------------------

    async def _fill(
        self,
        path: str,
        mappings: Sequence[FieldMapping],
        data: Any,
        output_path: str,
        options: Optional[ProcessingOptions] = None,
        rules: Sequence[ConditionalRule] = (),
        template: Optional[Template] = None
    ) -> FillResult:
        try:
            document = await self.file_store.read_bytes(path)

            if template is not None:
                mismatch = check_document_type(template, dispatcher.classify(path))
                if mismatch:
                    return FillResult(success=False, error=mismatch)
                if self.config.check_document_hash and not template.matches_document(document):
                    return FillResult(
                        success=False,
                        error=f"Document {path} changed since template {template.name or template.id} was built",
                    )

            processor = dispatcher.create(path, document, file_store=self.file_store)
            await processor.analyze_document(options)
            return await processor.fill_document(mappings, data, str(output_path), options, rules=rules)

        except DocumentFillException as e:
            logger.warning(f"Fill failed for {path}: {e}")
            return FillResult(success=False, error=str(e))
        except Exception as e:
            log_error(logger, e, f"Fill failed for {path}")
            return FillResult(success=False, error=str(e) or type(e).__name__)

    async def fill_single(
        self,
        path: str,
        template: Template,
        context: Any,
        output_path: str,
        options: Optional[ProcessingOptions] = None
    ) -> FillResult:
        """Fill one document from a template and a context (or context dict)."""
        return await self._fill(
            path,
            template.mappings,
            context,
            output_path,
            options,
            rules=template.conditional_rules,
            template=template,
        )

    def default_output_path(
        self,
        path: str,
        pattern: str,
        provider: Any = None,
        office: Any = None,
        output_dir: Optional[Union[str, Path]] = None
    ) -> str:
        source = Path(path)
        name = render_file_name(
            pattern,
            source.stem,
            provider=provider,
            office=office,
            date_format=self.config.date_format,
        )
        directory = Path(output_dir) if output_dir is not None else self.config.output_dir
        return str(directory / f"{name}{source.suffix.lower()}")

    # ------------------------------------------------------------------
    # Roster mode
    # ------------------------------------------------------------------

    async def fill_roster(
        self,
        path: str,
        template: Template,
        roster_entries: Iterable[Union[RosterEntry, Mapping[str, Any]]],
        output_path: Optional[str] = None,
        office: Any = None,
        mailing: Any = None,
        custom: Optional[Mapping[str, Any]] = None,
        providers: Optional[Mapping[str, Any]] = None,
        options: Optional[ProcessingOptions] = None
    ) -> ProcessedDocument:
        """
        Fill one document with every roster provider in slot order.

        Args:
            providers: Provider records by id; ids not given are read from
                the record store

        Returns:
            ProcessedDocument in COMPLETED or ERROR status
        """
        if output_path is None:
            output_path = self.default_output_path(path, self.config.roster_file_name_pattern)

        document = ProcessedDocument(
            original_path=str(path),
            output_path=str(output_path),
            template=template,
            office_id=_record_id(office),
            mailing_address_id=_record_id(mailing),
        )
        document.mark_processing()

        try:
            entries = normalize_roster(roster_entries)
            roster = []
            for entry in entries:
                if providers is not None and entry.provider_id in providers:
                    roster.append(providers[entry.provider_id])
                else:
                    roster.append(await self.record_store.get_provider(entry.provider_id))
        except (DocumentFillException, ValidationError) as e:
            logger.warning(f"Roster fill aborted: {e}")
            document.mark_error(str(e))
            return document

        context = FillContext(
            provider=roster[0] if roster else None,
            office=office,
            mailing=mailing,
            custom=dict(custom or {}),
            roster=tuple(roster),
        )

        result = await self.fill_single(path, template, context, output_path, options)
        self._record_outcome(document, result)
        logger.info(f"Roster fill of {path} with {len(roster)} providers: {document.status.value}")
        return document

    # ------------------------------------------------------------------
    # Individual mode
    # ------------------------------------------------------------------

    def build_individual_jobs(
        self,
        path: str,
        template: Template,
        providers: Sequence[Any],
        offices: Sequence[Any] = (),
        mailing: Any = None,
        custom: Optional[Mapping[str, Any]] = None,
        output_dir: Optional[Union[str, Path]] = None,
        file_name_pattern: Optional[str] = None,
        options: Optional[ProcessingOptions] = None
    ) -> List[FillJob]:
        """
        One job per provider and office combination.

        Without offices there is one job per provider. Colliding output names
        get a numeric suffix.
        """
        pattern = file_name_pattern or self.config.file_name_pattern
        jobs: List[FillJob] = []
        used: Dict[str, int] = {}

        for provider in providers:
            for office in (list(offices) or [None]):
                output_path = self.default_output_path(path, pattern, provider, office, output_dir)
                count = used.get(output_path, 0)
                used[output_path] = count + 1
                if count:
                    target = Path(output_path)
                    output_path = str(target.with_name(f"{target.stem}_{count + 1}{target.suffix}"))

                jobs.append(FillJob(
                    path=str(path),
                    mappings=template.mappings,
                    data=FillContext(
                        provider=provider,
                        office=office,
                        mailing=mailing,
                        custom=dict(custom or {}),
                    ),
                    output_path=output_path,
                    options=options,
                    template=template,
                    provider_id=_record_id(provider),
                    office_id=_record_id(office),
                    mailing_address_id=_record_id(mailing),
                ))

        return jobs

    async def fill_individual(
        self,
        path: str,
        template: Template,
        provider_ids: Sequence[str],
        office_ids: Sequence[str] = (),
        mailing_address_id: Optional[str] = None,
        custom: Optional[Mapping[str, Any]] = None,
        output_dir: Optional[Union[str, Path]] = None,
        file_name_pattern: Optional[str] = None,
        name: Optional[str] = None,
        options: Optional[ProcessingOptions] = None
    ) -> BatchJob:
        """
        Fill one document per provider (and office) from the record store.

        Unknown provider ids fail their own jobs only. An unknown office or
        mailing address id fails the whole batch before any document is filled.
        """
        providers: List[Any] = []
        failures: List[ProcessedDocument] = []

        for provider_id in provider_ids:
            try:
                providers.append(await self.record_store.get_provider(provider_id))
            except DocumentFillException as e:
                failed = ProcessedDocument(
                    original_path=str(path), output_path="", template=template, provider_id=provider_id
                )
                failed.mark_error(str(e))
                failures.append(failed)

        name = name or f"{Path(path).stem} individual"
        try:
            offices = [await self.record_store.get_office(office_id) for office_id in office_ids]
            mailing = (
                await self.record_store.get_mailing_address(mailing_address_id)
                if mailing_address_id else None
            )
        except DocumentFillException as e:
            logger.warning(f"Individual fill of {path} aborted: {e}")
            return await self.failed_batch(name, str(e), failures)

        jobs = self.build_individual_jobs(
            path, template, providers, offices, mailing, custom,
            output_dir=output_dir, file_name_pattern=file_name_pattern, options=options,
        )
        batch, _ = await self._run(jobs, name, failures)
        return batch

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def request_stop(self) -> None:
        """Let the running job finish, then mark the remaining jobs as errors."""
        logger.info("Batch stop requested")
        self._stop_requested = True

    async def failed_batch(
        self,
        name: str,
        error: str,
        documents: Sequence[ProcessedDocument] = ()
    ) -> BatchJob:
        """Record a batch that failed before any job ran."""
        batch = BatchJob(name=name, documents=list(documents))
        batch.fail(error)
        await self.job_storage.save_batch(batch)
        return batch

    def _record_outcome(self, document: ProcessedDocument, result: FillResult) -> None:
        document.warnings.extend(result.warnings)
        if result.success:
            document.output_path = result.output_path or document.output_path
            document.mark_completed()
        else:
            document.mark_error(result.error or "Unknown error")

    async def _run(
        self,
        jobs: Sequence[FillJob],
        name: str,
        prefilled: Sequence[ProcessedDocument] = ()
    ) -> Tuple[BatchJob, List[FillResult]]:
        self._stop_requested = False

        removed = await self.job_storage.cleanup_old_batches(self.config.job_retention_seconds)
        if removed:
            logger.info(f"Removed {removed} batches older than {self.config.job_retention_seconds}s")

        documents = list(prefilled) + [
            ProcessedDocument(
                original_path=job.path,
                output_path=job.output_path,
                template=job.template,
                provider_id=job.provider_id,
                office_id=job.office_id,
                mailing_address_id=job.mailing_address_id,
            )
            for job in jobs
        ]
        batch = BatchJob(name=name, documents=documents)
        batch.status = BatchStatus.RUNNING
        await self.job_storage.save_batch(batch)

        logger.info(f"Starting batch '{name}' ({batch.id}) with {len(jobs)} jobs")
        results: List[FillResult] = []

        for job, document in zip(jobs, documents[len(prefilled):]):
            if self._stop_requested:
                document.mark_error(STOPPED_MESSAGE)
                results.append(FillResult(success=False, output_path=job.output_path, error=STOPPED_MESSAGE))
                continue

            document.mark_processing()
            result = await self._fill(
                job.path,
                job.mappings,
                job.data,
                job.output_path,
                job.options,
                rules=job.template.conditional_rules if job.template else (),
                template=job.template,
            )
            self._record_outcome(document, result)
            results.append(result)

            log_fill_result(logger, f"Batch {batch.id}: {job.path}", result)
            if not result.success and self.config.stop_on_first_error:
                self._stop_requested = True

        batch.finish()
        await self.job_storage.save_batch(batch)
        self._stop_requested = False

        logger.info(
            f"Finished batch '{name}': {batch.completed_count}/{batch.total} completed"
        )
        return batch, results

    async def run_batch(
        self,
        jobs: Sequence[Union[FillJob, Mapping[str, Any]]],
        name: Optional[str] = None
    ) -> BatchResult:
        """
        Run raw jobs sequentially.

        The batch itself always succeeds; each job reports its own outcome.
        Malformed job dicts fail as their own job.
        """
        parsed: List[Union[FillJob, str]] = []
        for raw in jobs:
            if isinstance(raw, FillJob):
                parsed.append(raw)
                continue
            try:
                parsed.append(FillJob.from_dict(dict(raw)))
            except (TypeError, ValueError) as e:
                logger.warning(f"Invalid batch job: {e}")
                parsed.append(f"Invalid job: {e}")

        runnable = [job for job in parsed if isinstance(job, FillJob)]
        batch, results = await self._run(runnable, name or "batch")

        # Invalid jobs keep their submission position in the results
        run_results = iter(results)
        merged = [
            next(run_results) if isinstance(job, FillJob) else FillResult(success=False, error=job)
            for job in parsed
        ]
        return BatchResult(results=merged, batch_id=batch.id)

    async def get_batch_status(self, batch_id: str) -> Optional[Dict[str, Any]]:
        batch = await self.job_storage.get_batch(batch_id)
        return batch.to_dict() if batch else None
