"""
Document Fill Engine - Main entry point.

Boundary operations over the dispatcher, processors and orchestrator.
Fill operations return structured results (FillResult, ProcessedDocument,
BatchJob or a success dict) and never raise to the caller. Only
``register_template`` raises, with TemplateValidationException.
"""

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from modules.document_fill.config import FillConfig, get_fill_config
from modules.document_fill.core import dispatcher
from modules.document_fill.core.exceptions import DocumentFillException
from modules.document_fill.core.interfaces import AnalysisResult, FillResult, IDocumentProcessor
from modules.document_fill.core.validation import ensure_valid_template
from modules.document_fill.models.jobs import BatchJob, BatchResult, FillJob, ProcessedDocument, RosterEntry
from modules.document_fill.models.template import FieldMapping, ProcessingOptions, Template
from modules.document_fill.orchestrator import FillOrchestrator
from modules.document_fill.storage.file_store import IFileStore, LocalFileStore
from modules.document_fill.storage.job_storage import IJobStorage, InMemoryJobStorage
from modules.document_fill.storage.record_store import IRecordStore, InMemoryRecordStore
from modules.document_fill.templates.registry import ITemplateStore, InMemoryTemplateStore
from shared.utils.logger import log_error, log_function_call, setup_logger

logger = setup_logger(__name__)

OptionsInput = Union[ProcessingOptions, Dict[str, Any], None]


def _coerce_mappings(mappings: Sequence[Union[FieldMapping, Mapping[str, Any]]]) -> List[FieldMapping]:
    return [m if isinstance(m, FieldMapping) else FieldMapping.model_validate(m) for m in mappings]


class DocumentFillEngine:
    """
    Main document fill engine.

    Wires the collaborators together:
    1. Record store (providers, offices, mailing addresses)
    2. Template store
    3. File store for document bytes
    4. Job storage for batch tracking
    """

    def __init__(
        self,
        config: Optional[FillConfig] = None,
        job_storage: Optional[IJobStorage] = None,
        record_store: Optional[IRecordStore] = None,
        template_store: Optional[ITemplateStore] = None,
        file_store: Optional[IFileStore] = None
    ):
        """
        Initialize the engine.

        Args:
            config: Fill configuration (optional, defaults to global config)
            job_storage: Batch storage (optional, defaults to in-memory)
            record_store: Record store (optional, defaults to an empty in-memory store)
            template_store: Template store (optional, defaults to in-memory)
            file_store: File access (optional, defaults to local disk)
        """
        self.config = config or get_fill_config()
        self.job_storage = job_storage or InMemoryJobStorage()
        self.record_store = record_store or InMemoryRecordStore()
        self.template_store = template_store or InMemoryTemplateStore()
        self.file_store = file_store or LocalFileStore()

        self.orchestrator = FillOrchestrator(
            config=self.config,
            job_storage=self.job_storage,
            record_store=self.record_store,
            file_store=self.file_store,
        )

        logger.info("✅ Initialized DocumentFillEngine")

    async def _processor(self, path: str) -> IDocumentProcessor:
        data = await self.file_store.read_bytes(path)
        return dispatcher.create(path, data, file_store=self.file_store)

    # ==========================================================================
    # DOCUMENT OPERATIONS
    # ==========================================================================

    async def analyze(self, path: str, options: OptionsInput = None) -> AnalysisResult:
        """Discover the fillable fields of a document."""
        log_function_call(logger, "analyze", path=path)
        try:
            processor = await self._processor(path)
            return await processor.analyze_document(ProcessingOptions.coerce(options))
        except (DocumentFillException, ValidationError) as e:
            logger.warning(f"Analysis failed for {path}: {e}")
            return AnalysisResult(success=False, error=str(e))
        except Exception as e:
            log_error(logger, e, f"Analysis failed for {path}")
            return AnalysisResult(success=False, error=str(e) or type(e).__name__)

    async def fill(
        self,
        path: str,
        mappings: Sequence[Union[FieldMapping, Mapping[str, Any]]],
        data: Any,
        output_path: str,
        options: OptionsInput = None
    ) -> FillResult:
        """
        Fill a document from explicit mappings.

        ``data`` may be a FillContext or a dict with ``provider``, ``office``,
        ``mailingAddress``/``mailing``, ``custom`` and ``providers`` keys.
        """
        log_function_call(logger, "fill", path=path, output_path=output_path)
        try:
            parsed = _coerce_mappings(mappings)
            processor = await self._processor(path)
            return await processor.fill_document(
                parsed, data, str(output_path), ProcessingOptions.coerce(options)
            )
        except (DocumentFillException, ValidationError, TypeError) as e:
            logger.warning(f"Fill failed for {path}: {e}")
            return FillResult(success=False, error=str(e))
        except Exception as e:
            log_error(logger, e, f"Fill failed for {path}")
            return FillResult(success=False, error=str(e) or type(e).__name__)

    async def get_preview(self, path: str) -> Dict[str, Any]:
        try:
            processor = await self._processor(path)
            return {"success": True, "data": await processor.get_preview_data()}
        except DocumentFillException as e:
            return {"success": False, "error": str(e)}
        except Exception as e:
            log_error(logger, e, f"Preview failed for {path}")
            return {"success": False, "error": str(e) or type(e).__name__}

    async def extract_text(self, path: str) -> Dict[str, Any]:
        try:
            processor = await self._processor(path)
            return {"success": True, "text": await processor.extract_text()}
        except DocumentFillException as e:
            return {"success": False, "error": str(e)}
        except Exception as e:
            log_error(logger, e, f"Text extraction failed for {path}")
            return {"success": False, "error": str(e) or type(e).__name__}

    def is_supported(self, path: str) -> Dict[str, Any]:
        return {
            "success": True,
            "supported": dispatcher.is_supported(path),
            "category": dispatcher.classify(path).value,
        }

    def list_supported_types(self) -> List[Dict[str, Any]]:
        return dispatcher.list_supported_types()

    # ==========================================================================
    # BATCH AND TEMPLATE OPERATIONS
    # ==========================================================================

    async def batch_fill(
        self,
        jobs: Sequence[Union[FillJob, Mapping[str, Any]]],
        name: Optional[str] = None
    ) -> BatchResult:
        """Run jobs sequentially; never fails as a whole."""
        log_function_call(logger, "batch_fill", jobs=len(jobs))
        return await self.orchestrator.run_batch(jobs, name=name)

    async def register_template(self, template: Union[Template, Mapping[str, Any]]) -> Template:
        """
        Validate and store a template.

        Raises:
            TemplateValidationException: If the template is invalid
        """
        if not isinstance(template, Template):
            template = Template.model_validate(template)
        ensure_valid_template(template)
        return await self.template_store.save_template(template)

    async def _template(self, template: Union[Template, str]) -> Template:
        if isinstance(template, Template):
            resolved = template
        else:
            resolved = await self.template_store.require_template(template)
        if self.config.validate_templates:
            ensure_valid_template(resolved)
        return resolved

    async def fill_template(
        self,
        template: Union[Template, str],
        path: str,
        data: Any,
        output_path: str,
        options: OptionsInput = None
    ) -> FillResult:
        """Fill a document from a stored (or given) template after validating it."""
        log_function_call(logger, "fill_template", path=path, output_path=output_path)
        try:
            resolved = await self._template(template)
            return await self.orchestrator.fill_single(
                path, resolved, data, output_path, ProcessingOptions.coerce(options)
            )
        except (DocumentFillException, ValidationError) as e:
            logger.warning(f"Template fill failed for {path}: {e}")
            return FillResult(success=False, error=str(e))
        except Exception as e:
            log_error(logger, e, f"Template fill failed for {path}")
            return FillResult(success=False, error=str(e) or type(e).__name__)

    async def fill_roster(
        self,
        template: Union[Template, str],
        path: str,
        roster: Sequence[Union[RosterEntry, Mapping[str, Any]]],
        output_path: Optional[str] = None,
        office_id: Optional[str] = None,
        mailing_address_id: Optional[str] = None,
        custom: Optional[Mapping[str, Any]] = None,
        options: OptionsInput = None
    ) -> ProcessedDocument:
        """Fill one roster document; failures are reported on the returned document."""
        log_function_call(logger, "fill_roster", path=path, providers=len(roster))
        try:
            resolved = await self._template(template)
            office = await self.record_store.get_office(office_id) if office_id else None
            mailing = (
                await self.record_store.get_mailing_address(mailing_address_id)
                if mailing_address_id else None
            )
            return await self.orchestrator.fill_roster(
                path,
                resolved,
                roster,
                output_path=output_path,
                office=office,
                mailing=mailing,
                custom=custom,
                options=ProcessingOptions.coerce(options),
            )
        except Exception as e:
            if isinstance(e, (DocumentFillException, ValidationError)):
                logger.warning(f"Roster fill failed for {path}: {e}")
            else:
                log_error(logger, e, f"Roster fill failed for {path}")
            document = ProcessedDocument(
                original_path=str(path),
                output_path=str(output_path or ""),
                template=template if isinstance(template, Template) else None,
                office_id=office_id,
                mailing_address_id=mailing_address_id,
            )
            document.mark_error(str(e) or type(e).__name__)
            return document

    async def fill_individual(
        self,
        template: Union[Template, str],
        path: str,
        provider_ids: Sequence[str],
        office_ids: Sequence[str] = (),
        mailing_address_id: Optional[str] = None,
        custom: Optional[Mapping[str, Any]] = None,
        output_dir: Optional[str] = None,
        file_name_pattern: Optional[str] = None,
        options: OptionsInput = None
    ) -> BatchJob:
        """One filled document per provider (and office); failures end the batch in ERROR."""
        log_function_call(logger, "fill_individual", path=path, providers=len(provider_ids))
        try:
            resolved = await self._template(template)
            return await self.orchestrator.fill_individual(
                path,
                resolved,
                provider_ids,
                office_ids=office_ids,
                mailing_address_id=mailing_address_id,
                custom=custom,
                output_dir=output_dir,
                file_name_pattern=file_name_pattern,
                options=ProcessingOptions.coerce(options),
            )
        except Exception as e:
            if isinstance(e, (DocumentFillException, ValidationError)):
                logger.warning(f"Individual fill failed for {path}: {e}")
            else:
                log_error(logger, e, f"Individual fill failed for {path}")
            return await self.orchestrator.failed_batch(
                f"{Path(path).stem} individual", str(e) or type(e).__name__
            )

    async def get_batch_status(self, batch_id: str) -> Dict[str, Any]:
        status = await self.orchestrator.get_batch_status(batch_id)
        if status is None:
            return {"success": False, "error": f"Batch not found: {batch_id}"}
        return {"success": True, "batch": status}

    def request_stop(self) -> None:
        self.orchestrator.request_stop()
