"""
Shared processor behaviour.

Subclasses implement the format-specific ``_analyze`` and ``_write`` steps;
the base class owns caching, resolution, output writing and the conversion
of exceptions into structured results.
"""

import io
import re
import zipfile
from abc import abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from modules.document_fill.core.exceptions import DocumentFillException, WriteFailureException
from modules.document_fill.core.interfaces import (
    AnalysisResult,
    DocumentField,
    FillResult,
    HiddenFieldPolicy,
    IDocumentProcessor,
    ProcessorState,
)
from modules.document_fill.models.template import ConditionalRule, FieldMapping, ProcessingOptions
from modules.document_fill.resolution.resolver import FieldResolver, FillContext, ResolvedFields
from modules.document_fill.storage.file_store import IFileStore, LocalFileStore
from shared.utils.config import settings
from shared.utils.logger import log_error, setup_logger

logger = setup_logger(__name__)

OLE2_SIGNATURE = bytes.fromhex("D0CF11E0A1B11AE1")
ZIP_SIGNATURE = b"PK\x03\x04"
OLE2_SECTOR_SIZE = 512


# ==============================================================================
# STRUCTURAL CHECKS
# ==============================================================================

def looks_like_pdf(data: bytes) -> bool:
    """``%PDF`` header and an ``%%EOF`` marker near the end."""
    if len(data) < 8 or not data.startswith(b"%PDF"):
        return False
    return b"%%EOF" in data[-1024:]


def looks_like_ooxml(data: bytes, main_part: str) -> bool:
    """ZIP container with a readable central directory holding ``main_part``."""
    if not data.startswith(ZIP_SIGNATURE):
        return False
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            return main_part in archive.namelist()
    except (zipfile.BadZipFile, OSError, ValueError):
        return False


def looks_like_ole2(data: bytes) -> bool:
    """OLE2 compound file signature and a sector-aligned size."""
    return (
        len(data) >= OLE2_SECTOR_SIZE * 2
        and data.startswith(OLE2_SIGNATURE)
        and len(data) % OLE2_SECTOR_SIZE == 0
    )


# ==============================================================================
# FIELD NAME HELPERS
# ==============================================================================

def clean_field_name(name: str) -> str:
    """``provider_lastName`` -> ``Provider Last Name``."""
    text = re.sub(r"[_\-]+", " ", name)
    text = re.sub(r"([a-z])([A-Z])", r"\1 \2", text)
    text = re.sub(r"\s+", " ", text).strip()
    return " ".join(word[:1].upper() + word[1:] for word in text.split(" "))


def name_suggests_required(name: str) -> bool:
    """
    Whole-word keyword match; non-word keywords such as ``*`` match anywhere.
    """
    words = set(re.findall(r"[a-z0-9]+", clean_field_name(name).lower()))
    for keyword in settings.pdf_required_keywords_list:
        keyword = keyword.lower()
        if keyword.isalnum():
            if keyword in words:
                return True
        elif keyword in name:
            return True
    return False


def to_text(value: Any) -> str:
    """Value as written into a text field."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ", ".join(to_text(v) for v in value)
    return str(value)


TRUTHY_VALUES = {"true", "yes", "1", "on", "checked", "x", "y"}


def is_truthy(value: Any) -> bool:
    """Interpretation of a value written into a checkbox."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in TRUTHY_VALUES


# ==============================================================================
# FILL PLAN
# ==============================================================================

@dataclass
class FillPlan:
    """Everything a backend needs to write one output document."""
    analysis: AnalysisResult
    values: Dict[str, Any]
    context: FillContext
    mappings: List[FieldMapping] = field(default_factory=list)
    rules: Sequence[ConditionalRule] = ()
    options: ProcessingOptions = field(default_factory=ProcessingOptions)

    def field_by_id(self, field_id: str) -> Optional[DocumentField]:
        for candidate in self.analysis.fields:
            if candidate.id == field_id:
                return candidate
        return None


# ==============================================================================
# BASE PROCESSOR
# ==============================================================================

class BaseDocumentProcessor(IDocumentProcessor):
    """
    Template method implementation of IDocumentProcessor.

    Subclasses provide ``document_type``, ``can_process``, ``_analyze``,
    ``_write``, ``get_preview_data`` and ``extract_text``.
    """

    document_type: str = ""
    output_extension: Optional[str] = None

    def __init__(self, file_path: str, data: bytes, file_store: Optional[IFileStore] = None):
        super().__init__(file_path, data, file_store=file_store or LocalFileStore())
        self.resolver = FieldResolver()
        self._analysis: Optional[AnalysisResult] = None

    def get_document_type(self) -> str:
        return self.document_type

    def base_metadata(self) -> Dict[str, Any]:
        return {
            "file_path": self.file_path,
            "file_size": len(self.data),
            "document_type": self.document_type,
            "processed_at": datetime.now(timezone.utc).isoformat(),
        }

    def validate(self) -> bool:
        """Run ``can_process`` and advance to VALIDATED on success."""
        ok = self.can_process()
        if ok:
            self.advance(ProcessorState.VALIDATED)
        return ok

    @abstractmethod
    def _analyze(self, options: ProcessingOptions) -> AnalysisResult:
        """Format-specific field discovery. May raise."""
        pass

    @abstractmethod
    def _write(self, plan: FillPlan) -> Tuple[bytes, List[str]]:
        """
        Format-specific write step. May raise.

        Returns:
            Serialized output document and the ids of the fields written
        """
        pass

    async def analyze_document(
        self,
        options: Optional[ProcessingOptions] = None
    ) -> AnalysisResult:
        """Analyze once; later calls return the cached result."""
        if self._analysis is not None and self._analysis.success:
            return self._analysis

        options = ProcessingOptions.coerce(options)

        if not self.validate():
            return AnalysisResult(
                success=False,
                error=f"File is not a valid {self.document_type.upper()} document: {self.file_path}",
            )

        try:
            result = self._analyze(options)
        except DocumentFillException as e:
            logger.warning(f"Analysis failed for {self.file_path}: {e}")
            return AnalysisResult(success=False, error=str(e))
        except Exception as e:
            log_error(logger, e, f"Analysis failed for {self.file_path}")
            return AnalysisResult(success=False, error=f"Failed to analyze {self.document_type.upper()}: {e}")

        if result.success:
            self._analysis = result
            self.advance(ProcessorState.ANALYZED)
            logger.info(f"Analyzed {self.file_path}: {len(result.fields)} fields")
        return result

    def validate_mappings(
        self,
        mappings: Sequence[FieldMapping],
        field_ids: Set[str]
    ) -> List[str]:
        """Warnings for mappings whose field is not in this document."""
        return [
            f'Field "{m.label}" not found in document'
            for m in mappings
            if m.document_field_id not in field_ids
        ]

    def fillable_field_ids(self, analysis: AnalysisResult, mappings: Sequence[FieldMapping]) -> Set[str]:
        """Field ids a mapping may target. Backends may accept more than analysis lists."""
        return set(analysis.field_ids())

    def values_to_write(self, resolved: ResolvedFields, field_ids: Set[str]) -> Dict[str, Any]:
        """Apply the hidden-field policy and drop ids the document lacks."""
        values = {k: v for k, v in resolved.values.items() if k in field_ids}
        for hidden_id in resolved.hidden:
            if hidden_id not in field_ids:
                continue
            if self.hidden_field_policy == HiddenFieldPolicy.OMIT:
                values.pop(hidden_id, None)
            else:
                values[hidden_id] = None
        return values

    def final_output_path(self, output_path: str) -> str:
        if self.output_extension and not output_path.lower().endswith(self.output_extension):
            stem = re.sub(r"\.[^./\\]+$", "", output_path)
            return f"{stem}{self.output_extension}"
        return output_path

    async def fill_document(
        self,
        mappings: Sequence[FieldMapping],
        data: Any,
        output_path: str,
        options: Optional[ProcessingOptions] = None,
        rules: Sequence[ConditionalRule] = ()
    ) -> FillResult:
        """
        Fill the document and write it to ``output_path``.

        Mappings without a matching document field are skipped with a
        warning. Hidden fields follow ``hidden_field_policy``.
        """
        try:
            options = ProcessingOptions.coerce(options)
            context = FillContext.from_data(data)

            analysis = await self.analyze_document(options)
            if not analysis.success:
                return FillResult(success=False, error=analysis.error)

            field_ids = self.fillable_field_ids(analysis, mappings)
            warnings = self.validate_mappings(mappings, field_ids)
            applicable = [m for m in mappings if m.document_field_id in field_ids]
            unmatched = [m.document_field_id for m in mappings if m.document_field_id not in field_ids]

            resolved = self.resolver.resolve_all(applicable, rules, context)
            plan = FillPlan(
                analysis=analysis,
                values=self.values_to_write(resolved, field_ids),
                context=context,
                mappings=applicable,
                rules=tuple(rules),
                options=options,
            )

            output_bytes, filled = self._write(plan)

            target = self.final_output_path(str(output_path))
            written = await self.file_store.write_bytes(target, output_bytes)
            self.advance(ProcessorState.FILLED)

            logger.info(f"Filled {len(filled)} fields in {self.file_path} -> {written}")
            return FillResult(
                success=True,
                output_path=written,
                warnings=warnings + resolved.warning_messages() + resolved.errors,
                filled_fields=filled,
                skipped_fields=unmatched + resolved.skipped,
            )

        except WriteFailureException as e:
            logger.error(f"Write failed for {output_path}: {e}")
            return FillResult(success=False, error=str(e))
        except DocumentFillException as e:
            logger.warning(f"Fill failed for {self.file_path}: {e}")
            return FillResult(success=False, error=str(e))
        except Exception as e:
            log_error(logger, e, f"Fill failed for {self.file_path}")
            return FillResult(success=False, error=f"Failed to fill {self.document_type.upper()}: {e}")
