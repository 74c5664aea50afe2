"""
PDF processor.

Fills AcroForm fields (text, checkbox, radio, dropdown) with pypdf.
Self-registers for ``.pdf``.
"""

import io
from typing import Any, Dict, List, Optional, Tuple

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PdfReadError

from modules.document_fill.core.exceptions import CorruptDocumentException
from modules.document_fill.core.interfaces import (
    AnalysisResult,
    DocumentField,
    FileCategory,
    HiddenFieldPolicy,
)
from modules.document_fill.core.registry import register_processor
from modules.document_fill.models.template import ProcessingOptions
from modules.document_fill.processors.base import (
    BaseDocumentProcessor,
    FillPlan,
    clean_field_name,
    is_truthy,
    looks_like_pdf,
    name_suggests_required,
    to_text,
)
from shared.utils.config import settings
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)

# AcroForm /Ff flag bits
FF_REQUIRED = 1 << 1
FF_RADIO = 1 << 15
FF_PUSHBUTTON = 1 << 16


def _qualified_name(annotation: Any) -> Optional[str]:
    parts = []
    node = annotation
    while node is not None:
        if "/T" in node:
            parts.append(str(node["/T"]))
        parent = node.get("/Parent")
        node = parent.get_object() if parent is not None else None
    return ".".join(reversed(parts)) if parts else None


def _field_type(field: Dict[str, Any]) -> Optional[str]:
    ft = field.get("/FT")
    flags = int(field.get("/Ff", 0) or 0)
    if ft == "/Tx":
        return "text"
    if ft == "/Btn":
        if flags & FF_PUSHBUTTON:
            return None
        return "radio" if flags & FF_RADIO else "checkbox"
    if ft == "/Ch":
        return "dropdown"
    if ft == "/Sig":
        return None
    return "text"


def _field_options(field: Dict[str, Any], field_type: str) -> List[str]:
    if field_type in ("checkbox", "radio"):
        states = field.get("/_States_", []) or []
        return [str(s).lstrip("/") for s in states if str(s) != "/Off"]
    if field_type == "dropdown":
        options = []
        for entry in field.get("/Opt", []) or []:
            if isinstance(entry, (list, tuple)) and entry:
                options.append(str(entry[-1]))
            else:
                options.append(str(entry))
        return options
    return []


def _current_value(field: Dict[str, Any]) -> Any:
    value = field.get("/V")
    if value is None:
        return None
    text = str(value)
    return text.lstrip("/") if text.startswith("/") else text


@register_processor(".pdf", category=FileCategory.PDF, display_name="PDF Document")
class PdfProcessor(BaseDocumentProcessor):
    """
    PDF AcroForm processor.

    Fields are discovered from the document's AcroForm. A field is required
    when its /Ff required bit is set or its name contains a required keyword.
    """

    document_type = "pdf"
    hidden_field_policy = HiddenFieldPolicy.OMIT

    def can_process(self) -> bool:
        try:
            return looks_like_pdf(self.data)
        except Exception:
            return False

    def _reader(self) -> PdfReader:
        try:
            return PdfReader(io.BytesIO(self.data))
        except (PdfReadError, ValueError, OSError) as e:
            raise CorruptDocumentException(f"Cannot read PDF {self.file_path}: {e}")

    def _field_pages(self, reader: PdfReader) -> Dict[str, int]:
        pages: Dict[str, int] = {}
        for index, page in enumerate(reader.pages, start=1):
            for annotation_ref in page.get("/Annots", []) or []:
                annotation = annotation_ref.get_object()
                if annotation.get("/Subtype") != "/Widget":
                    continue
                name = _qualified_name(annotation)
                if name and name not in pages:
                    pages[name] = index
        return pages

    def _analyze(self, options: ProcessingOptions) -> AnalysisResult:
        reader = self._reader()
        fields: List[DocumentField] = []

        raw_fields = reader.get_fields() or {}
        pages = self._field_pages(reader) if raw_fields else {}

        for name, raw in raw_fields.items():
            field_type = _field_type(raw)
            if field_type is None:
                continue
            flags = int(raw.get("/Ff", 0) or 0)
            fields.append(DocumentField(
                id=name,
                name=clean_field_name(name.split(".")[-1]),
                type=field_type,
                required=bool(flags & FF_REQUIRED) or name_suggests_required(name),
                value=_current_value(raw),
                options=_field_options(raw, field_type),
                page=pages.get(name),
            ))

        info = reader.metadata
        metadata = self.base_metadata()
        metadata.update({
            "title": info.title if info else None,
            "author": info.author if info else None,
            "page_count": len(reader.pages),
            "field_count": len(fields),
            "has_form": bool(raw_fields),
        })

        logger.debug(f"PDF {self.file_path}: {len(fields)} fields on {len(reader.pages)} pages")
        return AnalysisResult(success=True, fields=fields, pages=len(reader.pages), metadata=metadata)

    def _pdf_value(self, field: DocumentField, value: Any) -> Optional[str]:
        """Value in the shape pypdf expects for the field type."""
        if field.type == "checkbox":
            on_state = field.options[0] if field.options else "Yes"
            return f"/{on_state}" if is_truthy(value) else "/Off"
        if field.type == "radio":
            text = to_text(value).strip()
            if not text:
                return "/Off"
            for option in field.options:
                if option.lower() == text.lower():
                    return f"/{option}"
            logger.warning(f"Value {text!r} is not an option of radio field '{field.id}'")
            return None
        return to_text(value)

    def _write(self, plan: FillPlan) -> Tuple[bytes, List[str]]:
        reader = self._reader()
        writer = PdfWriter(clone_from=reader)

        pdf_values: Dict[str, str] = {}
        for field_id, value in plan.values.items():
            converted = self._pdf_value(plan.field_by_id(field_id), value)
            if converted is not None:
                pdf_values[field_id] = converted

        flatten = plan.options.flatten_output or settings.PDF_FLATTEN_DEFAULT

        page_values = dict(pdf_values)
        if flatten:
            # Unfilled text fields keep their current value in the flattened output
            for field in plan.analysis.fields:
                if field.id not in page_values and field.type in ("text", "dropdown"):
                    page_values[field.id] = to_text(field.value)

        if page_values:
            writer.set_need_appearances_writer(True)
            for page in writer.pages:
                if "/Annots" not in page:
                    continue
                writer.update_page_form_field_values(
                    page, page_values, auto_regenerate=False, flatten=flatten
                )

        if flatten:
            writer.remove_annotations(subtypes="/Widget")
            if "/AcroForm" in writer._root_object:
                del writer._root_object["/AcroForm"]

        buffer = io.BytesIO()
        writer.write(buffer)
        return buffer.getvalue(), list(pdf_values.keys())

    async def get_preview_data(self) -> Dict[str, Any]:
        analysis = await self.analyze_document()
        if not analysis.success:
            raise CorruptDocumentException(analysis.error or f"Cannot read PDF {self.file_path}")
        return {
            "document_type": self.document_type,
            "pages": analysis.pages,
            "field_count": len(analysis.fields),
            "fields": [
                {"id": f.id, "name": f.name, "type": f.type, "value": f.value, "page": f.page}
                for f in analysis.fields
            ],
            "metadata": analysis.metadata,
        }

    async def extract_text(self) -> str:
        if not self.can_process():
            raise CorruptDocumentException(f"File is not a valid PDF document: {self.file_path}")
        reader = self._reader()
        return "\n".join((page.extract_text() or "") for page in reader.pages).strip()
