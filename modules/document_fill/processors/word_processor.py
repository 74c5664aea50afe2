"""
Word (.docx) processor.

Fields are ``{{field_id}}`` placeholders in the body, tables, headers and
footers. ``{{☐field_id}}`` marks a checkbox placeholder.
Self-registers for ``.docx``.
"""

import io
import re
from typing import Any, Dict, Iterator, List, Tuple

from docx import Document
from docx.opc.exceptions import PackageNotFoundError

from modules.document_fill.core.exceptions import CorruptDocumentException
from modules.document_fill.core.interfaces import AnalysisResult, DocumentField, FileCategory
from modules.document_fill.core.registry import register_processor
from modules.document_fill.models.template import ProcessingOptions
from modules.document_fill.processors.base import (
    BaseDocumentProcessor,
    FillPlan,
    clean_field_name,
    is_truthy,
    looks_like_ooxml,
    to_text,
)
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)

CHECKBOX_EMPTY = "☐"
CHECKBOX_CHECKED = "☒"
PLACEHOLDER_RE = re.compile(r"\{\{\s*(" + CHECKBOX_EMPTY + r")?\s*([^{}]+?)\s*\}\}")


def iter_table_paragraphs(table) -> Iterator[Any]:
    for row in table.rows:
        for cell in row.cells:
            yield from cell.paragraphs
            for nested in cell.tables:
                yield from iter_table_paragraphs(nested)


def iter_paragraphs(doc) -> Iterator[Any]:
    """Every paragraph in body, tables, headers and footers."""
    yield from doc.paragraphs
    for table in doc.tables:
        yield from iter_table_paragraphs(table)

    seen = set()
    for section in doc.sections:
        for part in (section.header, section.footer):
            if part.is_linked_to_previous:
                continue
            key = id(part._element)
            if key in seen:
                continue
            seen.add(key)
            yield from part.paragraphs
            for table in part.tables:
                yield from iter_table_paragraphs(table)


@register_processor(".docx", category=FileCategory.WORD, display_name="Word Document (Modern)")
class WordProcessor(BaseDocumentProcessor):
    """
    Modern Word processor built on python-docx.

    Hidden fields are written as empty text.
    """

    document_type = "docx"

    def can_process(self) -> bool:
        try:
            return looks_like_ooxml(self.data, "word/document.xml")
        except Exception:
            return False

    def _document(self):
        try:
            return Document(io.BytesIO(self.data))
        except (PackageNotFoundError, KeyError, ValueError) as e:
            raise CorruptDocumentException(f"Cannot read Word document {self.file_path}: {e}")

    def _analyze(self, options: ProcessingOptions) -> AnalysisResult:
        doc = self._document()
        fields: Dict[str, DocumentField] = {}
        occurrences: Dict[str, int] = {}

        for paragraph in iter_paragraphs(doc):
            for match in PLACEHOLDER_RE.finditer(paragraph.text):
                checkbox, field_id = match.groups()
                occurrences[field_id] = occurrences.get(field_id, 0) + 1
                if field_id not in fields:
                    fields[field_id] = DocumentField(
                        id=field_id,
                        name=clean_field_name(field_id),
                        type="checkbox" if checkbox else "text",
                    )

        for field_id, count in occurrences.items():
            fields[field_id].metadata["occurrences"] = count

        metadata = self.base_metadata()
        metadata.update({
            "paragraph_count": len(doc.paragraphs),
            "table_count": len(doc.tables),
            "section_count": len(doc.sections),
            "title": doc.core_properties.title or None,
            "author": doc.core_properties.author or None,
        })

        return AnalysisResult(success=True, fields=list(fields.values()), pages=0, metadata=metadata)

    def _replace_in_paragraph(self, paragraph, values: Dict[str, Any], types: Dict[str, str]) -> List[str]:
        """Replace placeholders in one paragraph, keeping the first run's formatting."""
        full_text = paragraph.text
        replaced: List[str] = []

        def substitute(match: "re.Match[str]") -> str:
            field_id = match.group(2)
            if field_id not in values:
                return match.group(0)
            replaced.append(field_id)
            value = values[field_id]
            if types.get(field_id) == "checkbox":
                return CHECKBOX_CHECKED if is_truthy(value) else CHECKBOX_EMPTY
            return to_text(value)

        new_text = PLACEHOLDER_RE.sub(substitute, full_text)
        if new_text != full_text or replaced:
            runs = paragraph.runs
            if runs:
                runs[0].text = new_text
                for run in runs[1:]:
                    run.text = ""
            else:
                paragraph.add_run(new_text)
        return replaced

    def _write(self, plan: FillPlan) -> Tuple[bytes, List[str]]:
        doc = self._document()
        types = {f.id: f.type for f in plan.analysis.fields}
        filled: List[str] = []

        if plan.values:
            for paragraph in iter_paragraphs(doc):
                if "{{" not in paragraph.text:
                    continue
                for field_id in self._replace_in_paragraph(paragraph, plan.values, types):
                    if field_id not in filled:
                        filled.append(field_id)

        buffer = io.BytesIO()
        doc.save(buffer)
        return buffer.getvalue(), filled

    async def get_preview_data(self) -> Dict[str, Any]:
        analysis = await self.analyze_document()
        if not analysis.success:
            raise CorruptDocumentException(analysis.error or f"Cannot read Word document {self.file_path}")
        text = await self.extract_text()
        return {
            "document_type": self.document_type,
            "field_count": len(analysis.fields),
            "placeholders": [f.id for f in analysis.fields],
            "paragraph_count": analysis.metadata.get("paragraph_count", 0),
            "table_count": analysis.metadata.get("table_count", 0),
            "text_preview": text[:500],
        }

    async def extract_text(self) -> str:
        if not self.can_process():
            raise CorruptDocumentException(f"File is not a valid DOCX document: {self.file_path}")
        doc = self._document()
        lines = [p.text for p in doc.paragraphs]
        for table in doc.tables:
            for row in table.rows:
                lines.append("\t".join(cell.text for cell in row.cells))
        return "\n".join(lines).strip()
