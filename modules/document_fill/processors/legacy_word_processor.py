"""
Legacy Word (.doc) processor.

Only the OLE2 container is checked; analysis and fill report that the
document must be converted to .docx first.
"""

from typing import Any, Dict, List, Tuple

from modules.document_fill.core.exceptions import UnsupportedFormatException
from modules.document_fill.core.interfaces import AnalysisResult, FileCategory
from modules.document_fill.core.registry import register_processor
from modules.document_fill.models.template import ProcessingOptions
from modules.document_fill.processors.base import BaseDocumentProcessor, FillPlan, looks_like_ole2

CONVERT_MESSAGE = (
    "Legacy Word documents (.doc) cannot be filled directly. "
    "Convert the document to .docx and map the converted file."
)


@register_processor(".doc", category=FileCategory.WORD, display_name="Word Document (Legacy)")
class LegacyWordProcessor(BaseDocumentProcessor):
    document_type = "doc"

    def can_process(self) -> bool:
        try:
            return looks_like_ole2(self.data)
        except Exception:
            return False

    def _analyze(self, options: ProcessingOptions) -> AnalysisResult:
        metadata = self.base_metadata()
        metadata["requires_conversion"] = True
        return AnalysisResult(success=False, error=CONVERT_MESSAGE, metadata=metadata)

    def _write(self, plan: FillPlan) -> Tuple[bytes, List[str]]:
        raise UnsupportedFormatException(CONVERT_MESSAGE)

    async def get_preview_data(self) -> Dict[str, Any]:
        return {
            "document_type": self.document_type,
            "valid_container": self.can_process(),
            "field_count": 0,
            "requires_conversion": True,
            "message": CONVERT_MESSAGE,
        }

    async def extract_text(self) -> str:
        raise UnsupportedFormatException(CONVERT_MESSAGE)
