"""
Document processors for the document fill module.

Importing this package registers every processor with the ProcessorRegistry.
"""

# Import all processors to trigger self-registration
from modules.document_fill.processors.base import BaseDocumentProcessor, FillPlan
from modules.document_fill.processors.pdf_processor import PdfProcessor
from modules.document_fill.processors.word_processor import WordProcessor
from modules.document_fill.processors.legacy_word_processor import LegacyWordProcessor
from modules.document_fill.processors.excel_processor import ExcelProcessor
from modules.document_fill.processors.legacy_excel_processor import LegacyExcelProcessor

__all__ = [
    "BaseDocumentProcessor",
    "FillPlan",
    "PdfProcessor",
    "WordProcessor",
    "LegacyWordProcessor",
    "ExcelProcessor",
    "LegacyExcelProcessor",
]
