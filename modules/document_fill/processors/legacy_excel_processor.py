"""
Legacy Excel (.xls) processor.

The BIFF workbook is read with xlrd and rebuilt as an openpyxl workbook, so
analysis and fill behave exactly like the modern processor. The filled output
is always written as .xlsx.
"""

import xlrd
from openpyxl import Workbook
from xlrd.biffh import XLRDError

from modules.document_fill.core.exceptions import CorruptDocumentException
from modules.document_fill.core.interfaces import FileCategory
from modules.document_fill.core.registry import register_processor
from modules.document_fill.processors.base import looks_like_ole2
from modules.document_fill.processors.excel_processor import ExcelProcessor
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)


def _convert_cell(book, cell):
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK, xlrd.XL_CELL_ERROR):
        return None
    if cell.ctype == xlrd.XL_CELL_DATE:
        return xlrd.xldate.xldate_as_datetime(cell.value, book.datemode)
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return bool(cell.value)
    if cell.ctype == xlrd.XL_CELL_NUMBER and float(cell.value).is_integer():
        return int(cell.value)
    return cell.value


def xls_to_workbook(data: bytes) -> Workbook:
    """Copy every sheet's cell values into a new openpyxl workbook."""
    book = xlrd.open_workbook(file_contents=data)
    workbook = Workbook()
    workbook.remove(workbook.active)

    for source in book.sheets():
        sheet = workbook.create_sheet(title=source.name)
        for row in range(source.nrows):
            for column in range(source.ncols):
                value = _convert_cell(book, source.cell(row, column))
                if value is not None:
                    sheet.cell(row=row + 1, column=column + 1, value=value)

    if not workbook.sheetnames:
        workbook.create_sheet(title="Sheet1")
    return workbook


@register_processor(".xls", category=FileCategory.EXCEL, display_name="Excel Spreadsheet (Legacy)")
class LegacyExcelProcessor(ExcelProcessor):
    document_type = "xls"
    output_extension = ".xlsx"

    def can_process(self) -> bool:
        try:
            if not looks_like_ole2(self.data):
                return False
            xlrd.open_workbook(file_contents=self.data, on_demand=True).release_resources()
            return True
        except Exception:
            return False

    def _load_workbook(self) -> Workbook:
        try:
            return xls_to_workbook(self.data)
        except (XLRDError, AssertionError, IndexError, ValueError) as e:
            raise CorruptDocumentException(f"Cannot read legacy Excel workbook {self.file_path}: {e}")
