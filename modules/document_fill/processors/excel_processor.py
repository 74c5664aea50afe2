"""
Excel (.xlsx) processor.

A sheet is treated as a roster: every column of the target sheet is a field
(``Sheet!C``) and each provider of the fill context gets one data row.
Single cells can be addressed directly (``Sheet!B3``) and are written once.
Self-registers for ``.xlsx``.
"""

import io
import re
import zipfile
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from openpyxl import Workbook, load_workbook
from openpyxl.utils import column_index_from_string, get_column_letter
from openpyxl.utils.exceptions import InvalidFileException

from modules.document_fill.core.exceptions import CorruptDocumentException
from modules.document_fill.core.interfaces import AnalysisResult, DocumentField, FileCategory
from modules.document_fill.core.registry import register_processor
from modules.document_fill.models.template import ExcelConfiguration, FieldMapping, ProcessingOptions
from modules.document_fill.processors.base import BaseDocumentProcessor, FillPlan, looks_like_ooxml, to_text
from modules.document_fill.resolution.paths import get_path, is_missing
from modules.document_fill.resolution.resolver import FillContext
from shared.utils.config import settings
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)

FIELD_ID_RE = re.compile(r"^(?P<sheet>.+)!(?P<column>[A-Z]{1,3})(?P<row>\d+)?$")
PREVIEW_ROWS = 20


def parse_field_id(field_id: str) -> Optional[Tuple[str, str, Optional[int]]]:
    """``Roster!C`` -> (``Roster``, ``C``, None); ``Roster!B3`` -> (``Roster``, ``B``, 3)."""
    match = FIELD_ID_RE.match(field_id)
    if not match:
        return None
    row = match.group("row")
    return match.group("sheet"), match.group("column"), int(row) if row else None


def is_formula(cell) -> bool:
    return cell.data_type == "f" or (isinstance(cell.value, str) and cell.value.startswith("="))


def cell_value(value: Any) -> Any:
    """Python value as stored in a cell."""
    if value is None or isinstance(value, (int, float, bool)):
        return value
    if isinstance(value, (list, tuple, dict)):
        return to_text(value)
    if hasattr(value, "isoformat"):
        return value
    return str(value)


def is_blank_sheet(sheet) -> bool:
    return sheet.max_row == 1 and sheet.max_column == 1 and sheet.cell(row=1, column=1).value is None


@register_processor(".xlsx", category=FileCategory.EXCEL, display_name="Excel Spreadsheet (Modern)")
class ExcelProcessor(BaseDocumentProcessor):
    """
    Modern Excel processor built on openpyxl.

    Formula cells are never overwritten. Hidden fields are written as empty
    cells.
    """

    document_type = "xlsx"

    def can_process(self) -> bool:
        try:
            return looks_like_ooxml(self.data, "xl/workbook.xml")
        except Exception:
            return False

    def _load_workbook(self) -> Workbook:
        try:
            return load_workbook(io.BytesIO(self.data))
        except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, OSError) as e:
            raise CorruptDocumentException(f"Cannot read Excel workbook {self.file_path}: {e}")

    def _excel_config(self, options: ProcessingOptions) -> ExcelConfiguration:
        if options.excel is not None:
            return options.excel
        return ExcelConfiguration(
            header_row=settings.EXCEL_HEADER_ROW,
            data_start_row=settings.EXCEL_DATA_START_ROW,
        )

    def _target_sheet(self, workbook: Workbook, config: ExcelConfiguration):
        if config.sheet_name:
            if config.sheet_name not in workbook.sheetnames:
                raise CorruptDocumentException(
                    f'Sheet "{config.sheet_name}" not found in {self.file_path}'
                )
            return workbook[config.sheet_name]
        return workbook.worksheets[0]

    # ==========================================================================
    # ANALYSIS
    # ==========================================================================

    def _analyze(self, options: ProcessingOptions) -> AnalysisResult:
        workbook = self._load_workbook()
        config = self._excel_config(options)
        sheet = self._target_sheet(workbook, config)

        if is_blank_sheet(sheet):
            column_count = settings.EXCEL_DEFAULT_COLUMNS
        else:
            column_count = sheet.max_column or settings.EXCEL_DEFAULT_COLUMNS
        column_count = min(column_count, settings.EXCEL_MAX_COLUMNS)

        fields: List[DocumentField] = []
        for index in range(1, column_count + 1):
            letter = get_column_letter(index)
            header = sheet.cell(row=config.header_row, column=index).value
            header_text = str(header).strip() if header is not None else ""
            fields.append(DocumentField(
                id=f"{sheet.title}!{letter}",
                name=header_text or f"Column {letter}",
                type="text",
                metadata={
                    "sheet": sheet.title,
                    "column_letter": letter,
                    "column_index": index,
                    "header": header_text or None,
                },
            ))

        metadata = self.base_metadata()
        metadata.update({
            "sheet_count": len(workbook.sheetnames),
            "sheet_names": list(workbook.sheetnames),
            "target_sheet": sheet.title,
            "row_count": sheet.max_row,
            "column_count": column_count,
            "header_row": config.header_row,
            "data_start_row": config.data_start_row,
            "title": workbook.properties.title or None,
            "author": workbook.properties.creator or None,
        })

        logger.debug(f"Excel {self.file_path}: {len(fields)} columns on sheet '{sheet.title}'")
        return AnalysisResult(success=True, fields=fields, pages=len(workbook.sheetnames), metadata=metadata)

    def fillable_field_ids(self, analysis: AnalysisResult, mappings: Sequence[FieldMapping]) -> Set[str]:
        """Analyzed columns plus any single-cell address on an existing sheet."""
        field_ids = set(analysis.field_ids())
        sheets = set(analysis.metadata.get("sheet_names") or ())
        for mapping in mappings:
            parsed = parse_field_id(mapping.document_field_id)
            if parsed and parsed[2] is not None and parsed[0] in sheets:
                field_ids.add(mapping.document_field_id)
        return field_ids

    # ==========================================================================
    # FILL
    # ==========================================================================

    def _set_cell(self, sheet, row: int, column: int, value: Any) -> bool:
        cell = sheet.cell(row=row, column=column)
        if is_formula(cell):
            logger.debug(f"Skipping formula cell {sheet.title}!{cell.coordinate}")
            return False
        cell.value = cell_value(value)
        return True

    def _row_providers(self, context: FillContext) -> List[Any]:
        if context.roster:
            return list(context.roster)
        if context.provider is not None:
            return [context.provider]
        return []

    def _write(self, plan: FillPlan) -> Tuple[bytes, List[str]]:
        workbook = self._load_workbook()
        config = self._excel_config(plan.options)
        filled: List[str] = []

        column_mappings: List[FieldMapping] = []
        for mapping in plan.mappings:
            parsed = parse_field_id(mapping.document_field_id)
            if parsed is None:
                continue
            sheet_name, column, row = parsed
            if row is None:
                column_mappings.append(mapping)
            elif mapping.document_field_id in plan.values:
                sheet = workbook[sheet_name]
                if self._set_cell(sheet, row, column_index_from_string(column), plan.values[mapping.document_field_id]):
                    filled.append(mapping.document_field_id)

        providers = self._row_providers(plan.context)
        if not providers:
            if column_mappings or config.column_mappings:
                logger.warning(f"No provider data for roster rows in {self.file_path}")
        elif config.column_mappings:
            sheet = self._target_sheet(workbook, config)
            filled.extend(self._fill_configured_rows(sheet, config, providers))
        elif column_mappings:
            filled.extend(self._fill_mapped_rows(workbook, config, column_mappings, providers, plan))

        buffer = io.BytesIO()
        workbook.save(buffer)
        return buffer.getvalue(), filled

    def _fill_mapped_rows(
        self,
        workbook: Workbook,
        config: ExcelConfiguration,
        mappings: List[FieldMapping],
        providers: List[Any],
        plan: FillPlan
    ) -> List[str]:
        """One row per provider; every mapping is resolved against that provider."""
        filled: List[str] = []

        for offset, provider in enumerate(providers):
            row = config.data_start_row + offset
            row_context = FillContext(
                provider=provider,
                office=plan.context.office,
                mailing=plan.context.mailing,
                custom=plan.context.custom,
                roster=(provider,),
            )
            resolved = self.resolver.resolve_all(mappings, plan.rules, row_context)
            values = self.values_to_write(resolved, {m.document_field_id for m in mappings})

            for mapping in mappings:
                field_id = mapping.document_field_id
                if field_id not in values:
                    continue
                sheet_name, column, _ = parse_field_id(field_id)
                if self._set_cell(workbook[sheet_name], row, column_index_from_string(column), values[field_id]):
                    if field_id not in filled:
                        filled.append(field_id)

        return filled

    def _fill_configured_rows(self, sheet, config: ExcelConfiguration, providers: List[Any]) -> List[str]:
        """Rows filled straight from provider paths in the column configuration."""
        filled: List[str] = []
        for offset, provider in enumerate(providers):
            row = config.data_start_row + offset
            for column_mapping in config.column_mappings:
                if not column_mapping.provider_field_path:
                    continue
                value = get_path(provider, column_mapping.provider_field_path)
                if is_missing(value):
                    continue
                if column_mapping.column_index is not None:
                    column = column_mapping.column_index
                else:
                    column = column_index_from_string(column_mapping.column_letter)
                if self._set_cell(sheet, row, column, value):
                    field_id = f"{sheet.title}!{get_column_letter(column)}"
                    if field_id not in filled:
                        filled.append(field_id)
        return filled

    # ==========================================================================
    # PREVIEW / TEXT
    # ==========================================================================

    async def get_preview_data(self) -> Dict[str, Any]:
        analysis = await self.analyze_document()
        if not analysis.success:
            raise CorruptDocumentException(analysis.error or f"Cannot read Excel workbook {self.file_path}")

        workbook = self._load_workbook()
        sheets = []
        for index, sheet in enumerate(workbook.worksheets):
            sheets.append({
                "name": sheet.title,
                "index": index,
                "row_count": sheet.max_row,
                "column_count": sheet.max_column,
            })

        target = workbook[analysis.metadata["target_sheet"]]
        column_count = analysis.metadata.get("column_count", target.max_column)
        rows = []
        for row in target.iter_rows(min_row=1, max_row=min(target.max_row, PREVIEW_ROWS),
                                    max_col=column_count, values_only=True):
            rows.append([to_text(value) for value in row])

        return {
            "document_type": self.document_type,
            "field_count": len(analysis.fields),
            "sheets": sheets,
            "target_sheet": target.title,
            "columns": [
                {"id": f.id, "name": f.name, "letter": f.metadata.get("column_letter")}
                for f in analysis.fields
            ],
            "preview_rows": rows,
        }

    async def extract_text(self) -> str:
        if not self.can_process():
            raise CorruptDocumentException(
                f"File is not a valid {self.document_type.upper()} document: {self.file_path}"
            )
        workbook = self._load_workbook()
        blocks = []
        for sheet in workbook.worksheets:
            lines = [f"Sheet: {sheet.title}"]
            for row in sheet.iter_rows(values_only=True):
                cells = [to_text(value) for value in row]
                if any(cells):
                    lines.append("\t".join(cells).rstrip("\t"))
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks).strip()
