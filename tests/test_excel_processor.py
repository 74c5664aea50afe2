"""
Tests for the Excel processors (.xlsx roster rows, .xls container handling).
"""

import io

import pytest
from openpyxl import load_workbook

from modules.document_fill.models.template import (
    ConditionalRule,
    ExcelColumnMapping,
    ExcelConfiguration,
    FieldMapping,
    ProcessingOptions,
)
from modules.document_fill.processors.excel_processor import ExcelProcessor, parse_field_id
from modules.document_fill.processors.legacy_excel_processor import LegacyExcelProcessor
from modules.document_fill.storage.file_store import InMemoryFileStore
from shared.utils.config import settings
from shared.utils.logger import setup_logger

from conftest import FAKE_OLE2, build_blank_xlsx, build_docx

logger = setup_logger(__name__)

ROW_MAPPINGS = [
    FieldMapping(document_field_id="Roster!A", source_type="provider", source_path="lastName"),
    FieldMapping(document_field_id="Roster!B", source_type="provider", source_path="npi"),
    FieldMapping(document_field_id="Roster!C", source_type="provider", source_path="npi"),
]


@pytest.fixture
def store():
    return InMemoryFileStore()


@pytest.fixture
def processor(xlsx_bytes, store):
    return ExcelProcessor("forms/roster.xlsx", xlsx_bytes, file_store=store)


async def load_output(store, path):
    return load_workbook(io.BytesIO(await store.read_bytes(path)))


def test_parse_field_id():
    assert parse_field_id("Roster!C") == ("Roster", "C", None)
    assert parse_field_id("My Sheet!AB12") == ("My Sheet", "AB", 12)
    assert parse_field_id("ln") is None


def test_can_process(xlsx_bytes):
    assert ExcelProcessor("a.xlsx", xlsx_bytes).can_process()
    assert not ExcelProcessor("a.xlsx", b"").can_process()
    assert not ExcelProcessor("a.xlsx", xlsx_bytes[: len(xlsx_bytes) // 2]).can_process()
    assert not ExcelProcessor("a.xlsx", build_docx()).can_process()


@pytest.mark.asyncio
async def test_analyze_uses_header_row(processor):
    analysis = await processor.analyze_document()

    assert analysis.success
    assert [f.id for f in analysis.fields] == ["Roster!A", "Roster!B", "Roster!C"]
    assert [f.name for f in analysis.fields] == ["Last Name", "NPI", "Check"]
    assert analysis.fields[2].metadata["column_letter"] == "C"
    assert analysis.metadata["sheet_names"] == ["Roster", "Info"]
    assert analysis.metadata["target_sheet"] == "Roster"


@pytest.mark.asyncio
async def test_blank_sheet_gets_default_columns():
    processor = ExcelProcessor("blank.xlsx", build_blank_xlsx())
    analysis = await processor.analyze_document()

    assert analysis.success
    assert len(analysis.fields) == settings.EXCEL_DEFAULT_COLUMNS
    assert analysis.fields[0].name == "Column A"


@pytest.mark.asyncio
async def test_missing_sheet_fails_analysis(processor):
    options = ProcessingOptions(excel=ExcelConfiguration(sheet_name="Nope"))
    analysis = await processor.analyze_document(options)
    assert not analysis.success
    assert "Nope" in analysis.error


@pytest.mark.asyncio
async def test_one_row_per_roster_provider(processor, store, providers, office):
    mappings = ROW_MAPPINGS + [
        FieldMapping(document_field_id="Info!B3", source_type="office", source_path="locationName"),
    ]
    result = await processor.fill_document(
        mappings, {"providers": providers, "office": office}, "out/roster.xlsx"
    )

    assert result.success, result.error
    assert set(result.filled_fields) == {"Info!B3", "Roster!A", "Roster!B", "Roster!C"}

    workbook = await load_output(store, "out/roster.xlsx")
    roster = workbook["Roster"]
    assert roster["A1"].value == "Last Name"
    assert [roster["A2"].value, roster["A3"].value] == ["Smith", "Jones"]
    assert [roster["B2"].value, roster["B3"].value] == ["1234567890", "9876543210"]
    assert roster["C2"].value == "=1+1"
    assert roster["C3"].value == "9876543210"
    assert roster["A4"].value is None
    assert workbook["Info"]["B3"].value == "Main Street Clinic"


@pytest.mark.asyncio
async def test_single_provider_fills_first_data_row(processor, store, provider):
    result = await processor.fill_document(ROW_MAPPINGS[:1], {"provider": provider}, "out/single.xlsx")

    assert result.success
    roster = (await load_output(store, "out/single.xlsx"))["Roster"]
    assert roster["A2"].value == "Smith"
    assert roster["A3"].value is None


@pytest.mark.asyncio
async def test_rules_are_evaluated_per_row(processor, store, providers):
    rules = [
        ConditionalRule(condition="provider.licenseState == 'Nevada'", action="setValue",
                        value="NV licensed", target_field_id="Roster!A"),
    ]
    result = await processor.fill_document(ROW_MAPPINGS[:1], {"providers": providers}, "out/rules.xlsx",
                                           rules=rules)

    assert result.success
    roster = (await load_output(store, "out/rules.xlsx"))["Roster"]
    assert roster["A2"].value == "Smith"
    assert roster["A3"].value == "NV licensed"


@pytest.mark.asyncio
async def test_column_configuration_fills_rows(processor, store, providers):
    options = ProcessingOptions(excel=ExcelConfiguration(
        sheet_name="Roster",
        header_row=1,
        data_start_row=5,
        column_mappings=(
            ExcelColumnMapping(column_letter="A", provider_field_path="firstName"),
            ExcelColumnMapping(column_letter="B", provider_field_path="deaNumber"),
        ),
    ))
    result = await processor.fill_document([], {"providers": providers}, "out/configured.xlsx", options)

    assert result.success
    assert result.filled_fields == ["Roster!A"]
    roster = (await load_output(store, "out/configured.xlsx"))["Roster"]
    assert [roster["A5"].value, roster["A6"].value] == ["John", "Jane"]
    assert roster["B5"].value is None


@pytest.mark.asyncio
async def test_no_providers_leaves_rows_empty(processor, store):
    result = await processor.fill_document(ROW_MAPPINGS, {}, "out/none.xlsx")

    assert result.success
    assert result.filled_fields == []
    roster = (await load_output(store, "out/none.xlsx"))["Roster"]
    assert roster["A2"].value is None


@pytest.mark.asyncio
async def test_fill_without_mappings_keeps_columns(processor, store):
    before = await processor.analyze_document()
    result = await processor.fill_document([], {}, "out/copy.xlsx")

    assert result.success, result.error
    assert result.filled_fields == []
    after = await ExcelProcessor("out/copy.xlsx", await store.read_bytes("out/copy.xlsx")).analyze_document()
    assert after.success
    assert [f.id for f in after.fields] == [f.id for f in before.fields]
    assert [f.name for f in after.fields] == [f.name for f in before.fields]


@pytest.mark.asyncio
async def test_preview_and_text(processor):
    preview = await processor.get_preview_data()
    assert [s["name"] for s in preview["sheets"]] == ["Roster", "Info"]
    assert preview["preview_rows"][0] == ["Last Name", "NPI", "Check"]

    text = await processor.extract_text()
    assert "Sheet: Roster" in text
    assert "Last Name\tNPI\tCheck" in text
    assert "Sheet: Info" in text


# ==============================================================================
# LEGACY .xls
# ==============================================================================

def test_legacy_xls_rejects_unreadable_buffers(xlsx_bytes):
    assert not LegacyExcelProcessor("a.xls", b"").can_process()
    assert not LegacyExcelProcessor("a.xls", FAKE_OLE2).can_process()
    assert not LegacyExcelProcessor("a.xls", xlsx_bytes).can_process()


def test_legacy_xls_output_is_xlsx():
    processor = LegacyExcelProcessor("a.xls", b"")
    assert processor.get_document_type() == "xls"
    assert processor.final_output_path("out/roster.xls") == "out/roster.xlsx"
    assert processor.final_output_path("out/roster") == "out/roster.xlsx"


@pytest.mark.asyncio
async def test_legacy_xls_fill_fails_on_corrupt_workbook():
    processor = LegacyExcelProcessor("a.xls", FAKE_OLE2, file_store=InMemoryFileStore())
    result = await processor.fill_document(ROW_MAPPINGS, {}, "out/a.xls")
    assert not result.success
    assert result.error
