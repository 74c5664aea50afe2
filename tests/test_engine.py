"""
Tests for the DocumentFillEngine boundary operations.
"""

import pytest

from modules.document_fill.core.exceptions import TemplateValidationException
from modules.document_fill.engine import DocumentFillEngine
from modules.document_fill.models.jobs import BatchStatus, ProcessingStatus
from shared.utils.logger import setup_logger

from conftest import PROVIDERS

logger = setup_logger(__name__)


@pytest.fixture
def engine(fill_config, record_store, file_store):
    return DocumentFillEngine(config=fill_config, record_store=record_store, file_store=file_store)


@pytest.mark.asyncio
async def test_analyze(engine):
    analysis = await engine.analyze("forms/enrollment.pdf")
    assert analysis.success
    assert "ln" in analysis.field_ids()

    missing = await engine.analyze("forms/missing.pdf")
    assert not missing.success
    assert missing.fields == []

    unsupported = await engine.analyze("notes.txt")
    assert not unsupported.success


@pytest.mark.asyncio
async def test_fill_with_dict_mappings(engine, file_store):
    result = await engine.fill(
        "forms/welcome.docx",
        [{"documentFieldId": "npi", "sourceType": "provider", "sourcePath": "npi"}],
        {"provider": PROVIDERS[1]},
        "out/welcome.docx",
    )
    assert result.success, result.error
    assert result.filled_fields == ["npi"]
    assert await file_store.exists("out/welcome.docx")


@pytest.mark.asyncio
async def test_fill_with_invalid_mapping_reports_error(engine):
    result = await engine.fill("forms/welcome.docx", [{"documentFieldId": "npi"}], {}, "out/x.docx")
    assert not result.success
    assert result.error


@pytest.mark.asyncio
async def test_fill_legacy_doc_reports_conversion(engine):
    result = await engine.fill("forms/legacy.doc", [], {}, "out/legacy.doc")
    assert not result.success
    assert ".docx" in result.error


def test_supported_types(engine):
    assert engine.is_supported("roster.XLSX") == {"success": True, "supported": True, "category": "excel"}
    assert engine.is_supported("notes.txt")["supported"] is False
    assert len(engine.list_supported_types()) == 5


@pytest.mark.asyncio
async def test_preview_and_text(engine):
    preview = await engine.get_preview("forms/roster.xlsx")
    assert preview["success"]
    assert preview["data"]["target_sheet"] == "Roster"

    text = await engine.extract_text("forms/welcome.docx")
    assert text["success"]
    assert "{{npi}}" in text["text"]

    missing = await engine.get_preview("forms/none.pdf")
    assert missing == {"success": False, "error": "File not found: forms/none.pdf"}


@pytest.mark.asyncio
async def test_register_and_fill_template(engine, pdf_template):
    await engine.register_template(pdf_template)

    result = await engine.fill_template(
        "enrollment", "forms/enrollment.pdf", {"provider": PROVIDERS[0]}, "out/enrollment.pdf"
    )
    assert result.success, result.error
    assert set(result.filled_fields) == {"fn", "ln", "npi"}


@pytest.mark.asyncio
async def test_register_invalid_template_raises(engine):
    with pytest.raises(TemplateValidationException):
        await engine.register_template({
            "id": "bad",
            "documentType": "pdf",
            "mappings": [{"documentFieldId": "a", "sourceType": "provider"}],
        })
    assert not await engine.template_store.template_exists("bad")


@pytest.mark.asyncio
async def test_fill_unknown_template(engine):
    result = await engine.fill_template("nope", "forms/enrollment.pdf", {}, "out/x.pdf")
    assert not result.success
    assert "nope" in result.error


@pytest.mark.asyncio
async def test_roster_and_individual_modes(engine, roster_template, pdf_template):
    await engine.register_template(roster_template)

    document = await engine.fill_roster(
        "roster",
        "forms/roster.docx",
        [{"providerId": "p2", "position": 1}],
        output_path="out/roster.docx",
        office_id="o1",
        mailing_address_id="m1",
    )
    assert document.status == ProcessingStatus.COMPLETED, document.error
    assert document.mailing_address_id == "m1"

    batch = await engine.fill_individual(pdf_template, "forms/enrollment.pdf", ["p1", "p2"], output_dir="out")
    assert batch.status == BatchStatus.COMPLETED

    status = await engine.get_batch_status(batch.id)
    assert status["success"]
    assert status["batch"]["completed"] == 2

    assert (await engine.get_batch_status("missing"))["success"] is False


@pytest.mark.asyncio
async def test_batch_fill(engine):
    result = await engine.batch_fill([
        {
            "path": "forms/enrollment.pdf",
            "mappings": [{"documentFieldId": "ln", "sourceType": "provider", "sourcePath": "lastName"}],
            "data": {"provider": PROVIDERS[0]},
            "outputPath": "out/batch.pdf",
        },
        {"path": "forms/nothing.pdf", "mappings": [], "data": {}, "outputPath": "out/none.pdf"},
    ])
    assert result.success
    assert [r.success for r in result.results] == [True, False]
    assert result.to_dict()["success_count"] == 1


@pytest.mark.asyncio
async def test_fill_roster_failures_are_returned(engine, roster_template):
    await engine.register_template(roster_template)

    unknown_office = await engine.fill_roster(
        "roster", "forms/roster.docx", [{"providerId": "p1", "position": 1}], office_id="nope"
    )
    assert unknown_office.status == ProcessingStatus.ERROR
    assert "nope" in unknown_office.error

    no_position = await engine.fill_roster("roster", "forms/roster.docx", [{"providerId": "p1"}])
    assert no_position.status == ProcessingStatus.ERROR
    assert no_position.error

    unknown_template = await engine.fill_roster(
        "missing", "forms/roster.docx", [{"providerId": "p1", "position": 1}]
    )
    assert unknown_template.status == ProcessingStatus.ERROR
    assert "missing" in unknown_template.error


@pytest.mark.asyncio
async def test_fill_individual_failures_are_returned(engine, pdf_template):
    unknown_office = await engine.fill_individual(
        pdf_template, "forms/enrollment.pdf", ["p1"], office_ids=["nope"], output_dir="out"
    )
    assert unknown_office.status == BatchStatus.ERROR
    assert "nope" in unknown_office.error
    assert (await engine.get_batch_status(unknown_office.id))["batch"]["status"] == "error"

    unknown_template = await engine.fill_individual("missing", "forms/enrollment.pdf", ["p1"])
    assert unknown_template.status == BatchStatus.ERROR
    assert "missing" in unknown_template.error
