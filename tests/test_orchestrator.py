"""
Tests for roster, individual and batch orchestration.
"""

import io
from datetime import date, datetime, timedelta, timezone

import pytest
from docx import Document

from modules.document_fill.config import FillConfig
from modules.document_fill.models.jobs import BatchJob, BatchStatus, FillJob, ProcessingStatus, RosterEntry
from modules.document_fill.models.template import FieldMapping
from modules.document_fill.orchestrator import (
    STOPPED_MESSAGE,
    FillOrchestrator,
    normalize_roster,
    render_file_name,
    sanitize_file_name,
)
from modules.document_fill.storage.file_store import InMemoryFileStore
from modules.document_fill.storage.job_storage import InMemoryJobStorage
from shared.contracts.records import Provider
from shared.utils.logger import setup_logger

from conftest import PROVIDERS

logger = setup_logger(__name__)

LAST_NAME = [{"documentFieldId": "ln", "sourceType": "provider", "sourcePath": "lastName"}]


@pytest.fixture
def orchestrator(fill_config, record_store, file_store):
    return FillOrchestrator(
        config=fill_config,
        job_storage=InMemoryJobStorage(),
        record_store=record_store,
        file_store=file_store,
    )


def pdf_job(output_path, path="forms/enrollment.pdf", mappings=None):
    return {
        "path": path,
        "mappings": LAST_NAME if mappings is None else mappings,
        "data": {"provider": PROVIDERS[0]},
        "outputPath": output_path,
    }


def docx_text(data: bytes) -> str:
    return "\n".join(p.text for p in Document(io.BytesIO(data)).paragraphs)


# ==============================================================================
# ROSTER NORMALIZATION
# ==============================================================================

def test_normalize_roster_orders_and_renumbers():
    roster = normalize_roster([
        {"providerId": "a", "position": 3},
        {"providerId": "b", "position": 1},
        {"providerId": "c", "position": 1},
    ])
    assert [(e.provider_id, e.position) for e in roster] == [("b", 1), ("c", 2), ("a", 3)]


def test_normalize_roster_is_idempotent():
    once = normalize_roster([RosterEntry(provider_id="x", position=7), RosterEntry(provider_id="y", position=2)])
    assert normalize_roster(once) == once
    assert [e.position for e in once] == [1, 2]


def test_normalize_roster_drops_duplicate_providers():
    roster = normalize_roster([
        {"providerId": "a", "position": 2},
        {"providerId": "a", "position": 1},
        {"providerId": "b", "position": 5},
    ])
    assert [(e.provider_id, e.position) for e in roster] == [("a", 1), ("b", 2)]
    assert normalize_roster([]) == ()


# ==============================================================================
# FILE NAMES
# ==============================================================================

def test_render_file_name(provider, office):
    name = render_file_name(
        "{documentName}_{provider.lastName}_{date}", "Enrollment Form", provider=provider,
        on_date=date(2024, 1, 2),
    )
    assert name == "Enrollment_Form_Smith_2024-01-02"

    with_office = render_file_name("{provider.firstName} {office.locationName}", "x", provider, office)
    assert with_office == "John_Main_Street_Clinic"


def test_render_file_name_fallbacks(office):
    nameless = Provider(id="p9")
    assert render_file_name("{provider.lastName}", "doc", provider=nameless) == "Provider"
    assert render_file_name("{documentName}-{provider.lastName}", "doc") == "doc-"
    assert render_file_name("{documentName}{office.fax}", "doc", office=office) == "doc"


def test_sanitize_file_name():
    assert sanitize_file_name("  O'Brien / Smith: Form  ") == "OBrien__Smith_Form"
    assert sanitize_file_name("???") == "document"
    assert sanitize_file_name("report.v2-final") == "report.v2-final"


# ==============================================================================
# SINGLE FILLS
# ==============================================================================

@pytest.mark.asyncio
async def test_fill_single_checks_document_type(orchestrator, roster_template, provider):
    result = await orchestrator.fill_single(
        "forms/enrollment.pdf", roster_template, {"provider": provider}, "out/x.pdf"
    )
    assert not result.success
    assert "targets docx" in result.error


@pytest.mark.asyncio
async def test_fill_single_checks_document_hash(fill_config, record_store, file_store, pdf_template, provider):
    stale = pdf_template.model_copy(update={"document_hash": "deadbeef"})

    orchestrator = FillOrchestrator(config=fill_config, record_store=record_store, file_store=file_store)
    result = await orchestrator.fill_single("forms/enrollment.pdf", stale, {"provider": provider}, "out/x.pdf")
    assert not result.success
    assert "changed since" in result.error

    relaxed = FillConfig(project_root=fill_config.project_root, check_document_hash=False)
    orchestrator = FillOrchestrator(config=relaxed, record_store=record_store, file_store=file_store)
    result = await orchestrator.fill_single("forms/enrollment.pdf", stale, {"provider": provider}, "out/x.pdf")
    assert result.success, result.error


@pytest.mark.asyncio
async def test_fill_single_missing_source(orchestrator, pdf_template, provider):
    result = await orchestrator.fill_single("forms/none.pdf", pdf_template, {"provider": provider}, "out/x.pdf")
    assert not result.success
    assert "not found" in result.error


# ==============================================================================
# ROSTER MODE
# ==============================================================================

@pytest.mark.asyncio
async def test_fill_roster_uses_slot_order(orchestrator, file_store, roster_template):
    document = await orchestrator.fill_roster(
        "forms/roster.docx",
        roster_template,
        [{"providerId": "p1", "position": 2}, {"providerId": "p2", "position": 1}],
        output_path="out/roster.docx",
    )

    assert document.status == ProcessingStatus.COMPLETED, document.error
    assert document.processed_at is not None
    text = docx_text(await file_store.read_bytes("out/roster.docx"))
    assert "First: Jones" in text
    assert "Second: Smith" in text


@pytest.mark.asyncio
async def test_fill_roster_default_output_name(orchestrator, fill_config, roster_template, office):
    document = await orchestrator.fill_roster(
        "forms/roster.docx", roster_template, [{"providerId": "p1", "position": 1}], office=office,
    )

    assert document.status == ProcessingStatus.COMPLETED
    assert document.office_id == "o1"
    assert document.output_path.startswith(str(fill_config.output_dir))
    assert "roster_Roster_" in document.output_path
    assert document.output_path.endswith(".docx")


@pytest.mark.asyncio
async def test_fill_roster_unknown_provider(orchestrator, roster_template):
    document = await orchestrator.fill_roster(
        "forms/roster.docx", roster_template, [{"providerId": "ghost", "position": 1}], output_path="out/r.docx",
    )
    assert document.status == ProcessingStatus.ERROR
    assert "ghost" in document.error


# ==============================================================================
# INDIVIDUAL MODE
# ==============================================================================

@pytest.mark.asyncio
async def test_fill_individual_one_document_per_provider_and_office(orchestrator, file_store, pdf_template):
    batch = await orchestrator.fill_individual(
        "forms/enrollment.pdf",
        pdf_template,
        ["p1", "ghost", "p2"],
        office_ids=["o1"],
        output_dir="out",
        file_name_pattern="{documentName}_{provider.lastName}_{office.locationName}",
    )

    assert batch.total == 3
    assert batch.completed_count == 2
    assert batch.error_count == 1
    assert batch.status == BatchStatus.ERROR

    failed = batch.documents[0]
    assert failed.provider_id == "ghost"
    assert "ghost" in failed.error

    outputs = [d.output_path for d in batch.documents[1:]]
    assert outputs == ["out/enrollment_Smith_Main_Street_Clinic.pdf", "out/enrollment_Jones_Main_Street_Clinic.pdf"]
    for path in outputs:
        assert await file_store.exists(path)
    assert batch.documents[1].office_id == "o1"


@pytest.mark.asyncio
async def test_fill_individual_unknown_office_fails_batch(orchestrator, pdf_template):
    batch = await orchestrator.fill_individual(
        "forms/enrollment.pdf", pdf_template, ["p1"], office_ids=["nowhere"], output_dir="out",
    )

    assert batch.status == BatchStatus.ERROR
    assert "nowhere" in batch.error
    assert batch.total == 0
    status = await orchestrator.get_batch_status(batch.id)
    assert status["error"] == batch.error


def test_colliding_output_names_get_suffix(orchestrator, pdf_template, provider):
    twin = Provider(id="p3", first_name="Sam", last_name="Smith")
    jobs = orchestrator.build_individual_jobs(
        "forms/enrollment.pdf", pdf_template, [provider, twin, provider],
        output_dir="out", file_name_pattern="{provider.lastName}",
    )
    assert [job.output_path for job in jobs] == ["out/Smith.pdf", "out/Smith_2.pdf", "out/Smith_3.pdf"]
    assert [job.provider_id for job in jobs] == ["p1", "p3", "p1"]


# ==============================================================================
# BATCHES
# ==============================================================================

@pytest.mark.asyncio
async def test_batch_failure_is_isolated(orchestrator, file_store):
    result = await orchestrator.run_batch([
        pdf_job("out/1.pdf"),
        pdf_job("out/2.pdf", path="forms/missing.pdf"),
        pdf_job("out/3.pdf", mappings=[{"documentFieldId": "ln"}]),
        pdf_job("out/4.pdf"),
    ], name="nightly")

    assert result.success
    assert [r.success for r in result.results] == [True, False, False, True]
    assert result.success_count == 2
    assert result.total_count == 4
    assert result.results[2].error.startswith("Invalid job")
    assert await file_store.exists("out/4.pdf")

    status = await orchestrator.get_batch_status(result.batch_id)
    assert status["name"] == "nightly"
    assert status["total"] == 3
    assert status["completed"] == 2
    assert status["status"] == "error"


@pytest.mark.asyncio
async def test_batch_all_succeed(orchestrator):
    jobs = [FillJob.from_dict(pdf_job(f"out/{i}.pdf")) for i in range(3)]
    result = await orchestrator.run_batch(jobs)

    assert result.success_count == 3
    status = await orchestrator.get_batch_status(result.batch_id)
    assert status["status"] == "completed"
    assert status["progress"] == 1.0


@pytest.mark.asyncio
async def test_stop_lets_current_job_finish(fill_config, record_store, pdf_bytes):
    class StoppingFileStore(InMemoryFileStore):
        on_read = None

        async def read_bytes(self, path):
            if self.on_read is not None:
                self.on_read()
            return await super().read_bytes(path)

    store = StoppingFileStore({"forms/enrollment.pdf": pdf_bytes})
    orchestrator = FillOrchestrator(config=fill_config, record_store=record_store, file_store=store)
    store.on_read = orchestrator.request_stop

    result = await orchestrator.run_batch([pdf_job(f"out/{i}.pdf") for i in range(3)])

    assert [r.success for r in result.results] == [True, False, False]
    assert result.results[1].error == STOPPED_MESSAGE
    status = await orchestrator.get_batch_status(result.batch_id)
    assert [d["status"] for d in status["documents"]] == ["completed", "error", "error"]


@pytest.mark.asyncio
async def test_stop_on_first_error(record_store, file_store, tmp_path):
    config = FillConfig(project_root=tmp_path, stop_on_first_error=True)
    orchestrator = FillOrchestrator(config=config, record_store=record_store, file_store=file_store)

    result = await orchestrator.run_batch([
        pdf_job("out/1.pdf", path="forms/missing.pdf"),
        pdf_job("out/2.pdf"),
    ])
    assert [r.success for r in result.results] == [False, False]
    assert result.results[1].error == STOPPED_MESSAGE


@pytest.mark.asyncio
async def test_empty_batch(orchestrator):
    result = await orchestrator.run_batch([])
    assert result.success
    assert result.total_count == 0
    status = await orchestrator.get_batch_status(result.batch_id)
    assert status["status"] == "completed"
    assert status["progress"] == 0.0


@pytest.mark.asyncio
async def test_finished_batches_expire_after_retention(record_store, file_store, tmp_path):
    storage = InMemoryJobStorage()
    config = FillConfig(project_root=tmp_path, job_retention_seconds=3600)
    orchestrator = FillOrchestrator(config=config, job_storage=storage, record_store=record_store, file_store=file_store)

    expired = BatchJob(name="expired", created_at=datetime.now(timezone.utc) - timedelta(hours=2))
    expired.finish()
    await storage.save_batch(expired)

    result = await orchestrator.run_batch([pdf_job("out/1.pdf")])

    assert await orchestrator.get_batch_status(expired.id) is None
    assert (await orchestrator.get_batch_status(result.batch_id))["status"] == "completed"


@pytest.mark.asyncio
async def test_unknown_batch_status(orchestrator):
    assert await orchestrator.get_batch_status("missing") is None
