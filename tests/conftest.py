"""
Shared fixtures: small generated PDF, Word and Excel documents plus the
provider, office and mailing records they are filled from.
"""

import io

import pytest
from docx import Document
from openpyxl import Workbook
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from modules.document_fill.config import FillConfig
from modules.document_fill.models.template import Template
from modules.document_fill.storage.file_store import InMemoryFileStore
from modules.document_fill.storage.record_store import InMemoryRecordStore
from shared.contracts.records import MailingAddress, OfficeLocation, Provider

PROVIDERS = [
    {
        "id": "p1",
        "firstName": "John",
        "middleName": "Quincy",
        "lastName": "Smith",
        "npi": "1234567890",
        "licenseState": "California",
        "phone": "5551234567",
        "ssn": "123456789",
        "dateOfBirth": "1980-05-17",
        "specialties": ["Cardiology", "Internal Medicine"],
        "boardCertifications": [{"board": "ABIM", "specialty": "Cardiology"}],
    },
    {
        "id": "p2",
        "firstName": "Jane",
        "lastName": "Jones",
        "npi": "9876543210",
        "licenseState": "Nevada",
    },
]

OFFICE = {
    "id": "o1",
    "locationName": "Main Street Clinic",
    "addressLine1": "12 Main St",
    "city": "Reno",
    "state": "NV",
    "zipCode": "89501",
    "billingNPI": "1112223333",
}

MAILING = {
    "id": "m1",
    "addressLine1": "PO Box 12",
    "city": "Reno",
    "state": "NV",
    "zipCode": "89501",
}

# Bytes with a valid OLE2 header and nothing readable behind it
FAKE_OLE2 = bytes.fromhex("D0CF11E0A1B11AE1") + b"\x00" * 1016


# ==============================================================================
# DOCUMENT BUILDERS
# ==============================================================================

def build_pdf() -> bytes:
    """One page AcroForm with text, checkbox and radio fields."""
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=letter)
    c.drawString(72, 740, "Provider Enrollment")

    form = c.acroForm
    form.textfield(name="fn", x=72, y=700, width=200, height=18)
    form.textfield(name="ln", x=300, y=700, width=200, height=18)
    form.textfield(name="npi", x=72, y=660, width=200, height=18, fieldFlags="required")
    form.checkbox(name="active", x=72, y=620, buttonStyle="check", checked=False)
    form.radio(name="gender", value="M", selected=False, x=72, y=580)
    form.radio(name="gender", value="F", selected=False, x=110, y=580)

    c.showPage()
    c.save()
    return buffer.getvalue()


def build_docx() -> bytes:
    doc = Document()
    doc.add_paragraph("Provider: {{provider_last_name}}")
    doc.add_paragraph("NPI: {{npi}}")
    doc.add_paragraph("Accepting patients {{☐accepting}}")
    doc.add_paragraph("Unmapped: {{notes}}")
    table = doc.add_table(rows=1, cols=2)
    table.cell(0, 0).text = "Office"
    table.cell(0, 1).text = "{{office_name}}"

    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


def build_roster_docx() -> bytes:
    doc = Document()
    doc.add_paragraph("First: {{slot1}}")
    doc.add_paragraph("Second: {{slot2}}")
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


def build_xlsx() -> bytes:
    """Roster sheet with headers and a formula in C2, plus an Info sheet."""
    workbook = Workbook()
    roster = workbook.active
    roster.title = "Roster"
    roster["A1"] = "Last Name"
    roster["B1"] = "NPI"
    roster["C1"] = "Check"
    roster["C2"] = "=1+1"

    info = workbook.create_sheet("Info")
    info["A3"] = "Office"

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def build_blank_xlsx() -> bytes:
    buffer = io.BytesIO()
    Workbook().save(buffer)
    return buffer.getvalue()


# ==============================================================================
# FIXTURES
# ==============================================================================

@pytest.fixture
def pdf_bytes() -> bytes:
    return build_pdf()


@pytest.fixture
def docx_bytes() -> bytes:
    return build_docx()


@pytest.fixture
def roster_docx_bytes() -> bytes:
    return build_roster_docx()


@pytest.fixture
def xlsx_bytes() -> bytes:
    return build_xlsx()


@pytest.fixture
def providers():
    return [Provider.model_validate(p) for p in PROVIDERS]


@pytest.fixture
def provider(providers):
    return providers[0]


@pytest.fixture
def office():
    return OfficeLocation.model_validate(OFFICE)


@pytest.fixture
def mailing():
    return MailingAddress.model_validate(MAILING)


@pytest.fixture
def record_store():
    return InMemoryRecordStore(providers=PROVIDERS, offices=[OFFICE], mailing_addresses=[MAILING])


@pytest.fixture
def file_store(pdf_bytes, docx_bytes, roster_docx_bytes, xlsx_bytes):
    return InMemoryFileStore({
        "forms/enrollment.pdf": pdf_bytes,
        "forms/welcome.docx": docx_bytes,
        "forms/roster.docx": roster_docx_bytes,
        "forms/roster.xlsx": xlsx_bytes,
        "forms/legacy.doc": FAKE_OLE2,
    })


@pytest.fixture
def fill_config(tmp_path):
    return FillConfig(project_root=tmp_path, output_dir=tmp_path / "out")


@pytest.fixture
def pdf_template():
    return Template.model_validate({
        "id": "enrollment",
        "name": "Enrollment",
        "documentType": "pdf",
        "mappings": [
            {"documentFieldId": "fn", "sourceType": "provider", "sourcePath": "firstName"},
            {"documentFieldId": "ln", "sourceType": "provider", "sourcePath": "lastName"},
            {"documentFieldId": "npi", "sourceType": "provider", "sourcePath": "npi", "isRequired": True},
        ],
    })


@pytest.fixture
def roster_template():
    return Template.model_validate({
        "id": "roster",
        "name": "Roster",
        "documentType": "docx",
        "mappings": [
            {"documentFieldId": "slot1", "sourceType": "provider-slot", "providerSlot": 1, "slotField": "lastName"},
            {"documentFieldId": "slot2", "sourceType": "provider-slot", "providerSlot": 2, "slotField": "lastName"},
        ],
    })
