"""
Pytest fixtures for procurement backend tests.

Provides test database setup, tenant isolation fixtures, an on-disk template
registry built with openpyxl, a fake converter, and a test client.
"""

import json
import os

import pytest
from openpyxl import Workbook

from procurement import create_app
from procurement.extensions import db
from procurement.models import Organization, ProcurementCase
from procurement.services.conversion_client import ConversionClient, ConversionError, ConversionResult


PACK_ID = "hire_general"
SHEETS = ["Request", "Approval"]


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    root = tmp_path_factory.mktemp("procurement")
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DATA_ROOT': str(root / "data"),
        'TEMPLATES_DIR': str(root / "templates"),
        'CONVERTER_URL': 'http://converter.test',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def org_a(db_session):
    """Create Organization A (first tenant)."""
    org = Organization(name="Org A - Ban Nong School", code="BNS", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    """Create Organization B (second tenant)."""
    org = Organization(name="Org B - Wat Pho School", code="WPS", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


def make_case(db_session, org, *, case_type="HIRE", fiscal_year=2567, backdated=False):
    case = ProcurementCase(
        org_id=org.id,
        title=f"{case_type} case",
        case_type=case_type,
        fiscal_year=fiscal_year,
        is_backdated=backdated,
        backdate_reason="Work done before approval" if backdated else None,
    )
    db_session.add(case)
    db_session.commit()
    return case


@pytest.fixture(scope='function')
def case_a(db_session, org_a):
    """HIRE case in Organization A, fiscal year 2567."""
    return make_case(db_session, org_a)


@pytest.fixture(scope='function')
def backdated_case_a(db_session, org_a):
    """Backdated HIRE case in Organization A."""
    return make_case(db_session, org_a, backdated=True)


@pytest.fixture(scope='function')
def case_b(db_session, org_b):
    """HIRE case in Organization B, fiscal year 2567."""
    return make_case(db_session, org_b)


def write_template(path, sheets=SHEETS):
    wb = Workbook()
    wb.active.title = sheets[0]
    for name in sheets[1:]:
        wb.create_sheet(name)
    wb[sheets[0]]["A1"] = "header"
    wb.save(path)
    wb.close()
    return str(path)


def write_pack(templates_dir, pack_id=PACK_ID, *, pdf_mode="perSheet", document_type=None, **overrides):
    """Create TEMPLATES_DIR/<pack_id>/{pack.json,template.xlsx}."""
    pack_dir = os.path.join(str(templates_dir), pack_id)
    os.makedirs(pack_dir, exist_ok=True)
    write_template(os.path.join(pack_dir, "template.xlsx"))

    definition = {
        "id": pack_id,
        "name_th": "ชุดเอกสารจ้าง",
        "caseType": "HIRE",
        "template": "template.xlsx",
        "inputCells": [
            {"key": "title", "sheet": "Request", "cell": "B2"},
            {"key": "amount", "sheet": "Approval", "cell": "C5"},
            {"key": "note", "sheet": "Missing", "cell": "A1"},
        ],
        "outputSheets": list(SHEETS),
        "pdfMode": pdf_mode,
    }
    if document_type:
        definition["documentType"] = document_type
    definition.update(overrides)

    with open(os.path.join(pack_dir, "pack.json"), "w", encoding="utf-8") as fh:
        json.dump(definition, fh, ensure_ascii=False)
    return pack_dir


@pytest.fixture(scope='function')
def registry(app, tmp_path, monkeypatch):
    """Fresh template registry and storage root for one test."""
    templates_dir = tmp_path / "templates"
    data_root = tmp_path / "data"
    templates_dir.mkdir()
    monkeypatch.setitem(app.config, "TEMPLATES_DIR", str(templates_dir))
    monkeypatch.setitem(app.config, "DATA_ROOT", str(data_root))
    write_pack(templates_dir)
    return templates_dir


class FakeConverter:
    """Stands in for the converter service by writing placeholder PDFs."""

    def __init__(self, error: ConversionError | None = None):
        self.error = error
        self.calls = []

    def convert(self, workbook_path, output_dir, output_sheets, pdf_mode, deadline=None):
        self.calls.append({
            "workbook_path": workbook_path,
            "output_dir": output_dir,
            "sheets": list(output_sheets),
            "mode": pdf_mode,
        })
        if self.error:
            raise self.error

        os.makedirs(output_dir, exist_ok=True)
        if pdf_mode == "singlePdf":
            names = [os.path.splitext(os.path.basename(workbook_path))[0]]
        else:
            names = list(output_sheets)

        files = []
        for name in names:
            path = os.path.join(output_dir, f"{name}.pdf")
            with open(path, "wb") as fh:
                fh.write(b"%PDF-1.4 placeholder")
            files.append(path)
        return ConversionResult(files=files, logs={})


@pytest.fixture(scope='function')
def fake_converter(monkeypatch):
    """Route generation requests through a FakeConverter."""
    converter = FakeConverter()
    monkeypatch.setattr(ConversionClient, "from_config", classmethod(lambda cls: converter))
    return converter


def auth_headers(org, user_id: int = 1, role: str = "Admin") -> dict:
    """Identity headers as forwarded by the upstream gateway."""
    return {
        'X-Org-Id': str(org.id),
        'X-User-Id': str(user_id),
        'X-User-Role': role,
    }
