# Overview: Document pack generation pipeline, manual number overrides and document lookups.

"""
Generation Pipeline (one request = one pass, no background queue)

    ValidatingCase -> ValidatingPack -> Filling -> Converting
        -> Allocating -> Persisting -> AuditingComplete

- Any failure stops the pass; nothing after the failing stage runs.
- No Document row exists unless Persisting committed; Persisting writes all
  rows of the event (N PDFs + 1 ZIP) in one transaction.
- Allocating runs exactly once per request and before Persisting. A failure
  after allocation leaves the counter advanced without documents; that
  number is never reissued.
- Conversion failures are terminal and are not retried here.
- The work directory DATA_ROOT/<org>/<case>/work is shared by every request
  for the case and is not locked.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date
from typing import Mapping, Optional

from flask import current_app

from ..extensions import db
from ..models import Document
from ..models.audit import ACTION_GENERATE, ACTION_OVERRIDE
from ..models.documents import FILE_TYPE_PDF, FILE_TYPE_ZIP
from ..time_utils import utcnow
from ..validation import InvalidStateError, NotFoundError, ValidationError
from . import archive_service, audit_service, running_number_service, template_filler, template_service
from .concurrency import lock_for_update, run_with_retry
from .conversion_client import ConversionClient, ConversionError
from .tenant_service import require_case_in_org, require_document_in_org


GENERATE_AUDIT_ENTITY = "document"


class DocumentStorageError(Exception):
    """Raised when the case's document directories cannot be prepared."""
    pass


@dataclass
class GenerationResult:
    running_number: str
    documents: list[Document] = field(default_factory=list)
    zip_document: Optional[Document] = None
    files: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "running_number": self.running_number,
            "documents": [d.to_dict() for d in self.documents],
            "zip": self.zip_document.to_dict() if self.zip_document else None,
            "files": list(self.files),
        }


def _case_dir(org_id: int, case_id: int, leaf: str) -> str:
    return os.path.join(current_app.config["DATA_ROOT"], str(org_id), str(case_id), leaf)


def _ensure_dir(path: str) -> str:
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as exc:
        raise DocumentStorageError(f"Cannot create directory {path}: {exc}") from exc
    return path


def generate_pack(
    *,
    org_id: int,
    user_id: int | None,
    case_id: int,
    pack_id: str,
    inputs: Mapping[str, str],
    pdf_mode: str | None = None,
    request_meta: Optional[dict] = None,
    converter: Optional[ConversionClient] = None,
) -> GenerationResult:
    """
    Generate pack_id for a case: fill, convert, number, persist, audit.

    Raises:
        NotFoundError: case (or pack) missing / other organization
        InvalidStateError: pack disabled for the organization
        TemplateFillError, DocumentStorageError: filesystem failures
        ConversionError: renderer timeout / error / malformed response
        PersistenceConflictError: running number could not be allocated
        ArchiveError: produced files vanished before archiving
    """
    # ValidatingCase
    case = require_case_in_org(case_id, org_id)
    fiscal_year = case.fiscal_year

    # ValidatingPack
    if not template_service.is_active(org_id, pack_id):
        raise InvalidStateError(f"Template pack {pack_id} is inactive")
    pack, template_path = template_service.resolve_pack(pack_id)
    mode = pdf_mode or pack.pdf_mode
    document_type = pack.effective_document_type

    # Filling
    work_dir = _ensure_dir(_case_dir(org_id, case_id, "work"))
    workbook_path = template_filler.fill(
        template_path,
        pack.input_cells,
        inputs,
        os.path.join(work_dir, template_filler.filled_workbook_name(template_path)),
    )

    # Converting
    output_dir = _ensure_dir(_case_dir(org_id, case_id, "documents"))
    converter = converter or ConversionClient.from_config()
    try:
        conversion = converter.convert(workbook_path, output_dir, pack.output_sheets, mode)
    except ConversionError as exc:
        current_app.logger.error(
            "Conversion failed org=%s case=%s pack=%s year=%s type=%s kind=%s status=%s: %s diagnostics=%s",
            org_id, case_id, pack_id, fiscal_year, document_type,
            exc.kind, exc.status_code, exc, exc.diagnostics,
        )
        raise

    # Allocating
    running_number = running_number_service.allocate(
        org_id=org_id,
        fiscal_year=fiscal_year,
        document_type=document_type,
        actor_id=user_id,
        request_meta=request_meta,
    )

    # Persisting
    archive_name = f"{pack.id}-{running_number}.zip"
    archive_path = archive_service.bundle(conversion.files, output_dir, archive_name)
    generated_at = utcnow()

    def _persist() -> tuple[list[Document], Document]:
        common = dict(
            org_id=org_id,
            case_id=case_id,
            template_pack_id=pack.id,
            document_type=document_type,
            running_number=running_number,
            document_date=generated_at.date(),
            generated_by_user_id=user_id,
            generated_at=generated_at,
        )
        pdfs = [
            Document(file_type=FILE_TYPE_PDF, file_name=os.path.basename(path), file_path=path, **common)
            for path in conversion.files
        ]
        archive = Document(file_type=FILE_TYPE_ZIP, file_name=archive_name, file_path=archive_path, **common)
        db.session.add_all(pdfs + [archive])
        db.session.commit()
        return pdfs, archive

    try:
        pdf_docs, zip_doc = run_with_retry(_persist)
    except Exception:
        db.session.rollback()
        current_app.logger.exception(
            "Persisting documents failed after allocating %s (org=%s case=%s); number left unused",
            running_number, org_id, case_id,
        )
        raise

    # AuditingComplete
    audit_service.record_best_effort(
        org_id=org_id,
        user_id=user_id,
        action=ACTION_GENERATE,
        entity=GENERATE_AUDIT_ENTITY,
        entity_id=case_id,
        case_id=case_id,
        after={
            "packId": pack.id,
            "files": list(conversion.files),
            "zip": archive_name,
            "runningNumber": running_number,
        },
        request_meta=request_meta,
    )

    return GenerationResult(
        running_number=running_number,
        documents=pdf_docs,
        zip_document=zip_doc,
        files=list(conversion.files),
    )


def _override_snapshot(doc: Document) -> dict:
    return {
        "manual_number": doc.manual_number,
        "document_date": doc.document_date.isoformat() if doc.document_date else None,
    }


def override_number(
    *,
    org_id: int,
    user_id: int | None,
    document_id: int,
    number: str,
    reason: str,
    document_date: date | None = None,
    request_meta: Optional[dict] = None,
) -> Document:
    """
    Manually override a document's number (and optionally its date).

    Allowed only for documents of backdated cases. The reason is mandatory
    and is stored on the OVERRIDE audit row with the full before/after of
    manual_number and document_date.
    """
    if not reason or not reason.strip():
        raise ValidationError("reason is required")
    if not number or not number.strip():
        raise ValidationError("number is required")

    doc = require_document_in_org(document_id, org_id)
    case = require_case_in_org(doc.case_id, org_id)
    if not case.is_backdated:
        raise InvalidStateError("override allowed only for backdated cases")

    def _op() -> tuple[Document, dict, dict]:
        locked = (
            lock_for_update(db.session.query(Document).filter_by(id=document_id))
            .populate_existing()
            .one()
        )
        before = _override_snapshot(locked)
        locked.manual_number = number.strip()
        if document_date is not None:
            locked.document_date = document_date
        after = _override_snapshot(locked)
        db.session.commit()
        return locked, before, after

    doc, before, after = run_with_retry(_op)

    audit_service.record_best_effort(
        org_id=org_id,
        user_id=user_id,
        action=ACTION_OVERRIDE,
        entity=GENERATE_AUDIT_ENTITY,
        entity_id=doc.id,
        case_id=doc.case_id,
        before=before,
        after=after,
        reason=reason.strip(),
        request_meta=request_meta,
        diff=False,
    )
    return doc


def list_documents(org_id: int, case_id: int) -> list[Document]:
    """All documents of a case, newest generation first."""
    require_case_in_org(case_id, org_id)
    return (
        db.session.query(Document)
        .filter(Document.org_id == org_id, Document.case_id == case_id)
        .order_by(Document.generated_at.desc(), Document.id.desc())
        .all()
    )


def find_document(org_id: int, document_id: int) -> Document:
    return require_document_in_org(document_id, org_id)


def latest_zip(org_id: int, case_id: int) -> Document:
    """Archive of the most recent generation event for a case."""
    require_case_in_org(case_id, org_id)
    doc = (
        db.session.query(Document)
        .filter(
            Document.org_id == org_id,
            Document.case_id == case_id,
            Document.file_type == FILE_TYPE_ZIP,
        )
        .order_by(Document.generated_at.desc(), Document.id.desc())
        .first()
    )
    if not doc:
        raise NotFoundError("No archive generated for this case")
    return doc
