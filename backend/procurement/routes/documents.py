# Overview: Flask API routes for case documents; parses input and returns JSON responses.

"""
Case Document Routes

- Listing and downloading: every role
- Generating packs and overriding numbers: Admin, ProcurementOfficer
"""

import os

from flask import Blueprint, request, jsonify, g, current_app, send_file

from ..decorators import require_auth, require_role, get_request_meta
from ..services import document_service
from ..services.archive_service import ArchiveError
from ..services.conversion_client import ConversionError, KIND_TIMEOUT
from ..services.document_service import DocumentStorageError
from ..services.running_number_service import PersistenceConflictError
from ..services.template_filler import TemplateFillError
from ..validation import (
    ValidationError,
    InvalidStateError,
    NotFoundError,
    parse_generate_payload,
    parse_override_payload,
)


ALL_ROLES = ("Admin", "ProcurementOfficer", "Approver", "Viewer")
EDITOR_ROLES = ("Admin", "ProcurementOfficer")

documents_bp = Blueprint("documents", __name__, url_prefix="/api/cases/<int:case_id>/documents")
document_files_bp = Blueprint("document_files", __name__, url_prefix="/api/documents")


@documents_bp.get("")
@require_auth
@require_role(*ALL_ROLES)
def list_documents_route(case_id: int):
    try:
        docs = document_service.list_documents(g.org_id, case_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"items": [d.to_dict() for d in docs], "count": len(docs)})


@documents_bp.post("/generate")
@require_auth
@require_role(*EDITOR_ROLES)
def generate_route(case_id: int):
    """
    Generate a template pack for a case.

    Body: {packId, inputs: {key: value}, pdfMode?: "perSheet" | "singlePdf"}
    """
    try:
        payload = parse_generate_payload(request.get_json(silent=True))
        result = document_service.generate_pack(
            org_id=g.org_id,
            user_id=g.user_id,
            case_id=case_id,
            pack_id=payload.pack_id,
            inputs=payload.inputs,
            pdf_mode=payload.pdf_mode,
            request_meta=get_request_meta(),
        )
        return jsonify(result.to_dict()), 201

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (ValidationError, InvalidStateError) as e:
        return jsonify({"error": str(e)}), 400
    except PersistenceConflictError as e:
        return jsonify({"error": str(e), "retryable": True}), 409
    except ConversionError as e:
        status = 504 if e.kind == KIND_TIMEOUT else 502
        return jsonify(e.to_dict()), status
    except (TemplateFillError, DocumentStorageError, ArchiveError) as e:
        current_app.logger.exception("Document generation failed")
        return jsonify({"error": str(e)}), 500
    except Exception:
        current_app.logger.exception("Failed to generate documents")
        return jsonify({"error": "Internal server error"}), 500


@documents_bp.post("/override-number")
@require_auth
@require_role(*EDITOR_ROLES)
def override_number_route(case_id: int):
    """
    Manually override a document number (backdated cases only).

    Body: {documentId, number, reason, documentDate?}
    """
    try:
        payload = parse_override_payload(request.get_json(silent=True))
        doc = document_service.find_document(g.org_id, payload.document_id)
        if doc.case_id != case_id:
            return jsonify({"error": "Document not found"}), 404

        doc = document_service.override_number(
            org_id=g.org_id,
            user_id=g.user_id,
            document_id=payload.document_id,
            number=payload.number,
            reason=payload.reason,
            document_date=payload.document_date,
            request_meta=get_request_meta(),
        )
        return jsonify({"document": doc.to_dict()}), 200

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (ValidationError, InvalidStateError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to override document number")
        return jsonify({"error": "Internal server error"}), 500


def _send_document(doc, mimetype: str):
    if not os.path.isfile(doc.file_path):
        current_app.logger.error("Document %s file missing on disk: %s", doc.id, doc.file_path)
        return jsonify({"error": "Document file not found"}), 404
    return send_file(doc.file_path, mimetype=mimetype, as_attachment=True, download_name=doc.file_name)


@documents_bp.get("/download-zip")
@require_auth
@require_role(*ALL_ROLES)
def download_zip_route(case_id: int):
    try:
        doc = document_service.latest_zip(g.org_id, case_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return _send_document(doc, "application/zip")


@document_files_bp.get("/<int:doc_id>/download")
@require_auth
@require_role(*ALL_ROLES)
def download_document_route(doc_id: int):
    try:
        doc = document_service.find_document(g.org_id, doc_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    mimetype = "application/zip" if doc.file_type == "ZIP" else "application/pdf"
    return _send_document(doc, mimetype)
