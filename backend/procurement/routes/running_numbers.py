# Overview: Flask API route for administrative running-number allocation.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_role, get_request_meta
from ..services import running_number_service
from ..services.running_number_service import PersistenceConflictError
from ..validation import ValidationError, parse_running_number_payload


running_numbers_bp = Blueprint("running_numbers", __name__, url_prefix="/api/running-numbers")


@running_numbers_bp.post("/next")
@require_auth
@require_role("Admin")
def next_running_number_route():
    """
    Issue the next running number for the caller's organization.

    Body: {fiscalYear, documentType}
    """
    try:
        payload = parse_running_number_payload(request.get_json(silent=True))
        number = running_number_service.next_running_number(
            g.org_id,
            payload.fiscal_year,
            payload.document_type,
            user_id=g.user_id,
            request_meta=get_request_meta(),
        )
        return jsonify({"running_number": number}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except PersistenceConflictError as e:
        return jsonify({"error": str(e), "retryable": True}), 409
    except Exception:
        current_app.logger.exception("Failed to allocate running number")
        return jsonify({"error": "Internal server error"}), 500
