# Overview: Flask API route for reading the organization's audit trail.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_role
from ..services import audit_service


audit_bp = Blueprint("audit", __name__, url_prefix="/api/audit")


@audit_bp.get("")
@require_auth
@require_role("Admin", "ProcurementOfficer", "Approver")
def list_audit_route():
    entity = request.args.get("entity")
    case_id = request.args.get("caseId", type=int)
    limit = request.args.get("limit", 200, type=int)

    rows = audit_service.list_audit_logs(
        org_id=g.org_id,
        entity=entity,
        case_id=case_id,
        limit=limit,
    )
    return jsonify({"items": [r.to_dict() for r in rows], "count": len(rows)})
