# Overview: Flask API routes for template packs; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_role, get_request_meta
from ..services import template_service
from ..validation import ValidationError, NotFoundError, parse_pack_toggle_payload


templates_bp = Blueprint("templates", __name__, url_prefix="/api/templates")


@templates_bp.get("")
@require_auth
@require_role("Admin", "ProcurementOfficer", "Approver", "Viewer")
def list_templates_route():
    try:
        packs = template_service.list_packs(g.org_id)
    except Exception:
        current_app.logger.exception("Failed to list template packs")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"items": packs, "count": len(packs)})


@templates_bp.patch("/<pack_id>")
@require_auth
@require_role("Admin")
def toggle_template_route(pack_id: str):
    """
    Enable or disable a pack for the caller's organization.

    Body: {isActive: bool}
    """
    try:
        is_active = parse_pack_toggle_payload(request.get_json(silent=True))
        setting = template_service.set_pack_active(
            org_id=g.org_id,
            user_id=g.user_id,
            pack_id=pack_id,
            is_active=is_active,
            request_meta=get_request_meta(),
        )
        return jsonify({"template_pack": setting.to_dict()}), 200

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update template pack")
        return jsonify({"error": "Internal server error"}), 500
