# Overview: Request identity and role decorators for API routes.

"""
Authentication is performed upstream: the gateway validates the JWT/cookie
and forwards the verified identity as headers. These decorators only read
that identity and enforce roles.

    X-Org-Id:    tenant (organization) id
    X-User-Id:   acting user id
    X-User-Role: Admin | ProcurementOfficer | Approver | Viewer
"""

from functools import wraps
from flask import current_app, request, jsonify, g


ROLES = ("Admin", "ProcurementOfficer", "Approver", "Viewer")

ORG_HEADER = "X-Org-Id"
USER_HEADER = "X-User-Id"
ROLE_HEADER = "X-User-Role"


def _int_header(name: str) -> int | None:
    raw = request.headers.get(name, "").strip()
    if not raw.isdigit():
        return None
    return int(raw)


def _is_authenticated() -> bool:
    return hasattr(g, 'user_id') and hasattr(g, 'org_id')


def get_request_meta() -> dict:
    """Client context stored on audit rows."""
    user_agent = request.headers.get("User-Agent")
    return {
        "ip": request.remote_addr,
        "user_agent": user_agent[:512] if user_agent else None,
    }


def require_auth(f):
    """
    Require an upstream-verified identity and establish tenant context.

    MULTI-TENANT: Sets the following Flask g attributes:
    - g.org_id: The organization ID (tenant context) - REQUIRED
    - g.user_id: The acting user's ID
    - g.role: The user's role within the organization

    SECURITY: Returns 401 if any identity header is missing or malformed.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        org_id = _int_header(ORG_HEADER)
        user_id = _int_header(USER_HEADER)
        role = request.headers.get(ROLE_HEADER, "").strip()

        if org_id is None or user_id is None:
            return jsonify({"error": "Authentication required"}), 401

        if role not in ROLES:
            current_app.logger.warning(
                "Rejected request with unknown role %r for user %s org %s on %s",
                role, user_id, org_id, request.path,
            )
            return jsonify({"error": "Invalid session: unknown role"}), 401

        g.org_id = org_id
        g.user_id = user_id
        g.role = role

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles):
    """
    Require any of the specified roles.

    MULTI-TENANT: Denials are logged with org and user for tenant-scoped auditing.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if g.role not in roles:
                current_app.logger.info(
                    "PERMISSION_DENIED user=%s org=%s role=%s resource=%s %s",
                    g.user_id, g.org_id, g.role, request.method, request.path,
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                    "message": f"Requires any of: {', '.join(roles)}"
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
