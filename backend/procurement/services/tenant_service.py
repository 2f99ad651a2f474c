"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

WHY: Centralize tenant validation logic for reuse across services and routes.
Every request is scoped to an organization, and cross-tenant access must be
reported exactly like a missing record.

SECURITY INVARIANTS:
1. Every authenticated request has g.org_id set
2. Case and document IDs from client input are validated against g.org_id
3. Cross-tenant access attempts are logged with both organizations

USAGE:
    from procurement.services.tenant_service import require_case_in_org

    case = require_case_in_org(case_id, g.org_id)
"""

from flask import current_app

from ..extensions import db
from ..models import ProcurementCase, Document
from ..validation import NotFoundError


class TenantAccessError(NotFoundError):
    """Raised when cross-tenant access is attempted (surfaced as 404)."""
    pass


def _log_cross_tenant_attempt(kind: str, record_id: int, owner_org_id: int, org_id: int) -> None:
    current_app.logger.warning(
        "CROSS_TENANT_ACCESS_DENIED: %s %s belongs to org %s, requested by org %s",
        kind, record_id, owner_org_id, org_id,
    )


def require_case_in_org(case_id: int, org_id: int) -> ProcurementCase:
    """
    Validate that a case belongs to the specified organization.

    Raises:
        TenantAccessError if the case doesn't exist or belongs to another org
    """
    case = db.session.get(ProcurementCase, case_id)

    if not case:
        raise TenantAccessError("Case not found")

    if case.org_id != org_id:
        _log_cross_tenant_attempt("case", case_id, case.org_id, org_id)
        raise TenantAccessError("Case not found")  # Don't reveal it exists in another org

    return case


def require_document_in_org(document_id: int, org_id: int) -> Document:
    """Same contract as require_case_in_org, for generated documents."""
    doc = db.session.get(Document, document_id)

    if not doc:
        raise TenantAccessError("Document not found")

    if doc.org_id != org_id:
        _log_cross_tenant_attempt("document", document_id, doc.org_id, org_id)
        raise TenantAccessError("Document not found")

    return doc
