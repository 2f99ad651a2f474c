# Overview: Append-only audit trail for document pipeline mutations.

"""
Audit Invariants (authoritative)

- Append-only: rows are never updated or deleted.
- One row per mutating operation (allocation, generation, override, pack toggle).
- When both snapshots are present only the keys that differ are stored.
- Audit writes run in their own transaction AFTER the change they describe has
  committed. A failed audit write never undoes that change; callers log it as
  an anomaly (see record_best_effort).
"""

from __future__ import annotations

import json
from typing import Any, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import AuditLog


class AuditWriteError(Exception):
    """Raised when an audit row could not be persisted."""
    pass


def _to_json(value: Optional[dict]) -> Optional[dict]:
    if value is None:
        return None
    # Normalise dates/decimals the same way the API serialises them
    return json.loads(json.dumps(value, default=str))


def diff_snapshots(before: Optional[dict], after: Optional[dict]) -> tuple[Optional[dict], Optional[dict]]:
    """
    Reduce before/after to the keys whose values differ.

    If either side is missing the snapshots are returned unchanged.
    """
    if not before and not after:
        return None, None
    if not before or not after:
        return before, after

    before_diff: dict[str, Any] = {}
    after_diff: dict[str, Any] = {}
    for key in set(before) | set(after):
        b = before.get(key)
        a = after.get(key)
        if json.dumps(b, default=str, sort_keys=True) != json.dumps(a, default=str, sort_keys=True):
            before_diff[key] = b
            after_diff[key] = a
    return before_diff, after_diff


def record(
    *,
    org_id: int,
    action: str,
    entity: str,
    entity_id: int | str,
    user_id: int | None = None,
    case_id: int | None = None,
    before: Optional[dict] = None,
    after: Optional[dict] = None,
    reason: Optional[str] = None,
    request_meta: Optional[dict] = None,
    diff: bool = True,
) -> AuditLog:
    """
    Write and commit one audit row.

    diff=False stores both snapshots verbatim (used where the audit must show
    every tracked field, e.g. manual number overrides).

    Raises AuditWriteError (after rolling back) if the row cannot be stored.
    """
    meta = request_meta or {}
    if diff:
        before_diff, after_diff = diff_snapshots(_to_json(before), _to_json(after))
    else:
        before_diff, after_diff = _to_json(before), _to_json(after)

    entry = AuditLog(
        org_id=org_id,
        user_id=user_id,
        action=action,
        entity=entity,
        entity_id=str(entity_id),
        case_id=case_id,
        before=before_diff,
        after=after_diff,
        reason=reason,
        ip=meta.get("ip"),
        user_agent=meta.get("user_agent"),
    )
    try:
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise AuditWriteError(f"Failed to write {action} audit for {entity} {entity_id}") from exc
    return entry


def record_best_effort(**kwargs) -> AuditLog | None:
    """
    Record an audit row for a change that is already committed.

    The change stays committed if this fails; the failure is logged as an
    anomaly for operators instead of propagating.
    """
    try:
        return record(**kwargs)
    except AuditWriteError:
        current_app.logger.exception(
            "Audit anomaly: %s %s %s committed without audit row",
            kwargs.get("action"),
            kwargs.get("entity"),
            kwargs.get("entity_id"),
        )
        return None


def list_audit_logs(
    *,
    org_id: int,
    entity: str | None = None,
    case_id: int | None = None,
    limit: int = 200,
) -> list[AuditLog]:
    query = db.session.query(AuditLog).filter(AuditLog.org_id == org_id)
    if entity:
        query = query.filter(AuditLog.entity == entity)
    if case_id:
        query = query.filter(AuditLog.case_id == case_id)

    if limit < 1:
        limit = 1
    if limit > 1000:
        limit = 1000

    return query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()
