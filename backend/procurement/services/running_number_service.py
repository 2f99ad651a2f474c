# Overview: Running-number allocator; the only code allowed to touch document_running_numbers.

"""
Running Number Invariants (authoritative)

- Key: (org_id, fiscal_year, document_type).
- For a key, issued sequences are 1, 2, 3, ... with no repeats and no gaps.
- The increment is a server-side atomic UPDATE (sequence = sequence + 1),
  never a read-modify-write in Python. The UPDATE holds the row lock until
  commit, so concurrent allocators for one key serialize on it.
- Counter commit happens before the audit write. A failed audit write is an
  anomaly; the sequence is never given back or reused.
"""

from __future__ import annotations

from typing import Optional

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import DocumentRunningNumber
from ..models.audit import ACTION_CREATE, ACTION_UPDATE
from . import audit_service
from .concurrency import run_with_retry


AUDIT_ENTITY = "document-running-number"
MIN_SEQUENCE_WIDTH = 4


class RunningNumberError(Exception):
    """Raised when a running number request is malformed."""
    pass


class PersistenceConflictError(Exception):
    """
    Raised when the counter transaction could not be committed after retries.

    Nothing was persisted; the caller must retry the whole operation.
    """
    pass


def format_running_number(document_type: str, fiscal_year: int, sequence: int) -> str:
    """
    HIRE, 2567, 7 -> "HIRE-2567-0007".

    The width is a minimum: 12345 renders as "HIRE-2567-12345".
    """
    return f"{document_type}-{fiscal_year}-{sequence:0{MIN_SEQUENCE_WIDTH}d}"


def _increment_stmt(org_id: int, fiscal_year: int, document_type: str):
    return (
        update(DocumentRunningNumber)
        .where(
            DocumentRunningNumber.org_id == org_id,
            DocumentRunningNumber.fiscal_year == fiscal_year,
            DocumentRunningNumber.document_type == document_type,
        )
        .values(sequence=DocumentRunningNumber.sequence + 1)
        .execution_options(synchronize_session=False)
    )


def _load_counter(org_id: int, fiscal_year: int, document_type: str) -> DocumentRunningNumber:
    return (
        db.session.query(DocumentRunningNumber)
        .filter_by(org_id=org_id, fiscal_year=fiscal_year, document_type=document_type)
        .populate_existing()
        .one()
    )


def _allocate_once(org_id: int, fiscal_year: int, document_type: str) -> tuple[str, Optional[dict], dict]:
    """
    One allocation transaction. Returns (action, before, after) snapshots.

    Commits on success; leaves nothing behind on failure.
    """
    stmt = _increment_stmt(org_id, fiscal_year, document_type)

    result = db.session.execute(stmt)
    if result.rowcount:
        counter = _load_counter(org_id, fiscal_year, document_type)
        after = counter.to_dict()
        action = ACTION_UPDATE
    else:
        counter = DocumentRunningNumber(
            org_id=org_id,
            fiscal_year=fiscal_year,
            document_type=document_type,
            sequence=1,
        )
        db.session.add(counter)
        try:
            db.session.flush()
            after = counter.to_dict()
            action = ACTION_CREATE
        except IntegrityError:
            # Another allocator created the key first; fall back to the atomic increment
            db.session.rollback()
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            counter = _load_counter(org_id, fiscal_year, document_type)
            after = counter.to_dict()
            action = ACTION_UPDATE

    db.session.commit()

    if action == ACTION_CREATE:
        return action, None, after
    before = dict(after, sequence=after["sequence"] - 1)
    return action, before, after


def allocate(
    *,
    org_id: int,
    fiscal_year: int,
    document_type: str,
    actor_id: int | None = None,
    request_meta: Optional[dict] = None,
) -> str:
    """
    Atomically issue the next running number for (org, fiscal year, type).

    Exactly one audit row (CREATE on first use of a key, UPDATE afterwards)
    is written after the counter commits.

    Raises:
        RunningNumberError: missing key parts
        PersistenceConflictError: transaction could not commit (nothing persisted)
    """
    if not org_id:
        raise RunningNumberError("org_id is required")
    if not fiscal_year:
        raise RunningNumberError("fiscal_year is required")
    if not document_type:
        raise RunningNumberError("document_type is required")

    def _op():
        return _allocate_once(org_id, fiscal_year, document_type)

    try:
        action, before, after = run_with_retry(_op)
    except (OperationalError, StaleDataError, IntegrityError) as exc:
        db.session.rollback()
        current_app.logger.warning(
            "Running number allocation failed for org=%s year=%s type=%s: %s",
            org_id, fiscal_year, document_type, exc,
        )
        raise PersistenceConflictError(
            f"Could not allocate running number for {document_type}-{fiscal_year}; retry the request"
        ) from exc

    audit_service.record_best_effort(
        org_id=org_id,
        user_id=actor_id,
        action=action,
        entity=AUDIT_ENTITY,
        entity_id=after["id"],
        before=before,
        after=after,
        request_meta=request_meta,
    )

    return format_running_number(document_type, fiscal_year, after["sequence"])


def next_running_number(
    org_id: int,
    fiscal_year: int,
    document_type: str,
    user_id: int | None = None,
    request_meta: Optional[dict] = None,
) -> str:
    """Administrative entry point; same contract as allocate()."""
    return allocate(
        org_id=org_id,
        fiscal_year=fiscal_year,
        document_type=document_type,
        actor_id=user_id,
        request_meta=request_meta,
    )
