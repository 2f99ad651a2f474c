from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from procurement.time_utils import parse_iso_date


PDF_MODES = ("perSheet", "singlePdf")

# Running numbers and manual overrides share the documents.running_number width
MAX_NUMBER_LENGTH = 64


class ValidationError(ValueError):
    """400-level input problem."""


class InvalidStateError(ValueError):
    """400-level precondition failure (inactive pack, non-backdated override)."""


class NotFoundError(LookupError):
    """404-level: record missing or owned by another organization."""


@dataclass(frozen=True)
class GeneratePayload:
    pack_id: str
    inputs: dict[str, str] = field(default_factory=dict)
    pdf_mode: str | None = None


@dataclass(frozen=True)
class OverridePayload:
    document_id: int
    number: str
    reason: str
    document_date: date | None = None


@dataclass(frozen=True)
class RunningNumberPayload:
    fiscal_year: int
    document_type: str


def _require_dict(payload: Any) -> dict:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def _coerce_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped or not stripped.lstrip("-").isdigit():
            raise ValidationError(f"{key} must be an integer")
        return int(stripped)
    raise ValidationError(f"{key} must be an integer")


def _coerce_text(key: str, value: Any, *, required: bool = True, max_length: int | None = None) -> str | None:
    if value is None:
        if required:
            raise ValidationError(f"{key} is required")
        return None
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        raise ValidationError(f"{key} must be a string")
    text = str(value).strip()
    if required and not text:
        raise ValidationError(f"{key} cannot be blank")
    if max_length and len(text) > max_length:
        raise ValidationError(f"{key} exceeds max length {max_length}")
    return text


def parse_generate_payload(payload: Any) -> GeneratePayload:
    """
    Validate a generation request body: {packId, inputs, pdfMode?}.

    Input values are stringified; cells receive text exactly as typed.
    """
    data = _require_dict(payload)
    pack_id = _coerce_text("packId", data.get("packId"), max_length=128)

    raw_inputs = data.get("inputs") or {}
    if not isinstance(raw_inputs, dict):
        raise ValidationError("inputs must be an object")
    inputs: dict[str, str] = {}
    for key, value in raw_inputs.items():
        inputs[str(key)] = "" if value is None else str(value)

    pdf_mode = data.get("pdfMode")
    if pdf_mode is not None and pdf_mode not in PDF_MODES:
        raise ValidationError(f"pdfMode must be one of: {', '.join(PDF_MODES)}")

    return GeneratePayload(pack_id=pack_id, inputs=inputs, pdf_mode=pdf_mode)


def parse_override_payload(payload: Any) -> OverridePayload:
    """Validate {documentId, number, reason, documentDate?}. Reason is mandatory."""
    data = _require_dict(payload)
    document_id = _coerce_int("documentId", data.get("documentId"))
    number = _coerce_text("number", data.get("number"), max_length=MAX_NUMBER_LENGTH)
    reason = _coerce_text("reason", data.get("reason"))

    raw_date = data.get("documentDate")
    document_date = None
    if raw_date not in (None, ""):
        if not isinstance(raw_date, str):
            raise ValidationError("documentDate must be an ISO-8601 date")
        try:
            document_date = parse_iso_date(raw_date)
        except ValueError:
            raise ValidationError("documentDate must be an ISO-8601 date")

    return OverridePayload(
        document_id=document_id,
        number=number,
        reason=reason,
        document_date=document_date,
    )


def parse_running_number_payload(payload: Any) -> RunningNumberPayload:
    data = _require_dict(payload)
    fiscal_year = _coerce_int("fiscalYear", data.get("fiscalYear"))
    if fiscal_year <= 0:
        raise ValidationError("fiscalYear must be > 0")
    document_type = _coerce_text("documentType", data.get("documentType"), max_length=32).upper()
    return RunningNumberPayload(fiscal_year=fiscal_year, document_type=document_type)


def parse_pack_toggle_payload(payload: Any) -> bool:
    data = _require_dict(payload)
    is_active = data.get("isActive")
    if not isinstance(is_active, bool):
        raise ValidationError("isActive must be a boolean")
    return is_active
