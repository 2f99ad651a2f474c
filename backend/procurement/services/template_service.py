# Overview: Template pack registry lookups and per-organization activation flags.

"""
Template Pack Registry

Packs are declared on disk, outside the database:

    TEMPLATES_DIR/
        hire_general/
            pack.json        # mapping definition (see TemplatePack)
            template.xlsm    # spreadsheet template the mapping targets

pack.json keys: id, name_th, caseType, subtype?, documentType?, template?,
inputCells [{key, sheet, cell}], outputSheets [..], pdfMode.

Activation is organization-scoped. A pack is active unless an administrator
stored an override row with is_active = False for that organization.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Optional

from flask import current_app

from ..extensions import db
from ..models import TemplatePackSetting
from ..models.audit import ACTION_CREATE, ACTION_UPDATE
from ..validation import NotFoundError, ValidationError, PDF_MODES
from . import audit_service


PACK_FILE = "pack.json"
DEFAULT_TEMPLATE_FILE = "template.xlsm"
AUDIT_ENTITY = "template-pack"


@dataclass(frozen=True)
class InputCell:
    key: str
    sheet: str
    cell: str


@dataclass(frozen=True)
class TemplatePack:
    id: str
    name: str
    case_type: str
    input_cells: tuple[InputCell, ...] = ()
    output_sheets: tuple[str, ...] = ()
    pdf_mode: str = "perSheet"
    subtype: Optional[str] = None
    document_type: Optional[str] = None
    template_file: str = DEFAULT_TEMPLATE_FILE

    @property
    def effective_document_type(self) -> str:
        """Running-number series for this pack; defaults to its case type."""
        return self.document_type or self.case_type

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name_th": self.name,
            "caseType": self.case_type,
            "subtype": self.subtype,
            "documentType": self.effective_document_type,
            "inputCells": [
                {"key": c.key, "sheet": c.sheet, "cell": c.cell} for c in self.input_cells
            ],
            "outputSheets": list(self.output_sheets),
            "pdfMode": self.pdf_mode,
        }


def _templates_dir() -> str:
    return current_app.config["TEMPLATES_DIR"]


def _pack_dir(pack_id: str) -> str:
    # Pack ids are single directory names; never let them walk the filesystem
    if not pack_id or pack_id in (".", "..") or os.sep in pack_id or "/" in pack_id:
        raise NotFoundError(f"Template pack {pack_id!r} not found")
    return os.path.join(_templates_dir(), pack_id)


def _parse_pack(pack_id: str, raw: dict) -> TemplatePack:
    try:
        cells = tuple(
            InputCell(key=str(c["key"]), sheet=str(c["sheet"]), cell=str(c["cell"]))
            for c in raw.get("inputCells", [])
        )
        declared_id = raw.get("id")
        if declared_id is not None and declared_id != pack_id:
            raise ValidationError(f"Template pack {pack_id!r} declares mismatched id {declared_id!r}")
        pdf_mode = raw.get("pdfMode", "perSheet")
        if pdf_mode not in PDF_MODES:
            raise ValidationError(f"pdfMode must be one of: {', '.join(PDF_MODES)}")
        return TemplatePack(
            id=pack_id,
            name=raw.get("name_th") or raw.get("name") or pack_id,
            case_type=raw["caseType"],
            subtype=raw.get("subtype"),
            document_type=raw.get("documentType"),
            template_file=raw.get("template") or DEFAULT_TEMPLATE_FILE,
            input_cells=cells,
            output_sheets=tuple(str(s) for s in raw.get("outputSheets", [])),
            pdf_mode=pdf_mode,
        )
    except (KeyError, TypeError) as exc:
        raise ValidationError(f"Template pack {pack_id!r} has an invalid definition: {exc}") from exc


def load_pack(pack_id: str) -> TemplatePack:
    """
    Load the declarative mapping for pack_id from the registry.

    Raises NotFoundError if the pack is unknown.
    """
    pack_path = os.path.join(_pack_dir(pack_id), PACK_FILE)
    if not os.path.isfile(pack_path):
        raise NotFoundError(f"Template pack {pack_id!r} not found")

    with open(pack_path, encoding="utf-8") as fh:
        try:
            raw = json.load(fh)
        except json.JSONDecodeError as exc:
            raise ValidationError(f"Template pack {pack_id!r} has an invalid definition: {exc}") from exc
    return _parse_pack(pack_id, raw)


def resolve_template_path(pack_id: str, pack: TemplatePack | None = None) -> str:
    pack = pack or load_pack(pack_id)
    return os.path.join(_pack_dir(pack_id), pack.template_file)


def resolve_pack(pack_id: str) -> tuple[TemplatePack, str]:
    """Return (mapping, physical template path) for a pack."""
    pack = load_pack(pack_id)
    return pack, resolve_template_path(pack_id, pack)


def _get_setting(org_id: int, pack_id: str) -> TemplatePackSetting | None:
    return (
        db.session.query(TemplatePackSetting)
        .filter_by(org_id=org_id, pack_id=pack_id)
        .first()
    )


def is_active(org_id: int, pack_id: str) -> bool:
    """Packs are active unless explicitly disabled for the organization."""
    setting = _get_setting(org_id, pack_id)
    if setting is None:
        return True
    return bool(setting.is_active)


def list_packs(org_id: int) -> list[dict]:
    """Every registry pack with its effective activation flag for org_id."""
    root = _templates_dir()
    if not os.path.isdir(root):
        return []

    settings = {
        s.pack_id: s
        for s in db.session.query(TemplatePackSetting).filter_by(org_id=org_id).all()
    }

    packs: list[dict] = []
    for name in sorted(os.listdir(root)):
        if not os.path.isfile(os.path.join(root, name, PACK_FILE)):
            continue
        try:
            pack = load_pack(name)
        except ValidationError:
            current_app.logger.warning("Skipping template pack %s with invalid pack.json", name)
            continue
        row = pack.to_dict()
        setting = settings.get(name)
        row["isActive"] = True if setting is None else bool(setting.is_active)
        packs.append(row)
    return packs


def set_pack_active(
    *,
    org_id: int,
    user_id: int | None,
    pack_id: str,
    is_active: bool,
    request_meta: Optional[dict] = None,
) -> TemplatePackSetting:
    """
    Create or update the organization's activation override for a pack.

    Audited as CREATE (first override) or UPDATE.
    """
    existing = _get_setting(org_id, pack_id)
    if existing:
        before = existing.to_dict()
        existing.is_active = is_active
        db.session.commit()
        audit_service.record_best_effort(
            org_id=org_id,
            user_id=user_id,
            action=ACTION_UPDATE,
            entity=AUDIT_ENTITY,
            entity_id=existing.id,
            before=before,
            after=existing.to_dict(),
            request_meta=request_meta,
        )
        return existing

    pack = load_pack(pack_id)
    setting = TemplatePackSetting(
        org_id=org_id,
        pack_id=pack_id,
        name=pack.name,
        case_type=pack.case_type,
        subtype=pack.subtype,
        is_active=is_active,
    )
    db.session.add(setting)
    db.session.commit()
    audit_service.record_best_effort(
        org_id=org_id,
        user_id=user_id,
        action=ACTION_CREATE,
        entity=AUDIT_ENTITY,
        entity_id=setting.id,
        after=setting.to_dict(),
        request_meta=request_meta,
    )
    return setting
