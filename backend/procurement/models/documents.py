from __future__ import annotations

from ..extensions import db
from procurement.time_utils import to_utc_z


FILE_TYPE_PDF = "PDF"
FILE_TYPE_ZIP = "ZIP"


class DocumentRunningNumber(db.Model):
    """
    Atomic per-organization/fiscal-year/document-type running numbers.

    WHY: The running number is printed on legal documents and audited.
    For a key, values are issued as 1, 2, 3, ... with no repeats and no gaps.

    IMMUTABLE KEY: Rows are created lazily on first allocation, incremented in
    place afterwards and never deleted. Only running_number_service touches
    this table.
    """
    __tablename__ = "document_running_numbers"
    __table_args__ = (
        db.UniqueConstraint(
            "org_id", "fiscal_year", "document_type",
            name="uq_doc_running_numbers_org_year_type",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    fiscal_year = db.Column(db.Integer, nullable=False)
    document_type = db.Column(db.String(32), nullable=False)
    sequence = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "fiscal_year": self.fiscal_year,
            "document_type": self.document_type,
            "sequence": self.sequence,
            "updated_at": to_utc_z(self.updated_at),
        }


class TemplatePackSetting(db.Model):
    """
    Organization-scoped activation override for a registry template pack.

    Pack definitions live in the registry on disk; this row only records an
    administrator's decision. No row means the pack is active.
    """
    __tablename__ = "template_packs"
    __table_args__ = (
        db.UniqueConstraint("org_id", "pack_id", name="uq_template_packs_org_pack"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    pack_id = db.Column(db.String(128), nullable=False)
    name = db.Column(db.String(255), nullable=True)
    case_type = db.Column(db.String(16), nullable=True)
    subtype = db.Column(db.String(32), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "pack_id": self.pack_id,
            "name": self.name,
            "case_type": self.case_type,
            "subtype": self.subtype,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Document(db.Model):
    """
    One physical output file of a generation event.

    LIFECYCLE:
    - Created once per produced PDF plus one ZIP row per generation event.
    - All rows of one event share running_number and generated_at.
    - manual_number / document_date are the only mutable fields, and only
      through the override operation on backdated cases.
    """
    __tablename__ = "documents"
    __table_args__ = (
        db.Index("ix_documents_org_case_generated", "org_id", "case_id", "generated_at"),
        db.Index("ix_documents_running_number", "running_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    case_id = db.Column(db.Integer, db.ForeignKey("procurement_cases.id"), nullable=False, index=True)

    template_pack_id = db.Column(db.String(128), nullable=False)
    document_type = db.Column(db.String(32), nullable=False)
    file_type = db.Column(db.String(8), nullable=False, default=FILE_TYPE_PDF)  # PDF, ZIP
    file_name = db.Column(db.String(255), nullable=False)
    file_path = db.Column(db.String(1024), nullable=False)

    # Copied from the counter at generation time, never referenced live
    running_number = db.Column(db.String(64), nullable=False)
    manual_number = db.Column(db.String(64), nullable=True)
    document_date = db.Column(db.Date, nullable=True)

    generated_by_user_id = db.Column(db.Integer, nullable=True)
    generated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    case = db.relationship("ProcurementCase", backref=db.backref("documents", lazy=True))

    @property
    def effective_number(self) -> str:
        return self.manual_number or self.running_number

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "case_id": self.case_id,
            "template_pack_id": self.template_pack_id,
            "document_type": self.document_type,
            "file_type": self.file_type,
            "file_name": self.file_name,
            "file_path": self.file_path,
            "running_number": self.running_number,
            "manual_number": self.manual_number,
            "effective_number": self.effective_number,
            "document_date": self.document_date.isoformat() if self.document_date else None,
            "generated_by_user_id": self.generated_by_user_id,
            "generated_at": to_utc_z(self.generated_at),
        }
