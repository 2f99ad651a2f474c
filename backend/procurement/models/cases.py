from __future__ import annotations

from ..extensions import db
from procurement.time_utils import to_utc_z


CASE_TYPES = ("PURCHASE", "HIRE", "LUNCH", "INTERNET")


class ProcurementCase(db.Model):
    """
    Procurement record that document packs are generated against.

    Case CRUD lives outside this service; the document pipeline only reads
    ownership, fiscal year and the backdated flag.

    BACKDATED: A case describing a past-dated transaction. Only documents of
    backdated cases may carry a manually overridden document number.
    """
    __tablename__ = "procurement_cases"
    __table_args__ = (
        db.Index("ix_procurement_cases_org_fiscal_year", "org_id", "fiscal_year"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    title = db.Column(db.String(255), nullable=False)
    case_type = db.Column(db.String(16), nullable=False, index=True)  # PURCHASE, HIRE, LUNCH, INTERNET
    subtype = db.Column(db.String(32), nullable=True)

    # Thai fiscal year in Buddhist era (e.g., 2567)
    fiscal_year = db.Column(db.Integer, nullable=False)

    is_backdated = db.Column(db.Boolean, nullable=False, default=False)
    backdate_reason = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    organization = db.relationship("Organization", backref=db.backref("cases", lazy=True))

    def __repr__(self) -> str:
        return f"<ProcurementCase id={self.id} org_id={self.org_id} type={self.case_type}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "title": self.title,
            "case_type": self.case_type,
            "subtype": self.subtype,
            "fiscal_year": self.fiscal_year,
            "is_backdated": self.is_backdated,
            "backdate_reason": self.backdate_reason,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
