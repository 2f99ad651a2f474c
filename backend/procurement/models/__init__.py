from .tenancy import Organization
from .cases import ProcurementCase
from .documents import DocumentRunningNumber, TemplatePackSetting, Document
from .audit import AuditLog

__all__ = [
    'Organization',
    'ProcurementCase',
    'DocumentRunningNumber', 'TemplatePackSetting', 'Document',
    'AuditLog',
]
