"""감사 추적 모듈"""

from .audit_service import AuditEntry, AuditEventType, AuditService
from .calculation_auditor import CalculationAuditor

__all__ = [
    'AuditEntry',
    'AuditEventType',
    'AuditService',
    'CalculationAuditor',
]
