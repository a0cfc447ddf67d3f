"""가격 계산 과정 감사 추적"""

import uuid
from typing import Any, Dict, Optional

from ..core.calculation_trace import CountryCostResult, PricingResult, serialize_value
from ..core.errors import RuleEngineError
from .audit_service import AuditEntry, AuditEventType, AuditService


class CalculationAuditor:
    """가격 계산 하나의 감사 추적

    계산 시작, 국가별 규칙 적용/제외, 실패, 완료를 같은 계산 ID로 기록하여
    나중에 어떤 규칙이 어떤 금액을 냈는지 재현할 수 있도록 합니다.
    """

    def __init__(self, audit_service: AuditService, calculation_id: Optional[str] = None):
        """
        Args:
            audit_service: 감사 서비스
            calculation_id: 계산 ID (None이면 새로 생성)
        """
        self.audit_service = audit_service
        self.calculation_id = calculation_id or uuid.uuid4().hex

    def log_calculation_start(self, request_data: Dict[str, Any]) -> None:
        self._log(
            AuditEventType.CALCULATION_STARTED,
            request_data={key: serialize_value(value) for key, value in request_data.items()}
        )

    def log_country_result(self, result: CountryCostResult) -> None:
        """국가별 결과의 규칙 적용/제외 기록"""
        for applied in result.applied_rules:
            self._log(
                AuditEventType.RULE_APPLIED,
                country_code=result.country_code,
                rule_id=applied.rule_id,
                response_data=applied.to_dict()
            )
        for rule_id in result.skipped_rules:
            self._log(
                AuditEventType.RULE_SKIPPED,
                country_code=result.country_code,
                rule_id=rule_id
            )

    def log_error(self, error: RuleEngineError, country_code: Optional[str] = None) -> None:
        self._log(
            AuditEventType.ERROR_OCCURRED,
            country_code=country_code,
            rule_id=error.rule_id,
            error_data=error.to_dict()
        )

    def log_calculation_complete(self, result: PricingResult) -> None:
        self._log(
            AuditEventType.CALCULATION_COMPLETED,
            response_data={
                'subtotal': result.subtotal.to_dict(),
                'total': result.total.to_dict(),
                'warnings': list(result.warnings),
            }
        )

    def _log(self, event_type: AuditEventType, **kwargs) -> None:
        self.audit_service.log_entry(
            AuditEntry(event_type=event_type, calculation_id=self.calculation_id, **kwargs)
        )
