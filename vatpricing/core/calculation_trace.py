"""계산 결과와 계산 과정 추적"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from .money import Money
from .rule import RuleType


@dataclass(frozen=True)
class AppliedRule:
    """국가 비용에 실제로 반영된 규칙 하나

    Attributes:
        rule_id: 규칙 ID
        rule_type: 규칙 유형
        amount: 규칙 수식의 평가값
        contribution: 합계에 반영된 값 (할인 규칙은 음수)
    """

    rule_id: str
    rule_type: RuleType
    amount: Decimal
    contribution: Decimal

    def to_dict(self) -> dict:
        return {
            'rule_id': self.rule_id,
            'rule_type': self.rule_type.value,
            'amount': str(self.amount),
            'contribution': str(self.contribution),
        }


@dataclass(frozen=True)
class CountryCostResult:
    """국가별 비용 계산 결과 (불변)

    Attributes:
        country_code: 국가 코드
        applied_rules: 적용 순서대로의 규칙별 금액
        total: 국가 합계
        skipped_rules: 조건이 거짓이라 제외된 규칙 ID
    """

    country_code: str
    applied_rules: Tuple[AppliedRule, ...]
    total: Money
    skipped_rules: Tuple[str, ...] = ()

    @property
    def amounts(self) -> Dict[str, Decimal]:
        """규칙 ID -> 평가값 (적용 순서 유지)"""
        return {applied.rule_id: applied.amount for applied in self.applied_rules}

    @property
    def applied_rule_ids(self) -> List[str]:
        return [applied.rule_id for applied in self.applied_rules]

    def to_dict(self) -> dict:
        return {
            'country_code': self.country_code,
            'applied_rules': [applied.to_dict() for applied in self.applied_rules],
            'skipped_rules': list(self.skipped_rules),
            'total': self.total.to_dict(),
        }


@dataclass
class CalculationTrace:
    """계산 과정의 각 단계를 추적하는 클래스

    Attributes:
        step_name: 계산 단계 이름
        input_values: 단계의 입력값
        applied_rule: 적용된 규칙 또는 정책 이름
        output_value: 단계 결과값
        calculation_time: 계산 수행 시각
        formula: 사용된 계산 공식
        notes: 추가 메모
    """

    step_name: str
    input_values: Dict[str, Any]
    applied_rule: str
    output_value: Any
    calculation_time: datetime = field(default_factory=datetime.now)
    formula: Optional[str] = None
    notes: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'step_name': self.step_name,
            'input_values': {key: serialize_value(value) for key, value in self.input_values.items()},
            'applied_rule': self.applied_rule,
            'output_value': serialize_value(self.output_value),
            'calculation_time': self.calculation_time.isoformat(),
            'formula': self.formula,
            'notes': self.notes,
        }

    def __str__(self) -> str:
        return f"[{self.step_name}] 규칙: {self.applied_rule}, 결과: {self.output_value}"


def serialize_value(value: Any) -> Any:
    """값을 직렬화 가능한 형태로 변환"""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Money):
        return value.to_dict()
    return value


@dataclass
class PricingResult:
    """여러 국가에 대한 가격 계산 결과

    Attributes:
        countries: 국가별 결과 (요청 순서)
        subtotal: 국가 합계의 합
        discounts: (할인 이름, 할인율 %) 목록
        additional_services: 부가 서비스 ID -> 금액
        total: 최종 금액
        traces: 계산 과정 추적
        warnings: 경고 메시지
    """

    countries: List[CountryCostResult]
    subtotal: Money
    total: Money
    discounts: List[Tuple[str, Decimal]] = field(default_factory=list)
    additional_services: Dict[str, Money] = field(default_factory=dict)
    traces: List[CalculationTrace] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    calculation_time: datetime = field(default_factory=datetime.now)

    def get_country(self, country_code: str) -> Optional[CountryCostResult]:
        for result in self.countries:
            if result.country_code == country_code:
                return result
        return None

    def to_dict(self) -> dict:
        return {
            'countries': [country.to_dict() for country in self.countries],
            'subtotal': self.subtotal.to_dict(),
            'discounts': [{'name': name, 'percentage': str(pct)} for name, pct in self.discounts],
            'additional_services': {
                service_id: cost.to_dict() for service_id, cost in self.additional_services.items()
            },
            'total': self.total.to_dict(),
            'traces': [trace.to_dict() for trace in self.traces],
            'warnings': self.warnings,
            'calculation_time': self.calculation_time.isoformat(),
        }

    def get_summary(self) -> str:
        """계산 결과 요약"""
        lines = ["=== VAT 신고 비용 산정 결과 ===", ""]
        for country in self.countries:
            lines.append(f"{country.country_code}: {country.total}")
        lines.append("")
        lines.append(f"소계: {self.subtotal}")
        for name, percentage in self.discounts:
            lines.append(f"할인: {name} ({percentage}%)")
        for service_id, cost in self.additional_services.items():
            lines.append(f"부가 서비스: {service_id} {cost}")
        lines.append("─" * 33)
        lines.append(f"합계: {self.total}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.get_summary()
