"""입력 데이터 스키마 (Pydantic)

규칙 카탈로그 레코드와 가격 계산 요청을 검증합니다.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .core.rule import DEFAULT_RULE_PRIORITY, Rule, RuleParameter, RuleType


# ============================================================================
# 규칙 카탈로그
# ============================================================================

class RuleParameterRecord(BaseModel):
    """규칙 파라미터 선언"""
    name: str = Field(..., description="파라미터 이름")
    data_type: str = Field(default="number", description="number, string, boolean, date")
    default: Optional[Any] = Field(None, description="기본값")


class RuleRecord(BaseModel):
    """규칙 카탈로그 레코드

    YAML 규칙 파일의 한 항목입니다.
    """
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "rule_id": "DE-VAT-BASE",
                "country_code": "DE",
                "rule_type": "VatRate",
                "expression": "basePrice * filingsPerYear",
                "effective_from": "2024-01-01",
                "priority": 1
            }
        }
    )

    rule_id: str = Field(..., min_length=1, description="규칙 ID")
    country_code: str = Field(..., description="국가 코드 (ISO 3166-1 alpha-2)")
    rule_type: RuleType = Field(..., description="규칙 유형")
    expression: str = Field(..., min_length=1, description="금액 수식")
    effective_from: date = Field(..., description="시행일")
    effective_to: Optional[date] = Field(None, description="종료일")
    priority: int = Field(default=DEFAULT_RULE_PRIORITY, ge=1, le=1000, description="우선순위")
    condition: Optional[str] = Field(None, description="적용 조건 수식")
    parameters: List[RuleParameterRecord] = Field(default_factory=list)
    name: str = Field(default="", max_length=100)
    description: str = Field(default="", max_length=500)
    is_active: bool = Field(default=True)

    @field_validator('country_code')
    @classmethod
    def validate_country_code(cls, v: str) -> str:
        code = v.strip().upper()
        if len(code) != 2 or not code.isalpha():
            raise ValueError(f"국가 코드는 영문 두 글자여야 합니다: {v!r}")
        return code

    @field_validator('rule_type', mode='before')
    @classmethod
    def parse_rule_type(cls, v: Any) -> RuleType:
        return RuleType.parse(v)

    @model_validator(mode='after')
    def validate_effective_range(self) -> "RuleRecord":
        if self.effective_to is not None and self.effective_from > self.effective_to:
            raise ValueError("종료일은 시행일보다 빠를 수 없습니다")
        return self

    def to_rule(self) -> Rule:
        """Rule 도메인 객체로 변환"""
        return Rule(
            rule_id=self.rule_id,
            country_code=self.country_code,
            rule_type=self.rule_type,
            expression=self.expression,
            effective_from=self.effective_from,
            effective_to=self.effective_to,
            priority=self.priority,
            condition=self.condition,
            parameters=tuple(
                RuleParameter(name=p.name, data_type=p.data_type, default=p.default)
                for p in self.parameters
            ),
            name=self.name,
            description=self.description,
            is_active=self.is_active,
        )


# ============================================================================
# 가격 계산 요청
# ============================================================================

class CalculationRequest(BaseModel):
    """가격 계산 요청"""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "country_codes": ["DE", "FR", "IT"],
                "transaction_volume": 600,
                "filing_frequency": "Quarterly",
                "service_type": "ComplexFiling",
                "additional_services": ["TaxConsultancy"],
                "effective_date": "2024-06-01",
                "currency_code": "EUR"
            }
        }
    )

    country_codes: List[str] = Field(..., min_length=1, description="대상 국가 코드")
    transaction_volume: int = Field(..., gt=0, le=100000, description="월 거래 건수")
    filing_frequency: str = Field(default="Monthly", description="신고 주기")
    service_type: str = Field(default="StandardFiling", description="서비스 유형")
    additional_services: List[str] = Field(default_factory=list, description="부가 서비스 ID")
    effective_date: date = Field(default_factory=date.today, description="기준일")
    currency_code: Optional[str] = Field(None, description="결과 통화 (환산은 호출 전 완료)")
    parameters: Dict[str, Any] = Field(default_factory=dict, description="추가 파라미터")

    @field_validator('country_codes')
    @classmethod
    def normalize_country_codes(cls, v: List[str]) -> List[str]:
        codes = []
        for code in v:
            normalized = code.strip().upper()
            if len(normalized) != 2 or not normalized.isalpha():
                raise ValueError(f"국가 코드는 영문 두 글자여야 합니다: {code!r}")
            if normalized not in codes:
                codes.append(normalized)
        return codes

    @field_validator('currency_code')
    @classmethod
    def normalize_currency_code(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        code = v.strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError(f"통화 코드는 영문 세 글자여야 합니다: {v!r}")
        return code

