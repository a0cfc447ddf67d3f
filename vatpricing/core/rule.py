"""Rule: 국가별 가격 규칙

규칙은 외부 관리 워크플로우에서 생성/수정되며, 엔진에는 읽기 전용으로
전달됩니다. 엔진은 규칙을 변경하지 않습니다.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .errors import RuleValidationError
from .money import normalize_country_code


DEFAULT_RULE_PRIORITY = 100

PARAMETER_NAME_PATTERN = re.compile(r'^[A-Za-z][A-Za-z0-9_]*$')
PARAMETER_DATA_TYPES = ('number', 'string', 'boolean', 'date')


class RuleType(Enum):
    """규칙 유형"""
    VAT_RATE = "VatRate"
    THRESHOLD = "Threshold"
    COMPLEXITY = "Complexity"
    SPECIAL_REQUIREMENT = "SpecialRequirement"
    DISCOUNT = "Discount"
    ADDITIONAL_SERVICE = "AdditionalService"

    @classmethod
    def parse(cls, value: Any) -> "RuleType":
        """열거형 값("VatRate") 또는 이름("VAT_RATE")으로 RuleType 조회"""
        if isinstance(value, cls):
            return value
        for member in cls:
            if value == member.value or str(value).upper() == member.name:
                return member
        raise RuleValidationError(
            "Unknown rule type",
            [f"지원하지 않는 규칙 유형입니다: {value!r}"]
        )


@dataclass(frozen=True)
class RuleParameter:
    """규칙이 사용하는 파라미터 선언

    Attributes:
        name: 파라미터 이름
        data_type: 의미상 타입 ('number', 'string', 'boolean', 'date')
        default: 파라미터 백에 값이 없을 때 쓰는 기본값
    """

    name: str
    data_type: str = 'number'
    default: Optional[Any] = None

    def __post_init__(self):
        if not PARAMETER_NAME_PATTERN.match(self.name or ''):
            raise RuleValidationError(
                "Invalid parameter name",
                [f"파라미터 이름은 영문자로 시작하고 영문자, 숫자, 밑줄만 포함해야 합니다: {self.name!r}"]
            )
        if self.data_type not in PARAMETER_DATA_TYPES:
            raise RuleValidationError(
                "Invalid parameter data type",
                [f"지원하지 않는 데이터 타입입니다: {self.data_type!r} "
                 f"(지원: {', '.join(PARAMETER_DATA_TYPES)})"]
            )


@dataclass(frozen=True)
class Rule:
    """국가별 가격 규칙 (불변 객체)

    Attributes:
        rule_id: 규칙 고유 식별자
        country_code: 국가 코드 (ISO 3166-1 alpha-2)
        rule_type: 규칙 유형
        expression: 금액 계산 수식
        effective_from: 시행일
        effective_to: 종료일 (None이면 무기한)
        priority: 우선순위 (낮을수록 먼저 적용)
        condition: 적용 조건 수식 (None이면 항상 적용, 결과 > 0 이면 참)
        parameters: 파라미터 선언 목록
        name: 규칙 이름
        description: 규칙 설명
        is_active: 활성 여부 (비활성 규칙은 선택되지 않음)

    Example:
        >>> rule = Rule(
        ...     rule_id="DE-VAT-2023",
        ...     country_code="DE",
        ...     rule_type=RuleType.VAT_RATE,
        ...     expression="basePrice * 0.19",
        ...     effective_from=date(2023, 1, 1),
        ...     priority=1
        ... )
    """

    rule_id: str
    country_code: str
    rule_type: RuleType
    expression: str
    effective_from: date
    effective_to: Optional[date] = None
    priority: int = DEFAULT_RULE_PRIORITY
    condition: Optional[str] = None
    parameters: Tuple[RuleParameter, ...] = field(default_factory=tuple)
    name: str = ''
    description: str = ''
    is_active: bool = True

    def __post_init__(self):
        """초기화 후 검증 및 정규화"""
        errors = []

        if not self.rule_id:
            errors.append("규칙 ID는 필수입니다")

        if not self.expression or not self.expression.strip():
            errors.append("수식은 필수입니다")

        if self.effective_to is not None and self.effective_from > self.effective_to:
            errors.append(
                f"시행일({self.effective_from})이 종료일({self.effective_to})보다 늦습니다"
            )

        if errors:
            raise RuleValidationError("Rule validation failed", errors, rule_id=self.rule_id)

        object.__setattr__(self, 'country_code', normalize_country_code(self.country_code))
        object.__setattr__(self, 'rule_type', RuleType.parse(self.rule_type))
        object.__setattr__(self, 'parameters', tuple(self.parameters))

        # 빈 조건식은 조건 없음과 같다
        if self.condition is not None and not self.condition.strip():
            object.__setattr__(self, 'condition', None)

    @property
    def sort_key(self) -> Tuple[int, str]:
        """결정적 평가 순서를 위한 정렬 키 (우선순위, 규칙 ID)"""
        return (self.priority, self.rule_id)

    @property
    def has_condition(self) -> bool:
        return self.condition is not None

    def is_effective_on(self, target_date: date) -> bool:
        """특정 날짜에 유효한지 확인 (시행일과 종료일 모두 포함)"""
        if target_date < self.effective_from:
            return False
        return self.effective_to is None or target_date <= self.effective_to

    def to_dict(self) -> Dict[str, Any]:
        """딕셔너리로 변환"""
        return {
            'rule_id': self.rule_id,
            'country_code': self.country_code,
            'rule_type': self.rule_type.value,
            'expression': self.expression,
            'condition': self.condition,
            'effective_from': self.effective_from.isoformat(),
            'effective_to': self.effective_to.isoformat() if self.effective_to else None,
            'priority': self.priority,
            'parameters': [
                {'name': p.name, 'data_type': p.data_type, 'default': p.default}
                for p in self.parameters
            ],
            'name': self.name,
            'description': self.description,
            'is_active': self.is_active,
        }

    def __str__(self) -> str:
        return f"Rule({self.rule_id}, {self.country_code}/{self.rule_type.value}, priority {self.priority})"
