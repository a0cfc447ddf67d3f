"""규칙 엔진 오류 체계

수식 파싱, 평가, 금액 합산 과정에서 발생하는 모든 오류를 정의합니다.
모든 오류는 ValueError를 상속하며, 어떤 규칙의 어떤 토큰에서 실패했는지
진단할 수 있도록 오류 코드와 문맥 정보를 함께 보관합니다.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """오류 분류 코드"""
    SYNTAX = "SYNTAX"
    STRUCTURAL = "STRUCTURAL"
    PARAMETER_MISSING = "PARAMETER_MISSING"
    TYPE_CONVERSION = "TYPE_CONVERSION"
    ARITHMETIC = "ARITHMETIC"
    CURRENCY_MISMATCH = "CURRENCY_MISMATCH"
    RULE_VALIDATION = "RULE_VALIDATION"


class RuleEngineError(ValueError):
    """규칙 엔진 오류의 기본 클래스

    Attributes:
        code: 오류 분류 코드
        message: 오류 메시지
        token: 실패한 토큰 텍스트 (알 수 있는 경우)
        position: 수식 내 문자 위치 (알 수 있는 경우)
        expression: 실패한 수식 원문
        rule_id: 실패한 규칙 ID
    """

    code = ErrorCode.RULE_VALIDATION

    def __init__(
        self,
        message: str,
        token: Optional[str] = None,
        position: Optional[int] = None,
        expression: Optional[str] = None,
        rule_id: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.token = token
        self.position = position
        self.expression = expression
        self.rule_id = rule_id

    def attach(
        self,
        rule_id: Optional[str] = None,
        expression: Optional[str] = None
    ) -> "RuleEngineError":
        """규칙 문맥 정보를 추가하고 자기 자신을 반환

        이미 설정된 값은 덮어쓰지 않습니다.
        """
        if self.rule_id is None and rule_id is not None:
            self.rule_id = rule_id
        if self.expression is None and expression is not None:
            self.expression = expression
        return self

    def to_dict(self) -> dict:
        """딕셔너리로 변환"""
        return {
            'code': self.code.value,
            'message': self.message,
            'token': self.token,
            'position': self.position,
            'expression': self.expression,
            'rule_id': self.rule_id,
        }

    def __str__(self) -> str:
        parts = [self.message]
        if self.rule_id is not None:
            parts.append(f"rule={self.rule_id}")
        if self.token is not None:
            parts.append(f"token={self.token!r}")
        if self.position is not None:
            parts.append(f"position={self.position}")
        if self.expression is not None:
            parts.append(f"expression={self.expression!r}")
        return " | ".join(parts)


class ExpressionSyntaxError(RuleEngineError):
    """수식 문법 오류 (괄호 불일치, 잘못된 숫자, 알 수 없는 함수, 빈 수식)"""
    code = ErrorCode.SYNTAX


class StructuralEvaluationError(RuleEngineError):
    """후위 표기 구조 오류 (피연산자 부족, 평가 후 값이 하나가 아님)

    파서와 평가기 사이의 불변 조건 위반을 의미합니다.
    """
    code = ErrorCode.STRUCTURAL


class EvaluationError(RuleEngineError):
    """평가 중 발생한 오류의 기본 클래스"""


class ParameterMissingError(EvaluationError):
    """파라미터 백에 없는 변수를 참조"""
    code = ErrorCode.PARAMETER_MISSING


class TypeConversionError(EvaluationError):
    """파라미터 값을 숫자로 변환할 수 없음"""
    code = ErrorCode.TYPE_CONVERSION


class ExpressionArithmeticError(EvaluationError):
    """0으로 나누기, 음수의 제곱근 등 연산 정의역 위반"""
    code = ErrorCode.ARITHMETIC


class CurrencyMismatchError(RuleEngineError):
    """서로 다른 통화의 금액을 합산하려 함"""
    code = ErrorCode.CURRENCY_MISMATCH


class RuleValidationError(RuleEngineError):
    """규칙 정의가 유효하지 않음

    Attributes:
        errors: 발견된 모든 검증 오류 메시지
    """
    code = ErrorCode.RULE_VALIDATION

    def __init__(self, message: str, errors: Optional[list] = None, rule_id: Optional[str] = None):
        super().__init__(message, rule_id=rule_id)
        self.errors = list(errors or [])

    def __str__(self) -> str:
        base = super().__str__()
        if self.errors:
            return f"{base}: {'; '.join(self.errors)}"
        return base


@dataclass(frozen=True)
class EvaluationOutcome:
    """평가 결과 (값 또는 오류)

    예외를 던지지 않고 반환값으로 실패를 전달할 때 사용합니다.
    value와 error 중 정확히 하나만 설정됩니다.
    """

    value: Optional[Decimal] = None
    error: Optional[RuleEngineError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Decimal) -> "EvaluationOutcome":
        return cls(value=value)

    @classmethod
    def failure(cls, error: RuleEngineError) -> "EvaluationOutcome":
        return cls(error=error)

    def unwrap(self) -> Decimal:
        """값을 반환하거나, 실패한 경우 보관된 오류를 발생"""
        if self.error is not None:
            raise self.error
        return self.value
