"""Money: 통화가 지정된 금액 값 객체"""

import re
from dataclasses import dataclass
from decimal import Decimal, DecimalException
from typing import Any, Iterable, Optional

from .errors import CurrencyMismatchError, ExpressionArithmeticError, RuleValidationError
from .parameters import to_decimal


CURRENCY_CODE_PATTERN = re.compile(r'^[A-Z]{3}$')
COUNTRY_CODE_PATTERN = re.compile(r'^[A-Z]{2}$')

# 국가 코드 (ISO 3166-1 alpha-2) -> 통화 코드 (ISO 4217)
COUNTRY_CURRENCIES = {
    'GB': 'GBP',
    'DE': 'EUR',
    'FR': 'EUR',
    'IT': 'EUR',
    'ES': 'EUR',
    'NL': 'EUR',
    'BE': 'EUR',
    'SE': 'SEK',
    'DK': 'DKK',
    'PL': 'PLN',
    'IE': 'EUR',
    'AT': 'EUR',
    'FI': 'EUR',
    'US': 'USD',
}


def normalize_country_code(country_code: str) -> str:
    """국가 코드를 대문자 두 글자로 정규화

    Raises:
        RuleValidationError: 두 글자 알파벳이 아닌 경우
    """
    code = (country_code or '').strip().upper()
    if not COUNTRY_CODE_PATTERN.match(code):
        raise RuleValidationError(
            "Invalid country code",
            [f"국가 코드는 영문 두 글자여야 합니다: {country_code!r}"]
        )
    return code


def currency_for_country(country_code: str, default: Optional[str] = None) -> Optional[str]:
    """국가의 기본 통화 조회 (표에 없으면 default)"""
    return COUNTRY_CURRENCIES.get(normalize_country_code(country_code), default)


@dataclass(frozen=True)
class Money:
    """금액 + 통화 코드

    금액은 항상 Decimal이며 음수가 될 수 없습니다.
    서로 다른 통화끼리는 더하거나 뺄 수 없습니다 (환율 변환은 하지 않음).

    Attributes:
        amount: 금액
        currency: 통화 코드 (ISO 4217, 대문자 세 글자)

    Example:
        >>> Money.of("150.00", "EUR").add(Money.of(50, "EUR"))
        Money(amount=Decimal('200.00'), currency='EUR')
    """

    amount: Decimal
    currency: str

    def __post_init__(self):
        """초기화 후 검증"""
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', to_decimal(self.amount, 'amount'))

        currency = (self.currency or '').upper()
        errors = []
        if not CURRENCY_CODE_PATTERN.match(currency):
            errors.append(f"통화 코드는 ISO 4217 형식(영문 세 글자)이어야 합니다: {self.currency!r}")
        if self.amount < 0:
            errors.append(f"금액은 음수가 될 수 없습니다: {self.amount}")
        if errors:
            raise RuleValidationError("Money validation failed", errors)

        object.__setattr__(self, 'currency', currency)

    @classmethod
    def of(cls, amount: Any, currency: str) -> "Money":
        return cls(to_decimal(amount, 'amount'), currency)

    @classmethod
    def zero(cls, currency: str) -> "Money":
        return cls(Decimal('0'), currency)

    def _check_currency(self, other: "Money") -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(
                f"통화가 다른 금액은 합산할 수 없습니다: {self.currency} / {other.currency}",
                token=other.currency
            )

    def add(self, other: "Money") -> "Money":
        """금액 합산

        Raises:
            CurrencyMismatchError: 통화가 다른 경우
            ExpressionArithmeticError: 합계가 Decimal 범위를 넘는 경우
        """
        self._check_currency(other)
        try:
            amount = self.amount + other.amount
        except DecimalException as e:
            raise ExpressionArithmeticError(
                f"금액 합계를 계산할 수 없습니다: {e.__class__.__name__}", token="+"
            ) from e
        return Money(amount, self.currency)

    def subtract(self, other: "Money") -> "Money":
        """금액 차감 (결과가 음수이면 RuleValidationError)"""
        self._check_currency(other)
        return Money(self.amount - other.amount, self.currency)

    def apply_discount(self, percentage: Any) -> "Money":
        """할인율(%)을 적용한 금액 반환

        Raises:
            RuleValidationError: 할인율이 0~100 범위를 벗어난 경우
        """
        percentage = to_decimal(percentage, 'percentage')
        if percentage < 0 or percentage > 100:
            raise RuleValidationError(
                "Invalid discount percentage",
                [f"할인율은 0에서 100 사이여야 합니다: {percentage}"]
            )
        return Money(self.amount * (1 - percentage / 100), self.currency)

    @staticmethod
    def total(values: Iterable["Money"], currency: str) -> "Money":
        """여러 금액의 합계 (빈 목록이면 0)"""
        result = Money.zero(currency)
        for value in values:
            result = result.add(value)
        return result

    def __add__(self, other: "Money") -> "Money":
        return self.add(other)

    def __sub__(self, other: "Money") -> "Money":
        return self.subtract(other)

    def to_dict(self) -> dict:
        return {'amount': str(self.amount), 'currency': self.currency}

    def __str__(self) -> str:
        return f"{self.amount:,} {self.currency}"
