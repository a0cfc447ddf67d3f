"""파라미터 백 값의 숫자 변환

파라미터 백은 이름 -> 값 매핑이며 값의 타입은 동적입니다.
평가기가 변수를 읽을 때 아래 변환표로 Decimal로 바꿉니다.

    Decimal      -> 그대로 (유한값만)
    bool         -> True: 1, False: 0
    int          -> Decimal로 확장
    float        -> 유효숫자 15자리로 반올림한 Decimal (유한값만)
    str          -> ASCII 숫자 문자열만 파싱 (소수점은 '.', 지수 표기 불가)
    그 외        -> TypeConversionError

변환 결과의 지수가 Decimal 컨텍스트 범위(Emax)를 넘으면 거부합니다.
"""

import math
import re
from decimal import Decimal, getcontext
from typing import Any, Dict, Iterable, Mapping, Optional

from .errors import TypeConversionError

# float -> Decimal 변환 시 유효숫자 (double의 신뢰 가능한 자릿수)
FLOAT_SIGNIFICANT_DIGITS = 15

_NUMERIC_STRING_PATTERN = re.compile(r'^[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)$')


def float_to_decimal(value: float) -> Decimal:
    """float를 유효숫자 15자리로 반올림하여 Decimal로 변환

    1.1 ** 2 = 1.2100000000000002 같은 이진 부동소수점 잡음을 금액에 남기지 않습니다.
    """
    return Decimal(format(value, f'.{FLOAT_SIGNIFICANT_DIGITS}g'))


def to_decimal(value: Any, name: Optional[str] = None) -> Decimal:
    """파라미터 값을 Decimal로 변환

    Args:
        value: 파라미터 값
        name: 파라미터 이름 (오류 메시지용)

    Returns:
        변환된 Decimal

    Raises:
        TypeConversionError: 변환할 수 없는 타입이거나 유한한 숫자가 아니거나
            Decimal 컨텍스트 범위를 벗어난 경우
    """
    # bool은 int의 하위 타입이므로 먼저 검사
    if isinstance(value, bool):
        return Decimal(1) if value else Decimal(0)

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        if not math.isfinite(value):
            raise TypeConversionError(f"유한한 숫자가 아닙니다: {value!r}", token=name)
        result = float_to_decimal(value)
    elif isinstance(value, str):
        text = value.strip()
        if not _NUMERIC_STRING_PATTERN.match(text):
            raise TypeConversionError(
                f"숫자로 변환할 수 없는 문자열입니다: {value!r}",
                token=name
            )
        result = Decimal(text)
    else:
        raise TypeConversionError(
            f"숫자로 변환할 수 없는 타입입니다: {type(value).__name__}",
            token=name
        )

    if not result.is_finite():
        raise TypeConversionError(
            f"유한한 숫자가 아닙니다: {value!r}",
            token=name
        )

    if result and result.adjusted() > getcontext().Emax:
        raise TypeConversionError(
            f"숫자가 너무 큽니다: {value!r}",
            token=name
        )

    return result


def with_defaults(
    parameters: Mapping[str, Any],
    declarations: Iterable
) -> Dict[str, Any]:
    """선언된 기본값으로 누락된 파라미터를 채운 새 매핑 반환

    원본 매핑은 변경하지 않습니다. 호출자가 넘긴 값이 항상 우선합니다.

    Args:
        parameters: 호출자가 넘긴 파라미터 백
        declarations: 규칙의 파라미터 선언 목록
    """
    merged: Dict[str, Any] = {}
    for declaration in declarations:
        if declaration.default is not None:
            merged[declaration.name] = declaration.default
    merged.update(parameters)
    return merged
