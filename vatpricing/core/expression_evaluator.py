"""ExpressionEvaluator: 후위 표기 수식 평가기

피연산자 스택 하나로 토큰 열을 왼쪽에서 오른쪽으로 한 번 훑어 값을 계산합니다.
모든 연산은 Decimal로 수행하며, 거듭제곱과 제곱근만 float로 잠시 변환했다가
유효숫자 15자리로 반올림해 Decimal로 되돌립니다.

정밀도는 현재 Decimal 컨텍스트(기본 28자리)를 따릅니다. 28자리를 넘는 결과는
반올림되므로 금액의 정확성은 유효숫자 28자리까지만 보장됩니다.
(예: 10000000000000000000000000000 + 1 = 1.000000000000000000000000000E+28)

if(cond, a, b)는 세 인자가 모두 계산된 뒤에 적용되므로 선택되지 않은
분기에서 발생한 오류(예: 0으로 나누기)도 그대로 전파됩니다.
"""

import logging
import math
from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_EVEN, Decimal, DecimalException, InvalidOperation
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from .errors import (
    EvaluationOutcome,
    ExpressionArithmeticError,
    ExpressionSyntaxError,
    ParameterMissingError,
    RuleEngineError,
    StructuralEvaluationError,
    TypeConversionError,
)
from .expression_parser import ExpressionToken, TokenKind, parse
from .parameters import float_to_decimal, to_decimal

logger = logging.getLogger(__name__)


def _from_float(value: float, token: ExpressionToken) -> Decimal:
    """float 중간 결과를 Decimal로 되돌림 (inf/nan은 오류)"""
    if not math.isfinite(value):
        raise ExpressionArithmeticError(
            "연산 결과가 유한한 숫자가 아닙니다",
            token=token.value, position=token.position
        )
    return float_to_decimal(value)


def _power(base: Decimal, exponent: Decimal, token: ExpressionToken) -> Decimal:
    try:
        result = math.pow(float(base), float(exponent))
    except (ValueError, OverflowError) as e:
        raise ExpressionArithmeticError(
            f"거듭제곱을 계산할 수 없습니다: {base} ^ {exponent} ({e})",
            token=token.value, position=token.position
        ) from e
    return _from_float(result, token)


def _divide(left: Decimal, right: Decimal, token: ExpressionToken) -> Decimal:
    if right == 0:
        raise ExpressionArithmeticError(
            "0으로 나눌 수 없습니다",
            token=token.value, position=token.position
        )
    return left / right


def _sqrt(args: List[Decimal], token: ExpressionToken) -> Decimal:
    if args[0] < 0:
        raise ExpressionArithmeticError(
            f"음수의 제곱근은 계산할 수 없습니다: {args[0]}",
            token=token.value, position=token.position
        )
    return _from_float(math.sqrt(float(args[0])), token)


def _negate(operand: Decimal, token: ExpressionToken) -> Decimal:
    return -operand


_BINARY: Dict[str, Callable[[Decimal, Decimal, ExpressionToken], Decimal]] = {
    '+': lambda a, b, t: a + b,
    '-': lambda a, b, t: a - b,
    '*': lambda a, b, t: a * b,
    '/': _divide,
    '^': _power,
}

_FUNCTIONS: Dict[str, Callable[[List[Decimal], ExpressionToken], Decimal]] = {
    'min': lambda args, t: min(args[0], args[1]),
    'max': lambda args, t: max(args[0], args[1]),
    'abs': lambda args, t: abs(args[0]),
    'round': lambda args, t: args[0].to_integral_value(rounding=ROUND_HALF_EVEN),
    'floor': lambda args, t: args[0].to_integral_value(rounding=ROUND_FLOOR),
    'ceiling': lambda args, t: args[0].to_integral_value(rounding=ROUND_CEILING),
    'sqrt': _sqrt,
    'if': lambda args, t: args[1] if args[0] > 0 else args[2],
}


def _pop(stack: List[Decimal], count: int, token: ExpressionToken) -> List[Decimal]:
    """스택에서 count개를 꺼내 원래 왼쪽->오른쪽 순서로 반환"""
    if len(stack) < count:
        raise StructuralEvaluationError(
            f"피연산자가 부족합니다 (필요: {count}, 스택: {len(stack)})",
            token=token.value, position=token.position
        )
    args = stack[-count:]
    del stack[-count:]
    return args


def _apply(operation: Callable, args: tuple, token: ExpressionToken) -> Decimal:
    """연산 적용 (Decimal 컨텍스트 오류는 연산 오류로 변환)"""
    try:
        return operation(*args, token)
    except DecimalException as e:
        raise ExpressionArithmeticError(
            f"연산을 수행할 수 없습니다: {e.__class__.__name__}",
            token=token.value, position=token.position
        ) from e


def _lookup(name: str, parameters: Mapping[str, Any], token: ExpressionToken) -> Decimal:
    if name not in parameters:
        raise ParameterMissingError(
            f"파라미터를 찾을 수 없습니다: {name}",
            token=name, position=token.position
        )
    try:
        return to_decimal(parameters[name], name)
    except TypeConversionError as e:
        e.position = token.position
        raise


def evaluate(
    tokens: Sequence[ExpressionToken],
    parameters: Optional[Mapping[str, Any]] = None
) -> Decimal:
    """후위 표기 토큰 열을 평가

    Args:
        tokens: parse()가 만든 후위 표기 토큰 열
        parameters: 파라미터 백 (변수 이름 -> 값)

    Returns:
        계산 결과

    Raises:
        ExpressionSyntaxError: 숫자 리터럴을 해석할 수 없는 경우
        ParameterMissingError: 참조한 파라미터가 없는 경우
        TypeConversionError: 파라미터 값을 숫자로 바꿀 수 없는 경우
        ExpressionArithmeticError: 0으로 나누기, 음수 제곱근 등
        StructuralEvaluationError: 후위 표기 구조가 잘못된 경우
    """
    if parameters is None:
        parameters = {}

    stack: List[Decimal] = []

    for token in tokens:
        if token.kind == TokenKind.NUMBER:
            try:
                value = Decimal(token.value)
            except InvalidOperation:
                raise ExpressionSyntaxError(
                    f"잘못된 숫자 형식입니다: {token.value}",
                    token=token.value, position=token.position
                ) from None
            if not value.is_finite():
                raise ExpressionSyntaxError(
                    f"잘못된 숫자 형식입니다: {token.value}",
                    token=token.value, position=token.position
                )
            stack.append(value)

        elif token.kind == TokenKind.VARIABLE:
            stack.append(_lookup(token.value, parameters, token))

        elif token.kind == TokenKind.OPERATOR:
            if token.arity == 1:
                (operand,) = _pop(stack, 1, token)
                stack.append(_apply(_negate, (operand,), token))
                continue
            operator = _BINARY.get(token.value)
            if operator is None:
                raise StructuralEvaluationError(
                    f"알 수 없는 연산자입니다: {token.value}",
                    token=token.value, position=token.position
                )
            # 먼저 꺼낸 값이 오른쪽 피연산자
            left, right = _pop(stack, 2, token)
            stack.append(_apply(operator, (left, right), token))

        elif token.kind == TokenKind.FUNCTION:
            function = _FUNCTIONS.get(token.value)
            if function is None:
                raise StructuralEvaluationError(
                    f"알 수 없는 함수입니다: {token.value}",
                    token=token.value, position=token.position
                )
            args = _pop(stack, token.arity, token)
            stack.append(_apply(function, (args,), token))

        else:
            raise StructuralEvaluationError(
                f"평가할 수 없는 토큰입니다: {token}",
                token=str(token.value), position=token.position
            )

    if len(stack) != 1:
        raise StructuralEvaluationError(
            f"수식이 하나의 값으로 평가되지 않았습니다 (남은 값: {len(stack)})"
        )

    return stack[0]


def try_evaluate(
    tokens: Sequence[ExpressionToken],
    parameters: Optional[Mapping[str, Any]] = None
) -> EvaluationOutcome:
    """evaluate()와 같지만 오류를 예외 대신 EvaluationOutcome으로 반환"""
    try:
        return EvaluationOutcome.success(evaluate(tokens, parameters))
    except RuleEngineError as e:
        return EvaluationOutcome.failure(e)


def evaluate_expression(
    expression: str,
    parameters: Optional[Mapping[str, Any]] = None
) -> Decimal:
    """수식 문자열을 파싱하고 평가

    실패 시 발생하는 오류에는 수식 원문이 함께 기록됩니다.
    """
    try:
        return evaluate(parse(expression), parameters)
    except RuleEngineError as e:
        logger.debug("Expression evaluation failed: %s", e)
        raise e.attach(expression=expression)
