"""ExpressionParser: 규칙 수식 파서

중위 표기 수식을 후위 표기(RPN) 토큰 열로 변환합니다 (Shunting-yard).
평가기는 우선순위나 괄호를 다룰 필요가 없습니다.

문법:
    - 이항 연산자: + - * / ^ (^가 가장 높고 우결합)
    - 단항 마이너스 (-x), 단항 플러스는 무시
    - 괄호, 숫자 리터럴 (소수점은 '.'), 식별자(파라미터 참조)
    - 함수 호출: min, max, abs, round, floor, ceiling, sqrt, if

변수 이름의 존재 여부는 검사하지 않습니다. 같은 수식을 한 번 파싱해
서로 다른 파라미터로 여러 번 평가할 수 있어야 하기 때문입니다.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from .errors import ExpressionSyntaxError


class TokenKind(Enum):
    """후위 표기 토큰 종류"""
    NUMBER = "Number"
    VARIABLE = "Variable"
    OPERATOR = "Operator"
    FUNCTION = "Function"


@dataclass(frozen=True)
class ExpressionToken:
    """후위 표기 토큰 (불변)

    Attributes:
        kind: 토큰 종류
        value: 숫자 리터럴 텍스트, 변수 이름, 연산자 기호 또는 함수 이름(소문자)
        arity: 연산자/함수가 소비하는 피연산자 수 (숫자/변수는 0)
        position: 원본 수식에서의 문자 위치
    """

    kind: TokenKind
    value: str
    arity: int = 0
    position: int = 0

    @property
    def is_unary(self) -> bool:
        return self.kind == TokenKind.OPERATOR and self.arity == 1

    def __str__(self) -> str:
        return f"[{self.kind.value}: {self.value}]"


# 함수 이름 -> 고정 인자 수
FUNCTION_ARITY = {
    'min': 2,
    'max': 2,
    'abs': 1,
    'round': 1,
    'floor': 1,
    'ceiling': 1,
    'sqrt': 1,
    'if': 3,
}

BINARY_OPERATORS = {
    # 기호: (우선순위, 좌결합 여부)
    '+': (1, True),
    '-': (1, True),
    '*': (2, True),
    '/': (2, True),
    '^': (4, False),
}

# 단항 마이너스는 * / 보다 강하고 ^ 보다 약하게 결합: -2^2 = -(2^2)
UNARY_MINUS_PRECEDENCE = 3

_NUMBER_PATTERN = re.compile(r'(\d+\.?\d*|\.\d+)')
_IDENTIFIER_PATTERN = re.compile(r'[A-Za-z_][A-Za-z0-9_]*')

# 어휘 단위 종류
_NUM = 'number'
_IDENT = 'identifier'
_FUNC = 'function'
_OP = 'operator'
_LPAREN = '('
_RPAREN = ')'
_COMMA = ','


def _lex(expression: str) -> Iterator[Tuple[str, str, int]]:
    """수식을 (종류, 텍스트, 위치) 어휘 단위로 분리"""
    i = 0
    length = len(expression)

    while i < length:
        c = expression[i]

        if c.isspace():
            i += 1
            continue

        if c.isdigit() or c == '.':
            match = _NUMBER_PATTERN.match(expression, i)
            if not match:
                raise ExpressionSyntaxError(
                    "잘못된 숫자 형식입니다",
                    token=c, position=i, expression=expression
                )
            end = match.end()
            # "1.2.3", "3.5abc" 처럼 리터럴 바로 뒤에 이어지는 문자는 허용하지 않음
            if end < length and (expression[end] == '.' or expression[end].isalnum() or expression[end] == '_'):
                bad_end = end
                while bad_end < length and (expression[bad_end].isalnum() or expression[bad_end] in '._'):
                    bad_end += 1
                raise ExpressionSyntaxError(
                    "잘못된 숫자 형식입니다",
                    token=expression[i:bad_end], position=i, expression=expression
                )
            yield _NUM, match.group(0), i
            i = end
            continue

        if c.isalpha() or c == '_':
            match = _IDENTIFIER_PATTERN.match(expression, i)
            if not match:
                raise ExpressionSyntaxError(
                    "예상하지 못한 문자입니다",
                    token=c, position=i, expression=expression
                )
            end = match.end()
            lookahead = end
            while lookahead < length and expression[lookahead].isspace():
                lookahead += 1
            kind = _FUNC if lookahead < length and expression[lookahead] == '(' else _IDENT
            yield kind, match.group(0), i
            i = end
            continue

        if c in BINARY_OPERATORS:
            yield _OP, c, i
        elif c == '(':
            yield _LPAREN, c, i
        elif c == ')':
            yield _RPAREN, c, i
        elif c == ',':
            yield _COMMA, c, i
        else:
            raise ExpressionSyntaxError(
                "예상하지 못한 문자입니다",
                token=c, position=i, expression=expression
            )
        i += 1


@dataclass
class _ParenFrame:
    """열린 괄호 하나의 상태 (함수 호출이면 인자 수를 센다)"""
    function: Optional[ExpressionToken]
    position: int
    separators: int = 0


def _precedence(token: ExpressionToken) -> int:
    if token.is_unary:
        return UNARY_MINUS_PRECEDENCE
    return BINARY_OPERATORS[token.value][0]


def parse(expression: str) -> List[ExpressionToken]:
    """수식을 후위 표기 토큰 열로 변환

    Args:
        expression: 중위 표기 수식

    Returns:
        후위 표기 순서의 ExpressionToken 리스트

    Raises:
        ExpressionSyntaxError: 빈 수식, 괄호 불일치, 잘못된 숫자,
            알 수 없는 함수, 인자 수 불일치, 피연산자 누락 등

    Example:
        >>> [t.value for t in parse("2 + 3 * 4")]
        ['2', '3', '4', '*', '+']
    """
    if expression is None or not expression.strip():
        raise ExpressionSyntaxError("수식이 비어 있습니다", expression=expression)

    output: List[ExpressionToken] = []
    # 연산자 스택 원소: ExpressionToken 또는 _ParenFrame
    stack: list = []
    expect_operand = True

    def fail(message: str, token: str, position: int) -> ExpressionSyntaxError:
        return ExpressionSyntaxError(message, token=token, position=position, expression=expression)

    pending_function: Optional[ExpressionToken] = None

    for kind, text, position in _lex(expression):
        if kind in (_NUM, _IDENT):
            if not expect_operand:
                raise fail("연산자가 필요한 위치에 피연산자가 있습니다", text, position)
            token_kind = TokenKind.NUMBER if kind == _NUM else TokenKind.VARIABLE
            output.append(ExpressionToken(token_kind, text, 0, position))
            expect_operand = False

        elif kind == _FUNC:
            if not expect_operand:
                raise fail("연산자가 필요한 위치에 함수 호출이 있습니다", text, position)
            name = text.lower()
            if name not in FUNCTION_ARITY:
                raise fail(f"알 수 없는 함수입니다: {text}", text, position)
            pending_function = ExpressionToken(TokenKind.FUNCTION, name, FUNCTION_ARITY[name], position)

        elif kind == _LPAREN:
            if not expect_operand:
                raise fail("연산자가 필요한 위치에 괄호가 있습니다", text, position)
            stack.append(_ParenFrame(function=pending_function, position=position))
            pending_function = None

        elif kind == _OP:
            if expect_operand:
                if text == '-':
                    stack.append(ExpressionToken(TokenKind.OPERATOR, '-', 1, position))
                elif text == '+':
                    pass
                else:
                    raise fail("피연산자가 필요한 위치에 연산자가 있습니다", text, position)
                continue

            precedence, left_assoc = BINARY_OPERATORS[text]
            while stack and isinstance(stack[-1], ExpressionToken):
                top_precedence = _precedence(stack[-1])
                if top_precedence > precedence or (top_precedence == precedence and left_assoc):
                    output.append(stack.pop())
                else:
                    break
            stack.append(ExpressionToken(TokenKind.OPERATOR, text, 2, position))
            expect_operand = True

        elif kind == _COMMA:
            if expect_operand:
                raise fail("함수 인자가 비어 있습니다", text, position)
            while stack and isinstance(stack[-1], ExpressionToken):
                output.append(stack.pop())
            if not stack or stack[-1].function is None:
                raise fail("함수 호출 밖에서 쉼표가 사용되었습니다", text, position)
            stack[-1].separators += 1
            expect_operand = True

        elif kind == _RPAREN:
            if expect_operand:
                raise fail("닫는 괄호 앞에 피연산자가 없습니다", text, position)
            while stack and isinstance(stack[-1], ExpressionToken):
                output.append(stack.pop())
            if not stack:
                raise fail("괄호가 맞지 않습니다", text, position)
            frame = stack.pop()
            if frame.function is not None:
                arg_count = frame.separators + 1
                if arg_count != frame.function.arity:
                    raise fail(
                        f"함수 '{frame.function.value}'의 인자 수가 맞지 않습니다 "
                        f"(필요: {frame.function.arity}, 전달: {arg_count})",
                        frame.function.value, frame.function.position
                    )
                output.append(frame.function)
            expect_operand = False

    if expect_operand:
        raise fail("수식이 피연산자 없이 끝났습니다", expression.rstrip()[-1:], len(expression.rstrip()) - 1)

    while stack:
        item = stack.pop()
        if isinstance(item, _ParenFrame):
            raise fail("괄호가 맞지 않습니다", '(', item.position)
        output.append(item)

    return output


def validate_expression(expression: str) -> bool:
    """수식이 파싱 가능한지 확인

    parse()와 같은 경로를 사용하지만 결과를 보관하지 않습니다.
    규칙을 저장하기 전에 사전 검증 용도로 사용합니다.

    Returns:
        파싱에 성공하면 True, 실패하면 False
    """
    try:
        parse(expression)
    except ExpressionSyntaxError:
        return False
    return True


def referenced_variables(tokens: List[ExpressionToken]) -> List[str]:
    """토큰 열이 참조하는 변수 이름 (처음 등장한 순서, 중복 제거)"""
    names: List[str] = []
    for token in tokens:
        if token.kind == TokenKind.VARIABLE and token.value not in names:
            names.append(token.value)
    return names
