"""RuleEngine: 국가별 VAT 신고 비용 규칙 엔진

규칙 선택 -> 조건 검사 -> 수식 평가 -> 합산 순서로 국가별 비용을 계산합니다.

엔진은 상태가 없습니다. 생성 시 받은 규칙 스냅샷만 읽기 전용으로 보관하며,
호출마다 파라미터 백을 새로 받고 어떤 입출력도 하지 않습니다.
따라서 호출별로 파라미터 백이 다르다면 여러 스레드에서 동시에 사용해도 됩니다.
"""

import logging
from datetime import date
from decimal import Decimal, DecimalException
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..config import get_settings
from .calculation_trace import AppliedRule, CountryCostResult, PricingResult
from .errors import EvaluationOutcome, ExpressionArithmeticError, RuleEngineError
from .expression_evaluator import evaluate
from .expression_parser import ExpressionToken, parse, validate_expression
from .money import COUNTRY_CURRENCIES, Money, normalize_country_code
from .parameters import with_defaults
from .rule import Rule, RuleType
from .rule_selector import select_rules

logger = logging.getLogger(__name__)

CURRENCY_PARAMETER = "currencyCode"


class RuleEngine:
    """국가별 가격 규칙 엔진

    Attributes:
        rules: 규칙 카탈로그 스냅샷 (불변 튜플)
        default_currency: 통화를 결정할 수 없을 때 쓰는 통화
    """

    def __init__(self, rules: Iterable[Rule], default_currency: Optional[str] = None):
        """RuleEngine 초기화

        Args:
            rules: 저장소에서 이미 로드된 규칙 목록
            default_currency: 기본 통화 (None이면 설정값)
        """
        if rules is None:
            raise ValueError("규칙 목록은 None일 수 없습니다")
        self.rules = tuple(rules)
        self.default_currency = (default_currency or get_settings().default_currency).upper()

    # ------------------------------------------------------------------
    # 규칙 선택
    # ------------------------------------------------------------------

    def get_applicable_rules(self, country_code: str, effective_date: date) -> List[Rule]:
        """국가와 기준일에 적용 가능한 규칙 (우선순위, 규칙 ID 순)"""
        return select_rules(self.rules, country_code, effective_date)

    def get_applicable_rules_by_type(
        self,
        country_code: str,
        rule_type: RuleType,
        effective_date: date
    ) -> List[Rule]:
        """국가, 유형, 기준일에 적용 가능한 규칙 (우선순위, 규칙 ID 순)"""
        return select_rules(self.rules, country_code, effective_date, rule_type)

    # ------------------------------------------------------------------
    # 파싱 / 검증
    # ------------------------------------------------------------------

    @staticmethod
    def parse_rule(rule: Rule) -> List[ExpressionToken]:
        """규칙 수식 파싱 (실패 시 규칙 ID가 기록된 ExpressionSyntaxError)"""
        return _parse_for_rule(rule, rule.expression)

    @staticmethod
    def validate_rule_expression(expression: str) -> bool:
        """수식 사전 검증 (저장 전 확인용)"""
        return validate_expression(expression)

    @staticmethod
    def validate_rule(rule: Rule, max_expression_length: Optional[int] = None) -> List[str]:
        """규칙 정의 검증

        Args:
            rule: 검증할 규칙
            max_expression_length: 수식 최대 길이 (None이면 설정값)

        Returns:
            검증 오류 메시지 목록 (비어 있으면 유효)
        """
        if max_expression_length is None:
            max_expression_length = get_settings().max_expression_length

        errors = []
        for label, text in (('expression', rule.expression), ('condition', rule.condition)):
            if text is None:
                continue
            if len(text) > max_expression_length:
                errors.append(f"{label} 길이가 {max_expression_length}자를 초과합니다")
                continue
            try:
                parse(text)
            except RuleEngineError as e:
                errors.append(f"{label} 파싱 실패: {e.message} (token={e.token!r}, position={e.position})")

        names = [parameter.name for parameter in rule.parameters]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        for name in duplicates:
            errors.append(f"파라미터 이름이 중복됩니다: {name}")

        return errors

    # ------------------------------------------------------------------
    # 평가
    # ------------------------------------------------------------------

    def evaluate_rule(self, rule: Rule, parameters: Mapping[str, Any]) -> Decimal:
        """규칙 수식 평가

        규칙에 선언된 파라미터 기본값으로 누락된 값을 채운 뒤 평가합니다.

        Raises:
            RuleEngineError: 파싱/평가 실패 (rule_id와 수식이 기록됨)
        """
        tokens = self.parse_rule(rule)
        bag = with_defaults(parameters or {}, rule.parameters)
        try:
            return evaluate(tokens, bag)
        except RuleEngineError as e:
            raise e.attach(rule_id=rule.rule_id, expression=rule.expression)

    def check_conditions(self, rule: Rule, parameters: Mapping[str, Any]) -> bool:
        """규칙 적용 조건 검사

        조건식이 없으면 항상 참입니다. 조건식 평가값이 0보다 크면 참입니다.
        평가 중 오류(파라미터 누락 등)는 거짓으로 처리하지 않고 그대로 전파합니다.

        Raises:
            RuleEngineError: 조건식 파싱/평가 실패
        """
        if not rule.has_condition:
            return True

        tokens = _parse_for_rule(rule, rule.condition)
        bag = with_defaults(parameters or {}, rule.parameters)
        try:
            return evaluate(tokens, bag) > 0
        except RuleEngineError as e:
            raise e.attach(rule_id=rule.rule_id, expression=rule.condition)

    def evaluate_rules(
        self,
        rules: Iterable[Rule],
        parameters: Mapping[str, Any]
    ) -> Dict[str, Decimal]:
        """규칙 일괄 평가 (선택과 조건 검사 없이)

        호출자가 이미 규칙을 골라 둔 경우에 사용합니다.
        하나라도 실패하면 해당 규칙 ID가 기록된 오류가 발생합니다.

        Returns:
            규칙 ID -> 평가값 (입력 순서 유지)
        """
        return {rule.rule_id: self.evaluate_rule(rule, parameters) for rule in rules}

    def try_evaluate_rules(
        self,
        rules: Iterable[Rule],
        parameters: Mapping[str, Any]
    ) -> Dict[str, EvaluationOutcome]:
        """규칙 일괄 평가 (실패를 규칙별 EvaluationOutcome으로 반환)

        실패한 규칙을 제외할지 전체를 중단할지는 호출자가 결정합니다.
        """
        outcomes: Dict[str, EvaluationOutcome] = {}
        for rule in rules:
            try:
                outcomes[rule.rule_id] = EvaluationOutcome.success(self.evaluate_rule(rule, parameters))
            except RuleEngineError as e:
                logger.debug("Rule %s failed: %s", rule.rule_id, e)
                outcomes[rule.rule_id] = EvaluationOutcome.failure(e)
        return outcomes

    # ------------------------------------------------------------------
    # 합산
    # ------------------------------------------------------------------

    def resolve_currency(self, country_code: str, parameters: Mapping[str, Any]) -> str:
        """결과 통화 결정: 파라미터(currencyCode) -> 국가 통화 -> 기본 통화"""
        currency = (parameters or {}).get(CURRENCY_PARAMETER)
        if isinstance(currency, str) and currency.strip():
            return currency.strip().upper()
        return COUNTRY_CURRENCIES.get(normalize_country_code(country_code), self.default_currency)

    def calculate_country_breakdown(
        self,
        country_code: str,
        parameters: Mapping[str, Any],
        effective_date: date
    ) -> CountryCostResult:
        """국가별 비용 계산 (규칙별 내역 포함)

        적용 가능한 모든 규칙을 우선순위 순으로 처리합니다.
        조건이 거짓인 규칙은 0으로 간주하고 내역에서 제외합니다.
        할인 규칙의 값은 차감하며, 합계가 음수이면 0으로 맞춥니다.
        파라미터 백은 규칙 사이에 변경되지 않습니다.

        Raises:
            RuleEngineError: 어느 규칙이든 파싱/평가에 실패한 경우 (rule_id 기록)
        """
        parameters = parameters or {}
        country = normalize_country_code(country_code)
        currency = self.resolve_currency(country, parameters)

        applied: List[AppliedRule] = []
        skipped: List[str] = []
        total = Decimal('0')

        for rule in self.get_applicable_rules(country, effective_date):
            if not self.check_conditions(rule, parameters):
                logger.debug("Rule %s skipped: condition not met", rule.rule_id)
                skipped.append(rule.rule_id)
                continue

            amount = self.evaluate_rule(rule, parameters)
            contribution = -amount if rule.rule_type == RuleType.DISCOUNT else amount
            try:
                total += contribution
            except DecimalException as e:
                raise ExpressionArithmeticError(
                    f"국가 합계를 계산할 수 없습니다: {e.__class__.__name__}",
                    expression=rule.expression,
                    rule_id=rule.rule_id
                ) from e
            applied.append(AppliedRule(rule.rule_id, rule.rule_type, amount, contribution))
            logger.debug("Rule %s applied: %s", rule.rule_id, amount)

        if total < 0:
            logger.debug("Country %s total %s floored at zero", country, total)
            total = Decimal('0')

        return CountryCostResult(
            country_code=country,
            applied_rules=tuple(applied),
            total=Money(total, currency),
            skipped_rules=tuple(skipped)
        )

    def calculate_country_cost(
        self,
        country_code: str,
        parameters: Mapping[str, Any],
        effective_date: date
    ) -> Money:
        """국가별 비용 계산

        적용 가능한 규칙이 없으면 0원(해당 통화)을 반환합니다.
        """
        return self.calculate_country_breakdown(country_code, parameters, effective_date).total

    def calculate_total_cost(
        self,
        country_codes: Iterable[str],
        parameters: Mapping[str, Any],
        effective_date: date
    ) -> PricingResult:
        """여러 국가의 비용과 총합 계산

        Raises:
            CurrencyMismatchError: 국가별 결과의 통화가 서로 다른 경우
                (통화 환산은 엔진 호출 전에 수행해야 함)
        """
        results = [
            self.calculate_country_breakdown(code, parameters, effective_date)
            for code in country_codes
        ]

        if results:
            total = Money.total((result.total for result in results), results[0].total.currency)
        else:
            total = Money.zero((parameters or {}).get(CURRENCY_PARAMETER) or self.default_currency)

        return PricingResult(countries=results, subtotal=total, total=total)


def _parse_for_rule(rule: Rule, text: str) -> List[ExpressionToken]:
    try:
        return parse(text)
    except RuleEngineError as e:
        raise e.attach(rule_id=rule.rule_id, expression=text)
