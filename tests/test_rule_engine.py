"""RuleEngine 테스트"""

from datetime import date
from decimal import Decimal

import pytest

from vatpricing.core import (
    CurrencyMismatchError,
    ExpressionArithmeticError,
    ExpressionSyntaxError,
    Money,
    ParameterMissingError,
    Rule,
    RuleEngine,
    RuleParameter,
    RuleType,
    RuleValidationError,
)


def make_rule(rule_id, country_code="DE", expression="1", **kwargs):
    kwargs.setdefault('rule_type', RuleType.VAT_RATE)
    kwargs.setdefault('effective_from', date(2023, 1, 1))
    return Rule(rule_id=rule_id, country_code=country_code, expression=expression, **kwargs)


@pytest.fixture
def selection_rules():
    return [
        make_rule("DE-A", priority=2),
        make_rule("DE-B", priority=1, effective_to=date(2023, 5, 31)),
        make_rule("DE-C", priority=1, effective_from=date(2023, 6, 1)),
        make_rule("DE-0", priority=2, effective_to=date(2023, 6, 1)),
        make_rule("DE-FUTURE", priority=1, effective_from=date(2024, 1, 1)),
        make_rule("DE-INACTIVE", priority=1, is_active=False),
        make_rule("DE-DISCOUNT", priority=3, rule_type=RuleType.DISCOUNT),
        make_rule("FR-A", country_code="FR", priority=1),
    ]


class TestRuleSelection:
    """규칙 선택 테스트"""

    def test_select_by_country_and_date(self, selection_rules):
        """국가, 기간, 활성 여부로 거르고 (우선순위, ID) 순으로 정렬"""
        engine = RuleEngine(selection_rules)

        rules = engine.get_applicable_rules("DE", date(2023, 6, 1))

        assert [r.rule_id for r in rules] == ["DE-C", "DE-0", "DE-A", "DE-DISCOUNT"]

    def test_effective_range_inclusive(self, selection_rules):
        """시행일과 종료일 당일 모두 포함"""
        engine = RuleEngine(selection_rules)

        ids_on_end = [r.rule_id for r in engine.get_applicable_rules("DE", date(2023, 5, 31))]
        assert "DE-B" in ids_on_end
        assert "DE-C" not in ids_on_end

        ids_after = [r.rule_id for r in engine.get_applicable_rules("DE", date(2023, 6, 2))]
        assert "DE-0" not in ids_after

    def test_country_code_normalized(self, selection_rules):
        engine = RuleEngine(selection_rules)
        assert [r.rule_id for r in engine.get_applicable_rules(" fr ", date(2023, 6, 1))] == ["FR-A"]

    def test_documented_selection_example(self):
        """DE, 2023-06-01: 연중 규칙(p1)과 무기한 규칙(p2) 모두 선택"""
        rules = [
            make_rule("DE-OPEN", priority=2, effective_from=date(2023, 1, 1)),
            make_rule("DE-2023", priority=1, effective_from=date(2023, 1, 1), effective_to=date(2023, 12, 31)),
        ]
        engine = RuleEngine(rules)

        selected = engine.get_applicable_rules("DE", date(2023, 6, 1))

        assert [r.rule_id for r in selected] == ["DE-2023", "DE-OPEN"]

    def test_filter_by_type(self, selection_rules):
        engine = RuleEngine(selection_rules)

        rules = engine.get_applicable_rules_by_type("DE", RuleType.DISCOUNT, date(2023, 6, 1))

        assert [r.rule_id for r in rules] == ["DE-DISCOUNT"]

    def test_unknown_country(self, selection_rules):
        engine = RuleEngine(selection_rules)
        assert engine.get_applicable_rules("SE", date(2023, 6, 1)) == []

    def test_rules_none_rejected(self):
        with pytest.raises(ValueError):
            RuleEngine(None)


class TestConditions:
    """조건식 검사 테스트"""

    def test_no_condition_is_true(self):
        engine = RuleEngine([])
        assert engine.check_conditions(make_rule("R1"), {})

    def test_positive_is_true(self):
        engine = RuleEngine([])
        rule = make_rule("R1", condition="transactionVolume - 100")

        assert engine.check_conditions(rule, {'transactionVolume': 150})
        assert not engine.check_conditions(rule, {'transactionVolume': 100})
        assert not engine.check_conditions(rule, {'transactionVolume': 50})

    def test_blank_condition_means_none(self):
        rule = make_rule("R1", condition="   ")
        assert rule.condition is None
        assert RuleEngine([]).check_conditions(rule, {})

    def test_missing_parameter_raises(self):
        """파라미터 누락은 거짓이 아니라 오류"""
        engine = RuleEngine([])
        rule = make_rule("R1", condition="loyaltyYears - 2")

        with pytest.raises(ParameterMissingError) as exc_info:
            engine.check_conditions(rule, {})

        assert exc_info.value.rule_id == "R1"
        assert exc_info.value.expression == "loyaltyYears - 2"

    def test_condition_uses_declared_default(self):
        engine = RuleEngine([])
        rule = make_rule(
            "R1",
            condition="loyaltyYears - 2",
            parameters=(RuleParameter("loyaltyYears", default=5),)
        )
        assert engine.check_conditions(rule, {})
        assert not engine.check_conditions(rule, {'loyaltyYears': 1})


class TestEvaluateRules:
    """규칙 평가 테스트"""

    def test_evaluate_rule(self):
        engine = RuleEngine([])
        rule = make_rule("R1", expression="basePrice * filingsPerYear")

        assert engine.evaluate_rule(rule, {'basePrice': 100, 'filingsPerYear': 4}) == Decimal('400')

    def test_evaluate_rules_ignores_conditions(self):
        """일괄 평가는 조건을 검사하지 않는다"""
        engine = RuleEngine([])
        rules = [
            make_rule("R1", expression="10", condition="0"),
            make_rule("R2", expression="x * 2"),
        ]

        results = engine.evaluate_rules(rules, {'x': 3})

        assert results == {"R1": Decimal('10'), "R2": Decimal('6')}
        assert list(results) == ["R1", "R2"]

    def test_failure_carries_rule_id(self):
        engine = RuleEngine([])
        rules = [make_rule("R1", expression="1"), make_rule("R2", expression="1 / 0")]

        with pytest.raises(ExpressionArithmeticError) as exc_info:
            engine.evaluate_rules(rules, {})

        assert exc_info.value.rule_id == "R2"
        assert exc_info.value.expression == "1 / 0"

    def test_syntax_error_carries_rule_id(self):
        engine = RuleEngine([])
        with pytest.raises(ExpressionSyntaxError) as exc_info:
            engine.evaluate_rule(make_rule("BAD", expression="2 +"), {})
        assert exc_info.value.rule_id == "BAD"

    def test_try_evaluate_rules(self):
        """실패한 규칙만 오류 결과로 반환"""
        engine = RuleEngine([])
        rules = [make_rule("OK", expression="5"), make_rule("MISSING", expression="y")]

        outcomes = engine.try_evaluate_rules(rules, {})

        assert outcomes["OK"].ok
        assert outcomes["OK"].value == Decimal('5')
        assert not outcomes["MISSING"].ok
        assert isinstance(outcomes["MISSING"].error, ParameterMissingError)
        assert outcomes["MISSING"].error.rule_id == "MISSING"

    def test_caller_value_overrides_default(self):
        engine = RuleEngine([])
        rule = make_rule("R1", expression="rate", parameters=(RuleParameter("rate", default=1),))

        assert engine.evaluate_rule(rule, {}) == Decimal('1')
        assert engine.evaluate_rule(rule, {'rate': 7}) == Decimal('7')


class TestValidateRule:
    """규칙 정의 검증 테스트"""

    def test_valid_rule(self):
        assert RuleEngine.validate_rule(make_rule("R1", expression="a + b", condition="a")) == []

    def test_collects_all_errors(self):
        rule = make_rule(
            "R1",
            expression="2 +",
            condition="(1",
            parameters=(RuleParameter("a"), RuleParameter("a"))
        )

        errors = RuleEngine.validate_rule(rule)

        assert len(errors) == 3
        assert any(e.startswith("expression") for e in errors)
        assert any(e.startswith("condition") for e in errors)
        assert any("a" in e and "중복" in e for e in errors)

    def test_expression_too_long(self):
        rule = make_rule("R1", expression="1 + " * 10 + "1")
        errors = RuleEngine.validate_rule(rule, max_expression_length=20)
        assert len(errors) == 1
        assert "20" in errors[0]

    def test_validate_rule_expression(self):
        assert RuleEngine.validate_rule_expression("basePrice * 2")
        assert not RuleEngine.validate_rule_expression("basePrice *")

    def test_invalid_rule_construction(self):
        with pytest.raises(RuleValidationError):
            make_rule("R1", effective_from=date(2024, 1, 1), effective_to=date(2023, 1, 1))
        with pytest.raises(RuleValidationError):
            make_rule("R1", country_code="DEU")
        with pytest.raises(RuleValidationError):
            make_rule("R1", rule_type="Unknown")
        with pytest.raises(RuleValidationError):
            RuleParameter("1abc")


class TestCountryCost:
    """국가별 비용 합산 테스트"""

    def test_sum_in_priority_order(self):
        rules = [
            make_rule("DE-BASE", expression="basePrice * filingsPerYear", priority=1),
            make_rule("DE-EXTRA", expression="transactionVolume * 0.5", priority=2,
                      rule_type=RuleType.COMPLEXITY),
        ]
        engine = RuleEngine(rules)
        parameters = {'basePrice': 100, 'filingsPerYear': 12, 'transactionVolume': 200}

        result = engine.calculate_country_breakdown("DE", parameters, date(2024, 1, 1))

        assert result.country_code == "DE"
        assert result.applied_rule_ids == ["DE-BASE", "DE-EXTRA"]
        assert result.amounts == {"DE-BASE": Decimal('1200'), "DE-EXTRA": Decimal('100.0')}
        assert result.total == Money(Decimal('1300'), "EUR")

    def test_no_rules_is_zero_in_country_currency(self):
        engine = RuleEngine([])

        cost = engine.calculate_country_cost("GB", {}, date(2024, 1, 1))

        assert cost == Money.zero("GBP")

    def test_unknown_country_uses_default_currency(self):
        engine = RuleEngine([], default_currency="usd")
        assert engine.calculate_country_cost("ZZ", {}, date(2024, 1, 1)) == Money.zero("USD")

    def test_currency_parameter_wins(self):
        engine = RuleEngine([make_rule("GB-BASE", country_code="GB", expression="10")])

        cost = engine.calculate_country_cost("GB", {'currencyCode': "eur"}, date(2024, 1, 1))

        assert cost == Money(Decimal('10'), "EUR")

    def test_condition_false_skipped(self):
        rules = [
            make_rule("DE-BASE", expression="100", priority=1),
            make_rule("DE-HIGH", expression="50", priority=2, condition="transactionVolume - 500"),
        ]
        engine = RuleEngine(rules)

        result = engine.calculate_country_breakdown("DE", {'transactionVolume': 100}, date(2024, 1, 1))

        assert result.applied_rule_ids == ["DE-BASE"]
        assert result.skipped_rules == ("DE-HIGH",)
        assert result.total.amount == Decimal('100')

    def test_discount_subtracted(self):
        rules = [
            make_rule("DE-BASE", expression="100", priority=1),
            make_rule("DE-DISC", expression="30", priority=2, rule_type=RuleType.DISCOUNT),
        ]
        engine = RuleEngine(rules)

        result = engine.calculate_country_breakdown("DE", {}, date(2024, 1, 1))

        assert result.total.amount == Decimal('70')
        assert result.applied_rules[1].amount == Decimal('30')
        assert result.applied_rules[1].contribution == Decimal('-30')

    def test_negative_total_floored_at_zero(self):
        rules = [
            make_rule("DE-BASE", expression="10", priority=1),
            make_rule("DE-DISC", expression="30", priority=2, rule_type=RuleType.DISCOUNT),
        ]
        engine = RuleEngine(rules)

        assert engine.calculate_country_cost("DE", {}, date(2024, 1, 1)) == Money.zero("EUR")

    def test_rule_failure_propagates(self):
        """규칙 하나가 실패하면 국가 계산 전체가 실패"""
        rules = [
            make_rule("DE-BASE", expression="100", priority=1),
            make_rule("DE-BROKEN", expression="missingParam * 2", priority=2),
        ]
        engine = RuleEngine(rules)

        with pytest.raises(ParameterMissingError) as exc_info:
            engine.calculate_country_cost("DE", {}, date(2024, 1, 1))

        assert exc_info.value.rule_id == "DE-BROKEN"

    def test_total_overflow_carries_rule_id(self):
        """합산 중 Decimal 범위 초과는 규칙 ID가 기록된 연산 오류"""
        rules = [
            make_rule("DE-A", expression="x", priority=1),
            make_rule("DE-B", expression="x", priority=1),
        ]
        engine = RuleEngine(rules)

        with pytest.raises(ExpressionArithmeticError) as exc_info:
            engine.calculate_country_cost("DE", {'x': Decimal('9E+999999')}, date(2024, 1, 1))

        assert exc_info.value.rule_id == "DE-B"

    def test_parameters_not_mutated(self):
        rules = [make_rule("DE-BASE", expression="rate", parameters=(RuleParameter("rate", default=3),))]
        engine = RuleEngine(rules)
        bag = {'other': 1}

        engine.calculate_country_cost("DE", bag, date(2024, 1, 1))

        assert bag == {'other': 1}


class TestTotalCost:
    """여러 국가 합산 테스트"""

    def test_total_cost(self):
        rules = [
            make_rule("DE-BASE", expression="100"),
            make_rule("FR-BASE", country_code="FR", expression="150"),
        ]
        engine = RuleEngine(rules)

        result = engine.calculate_total_cost(["DE", "FR"], {}, date(2024, 1, 1))

        assert [c.country_code for c in result.countries] == ["DE", "FR"]
        assert result.total == Money(Decimal('250'), "EUR")

    def test_currency_mismatch(self):
        rules = [
            make_rule("DE-BASE", expression="100"),
            make_rule("GB-BASE", country_code="GB", expression="100"),
        ]
        engine = RuleEngine(rules)

        with pytest.raises(CurrencyMismatchError):
            engine.calculate_total_cost(["DE", "GB"], {}, date(2024, 1, 1))

    def test_no_countries(self):
        engine = RuleEngine([])
        result = engine.calculate_total_cost([], {}, date(2024, 1, 1))
        assert result.total == Money.zero("EUR")
