"""RuleRegistry 테스트"""

from datetime import date
from decimal import Decimal

import pytest

from vatpricing.config import DEFAULT_RULES_DIR
from vatpricing.core import (
    Money,
    Rule,
    RuleRegistry,
    RuleType,
    RuleValidationError,
    get_default_registry,
)


RULES_YAML = """
rules:
  - rule_id: DE-BASE
    country_code: de
    rule_type: VatRate
    expression: basePrice * filingsPerYear
    effective_from: 2024-01-01
    priority: 1
  - rule_id: DE-REPORT
    country_code: DE
    rule_type: SPECIAL_REQUIREMENT
    expression: reportsPerYear * 25
    effective_from: 2024-01-01
    priority: 2
    parameters:
      - name: reportsPerYear
        default: 4
"""

SINGLE_RULE_YAML = """
rule_id: FR-BASE
country_code: FR
rule_type: VatRate
expression: "150"
effective_from: 2024-01-01
"""


class TestRuleRegistry:
    """규칙 카탈로그 테스트"""

    def test_load_list_file(self, tmp_path):
        (tmp_path / "rules.yaml").write_text(RULES_YAML, encoding="utf-8")

        registry = RuleRegistry(tmp_path)

        assert len(registry) == 2
        assert registry.load_errors == []
        rule = registry.get_rule("DE-BASE")
        assert rule.country_code == "DE"
        assert rule.rule_type == RuleType.VAT_RATE
        assert rule.effective_from == date(2024, 1, 1)
        assert registry.get_rule("DE-REPORT").parameters[0].default == 4

    def test_load_single_rule_file(self, tmp_path):
        (tmp_path / "fr.yml").write_text(SINGLE_RULE_YAML, encoding="utf-8")

        registry = RuleRegistry(tmp_path)

        rule = registry.get_rule("FR-BASE")
        assert rule.priority == 100
        assert rule.expression == "150"

    def test_broken_file_recorded(self, tmp_path):
        """잘못된 파일은 기록하고 나머지 파일은 로드"""
        (tmp_path / "a_good.yaml").write_text(RULES_YAML, encoding="utf-8")
        (tmp_path / "b_bad_expression.yaml").write_text(
            "rule_id: BAD\ncountry_code: DE\nrule_type: VatRate\n"
            "expression: \"2 +\"\neffective_from: 2024-01-01\n",
            encoding="utf-8"
        )
        (tmp_path / "c_missing_field.yaml").write_text(
            "rule_id: NOEXPR\ncountry_code: DE\nrule_type: VatRate\n",
            encoding="utf-8"
        )
        (tmp_path / "d_not_yaml.yaml").write_text("rules: [unclosed", encoding="utf-8")

        registry = RuleRegistry(tmp_path)

        assert len(registry) == 2
        assert registry.get_rule("BAD") is None
        assert len(registry.load_errors) == 3

    def test_file_is_all_or_nothing(self, tmp_path):
        """파일 안에 잘못된 규칙이 있으면 그 파일 전체를 등록하지 않음"""
        (tmp_path / "mixed.yaml").write_text(
            RULES_YAML + "  - rule_id: DE-BAD\n    country_code: DE\n    rule_type: VatRate\n"
            "    expression: \"min(1)\"\n    effective_from: 2024-01-01\n",
            encoding="utf-8"
        )

        registry = RuleRegistry(tmp_path)

        assert len(registry) == 0
        assert len(registry.load_errors) == 1

    def test_duplicate_rejected(self):
        registry = RuleRegistry()
        rule = Rule("DE-1", "DE", RuleType.VAT_RATE, "1", date(2024, 1, 1))
        registry.register_rule(rule)

        with pytest.raises(RuleValidationError, match="already exists"):
            registry.register_rule(rule)

    def test_invalid_rule_rejected(self):
        registry = RuleRegistry()
        rule = Rule("DE-1", "DE", RuleType.VAT_RATE, "2 *", date(2024, 1, 1))

        with pytest.raises(RuleValidationError) as exc_info:
            registry.register_rule(rule)

        assert exc_info.value.rule_id == "DE-1"
        assert exc_info.value.errors

    def test_list_rules(self):
        registry = RuleRegistry()
        registry.register_rule(Rule("FR-1", "FR", RuleType.VAT_RATE, "1", date(2024, 1, 1), priority=1))
        registry.register_rule(Rule("DE-2", "DE", RuleType.DISCOUNT, "1", date(2024, 1, 1), priority=2))
        registry.register_rule(Rule("DE-1", "DE", RuleType.VAT_RATE, "1", date(2024, 1, 1), priority=1))

        assert [r.rule_id for r in registry.list_rules()] == ["DE-1", "DE-2", "FR-1"]
        assert [r.rule_id for r in registry.list_rules(RuleType.DISCOUNT)] == ["DE-2"]
        assert registry.list_countries() == ["DE", "FR"]

    def test_snapshot_and_engine(self, tmp_path):
        (tmp_path / "rules.yaml").write_text(RULES_YAML, encoding="utf-8")
        registry = RuleRegistry(tmp_path)

        snapshot = registry.snapshot()
        engine = registry.create_engine()

        assert isinstance(snapshot, tuple)
        cost = engine.calculate_country_cost(
            "DE", {'basePrice': 100, 'filingsPerYear': 4}, date(2024, 6, 1)
        )
        assert cost == Money(Decimal('500'), "EUR")


class TestBundledRules:
    """기본 규칙 파일 테스트"""

    def test_bundled_rules_load(self):
        registry = RuleRegistry(DEFAULT_RULES_DIR)

        assert registry.load_errors == []
        assert len(registry) == 12
        assert "GB" in registry.list_countries()

    def test_default_registry_singleton(self):
        assert get_default_registry() is get_default_registry()
        assert len(get_default_registry()) == 12

    def test_default_registry_from_env(self, tmp_path, monkeypatch):
        (tmp_path / "fr.yaml").write_text(SINGLE_RULE_YAML, encoding="utf-8")
        monkeypatch.setenv("VATPRICING_RULES_DIR", str(tmp_path))

        assert [r.rule_id for r in get_default_registry().list_rules()] == ["FR-BASE"]
