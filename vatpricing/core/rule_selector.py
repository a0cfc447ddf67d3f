"""규칙 선택: 국가, 유형, 유효 기간으로 규칙을 거르고 우선순위로 정렬"""

from datetime import date
from typing import Iterable, List, Optional

from .money import normalize_country_code
from .rule import Rule, RuleType


def select_rules(
    rules: Iterable[Rule],
    country_code: str,
    effective_date: date,
    rule_type: Optional[RuleType] = None
) -> List[Rule]:
    """적용 가능한 규칙 목록

    조건: 국가 일치, 활성 상태, effective_from <= 기준일 <= effective_to(없으면 무기한),
    유형 필터가 있으면 유형 일치.
    정렬: 우선순위 오름차순, 같으면 규칙 ID 오름차순.

    Args:
        rules: 규칙 카탈로그
        country_code: 국가 코드
        effective_date: 기준일
        rule_type: 규칙 유형 필터 (None이면 전체)

    Returns:
        정렬된 규칙 리스트
    """
    country = normalize_country_code(country_code)
    if rule_type is not None:
        rule_type = RuleType.parse(rule_type)

    selected = [
        rule for rule in rules
        if rule.country_code == country
        and rule.is_active
        and rule.is_effective_on(effective_date)
        and (rule_type is None or rule.rule_type == rule_type)
    ]

    return sorted(selected, key=lambda r: r.sort_key)
