"""RuleRegistry: 규칙 카탈로그

YAML 파일에서 규칙을 로드하고 검증하여 보관하는 저장소입니다.
엔진에는 snapshot()으로 만든 불변 규칙 목록을 넘깁니다.

파일 형식:
    단일 규칙:  rule_id: ..., country_code: ..., ...
    여러 규칙:  rules: [{...}, {...}]
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml
from pydantic import ValidationError

from ..config import get_settings
from ..schemas import RuleRecord
from .errors import RuleValidationError
from .rule import Rule, RuleType
from .rule_engine import RuleEngine

logger = logging.getLogger(__name__)


class RuleRegistry:
    """규칙 카탈로그

    Attributes:
        rules: rule_id -> Rule 매핑
        rules_dir: 규칙 YAML 파일 디렉토리
        load_errors: 로드에 실패한 파일과 사유 목록
    """

    def __init__(self, rules_dir: Optional[Path] = None, max_expression_length: Optional[int] = None):
        """
        Args:
            rules_dir: 규칙 YAML 파일 디렉토리 (None이면 로드하지 않음)
            max_expression_length: 수식 최대 길이 (None이면 설정값)
        """
        self.rules: Dict[str, Rule] = {}
        self.rules_dir = Path(rules_dir) if rules_dir is not None else None
        self.max_expression_length = max_expression_length
        self.load_errors: List[Tuple[str, str]] = []

        if self.rules_dir is not None and self.rules_dir.exists():
            self.load_directory(self.rules_dir)

    def register_rule(self, rule: Rule) -> None:
        """규칙 등록

        Raises:
            RuleValidationError: 같은 rule_id가 이미 있거나 규칙이 유효하지 않은 경우
        """
        if rule.rule_id in self.rules:
            raise RuleValidationError(
                "Duplicate rule",
                [f"Rule {rule.rule_id} already exists"],
                rule_id=rule.rule_id
            )

        errors = RuleEngine.validate_rule(rule, self.max_expression_length)
        if errors:
            raise RuleValidationError("Rule validation failed", errors, rule_id=rule.rule_id)

        self.rules[rule.rule_id] = rule

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        return self.rules.get(rule_id)

    def list_rules(self, rule_type: Optional[RuleType] = None) -> List[Rule]:
        """규칙 목록 (국가, 우선순위, 규칙 ID 순)

        Args:
            rule_type: 필터링할 규칙 유형 (None이면 전체)
        """
        rules = list(self.rules.values())
        if rule_type is not None:
            rule_type = RuleType.parse(rule_type)
            rules = [r for r in rules if r.rule_type == rule_type]
        return sorted(rules, key=lambda r: (r.country_code, r.priority, r.rule_id))

    def list_countries(self) -> List[str]:
        return sorted({rule.country_code for rule in self.rules.values()})

    def snapshot(self) -> Tuple[Rule, ...]:
        """엔진에 넘길 불변 규칙 목록"""
        return tuple(self.list_rules())

    def create_engine(self, default_currency: Optional[str] = None) -> RuleEngine:
        return RuleEngine(self.snapshot(), default_currency=default_currency)

    def load_directory(self, rules_dir: Path) -> int:
        """디렉토리의 모든 .yml, .yaml 파일 로드

        실패한 파일은 load_errors에 기록하고 나머지 파일은 계속 로드합니다.

        Returns:
            새로 등록된 규칙 수
        """
        loaded = 0
        for yaml_file in sorted(Path(rules_dir).glob("*.y*ml")):
            try:
                loaded += self.load_file(yaml_file)
            except (OSError, yaml.YAMLError, ValueError) as e:
                logger.warning("Failed to load rule file %s: %s", yaml_file, e)
                self.load_errors.append((str(yaml_file), str(e)))
        return loaded

    def load_file(self, file_path: Path) -> int:
        """YAML 파일 하나에서 규칙 로드

        파일 안의 규칙은 모두 검증한 뒤에 등록합니다. 하나라도 실패하면
        그 파일의 규칙은 등록하지 않습니다.

        Returns:
            등록된 규칙 수

        Raises:
            RuleValidationError: 파일 형식이나 규칙이 유효하지 않은 경우
            yaml.YAMLError: YAML 파싱 오류
        """
        with open(file_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict):
            raise RuleValidationError(
                "Invalid rule file format",
                [f"규칙 파일은 매핑이어야 합니다: {file_path}"]
            )

        records = data['rules'] if 'rules' in data else [data]
        if not isinstance(records, list):
            raise RuleValidationError(
                "Invalid rule file format",
                [f"'rules'는 목록이어야 합니다: {file_path}"]
            )

        rules = [self._parse_rule_data(record) for record in records]

        seen = set()
        for rule in rules:
            if rule.rule_id in seen or rule.rule_id in self.rules:
                raise RuleValidationError(
                    "Duplicate rule",
                    [f"Rule {rule.rule_id} already exists"],
                    rule_id=rule.rule_id
                )
            seen.add(rule.rule_id)
            errors = RuleEngine.validate_rule(rule, self.max_expression_length)
            if errors:
                raise RuleValidationError("Rule validation failed", errors, rule_id=rule.rule_id)

        for rule in rules:
            self.register_rule(rule)

        logger.info("Loaded %d rules from %s", len(rules), file_path)
        return len(rules)

    def _parse_rule_data(self, data: dict) -> Rule:
        """딕셔너리에서 Rule 생성

        Raises:
            RuleValidationError: 필수 필드 누락 또는 형식 오류
        """
        try:
            return RuleRecord.model_validate(data).to_rule()
        except ValidationError as e:
            rule_id = data.get('rule_id') if isinstance(data, dict) else None
            raise RuleValidationError(
                "Invalid rule record",
                [f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in e.errors()],
                rule_id=rule_id
            ) from e

    def __len__(self) -> int:
        return len(self.rules)

    def __str__(self) -> str:
        return f"RuleRegistry({len(self)} rules, {len(self.list_countries())} countries)"


_default_registry: Optional[RuleRegistry] = None


def get_default_registry() -> RuleRegistry:
    """기본 규칙 레지스트리 가져오기 (설정의 규칙 디렉토리에서 로드)"""
    global _default_registry
    if _default_registry is None:
        settings = get_settings()
        _default_registry = RuleRegistry(settings.rules_dir, settings.max_expression_length)
    return _default_registry


def reset_default_registry() -> None:
    """기본 규칙 레지스트리 초기화 (주로 테스트용)"""
    global _default_registry
    _default_registry = None
