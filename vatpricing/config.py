"""애플리케이션 설정

환경 변수에서 설정을 읽습니다. 지정하지 않은 값은 기본값을 사용합니다.

    VATPRICING_DEFAULT_CURRENCY       기본 통화 (기본값: EUR)
    VATPRICING_RULES_DIR              규칙 YAML 디렉토리 (기본값: ./rules)
    VATPRICING_AUDIT_LOG              감사 로그 파일 (기본값: 없음)
    VATPRICING_MAX_EXPRESSION_LENGTH  수식 최대 길이 (기본값: 2000)
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


DEFAULT_RULES_DIR = Path(__file__).parent.parent / "rules"


@dataclass(frozen=True)
class Settings:
    """규칙 엔진 설정

    Attributes:
        default_currency: 파라미터와 국가 표 어디에도 통화가 없을 때 쓰는 통화
        rules_dir: 규칙 YAML 파일 디렉토리
        audit_log_file: 감사 로그(JSON lines) 파일 경로 (None이면 기록하지 않음)
        max_expression_length: 규칙 수식 최대 길이
    """

    default_currency: str = "EUR"
    rules_dir: Path = DEFAULT_RULES_DIR
    audit_log_file: Optional[str] = None
    max_expression_length: int = 2000

    @classmethod
    def from_env(cls) -> "Settings":
        """환경 변수에서 설정 생성"""
        return cls(
            default_currency=os.getenv("VATPRICING_DEFAULT_CURRENCY", "EUR").upper(),
            rules_dir=Path(os.getenv("VATPRICING_RULES_DIR", str(DEFAULT_RULES_DIR))),
            audit_log_file=os.getenv("VATPRICING_AUDIT_LOG") or None,
            max_expression_length=int(os.getenv("VATPRICING_MAX_EXPRESSION_LENGTH", "2000")),
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """전역 설정 가져오기 (처음 호출할 때 환경 변수에서 생성)"""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """전역 설정 초기화 (주로 테스트용)"""
    global _settings
    _settings = None
