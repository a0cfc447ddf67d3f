"""공용 테스트 설정"""

import pytest

from vatpricing.config import reset_settings
from vatpricing.core import reset_default_registry


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """환경 변수 설정과 기본 레지스트리를 테스트마다 초기화"""
    for name in (
        "VATPRICING_DEFAULT_CURRENCY",
        "VATPRICING_RULES_DIR",
        "VATPRICING_AUDIT_LOG",
        "VATPRICING_MAX_EXPRESSION_LENGTH",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    reset_default_registry()
    yield
    reset_settings()
    reset_default_registry()
