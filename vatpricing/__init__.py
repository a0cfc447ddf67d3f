"""VAT 신고 비용 규칙 엔진"""

from .core import PricingCalculator, RuleEngine, RuleRegistry
from .schemas import CalculationRequest, RuleRecord

__version__ = "0.1.0"

__all__ = [
    'PricingCalculator',
    'RuleEngine',
    'RuleRegistry',
    'CalculationRequest',
    'RuleRecord',
]
