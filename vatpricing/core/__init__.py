"""핵심 비즈니스 로직"""

from .errors import (
    ErrorCode,
    RuleEngineError,
    ExpressionSyntaxError,
    StructuralEvaluationError,
    EvaluationError,
    ParameterMissingError,
    TypeConversionError,
    ExpressionArithmeticError,
    CurrencyMismatchError,
    RuleValidationError,
    EvaluationOutcome,
)
from .expression_parser import ExpressionToken, TokenKind, parse, validate_expression
from .expression_evaluator import evaluate, try_evaluate, evaluate_expression
from .money import Money, COUNTRY_CURRENCIES
from .rule import Rule, RuleParameter, RuleType
from .rule_selector import select_rules
from .calculation_trace import AppliedRule, CountryCostResult, CalculationTrace, PricingResult
from .rule_engine import RuleEngine
from .rule_registry import RuleRegistry, get_default_registry, reset_default_registry
from .pricing_calculator import PricingCalculator

__all__ = [
    'ErrorCode',
    'RuleEngineError',
    'ExpressionSyntaxError',
    'StructuralEvaluationError',
    'EvaluationError',
    'ParameterMissingError',
    'TypeConversionError',
    'ExpressionArithmeticError',
    'CurrencyMismatchError',
    'RuleValidationError',
    'EvaluationOutcome',
    'ExpressionToken',
    'TokenKind',
    'parse',
    'validate_expression',
    'evaluate',
    'try_evaluate',
    'evaluate_expression',
    'Money',
    'COUNTRY_CURRENCIES',
    'Rule',
    'RuleParameter',
    'RuleType',
    'select_rules',
    'AppliedRule',
    'CountryCostResult',
    'CalculationTrace',
    'PricingResult',
    'RuleEngine',
    'RuleRegistry',
    'get_default_registry',
    'reset_default_registry',
    'PricingCalculator',
]
