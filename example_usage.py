"""VAT 신고 비용 계산기 사용 예제"""

import logging
from datetime import date

from vatpricing.core import (
    ParameterMissingError,
    PricingCalculator,
    RuleEngineError,
    evaluate_expression,
    get_default_registry,
)
from vatpricing.schemas import CalculationRequest


def example_single_country():
    """기본 케이스: 독일, 월별 신고"""
    print("=" * 60)
    print("예제 1: 독일 월별 신고")
    print("=" * 60)

    # 1. 규칙 카탈로그 로드 (rules/*.yaml)
    registry = get_default_registry()
    print(registry)

    # 2. 계산
    calculator = PricingCalculator(registry.create_engine())
    result = calculator.calculate(CalculationRequest(
        country_codes=["DE"],
        transaction_volume=300,
        filing_frequency="Monthly",
        effective_date=date(2024, 6, 1)
    ))

    # 3. 결과 출력
    print(result.get_summary())
    print()
    for trace in result.traces:
        print(trace)
    print()


def example_multi_country():
    """여러 국가: 물량 할인, 다국가 할인, 부가 서비스"""
    print("=" * 60)
    print("예제 2: 유로존 3개국 분기 신고")
    print("=" * 60)

    calculator = PricingCalculator(get_default_registry().create_engine())
    result = calculator.calculate(CalculationRequest(
        country_codes=["DE", "FR", "IT"],
        transaction_volume=1200,
        filing_frequency="Quarterly",
        service_type="ComplexFiling",
        additional_services=["TaxConsultancy", "ReconciliationServices"],
        effective_date=date(2024, 6, 1),
        parameters={'loyaltyYears': 5}
    ))

    print(result.get_summary())
    for warning in result.warnings:
        print(f"경고: {warning}")
    print()


def example_expression_errors():
    """수식 오류 진단"""
    print("=" * 60)
    print("예제 3: 수식 오류")
    print("=" * 60)

    print(evaluate_expression("round(basePrice * 1.19)", {'basePrice': 250}))

    for expression, parameters in [
        ("basePrice * rate", {'basePrice': 100}),
        ("100 / (transactionVolume - 10)", {'transactionVolume': 10}),
        ("min(1, 2", {}),
    ]:
        try:
            evaluate_expression(expression, parameters)
        except ParameterMissingError as e:
            print(f"파라미터 누락: {e.token} (위치 {e.position})")
        except RuleEngineError as e:
            print(f"{e.code.value}: {e}")
    print()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    example_single_country()
    example_multi_country()
    example_expression_errors()
