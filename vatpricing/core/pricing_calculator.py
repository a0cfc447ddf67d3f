"""PricingCalculator: 다국가 VAT 신고 비용 계산기

요청을 파라미터 백으로 바꾸고 국가별 규칙 엔진 결과를 합산한 뒤
물량 할인, 다국가 할인, 부가 서비스 금액을 차례로 적용합니다.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from ..audit import AuditService, CalculationAuditor
from ..config import Settings, get_settings
from ..schemas import CalculationRequest
from .calculation_trace import CalculationTrace, CountryCostResult, PricingResult
from .errors import RuleEngineError
from .money import Money
from .rule_engine import CURRENCY_PARAMETER, RuleEngine

logger = logging.getLogger(__name__)

FILINGS_PER_YEAR = {
    'Monthly': 12,
    'Bi-Monthly': 6,
    'Quarterly': 4,
    'Semi-Annually': 2,
    'Annually': 1,
}

BASE_PRICES = {
    'StandardFiling': Decimal('100'),
    'ComplexFiling': Decimal('200'),
    'PriorityService': Decimal('300'),
}

ADDITIONAL_SERVICE_PRICES = {
    'TaxConsultancy': Decimal('500'),
    'HistoricalDataProcessing': Decimal('1000'),
    'ReconciliationServices': Decimal('750'),
}

# (초과 기준 거래 건수, 할인율 %) 큰 기준부터
VOLUME_DISCOUNT_TIERS = (
    (1000, Decimal('15')),
    (500, Decimal('10')),
    (100, Decimal('5')),
)

# (최소 국가 수, 할인율 %) 큰 기준부터
MULTI_COUNTRY_DISCOUNT_TIERS = (
    (10, Decimal('20')),
    (5, Decimal('15')),
    (3, Decimal('10')),
)


def volume_discount_percentage(transaction_volume: int) -> Decimal:
    """월 거래 건수에 따른 할인율 (기준 초과 시 적용)"""
    for threshold, percentage in VOLUME_DISCOUNT_TIERS:
        if transaction_volume > threshold:
            return percentage
    return Decimal('0')


def multi_country_discount_percentage(countries_count: int) -> Decimal:
    """국가 수에 따른 할인율 (기준 이상 시 적용)"""
    for threshold, percentage in MULTI_COUNTRY_DISCOUNT_TIERS:
        if countries_count >= threshold:
            return percentage
    return Decimal('0')


class PricingCalculator:
    """다국가 VAT 신고 비용 계산기

    Attributes:
        engine: 국가별 규칙 엔진
        settings: 설정
        audit_service: 감사 서비스
    """

    def __init__(
        self,
        engine: RuleEngine,
        settings: Optional[Settings] = None,
        audit_service: Optional[AuditService] = None
    ):
        self.engine = engine
        self.settings = settings or get_settings()
        self.audit_service = audit_service or AuditService(self.settings.audit_log_file)

    def build_parameters(self, request: CalculationRequest) -> Dict[str, Any]:
        """요청에서 규칙 평가용 파라미터 백 생성

        알 수 없는 신고 주기나 서비스 유형은 값을 넣지 않습니다.
        그 값을 참조하는 규칙은 파라미터 누락으로 실패합니다.
        """
        parameters: Dict[str, Any] = {
            'transactionVolume': request.transaction_volume,
            'filingFrequency': request.filing_frequency,
            'serviceType': request.service_type,
            'countriesCount': len(request.country_codes),
            'additionalServicesCount': len(request.additional_services),
        }
        if request.filing_frequency in FILINGS_PER_YEAR:
            parameters['filingsPerYear'] = FILINGS_PER_YEAR[request.filing_frequency]
        if request.service_type in BASE_PRICES:
            parameters['basePrice'] = BASE_PRICES[request.service_type]
        if request.currency_code:
            parameters[CURRENCY_PARAMETER] = request.currency_code
        parameters.update(request.parameters)
        return parameters

    def calculate(self, request: CalculationRequest) -> PricingResult:
        """가격 계산

        Args:
            request: 검증된 계산 요청

        Returns:
            국가별 결과, 할인, 부가 서비스, 계산 추적을 담은 결과

        Raises:
            RuleEngineError: 규칙 평가 실패 또는 국가 간 통화 불일치
        """
        auditor = CalculationAuditor(self.audit_service)
        parameters = self.build_parameters(request)
        auditor.log_calculation_start(request.model_dump())

        traces: List[CalculationTrace] = []
        warnings: List[str] = []

        if request.filing_frequency not in FILINGS_PER_YEAR:
            warnings.append(f"알 수 없는 신고 주기: {request.filing_frequency}")
        if request.service_type not in BASE_PRICES:
            warnings.append(f"알 수 없는 서비스 유형: {request.service_type}")

        # 1. 국가별 비용
        countries = self._calculate_countries(request, parameters, auditor, traces)

        # 2. 소계
        currency = countries[0].total.currency
        try:
            subtotal = Money.total((country.total for country in countries), currency)
        except RuleEngineError as e:
            auditor.log_error(e)
            raise
        traces.append(CalculationTrace(
            step_name="calculate_subtotal",
            input_values={country.country_code: country.total for country in countries},
            applied_rule="sum_of_countries",
            output_value=subtotal,
            formula="sum(country totals)"
        ))

        # 3. 할인
        discounts: List[Tuple[str, Decimal]] = []
        total = subtotal
        total = self._apply_discount(
            total, "VolumeDiscount",
            volume_discount_percentage(request.transaction_volume),
            {'transactionVolume': request.transaction_volume},
            discounts, traces
        )
        total = self._apply_discount(
            total, "MultiCountryDiscount",
            multi_country_discount_percentage(len(countries)),
            {'countriesCount': len(countries)},
            discounts, traces
        )

        # 4. 부가 서비스
        additional_services = self._add_additional_services(request, currency, warnings)
        for service_id, cost in additional_services.items():
            total = total.add(cost)
        if additional_services:
            traces.append(CalculationTrace(
                step_name="add_additional_services",
                input_values=dict(additional_services),
                applied_rule="additional_services",
                output_value=total,
                formula="discounted_total + sum(service prices)"
            ))

        for warning in warnings:
            logger.warning(warning)

        result = PricingResult(
            countries=countries,
            subtotal=subtotal,
            total=total,
            discounts=discounts,
            additional_services=additional_services,
            traces=traces,
            warnings=warnings
        )
        auditor.log_calculation_complete(result)
        return result

    def _calculate_countries(
        self,
        request: CalculationRequest,
        parameters: Dict[str, Any],
        auditor: CalculationAuditor,
        traces: List[CalculationTrace]
    ) -> List[CountryCostResult]:
        countries = []
        for country_code in request.country_codes:
            try:
                result = self.engine.calculate_country_breakdown(
                    country_code, parameters, request.effective_date
                )
            except RuleEngineError as e:
                auditor.log_error(e, country_code=country_code)
                raise

            auditor.log_country_result(result)
            traces.append(CalculationTrace(
                step_name=f"calculate_country_{result.country_code}",
                input_values=dict(result.amounts),
                applied_rule=", ".join(result.applied_rule_ids) or "no_applicable_rules",
                output_value=result.total,
                notes=f"skipped: {', '.join(result.skipped_rules)}" if result.skipped_rules else None
            ))
            countries.append(result)
        return countries

    def _apply_discount(
        self,
        total: Money,
        name: str,
        percentage: Decimal,
        input_values: Dict[str, Any],
        discounts: List[Tuple[str, Decimal]],
        traces: List[CalculationTrace]
    ) -> Money:
        if percentage <= 0:
            return total

        discounted = total.apply_discount(percentage)
        discounts.append((name, percentage))
        traces.append(CalculationTrace(
            step_name=f"apply_{name}",
            input_values={**input_values, 'before': total, 'percentage': percentage},
            applied_rule=name,
            output_value=discounted,
            formula=f"total × (1 - {percentage}/100)"
        ))
        return discounted

    def _add_additional_services(
        self,
        request: CalculationRequest,
        currency: str,
        warnings: List[str]
    ) -> Dict[str, Money]:
        services: Dict[str, Money] = {}
        for service_id in request.additional_services:
            price = ADDITIONAL_SERVICE_PRICES.get(service_id)
            if price is None:
                warnings.append(f"알 수 없는 부가 서비스: {service_id}")
                continue
            services[service_id] = Money(price, currency)
        return services
