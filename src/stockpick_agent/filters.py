# 实现四阶段过滤流水线（有效性、价格、可买入性、期限可实现性），每个阶段都给出通过/淘汰结论及可读原因，淘汰记录保留用于审计。
from __future__ import annotations

import logging
import math
from functools import partial

from stockpick_agent.constants import STAGE_AFFORDABILITY, STAGE_PERIOD, STAGE_PRICE, STAGE_VALIDITY
from stockpick_agent.metrics import mean_monthly_return, monthly_returns
from stockpick_agent.models import (
    CandidateCompany,
    FilterStageResult,
    InvestmentConditions,
    MarketQuote,
    NormalizedPrices,
    PriceBar,
)
from stockpick_agent.utils import format_money

logger = logging.getLogger(__name__)

CHASED_THRESHOLD = 1.15
DROPPED_THRESHOLD = 0.85
MIN_ALLOCATION_RATIO = 0.1
FLAT_TREND_MAX_REQUIRED_RETURN = 0.05
PERIOD_TOLERANCE = 1.5


def _result(stage: int, name: str, passed: bool, reason: str, caveat: bool = False) -> FilterStageResult:
    return FilterStageResult(stage=stage, stage_name=name, passed=passed, reason=reason, caveat=caveat)


def stage_validity(company: CandidateCompany, ticker: str | None) -> FilterStageResult:
    if not ticker:
        return _result(1, STAGE_VALIDITY, False, f"{company.name}: 시세 제공처에서 종목을 찾을 수 없음")
    if not company.target_price and not company.recommended_buy_price:
        return _result(1, STAGE_VALIDITY, False, f"{company.name}: 목표가 또는 매수추천가 정보가 없음")
    return _result(1, STAGE_VALIDITY, True, f"{company.name}: 티커 {ticker} 매칭, 가격 데이터 확인됨")


def stage_price_check(company: CandidateCompany, prices: NormalizedPrices) -> FilterStageResult:
    fmt = partial(format_money, currency=prices.currency)
    current, target, buy = prices.current_price, prices.target_price, prices.recommended_buy_price

    if company.target_price and current >= target:
        return _result(
            2,
            STAGE_PRICE,
            False,
            f"현재가({fmt(current)})가 이미 목표가({fmt(target)})에 도달 - 상승 여력 없음",
        )

    if company.recommended_buy_price and current > buy * CHASED_THRESHOLD:
        return _result(
            2,
            STAGE_PRICE,
            True,
            f"현재가가 매수추천가 대비 15% 이상 높음 - 감점 요인 (현재가: {fmt(current)}, 매수추천가: {fmt(buy)})",
            caveat=True,
        )

    if company.recommended_buy_price and current < buy * DROPPED_THRESHOLD:
        return _result(
            2,
            STAGE_PRICE,
            True,
            f"현재가가 매수추천가 대비 급락 중 - 추가 검증 필요 (현재가: {fmt(current)}, 매수추천가: {fmt(buy)})",
            caveat=True,
        )

    return _result(2, STAGE_PRICE, True, f"가격 조건 충족 (현재가: {fmt(current)}, 목표가: {fmt(target)})")


def stage_affordability(
    quote: MarketQuote, prices: NormalizedPrices, amount: float
) -> FilterStageResult:
    fmt = partial(format_money, currency=prices.currency)
    price = prices.current_price
    if price <= 0:
        return _result(3, STAGE_AFFORDABILITY, False, "현재가 정보가 없어 매수 가능 수량을 계산할 수 없음")

    # USD listings are exempt from the one-share rule; the allocation check below still applies.
    if amount < price and quote.currency != "USD":
        return _result(
            3,
            STAGE_AFFORDABILITY,
            False,
            f"투자금({fmt(amount)})으로 1주도 매수 불가 (1주 가격: {fmt(price)})",
        )

    max_shares = math.floor(amount / price)
    allocation_ratio = (max_shares * price) / amount

    if allocation_ratio < MIN_ALLOCATION_RATIO and max_shares < 1:
        return _result(
            3,
            STAGE_AFFORDABILITY,
            False,
            f"투자금 대비 유의미한 배분 불가 (최대 {max_shares}주, 배분율 {allocation_ratio * 100:.1f}%)",
        )

    return _result(
        3,
        STAGE_AFFORDABILITY,
        True,
        f"매수 가능 (최대 {max_shares}주, 배분율 {allocation_ratio * 100:.1f}%)",
    )


def stage_period_feasibility(
    company: CandidateCompany,
    prices: NormalizedPrices,
    history: list[PriceBar],
    period_months: int,
) -> FilterStageResult:
    current, target = prices.current_price, prices.target_price
    if not company.target_price or target <= current or current <= 0:
        return _result(4, STAGE_PERIOD, False, "목표가가 현재가 이하이거나 없음")

    required_return = (target - current) / current
    avg = mean_monthly_return(monthly_returns(history))
    if avg is None:
        return _result(
            4, STAGE_PERIOD, True, "히스토리컬 데이터 부족으로 통과 처리 (추가 검증 필요)", caveat=True
        )

    if avg <= 0:
        if required_return <= FLAT_TREND_MAX_REQUIRED_RETURN:
            return _result(
                4,
                STAGE_PERIOD,
                True,
                f"과거 평균 월 수익률 음수 ({avg * 100:.2f}%)이나 필요 상승률 {required_return * 100:.1f}%로 낮아 통과",
                caveat=True,
            )
        return _result(
            4,
            STAGE_PERIOD,
            False,
            f"과거 평균 월 수익률 음수 ({avg * 100:.2f}%) - 목표 달성 어려움 (필요 상승률 {required_return * 100:.1f}%)",
        )

    estimated_months = required_return / avg
    if estimated_months > period_months * PERIOD_TOLERANCE:
        return _result(
            4,
            STAGE_PERIOD,
            False,
            f"추정 도달 기간({estimated_months:.1f}개월)이 투자기간({period_months}개월)의 1.5배 초과 - 비현실적",
        )
    if estimated_months > period_months:
        return _result(
            4,
            STAGE_PERIOD,
            True,
            f"추정 도달 기간({estimated_months:.1f}개월)이 투자기간({period_months}개월) 초과 - 감점 요인",
            caveat=True,
        )
    return _result(
        4,
        STAGE_PERIOD,
        True,
        f"추정 도달 기간 {estimated_months:.1f}개월 ≤ 투자기간 {period_months}개월 - 실현 가능",
    )


def run_price_stages(
    company: CandidateCompany,
    quote: MarketQuote,
    prices: NormalizedPrices,
    conditions: InvestmentConditions,
) -> list[FilterStageResult]:
    """Stages 2-4. All three always run so the audit trail is complete."""
    results = [
        stage_price_check(company, prices),
        stage_affordability(quote, prices, conditions.amount),
        stage_period_feasibility(company, prices, quote.price_history, conditions.period_months),
    ]
    for r in results:
        logger.debug("%s stage %d (%s): passed=%s %s", company.name, r.stage, r.stage_name, r.passed, r.reason)
    return results


def passed_all(results: list[FilterStageResult]) -> bool:
    return bool(results) and all(r.passed for r in results)
