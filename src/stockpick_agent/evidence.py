# 为每个候选公司构建证据链：来自研究资料的加权因子、资料数值与实时行情的交叉核对结果，以及一句话的过滤结论。
from __future__ import annotations

from stockpick_agent.constants import EVIDENCE_ALGO_VERSION
from stockpick_agent.models import (
    CandidateCompany,
    CheckStatus,
    EvidenceChain,
    EvidenceFactor,
    FilterStageResult,
    LearnedInvestmentCriteria,
    MarketQuote,
    NormalizedPrices,
    RealTimeCheck,
    SourceReference,
)
from stockpick_agent.utils import format_number

THESIS_WEIGHT = 0.3
TARGET_WEIGHT = 0.25
BUY_WEIGHT = 0.2
RATIO_WEIGHT = 0.1
RULE_WEIGHT_SCALE = 0.05
RISK_WEIGHT = -0.05

BUY_FAVORABLE_RATIO = 0.95
BUY_UNFAVORABLE_RATIO = 1.15
PE_TOLERANCE = 0.2

NO_MATERIAL = "자료 없음"


def _money(currency: str, amount: float) -> str:
    return f"{currency} {format_number(amount)}"


def _target_source(sources: list[SourceReference]) -> SourceReference:
    for s in sources:
        if "목표" in s.content or "target" in s.content:
            return s
    return sources[0]


def build_factors(
    company: CandidateCompany, criteria: LearnedInvestmentCriteria | None
) -> list[EvidenceFactor]:
    factors: list[EvidenceFactor] = []
    sources = company.sources
    # ratio citations point at the second document when there is one
    ratio_source = sources[1] if len(sources) > 1 else (sources[0] if sources else None)

    if sources:
        if company.investment_thesis:
            factors.append(
                EvidenceFactor(factor="투자 논거", value=company.investment_thesis, source=sources[0], weight=THESIS_WEIGHT)
            )
        if company.target_price:
            factors.append(
                EvidenceFactor(
                    factor="목표가",
                    value=_money(company.currency, company.target_price),
                    source=_target_source(sources),
                    weight=TARGET_WEIGHT,
                )
            )
        if company.recommended_buy_price:
            factors.append(
                EvidenceFactor(
                    factor="매수 추천가",
                    value=_money(company.currency, company.recommended_buy_price),
                    source=sources[0],
                    weight=BUY_WEIGHT,
                )
            )
        if company.metrics.per:
            factors.append(
                EvidenceFactor(
                    factor="PER", value=format_number(company.metrics.per), source=ratio_source, weight=RATIO_WEIGHT
                )
            )
        if company.metrics.roe:
            factors.append(
                EvidenceFactor(
                    factor="ROE", value=f"{format_number(company.metrics.roe)}%", source=ratio_source, weight=RATIO_WEIGHT
                )
            )

    if criteria is not None:
        for rule in criteria.good_company_rules:
            factors.append(
                EvidenceFactor(
                    factor=f"투자 기준: {rule.rule}",
                    value="교육 자료 기반 판단 기준",
                    source=rule.source,
                    weight=rule.weight * RULE_WEIGHT_SCALE,
                )
            )

    if sources:
        for risk in company.risk_factors:
            factors.append(EvidenceFactor(factor=f"리스크: {risk}", value=risk, source=sources[0], weight=RISK_WEIGHT))

    return factors


def buy_price_status(current: float, reference: float) -> CheckStatus:
    if reference <= 0:
        return "neutral"
    ratio = current / reference
    if ratio <= BUY_FAVORABLE_RATIO:
        return "favorable"
    if ratio > BUY_UNFAVORABLE_RATIO:
        return "unfavorable"
    return "neutral"


def build_real_time_checks(
    company: CandidateCompany, quote: MarketQuote, prices: NormalizedPrices
) -> list[RealTimeCheck]:
    live = _money(quote.currency, quote.current_price)
    checks = [
        RealTimeCheck(
            metric="현재 주가",
            material_value=(
                f"매수추천가 {_money(company.currency, company.recommended_buy_price)}"
                if company.recommended_buy_price
                else NO_MATERIAL
            ),
            real_time_value=live,
            status=buy_price_status(prices.current_price, prices.recommended_buy_price),
        )
    ]

    if company.target_price:
        checks.append(
            RealTimeCheck(
                metric="목표가 대비",
                material_value=f"목표가 {_money(company.currency, company.target_price)}",
                real_time_value=f"현재가 {live}",
                status="favorable" if prices.current_price < prices.target_price else "unfavorable",
            )
        )

    doc_pe, live_pe = company.metrics.per, quote.trailing_pe
    if doc_pe and live_pe:
        checks.append(
            RealTimeCheck(
                metric="PER",
                material_value=f"자료: {format_number(doc_pe)}",
                real_time_value=f"실시간: {live_pe:.2f}",
                status="favorable" if abs(doc_pe - live_pe) / abs(doc_pe) < PE_TOLERANCE else "neutral",
            )
        )

    doc_pb, live_pb = company.metrics.pbr, quote.price_to_book
    if doc_pb and live_pb:
        checks.append(
            RealTimeCheck(
                metric="PBR",
                material_value=f"자료: {format_number(doc_pb)}",
                real_time_value=f"실시간: {live_pb:.2f}",
                status="favorable" if live_pb <= doc_pb else "neutral",
            )
        )

    if quote.target_mean_price:
        checks.append(
            RealTimeCheck(
                metric="애널리스트 컨센서스",
                material_value=(
                    f"내 자료 목표가 {_money(company.currency, company.target_price)}"
                    if company.target_price
                    else NO_MATERIAL
                ),
                real_time_value=f"Yahoo 컨센서스 {_money(quote.currency, quote.target_mean_price)}",
                status="favorable" if quote.current_price < quote.target_mean_price else "unfavorable",
            )
        )

    return checks


def decision_summary(company: CandidateCompany, filter_results: list[FilterStageResult]) -> str:
    failed = [r.stage_name for r in filter_results if not r.passed]
    if not failed:
        return f"{company.name}: 모든 필터 통과 - 매수 유효"
    return f"{company.name}: {', '.join(failed)} 단계에서 제외됨"


def build_evidence_chain(
    company: CandidateCompany,
    quote: MarketQuote,
    prices: NormalizedPrices,
    filter_results: list[FilterStageResult],
    criteria: LearnedInvestmentCriteria | None,
) -> EvidenceChain:
    """Audit trail for one candidate. Display only, never fed back into the score."""
    return EvidenceChain(
        algo_version=EVIDENCE_ALGO_VERSION,
        decision=decision_summary(company, filter_results),
        factors=build_factors(company, criteria),
        real_time_checks=build_real_time_checks(company, quote, prices),
    )
