# 多因子评分模型：预期收益率（波动率折扣）、基本面得分、期限可实现性得分、数据可信度得分、按投资风格加权的最终得分与风险等级，以及学习规则逐条打分与投资策略契合度。
from __future__ import annotations

import math
import re
from typing import NamedTuple

from stockpick_agent.metrics import mean_monthly_return, monthly_returns
from stockpick_agent.models import (
    CandidateCompany,
    InvestmentStrategy,
    InvestmentStyle,
    LearnedInvestmentCriteria,
    MarketQuote,
    NormalizedPrices,
    PriceBar,
    RiskLevel,
    RuleScore,
)


class WeightProfile(NamedTuple):
    expected_return: float
    fundamentals: float
    feasibility: float
    confidence: float


WEIGHT_PROFILES: dict[InvestmentStyle, WeightProfile] = {
    InvestmentStyle.CONSERVATIVE: WeightProfile(0.30, 0.35, 0.25, 0.10),
    InvestmentStyle.AGGRESSIVE: WeightProfile(0.50, 0.20, 0.20, 0.10),
}

FEASIBILITY_SCORES = frozenset({10, 20, 30, 50, 60, 70, 90})


class ConfidenceResult(NamedTuple):
    score: float
    details: list[str]


def _clamp(value: float, lo: float = 0.0, hi: float = 100.0) -> float:
    return max(lo, min(hi, value))


def expected_return(current: float, target: float, period_months: int, volatility: float) -> float:
    """Upside to target in percent, discounted by volatility (the discount never drops below 0.3)."""
    if current <= 0 or target <= 0:
        return 0.0
    base = (target - current) / current * 100.0
    discount = max(0.3, 1.0 - volatility * 0.3)
    return base * discount


def fundamentals_score(
    company: CandidateCompany,
    quote: MarketQuote,
    criteria: LearnedInvestmentCriteria | None,
) -> float:
    score = 50.0

    pe = quote.trailing_pe
    if pe and pe > 0:
        if pe < 10:
            score += 15
        elif pe < 15:
            score += 10
        elif pe < 25:
            score += 5
        elif pe > 50:
            score -= 10

    pb = quote.price_to_book
    if pb and pb > 0:
        if pb < 1:
            score += 15
        elif pb < 2:
            score += 10
        elif pb < 3:
            score += 5
        elif pb > 5:
            score -= 5

    if quote.return_on_equity:
        roe = quote.return_on_equity * 100
        if roe > 20:
            score += 15
        elif roe > 10:
            score += 10
        elif roe > 5:
            score += 5
        elif roe < 0:
            score -= 10

    if quote.dividend_yield and quote.dividend_yield > 0:
        dy = quote.dividend_yield * 100
        if dy > 4:
            score += 10
        elif dy > 2:
            score += 5

    if criteria is not None:
        for rng in criteria.ideal_metric_ranges:
            value = metric_value(quote, rng.metric)
            if value is None:
                continue
            in_range = (rng.min is None or value >= rng.min) and (rng.max is None or value <= rng.max)
            score += 5 if in_range else -3

    return _clamp(score)


def metric_value(quote: MarketQuote, metric: str) -> float | None:
    """Live value for a learned-range metric name. ROE and dividend yield are compared in percent."""
    key = metric.strip().lower().replace("_", "")
    if key == "per":
        return quote.trailing_pe
    if key == "pbr":
        return quote.price_to_book
    if key == "roe":
        return quote.return_on_equity * 100 if quote.return_on_equity else None
    if key == "eps":
        return quote.trailing_eps
    if key == "dividendyield":
        return quote.dividend_yield * 100 if quote.dividend_yield else None
    if key == "forwardpe":
        return quote.forward_pe
    return None


def feasibility_score(current: float, target: float, period_months: int, history: list[PriceBar]) -> int:
    if current <= 0 or target <= 0:
        return 10
    required_return = (target - current) / current
    avg = mean_monthly_return(monthly_returns(history))
    if avg is None:
        return 50
    if avg <= 0:
        return 70 if required_return <= 0 else 20

    estimated_months = required_return / avg
    if estimated_months <= period_months:
        return 90
    if estimated_months <= period_months * 1.5:
        return 60
    if estimated_months <= period_months * 2:
        return 30
    return 10


def confidence_breakdown(company: CandidateCompany, quote: MarketQuote) -> ConfidenceResult:
    score = company.confidence
    details = [f"기초 데이터 신뢰도 ({company.confidence * 100:.0f}%)"]

    if quote.target_mean_price:
        score += 0.1
        details.append("분석가 목표가 존재 (+10%)")
    if quote.trailing_pe:
        score += 0.05
        details.append("실시간 PER 데이터 확인 (+5%)")
    if quote.price_to_book:
        score += 0.05
        details.append("실시간 PBR 데이터 확인 (+5%)")
    if quote.return_on_equity:
        score += 0.05
        details.append("실시간 ROE 데이터 확인 (+5%)")

    points = len(quote.price_history)
    if points > 60:
        score += 0.1
        details.append("충분한 히스토리컬 데이터 보유 (+10%)")
    elif points > 20:
        score += 0.05
        details.append("기초 히스토리컬 데이터 보유 (+5%)")

    n_sources = len(company.sources)
    if n_sources > 3:
        score += 0.1
        details.append("다수의 분석 자료 근거 보유 (+10%)")
    elif n_sources > 1:
        score += 0.05
        details.append("복수의 분석 자료 근거 보유 (+5%)")

    return ConfidenceResult(score=min(1.0, score), details=details)


def confidence_score(company: CandidateCompany, quote: MarketQuote) -> float:
    return confidence_breakdown(company, quote).score


def final_score(
    expected_return_rate: float,
    fundamentals: float,
    feasibility: float,
    confidence: float,
    style: InvestmentStyle | str | None,
) -> int:
    weights = WEIGHT_PROFILES[InvestmentStyle.parse(style)]
    total = (
        _clamp(expected_return_rate) * weights.expected_return
        + _clamp(fundamentals) * weights.fundamentals
        + _clamp(feasibility) * weights.feasibility
        + _clamp(confidence * 100) * weights.confidence
    )
    # half-up, so 62.5 scores 63
    return int(math.floor(_clamp(total) + 0.5))


def price_to_target_ratio(prices: NormalizedPrices) -> float:
    if prices.target_price <= 0:
        return 1.0
    return prices.current_price / prices.target_price


def risk_level(volatility: float, price_to_target: float, style: InvestmentStyle | str | None) -> RiskLevel:
    if InvestmentStyle.parse(style) is InvestmentStyle.CONSERVATIVE:
        if volatility > 0.3 or price_to_target > 0.9:
            return "high"
        if volatility > 0.15 or price_to_target > 0.7:
            return "medium"
        return "low"

    if volatility > 0.5 or price_to_target > 0.95:
        return "high"
    if volatility > 0.3 or price_to_target > 0.85:
        return "medium"
    return "low"


# --- Learned-rule and strategy fit ---

NEUTRAL_RULE_SCORE = 5
DEFAULT_RULE_WEIGHT = 0.5
STOCHASTIC_WINDOW = 14


def _mentions(text: str, *keywords: str) -> bool:
    """Keyword hit; short latin acronyms (roe, per, tam...) must not sit inside a longer word."""
    for kw in keywords:
        if kw.isascii() and kw.isalpha():
            if re.search(rf"(?<![a-z]){kw}(?![a-z])", text):
                return True
        elif kw in text:
            return True
    return False


def _stochastic_k(quote: MarketQuote) -> float | None:
    if len(quote.price_history) < STOCHASTIC_WINDOW:
        return None
    closes = [b.close for b in quote.price_history[-STOCHASTIC_WINDOW:]]
    low, high = min(closes), max(closes)
    if high == low:
        return 50.0
    return (quote.current_price - low) / (high - low) * 100


def rule_score(rule: str, quote: MarketQuote) -> RuleScore:
    """Score how well the live quote fits one learned rule, 0-10.

    The rule text picks the metric (ROE, PER, PBR, stochastic, market size,
    margins, growth, leverage); a rule the quote cannot speak to scores a
    neutral 5.
    """
    text = rule.lower()

    def scored(score: int, reason: str) -> RuleScore:
        return RuleScore(rule=rule, score=score, reason=reason)

    if _mentions(text, "roe"):
        if quote.return_on_equity is None:
            return scored(NEUTRAL_RULE_SCORE, "ROE 데이터 없음")
        roe = quote.return_on_equity * 100
        if roe <= 0:
            return scored(0, "ROE 마이너스")
        if roe >= 25:
            return scored(10, f"ROE {roe:.1f}% (최상)")
        if roe >= 15:
            return scored(9, f"ROE {roe:.1f}% (우수)")
        if roe >= 8:
            return scored(6, f"ROE {roe:.1f}% (보통)")
        return scored(3, f"ROE {roe:.1f}% (저조)")

    if _mentions(text, "per"):
        pe = quote.trailing_pe
        if not pe:
            return scored(NEUTRAL_RULE_SCORE, "PER 데이터 없음")
        if 0 < pe <= 12:
            return scored(10, f"PER {pe:.1f} (저평가 매력)")
        if pe <= 20:
            return scored(8, f"PER {pe:.1f} (적정)")
        if pe <= 35:
            return scored(4, f"PER {pe:.1f} (고평가 영역)")
        return scored(1, f"PER {pe:.1f} (과도한 고평가)")

    if _mentions(text, "pbr"):
        pb = quote.price_to_book
        if not pb:
            return scored(NEUTRAL_RULE_SCORE, "PBR 데이터 없음")
        if 0 < pb <= 1.2:
            return scored(10, f"PBR {pb:.1f} (자산가치 저평가)")
        if pb <= 2.5:
            return scored(7, f"PBR {pb:.1f} (보통)")
        return scored(3, f"PBR {pb:.1f} (자산가치 대비 고평가)")

    if _mentions(text, "스토캐스틱", "stochastic", "rsi"):
        k = _stochastic_k(quote)
        if k is not None:
            if k < 25:
                return scored(10, f"지표 {k:.0f} (과매도 구간)")
            if k < 45:
                return scored(8, f"지표 {k:.0f} (바닥권 확인)")
            if k > 75:
                return scored(2, f"지표 {k:.0f} (과매수 구간 주의)")
            return scored(6, f"지표 {k:.0f} (중립)")

    if _mentions(text, "tam", "시장", "규모", "점유율"):
        cap = quote.market_cap
        if cap is None:
            return scored(NEUTRAL_RULE_SCORE, "시가총액 데이터 없음")
        if cap > 500e9:
            return scored(10, "글로벌 초거대 기업")
        if cap > 100e9:
            return scored(8, "대형 시장 선도 기업")
        if cap > 20e9:
            return scored(6, "중대형 우량 기업")
        return scored(4, "성장 잠재력 탐색 단계")

    if _mentions(text, "마진", "수익성", "단위 경제", "ltv", "cac"):
        margin = quote.operating_margins
        if margin is None:
            return scored(NEUTRAL_RULE_SCORE, "영업이익률 데이터 없음")
        if margin > 0.3:
            return scored(10, f"영업이익률 {margin * 100:.1f}% (최상위권)")
        if margin > 0.15:
            return scored(8, f"영업이익률 {margin * 100:.1f}% (우수)")
        if margin > 0.05:
            return scored(5, f"영업이익률 {margin * 100:.1f}% (보통)")
        return scored(2, "수익성 개선 필요")

    if _mentions(text, "성장", "도입", "성숙", "growth"):
        growth = quote.revenue_growth
        if growth is None:
            return scored(NEUTRAL_RULE_SCORE, "매출성장률 데이터 없음")
        if growth > 0.25:
            return scored(10, f"매출성장률 {growth * 100:.1f}% (폭발적 성장)")
        if growth > 0.1:
            return scored(8, f"매출성장률 {growth * 100:.1f}% (양호한 성장)")
        if growth > 0:
            return scored(6, f"매출성장률 {growth * 100:.1f}% (안정적 성장)")
        return scored(3, "성장 정체")

    if _mentions(text, "현금", "fcf", "부채"):
        d2e = quote.debt_to_equity
        if d2e is not None:
            if 0 < d2e < 50:
                return scored(10, "부채비율 매우 낮음 (재무 건전성 최상)")
            if d2e < 100:
                return scored(8, "재무 안정성 양호")
            if d2e > 200:
                return scored(2, "부채 비율 높음 주의")

    return scored(NEUTRAL_RULE_SCORE, "기본 규칙 부합성 확인")


def rule_scores(criteria: LearnedInvestmentCriteria | None, quote: MarketQuote) -> list[RuleScore]:
    if criteria is None:
        return []
    return [rule_score(r.rule, quote) for r in criteria.good_company_rules]


def rule_alignment(criteria: LearnedInvestmentCriteria | None, scores: list[RuleScore]) -> float | None:
    """Weighted mean of the per-rule scores on the 0-10 scale; ``None`` without rules.

    Non-positive rule weights count as 0.5.
    """
    if criteria is None or not scores:
        return None
    weighted = 0.0
    total = 0.0
    for rule, scored in zip(criteria.good_company_rules, scores):
        weight = rule.weight if rule.weight > 0 else DEFAULT_RULE_WEIGHT
        weighted += scored.score * weight
        total += weight
    return round(weighted / total, 2)


def strategy_score(quote: MarketQuote, strategy: InvestmentStrategy | None) -> float:
    """0-100 fit of the quote against the long-term conditions and winning patterns, 50 when neutral."""
    if strategy is None:
        return 50.0

    score = 50.0
    for condition in strategy.long_term_conditions:
        text = condition.lower()
        if _mentions(text, "roe") and (quote.return_on_equity or 0) > 0.15:
            score += 10
        if _mentions(text, "pe", "per") and (quote.trailing_pe or 100) < 20:
            score += 5
        if _mentions(text, "cap", "시가총액") and (quote.market_cap or 0) > 1e9:
            score += 5

    for pattern in strategy.winning_patterns:
        if _mentions(pattern.lower(), "growth", "성장") and (quote.trailing_eps or 0) > 0:
            score += 5

    return _clamp(score)
