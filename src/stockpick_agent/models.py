# 使用 Pydantic 定义候选公司、行情快照、汇率、过滤阶段结果、学习到的投资准则、证据链和最终推荐结果等核心数据模型。
from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

CurrencyCode = Literal["KRW", "USD"]
StockMarket = Literal["KRX", "NYSE", "NASDAQ", "unknown"]
RiskLevel = Literal["low", "medium", "high"]
CheckStatus = Literal["favorable", "neutral", "unfavorable"]


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class _Base(BaseModel):
    model_config = ConfigDict(extra="forbid")


class _Frozen(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class InvestmentStyle(str, Enum):
    CONSERVATIVE = "conservative"
    AGGRESSIVE = "aggressive"

    @classmethod
    def parse(cls, value: Any) -> "InvestmentStyle":
        """Anything other than "aggressive" (including "moderate" and None) is conservative."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str) and value.strip().lower() == cls.AGGRESSIVE.value:
            return cls.AGGRESSIVE
        return cls.CONSERVATIVE


# --- Inputs ---


class SourceReference(_Frozen):
    file_name: str
    type: Literal["pdf", "mp4", "other"] = "pdf"
    location: str = Field(default="", description="Page number or media timestamp.")
    content: str = ""


class CandidateMetrics(_Frozen):
    per: float | None = None
    pbr: float | None = None
    roe: float | None = Field(default=None, description="Percent, as written in the source material.")
    eps: float | None = None
    dividend_yield: float | None = None
    debt_ratio: float | None = None
    revenue_growth: float | None = None


class CandidateCompany(_Frozen):
    name: str
    market: StockMarket = "unknown"
    currency: CurrencyCode = "KRW"
    ticker: str | None = None
    target_price: float | None = None
    recommended_buy_price: float | None = None
    stop_loss_price: float | None = None
    metrics: CandidateMetrics = Field(default_factory=CandidateMetrics)
    investment_thesis: str = ""
    risk_factors: list[str] = Field(default_factory=list)
    sector: str | None = None
    sources: list[SourceReference] = Field(default_factory=list)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class WeightedRule(_Frozen):
    rule: str
    weight: float = 1.0
    source: SourceReference | None = None


class MetricRange(_Frozen):
    metric: str
    min: float | None = None
    max: float | None = None
    description: str = ""
    source: SourceReference | None = None


class Principle(_Frozen):
    principle: str
    category: Literal["entry", "exit", "risk", "general"] = "general"
    source: SourceReference | None = None


class LearnedInvestmentCriteria(_Frozen):
    good_company_rules: list[WeightedRule] = Field(default_factory=list)
    ideal_metric_ranges: list[MetricRange] = Field(default_factory=list)
    principles: list[Principle] = Field(default_factory=list)


class InvestmentStrategy(_Frozen):
    """Trading playbook distilled from the source material."""

    short_term_conditions: list[str] = Field(default_factory=list)
    long_term_conditions: list[str] = Field(default_factory=list)
    winning_patterns: list[str] = Field(default_factory=list)
    risk_management_rules: list[str] = Field(default_factory=list)


class InvestmentConditions(_Frozen):
    amount: float = Field(gt=0, description="Investment amount in the reporting currency.")
    period_months: int = Field(ge=1)
    sector: str | None = None
    strategy: str | None = None


# --- Market data ---


class TickerSearchHit(_Base):
    symbol: str
    exchange: str = ""
    name: str = ""


class PriceBar(_Base):
    date: date
    close: float
    volume: int = 0


class MarketQuote(_Base):
    ticker: str
    currency: CurrencyCode
    current_price: float
    previous_close: float = 0.0
    fifty_two_week_high: float = 0.0
    fifty_two_week_low: float = 0.0
    target_mean_price: float | None = None
    target_high_price: float | None = None
    target_low_price: float | None = None
    trailing_pe: float | None = None
    forward_pe: float | None = None
    price_to_book: float | None = None
    return_on_equity: float | None = Field(default=None, description="Fraction, e.g. 0.15 for 15%.")
    trailing_eps: float | None = None
    dividend_yield: float | None = Field(default=None, description="Fraction, e.g. 0.03 for 3%.")
    market_cap: float | None = None
    operating_margins: float | None = Field(default=None, description="Fraction, e.g. 0.3 for 30%.")
    revenue_growth: float | None = Field(default=None, description="Year-over-year fraction.")
    debt_to_equity: float | None = Field(default=None, description="Percent, as Yahoo reports it.")
    price_history: list[PriceBar] = Field(default_factory=list)
    fetched_at: datetime = Field(default_factory=_utcnow)


class ExchangeRate(_Base):
    from_currency: CurrencyCode = "USD"
    to_currency: CurrencyCode = "KRW"
    rate: float
    fetched_at: datetime = Field(default_factory=_utcnow)
    is_fallback: bool = False


class NormalizedPrices(_Base):
    currency: CurrencyCode
    current_price: float
    target_price: float
    recommended_buy_price: float
    exchange_rate_used: float


# --- Pipeline outputs ---


class FilterStageResult(_Base):
    stage: int
    stage_name: str
    passed: bool
    reason: str
    caveat: bool = Field(default=False, description="Passed, but with a condition worth a second look.")


class EvidenceFactor(_Base):
    factor: str
    value: str
    source: SourceReference | None = None
    weight: float


class RealTimeCheck(_Base):
    metric: str
    material_value: str
    real_time_value: str
    status: CheckStatus


class EvidenceChain(_Base):
    algo_version: str
    decision: str
    factors: list[EvidenceFactor] = Field(default_factory=list)
    real_time_checks: list[RealTimeCheck] = Field(default_factory=list)


class RuleScore(_Base):
    rule: str
    score: int = Field(ge=0, le=10)
    reason: str


class FailureReason(_Base):
    kind: Literal["ticker_not_found", "missing_price_data", "data_retrieval", "analysis_error"]
    company_name: str
    stage: int
    stage_name: str
    message: str


class FilteredCandidate(_Base):
    company: CandidateCompany
    ticker: str | None = None
    quote: MarketQuote | None = None
    normalized_prices: NormalizedPrices | None = None
    filter_results: list[FilterStageResult] = Field(default_factory=list)
    passed_all_filters: bool = False
    score: int = Field(default=0, ge=0, le=100)
    expected_return_rate: float = 0.0
    confidence_score: float = 0.0
    confidence_details: list[str] = Field(default_factory=list)
    risk_level: RiskLevel = "high"
    evidence: EvidenceChain | None = None
    rule_scores: list[RuleScore] = Field(default_factory=list)
    rule_alignment: float | None = Field(default=None, description="Weighted 0-10 fit against the learned rules.")
    strategy_score: float | None = Field(default=None, description="0-100 fit against the investment strategy.")


class CandidateOutcome(_Base):
    """Per-candidate result: always carries a candidate record, plus the failure cause if any."""

    candidate: FilteredCandidate
    failure: FailureReason | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


class RecommendationResult(_Base):
    candidates: list[FilteredCandidate] = Field(default_factory=list)
    top_pick: FilteredCandidate | None = None
    conditions: InvestmentConditions
    style: InvestmentStyle
    exchange_rate: ExchangeRate
    reporting_currency: CurrencyCode = "KRW"
    processed_at: datetime = Field(default_factory=_utcnow)
    summary: str
    sources: list[SourceReference] = Field(default_factory=list)
    failures: list[FailureReason] = Field(default_factory=list)
    algo_versions: dict[str, str] = Field(default_factory=dict)
