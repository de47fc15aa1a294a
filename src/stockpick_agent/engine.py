# 实现推荐分析引擎 AnalysisEngine：获取汇率、逐个候选公司解析代码并抓取行情、执行四阶段过滤与评分、构建证据链，最终按得分排序生成推荐结果，单个候选失败不影响整批处理。
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Iterable, TypeVar

from stockpick_agent.cache import InMemoryJSONCache, JSONCache, RedisJSONCache
from stockpick_agent.config import Settings
from stockpick_agent.constants import (
    EVIDENCE_ALGO_VERSION,
    FILTERS_ALGO_VERSION,
    SCORING_ALGO_VERSION,
    STAGE_ANALYSIS,
    STAGE_DATA_RETRIEVAL,
)
from stockpick_agent.currency import CurrencyService
from stockpick_agent.datasources import (
    FxRateProvider,
    MarketDataResolver,
    StooqFxRateProvider,
    YahooFxRateProvider,
    YahooMarketDataProvider,
)
from stockpick_agent.evidence import build_evidence_chain
from stockpick_agent.filters import passed_all, run_price_stages, stage_validity
from stockpick_agent.metrics import historical_volatility
from stockpick_agent.models import (
    CandidateCompany,
    CandidateOutcome,
    CurrencyCode,
    ExchangeRate,
    FailureReason,
    FilteredCandidate,
    FilterStageResult,
    InvestmentConditions,
    InvestmentStrategy,
    InvestmentStyle,
    LearnedInvestmentCriteria,
    MarketQuote,
    RecommendationResult,
    SourceReference,
)
from stockpick_agent.normalize import normalize_prices
from stockpick_agent.scoring import (
    confidence_breakdown,
    expected_return,
    feasibility_score,
    final_score,
    fundamentals_score,
    price_to_target_ratio,
    risk_level,
    rule_alignment,
    rule_scores,
    strategy_score,
)
from stockpick_agent.utils import format_money

logger = logging.getLogger(__name__)

T = TypeVar("T")

DATA_RETRIEVAL_STAGE = 0
RISK_LABELS = {"low": "낮음", "medium": "보통", "high": "높음"}


def call_with_timeout(fn: Callable[..., T], timeout: float | None, *args: Any) -> T:
    """Run ``fn`` on a helper thread and give up after ``timeout`` seconds.

    The helper is a daemon thread that is abandoned, not killed, on timeout,
    so a hung request never holds up interpreter exit. ``TimeoutError``
    propagates to the caller like any other fetch failure.
    """
    if not timeout or timeout <= 0:
        return fn(*args)
    future: Future = Future()

    def target() -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            future.set_result(fn(*args))
        except BaseException as exc:
            future.set_exception(exc)

    threading.Thread(target=target, name="stockpick-fetch", daemon=True).start()
    return future.result(timeout=timeout)


def _describe(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__


def dedupe_sources(sources: Iterable[SourceReference | None]) -> list[SourceReference]:
    seen: set[tuple[str, str]] = set()
    out: list[SourceReference] = []
    for s in sources:
        if s is None:
            continue
        key = (s.file_name, s.location)
        if key in seen:
            continue
        seen.add(key)
        out.append(s)
    return out


def criteria_sources(criteria: LearnedInvestmentCriteria | None) -> list[SourceReference | None]:
    if criteria is None:
        return []
    return (
        [r.source for r in criteria.good_company_rules]
        + [r.source for r in criteria.ideal_metric_ranges]
        + [p.source for p in criteria.principles]
    )


def rank_candidates(candidates: list[FilteredCandidate]) -> list[FilteredCandidate]:
    # sorted() is stable, so equal scores keep input order
    return sorted(candidates, key=lambda c: c.score, reverse=True)


def pick_top(ranked: list[FilteredCandidate]) -> FilteredCandidate | None:
    return next((c for c in ranked if c.passed_all_filters), None)


def build_summary(
    ranked: list[FilteredCandidate], top: FilteredCandidate | None, failures: list[FailureReason]
) -> str:
    if not ranked:
        return "분석할 후보 기업이 없습니다. 추천 결과가 비어 있습니다."

    total = len(ranked)
    passed = sum(1 for c in ranked if c.passed_all_filters)
    errors = sum(1 for f in failures if f.kind == "data_retrieval")
    broken = sum(1 for f in failures if f.kind == "analysis_error")
    notes = []
    if errors:
        notes.append(f"데이터 조회 실패 {errors}개")
    if broken:
        notes.append(f"분석 처리 오류 {broken}개")
    error_note = f" ({', '.join(notes)} 포함)" if notes else ""

    if top is None:
        return f"후보 {total}개 기업을 분석했으나 모든 필터를 통과한 기업이 없습니다{error_note}."

    prices = top.normalized_prices
    price_note = ""
    if prices is not None:
        price_note = (
            f", 현재가 {format_money(prices.current_price, prices.currency)}"
            f" → 목표가 {format_money(prices.target_price, prices.currency)}"
        )
    return (
        f"후보 {total}개 기업 중 {passed}개가 모든 필터를 통과했습니다{error_note}. "
        f"최우선 추천은 {top.company.name}({top.ticker})로 종합 점수 {top.score}점, "
        f"예상 수익률 {top.expected_return_rate:.1f}%{price_note}, "
        f"리스크 {RISK_LABELS[top.risk_level]}입니다."
    )


def build_fx_provider(settings: Settings) -> FxRateProvider:
    if settings.fx_provider == "stooq":
        return StooqFxRateProvider(timeout=settings.fetch_timeout_seconds)
    if settings.fx_provider != "yahoo":
        logger.warning("Unknown FX_PROVIDER %r, using yahoo", settings.fx_provider)
    return YahooFxRateProvider()


def build_cache(settings: Settings) -> JSONCache:
    if settings.redis_url:
        return RedisJSONCache(settings.redis_url)
    return InMemoryJSONCache()


@dataclass(frozen=True)
class AnalysisEngine:
    resolver: MarketDataResolver
    currency: CurrencyService
    fetch_timeout_seconds: float | None = None
    max_workers: int = 1
    reporting_currency: CurrencyCode = "KRW"

    @classmethod
    def default(cls, settings: Settings) -> "AnalysisEngine":
        provider = YahooMarketDataProvider(timeout=settings.fetch_timeout_seconds)
        currency = CurrencyService(
            build_fx_provider(settings),
            build_cache(settings),
            ttl_seconds=settings.fx_cache_ttl_seconds,
            fallback_rate=settings.fallback_usd_krw,
        )
        reporting: CurrencyCode = "USD" if settings.reporting_currency == "USD" else "KRW"
        return cls(
            resolver=MarketDataResolver(provider),
            currency=currency,
            fetch_timeout_seconds=settings.fetch_timeout_seconds,
            max_workers=settings.worker_count,
            reporting_currency=reporting,
        )

    def run(
        self,
        candidates: list[CandidateCompany],
        conditions: InvestmentConditions,
        criteria: LearnedInvestmentCriteria | None = None,
        style: InvestmentStyle | str | None = InvestmentStyle.CONSERVATIVE,
        strategy: InvestmentStrategy | None = None,
    ) -> RecommendationResult:
        """Filter, score and rank ``candidates``. Never raises for per-candidate data problems."""
        style = InvestmentStyle.parse(style)
        logger.info(
            "Analysis started: %d candidates, amount=%s, period=%d months, style=%s",
            len(candidates),
            conditions.amount,
            conditions.period_months,
            style.value,
        )
        rate = self._exchange_rate()

        def analyze(company: CandidateCompany) -> CandidateOutcome:
            return self.analyze_candidate(company, conditions, criteria, style, rate, strategy)

        workers = max(1, min(self.max_workers, len(candidates) or 1))
        if workers == 1:
            outcomes = [analyze(c) for c in candidates]
        else:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="stockpick") as pool:
                # map() yields in submission order; ranking below re-sorts anyway
                outcomes = list(pool.map(analyze, candidates))

        ranked = rank_candidates([o.candidate for o in outcomes])
        failures = [o.failure for o in outcomes if o.failure is not None]
        top = pick_top(ranked)

        sources = dedupe_sources(
            [s for c in candidates for s in c.sources] + criteria_sources(criteria)
        )
        result = RecommendationResult(
            candidates=ranked,
            top_pick=top,
            conditions=conditions,
            style=style,
            exchange_rate=rate,
            reporting_currency=self.reporting_currency,
            summary=build_summary(ranked, top, failures),
            sources=sources,
            failures=failures,
            algo_versions={
                "filters": FILTERS_ALGO_VERSION,
                "scoring": SCORING_ALGO_VERSION,
                "evidence": EVIDENCE_ALGO_VERSION,
            },
        )
        logger.info(
            "Analysis finished: %d candidates, %d passed, %d failures, top=%s",
            len(ranked),
            sum(1 for c in ranked if c.passed_all_filters),
            len(failures),
            top.ticker if top else None,
        )
        return result

    def analyze_candidate(
        self,
        company: CandidateCompany,
        conditions: InvestmentConditions,
        criteria: LearnedInvestmentCriteria | None,
        style: InvestmentStyle,
        rate: ExchangeRate,
        strategy: InvestmentStrategy | None = None,
    ) -> CandidateOutcome:
        ticker = company.ticker or self._resolve_ticker(company)
        validity = stage_validity(company, ticker)
        if not validity.passed:
            kind = "ticker_not_found" if not ticker else "missing_price_data"
            logger.warning("%s excluded at validity: %s", company.name, validity.reason)
            return self._failed(company, ticker, [validity], kind, validity.reason)

        try:
            quote = call_with_timeout(
                self.resolver.fetch_quote, self.fetch_timeout_seconds, ticker, conditions.period_months
            )
        except Exception as exc:
            message = _describe(exc)
            logger.warning("%s (%s) isolated after data retrieval failure: %s", company.name, ticker, message)
            retrieval = FilterStageResult(
                stage=DATA_RETRIEVAL_STAGE,
                stage_name=STAGE_DATA_RETRIEVAL,
                passed=False,
                reason=f"시세 데이터 조회 실패: {message}",
            )
            return self._failed(company, ticker, [validity, retrieval], "data_retrieval", message)

        try:
            return self._score_candidate(
                company, ticker, quote, validity, conditions, criteria, style, rate, strategy
            )
        except Exception as exc:
            message = _describe(exc)
            logger.exception("%s (%s) could not be scored", company.name, ticker)
            analysis = FilterStageResult(
                stage=DATA_RETRIEVAL_STAGE,
                stage_name=STAGE_ANALYSIS,
                passed=False,
                reason=f"분석 처리 오류: {message}",
            )
            return self._failed(company, ticker, [validity, analysis], "analysis_error", message)

    def _score_candidate(
        self,
        company: CandidateCompany,
        ticker: str,
        quote: MarketQuote,
        validity: FilterStageResult,
        conditions: InvestmentConditions,
        criteria: LearnedInvestmentCriteria | None,
        style: InvestmentStyle,
        rate: ExchangeRate,
        strategy: InvestmentStrategy | None,
    ) -> CandidateOutcome:
        prices = normalize_prices(company, quote, rate, self.reporting_currency)
        stages = [validity, *run_price_stages(company, quote, prices, conditions)]

        volatility = historical_volatility(quote.price_history)
        er = expected_return(prices.current_price, prices.target_price, conditions.period_months, volatility)
        fundamentals = fundamentals_score(company, quote, criteria)
        feasibility = feasibility_score(
            prices.current_price, prices.target_price, conditions.period_months, quote.price_history
        )
        confidence = confidence_breakdown(company, quote)
        score = final_score(er, fundamentals, feasibility, confidence.score, style)
        risk = risk_level(volatility, price_to_target_ratio(prices), style)
        per_rule = rule_scores(criteria, quote)

        candidate = FilteredCandidate(
            company=company,
            ticker=ticker,
            quote=quote,
            normalized_prices=prices,
            filter_results=stages,
            passed_all_filters=passed_all(stages),
            score=score,
            expected_return_rate=er,
            confidence_score=confidence.score,
            confidence_details=confidence.details,
            risk_level=risk,
            evidence=build_evidence_chain(company, quote, prices, stages, criteria),
            rule_scores=per_rule,
            rule_alignment=rule_alignment(criteria, per_rule),
            strategy_score=strategy_score(quote, strategy) if strategy is not None else None,
        )
        logger.debug(
            "%s (%s): score=%d er=%.1f%% fundamentals=%.0f feasibility=%d confidence=%.2f risk=%s",
            company.name,
            ticker,
            score,
            er,
            fundamentals,
            feasibility,
            confidence.score,
            risk,
        )
        return CandidateOutcome(candidate=candidate)

    def _resolve_ticker(self, company: CandidateCompany) -> str | None:
        try:
            return call_with_timeout(
                self.resolver.resolve_ticker, self.fetch_timeout_seconds, company.name, company.market
            )
        except Exception as exc:
            logger.warning("Ticker resolution for %r failed: %s", company.name, exc)
            return None

    def _exchange_rate(self) -> ExchangeRate:
        try:
            return call_with_timeout(self.currency.get_exchange_rate, self.fetch_timeout_seconds)
        except Exception as exc:
            fallback = self.currency.fallback_rate
            logger.warning("Exchange rate lookup timed out, using fallback %.2f: %s", fallback, exc)
            return ExchangeRate(rate=fallback, is_fallback=True)

    @staticmethod
    def _failed(
        company: CandidateCompany,
        ticker: str | None,
        stages: list[FilterStageResult],
        kind: str,
        message: str,
    ) -> CandidateOutcome:
        failed_stage = stages[-1]
        return CandidateOutcome(
            candidate=FilteredCandidate(company=company, ticker=ticker, filter_results=stages),
            failure=FailureReason(
                kind=kind,
                company_name=company.name,
                stage=failed_stage.stage,
                stage_name=failed_stage.stage_name,
                message=message,
            ),
        )
