from __future__ import annotations

import time
from datetime import date
from typing import Any

import pytest

from stockpick_agent.currency import CurrencyService
from stockpick_agent.datasources.base import FxRateProvider, MarketDataProvider
from stockpick_agent.datasources.market import MarketDataResolver
from stockpick_agent.engine import AnalysisEngine
from stockpick_agent.models import (
    CandidateCompany,
    ExchangeRate,
    MarketQuote,
    NormalizedPrices,
    PriceBar,
    SourceReference,
    TickerSearchHit,
)


def monthly_history(closes: list[float], start: date = date(2024, 1, 15)) -> list[PriceBar]:
    """One bar per calendar month, starting at ``start``."""
    bars = []
    for i, close in enumerate(closes):
        month = start.month - 1 + i
        bars.append(PriceBar(date=date(start.year + month // 12, month % 12 + 1, start.day), close=close))
    return bars


def growth_history(monthly_return: float, months: int = 13, first: float = 60.0) -> list[PriceBar]:
    return monthly_history([first * (1 + monthly_return) ** i for i in range(months)])


def make_prices(current: float, target: float, buy: float | None = None, currency: str = "KRW") -> NormalizedPrices:
    return NormalizedPrices(
        currency=currency,
        current_price=current,
        target_price=target,
        recommended_buy_price=current if buy is None else buy,
        exchange_rate_used=1300.0,
    )


def make_quote(ticker: str = "005930.KS", currency: str = "KRW", price: float = 70_000.0, **kw: Any) -> MarketQuote:
    return MarketQuote(ticker=ticker, currency=currency, current_price=price, **kw)


def source(name: str = "report.pdf", location: str = "p.1", content: str = "") -> SourceReference:
    return SourceReference(file_name=name, location=location, content=content)


class FakeMarketDataProvider(MarketDataProvider):
    name = "fake"

    def __init__(
        self,
        bundles: dict[str, dict[str, Any]] | None = None,
        histories: dict[str, list[PriceBar]] | None = None,
        search_hits: dict[str, list[TickerSearchHit]] | None = None,
        broken: set[str] | None = None,
        basic: dict[str, dict[str, Any]] | None = None,
        delay: float = 0.0,
    ):
        self.bundles = bundles or {}
        self.histories = histories or {}
        self.search_hits = search_hits or {}
        self.broken = broken or set()
        self.basic = basic or {}
        self.delay = delay
        self.search_calls: list[str] = []
        self.quote_calls: list[str] = []

    def _maybe_fail(self, ticker: str) -> None:
        if self.delay:
            time.sleep(self.delay)
        if ticker in self.broken:
            raise RuntimeError(f"provider down for {ticker}")

    def search_ticker(self, query: str) -> list[TickerSearchHit]:
        self.search_calls.append(query)
        return list(self.search_hits.get(query, []))

    def fetch_quote_bundle(self, ticker: str) -> dict[str, Any]:
        self.quote_calls.append(ticker)
        self._maybe_fail(ticker)
        if ticker not in self.bundles:
            raise LookupError(f"Empty quote summary for {ticker}")
        return dict(self.bundles[ticker])

    def fetch_basic_quote(self, ticker: str) -> dict[str, Any]:
        if ticker in self.broken:
            raise RuntimeError(f"provider down for {ticker}")
        return dict(self.basic.get(ticker, {}))

    def fetch_history(self, ticker: str, since: date) -> list[PriceBar]:
        if ticker in self.broken:
            raise RuntimeError(f"provider down for {ticker}")
        return list(self.histories.get(ticker, []))


class FakeFxProvider(FxRateProvider):
    name = "fake-fx"

    def __init__(self, rate: float | None = 1300.0, error: Exception | None = None):
        self.rate = rate
        self.error = error
        self.calls = 0

    def fetch_fx_rate(self, pair: str) -> float:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.rate


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def usd_rate() -> ExchangeRate:
    return ExchangeRate(rate=1300.0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def apple() -> CandidateCompany:
    return CandidateCompany(
        name="Apple",
        market="NASDAQ",
        currency="USD",
        ticker="AAPL",
        target_price=150.0,
        recommended_buy_price=100.0,
        investment_thesis="서비스 매출 성장",
        sources=[source("apple.pdf", "p.3", "목표주가 150달러"), source("apple.pdf", "p.7")],
    )


def build_engine(provider: FakeMarketDataProvider, fx: FakeFxProvider | None = None, **kw: Any) -> AnalysisEngine:
    currency = CurrencyService(fx or FakeFxProvider())
    return AnalysisEngine(resolver=MarketDataResolver(provider), currency=currency, **kw)
