from __future__ import annotations

from datetime import date

import pandas as pd
import pytest
from conftest import FakeMarketDataProvider, monthly_history

from stockpick_agent.datasources.market import MarketDataResolver, build_quote, history_since, infer_ticker_currency
from stockpick_agent.datasources.yahoo import history_frame_to_bars
from stockpick_agent.identify import is_krx_ticker, lookup_static_ticker
from stockpick_agent.models import TickerSearchHit


def test_static_table_wins_over_search():
    provider = FakeMarketDataProvider()
    resolver = MarketDataResolver(provider)
    assert resolver.resolve_ticker("삼성전자", "KRX") == "005930.KS"
    assert resolver.resolve_ticker(" sk하이닉스 ") == "000660.KS"
    assert provider.search_calls == []


def test_krx_hint_prefers_korean_listing():
    hits = [
        TickerSearchHit(symbol="HYMTF", exchange="PNK"),
        TickerSearchHit(symbol="086280.KS", exchange="KSC"),
    ]
    resolver = MarketDataResolver(FakeMarketDataProvider(search_hits={"현대글로비스": hits}))
    assert resolver.resolve_ticker("현대글로비스", "KRX") == "086280.KS"


def test_us_hint_prefers_us_exchange():
    hits = [
        TickerSearchHit(symbol="APC.F", exchange="Frankfurt"),
        TickerSearchHit(symbol="AAPL", exchange="NASDAQ"),
    ]
    resolver = MarketDataResolver(FakeMarketDataProvider(search_hits={"Apple": hits}))
    assert resolver.resolve_ticker("Apple", "NASDAQ") == "AAPL"
    assert resolver.resolve_ticker("Apple") == "APC.F"


def test_no_hits_or_search_error_returns_none():
    class FailingSearch(FakeMarketDataProvider):
        def search_ticker(self, query):
            raise ConnectionError("search down")

    assert MarketDataResolver(FakeMarketDataProvider()).resolve_ticker("Nonexistent Corp") is None
    assert MarketDataResolver(FailingSearch()).resolve_ticker("Nonexistent Corp") is None


def test_fetch_quote_maps_bundle_fields():
    history = monthly_history([90.0, 95.0, 100.0])
    provider = FakeMarketDataProvider(
        bundles={
            "AAPL": {
                "currency": "USD",
                "regularMarketPrice": 101.5,
                "targetMeanPrice": 130.0,
                "trailingPE": "28.4",
                "priceToBook": None,
                "returnOnEquity": 1.47,
                "dividendYield": 0.0044,
                "operatingMargins": 0.31,
                "revenueGrowth": "0.061",
                "debtToEquity": None,
            }
        },
        histories={"AAPL": list(reversed(history))},
    )
    quote = MarketDataResolver(provider).fetch_quote("AAPL", 12)

    assert quote.currency == "USD"
    assert quote.current_price == 101.5
    assert quote.target_mean_price == 130.0
    assert quote.trailing_pe == 28.4
    assert quote.price_to_book is None
    assert quote.dividend_yield == 0.0044
    assert (quote.operating_margins, quote.revenue_growth, quote.debt_to_equity) == (0.31, 0.061, None)
    assert [b.close for b in quote.price_history] == [90.0, 95.0, 100.0]


def test_fetch_quote_degrades_to_basic_quote():
    provider = FakeMarketDataProvider(basic={"005930.KS": {"currency": "KRW", "regularMarketPrice": 71000}})
    quote = MarketDataResolver(provider).fetch_quote("005930.KS", 6)
    assert quote.current_price == 71000
    assert quote.trailing_pe is None
    assert quote.price_history == []


def test_fetch_quote_uses_last_close_when_no_price():
    provider = FakeMarketDataProvider(histories={"035720.KS": monthly_history([50000.0, 52000.0])})
    quote = MarketDataResolver(provider).fetch_quote("035720.KS", 6)
    assert quote.current_price == 52000.0
    assert quote.currency == "KRW"


def test_fetch_quote_without_any_price_raises():
    provider = FakeMarketDataProvider(broken={"XXXX"})
    with pytest.raises(LookupError):
        MarketDataResolver(provider).fetch_quote("XXXX", 12)


def test_build_quote_ignores_non_positive_prices():
    with pytest.raises(LookupError):
        build_quote("AAPL", {"regularMarketPrice": 0, "currentPrice": "n/a"}, [])


@pytest.mark.parametrize(
    "ticker,provider_currency,expected",
    [
        ("005930.KS", None, "KRW"),
        ("247540.KQ", None, "KRW"),
        ("AAPL", None, "USD"),
        ("AAPL", "usd", "USD"),
        ("ASML", "EUR", "USD"),
    ],
)
def test_infer_ticker_currency(ticker, provider_currency, expected):
    assert infer_ticker_currency(ticker, provider_currency) == expected


def test_history_window_never_shorter_than_six_months():
    assert history_since(3, today=date(2025, 8, 31)) == date(2025, 2, 28)
    assert history_since(12, today=date(2025, 8, 31)) == date(2024, 8, 31)


def test_history_frame_to_bars_drops_missing_closes():
    idx = pd.to_datetime(["2025-01-03", "2025-01-02", "2025-01-06"])
    df = pd.DataFrame({"Close": [101.0, 100.0, float("nan")], "Volume": [10, 20, 30]}, index=idx)
    bars = history_frame_to_bars(df)
    assert [(b.date, b.close, b.volume) for b in bars] == [
        (date(2025, 1, 2), 100.0, 20),
        (date(2025, 1, 3), 101.0, 10),
    ]
    assert history_frame_to_bars(None) == []


def test_static_lookup_and_krx_suffix():
    assert lookup_static_ticker("에코프로비엠") == "247540.KQ"
    assert lookup_static_ticker("naver") == "035420.KS"
    assert lookup_static_ticker("") is None
    assert lookup_static_ticker("Unknown Co") is None
    assert is_krx_ticker("005930.ks")
    assert not is_krx_ticker("AAPL")
    assert not is_krx_ticker(None)
