"""汇率服务：缓存新鲜度、失败回退与金额换算"""
from __future__ import annotations

import pytest
from conftest import FakeClock, FakeFxProvider

from stockpick_agent.cache import InMemoryJSONCache
from stockpick_agent.constants import FX_CACHE_KEY
from stockpick_agent.currency import (
    CurrencyService,
    convert,
    convert_to_reporting,
    detect_currency,
    parse_price_text,
)
from stockpick_agent.models import ExchangeRate


def test_fallback_when_provider_fails_and_cache_empty(clock: FakeClock):
    cache = InMemoryJSONCache()
    svc = CurrencyService(FakeFxProvider(error=RuntimeError("boom")), cache, clock=clock)

    rate = svc.get_exchange_rate()

    assert rate.rate == 1350.0
    assert rate.is_fallback is True
    # the fallback is never written back
    assert cache.get_json(FX_CACHE_KEY) is None


def test_fresh_cache_is_reused(clock: FakeClock):
    fx = FakeFxProvider(rate=1320.0)
    svc = CurrencyService(fx, clock=clock)

    first = svc.get_exchange_rate()
    clock.advance(299)
    second = svc.get_exchange_rate()

    assert fx.calls == 1
    assert first.rate == second.rate == 1320.0
    assert second.is_fallback is False


def test_stale_cache_triggers_refresh(clock: FakeClock):
    fx = FakeFxProvider(rate=1320.0)
    svc = CurrencyService(fx, clock=clock)
    svc.get_exchange_rate()

    fx.rate = 1400.0
    clock.advance(301)
    assert svc.get_exchange_rate().rate == 1400.0
    assert fx.calls == 2


def test_stale_cache_survives_provider_failure(clock: FakeClock):
    fx = FakeFxProvider(rate=1320.0)
    svc = CurrencyService(fx, clock=clock)
    svc.get_exchange_rate()

    fx.error = TimeoutError("slow provider")
    clock.advance(3600)
    rate = svc.get_exchange_rate()

    assert rate.rate == 1320.0
    assert rate.is_fallback is False


@pytest.mark.parametrize("bad", [0.0, -5.0, float("nan")])
def test_non_positive_rate_counts_as_failure(clock: FakeClock, bad: float):
    svc = CurrencyService(FakeFxProvider(rate=bad), clock=clock, fallback_rate=1333.0)
    rate = svc.get_exchange_rate()
    assert rate.rate == 1333.0
    assert rate.is_fallback


def test_clear_cache_forces_refetch(clock: FakeClock):
    fx = FakeFxProvider()
    svc = CurrencyService(fx, clock=clock)
    svc.get_exchange_rate()
    svc.clear_cache()
    svc.get_exchange_rate()
    assert fx.calls == 2


def test_broken_cache_does_not_break_rate_lookup(clock: FakeClock):
    class BrokenCache(InMemoryJSONCache):
        def get_json(self, key):
            raise ConnectionError("redis down")

        def set_json(self, key, value, ttl_seconds):
            raise ConnectionError("redis down")

    svc = CurrencyService(FakeFxProvider(rate=1310.0), BrokenCache(), clock=clock)
    assert svc.get_exchange_rate().rate == 1310.0


@pytest.mark.parametrize(
    "entry",
    [
        {"rate": "n/a", "source": "old-writer"},
        {"rate": 1300.0, "unexpected": True},
        {"rate": 0.0},
        ["not", "a", "mapping"],
    ],
)
def test_malformed_cache_entry_is_a_miss(clock: FakeClock, entry):
    cache = InMemoryJSONCache()
    cache.set_json(FX_CACHE_KEY, entry, ttl_seconds=0)
    fx = FakeFxProvider(rate=1300.0)

    rate = CurrencyService(fx, cache, clock=clock).get_exchange_rate()

    assert rate.rate == 1300.0
    assert rate.is_fallback is False
    assert fx.calls == 1
    # the bad entry is overwritten with a readable one
    assert ExchangeRate.model_validate(cache.get_json(FX_CACHE_KEY)).rate == 1300.0


def test_malformed_cache_entry_with_failing_provider_uses_fallback(clock: FakeClock):
    cache = InMemoryJSONCache()
    cache.set_json(FX_CACHE_KEY, {"rate": "n/a"}, ttl_seconds=0)
    svc = CurrencyService(FakeFxProvider(error=RuntimeError("down")), cache, clock=clock)

    rate = svc.get_exchange_rate()

    assert rate.rate == 1350.0
    assert rate.is_fallback is True


def test_convert_round_trip():
    rate = ExchangeRate(rate=1337.5)
    for amount in (1.0, 99.99, 123456.789):
        krw = convert(amount, "USD", "KRW", rate)
        assert convert(krw, "KRW", "USD", rate) == pytest.approx(amount)


def test_convert_same_currency_is_identity():
    rate = ExchangeRate(rate=1300.0)
    assert convert(5000.0, "KRW", "KRW", rate) == 5000.0
    assert convert_to_reporting(10.0, "USD", rate) == 13000.0
    assert convert_to_reporting(10.0, "USD", rate, reporting="USD") == 10.0


@pytest.mark.parametrize(
    "text,expected",
    [
        ("$150", "USD"),
        ("목표가 150 USD", "USD"),
        ("200 dollars", "USD"),
        ("85,000원", "KRW"),
        ("₩85,000", "KRW"),
        ("12만원", "KRW"),
        ("85000", "KRW"),
    ],
)
def test_detect_currency(text: str, expected: str):
    assert detect_currency(text) == expected


@pytest.mark.parametrize(
    "text,expected",
    [
        ("목표가 15000", "KRW"),
        ("1,250,000", "KRW"),
        ("150", "KRW"),
        ("no number", "KRW"),
    ],
)
def test_detect_currency_unmarked_figures(text: str, expected: str):
    assert detect_currency(text) == expected


@pytest.mark.parametrize(
    "text,amount,currency",
    [
        ("$150", 150.0, "USD"),
        ("$1,234.50", 1234.5, "USD"),
        ("85,000원", 85000.0, "KRW"),
        ("목표가 12만원", 120000.0, "KRW"),
        ("1.5억원", 150000000.0, "KRW"),
        ("미정", None, "KRW"),
    ],
)
def test_parse_price_text(text: str, amount, currency: str):
    assert parse_price_text(text) == (amount, currency)
