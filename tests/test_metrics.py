from __future__ import annotations

from datetime import date

import pytest
from conftest import monthly_history

from stockpick_agent.metrics import (
    DEFAULT_VOLATILITY,
    historical_volatility,
    mean_monthly_return,
    monthly_closes,
    monthly_returns,
)
from stockpick_agent.models import PriceBar


def test_monthly_closes_take_last_bar_of_each_month():
    bars = [
        PriceBar(date=date(2025, 1, 31), close=110.0),
        PriceBar(date=date(2025, 1, 2), close=100.0),
        PriceBar(date=date(2025, 2, 3), close=120.0),
        PriceBar(date=date(2025, 2, 27), close=121.0),
    ]
    assert monthly_closes(bars).tolist() == [110.0, 121.0]


def test_monthly_returns():
    r = monthly_returns(monthly_history([100.0, 110.0, 99.0]))
    assert r.tolist() == pytest.approx([0.1, -0.1])
    assert mean_monthly_return(r) == pytest.approx(0.0)


def test_single_month_has_no_returns():
    bars = [PriceBar(date=date(2025, 3, d), close=100.0 + d) for d in (3, 4, 5)]
    assert monthly_returns(bars).size == 0
    assert mean_monthly_return(monthly_returns(bars)) is None
    assert monthly_returns([]).size == 0


def test_non_positive_previous_close_is_skipped():
    r = monthly_returns(monthly_history([0.0, 50.0, 55.0]))
    assert r.tolist() == pytest.approx([0.1])


def test_volatility_is_sample_std():
    r = monthly_returns(monthly_history([100.0, 110.0, 99.0, 99.0]))
    assert historical_volatility(monthly_history([100.0, 110.0, 99.0, 99.0])) == pytest.approx(r.std(ddof=1))


def test_volatility_defaults_when_history_thin():
    assert historical_volatility([]) == DEFAULT_VOLATILITY
    assert historical_volatility(monthly_history([100.0, 105.0])) == DEFAULT_VOLATILITY
