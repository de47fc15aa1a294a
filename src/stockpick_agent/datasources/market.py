from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

import pandas as pd

from stockpick_agent.constants import MIN_HISTORY_MONTHS
from stockpick_agent.datasources.base import MarketDataProvider
from stockpick_agent.identify import is_krx_ticker, lookup_static_ticker
from stockpick_agent.models import CurrencyCode, MarketQuote, PriceBar, StockMarket
from stockpick_agent.utils import positive_or_none, to_float

logger = logging.getLogger(__name__)

US_EXCHANGES = {"NYSE", "NASDAQ"}


def infer_ticker_currency(ticker: str, provider_currency: str | None = None) -> CurrencyCode:
    if provider_currency:
        code = provider_currency.strip().upper()
        if code in ("KRW", "USD"):
            return code  # type: ignore[return-value]
    return "KRW" if is_krx_ticker(ticker) else "USD"


def history_since(period_months: int, today: date | None = None) -> date:
    anchor = pd.Timestamp(today or date.today())
    return (anchor - pd.DateOffset(months=max(period_months, MIN_HISTORY_MONTHS))).date()


def build_quote(ticker: str, raw: dict[str, Any], history: list[PriceBar]) -> MarketQuote:
    """Map a Yahoo-style payload onto ``MarketQuote``.

    Missing ratios stay ``None``. If the payload has no price at all, the last
    close of the history stands in; with neither, ``LookupError`` is raised.
    """
    history = sorted(history, key=lambda b: b.date)
    current = positive_or_none(raw.get("regularMarketPrice")) or positive_or_none(raw.get("currentPrice"))
    if current is None and history:
        current = positive_or_none(history[-1].close)
    if current is None:
        raise LookupError(f"No usable price for {ticker}")

    previous_close = to_float(raw.get("regularMarketPreviousClose")) or to_float(raw.get("previousClose"))
    return MarketQuote(
        ticker=ticker,
        currency=infer_ticker_currency(ticker, raw.get("currency")),
        current_price=current,
        previous_close=previous_close or 0.0,
        fifty_two_week_high=to_float(raw.get("fiftyTwoWeekHigh")) or 0.0,
        fifty_two_week_low=to_float(raw.get("fiftyTwoWeekLow")) or 0.0,
        target_mean_price=positive_or_none(raw.get("targetMeanPrice")),
        target_high_price=positive_or_none(raw.get("targetHighPrice")),
        target_low_price=positive_or_none(raw.get("targetLowPrice")),
        trailing_pe=to_float(raw.get("trailingPE")),
        forward_pe=to_float(raw.get("forwardPE")),
        price_to_book=to_float(raw.get("priceToBook")),
        return_on_equity=to_float(raw.get("returnOnEquity")),
        trailing_eps=to_float(raw.get("trailingEps")),
        dividend_yield=to_float(raw.get("dividendYield")),
        market_cap=to_float(raw.get("marketCap")),
        operating_margins=to_float(raw.get("operatingMargins")),
        revenue_growth=to_float(raw.get("revenueGrowth")),
        debt_to_equity=to_float(raw.get("debtToEquity")),
        price_history=history,
    )


@dataclass(frozen=True)
class MarketDataResolver:
    provider: MarketDataProvider

    def resolve_ticker(self, company_name: str, market_hint: StockMarket | str = "unknown") -> str | None:
        direct = lookup_static_ticker(company_name)
        if direct:
            return direct

        try:
            hits = self.provider.search_ticker(company_name)
        except Exception as exc:
            logger.warning("Ticker search failed for %r: %s", company_name, exc)
            return None
        if not hits:
            return None

        if market_hint == "KRX":
            for hit in hits:
                if is_krx_ticker(hit.symbol):
                    return hit.symbol
        elif market_hint in US_EXCHANGES:
            for hit in hits:
                if hit.exchange.upper() in US_EXCHANGES:
                    return hit.symbol

        return hits[0].symbol

    def fetch_quote(self, ticker: str, period_months: int) -> MarketQuote:
        raw: dict[str, Any] = {}
        try:
            raw = self.provider.fetch_quote_bundle(ticker)
        except Exception as exc:
            logger.warning("Quote summary failed for %s, falling back to basic quote: %s", ticker, exc)
            try:
                raw = self.provider.fetch_basic_quote(ticker)
            except Exception as basic_exc:
                logger.error("Basic quote also failed for %s: %s", ticker, basic_exc)

        history: list[PriceBar] = []
        try:
            history = self.provider.fetch_history(ticker, history_since(period_months))
        except Exception as exc:
            logger.warning("Historical data failed for %s: %s", ticker, exc)

        return build_quote(ticker, raw or {}, history)
