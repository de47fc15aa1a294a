from __future__ import annotations

import logging
from datetime import date
from typing import Any

import pandas as pd
import yfinance as yf

from stockpick_agent.datasources.base import FxRateProvider, MarketDataProvider
from stockpick_agent.models import PriceBar, TickerSearchHit

logger = logging.getLogger(__name__)

_SUMMARY_KEYS = (
    "currency",
    "regularMarketPrice",
    "currentPrice",
    "regularMarketPreviousClose",
    "previousClose",
    "fiftyTwoWeekHigh",
    "fiftyTwoWeekLow",
    "targetMeanPrice",
    "targetHighPrice",
    "targetLowPrice",
    "trailingPE",
    "forwardPE",
    "priceToBook",
    "returnOnEquity",
    "trailingEps",
    "dividendYield",
    "marketCap",
    "operatingMargins",
    "revenueGrowth",
    "debtToEquity",
)


class YahooMarketDataProvider(MarketDataProvider):
    name = "yahoo"

    def __init__(self, timeout: float = 20.0, max_search_results: int = 8):
        self._timeout = timeout
        self._max_search_results = max_search_results

    def search_ticker(self, query: str) -> list[TickerSearchHit]:
        search = yf.Search(query, max_results=self._max_search_results, news_count=0, timeout=int(self._timeout))
        hits: list[TickerSearchHit] = []
        for quote in getattr(search, "quotes", None) or []:
            symbol = quote.get("symbol")
            if not symbol:
                continue
            hits.append(
                TickerSearchHit(
                    symbol=symbol,
                    exchange=quote.get("exchDisp") or quote.get("exchange") or "",
                    name=quote.get("shortname") or quote.get("longname") or "",
                )
            )
        return hits

    def fetch_quote_bundle(self, ticker: str) -> dict[str, Any]:
        info = yf.Ticker(ticker).info or {}
        if not info.get("regularMarketPrice") and not info.get("currentPrice"):
            raise LookupError(f"Empty quote summary for {ticker}")
        bundle = {k: info.get(k) for k in _SUMMARY_KEYS}
        # yfinance reports dividendYield in percent; the rest of the pipeline uses fractions
        if bundle.get("dividendYield") is not None:
            bundle["dividendYield"] = float(bundle["dividendYield"]) / 100.0
        return bundle

    def fetch_basic_quote(self, ticker: str) -> dict[str, Any]:
        fi = yf.Ticker(ticker).fast_info
        return {
            "currency": fi.currency,
            "regularMarketPrice": fi.last_price,
            "regularMarketPreviousClose": fi.previous_close,
            "fiftyTwoWeekHigh": fi.year_high,
            "fiftyTwoWeekLow": fi.year_low,
            "marketCap": fi.market_cap,
        }

    def fetch_history(self, ticker: str, since: date) -> list[PriceBar]:
        df = yf.Ticker(ticker).history(
            start=since.isoformat(), interval="1d", auto_adjust=True, timeout=self._timeout
        )
        return history_frame_to_bars(df)


class YahooFxRateProvider(FxRateProvider):
    name = "yahoo"

    def fetch_fx_rate(self, pair: str) -> float:
        base, quote = pair[:3].upper(), pair[3:].upper()
        # Yahoo quotes USD crosses as "<QUOTE>=X"
        symbol = f"{quote}=X" if base == "USD" else f"{base}{quote}=X"
        price = yf.Ticker(symbol).fast_info.last_price
        if price is None or not price > 0:
            raise LookupError(f"No FX quote for {pair}")
        return float(price)


def history_frame_to_bars(df: pd.DataFrame | None) -> list[PriceBar]:
    if df is None or df.empty or "Close" not in df.columns:
        return []
    df = df.dropna(subset=["Close"]).sort_index()
    volumes = df["Volume"] if "Volume" in df.columns else pd.Series(0, index=df.index)
    return [
        PriceBar(
            date=pd.Timestamp(ts).date(),
            close=float(close),
            volume=int(volume) if pd.notna(volume) else 0,
        )
        for ts, close, volume in zip(df.index, df["Close"], volumes)
    ]
