from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Any

from stockpick_agent.models import PriceBar, TickerSearchHit


class MarketDataProvider(ABC):
    """Raw market-data access. Quote payloads use Yahoo-style keys (``regularMarketPrice``, ``trailingPE``...)."""

    name: str

    @abstractmethod
    def search_ticker(self, query: str) -> list[TickerSearchHit]:
        raise NotImplementedError

    @abstractmethod
    def fetch_quote_bundle(self, ticker: str) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def fetch_basic_quote(self, ticker: str) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def fetch_history(self, ticker: str, since: date) -> list[PriceBar]:
        raise NotImplementedError


class FxRateProvider(ABC):
    name: str

    @abstractmethod
    def fetch_fx_rate(self, pair: str) -> float:
        """Return units of the quote currency per one unit of the base, e.g. ``USDKRW`` -> 1350.0."""
        raise NotImplementedError
