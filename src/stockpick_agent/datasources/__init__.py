from stockpick_agent.datasources.base import FxRateProvider, MarketDataProvider
from stockpick_agent.datasources.market import MarketDataResolver, build_quote, infer_ticker_currency
from stockpick_agent.datasources.stooq import StooqFxRateProvider
from stockpick_agent.datasources.yahoo import YahooFxRateProvider, YahooMarketDataProvider

__all__ = [
    "MarketDataProvider",
    "FxRateProvider",
    "MarketDataResolver",
    "build_quote",
    "infer_ticker_currency",
    "YahooMarketDataProvider",
    "YahooFxRateProvider",
    "StooqFxRateProvider",
]
