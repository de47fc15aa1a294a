# 将候选公司的现价、文档目标价和推荐买入价统一换算为报告币种（默认韩元），缺失的目标价与买入价以现价代替。
from __future__ import annotations

from stockpick_agent.currency import convert_to_reporting
from stockpick_agent.models import CandidateCompany, CurrencyCode, ExchangeRate, MarketQuote, NormalizedPrices


def normalize_prices(
    company: CandidateCompany,
    quote: MarketQuote,
    rate: ExchangeRate,
    reporting: CurrencyCode = "KRW",
) -> NormalizedPrices:
    current = convert_to_reporting(quote.current_price, quote.currency, rate, reporting)
    target = (
        convert_to_reporting(company.target_price, company.currency, rate, reporting)
        if company.target_price
        else current
    )
    buy = (
        convert_to_reporting(company.recommended_buy_price, company.currency, rate, reporting)
        if company.recommended_buy_price
        else current
    )
    return NormalizedPrices(
        currency=reporting,
        current_price=current,
        target_price=target,
        recommended_buy_price=buy,
        exchange_rate_used=rate.rate,
    )
