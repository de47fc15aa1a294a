# 提供带 5 分钟缓存与备用汇率的美元/韩元汇率服务、金额换算以及从文本中推断币种的工具，汇率获取失败时绝不抛出异常。
from __future__ import annotations

import logging
import re
import threading
import time
from datetime import datetime, timezone

from pydantic import ValidationError

from stockpick_agent.cache.base import JSONCache
from stockpick_agent.cache.memory_cache import InMemoryJSONCache
from stockpick_agent.constants import FALLBACK_USD_KRW, FX_CACHE_KEY, FX_CACHE_TTL_SECONDS
from stockpick_agent.datasources.base import FxRateProvider
from stockpick_agent.models import CurrencyCode, ExchangeRate
from stockpick_agent.utils import to_float

logger = logging.getLogger(__name__)

KRW_INDICATORS = ("원", "₩", "KRW", "만원", "억원")
USD_INDICATORS = ("$", "usd", "dollar")
_KRW_UNITS = {"만": 10_000, "억": 100_000_000}
_PRICE_PATTERN = re.compile(r"(\d[\d,]*(?:\.\d+)?)\s*(만|억)?")


class CurrencyService:
    """USD/KRW rate with a read-check-write-if-stale cache.

    The cached entry never expires in the backing store; freshness is judged
    from ``fetched_at`` so an old rate can still serve as the failure fallback.
    """

    def __init__(
        self,
        provider: FxRateProvider,
        cache: JSONCache | None = None,
        *,
        ttl_seconds: int = FX_CACHE_TTL_SECONDS,
        fallback_rate: float = FALLBACK_USD_KRW,
        clock=time.time,
    ):
        self._provider = provider
        self._cache = cache if cache is not None else InMemoryJSONCache()
        self._ttl_seconds = ttl_seconds
        self._fallback_rate = fallback_rate
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def fallback_rate(self) -> float:
        return self._fallback_rate

    def get_exchange_rate(self) -> ExchangeRate:
        with self._lock:
            cached = self._read_cache()
            if cached is not None and self._is_fresh(cached):
                return cached

            try:
                rate = float(self._provider.fetch_fx_rate("USDKRW"))
                if not rate > 0:
                    raise ValueError(f"Non-positive FX rate: {rate}")
            except Exception as exc:
                if cached is not None:
                    logger.warning("FX refresh failed, reusing cached rate %.2f: %s", cached.rate, exc)
                    return cached
                logger.warning("FX fetch failed and no cached rate, using fallback %.2f: %s", self._fallback_rate, exc)
                return ExchangeRate(rate=self._fallback_rate, fetched_at=self._now(), is_fallback=True)

            fresh = ExchangeRate(rate=rate, fetched_at=self._now())
            self._write_cache(fresh)
            logger.info("FX rate refreshed from %s: USD/KRW %.2f", self._provider.name, rate)
            return fresh

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.delete(FX_CACHE_KEY)

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def _is_fresh(self, rate: ExchangeRate) -> bool:
        return self._clock() - rate.fetched_at.timestamp() < self._ttl_seconds

    def _read_cache(self) -> ExchangeRate | None:
        try:
            hit = self._cache.get_json(FX_CACHE_KEY)
        except Exception as exc:
            logger.warning("FX cache read failed: %s", exc)
            return None
        if not hit:
            return None
        try:
            cached = ExchangeRate.model_validate(hit)
        except ValidationError as exc:
            logger.warning("Ignoring malformed cached FX entry: %s", exc)
            return None
        if not cached.rate > 0:
            logger.warning("Ignoring non-positive cached FX rate %s", cached.rate)
            return None
        return cached

    def _write_cache(self, rate: ExchangeRate) -> None:
        try:
            self._cache.set_json(FX_CACHE_KEY, rate.model_dump(mode="json"), ttl_seconds=0)
        except Exception as exc:
            logger.warning("FX cache write failed: %s", exc)


def convert(amount: float, from_currency: str, to_currency: str, rate: ExchangeRate) -> float:
    """USD<->KRW via ``rate.rate``; same-currency and unsupported pairs return ``amount`` unchanged."""
    if from_currency == to_currency:
        return amount
    if from_currency == "USD" and to_currency == "KRW":
        return amount * rate.rate
    if from_currency == "KRW" and to_currency == "USD":
        return amount / rate.rate
    return amount


def convert_to_reporting(
    amount: float, currency: str, rate: ExchangeRate, reporting: CurrencyCode = "KRW"
) -> float:
    return convert(amount, currency, reporting, rate)


def detect_currency(text: str) -> CurrencyCode:
    """Guess the currency of a price string from source material.

    Dollar markers win over won markers; text with neither is treated as won.
    """
    lower = text.lower()
    for indicator in USD_INDICATORS:
        if indicator in lower:
            return "USD"
    for indicator in KRW_INDICATORS:
        if indicator in text:
            return "KRW"
    # bare figures (won-sized ones like 85,000 and small ones alike) are read as won
    return "KRW"


def parse_price_text(text: str) -> tuple[float | None, CurrencyCode]:
    """Split a price as written in source material (``"$150"``, ``"85,000원"``) into amount and currency."""
    match = _PRICE_PATTERN.search(text)
    if match is None:
        return None, detect_currency(text)
    amount = to_float(match.group(1))
    if amount is not None and match.group(2):
        amount *= _KRW_UNITS[match.group(2)]
    return amount, detect_currency(text)
