# 从环境变量读取汇率提供商、缓存、超时与并发等配置并封装为只读 Settings 对象，统一管理分析引擎的外部依赖参数。
from __future__ import annotations

import os
from dataclasses import dataclass, field

from stockpick_agent.constants import (
    DEFAULT_FETCH_TIMEOUT_SECONDS,
    FALLBACK_USD_KRW,
    FX_CACHE_TTL_SECONDS,
    MAX_WORKER_CAP,
)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Unset means the exchange rate is cached in process memory only.
    redis_url: str | None = field(default_factory=lambda: os.getenv("REDIS_URL") or None)
    fx_provider: str = field(default_factory=lambda: os.getenv("FX_PROVIDER", "yahoo").strip().lower())
    fallback_usd_krw: float = field(default_factory=lambda: _env_float("FALLBACK_USD_KRW", FALLBACK_USD_KRW))
    fx_cache_ttl_seconds: int = field(
        default_factory=lambda: _env_int("FX_CACHE_TTL_SECONDS", FX_CACHE_TTL_SECONDS)
    )
    fetch_timeout_seconds: float = field(
        default_factory=lambda: _env_float("FETCH_TIMEOUT_SECONDS", DEFAULT_FETCH_TIMEOUT_SECONDS)
    )
    max_workers: int = field(default_factory=lambda: _env_int("ANALYSIS_MAX_WORKERS", 1))
    reporting_currency: str = field(
        default_factory=lambda: os.getenv("REPORTING_CURRENCY", "KRW").strip().upper()
    )

    @property
    def worker_count(self) -> int:
        return max(1, min(self.max_workers, MAX_WORKER_CAP))


def get_settings() -> Settings:
    return Settings()
