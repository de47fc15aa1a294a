# 基于日度收盘价计算月度收益率序列、平均月收益率和历史波动率（样本标准差），供过滤阶段与评分模型共同使用。
from __future__ import annotations

import numpy as np
import pandas as pd

from stockpick_agent.models import PriceBar

DEFAULT_VOLATILITY = 0.3


def monthly_closes(history: list[PriceBar]) -> pd.Series:
    """Last close of each calendar month, oldest month first."""
    if not history:
        return pd.Series(dtype=float)
    s = pd.Series(
        [b.close for b in history],
        index=pd.to_datetime([b.date for b in history]),
        dtype=float,
    ).sort_index(kind="mergesort")
    return s.groupby(s.index.to_period("M")).last()


def monthly_returns(history: list[PriceBar]) -> np.ndarray:
    """Month-over-month returns; a month whose previous close is not positive is skipped."""
    if len(history) < 2:
        return np.array([], dtype=float)
    closes = monthly_closes(history).to_numpy(dtype=float)
    if closes.size < 2:
        return np.array([], dtype=float)
    prev, curr = closes[:-1], closes[1:]
    mask = prev > 0
    return (curr[mask] - prev[mask]) / prev[mask]


def mean_monthly_return(returns: np.ndarray) -> float | None:
    if returns.size == 0:
        return None
    return float(np.mean(returns))


def historical_volatility(history: list[PriceBar]) -> float:
    r = monthly_returns(history)
    if r.size < 2:
        return DEFAULT_VOLATILITY
    return float(np.std(r, ddof=1))
