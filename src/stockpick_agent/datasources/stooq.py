from __future__ import annotations

from io import StringIO

import pandas as pd
import requests

from stockpick_agent.datasources.base import FxRateProvider
from stockpick_agent.utils import to_float


class StooqFxRateProvider(FxRateProvider):
    name = "stooq"

    def __init__(self, timeout: float = 20.0):
        self._timeout = timeout

    def fetch_fx_rate(self, pair: str) -> float:
        url = f"https://stooq.com/q/l/?s={pair.lower()}&f=sd2t2ohlc&h&e=csv"
        resp = requests.get(url, timeout=self._timeout)
        resp.raise_for_status()

        df = pd.read_csv(StringIO(resp.text))
        if df.empty or "Close" not in df.columns:
            raise LookupError(f"No FX quote for {pair} from stooq")
        # stooq answers unknown symbols with "N/D" fields
        rate = to_float(df["Close"].iloc[-1])
        if rate is None or rate <= 0:
            raise LookupError(f"No FX quote for {pair} from stooq")
        return rate
