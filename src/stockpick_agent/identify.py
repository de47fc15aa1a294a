# 维护韩国大型股公司名到 Yahoo 代码的静态对照表，并提供名称规范化查找与交易所后缀判断，弥补按名称搜索不可靠的问题。
from __future__ import annotations

import re

KRX_SUFFIXES = (".KS", ".KQ")

# Korean names that the provider's text search resolves poorly or not at all.
KRX_TICKER_MAP: dict[str, str] = {
    "삼성전자": "005930.KS",
    "삼성SDI": "006400.KS",
    "SK하이닉스": "000660.KS",
    "LG에너지솔루션": "373220.KS",
    "현대자동차": "005380.KS",
    "기아": "000270.KS",
    "NAVER": "035420.KS",
    "카카오": "035720.KS",
    "LG화학": "051910.KS",
    "POSCO홀딩스": "005490.KS",
    "셀트리온": "068270.KS",
    "KB금융": "105560.KS",
    "신한지주": "055550.KS",
    "하나금융지주": "086790.KS",
    "삼성바이오로직스": "207940.KS",
    "현대모비스": "012330.KS",
    "LG전자": "066570.KS",
    "SK이노베이션": "096770.KS",
    "SK텔레콤": "017670.KS",
    "KT": "030200.KS",
    "삼성물산": "028260.KS",
    "한국전력": "015760.KS",
    "포스코퓨처엠": "003670.KS",
    "에코프로비엠": "247540.KQ",
    "에코프로": "086520.KQ",
}


def _norm(s: str) -> str:
    s = s.strip().lower()
    s = re.sub(r"[\.\,\-\(\)'\"]+", " ", s)
    s = re.sub(r"\s+", "", s)
    return s


_BY_NORM_NAME = {_norm(name): symbol for name, symbol in KRX_TICKER_MAP.items()}


def lookup_static_ticker(company_name: str) -> str | None:
    """Exact table hit first, then a case/space/punctuation-insensitive match."""
    hit = KRX_TICKER_MAP.get(company_name)
    if hit:
        return hit
    if not company_name or not company_name.strip():
        return None
    return _BY_NORM_NAME.get(_norm(company_name))


def is_krx_ticker(symbol: str | None) -> bool:
    return bool(symbol) and symbol.upper().endswith(KRX_SUFFIXES)
