# 提供 JSON 序列化、数值安全转换以及韩元/美元金额格式化等通用工具函数。
from __future__ import annotations

import json
import math
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any


# --- JSON Utilities ---

def _default(o: Any) -> Any:
    if isinstance(o, (datetime, date)):
        if isinstance(o, datetime) and o.tzinfo is None:
            o = o.replace(tzinfo=timezone.utc)
        return o.isoformat()
    if isinstance(o, Decimal):
        return str(o)
    if isinstance(o, Enum):
        return o.value
    raise TypeError(f"Object of type {type(o).__name__} is not JSON serializable")


def json_dumps(obj: Any, *, indent: int | None = None) -> str:
    return json.dumps(obj, default=_default, ensure_ascii=False, indent=indent)


def json_loads(s: str) -> Any:
    return json.loads(s)


# --- Numeric Utilities ---

def to_float(v: Any) -> float | None:
    """安全地将值转换为浮点数，NaN 与无法解析的值返回 None"""
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        f = float(v)
    else:
        s = str(v).strip().replace(",", "")
        if not s or s.lower() in {"none", "nan", "n/a"}:
            return None
        try:
            f = float(s)
        except ValueError:
            return None
    if math.isnan(f) or math.isinf(f):
        return None
    return f


def positive_or_none(v: Any) -> float | None:
    f = to_float(v)
    if f is None or f <= 0:
        return None
    return f


# --- Money Formatting ---

def format_krw(amount: float) -> str:
    """韩元金额的可读格式：억원 / 만원 / 원"""
    if amount >= 100_000_000:
        return f"{amount / 100_000_000:.1f}억원"
    if amount >= 10_000:
        return f"{amount / 10_000:.0f}만원"
    return f"{round(amount):,}원"


def format_money(amount: float, currency: str) -> str:
    if currency == "KRW":
        return format_krw(amount)
    return f"{currency} {amount:,.2f}"


def format_number(value: float) -> str:
    """Thousands separators, without trailing zeros for whole numbers."""
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"
