# 实现 stockpick 命令行工具入口，读取候选公司与投资准则 JSON 文件、解析投资金额与期限等参数，调用 AnalysisEngine 执行分析并输出结果。
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from stockpick_agent.config import get_settings
from stockpick_agent.currency import parse_price_text
from stockpick_agent.engine import AnalysisEngine
from stockpick_agent.formatter import format_cli, format_result
from stockpick_agent.models import (
    CandidateCompany,
    InvestmentConditions,
    InvestmentStrategy,
    InvestmentStyle,
    LearnedInvestmentCriteria,
)
from stockpick_agent.utils import json_dumps


_PRICE_FIELDS = ("target_price", "recommended_buy_price", "stop_loss_price")


def _coerce_price_text(item: dict) -> dict:
    """Prices copied verbatim from reports (``"$150"``, ``"85,000원"``) become numbers.

    When the entry carries no explicit currency, the first written price decides it.
    """
    item = dict(item)
    detected = None
    for field in _PRICE_FIELDS:
        value = item.get(field)
        if isinstance(value, str):
            item[field], currency = parse_price_text(value)
            detected = detected or currency
    if detected and "currency" not in item:
        item["currency"] = detected
    return item


def load_candidates(path: Path) -> list[CandidateCompany]:
    """Accepts either a bare JSON list or ``{"candidates": [...]}``."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("candidates", [])
    return [
        CandidateCompany.model_validate(_coerce_price_text(item) if isinstance(item, dict) else item)
        for item in data
    ]


def load_criteria(path: Path | None) -> LearnedInvestmentCriteria | None:
    if path is None:
        return None
    return LearnedInvestmentCriteria.model_validate_json(path.read_text(encoding="utf-8"))


def load_strategy(path: Path | None) -> InvestmentStrategy | None:
    if path is None:
        return None
    return InvestmentStrategy.model_validate_json(path.read_text(encoding="utf-8"))


def main(argv: list[str] | None = None) -> None:
    load_dotenv()

    parser = argparse.ArgumentParser(prog="stockpick", description="Equity recommendation funnel.")
    parser.add_argument("--candidates", required=True, type=Path, help="JSON file with candidate companies.")
    parser.add_argument("--criteria", type=Path, default=None, help="JSON file with learned investment criteria.")
    parser.add_argument("--amount", required=True, type=float, help="Investment amount in the reporting currency.")
    parser.add_argument("--months", required=True, type=int, help="Investment period in months.")
    parser.add_argument("--sector", default=None)
    parser.add_argument("--strategy", default=None, help="Free-text strategy hint recorded with the conditions.")
    parser.add_argument(
        "--investment-strategy",
        type=Path,
        default=None,
        help="JSON file with the learned investment strategy (conditions, winning patterns).",
    )
    parser.add_argument(
        "--style",
        default=InvestmentStyle.CONSERVATIVE.value,
        choices=[s.value for s in InvestmentStyle],
    )
    parser.add_argument("--json", action="store_true", help="Emit machine-readable JSON result.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging.")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        candidates = load_candidates(args.candidates)
        criteria = load_criteria(args.criteria)
        strategy = load_strategy(args.investment_strategy)
        conditions = InvestmentConditions(
            amount=args.amount,
            period_months=args.months,
            sector=args.sector,
            strategy=args.strategy,
        )
    except (OSError, ValueError, ValidationError) as exc:
        parser.exit(2, f"stockpick: invalid input: {exc}\n")

    engine = AnalysisEngine.default(get_settings())
    result = engine.run(candidates, conditions, criteria=criteria, style=args.style, strategy=strategy)

    if args.json:
        sys.stdout.write(json_dumps(format_result(result), indent=2) + "\n")
    else:
        print(format_cli(result))
