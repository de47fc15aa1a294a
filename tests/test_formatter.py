from __future__ import annotations

import json

from conftest import FakeMarketDataProvider, build_engine, growth_history

from stockpick_agent.formatter import format_cli, format_result, stage_marks
from stockpick_agent.models import (
    CandidateCompany,
    InvestmentConditions,
    InvestmentStrategy,
    LearnedInvestmentCriteria,
    WeightedRule,
)
from stockpick_agent.utils import json_dumps

CONDITIONS = InvestmentConditions(amount=1_000_000, period_months=12)


def _result(apple):
    provider = FakeMarketDataProvider(
        bundles={"AAPL": {"currency": "USD", "regularMarketPrice": 100.0, "targetMeanPrice": 140.0}},
        histories={"AAPL": growth_history(0.05)},
    )
    ghost = CandidateCompany(name="Ghost", target_price=1.0)
    return build_engine(provider).run([apple, ghost], CONDITIONS)


def test_format_result_is_json_ready(apple):
    out = format_result(_result(apple))
    assert set(out) == {"facts", "summary", "result"}
    assert out["facts"]["top_pick"] == "AAPL"
    assert [r["ticker"] for r in out["facts"]["ranking"]] == ["AAPL", None]
    assert out["facts"]["failures"][0]["kind"] == "ticker_not_found"
    # round-trips through the CLI encoder
    assert json.loads(json_dumps(out))["facts"]["style"] == "conservative"


def test_format_cli_lists_candidates_and_top_pick(apple):
    text = format_cli(_result(apple))
    assert "USD/KRW=1,300.00" in text
    assert " 1. Apple (AAPL)" in text
    assert " 2. Ghost (-) score=0" in text
    assert "Top pick: Apple (AAPL)" in text
    assert "애널리스트 컨센서스" in text
    assert text.rstrip().endswith(_result(apple).summary)


def test_stage_marks(apple):
    result = _result(apple)
    assert stage_marks(result.candidates[0]) == "1✓ 2✓ 3✓ 4✓"
    assert stage_marks(result.candidates[1]) == "1✗"


def test_format_cli_without_top_pick():
    result = build_engine(FakeMarketDataProvider()).run([], CONDITIONS)
    assert "Top pick: none" in format_cli(result)


def test_format_cli_shows_rule_and_strategy_fit(apple):
    provider = FakeMarketDataProvider(
        bundles={"AAPL": {"currency": "USD", "regularMarketPrice": 100.0, "trailingPE": 11.0}},
        histories={"AAPL": growth_history(0.05)},
    )
    criteria = LearnedInvestmentCriteria(
        good_company_rules=[WeightedRule(rule="저PER 기업"), WeightedRule(rule="좋은 경영진")]
    )
    result = build_engine(provider).run(
        [apple], CONDITIONS, criteria=criteria, strategy=InvestmentStrategy()
    )

    text = format_cli(result)
    assert "Rule fit: 7.50/10" in text
    assert "  - [10] 저PER 기업: PER 11.0 (저평가 매력)" in text
    assert "Strategy fit: 50/100" in text
    ranking = format_result(result)["facts"]["ranking"]
    assert ranking[0]["rule_alignment"] == 7.5
    assert ranking[0]["strategy_score"] == 50.0
