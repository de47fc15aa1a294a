# 根据 RecommendationResult 生成 CLI 文本视图和结构化 JSON 结果，供终端展示或下游系统消费。
from __future__ import annotations

from stockpick_agent.models import FilteredCandidate, RecommendationResult
from stockpick_agent.utils import format_money

PASS_MARK = "✓"
FAIL_MARK = "✗"
CAVEAT_MARK = "!"
TOP_RULES = 3


def stage_marks(candidate: FilteredCandidate) -> str:
    marks = []
    for r in candidate.filter_results:
        mark = FAIL_MARK if not r.passed else (CAVEAT_MARK if r.caveat else PASS_MARK)
        marks.append(f"{r.stage}{mark}")
    return " ".join(marks)


def format_result(result: RecommendationResult) -> dict:
    facts = {
        "processed_at": result.processed_at.isoformat(),
        "style": result.style.value,
        "conditions": result.conditions.model_dump(mode="json"),
        "exchange_rate": result.exchange_rate.model_dump(mode="json"),
        "algo_versions": result.algo_versions,
        "top_pick": result.top_pick.ticker if result.top_pick else None,
        "ranking": [
            {
                "name": c.company.name,
                "ticker": c.ticker,
                "score": c.score,
                "passed_all_filters": c.passed_all_filters,
                "risk_level": c.risk_level,
                "rule_alignment": c.rule_alignment,
                "strategy_score": c.strategy_score,
            }
            for c in result.candidates
        ],
        "failures": [f.model_dump(mode="json") for f in result.failures],
    }
    return {"facts": facts, "summary": result.summary, "result": result.model_dump(mode="json")}


def _candidate_line(rank: int, c: FilteredCandidate) -> str:
    price = ""
    if c.normalized_prices is not None:
        p = c.normalized_prices
        price = f" price={format_money(p.current_price, p.currency)} target={format_money(p.target_price, p.currency)}"
    return (
        f"{rank:>2}. {c.company.name} ({c.ticker or '-'}) score={c.score} "
        f"risk={c.risk_level} er={c.expected_return_rate:.1f}%{price} [{stage_marks(c)}]"
    )


def format_cli(result: RecommendationResult) -> str:
    rate = result.exchange_rate
    fx_note = " (fallback)" if rate.is_fallback else ""
    lines = [
        f"style={result.style.value} amount={format_money(result.conditions.amount, result.reporting_currency)} "
        f"period={result.conditions.period_months}m",
        f"USD/KRW={rate.rate:,.2f}{fx_note} versions={result.algo_versions}",
        "",
    ]
    for i, c in enumerate(result.candidates, start=1):
        lines.append(_candidate_line(i, c))
        failed = [r for r in c.filter_results if not r.passed]
        for r in failed:
            lines.append(f"      {r.stage_name}: {r.reason}")

    lines.append("")
    if result.top_pick is not None:
        top = result.top_pick
        lines.append(f"Top pick: {top.company.name} ({top.ticker}) score={top.score}")
        if top.rule_alignment is not None:
            lines.append(f"Rule fit: {top.rule_alignment:.2f}/10")
            for rs in sorted(top.rule_scores, key=lambda r: r.score, reverse=True)[:TOP_RULES]:
                lines.append(f"  - [{rs.score}] {rs.rule}: {rs.reason}")
        if top.strategy_score is not None:
            lines.append(f"Strategy fit: {top.strategy_score:.0f}/100")
        if top.evidence is not None:
            lines.append(f"Decision: {top.evidence.decision}")
            for check in top.evidence.real_time_checks:
                lines.append(
                    f"  - {check.metric}: {check.material_value} / {check.real_time_value} [{check.status}]"
                )
    else:
        lines.append("Top pick: none")

    lines += ["", "Summary:", result.summary.strip()]
    return "\n".join(lines)
