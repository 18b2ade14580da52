"""LangGraph node asking Gemini for a plain-language health summary."""
from __future__ import annotations

from typing import Dict, List

from stock_valuation.domain.errors import NarrativeError
from stock_valuation.domain.models.financials import FinancialRecord
from stock_valuation.utils.formatting import format_number, format_percentage
from stock_valuation.workflows.context import WorkflowContext
from stock_valuation.workflows.nodes.llm_clean import clean_llm_output
from stock_valuation.workflows.state import LookupState

SYSTEM_PROMPT = (
    "You are an expert financial analyst writing for retail investors. "
    "Stay strictly within the figures provided and never invent data."
)

ANALYSIS_TEMPLATE = """Act as an expert financial analyst. Based on the following data for {company_name} ({symbol}), provide a concise, easy-to-understand summary (in {language}) of its financial health for a retail investor. Highlight key strengths and potential risks.

Company Profile:
- Industry: {industry}
- Price: ${price}
- Market Cap: ${market_cap}

Key Metrics (TTM):
- P/E Ratio: {pe}
- P/B Ratio: {pb}
- EPS: ${eps}
- Dividend Yield: {dividend_yield}
- ROE: {roe}
- Debt/Equity: {debt_to_equity}

Please provide the analysis in a single, well-structured paragraph."""


def build_analysis_prompt(record: FinancialRecord, *, language: str = "English") -> str:
    """Interpolate the record's formatted figures into the fixed analysis template."""
    return ANALYSIS_TEMPLATE.format(
        company_name=record.profile.company_name or record.symbol,
        symbol=record.symbol,
        language=language,
        industry=record.profile.industry or "–",
        price=format_number(record.profile.price),
        market_cap=format_number(record.profile.market_cap),
        pe=format_number(record.pe),
        pb=format_number(record.price_to_book),
        eps=format_number(record.eps),
        dividend_yield=format_percentage(_as_percent(record.dividend_yield)),
        roe=format_percentage(_as_percent(record.return_on_equity)),
        debt_to_equity=format_number(record.debt_to_equity),
    )


def build_messages(record: FinancialRecord, *, language: str = "English") -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_analysis_prompt(record, language=language)},
    ]


def run(state: LookupState, context: WorkflowContext) -> LookupState:
    logs = state.setdefault("logs", [])
    errors = state.setdefault("errors", [])
    record = state.get("record")
    if state.get("fatal_error") or record is None:
        return state

    if not state.get("analyze"):
        logs.append("NarrativeAgent -> skipped (analysis not requested)")
        return state
    if context.gemini is None:
        logs.append("NarrativeAgent -> skipped (Gemini client not configured)")
        errors.append("AI analysis unavailable: POE_API_KEY is not configured.")
        return state

    logs.append(f"NarrativeAgent -> summarize {record.symbol} via {context.gemini.model}")
    try:
        raw = context.gemini.generate(
            build_messages(record),
            thinking_budget=context.config.poe_thinking_budget,
        )
    except NarrativeError as exc:
        errors.append(exc.message)
        return state

    cleaned = clean_llm_output(raw)
    if not cleaned:
        errors.append("No analysis content received from AI.")
        return state
    state["narrative"] = cleaned
    return state


def _as_percent(fraction):
    return fraction * 100 if fraction is not None else None
