from pathlib import Path

from config import Config
from stock_valuation.domain.errors import NarrativeError
from stock_valuation.domain.models.financials import CompanyProfile, FinancialRecord, KeyMetrics, Quote, Ratios
from stock_valuation.domain.services.valuation import DcfEngine
from stock_valuation.reports.renderer import ReportRenderer
from stock_valuation.workflows.context import WorkflowContext
from stock_valuation.workflows.nodes import narrative


class FakeGemini:
    model = "fake-gemini"

    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def generate(self, messages, **kwargs):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return self.reply

    def close(self):
        pass


def make_record() -> FinancialRecord:
    return FinancialRecord(
        profile=CompanyProfile(
            symbol="AAPL",
            company_name="Apple Inc.",
            industry="Consumer Electronics",
            price=190.5,
            market_cap=2.95e9,
        ),
        metrics=KeyMetrics(return_on_equity=1.56, debt_to_equity=None),
        ratios=Ratios(pe=30.1, dividend_yield=0.0051, debt_to_equity=1.87),
        quote=Quote(eps=6.08),
    )


def make_context(tmp_path: Path, gemini) -> WorkflowContext:
    config = Config(watchlist_db_path=tmp_path / "w.db", output_dir=tmp_path)
    return WorkflowContext(
        config=config,
        market_data=None,
        gemini=gemini,
        dcf_engine=DcfEngine(),
        renderer=ReportRenderer(),
    )


def test_prompt_interpolates_formatted_fields():
    prompt = narrative.build_analysis_prompt(make_record())
    assert "Apple Inc. (AAPL)" in prompt
    assert "- Industry: Consumer Electronics" in prompt
    assert "- Price: $190.50" in prompt
    assert "- Market Cap: $2.95B" in prompt
    assert "- P/E Ratio: 30.10" in prompt
    assert "- P/B Ratio: –" in prompt
    assert "- EPS: $6.08" in prompt
    assert "- Dividend Yield: 0.51%" in prompt
    assert "- ROE: 156.00%" in prompt
    assert "- Debt/Equity: 1.87" in prompt


def test_narrative_is_cleaned_and_stored(tmp_path):
    gemini = FakeGemini(reply="*Thinking...*\n\n> plan\n\nApple looks financially strong.")
    state = {"record": make_record(), "analyze": True}
    result = narrative.run(state, make_context(tmp_path, gemini))
    assert result["narrative"] == "Apple looks financially strong."
    assert gemini.calls[0][0]["role"] == "system"


def test_narrative_failure_is_recorded_without_touching_record(tmp_path):
    record = make_record()
    gemini = FakeGemini(error=NarrativeError("Failed to get analysis from AI. The model may be overloaded."))
    result = narrative.run({"record": record, "analyze": True}, make_context(tmp_path, gemini))
    assert result["record"] is record
    assert "narrative" not in result
    assert result["errors"] == ["Failed to get analysis from AI. The model may be overloaded."]


def test_narrative_skipped_unless_requested(tmp_path):
    gemini = FakeGemini(reply="unused")
    result = narrative.run({"record": make_record()}, make_context(tmp_path, gemini))
    assert gemini.calls == []
    assert "narrative" not in result


def test_missing_gemini_client_is_reported(tmp_path):
    result = narrative.run({"record": make_record(), "analyze": True}, make_context(tmp_path, None))
    assert result["errors"]
