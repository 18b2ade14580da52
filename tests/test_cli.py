import pytest
from typer.testing import CliRunner

from stock_valuation.cli.commands import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    monkeypatch.setenv("WATCHLIST_DB_PATH", str(tmp_path / "watchlist.db"))
    monkeypatch.setenv("OUTPUT_DIR", str(tmp_path / "reports"))
    monkeypatch.delenv("FMP_API_KEY", raising=False)
    monkeypatch.delenv("POE_API_KEY", raising=False)


def test_watchlist_commands():
    result = runner.invoke(app, ["watchlist", "add", "aapl", "msft"])
    assert result.exit_code == 0
    assert "Added AAPL" in result.output

    result = runner.invoke(app, ["watchlist", "add", "AAPL"])
    assert "already on the watchlist" in result.output

    result = runner.invoke(app, ["watchlist", "list"])
    assert "AAPL" in result.output and "MSFT" in result.output

    result = runner.invoke(app, ["watchlist", "remove", "aapl"])
    assert "Removed AAPL" in result.output


def test_plan_lists_stages():
    result = runner.invoke(app, ["plan"])
    assert result.exit_code == 0
    assert "fetch_snapshots" in result.output


def test_lookup_without_api_key_exits_with_error():
    result = runner.invoke(app, ["lookup", "AAPL"])
    assert result.exit_code == 1
    assert "FMP_API_KEY" in result.output


def test_blank_ticker_exits_with_error():
    result = runner.invoke(app, ["lookup", "  "])
    assert result.exit_code == 1
    assert "Please enter a stock ticker." in result.output
