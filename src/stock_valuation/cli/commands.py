"""CLI command definitions for the stock valuation dashboard."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from config import Config
from stock_valuation.domain.errors import ValuationAppError
from stock_valuation.domain.models.financials import ExitModel, ValuationVerdict
from stock_valuation.infrastructure.db.sqlite import WatchlistRepository
from stock_valuation.settings.loader import load_settings
from stock_valuation.utils.formatting import (
    MISSING,
    format_number,
    format_percentage,
    format_ratio_as_percentage,
)
from stock_valuation.utils.logging import configure_logging
from stock_valuation.workflows.graph import ValuationWorkflow
from stock_valuation.workflows.state import LookupState

console = Console()
app = typer.Typer(help="Look up a stock, check its financial health and estimate a fair entry price.")
watchlist_app = typer.Typer(help="Manage the persistent ticker watchlist.")
app.add_typer(watchlist_app, name="watchlist")

_VERDICT_STYLE = {
    ValuationVerdict.UNDERVALUED: "bold green",
    ValuationVerdict.FAIR_VALUE: "bold yellow",
    ValuationVerdict.OVERVALUED: "bold red",
}


@dataclass
class AppContext:
    """Holds reusable process-wide objects for CLI commands."""

    config: Config
    _workflow: Optional[ValuationWorkflow] = field(default=None, repr=False)
    _watchlist: Optional[WatchlistRepository] = field(default=None, repr=False)

    @property
    def workflow(self) -> ValuationWorkflow:
        if self._workflow is None:
            self._workflow = ValuationWorkflow(config=self.config)
        return self._workflow

    @property
    def watchlist(self) -> WatchlistRepository:
        if self._watchlist is None:
            self._watchlist = WatchlistRepository(
                database_uri=f"sqlite:///{self.config.watchlist_db_path}",
                echo=self.config.sqlite_echo,
            )
        return self._watchlist


def _init_context(debug_override: Optional[bool] = None) -> AppContext:
    """Create a context with configuration and logging."""
    config = load_settings(debug_override)
    configure_logging(debug=config.debug)
    return AppContext(config=config)


@app.callback()
def main_callback(
    ctx: typer.Context,
    debug: Optional[bool] = typer.Option(
        None,
        "--debug/--no-debug",
        help="Temporarily toggle verbose logging without touching environment variables.",
    ),
) -> None:
    """Attach the lazily constructed application context to Typer."""
    ctx.obj = _init_context(debug_override=debug)


@app.command()
def lookup(
    ctx: typer.Context,
    ticker: str = typer.Argument(..., help="Stock ticker, e.g. AAPL"),
    eps: Optional[float] = typer.Option(None, "--eps", help="Override the current EPS used for projection."),
    growth: Optional[float] = typer.Option(None, "--growth", help="EPS growth rate in % per year (default 15)."),
    discount: Optional[float] = typer.Option(
        None, "--discount", help="Desired annual return / discount rate in % (default 15)."
    ),
    multiple: Optional[float] = typer.Option(
        None, "--multiple", help="Exit P/E multiple (defaults to the current P/E, else 20)."
    ),
    exit_model: ExitModel = typer.Option(
        ExitModel.TERMINAL_MULTIPLE, "--exit-model", case_sensitive=False, help="Terminal value model."
    ),
    terminal_growth: Optional[float] = typer.Option(
        None, "--terminal-growth", help="Perpetual growth in % for the perpetuity exit (default 3)."
    ),
    peers: Optional[bool] = typer.Option(
        None, "--peers/--no-peers", help="Fetch stock peers for the comparison table."
    ),
    analyze: bool = typer.Option(False, "--analyze", help="Ask Gemini for a plain-language summary."),
    markdown_path: Optional[Path] = typer.Option(None, "--markdown", help="Write the Markdown report to this path."),
    json_path: Optional[Path] = typer.Option(None, "--json", help="Persist the workflow state to this JSON file."),
) -> None:
    """Run the lookup workflow for one ticker and present the outcome."""
    if ctx.obj is None:
        raise typer.Exit(code=1)

    context: AppContext = ctx.obj
    overrides = {
        key: value
        for key, value in {
            "current_eps": eps,
            "eps_growth_rate": growth,
            "discount_rate": discount,
            "terminal_multiple": multiple,
            "terminal_growth_rate": terminal_growth,
        }.items()
        if value is not None
    }

    console.rule(f"Looking up {ticker.strip().upper()}")
    try:
        with console.status("[bold cyan]Fetching stock data..."):
            result = context.workflow.run(
                ticker,
                assumption_overrides=overrides or None,
                exit_model=exit_model,
                include_peers=peers,
                analyze=analyze,
            )
    except ValuationAppError as exc:
        console.print(f"[bold red]{exc.message}[/bold red]")
        raise typer.Exit(code=1) from exc

    _print_profile(result)
    _print_checklist(result)
    _print_peers(result)
    _print_valuation(result)
    if result.get("narrative"):
        console.rule("AI Analysis")
        console.print(result["narrative"])

    if result.get("errors"):
        console.print("[yellow]Completed with warnings:[/yellow]")
        for issue in result["errors"]:
            console.print(f"- {issue}")

    if json_path is not None:
        context.workflow.persist_state(result, json_path)
        console.print(f"State saved to {json_path}")
    if markdown_path is not None and result.get("markdown_report"):
        context.workflow.persist_markdown(result["markdown_report"], markdown_path)
        console.print(f"Markdown report available at {markdown_path}")


@watchlist_app.command("list")
def watchlist_list(ctx: typer.Context) -> None:
    """Show the watched tickers."""
    context: AppContext = ctx.obj
    symbols = context.watchlist.list_symbols()
    if not symbols:
        console.print("Your watchlist is empty.")
        return
    table = Table(title="Watchlist")
    table.add_column("#", style="cyan")
    table.add_column("Symbol")
    for idx, symbol in enumerate(symbols, start=1):
        table.add_row(str(idx), symbol)
    console.print(table)


@watchlist_app.command("add")
def watchlist_add(ctx: typer.Context, tickers: List[str] = typer.Argument(..., help="Tickers to watch.")) -> None:
    context: AppContext = ctx.obj
    for raw in tickers:
        try:
            added = context.watchlist.add(raw)
        except ValuationAppError as exc:
            console.print(f"[red]{exc.message}[/red]")
            raise typer.Exit(code=1) from exc
        symbol = raw.strip().upper()
        console.print(f"Added {symbol}" if added else f"{symbol} is already on the watchlist")


@watchlist_app.command("remove")
def watchlist_remove(ctx: typer.Context, tickers: List[str] = typer.Argument(..., help="Tickers to drop.")) -> None:
    context: AppContext = ctx.obj
    for raw in tickers:
        try:
            removed = context.watchlist.remove(raw)
        except ValuationAppError as exc:
            console.print(f"[red]{exc.message}[/red]")
            raise typer.Exit(code=1) from exc
        symbol = raw.strip().upper()
        console.print(f"Removed {symbol}" if removed else f"{symbol} was not on the watchlist")


@app.command()
def plan(ctx: typer.Context) -> None:
    """Display the lookup workflow path for quick operator reference."""
    if ctx.obj is None:
        raise typer.Exit(code=1)

    context: AppContext = ctx.obj
    table = Table(title="Workflow Stages")
    table.add_column("Step", style="cyan")
    table.add_column("Description")

    for idx, step in enumerate(context.workflow.describe_stages(), start=1):
        table.add_row(str(idx), step)

    console.print(table)


def _print_profile(state: LookupState) -> None:
    record = state["record"]
    profile = record.profile
    change_style = "green" if profile.changes >= 0 else "red"
    title = f"{profile.company_name or profile.symbol} ({profile.symbol})"
    if profile.exchange:
        title += f" · {profile.exchange}"

    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Price", f"${format_number(profile.price)}")
    table.add_row(
        "Change",
        f"[{change_style}]{format_number(profile.changes)} ({format_percentage(record.change_percent)})[/{change_style}]",
    )
    table.add_row("Market Cap", f"${format_number(profile.market_cap)}")
    table.add_row("Industry", profile.industry or MISSING)
    table.add_row("P/E Ratio", format_number(record.pe))
    table.add_row("P/B Ratio", format_number(record.price_to_book))
    table.add_row("EPS", format_number(record.eps))
    table.add_row("Dividend Yield", format_ratio_as_percentage(record.dividend_yield))
    table.add_row("ROE", format_ratio_as_percentage(record.return_on_equity))
    table.add_row("Debt/Equity", format_number(record.debt_to_equity))
    console.print(table)


def _print_checklist(state: LookupState) -> None:
    items = state.get("checklist") or []
    table = Table(title="Financial Health Checklist")
    table.add_column("Check")
    table.add_column("Result", justify="center")
    for item in items:
        table.add_row(item.label, "[green]✓[/green]" if item.passed else "[red]✗[/red]")
    console.print(table)


def _print_peers(state: LookupState) -> None:
    comparison = state.get("comparison")
    if comparison is None or not comparison.peer_count:
        console.print("[dim]No peer data available.[/dim]")
        return
    table = Table(title="Peer Comparison")
    table.add_column("Symbol")
    table.add_column("P/E", justify="right")
    table.add_column("Market Cap", justify="right")
    for row in comparison.rows:
        style = "bold cyan" if row.is_main else ("bold" if row.is_average else None)
        table.add_row(row.symbol, format_number(row.pe), format_number(row.market_cap), style=style)
    console.print(table)


def _print_valuation(state: LookupState) -> None:
    valuation = state.get("valuation")
    if valuation is None:
        message = state.get("valuation_error") or "Valuation unavailable."
        console.print(f"[yellow]{message}[/yellow]")
        return

    assumptions = state.get("assumptions")
    summary = Table(title=f"Valuation ({valuation.exit_model.value} exit)")
    summary.add_column("Metric")
    summary.add_column("Value", justify="right")
    if assumptions is not None:
        summary.add_row("Current EPS", format_number(assumptions.current_eps))
        summary.add_row("EPS Growth", format_percentage(assumptions.eps_growth_rate))
        summary.add_row("Desired Return", format_percentage(assumptions.discount_rate))
        summary.add_row("Exit Multiple", format_number(assumptions.terminal_multiple))
    summary.add_row("Entry Price", f"${format_number(valuation.entry_price)}")
    summary.add_row("Future EPS (Yr 5)", f"${format_number(valuation.future_eps)}")
    summary.add_row("Future Price (Yr 5)", f"${format_number(valuation.future_price)}")
    summary.add_row("Expected Return", format_percentage(valuation.expected_return))
    if valuation.verdict is not None:
        style = _VERDICT_STYLE[valuation.verdict]
        summary.add_row("Verdict", f"[{style}]{valuation.verdict.value}[/{style}]")
    console.print(summary)

    projection = Table(title="Five-Year Projection")
    projection.add_column("Year")
    projection.add_column("EPS", justify="right")
    projection.add_column("Price", justify="right")
    for point in valuation.projections:
        projection.add_row(str(point.year), format_number(point.eps), format_number(point.price))
    console.print(projection)
