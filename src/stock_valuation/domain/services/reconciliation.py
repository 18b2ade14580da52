"""Reconcile raw provider snapshots into one canonical ``FinancialRecord``.

Upstream field names drift between API revisions (``mktCap`` vs ``marketCap``,
three spellings of the TTM P/E ratio, ...). Every canonical field is therefore
declared once as a ``FieldResolver``: an ordered list of ``Candidate``
extractors tried in sequence. The first candidate holding a finite number wins;
``None``, NaN, infinities and non-numeric values count as absent and the chain
moves on. Nothing is coerced: a numeric string is not a number here.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from numbers import Real
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from stock_valuation.domain.errors import InvalidTickerError, NotFoundError
from stock_valuation.domain.models.financials import (
    CompanyProfile,
    FinancialRecord,
    HistoricalEarning,
    KeyMetrics,
    PeerSummary,
    Quote,
    Ratios,
    RawSnapshot,
    SnapshotBundle,
)

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 5

Sources = Mapping[str, Mapping[str, Any]]


@dataclass(frozen=True)
class Candidate:
    """One upstream location for a canonical value: ``sources[source][key]``."""

    source: str
    key: str

    def extract(self, sources: Sources) -> Any:
        row = sources.get(self.source)
        if not row:
            return None
        return row.get(self.key)

    def __str__(self) -> str:
        return f"{self.source}.{self.key}"


@dataclass(frozen=True)
class FieldResolver:
    """Ordered synonym chain for a single canonical numeric field."""

    name: str
    candidates: Tuple[Candidate, ...]

    def resolve(self, sources: Sources) -> Optional[float]:
        for candidate in self.candidates:
            value = finite_or_none(candidate.extract(sources))
            if value is not None:
                logger.debug("%s resolved from %s", self.name, candidate)
                return value
        return None


@dataclass(frozen=True)
class TextResolver:
    """Ordered synonym chain for a canonical text field."""

    name: str
    candidates: Tuple[Candidate, ...]

    def resolve(self, sources: Sources) -> Optional[str]:
        for candidate in self.candidates:
            value = candidate.extract(sources)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return None


def _chain(name: str, *paths: str) -> FieldResolver:
    return FieldResolver(name, tuple(Candidate(*path.split(".", 1)) for path in paths))


def _text_chain(name: str, *paths: str) -> TextResolver:
    return TextResolver(name, tuple(Candidate(*path.split(".", 1)) for path in paths))


# ----------------------------
# Declared fallback chains
# ----------------------------
# Source names: profile, metrics, ratios, quote, income (latest row), growth (latest row).

PROFILE_FIELDS: Dict[str, FieldResolver] = {
    "price": _chain("price", "profile.price"),
    "changes": _chain("changes", "profile.changes"),
    "market_cap": _chain("market_cap", "profile.mktCap", "profile.marketCap"),
}

PROFILE_TEXT_FIELDS: Dict[str, TextResolver] = {
    "symbol": _text_chain("symbol", "profile.symbol"),
    "company_name": _text_chain("company_name", "profile.companyName", "profile.name"),
    "exchange": _text_chain("exchange", "profile.exchangeShortName", "profile.exchange"),
    "industry": _text_chain("industry", "profile.industry"),
    "website": _text_chain("website", "profile.website"),
    "image": _text_chain("image", "profile.image"),
}

METRIC_FIELDS: Dict[str, FieldResolver] = {
    "eps_ttm": _chain("eps_ttm", "metrics.epsTTM", "metrics.netIncomePerShareTTM", "income.eps"),
    "price_to_book": _chain("price_to_book", "metrics.priceToBookRatioTTM", "metrics.pbRatioTTM"),
    "dividend_yield": _chain("dividend_yield", "metrics.dividendYieldTTM"),
    "return_on_equity": _chain("return_on_equity", "metrics.returnOnEquityTTM", "metrics.roeTTM"),
    "debt_to_equity": _chain("debt_to_equity", "metrics.debtToEquityTTM"),
    "revenue_per_share": _chain(
        "revenue_per_share", "metrics.revenuePerShareTTM", "metrics.revenuePerShare"
    ),
    "growth_eps": _chain("growth_eps", "growth.growthEPS", "growth.growthEPSDiluted"),
}

RATIO_FIELDS: Dict[str, FieldResolver] = {
    "pe": _chain(
        "pe",
        "ratios.priceEarningsRatioTTM",
        "ratios.peRatioTTM",
        "ratios.priceToEarningsRatioTTM",
    ),
    "price_to_book": _chain("price_to_book", "ratios.priceToBookRatioTTM"),
    "dividend_yield": _chain("dividend_yield", "ratios.dividendYieldTTM", "ratios.dividendYielTTM"),
    "return_on_equity": _chain("return_on_equity", "ratios.returnOnEquityTTM"),
    "debt_to_equity": _chain(
        "debt_to_equity",
        "ratios.debtToEquityRatioTTM",
        "ratios.debtEquityRatioTTM",
        "ratios.debtToEquityTTM",
    ),
}

QUOTE_FIELDS: Dict[str, FieldResolver] = {
    "pe": _chain("pe", "quote.pe", "quote.priceEarnings"),
    "eps": _chain("eps", "income.eps", "income.epsDiluted", "income.epsdiluted", "quote.eps"),
}

HISTORY_EPS = _chain("eps", "row.eps", "row.epsDiluted")

PEER_FIELDS: Dict[str, FieldResolver] = {
    "pe": _chain("pe", "row.pe", "row.peRatio", "row.priceEarningsRatioTTM", "row.priceToEarningsRatioTTM"),
    "market_cap": _chain("market_cap", "row.mktCap", "row.marketCap"),
}


# ----------------------------
# Public API
# ----------------------------


def reconcile(
    profile: RawSnapshot,
    metrics: RawSnapshot,
    ratios: RawSnapshot,
    quote: RawSnapshot,
    income: RawSnapshot,
    *,
    growth: RawSnapshot = None,
    peers: RawSnapshot = None,
    ticker: Optional[str] = None,
) -> FinancialRecord:
    """Merge the provider snapshots into a ``FinancialRecord``.

    Raises ``NotFoundError`` when the profile snapshot is empty; no partial
    record is produced in that case.
    """
    profile_row = _first_row(profile)
    if not profile_row:
        label = ticker or "requested ticker"
        raise NotFoundError(f'No data found for ticker "{label}".', {"ticker": ticker})

    income_rows = _rows(income)
    sources: Dict[str, Mapping[str, Any]] = {
        "profile": profile_row,
        "metrics": _first_row(metrics),
        "ratios": _first_row(ratios),
        "quote": _first_row(quote),
        "income": income_rows[0] if income_rows else {},
        "growth": _first_row(growth),
    }

    text = {name: resolver.resolve(sources) for name, resolver in PROFILE_TEXT_FIELDS.items()}
    numbers = {name: resolver.resolve(sources) for name, resolver in PROFILE_FIELDS.items()}
    company = CompanyProfile(
        symbol=text["symbol"] or (ticker or ""),
        company_name=text["company_name"] or "",
        exchange=text["exchange"] or "",
        industry=text["industry"] or "",
        website=text["website"] or "",
        image=text["image"] or "",
        price=_or_zero(numbers["price"]),
        changes=_or_zero(numbers["changes"]),
        market_cap=_or_zero(numbers["market_cap"]),
    )

    record = FinancialRecord(
        profile=company,
        metrics=KeyMetrics(**_resolve_all(METRIC_FIELDS, sources)),
        ratios=Ratios(**_resolve_all(RATIO_FIELDS, sources)),
        quote=Quote(**_resolve_all(QUOTE_FIELDS, sources)),
        historical_earnings=tuple(_historical_earnings(income_rows)),
        peers=tuple(reconcile_peers(peers)),
    )
    logger.debug(
        "Reconciled %s: %d historical points, %d peers",
        company.symbol,
        len(record.historical_earnings),
        len(record.peers),
    )
    return record


def reconcile_bundle(bundle: SnapshotBundle) -> FinancialRecord:
    """Bundle form of ``reconcile`` used by the lookup workflow."""
    return reconcile(
        bundle.profile,
        bundle.metrics,
        bundle.ratios,
        bundle.quote,
        bundle.income,
        growth=bundle.growth,
        peers=bundle.peers,
        ticker=bundle.ticker,
    )


def reconcile_peers(peers: RawSnapshot) -> List[PeerSummary]:
    """Normalize peer rows in provider order; rows without a symbol are dropped."""
    summaries: List[PeerSummary] = []
    for row in _rows(peers):
        symbol = row.get("symbol")
        if not isinstance(symbol, str) or not symbol.strip():
            continue
        sources = {"row": row}
        summaries.append(
            PeerSummary(
                symbol=symbol.strip().upper(),
                pe=PEER_FIELDS["pe"].resolve(sources),
                market_cap=PEER_FIELDS["market_cap"].resolve(sources),
            )
        )
    return summaries


def finite_or_none(value: Any) -> Optional[float]:
    """Return ``value`` as a float when it is a finite real number, else ``None``."""
    if value is None or isinstance(value, bool) or not isinstance(value, Real):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    if not math.isfinite(number):
        return None
    # Normalize negative zero.
    return number + 0.0


# ----------------------------
# Internal helpers
# ----------------------------


def _resolve_all(table: Mapping[str, FieldResolver], sources: Sources) -> Dict[str, Optional[float]]:
    return {name: resolver.resolve(sources) for name, resolver in table.items()}


def _historical_earnings(rows: Sequence[Mapping[str, Any]]) -> Iterable[HistoricalEarning]:
    # Upstream order is kept as-is (most recent first for FMP).
    for row in rows[:HISTORY_LIMIT]:
        raw_date = row.get("date")
        yield HistoricalEarning(
            date=str(raw_date) if raw_date is not None else "",
            eps=HISTORY_EPS.resolve({"row": row}),
        )


def _rows(snapshot: RawSnapshot) -> List[Mapping[str, Any]]:
    if snapshot is None:
        return []
    if isinstance(snapshot, Mapping):
        return [snapshot] if snapshot else []
    return [row for row in snapshot if isinstance(row, Mapping)]


def _first_row(snapshot: RawSnapshot) -> Mapping[str, Any]:
    rows = _rows(snapshot)
    return rows[0] if rows else {}


def _or_zero(value: Optional[float]) -> float:
    return value if value is not None else 0.0


def normalize_ticker(raw: Optional[str]) -> str:
    """Trim and upper-case a user-typed ticker; empty input is rejected."""
    ticker = (raw or "").strip().upper()
    if not ticker:
        raise InvalidTickerError("Please enter a stock ticker.")
    return ticker
