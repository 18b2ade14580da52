"""Domain models describing the financial data exchanged between services."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

PROJECTION_YEARS = 5

# One upstream query result: a single row or the list of rows the provider returned.
RawSnapshot = Union[Mapping[str, Any], Sequence[Mapping[str, Any]], None]


def _coalesce(*values: Optional[float]) -> Optional[float]:
    for value in values:
        if value is not None:
            return value
    return None


@dataclass(frozen=True)
class SnapshotBundle:
    """The raw provider payloads gathered for one ticker lookup."""

    ticker: str
    profile: RawSnapshot
    metrics: RawSnapshot = None
    ratios: RawSnapshot = None
    quote: RawSnapshot = None
    income: RawSnapshot = None
    growth: RawSnapshot = None
    peers: RawSnapshot = None


@dataclass(frozen=True)
class CompanyProfile:
    """Company identity plus the live price block; always fully populated."""

    symbol: str = ""
    company_name: str = ""
    exchange: str = ""
    industry: str = ""
    website: str = ""
    image: str = ""
    price: float = 0.0
    changes: float = 0.0
    market_cap: float = 0.0


@dataclass(frozen=True)
class KeyMetrics:
    eps_ttm: Optional[float] = None
    price_to_book: Optional[float] = None
    dividend_yield: Optional[float] = None
    return_on_equity: Optional[float] = None
    debt_to_equity: Optional[float] = None
    revenue_per_share: Optional[float] = None
    growth_eps: Optional[float] = None


@dataclass(frozen=True)
class Ratios:
    pe: Optional[float] = None
    price_to_book: Optional[float] = None
    dividend_yield: Optional[float] = None
    return_on_equity: Optional[float] = None
    debt_to_equity: Optional[float] = None


@dataclass(frozen=True)
class Quote:
    pe: Optional[float] = None
    eps: Optional[float] = None


@dataclass(frozen=True)
class HistoricalEarning:
    date: str
    eps: Optional[float]


@dataclass(frozen=True)
class PeerSummary:
    symbol: str
    pe: Optional[float] = None
    market_cap: Optional[float] = None


@dataclass(frozen=True)
class FinancialRecord:
    """Canonical reconciled view of one ticker; replaced wholesale, never mutated."""

    profile: CompanyProfile
    metrics: KeyMetrics = field(default_factory=KeyMetrics)
    ratios: Ratios = field(default_factory=Ratios)
    quote: Quote = field(default_factory=Quote)
    historical_earnings: Tuple[HistoricalEarning, ...] = ()
    peers: Tuple[PeerSummary, ...] = ()

    @property
    def symbol(self) -> str:
        return self.profile.symbol

    @property
    def pe(self) -> Optional[float]:
        """Quote-level P/E, falling back to the TTM ratio."""
        return _coalesce(self.quote.pe, self.ratios.pe)

    @property
    def eps(self) -> Optional[float]:
        """Most recent reported EPS, falling back to the TTM metric."""
        return _coalesce(self.quote.eps, self.metrics.eps_ttm)

    @property
    def price_to_book(self) -> Optional[float]:
        return _coalesce(self.metrics.price_to_book, self.ratios.price_to_book)

    @property
    def dividend_yield(self) -> Optional[float]:
        return _coalesce(self.metrics.dividend_yield, self.ratios.dividend_yield)

    @property
    def return_on_equity(self) -> Optional[float]:
        return _coalesce(self.metrics.return_on_equity, self.ratios.return_on_equity)

    @property
    def debt_to_equity(self) -> Optional[float]:
        return _coalesce(self.metrics.debt_to_equity, self.ratios.debt_to_equity)

    @property
    def change_percent(self) -> Optional[float]:
        """Daily change relative to the previous close, in percent."""
        previous_close = self.profile.price - self.profile.changes
        if previous_close == 0:
            return None
        return self.profile.changes * 100.0 / previous_close


class ExitModel(str, Enum):
    """How the year-5 exit value is derived."""

    TERMINAL_MULTIPLE = "multiple"
    PERPETUITY = "perpetuity"


class ValuationVerdict(str, Enum):
    UNDERVALUED = "undervalued"
    FAIR_VALUE = "fair value"
    OVERVALUED = "overvalued"


@dataclass(frozen=True)
class ValuationAssumptions:
    """User-chosen valuation inputs; rates are percentages (10 means 10%)."""

    eps_growth_rate: float = 15.0
    discount_rate: float = 15.0
    terminal_multiple: float = 20.0
    current_eps: Optional[float] = None
    terminal_growth_rate: float = 3.0

    @classmethod
    def from_record(cls, record: FinancialRecord, **overrides: Any) -> "ValuationAssumptions":
        """Seed EPS and the exit multiple from the record, as the calculator does on load."""
        eps = record.eps if record.eps is not None else 0.0
        multiple = record.pe if record.pe is not None else 20.0
        base = cls(current_eps=round(eps, 2), terminal_multiple=round(multiple, 2))
        return replace(base, **overrides) if overrides else base

    def replace(self, **changes: Any) -> "ValuationAssumptions":
        return replace(self, **changes)


@dataclass(frozen=True)
class ProjectionPoint:
    year: int
    eps: float
    price: float


@dataclass(frozen=True)
class ValuationResult:
    """Derived from (record, assumptions) on every change; never persisted."""

    intrinsic_value: float
    entry_price: float
    future_eps: float
    future_price: float
    expected_return: Optional[float]
    projections: Tuple[ProjectionPoint, ...]
    verdict: Optional[ValuationVerdict]
    exit_model: ExitModel = ExitModel.TERMINAL_MULTIPLE


@dataclass(frozen=True)
class ChecklistItem:
    label: str
    passed: bool


@dataclass(frozen=True)
class SectorAverage:
    pe: Optional[float] = None
    market_cap: Optional[float] = None

    @property
    def available(self) -> bool:
        return self.pe is not None and self.market_cap is not None


@dataclass(frozen=True)
class ComparisonRow:
    symbol: str
    pe: Optional[float]
    market_cap: Optional[float]
    is_main: bool = False
    is_average: bool = False


@dataclass(frozen=True)
class PeerComparison:
    """Display rows (main, peers, sector average) plus the averages themselves."""

    rows: List[ComparisonRow]
    sector_average: SectorAverage
    peer_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rows": [asdict(row) for row in self.rows],
            "sector_average": {"pe": self.sector_average.pe, "market_cap": self.sector_average.market_cap},
            "peer_count": self.peer_count,
        }
