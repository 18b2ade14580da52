"""Peer comparison table with sector averages."""
from __future__ import annotations

from typing import Iterable, Optional

import numpy as np
import pandas as pd

from stock_valuation.domain.models.financials import (
    ComparisonRow,
    FinancialRecord,
    PeerComparison,
    PeerSummary,
    SectorAverage,
)

SECTOR_AVERAGE_LABEL = "Sector Average"


def main_summary(record: FinancialRecord) -> PeerSummary:
    """Summarize the looked-up stock in the same shape as its peers."""
    return PeerSummary(symbol=record.symbol, pe=record.pe, market_cap=record.profile.market_cap)


def compare(peers: Iterable[PeerSummary], main: PeerSummary) -> PeerComparison:
    """Build the comparison rows: main stock, peers in provider order, sector average.

    Averages are taken over the peers carrying both a P/E and a market cap, so
    both columns describe the same subset. With no such peer the averages are
    ``None`` (unavailable), never zero.
    """
    peer_list = list(peers)
    average = _sector_average(peer_list)

    rows = [ComparisonRow(symbol=main.symbol, pe=main.pe, market_cap=main.market_cap, is_main=True)]
    rows.extend(ComparisonRow(symbol=p.symbol, pe=p.pe, market_cap=p.market_cap) for p in peer_list)
    rows.append(
        ComparisonRow(
            symbol=SECTOR_AVERAGE_LABEL,
            pe=average.pe,
            market_cap=average.market_cap,
            is_average=True,
        )
    )
    return PeerComparison(rows=rows, sector_average=average, peer_count=len(peer_list))


def compare_record(record: FinancialRecord) -> PeerComparison:
    return compare(record.peers, main_summary(record))


def _sector_average(peers: list) -> SectorAverage:
    if not peers:
        return SectorAverage()
    frame = pd.DataFrame(
        [{"pe": p.pe, "market_cap": p.market_cap} for p in peers],
        columns=["pe", "market_cap"],
        dtype=float,
    )
    complete = frame.replace([np.inf, -np.inf], np.nan).dropna(subset=["pe", "market_cap"])
    if complete.empty:
        return SectorAverage()
    return SectorAverage(pe=_finite(complete["pe"].mean()), market_cap=_finite(complete["market_cap"].mean()))


def _finite(value: float) -> Optional[float]:
    value = float(value)
    return value if np.isfinite(value) else None
