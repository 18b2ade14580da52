"""SQLite persistence for the ticker watchlist."""
from __future__ import annotations

from typing import List

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from stock_valuation.domain.services.reconciliation import normalize_ticker


class WatchlistRepository:
    """Lightweight gateway for reading and writing watched tickers."""

    def __init__(self, database_uri: str, *, echo: bool = False) -> None:
        self._engine: Engine = create_engine(database_uri, echo=echo, future=True)
        self._ensure_schema()

    @property
    def engine(self) -> Engine:
        return self._engine

    # -----------------
    # Schema management
    # -----------------
    def _ensure_schema(self) -> None:
        """Create the watchlist table if it does not already exist."""
        ddl = """
            CREATE TABLE IF NOT EXISTS watchlist (
              symbol TEXT PRIMARY KEY,
              added_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );
            """
        with self._engine.begin() as conn:
            conn.execute(text(ddl))

    # -------------
    # Watchlist CRUD
    # -------------
    def list_symbols(self) -> List[str]:
        """Return watched tickers in the order they were added."""
        query = text("SELECT symbol FROM watchlist ORDER BY added_at, rowid")
        with self._engine.connect() as conn:
            return [row["symbol"] for row in conn.execute(query).mappings()]

    def add(self, symbol: str) -> bool:
        """Add a ticker (upper-cased); returns False when it was already watched."""
        ticker = normalize_ticker(symbol)
        stmt = text("INSERT INTO watchlist (symbol) VALUES (:symbol) ON CONFLICT(symbol) DO NOTHING")
        with self._engine.begin() as conn:
            result = conn.execute(stmt, {"symbol": ticker})
        return result.rowcount > 0

    def remove(self, symbol: str) -> bool:
        """Remove a ticker; returns False when it was not on the list."""
        ticker = normalize_ticker(symbol)
        with self._engine.begin() as conn:
            result = conn.execute(text("DELETE FROM watchlist WHERE symbol = :symbol"), {"symbol": ticker})
        return result.rowcount > 0

    def contains(self, symbol: str) -> bool:
        ticker = normalize_ticker(symbol)
        query = text("SELECT 1 FROM watchlist WHERE symbol = :symbol")
        with self._engine.connect() as conn:
            return conn.execute(query, {"symbol": ticker}).first() is not None
