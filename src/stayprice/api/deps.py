"""FastAPI dependencies shared by the pricing routes."""

from __future__ import annotations

from typing import Iterator

from fastapi import Header, Request
from psycopg2.extensions import cursor as PgCursor

from stayprice.infra.db import txn
from stayprice.infra.exchange_rates import ExchangeRateGateway

DEFAULT_CURRENCY = "USD"


def get_cursor() -> Iterator[PgCursor]:
    """One read transaction per request."""
    with txn() as cur:
        yield cur


def get_rate_gateway(request: Request) -> ExchangeRateGateway:
    """The process-wide gateway created by the app factory."""
    return request.app.state.rate_gateway


def get_guest_currency(x_currency: str | None = Header(default=None)) -> str:
    """Guest display currency from the X-Currency header (default USD)."""
    return (x_currency or DEFAULT_CURRENCY).strip().upper()
