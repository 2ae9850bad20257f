"""Quote endpoint.

POST /pricing/quote: full price breakdown for a stay at one property.
The guest currency comes from the body or the X-Currency header.
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from fastapi.encoders import jsonable_encoder
from psycopg2.extensions import cursor as PgCursor
from pydantic import BaseModel, Field

from stayprice.api.deps import get_cursor, get_guest_currency, get_rate_gateway
from stayprice.domain.booking import BookingRequest
from stayprice.domain.pricing import compute_price
from stayprice.infra.exchange_rates import ExchangeRateGateway
from stayprice.infra.repositories.pricing_config_repository import get_pricing_config
from stayprice.infra.repositories.promo_codes_repository import (
    PgPromoCodeRepository,
    PgUsageRepository,
)

router = APIRouter(prefix="/pricing", tags=["pricing"])


class QuoteRequest(BaseModel):
    property_id: str
    check_in: date
    check_out: date
    adult_count: int = Field(default=1)
    child_count: int = Field(default=0)
    promo_code: str | None = None
    user_id: str | None = None
    currency: str | None = None


@router.post("/quote")
def quote(
    body: QuoteRequest,
    header_currency: str = Depends(get_guest_currency),
    cur: PgCursor = Depends(get_cursor),
    gateway: ExchangeRateGateway = Depends(get_rate_gateway),
) -> dict:
    """Price a stay.

    Errors are mapped by the app factory: 400 bad request data, 422
    inconsistent listing configuration, 503 rate source unavailable.
    """
    config = get_pricing_config(cur, body.property_id)
    if config is None:
        raise HTTPException(status_code=404, detail="Pricing configuration not found")

    request = BookingRequest(
        check_in=body.check_in,
        check_out=body.check_out,
        adult_count=body.adult_count,
        child_count=body.child_count,
        promo_code=body.promo_code,
        user_id=body.user_id,
        currency=(body.currency or header_currency).upper(),
    )
    breakdown = compute_price(
        config,
        request,
        gateway=gateway,
        promo_codes=PgPromoCodeRepository(cur),
        usage=PgUsageRepository(cur),
    )
    return jsonable_encoder(breakdown)
