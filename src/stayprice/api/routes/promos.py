"""Promo code endpoints.

GET  /promos:         active promo codes with amounts in the guest currency
POST /promos/preview: check a code against a base price before booking
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from psycopg2.extensions import cursor as PgCursor
from pydantic import BaseModel, field_validator

from stayprice.api.deps import get_cursor, get_guest_currency, get_rate_gateway
from stayprice.domain.promo import list_promos_for_currency, preview_promo
from stayprice.infra.exchange_rates import ExchangeRateGateway
from stayprice.infra.repositories.promo_codes_repository import (
    PgPromoCodeRepository,
    PgUsageRepository,
)
from stayprice.infra.time import utc_today

router = APIRouter(prefix="/promos", tags=["promos"])


class PromoPreviewRequest(BaseModel):
    promo_code: str
    total_base_price: float
    user_id: str

    @field_validator("promo_code")
    @classmethod
    def strip_code(cls, v: str) -> str:
        return v.strip().upper()


@router.get("")
def list_promos(
    currency: str = Depends(get_guest_currency),
    cur: PgCursor = Depends(get_cursor),
    gateway: ExchangeRateGateway = Depends(get_rate_gateway),
) -> list[dict]:
    promos = PgPromoCodeRepository(cur).list_active(utc_today())
    return jsonable_encoder(list_promos_for_currency(promos, currency, gateway))


@router.post("/preview")
def preview(
    body: PromoPreviewRequest,
    currency: str = Depends(get_guest_currency),
    cur: PgCursor = Depends(get_cursor),
    gateway: ExchangeRateGateway = Depends(get_rate_gateway),
) -> dict:
    """Validate a promo code; 400 with a guest-facing message when rejected."""
    promo = preview_promo(
        body.promo_code,
        body.total_base_price,
        currency,
        body.user_id,
        gateway=gateway,
        promo_codes=PgPromoCodeRepository(cur),
        usage=PgUsageRepository(cur),
        as_of=utc_today(),
    )
    return jsonable_encoder({"is_valid": True, "promo": promo})
