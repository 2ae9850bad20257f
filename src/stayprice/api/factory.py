"""FastAPI application factory for the pricing service."""

from __future__ import annotations

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from stayprice.domain.errors import InvalidBookingRequest, PricingConfigError, PricingError
from stayprice.domain.promo import PromoRejected
from stayprice.infra.exchange_rates import ExchangeRateGateway, ExchangeRateUnavailable
from stayprice.infra.repositories.promo_codes_repository import PromoRedemptionRejected
from stayprice.observability.correlation import CORRELATION_ID_HEADER, correlation_scope
from stayprice.observability.logging import get_logger, log_fields

from .routes import pricing, promos

logger = get_logger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[PricingError], int], ...] = (
    (InvalidBookingRequest, 400),
    (PromoRejected, 400),
    (PricingConfigError, 422),
    (PromoRedemptionRejected, 409),
    (ExchangeRateUnavailable, 503),
)


def _status_for(exc: PricingError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


def create_app(gateway: ExchangeRateGateway | None = None) -> FastAPI:
    """Create the pricing API.

    Args:
        gateway: Exchange rate gateway to share across requests. A new one
                 (with its own cache) is built when omitted.
    """
    app = FastAPI(title="Stay Pricing", docs_url=None, redoc_url=None)
    app.state.rate_gateway = gateway or ExchangeRateGateway()

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        with correlation_scope(request.headers.get(CORRELATION_ID_HEADER)) as cid:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response

    @app.exception_handler(PricingError)
    async def pricing_error_handler(request: Request, exc: PricingError) -> JSONResponse:
        status = _status_for(exc)
        logger.warning(
            "pricing request failed",
            extra=log_fields(reason_code=exc.reason_code, status=status, path=request.url.path),
        )
        detail = {"reason_code": exc.reason_code, **exc.meta}
        headers = {"Retry-After": "30"} if exc.retryable else None
        return JSONResponse(status_code=status, content={"detail": detail}, headers=headers)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "cached_rate_tables": len(app.state.rate_gateway.cache)}

    app.include_router(pricing.router)
    app.include_router(promos.router)

    return app
