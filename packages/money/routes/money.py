"""
Money API routes.

Public endpoints for the currency table and tax quotes.
"""

from fastapi import APIRouter, Query

from packages.money.models.schemas.money import (
    CurrenciesResponse,
    CurrencyResponse,
    TaxQuoteRequest,
    TaxQuoteResponse,
)
from packages.money.services.money_service import MoneyService
from packages.money.services.tax_service import TaxService, parse_jurisdiction

router = APIRouter()


@router.get("/currencies", response_model=CurrenciesResponse)
async def list_currencies(gateway_only: bool = Query(default=False)):
    """Supported currencies with their USD exchange rates."""
    money_service = MoneyService()
    return CurrenciesResponse(
        currencies=[
            CurrencyResponse(
                code=c.code,
                name=c.name,
                symbol=c.symbol,
                exchange_rate=c.exchange_rate,
                minor_unit_exponent=c.minor_unit_exponent,
                gateway_supported=c.gateway_supported,
            )
            for c in money_service.list_currencies(gateway_only=gateway_only)
        ]
    )


@router.post("/tax/quote", response_model=TaxQuoteResponse)
async def quote_tax(request: TaxQuoteRequest):
    money_service = MoneyService()
    currency = money_service.require_currency(request.currency)
    jurisdiction = parse_jurisdiction(request.country, request.region)
    calculation = TaxService(money_service.reference_data).compute_tax(
        request.subtotal, jurisdiction
    )
    return TaxQuoteResponse(
        subtotal=calculation.subtotal,
        tax_amount=calculation.tax_amount,
        tax_rate=calculation.tax_rate,
        tax_type=calculation.tax_type,
        total=calculation.total,
        currency=currency.code,
        formatted_total=money_service.format(calculation.total, currency.code),
    )
