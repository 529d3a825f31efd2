"""
Currency endpoints for API v1.

Reads and conversions are open to every authenticated user; changing
exchange rates and reading their history is reserved for admins.
"""

from typing import List

from fastapi import APIRouter, Depends, Query

from freelance_marketplace_api.app.core.exceptions import to_http_exception
from freelance_marketplace_api.app.core.security import ROLE_ADMIN, get_current_user, require_roles
from freelance_marketplace_api.app.schemas.currency import (
    ConversionRequest,
    ConversionResult,
    CurrencyRead,
    CurrencyValidation,
    ExchangeRateHistoryItem,
    ExchangeRateRead,
    ExchangeRateUpdate,
    ExchangeRateUpdateResult,
    FormattedAmount,
    MultiCurrencyBudget,
)
from freelance_marketplace_api.app.services.currency_service import CurrencyService


router = APIRouter()


@router.get("/", response_model=List[CurrencyRead])
async def list_currencies(current_user: dict = Depends(get_current_user)) -> List[CurrencyRead]:
    """Active currencies, base currency first."""
    return await CurrencyService.get_supported_currencies()


@router.get("/rate", response_model=ExchangeRateRead)
async def get_exchange_rate(
    from_currency: str = Query(..., alias="from", min_length=3, max_length=3),
    to_currency: str = Query(..., alias="to", min_length=3, max_length=3),
    current_user: dict = Depends(get_current_user),
) -> ExchangeRateRead:
    try:
        return await CurrencyService.get_exchange_rate(from_currency.upper(), to_currency.upper())
    except ValueError as e:
        raise to_http_exception(e) from e


@router.post("/convert", response_model=ConversionResult)
async def convert_currency(
    request: ConversionRequest,
    current_user: dict = Depends(get_current_user),
) -> ConversionResult:
    try:
        return await CurrencyService.convert_currency(
            request.amount, request.from_currency.upper(), request.to_currency.upper()
        )
    except ValueError as e:
        raise to_http_exception(e) from e


@router.get("/format", response_model=FormattedAmount)
async def format_amount(
    amount: float = Query(...),
    currency: str = Query(..., min_length=3, max_length=3),
    include_symbol: bool = Query(True),
    current_user: dict = Depends(get_current_user),
) -> FormattedAmount:
    code = currency.upper()
    try:
        formatted = await CurrencyService.format_currency_amount(amount, code, include_symbol)
    except ValueError as e:
        raise to_http_exception(e) from e
    return FormattedAmount(amount=amount, currency=code, formatted=formatted)


@router.get("/budgets/{job_id}", response_model=MultiCurrencyBudget)
async def get_budget_in_currencies(
    job_id: int,
    currencies: str = Query("USD,EUR,GBP", description="Comma separated currency codes"),
    current_user: dict = Depends(get_current_user),
) -> MultiCurrencyBudget:
    """Show a job budget converted into several currencies."""
    targets = [code.strip().upper() for code in currencies.split(",") if code.strip()]
    try:
        return await CurrencyService.get_budget_in_multiple_currencies(job_id, targets)
    except ValueError as e:
        raise to_http_exception(e) from e


@router.put("/rates/{from_currency}/{to_currency}", response_model=ExchangeRateUpdateResult)
async def update_exchange_rate(
    from_currency: str,
    to_currency: str,
    data: ExchangeRateUpdate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN)),
) -> ExchangeRateUpdateResult:
    """Replace the active rate of a pair.  Older rates stay in the history."""
    try:
        return await CurrencyService.update_exchange_rate(
            from_currency.upper(),
            to_currency.upper(),
            data.rate,
            current_user.get("user_id"),
            source=data.source,
            expiry_date=data.expiry_date,
            notes=data.notes,
        )
    except ValueError as e:
        raise to_http_exception(e) from e


@router.get("/rates/{from_currency}/{to_currency}/history", response_model=List[ExchangeRateHistoryItem])
async def get_rate_history(
    from_currency: str,
    to_currency: str,
    limit: int = Query(10, ge=1, le=100),
    current_user: dict = Depends(require_roles(ROLE_ADMIN)),
) -> List[ExchangeRateHistoryItem]:
    return await CurrencyService.get_conversion_history(from_currency.upper(), to_currency.upper(), limit)


@router.get("/{code}/validate", response_model=CurrencyValidation)
async def validate_currency(code: str, current_user: dict = Depends(get_current_user)) -> CurrencyValidation:
    return await CurrencyService.validate_currency(code.upper())
