"""
Pydantic models for currencies, exchange rates and conversions.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from .common import APIModel


class CurrencyRead(APIModel):
    code: str = Field(..., examples=["EUR"])
    name: str = Field(..., examples=["Euro"])
    symbol: str = Field(..., examples=["€"])
    is_active: bool = True
    is_base: bool = False
    decimal_places: int = 2
    description: Optional[str] = None


class CurrencyInfo(APIModel):
    code: str
    name: str
    symbol: str
    decimal_places: int


class CurrencyValidation(APIModel):
    is_valid: bool
    currency: Optional[CurrencyInfo] = None
    error: Optional[str] = None


class ExchangeRateRead(APIModel):
    from_currency: str = Field(..., examples=["USD"])
    to_currency: str = Field(..., examples=["EUR"])
    rate: float = Field(..., examples=[0.92])
    effective_date: datetime
    expiry_date: Optional[datetime] = None
    source: str = Field("MANUAL", examples=["MANUAL"])


class ExchangeRateUpdate(APIModel):
    rate: float = Field(..., examples=[0.92])
    source: str = Field("MANUAL", examples=["ECB"])
    expiry_date: Optional[datetime] = None
    notes: Optional[str] = None


class ExchangeRateUpdateResult(APIModel):
    from_currency: str
    to_currency: str
    old_rate: Optional[float] = None
    new_rate: float
    effective_date: datetime
    source: str


class ExchangeRateHistoryItem(APIModel):
    id: int
    rate: float
    effective_date: datetime
    expiry_date: Optional[datetime] = None
    source: str
    is_active: bool
    notes: Optional[str] = None
    created_by: Optional[int] = None


class ConversionRequest(APIModel):
    amount: float = Field(..., examples=[100.0])
    from_currency: str = Field(..., examples=["USD"])
    to_currency: str = Field(..., examples=["EUR"])


class ConversionResult(APIModel):
    original_amount: float
    original_currency: str
    converted_amount: float
    target_currency: str
    exchange_rate: float
    conversion_date: datetime


class FormattedAmount(APIModel):
    amount: float
    currency: str
    formatted: str = Field(..., examples=["€1,234.50"])


class BudgetAmount(APIModel):
    amount: float
    currency: str
    formatted_amount: str


class ConvertedBudget(BudgetAmount):
    exchange_rate: float


class MultiCurrencyBudget(APIModel):
    job_id: int
    base_budget: BudgetAmount
    converted_budgets: List[ConvertedBudget] = Field(default_factory=list)
