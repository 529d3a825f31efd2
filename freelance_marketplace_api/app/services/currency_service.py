"""
Currencies, exchange rates and conversions.

Rates are stored per direction in ``exchange_rates``.  Only one row per
pair is active at a time; ``update_exchange_rate`` deactivates the
previous rows and inserts the new one in a single transaction so the
history stays queryable.
"""

import logging
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from ..core.exceptions import NotFoundError, ValidationError
from ..schemas.currency import (
    BudgetAmount,
    ConversionResult,
    ConvertedBudget,
    CurrencyInfo,
    CurrencyRead,
    CurrencyValidation,
    ExchangeRateHistoryItem,
    ExchangeRateRead,
    ExchangeRateUpdateResult,
    MultiCurrencyBudget,
)


logger = logging.getLogger(__name__)


def round_to_decimal_places(value: float, decimal_places: int) -> float:
    """Round half-up to ``decimal_places`` (banker's rounding is not wanted for money)."""
    quantum = Decimal(1).scaleb(-decimal_places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


class CurrencyService:
    """Currency lookups and conversions backed by SQLite."""

    @staticmethod
    def _active_currency(cursor, code: str):
        return cursor.execute(
            "SELECT * FROM currencies WHERE code = ? AND is_active = 1", (code,)
        ).fetchone()

    @classmethod
    async def get_supported_currencies(cls) -> List[CurrencyRead]:
        """Return active currencies, base currency first."""
        from freelance_marketplace_api.app.core.db import get_connection
        conn = get_connection()
        try:
            rows = conn.execute(
                "SELECT * FROM currencies WHERE is_active = 1 ORDER BY is_base DESC, code ASC"
            ).fetchall()
            return [
                CurrencyRead(
                    code=row["code"],
                    name=row["name"],
                    symbol=row["symbol"],
                    is_active=bool(row["is_active"]),
                    is_base=bool(row["is_base"]),
                    decimal_places=row["decimal_places"],
                    description=row["description"],
                )
                for row in rows
            ]
        finally:
            conn.close()

    @classmethod
    async def get_exchange_rate(cls, from_currency: str, to_currency: str) -> ExchangeRateRead:
        """Return the current rate for a currency pair.

        Identical currencies always convert at 1 with source
        ``SAME_CURRENCY``.  Otherwise the most recent active rate whose
        effective date has passed and which has not expired is used.
        """
        from freelance_marketplace_api.app.core.db import get_connection, parse_timestamp, utc_now
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cls._active_currency(cursor, from_currency) or not cls._active_currency(cursor, to_currency):
                raise ValidationError("One or both currencies not found or inactive")

            if from_currency == to_currency:
                return ExchangeRateRead(
                    from_currency=from_currency,
                    to_currency=to_currency,
                    rate=1,
                    effective_date=datetime.now(timezone.utc),
                    source="SAME_CURRENCY",
                )

            now = utc_now()
            row = cursor.execute(
                """
                SELECT * FROM exchange_rates
                WHERE from_currency = ? AND to_currency = ? AND is_active = 1
                  AND effective_date <= ?
                  AND (expiry_date IS NULL OR expiry_date > ?)
                ORDER BY effective_date DESC, id DESC
                LIMIT 1
                """,
                (from_currency, to_currency, now, now),
            ).fetchone()
            if not row:
                raise ValidationError(
                    f"No active exchange rate found for {from_currency} to {to_currency}"
                )
            return ExchangeRateRead(
                from_currency=row["from_currency"],
                to_currency=row["to_currency"],
                rate=row["rate"],
                effective_date=parse_timestamp(row["effective_date"]),
                expiry_date=parse_timestamp(row["expiry_date"]),
                source=row["source"],
            )
        finally:
            conn.close()

    @classmethod
    async def convert_currency(cls, amount: float, from_currency: str, to_currency: str) -> ConversionResult:
        """Convert ``amount`` and round to the target currency's decimal places."""
        if amount <= 0:
            raise ValidationError("Amount must be greater than 0")
        rate = await cls.get_exchange_rate(from_currency, to_currency)
        if from_currency == to_currency:
            converted = amount
        else:
            decimal_places = await cls._decimal_places(to_currency)
            converted = round_to_decimal_places(amount * rate.rate, decimal_places)
        return ConversionResult(
            original_amount=amount,
            original_currency=from_currency,
            converted_amount=converted,
            target_currency=to_currency,
            exchange_rate=rate.rate,
            conversion_date=datetime.now(timezone.utc),
        )

    @classmethod
    async def _decimal_places(cls, code: str) -> int:
        from freelance_marketplace_api.app.core.db import get_connection
        conn = get_connection()
        try:
            row = conn.execute("SELECT decimal_places FROM currencies WHERE code = ?", (code,)).fetchone()
            return row["decimal_places"] if row else 2
        finally:
            conn.close()

    @classmethod
    async def update_exchange_rate(
        cls,
        from_currency: str,
        to_currency: str,
        new_rate: float,
        user_id: Optional[int],
        source: str = "MANUAL",
        expiry_date: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> ExchangeRateUpdateResult:
        """Replace the active rate of a currency pair."""
        if new_rate <= 0:
            raise ValidationError("Exchange rate must be greater than 0")
        from freelance_marketplace_api.app.core.db import get_connection, parse_timestamp, to_db_timestamp, utc_now
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cls._active_currency(cursor, from_currency) or not cls._active_currency(cursor, to_currency):
                raise ValidationError("One or both currencies not found or inactive")

            previous = cursor.execute(
                """
                SELECT rate FROM exchange_rates
                WHERE from_currency = ? AND to_currency = ? AND is_active = 1
                ORDER BY effective_date DESC, id DESC LIMIT 1
                """,
                (from_currency, to_currency),
            ).fetchone()

            now = utc_now()
            cursor.execute(
                """
                UPDATE exchange_rates SET is_active = 0, updated_at = ?
                WHERE from_currency = ? AND to_currency = ? AND is_active = 1
                """,
                (now, from_currency, to_currency),
            )
            cursor.execute(
                """
                INSERT INTO exchange_rates
                    (from_currency, to_currency, rate, effective_date, expiry_date, source, notes, created_by)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (from_currency, to_currency, new_rate, now, to_db_timestamp(expiry_date), source, notes, user_id),
            )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

        logger.info(
            "Exchange rate %s->%s set to %s by user %s (source %s)",
            from_currency, to_currency, new_rate, user_id, source,
        )
        return ExchangeRateUpdateResult(
            from_currency=from_currency,
            to_currency=to_currency,
            old_rate=previous["rate"] if previous else None,
            new_rate=new_rate,
            effective_date=parse_timestamp(now),
            source=source,
        )

    @classmethod
    async def get_conversion_history(
        cls, from_currency: str, to_currency: str, limit: int = 10
    ) -> List[ExchangeRateHistoryItem]:
        """Return the latest ``limit`` rates of a pair, active or not."""
        from freelance_marketplace_api.app.core.db import get_connection, parse_timestamp
        conn = get_connection()
        try:
            rows = conn.execute(
                """
                SELECT * FROM exchange_rates
                WHERE from_currency = ? AND to_currency = ?
                ORDER BY effective_date DESC, id DESC
                LIMIT ?
                """,
                (from_currency, to_currency, limit),
            ).fetchall()
            return [
                ExchangeRateHistoryItem(
                    id=row["id"],
                    rate=row["rate"],
                    effective_date=parse_timestamp(row["effective_date"]),
                    expiry_date=parse_timestamp(row["expiry_date"]),
                    source=row["source"],
                    is_active=bool(row["is_active"]),
                    notes=row["notes"],
                    created_by=row["created_by"],
                )
                for row in rows
            ]
        finally:
            conn.close()

    @classmethod
    async def validate_currency(cls, code: str) -> CurrencyValidation:
        from freelance_marketplace_api.app.core.db import get_connection
        conn = get_connection()
        try:
            row = cls._active_currency(conn.cursor(), code)
        finally:
            conn.close()
        if not row:
            return CurrencyValidation(is_valid=False, error=f"Currency {code} not found or inactive")
        return CurrencyValidation(
            is_valid=True,
            currency=CurrencyInfo(
                code=row["code"],
                name=row["name"],
                symbol=row["symbol"],
                decimal_places=row["decimal_places"],
            ),
        )

    @classmethod
    async def format_currency_amount(cls, amount: float, code: str, include_symbol: bool = True) -> str:
        """Render ``amount`` with the currency symbol and its decimal places."""
        validation = await cls.validate_currency(code)
        if not validation.is_valid or validation.currency is None:
            raise ValidationError(validation.error or "Currency validation failed")
        currency = validation.currency
        rounded = round_to_decimal_places(amount, currency.decimal_places)
        text = f"{rounded:.{currency.decimal_places}f}"
        return f"{currency.symbol}{text}" if include_symbol else text

    @classmethod
    async def get_budget_in_multiple_currencies(
        cls, job_id: int, target_currencies: List[str]
    ) -> MultiCurrencyBudget:
        """Show a job budget converted into several currencies.

        The budget's own currency is skipped, as are targets that cannot
        be converted (unknown currency, no active rate).
        """
        from freelance_marketplace_api.app.core.db import get_connection
        conn = get_connection()
        try:
            row = conn.execute("SELECT amount, currency FROM budgets WHERE job_id = ?", (job_id,)).fetchone()
        finally:
            conn.close()
        if not row:
            raise NotFoundError("Budget not found for this job")

        amount, currency = row["amount"], row["currency"]
        base_budget = BudgetAmount(
            amount=amount,
            currency=currency,
            formatted_amount=await cls.format_currency_amount(amount, currency),
        )
        converted: List[ConvertedBudget] = []
        for target in target_currencies:
            if target == currency:
                continue
            try:
                conversion = await cls.convert_currency(amount, currency, target)
                formatted = await cls.format_currency_amount(conversion.converted_amount, target)
            except ValueError as e:
                logger.info("Skipping conversion of job %s budget to %s: %s", job_id, target, e)
                continue
            converted.append(
                ConvertedBudget(
                    amount=conversion.converted_amount,
                    currency=target,
                    exchange_rate=conversion.exchange_rate,
                    formatted_amount=formatted,
                )
            )
        return MultiCurrencyBudget(job_id=job_id, base_budget=base_budget, converted_budgets=converted)
