"""
Validation rules for job budgets.

``BudgetValidator`` is stateless.  Hard rule violations raise
``ValidationError``; soft problems with inline milestones (missing
amounts, totals that do not add up) are logged as warnings and returned
to the caller so they can be shown alongside the created budget.
"""

import logging
from typing import List, Optional, Sequence

from ..core.exceptions import ValidationError
from ..schemas.budget import BudgetCreate, MilestoneCreate


logger = logging.getLogger(__name__)


SUPPORTED_CURRENCIES = [
    "USD", "EUR", "GBP", "JPY", "CAD", "AUD", "CHF", "CNY", "INR", "BRL",
    "MXN", "KRW", "SGD", "HKD", "SEK", "NOK", "DKK", "PLN", "CZK", "HUF",
]

SUPPORTED_BUDGET_TYPES = ["FIXED", "HOURLY", "MILESTONE", "HYBRID"]

MAX_BUDGET_AMOUNT = 1_000_000
MAX_ESTIMATED_HOURS = 10_000
MAX_NOTES_LENGTH = 500
MAX_MILESTONE_NAME_LENGTH = 100

# Currency prefixes as rendered by an en-US currency formatter.  Codes
# without a local symbol are written as "CODE 1,234.00".
EN_US_CURRENCY_PREFIXES = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CAD": "CA$",
    "AUD": "A$",
    "CNY": "CN¥",
    "INR": "₹",
    "BRL": "R$",
    "MXN": "MX$",
    "KRW": "₩",
    "HKD": "HK$",
}


class BudgetValidator:
    """Rule checker for budget payloads."""

    @classmethod
    def validate_budget_creation(cls, data: BudgetCreate) -> List[str]:
        """Validate a new budget and normalise its inline milestones in place.

        Returns the list of warnings produced while checking milestones.
        """
        cls.validate_budget_type(data.type)
        cls.validate_budget_amount(data.amount)
        cls.validate_currency(data.currency)
        if data.type == "HOURLY" and data.estimated_hours:
            cls.validate_estimated_hours(data.estimated_hours)
        return cls.validate_business_rules(data)

    @classmethod
    def validate_budget_amount_for_update(cls, amount: float, currency: str) -> None:
        cls.validate_budget_amount(amount)
        cls.validate_currency(currency)

    @staticmethod
    def validate_budget_type(budget_type: str) -> None:
        if budget_type not in SUPPORTED_BUDGET_TYPES:
            raise ValidationError(
                f"Unsupported budget type: {budget_type}. "
                f"Supported types: {', '.join(SUPPORTED_BUDGET_TYPES)}"
            )

    @staticmethod
    def validate_budget_amount(amount: float) -> None:
        if amount <= 0:
            raise ValidationError("Budget amount must be greater than 0")
        if amount > MAX_BUDGET_AMOUNT:
            raise ValidationError("Budget amount cannot exceed 1,000,000")

    @staticmethod
    def validate_currency(currency: str) -> None:
        if currency not in SUPPORTED_CURRENCIES:
            raise ValidationError(
                f"Unsupported currency: {currency}. "
                f"Supported currencies: {', '.join(SUPPORTED_CURRENCIES)}"
            )

    @staticmethod
    def validate_estimated_hours(hours: int) -> None:
        if hours <= 0:
            raise ValidationError("Estimated hours must be greater than 0")
        if hours > MAX_ESTIMATED_HOURS:
            raise ValidationError("Estimated hours cannot exceed 10,000")

    @classmethod
    def validate_milestones(
        cls, milestones: Optional[Sequence[MilestoneCreate]], total_amount: float
    ) -> List[str]:
        """Check inline milestones against the budget amount.

        Blank names become ``Milestone N`` and over-long names are
        truncated.  Only an out-of-range percentage is fatal; everything
        else produces a warning.
        """
        warnings: List[str] = []
        if not milestones:
            return warnings

        total_percentage = 0.0
        total_milestone_amount = 0.0

        for index, milestone in enumerate(milestones, start=1):
            if not milestone.name or not milestone.name.strip():
                milestone.name = f"Milestone {index}"
            if len(milestone.name) > MAX_MILESTONE_NAME_LENGTH:
                milestone.name = milestone.name[:97] + "..."

            if not milestone.amount or milestone.amount <= 0:
                milestone.amount = 0
                warnings.append(
                    f"Milestone amount for '{milestone.name}' was missing or invalid, setting to 0"
                )

            if milestone.amount > total_amount * 1.5:
                warnings.append(
                    f"Milestone amount for '{milestone.name}' ({milestone.amount}) is significantly "
                    f"higher than budget ({total_amount}). This may indicate a planning issue."
                )

            if milestone.percentage is not None:
                if milestone.percentage < 0 or milestone.percentage > 100:
                    raise ValidationError(
                        f"Milestone percentage for '{milestone.name}' must be between 0 and 100"
                    )
                total_percentage += milestone.percentage

            total_milestone_amount += milestone.amount

        all_have_percentages = all(m.percentage is not None for m in milestones)
        if all_have_percentages and total_percentage > 0 and abs(total_percentage - 100) > 0.01:
            warnings.append(
                f"Total milestone percentage is {total_percentage:g}%, not 100%. "
                "This is allowed but may cause tracking issues."
            )

        if abs(total_milestone_amount - total_amount) > 0.01:
            if total_milestone_amount > total_amount:
                warnings.append(
                    f"Total milestone amount ({total_milestone_amount:g}) exceeds budget "
                    f"({total_amount:g}). This may cause tracking issues."
                )
            else:
                warnings.append(
                    f"Total milestone amount ({total_milestone_amount:g}) is less than budget "
                    f"({total_amount:g}). Remaining amount: {total_amount - total_milestone_amount:g}"
                )

        for warning in warnings:
            logger.warning(warning)
        return warnings

    @classmethod
    def validate_business_rules(cls, data: BudgetCreate) -> List[str]:
        if data.type == "HOURLY" and not data.estimated_hours:
            raise ValidationError("Estimated hours are required for hourly projects")

        warnings: List[str] = []
        if data.type in ("MILESTONE", "FIXED") and data.milestones:
            warnings = cls.validate_milestones(data.milestones, data.amount)

        if data.notes and len(data.notes) > MAX_NOTES_LENGTH:
            raise ValidationError("Budget notes cannot exceed 500 characters")
        return warnings

    @staticmethod
    def format_budget_amount(amount: float, currency: str) -> str:
        """Format an amount the way an en-US currency formatter does.

        ``format_budget_amount(5000, "USD") -> "$5,000.00"``.  Unknown
        codes fall back to ``"XYZ 5000.00"``.
        """
        if currency not in SUPPORTED_CURRENCIES:
            return f"{currency} {amount:.2f}"
        prefix = EN_US_CURRENCY_PREFIXES.get(currency, f"{currency} ")
        sign = "-" if amount < 0 else ""
        return f"{sign}{prefix}{abs(amount):,.2f}"
