"""
Pricing / Payout Calculator

Pure functions, no I/O. Turns a service's list price into what the client pays,
the platform commission, the contractor taxes and the provider's net payout.

Order of operations:
1. Weekend markup on the client-facing price (before commission)
2. Commission: standard or emergency rate on that price, or the flat
   subscription fee when the booking is covered by a package
3. Taxable amount = gross after commission (never below zero)
4. Income tax and withholding tax on the taxable amount
5. Net payout = taxable - taxes (never below zero) + weekend bonus
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from ...clock import Clock
from ...config import (
    DEFAULT_EMERGENCY_COMMISSION_RATE,
    DEFAULT_STANDARD_COMMISSION_RATE,
    DEFAULT_SUBSCRIPTION_FEE,
    DEFAULT_WEEKEND_BONUS_AMOUNT,
    DEFAULT_WEEKEND_MARKUP_PERCENTAGE,
    INCOME_TAX_RATE,
    WITHHOLDING_TAX_RATE,
)

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Round to cents, half up"""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


class CommissionRates(BaseModel):
    standard_rate: float = Field(DEFAULT_STANDARD_COMMISSION_RATE, ge=0, le=1)
    emergency_rate: float = Field(DEFAULT_EMERGENCY_COMMISSION_RATE, ge=0, le=1)
    subscription_fee: float = Field(DEFAULT_SUBSCRIPTION_FEE, ge=0)

    class Config:
        frozen = True


class PricingSettings(BaseModel):
    """Immutable snapshot of the pricing configuration used for one calculation"""

    weekend_markup_percentage: float = Field(DEFAULT_WEEKEND_MARKUP_PERCENTAGE, ge=0)
    weekend_bonus_amount: float = Field(DEFAULT_WEEKEND_BONUS_AMOUNT, ge=0)
    commission_rates: CommissionRates = CommissionRates()
    income_tax_rate: float = Field(INCOME_TAX_RATE, ge=0, le=1)
    withholding_tax_rate: float = Field(WITHHOLDING_TAX_RATE, ge=0, le=1)

    class Config:
        frozen = True


class PriceBreakdown(BaseModel):
    base_price: Decimal
    client_price: Decimal
    gross_amount: Decimal
    platform_commission: Decimal
    taxable_amount: Decimal
    income_tax: Decimal
    withholding_tax: Decimal
    weekend_bonus: Decimal
    net_payout: Decimal
    is_weekend: bool
    is_emergency: bool
    covered_by_package: bool

    class Config:
        frozen = True


class PayoutTotals(BaseModel):
    jobs: int = 0
    gross_amount: Decimal = ZERO
    platform_commission: Decimal = ZERO
    taxable_amount: Decimal = ZERO
    income_tax: Decimal = ZERO
    withholding_tax: Decimal = ZERO
    weekend_bonus: Decimal = ZERO
    net_payout: Decimal = ZERO


def is_weekend_date(value, clock: Optional[Clock] = None) -> bool:
    """Saturday or Sunday, reading datetimes in the local timezone"""
    if isinstance(value, datetime):
        value = (clock or Clock()).local_date(value)
    if not isinstance(value, date):
        raise TypeError(f"Expected a date or datetime, got {type(value).__name__}")
    return value.weekday() >= 5


def calculate_price(
    base_price,
    is_emergency: bool,
    is_weekend: bool,
    settings: PricingSettings,
    covered_by_package: bool = False,
) -> PriceBreakdown:
    """Price one booking against a settings snapshot"""
    base = to_money(base_price)
    if base < ZERO:
        raise ValueError("Service price cannot be negative")

    rates = settings.commission_rates
    weekend_bonus = to_money(settings.weekend_bonus_amount) if is_weekend else ZERO

    if covered_by_package:
        # Client pays nothing; the provider's job is valued at list price
        client_price = ZERO
        gross = base
        commission = to_money(rates.subscription_fee)
    else:
        if is_weekend:
            markup = Decimal(str(settings.weekend_markup_percentage)) / Decimal(100)
            client_price = to_money(base * (Decimal(1) + markup))
        else:
            client_price = base
        gross = client_price
        rate = rates.emergency_rate if is_emergency else rates.standard_rate
        commission = to_money(client_price * Decimal(str(rate)))

    taxable = max(ZERO, gross - commission)
    income_tax = to_money(taxable * Decimal(str(settings.income_tax_rate)))
    withholding_tax = to_money(taxable * Decimal(str(settings.withholding_tax_rate)))
    net_payout = max(ZERO, taxable - income_tax - withholding_tax) + weekend_bonus

    return PriceBreakdown(
        base_price=base,
        client_price=client_price,
        gross_amount=gross,
        platform_commission=commission,
        taxable_amount=taxable,
        income_tax=income_tax,
        withholding_tax=withholding_tax,
        weekend_bonus=weekend_bonus,
        net_payout=to_money(net_payout),
        is_weekend=is_weekend,
        is_emergency=is_emergency,
        covered_by_package=covered_by_package,
    )


def aggregate_payouts(breakdowns: Iterable[PriceBreakdown]) -> PayoutTotals:
    """Sum a batch of payouts, e.g. a provider's completed jobs for a week"""
    totals = PayoutTotals()
    for b in breakdowns:
        totals = PayoutTotals(
            jobs=totals.jobs + 1,
            gross_amount=totals.gross_amount + b.gross_amount,
            platform_commission=totals.platform_commission + b.platform_commission,
            taxable_amount=totals.taxable_amount + b.taxable_amount,
            income_tax=totals.income_tax + b.income_tax,
            withholding_tax=totals.withholding_tax + b.withholding_tax,
            weekend_bonus=totals.weekend_bonus + b.weekend_bonus,
            net_payout=totals.net_payout + b.net_payout,
        )
    return totals
