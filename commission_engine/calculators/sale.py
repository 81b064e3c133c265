"""
Sale Calculator

Turns a sale's inputs (gross value, discount, commission percentage) into its
derived monetary fields. All use Decimal for precision with ROUND_HALF_UP
rounding, applied once per derived value on unrounded intermediates.
"""

from decimal import ROUND_HALF_UP, Decimal

from ..errors import PreconditionFailure, ValidationError
from ..models import MAX_MONEY, Sale, SaleCalculation, TaxConfig

HUNDRED = Decimal("100")


def quantize_money(value: Decimal) -> Decimal:
    """Round to 2 decimal places, half up."""
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class SaleCalculator:
    """Computes net value, commission, tax retention and net commission."""

    def __init__(self, tax_config: TaxConfig | None = None):
        self.tax_config = tax_config or TaxConfig()

    def compute(
        self,
        gross: Decimal,
        discount: Decimal,
        commission_pct: Decimal,
        tax_config: TaxConfig | None = None,
    ) -> SaleCalculation:
        """
        Calculate the derived fields of a sale.

        Only called after validation has passed, so a bad input here is a
        caller bug and raises PreconditionFailure instead of being clamped.
        """
        tax_config = tax_config or self.tax_config
        self._check_preconditions(gross, discount, commission_pct)

        net = gross - discount
        commission = net * commission_pct / HUNDRED
        tax = commission * tax_config.composite_rate
        net_commission = commission - tax

        return SaleCalculation(
            net_value=quantize_money(net),
            commission_value=quantize_money(commission),
            tax_retained=quantize_money(tax),
            net_commission=quantize_money(net_commission),
        )

    def recalculate(
        self,
        sale: Sale,
        gross: Decimal | None = None,
        discount: Decimal | None = None,
        commission_pct: Decimal | None = None,
        tax_config: TaxConfig | None = None,
    ) -> tuple[Decimal, Decimal, Decimal, SaleCalculation]:
        """
        Recompute every derived field after an edit.

        Missing inputs fall back to the values stored on the sale. Returns the
        merged (gross, discount, commission_pct) with the new calculation.
        """
        gross = sale.gross_value if gross is None else gross
        discount = sale.discount if discount is None else discount
        commission_pct = sale.commission_pct if commission_pct is None else commission_pct
        return gross, discount, commission_pct, self.compute(gross, discount, commission_pct, tax_config)

    def tax_breakdown(self, commission_value: Decimal, tax_config: TaxConfig | None = None) -> dict[str, Decimal]:
        """Split the retention on a commission into its tax components."""
        tax_config = tax_config or self.tax_config
        return {name: quantize_money(commission_value * rate) for name, rate in tax_config.components().items()}

    @staticmethod
    def _check_preconditions(gross: Decimal, discount: Decimal, commission_pct: Decimal) -> None:
        if gross <= 0:
            raise PreconditionFailure(f"gross value must be greater than 0, got: {gross}")
        if discount < 0:
            raise PreconditionFailure(f"discount cannot be negative, got: {discount}")
        if not (0 <= commission_pct <= 100):
            raise PreconditionFailure(f"commission percentage must be between 0 and 100, got: {commission_pct}")
        if discount >= gross:
            raise PreconditionFailure(f"discount ({discount}) must be less than gross value ({gross})")


class TaxRateConverter:
    """Converts between gross and net amounts for a single percentage rate."""

    def gross_from_net(self, net: Decimal, rate_pct: Decimal) -> Decimal:
        """gross = net / (1 - rate/100)"""
        self._check_rate(rate_pct)
        self._check_amount("Net amount", net)
        gross = net / (1 - rate_pct / HUNDRED)
        self._check_amount("Gross amount", gross)
        return quantize_money(gross)

    def net_from_gross(self, gross: Decimal, rate_pct: Decimal) -> Decimal:
        """net = gross * (1 - rate/100)"""
        self._check_rate(rate_pct)
        self._check_amount("Gross amount", gross)
        return quantize_money(gross * (1 - rate_pct / HUNDRED))

    @staticmethod
    def _check_rate(rate_pct: Decimal) -> None:
        if not (0 <= rate_pct < 100):
            raise ValidationError(f"Tax rate must be at least 0 and below 100, got: {rate_pct}")

    @staticmethod
    def _check_amount(label: str, amount: Decimal) -> None:
        if abs(amount) > MAX_MONEY:
            raise ValidationError(f"{label} cannot exceed {MAX_MONEY}, got: {amount}")
