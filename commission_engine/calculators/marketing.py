"""
Marketing Commission Resolver

Computes the commission owed on a marketing package, either through an
explicit split configuration or through a default rate chosen by the caller.
"""

from decimal import ROUND_DOWN, Decimal

from ..errors import ValidationError
from ..models import CommissionResolution, MarketingPackage
from .sale import HUNDRED, quantize_money

CENT = Decimal("0.01")


class MarketingCommissionResolver:
    """Resolves total and per-beneficiary commission for a package."""

    def resolve(self, package: MarketingPackage, default_rate: Decimal) -> CommissionResolution:
        """
        Resolve a package's commission.

        With a split, the split percentage applies and the total is shared
        evenly among the listed beneficiaries (order and duplicates kept).
        Without one, default_rate applies and the assigned salesperson is the
        only beneficiary.
        """
        split = package.split

        if split is not None:
            if not split.beneficiaries:
                raise ValidationError(
                    f"Commission split on package {package.id} has no beneficiaries"
                )
            self._check_rate(split.percentage, "split percentage")
            total = quantize_money(package.value * split.percentage / HUNDRED)
            beneficiaries = list(split.beneficiaries)
        else:
            self._check_rate(default_rate, "default rate")
            total = quantize_money(package.value * default_rate / HUNDRED)
            beneficiaries = [package.salesperson_id]

        return CommissionResolution(
            total=total,
            per_beneficiary=quantize_money(total / len(beneficiaries)),
            beneficiaries=beneficiaries,
            shares=self.allocate(total, beneficiaries),
        )

    @staticmethod
    def allocate(total: Decimal, beneficiaries: list[str]) -> list[tuple[str, Decimal]]:
        """
        Share total evenly in whole cents.

        Leftover cents go one each to the earliest beneficiaries, so the
        shares always add up to total.
        """
        count = len(beneficiaries)
        base = (total / count).quantize(CENT, rounding=ROUND_DOWN)
        leftover_cents = int((total - base * count) / CENT)

        return [
            (name, base + CENT if position < leftover_cents else base)
            for position, name in enumerate(beneficiaries)
        ]

    @staticmethod
    def _check_rate(rate: Decimal, label: str) -> None:
        if not (0 <= rate <= 100):
            raise ValidationError(f"{label} must be between 0 and 100, got: {rate}")
