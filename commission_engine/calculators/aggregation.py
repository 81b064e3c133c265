"""
Aggregation Engine

Folds already-filtered collections of sales, commissions and marketing
packages into summary statistics and reports. Performs no filtering of its
own beyond the status rules of the salesperson report.
"""

from decimal import Decimal

from ..models import (
    Commission,
    CommissionReport,
    CommissionStats,
    CommissionStatus,
    GroupTotal,
    MarketingPackage,
    PackageStatus,
    Sale,
    SaleStats,
    SaleStatus,
    SalespersonReport,
)
from .marketing import MarketingCommissionResolver
from .sale import quantize_money

ZERO = Decimal("0")


class AggregationEngine:
    """Pure reductions over sales, commissions and packages."""

    def __init__(self, resolver: MarketingCommissionResolver | None = None):
        self.resolver = resolver or MarketingCommissionResolver()

    def summarize_sales(self, sales: list[Sale]) -> SaleStats:
        """Totals, per-status counts and average ticket of a sale collection."""
        stats = SaleStats(count_by_status={status.value: 0 for status in SaleStatus})

        for sale in sales:
            stats.count += 1
            stats.total_gross += sale.gross_value
            stats.total_net += sale.net_value
            stats.total_commission += sale.commission_value
            stats.total_tax += sale.tax_retained
            stats.total_net_commission += sale.net_commission
            stats.count_by_status[sale.status.value] += 1

        stats.average_net = self._average(stats.total_net, stats.count)
        return stats

    def summarize_commissions(self, commissions: list[Commission]) -> CommissionStats:
        """Totals, per-status counts and values of a commission collection."""
        stats = CommissionStats(
            count_by_status={status.value: 0 for status in CommissionStatus},
            value_by_status={status.value: ZERO for status in CommissionStatus},
        )

        for commission in commissions:
            stats.count += 1
            stats.total_commission += commission.commission_value
            stats.total_tax += commission.tax_retained
            stats.total_net += commission.net_value
            stats.count_by_status[commission.status.value] += 1
            stats.value_by_status[commission.status.value] += commission.net_value

        stats.average_net = self._average(stats.total_net, stats.count)
        return stats

    def commission_report(self, commissions: list[Commission]) -> CommissionReport:
        """Commission summary grouped by status and by salesperson (net values)."""
        report = CommissionReport(stats=self.summarize_commissions(commissions))

        for commission in commissions:
            by_status = report.by_status.setdefault(commission.status.value, GroupTotal())
            by_status.count += 1
            by_status.value += commission.net_value

            by_person = report.by_salesperson.setdefault(commission.salesperson_id, GroupTotal())
            by_person.count += 1
            by_person.value += commission.net_value

        return report

    def salesperson_report(
        self,
        sales: list[Sale],
        packages: list[MarketingPackage],
        default_rate: Decimal,
    ) -> list[SalespersonReport]:
        """
        Combine sale and marketing commissions per salesperson.

        Only approved sales and approved packages count. A sale contributes its
        commission value to its owner; a package contributes each resolved
        share to that share's beneficiary, never to the package owner when a
        split is configured.

        Ordered by total commission (highest first), then by salesperson id.
        """
        reports: dict[str, SalespersonReport] = {}

        for sale in sales:
            if sale.status != SaleStatus.APPROVED:
                continue
            entry = reports.setdefault(sale.salesperson_id, SalespersonReport(sale.salesperson_id))
            entry.sales_count += 1
            entry.sales_value += sale.net_value
            entry.sales_commission += sale.commission_value

        for package in packages:
            if package.status != PackageStatus.APPROVED:
                continue
            resolution = self.resolver.resolve(package, default_rate)
            for beneficiary in dict.fromkeys(resolution.beneficiaries):
                entry = reports.setdefault(beneficiary, SalespersonReport(beneficiary))
                entry.marketing_count += 1
                entry.marketing_value += package.value
            for beneficiary, amount in resolution.shares:
                reports[beneficiary].marketing_commission += amount

        return sorted(reports.values(), key=lambda r: (-r.total_commission, r.salesperson_id))

    @staticmethod
    def _average(total: Decimal, count: int) -> Decimal:
        if count == 0:
            return ZERO
        return quantize_money(total / count)
