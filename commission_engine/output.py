"""
Output Builder

Renders domain objects and statistics as JSON-safe API responses.
"""

from decimal import Decimal

from .models import (
    Commission,
    CommissionReport,
    CommissionResolution,
    CommissionStats,
    MarketingPackage,
    Sale,
    SaleCalculation,
    SaleStats,
    SalespersonReport,
    User,
)


def to_money(value: Decimal) -> float:
    """Convert Decimal to float with 2 decimal places."""
    return round(float(value), 2)


def _money_map(values: dict[str, Decimal]) -> dict[str, float]:
    return {key: to_money(value) for key, value in values.items()}


class OutputBuilder:
    """Builds API response bodies."""

    def sale(self, sale: Sale) -> dict:
        record = sale.to_record()
        for key in ("valor_bruto", "desconto", "valor_liquido", "comissao_valor", "imposto_retido", "comissao_liquida"):
            record[key] = to_money(record[key])
        record["comissao_percentual"] = float(sale.commission_pct)
        return record

    def commission(self, commission: Commission) -> dict:
        record = commission.to_record()
        for key in ("valor_comissao", "imposto_retido", "valor_liquido"):
            record[key] = to_money(record[key])
        return record

    def package(self, package: MarketingPackage, resolution: CommissionResolution | None = None) -> dict:
        record = package.to_record()
        record["valor"] = to_money(package.value)
        if package.split:
            record["comissao_config"]["percentage"] = float(package.split.percentage)
        if resolution is not None:
            record["comissao"] = self.resolution(resolution)
        return record

    def user(self, user: User) -> dict:
        return user.to_record()

    def calculation(self, calculation: SaleCalculation, breakdown: dict[str, Decimal] | None = None) -> dict:
        result = {
            "valor_liquido": to_money(calculation.net_value),
            "comissao_valor": to_money(calculation.commission_value),
            "imposto_retido": to_money(calculation.tax_retained),
            "comissao_liquida": to_money(calculation.net_commission),
        }
        if breakdown is not None:
            result["impostos"] = _money_map(breakdown)
        return result

    def resolution(self, resolution: CommissionResolution) -> dict:
        return {
            "total": to_money(resolution.total),
            "por_vendedora": to_money(resolution.per_beneficiary),
            "vendedoras": list(resolution.beneficiaries),
            "parcelas": [{"vendedora": name, "valor": to_money(amount)} for name, amount in resolution.shares],
        }

    def sale_stats(self, stats: SaleStats) -> dict:
        return {
            "total_vendas": stats.count,
            "valor_total_bruto": to_money(stats.total_gross),
            "valor_total_liquido": to_money(stats.total_net),
            "total_comissoes": to_money(stats.total_commission),
            "total_impostos": to_money(stats.total_tax),
            "total_comissoes_liquidas": to_money(stats.total_net_commission),
            "vendas_por_status": dict(stats.count_by_status),
            "ticket_medio": to_money(stats.average_net),
        }

    def commission_stats(self, stats: CommissionStats) -> dict:
        return {
            "total_comissoes": stats.count,
            "valor_total_bruto": to_money(stats.total_commission),
            "valor_total_impostos": to_money(stats.total_tax),
            "valor_total_liquido": to_money(stats.total_net),
            "comissoes_por_status": dict(stats.count_by_status),
            "valores_por_status": _money_map(stats.value_by_status),
            "comissao_media": to_money(stats.average_net),
        }

    def commission_report(self, report: CommissionReport) -> dict:
        return {
            "summary": self.commission_stats(report.stats),
            "by_status": {k: {"count": g.count, "value": to_money(g.value)} for k, g in report.by_status.items()},
            "by_vendedor": {
                k: {"count": g.count, "value": to_money(g.value)} for k, g in report.by_salesperson.items()
            },
        }

    def salesperson_report(self, reports: list[SalespersonReport]) -> list[dict]:
        return [
            {
                "vendedor_id": r.salesperson_id,
                "vendas": r.sales_count,
                "valor_vendas": to_money(r.sales_value),
                "comissao_vendas": to_money(r.sales_commission),
                "pacotes_marketing": r.marketing_count,
                "valor_marketing": to_money(r.marketing_value),
                "comissao_marketing": to_money(r.marketing_commission),
                "comissao_total": to_money(r.total_commission),
            }
            for r in reports
        ]
